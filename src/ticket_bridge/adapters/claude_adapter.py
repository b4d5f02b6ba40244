"""adapters.claude_adapter

Concrete adapter that bridges :class:`ticket_bridge.core.abc.GenerationBackend`
with the **Anthropic Messages** API via the official ``anthropic`` SDK.

System messages are sent out-of-band (``system=``) as the Messages API requires.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

import anthropic

from ticket_bridge.core.abc import DEFAULT_MAX_TOKENS, GenerationBackend
from ticket_bridge.core.exceptions import MissingCredentialError
from ticket_bridge.core.types import FinishReason, GenerationResult, Usage

if TYPE_CHECKING:
    import httpx

    from ticket_bridge.core.types import BackendConfig, GenerationRequest

_STOP_REASONS: dict[str | None, FinishReason] = {
    'end_turn': FinishReason.stop,
    'stop_sequence': FinishReason.stop,
    'max_tokens': FinishReason.length,
    'refusal': FinishReason.content_filter,
}


class ClaudeAdapter(GenerationBackend):
    """Adapter for Anthropic's Claude models."""

    name: ClassVar[str] = 'claude'
    default_model: ClassVar[str] = 'claude-sonnet-4-20250514'

    def __init__(
        self,
        config: BackendConfig | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(config)
        api_key = self.config.api_key_value
        if api_key is None:
            raise MissingCredentialError('Claude API key is required (set ANTHROPIC_API_KEY)')
        # Retries stay with the caller; the SDK must fail fast.
        self._client = anthropic.Anthropic(
            api_key=api_key,
            base_url=self.config.base_url,
            timeout=self._executor.http_timeout,
            max_retries=0,
            http_client=self._executor.build_http_client(transport),
        )

    def _release(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Synchronous path
    # ------------------------------------------------------------------

    def _invoke(self, request: GenerationRequest) -> GenerationResult:
        options = request.options
        kwargs: dict[str, Any] = {
            'model': self._model,
            'max_tokens': options.max_tokens or DEFAULT_MAX_TOKENS,
            'messages': [{'role': m.role.value, 'content': m.content} for m in request.conversation],
        }
        if request.system_prompt is not None:
            kwargs['system'] = request.system_prompt
        if options.temperature is not None:
            kwargs['temperature'] = options.temperature
        if options.stop_sequences:
            kwargs['stop_sequences'] = list(options.stop_sequences)

        response = self._client.messages.create(**kwargs)

        text = ''.join(block.text for block in response.content if getattr(block, 'type', None) == 'text')
        usage = None
        if response.usage is not None:
            usage = Usage(
                input_tokens=response.usage.input_tokens or 0,
                output_tokens=response.usage.output_tokens or 0,
            )
        return GenerationResult(
            content=text,
            model=response.model or self._model,
            usage=usage,
            finish_reason=_STOP_REASONS.get(response.stop_reason, FinishReason.stop),
        )
