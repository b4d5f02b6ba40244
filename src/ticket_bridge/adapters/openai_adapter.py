"""adapters.openai_adapter

Concrete adapter that bridges :class:`ticket_bridge.core.abc.GenerationBackend`
with the **OpenAI Chat Completions** HTTP API.

This implementation targets *openai==1.x* (the new "unified" client).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

import openai

from ticket_bridge.core.abc import DEFAULT_MAX_TOKENS, GenerationBackend
from ticket_bridge.core.exceptions import MissingCredentialError
from ticket_bridge.core.types import FinishReason, GenerationResult, Usage

if TYPE_CHECKING:
    import httpx

    from ticket_bridge.core.types import BackendConfig, GenerationRequest

_FINISH_REASONS: dict[str | None, FinishReason] = {
    'stop': FinishReason.stop,
    'length': FinishReason.length,
    'content_filter': FinishReason.content_filter,
}


class OpenAIAdapter(GenerationBackend):
    """Adapter for OpenAI ChatCompletion API."""

    name: ClassVar[str] = 'openai'
    default_model: ClassVar[str] = 'gpt-4o'

    def __init__(
        self,
        config: BackendConfig | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(config)
        api_key = self.config.api_key_value
        if api_key is None:
            raise MissingCredentialError('OpenAI API key is required (set OPENAI_API_KEY)')
        self._client = openai.Client(
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
            'messages': [{'role': m.role.value, 'content': m.content} for m in request.messages],
        }
        if options.temperature is not None:
            kwargs['temperature'] = options.temperature
        if options.stop_sequences:
            kwargs['stop'] = list(options.stop_sequences)

        response = self._client.chat.completions.create(**kwargs)

        choice = response.choices[0] if response.choices else None
        usage = None
        if response.usage is not None:
            usage = Usage(
                input_tokens=response.usage.prompt_tokens or 0,
                output_tokens=response.usage.completion_tokens or 0,
            )
        return GenerationResult(
            content=(choice.message.content if choice is not None else None) or '',
            model=response.model or self._model,
            usage=usage,
            finish_reason=_FINISH_REASONS.get(choice.finish_reason if choice else None, FinishReason.stop),
        )
