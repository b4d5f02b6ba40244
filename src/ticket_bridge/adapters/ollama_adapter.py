"""adapters.ollama_adapter

Adapter for a local **Ollama** server (``/api/chat``), spoken over plain httpx.

No API key is required. Setup on the host:

1. install Ollama (https://ollama.com)
2. ``ollama pull llama3``
3. the server listens on http://localhost:11434 by default
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

import httpx

from ticket_bridge.core.abc import DEFAULT_MAX_TOKENS, GenerationBackend
from ticket_bridge.core.exceptions import UpstreamError
from ticket_bridge.core.executor import DEFAULT_LOCAL_TIMEOUT_SEC
from ticket_bridge.core.settings import DEFAULT_OLLAMA_HOST
from ticket_bridge.core.types import FinishReason, GenerationResult, Usage

if TYPE_CHECKING:
    from ticket_bridge.core.types import BackendConfig, GenerationRequest


class OllamaAdapter(GenerationBackend):
    """Adapter for models served by a local Ollama instance."""

    name: ClassVar[str] = 'ollama'
    default_model: ClassVar[str] = 'llama3'
    default_timeout_sec: ClassVar[float] = DEFAULT_LOCAL_TIMEOUT_SEC
    unreachable_hint: ClassVar[str | None] = 'is Ollama running? Start it with `ollama serve`'

    def __init__(
        self,
        config: BackendConfig | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(config)
        self._base_url = (self.config.base_url or DEFAULT_OLLAMA_HOST).rstrip('/')
        self._http = self._executor.build_http_client(transport)

    @property
    def base_url(self) -> str:
        return self._base_url

    def _release(self) -> None:
        self._http.close()

    # ------------------------------------------------------------------
    # Synchronous path
    # ------------------------------------------------------------------

    def _invoke(self, request: GenerationRequest) -> GenerationResult:
        options = request.options
        payload: dict[str, Any] = {
            'model': self._model,
            'messages': [{'role': m.role.value, 'content': m.content} for m in request.messages],
            'stream': False,
            'options': {'num_predict': options.max_tokens or DEFAULT_MAX_TOKENS},
        }
        if options.temperature is not None:
            payload['options']['temperature'] = options.temperature
        if options.stop_sequences:
            payload['options']['stop'] = list(options.stop_sequences)

        response = self._http.post(
            f'{self._base_url}/api/chat',
            json=payload,
            timeout=self._executor.http_timeout,
        )
        response.raise_for_status()
        data = self._json(response)

        message = data.get('message') or {}
        if not isinstance(message, dict) or not isinstance(message.get('content', ''), str):
            raise UpstreamError(self.name, response.status_code, 'Unexpected response shape')
        model = data.get('model')
        return GenerationResult(
            content=message.get('content', ''),
            model=model if isinstance(model, str) and model else self._model,
            usage=Usage(
                input_tokens=_count(data.get('prompt_eval_count')),
                output_tokens=_count(data.get('eval_count')),
            ),
            finish_reason=_finish_reason(data),
        )

    # ------------------------------------------------------------------
    # Model listing / health
    # ------------------------------------------------------------------

    def list_models(self) -> list[str]:
        """Names of the models installed on the Ollama host."""
        return self._run(self._fetch_tags)

    def _fetch_tags(self) -> list[str]:
        response = self._http.get(f'{self._base_url}/api/tags', timeout=self._executor.http_timeout)
        response.raise_for_status()
        models = self._json(response).get('models') or []
        if not isinstance(models, list):
            raise UpstreamError(self.name, response.status_code, 'Unexpected response shape')
        return [m['name'] for m in models if isinstance(m, dict) and isinstance(m.get('name'), str) and m['name']]

    def _json(self, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(self.name, response.status_code, 'Malformed response body') from exc
        if not isinstance(data, dict):
            raise UpstreamError(self.name, response.status_code, 'Unexpected response shape')
        return data

    def _probe(self) -> tuple[str, ...] | None:
        return tuple(self.list_models())


def _count(value: object) -> int:
    return value if isinstance(value, int) and value >= 0 else 0


def _finish_reason(data: dict[str, Any]) -> FinishReason:
    if data.get('done_reason') == 'length':
        return FinishReason.length
    return FinishReason.stop if data.get('done', True) else FinishReason.length
