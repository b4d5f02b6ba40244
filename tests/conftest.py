from __future__ import annotations

import json
import time
from collections.abc import Callable, Iterable, Iterator
from typing import ClassVar

import httpx
import pytest

from ticket_bridge.core.abc import GenerationBackend
from ticket_bridge.core.types import BackendConfig, GenerationRequest, GenerationResult

# Anything that could leak a developer's real configuration into a test.
_ENV_VARS = (
    'DEFAULT_LLM_PROVIDER',
    'ANTHROPIC_API_KEY',
    'ANTHROPIC_BASE_URL',
    'CLAUDE_MODEL',
    'OPENAI_API_KEY',
    'OPENAI_BASE_URL',
    'OPENAI_MODEL',
    'OLLAMA_HOST',
    'OLLAMA_MODEL',
    'LLM_TIMEOUT_SEC',
)


@pytest.fixture(autouse=True)
def _clean_llm_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)


class ScriptedBackend(GenerationBackend):
    """Returns canned replies in order and records every request."""

    name: ClassVar[str] = 'scripted'
    default_model: ClassVar[str] = 'scripted-model'

    def __init__(self, replies: Iterable[str] = (), config: BackendConfig | None = None) -> None:
        super().__init__(config)
        self.replies = list(replies)
        self.requests: list[GenerationRequest] = []

    def _invoke(self, request: GenerationRequest) -> GenerationResult:
        self.requests.append(request)
        return GenerationResult(content=self.replies.pop(0), model=self._model)


@pytest.fixture
def make_backend() -> Callable[..., ScriptedBackend]:
    return ScriptedBackend


@pytest.fixture
def mock_transport() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.MockTransport]:
    """Build an httpx transport answering every request with the given handler."""
    return httpx.MockTransport


@pytest.fixture
def trickling_transport() -> Callable[[object, float], httpx.MockTransport]:
    """Transport whose 200 JSON reply arrives one byte every *delay* seconds."""

    def _factory(payload: object, delay: float) -> httpx.MockTransport:
        body = json.dumps(payload).encode()

        def _trickle() -> Iterator[bytes]:
            for i in range(len(body)):
                time.sleep(delay)
                yield body[i : i + 1]

        return httpx.MockTransport(
            lambda _: httpx.Response(200, headers={'content-type': 'application/json'}, content=_trickle())
        )

    return _factory
