"""core.abc

Abstract base class that *all* backend adapters must implement.

Design goals
============
1. **Backend-agnostic public API** - callers interact exclusively via
    `complete()` / `generate()` / `health_check()` passing domain models
    (`Message`, `GenerationOptions`). They never touch backend payloads.
2. **Bounded calls** - `complete()` runs the adapter's `_invoke()` through a
    `RequestExecutor`, so every adapter inherits deadline handling and error
    normalization. No raw SDK / httpx exception escapes.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar, TypeVar

from ticket_bridge.core.exceptions import BackendError, BackendTransportError
from ticket_bridge.core.executor import DEFAULT_REMOTE_TIMEOUT_SEC, RequestExecutor
from ticket_bridge.core.types import (
    BackendConfig,
    GenerationOptions,
    GenerationRequest,
    GenerationResult,
    HealthStatus,
    Message,
    Role,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

T = TypeVar('T')

logger = logging.getLogger(__name__)

#: Used when the caller leaves `GenerationOptions.max_tokens` unset.
DEFAULT_MAX_TOKENS = 2048

_HEALTH_PROBE_PROMPT = 'Say "ok"'
_HEALTH_PROBE_OPTIONS = GenerationOptions(max_tokens=10)


class GenerationBackend(ABC):
    """Backend-independent text generation interface."""

    #: Registry slug, e.g. ``"claude"``.
    name: ClassVar[str]
    default_model: ClassVar[str]
    default_timeout_sec: ClassVar[float] = DEFAULT_REMOTE_TIMEOUT_SEC
    #: Appended to transport errors when the service looks unreachable.
    unreachable_hint: ClassVar[str | None] = None

    # ---------------------------------------------------------------------
    # Construction
    # ---------------------------------------------------------------------

    def __init__(self, config: BackendConfig | None = None) -> None:
        """Store the immutable *config* and build the adapter's executor."""
        self._config: BackendConfig = config or BackendConfig()
        self._model: str = self._config.model or self.default_model
        self._executor = RequestExecutor(
            self.name,
            timeout_sec=self._config.timeout_sec or self.default_timeout_sec,
            unreachable_hint=self.unreachable_hint,
        )
        self._closed = False

    @property
    def model(self) -> str:
        return self._model

    @property
    def config(self) -> BackendConfig:
        return self._config

    @property
    def timeout_sec(self) -> float:
        return self._executor.timeout_sec

    # ------------------------------------------------------------------
    # Public synchronous API
    # ------------------------------------------------------------------

    def complete(
        self,
        messages: Sequence[Message],
        options: GenerationOptions | None = None,
    ) -> GenerationResult:
        """Generate a completion for *messages*.

        Subclasses **must not** override this - override `_invoke()` instead.
        """
        request = GenerationRequest(messages=tuple(messages), options=options or GenerationOptions())
        logger.debug('%s/%s: sending %d message(s)', self.name, self._model, len(request.messages))
        return self._run(lambda: self._invoke(request))

    def generate(self, prompt: str, options: GenerationOptions | None = None) -> str:
        """Send *prompt* as a single user message and return the reply text."""
        return self.complete([Message(role=Role.user, content=prompt)], options).content

    def health_check(self) -> HealthStatus:
        """Report reachability without raising for backend failures."""
        started = time.perf_counter()
        try:
            models = self._probe()
        except BackendError as exc:
            return HealthStatus(healthy=False, latency_ms=_elapsed_ms(started), error=str(exc))
        return HealthStatus(healthy=True, latency_ms=_elapsed_ms(started), available_models=models)

    def close(self) -> None:
        """Release pooled connections; later calls raise `BackendTransportError`."""
        if not self._closed:
            self._closed = True
            self._release()

    def _run(self, call: Callable[[], T]) -> T:
        """Execute one outbound *call* under the adapter's deadline."""
        if self._closed:
            raise BackendTransportError(self.name, 'Adapter has been closed')
        return self._executor.execute(call)

    # ------------------------------------------------------------------
    # Methods to implement in concrete adapters
    # ------------------------------------------------------------------

    @abstractmethod
    def _invoke(self, request: GenerationRequest) -> GenerationResult:
        """Backend-specific **blocking** implementation (to be overridden).

        HTTP must go through a client from `self._executor.build_http_client()`
        so the total deadline also aborts the transport.
        """

    def _release(self) -> None:
        """Free transport resources; nothing to do by default."""

    def _probe(self) -> tuple[str, ...] | None:
        """Cheapest call proving the backend works; may return model names."""
        self.generate(_HEALTH_PROBE_PROMPT, _HEALTH_PROBE_OPTIONS)
        return None

    # ------------------------------------------------------------------
    # Helper - string representation
    # ------------------------------------------------------------------

    def __repr__(self) -> str:  # pragma: no cover - cosmetic
        return f'<{self.__class__.__name__} model={self._model!r}>'


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 1)
