"""core.executor

Runs exactly one outbound backend call and normalizes its failure modes.

The deadline bounds the whole call, not each socket operation. `execute()`
runs the call on a worker thread and stops waiting once the deadline passes;
`build_http_client()` wraps the transport in a `DeadlineTransport` so the
abandoned request is aborted as well. Plain httpx timeouts restart with every
body chunk and cannot do this on their own.

The executor also turns whatever the transport raised into the
*ticket_bridge* error taxonomy. There is no retry here: a failed call surfaces
once and the caller decides what to do.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, TypeVar

import anthropic
import httpx
import openai

from ticket_bridge.core.exceptions import BackendTimeoutError, BackendTransportError, UpstreamError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

T = TypeVar('T')

logger = logging.getLogger(__name__)

#: Remote (cloud) backends.
DEFAULT_REMOTE_TIMEOUT_SEC = 60.0
#: Local inference is typically much slower.
DEFAULT_LOCAL_TIMEOUT_SEC = 120.0

_MAX_MESSAGE_LENGTH = 500

# Order matters: SDK timeout errors subclass their connection errors, and
# httpx.TimeoutException subclasses httpx.TransportError. The builtin
# TimeoutError is what an expired `Future.result()` raises.
_TIMEOUT_ERRORS: tuple[type[Exception], ...] = (
    TimeoutError,
    httpx.TimeoutException,
    openai.APITimeoutError,
    anthropic.APITimeoutError,
)
_STATUS_ERRORS: tuple[type[Exception], ...] = (
    httpx.HTTPStatusError,
    openai.APIStatusError,
    anthropic.APIStatusError,
    # 2xx bodies the SDK could not parse
    openai.APIResponseValidationError,
    anthropic.APIResponseValidationError,
)
_CONNECTION_ERRORS: tuple[type[Exception], ...] = (
    httpx.TransportError,
    openai.APIConnectionError,
    anthropic.APIConnectionError,
)


# ---------------------------------------------------------------------------
# Error-body helpers
# ---------------------------------------------------------------------------


def extract_error_message(response: httpx.Response) -> str:
    """Best-effort human message from an error response body.

    Understands ``{"error": {"message": ...}}`` (Anthropic / OpenAI),
    ``{"error": "..."}`` (Ollama) and ``{"message": ...}``. Anything else,
    including bodies that are not JSON at all, degrades to ``HTTP <status>``.
    """
    fallback = f'HTTP {response.status_code}'
    try:
        body = response.json()
    except (ValueError, UnicodeDecodeError, httpx.ResponseNotRead):
        return fallback

    if not isinstance(body, dict):
        return fallback

    error = body.get('error')
    candidate: object = None
    if isinstance(error, dict):
        candidate = error.get('message')
    elif isinstance(error, str):
        candidate = error
    if candidate is None:
        candidate = body.get('message')

    if isinstance(candidate, str) and candidate.strip():
        return candidate.strip()[:_MAX_MESSAGE_LENGTH]
    return fallback


def _looks_unreachable(exc: BaseException) -> bool:
    """True when the failure (or its cause) is a refused / failed connect."""
    seen: BaseException | None = exc
    while seen is not None:
        if isinstance(seen, httpx.ConnectError | ConnectionRefusedError):
            return True
        seen = seen.__cause__
    return False


# ---------------------------------------------------------------------------
# Whole-exchange deadline for httpx
# ---------------------------------------------------------------------------


class DeadlineTransport(httpx.BaseTransport):
    """Fails any request not fully received within *budget_sec*.

    Checked once the response headers arrive and again after every body
    chunk; an expired budget raises `httpx.ReadTimeout`, which both SDKs and
    `RequestExecutor` already treat as a timeout.
    """

    def __init__(self, inner: httpx.BaseTransport, budget_sec: float) -> None:
        self._inner = inner
        self._budget_sec = budget_sec

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        deadline = time.monotonic() + self._budget_sec
        response = self._inner.handle_request(request)
        if time.monotonic() > deadline:
            response.close()
            raise httpx.ReadTimeout('Deadline exceeded waiting for response headers', request=request)
        return httpx.Response(
            status_code=response.status_code,
            headers=response.headers,
            stream=_DeadlineStream(response.stream, deadline, request),  # type: ignore[arg-type]
            extensions=response.extensions,
        )

    def close(self) -> None:
        self._inner.close()


class _DeadlineStream(httpx.SyncByteStream):
    def __init__(self, inner: httpx.SyncByteStream, deadline: float, request: httpx.Request) -> None:
        self._inner = inner
        self._deadline = deadline
        self._request = request

    def __iter__(self) -> Iterator[bytes]:
        for chunk in self._inner:
            if time.monotonic() > self._deadline:
                raise httpx.ReadTimeout('Deadline exceeded while reading response body', request=self._request)
            yield chunk

    def close(self) -> None:
        self._inner.close()


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class RequestExecutor:
    """Bounded, non-retrying wrapper around a single backend call."""

    def __init__(
        self,
        backend_name: str,
        *,
        timeout_sec: float = DEFAULT_REMOTE_TIMEOUT_SEC,
        unreachable_hint: str | None = None,
    ) -> None:
        if timeout_sec <= 0:
            raise ValueError('timeout_sec must be positive')
        self._backend_name = backend_name
        self._timeout_sec = timeout_sec
        self._unreachable_hint = unreachable_hint

    @property
    def backend_name(self) -> str:
        return self._backend_name

    @property
    def timeout_sec(self) -> float:
        """Deadline adapters must pass down to their transport."""
        return self._timeout_sec

    @property
    def http_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self._timeout_sec)

    def build_http_client(self, transport: httpx.BaseTransport | None = None) -> httpx.Client:
        """httpx client whose every request is bounded by the total deadline."""
        return httpx.Client(
            transport=DeadlineTransport(transport or httpx.HTTPTransport(), self._timeout_sec),
            timeout=self.http_timeout,
        )

    def execute(self, call: Callable[[], T]) -> T:
        """Run *call* once, translating transport failures.

        The caller waits at most `timeout_sec`; past that the call is left to
        its transport deadline on the worker thread.

        Raises
        ------
        BackendTimeoutError
            The deadline expired (status 408).
        UpstreamError
            The backend answered with a non-2xx status.
        BackendTransportError
            The connection failed (status 0).

        """
        started = time.perf_counter()
        worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f'{self._backend_name}-call')
        try:
            future = worker.submit(call)
        finally:
            worker.shutdown(wait=False)
        try:
            result = future.result(timeout=self._timeout_sec)
        except _TIMEOUT_ERRORS as exc:
            logger.warning('%s call timed out after %.1fs', self._backend_name, self._timeout_sec)
            raise BackendTimeoutError(
                self._backend_name, f'Request timed out after {self._timeout_sec:g}s'
            ) from exc
        except _STATUS_ERRORS as exc:
            response: httpx.Response = exc.response  # type: ignore[attr-defined]
            message = extract_error_message(response)
            logger.warning('%s returned HTTP %s: %s', self._backend_name, response.status_code, message)
            raise UpstreamError(self._backend_name, response.status_code, message) from exc
        except _CONNECTION_ERRORS as exc:
            logger.warning('%s transport failure: %s', self._backend_name, exc)
            raise BackendTransportError(self._backend_name, self._transport_message(exc)) from exc

        logger.debug('%s call completed in %.0fms', self._backend_name, (time.perf_counter() - started) * 1000)
        return result

    def _transport_message(self, exc: BaseException) -> str:
        if self._unreachable_hint and _looks_unreachable(exc):
            return f'Cannot reach {self._backend_name}: {self._unreachable_hint}'
        return 'Network error'

    def __repr__(self) -> str:  # pragma: no cover - cosmetic
        return f'<{self.__class__.__name__} backend={self._backend_name!r} timeout={self._timeout_sec:g}s>'
