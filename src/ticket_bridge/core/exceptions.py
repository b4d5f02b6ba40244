"""core.exceptions

Centralised exception hierarchy for *ticket_bridge*.

Each error carries an `http_status` attribute so that the route layer can
translate exceptions to HTTP responses without scattering status-code logic
throughout business code.

Backend errors additionally carry a normalized `status_code`:

* ``0``   - transport failure (connection refused, DNS, reset ...)
* ``408`` - the request exceeded its deadline
* other  - the upstream HTTP status
"""

from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from collections.abc import Mapping


# ---------------------------------------------------------------------------
# Base mixin with HTTP status information
# ---------------------------------------------------------------------------


class TicketBridgeError(Exception):
    """Base class for all *ticket_bridge* domain errors."""

    #: Default HTTP status if not overridden by subclass.
    http_status: ClassVar[HTTPStatus] = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__name__)

    def to_json(self) -> dict[str, dict[str, str]]:
        """Unified error body for the route layer."""
        return {'error': {'type': self.__class__.__name__, 'message': str(self)}}


# ---------------------------------------------------------------------------
# Configuration / caller errors (raised before any network call)
# ---------------------------------------------------------------------------


class ConfigurationError(TicketBridgeError):
    """Backend cannot be constructed from the given name / configuration."""


class UnknownBackendError(ConfigurationError):
    """Raised when `ProviderRegistry` cannot find a requested backend name."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.BAD_REQUEST  # 400


class MissingCredentialError(ConfigurationError):
    """Raised when a backend requiring an API key is configured without one."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.SERVICE_UNAVAILABLE  # 503


class InputValidationError(TicketBridgeError):
    """Malformed caller input, rejected before contacting a backend."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.BAD_REQUEST  # 400


# ---------------------------------------------------------------------------
# Backend call errors
# ---------------------------------------------------------------------------


class BackendError(TicketBridgeError):
    """Normalized failure of one outbound backend call."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.BAD_GATEWAY  # 502

    def __init__(self, backend_name: str, status_code: int, message: str) -> None:
        self.backend_name = backend_name
        self.status_code = status_code
        self.message = message
        super().__init__(f'{backend_name} API error ({status_code}): {message}')

    def to_json(self) -> dict[str, dict[str, str]]:
        body = super().to_json()
        body['error']['backend'] = self.backend_name
        return body


class BackendTransportError(BackendError):
    """Connection-level failure; the request never produced an HTTP response."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.SERVICE_UNAVAILABLE  # 503

    def __init__(self, backend_name: str, message: str = 'Network error') -> None:
        super().__init__(backend_name, 0, message)


class BackendTimeoutError(BackendError):
    """The call did not complete before its deadline."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.GATEWAY_TIMEOUT  # 504

    def __init__(self, backend_name: str, message: str = 'Request timed out') -> None:
        super().__init__(backend_name, HTTPStatus.REQUEST_TIMEOUT.value, message)


class UpstreamError(BackendError):
    """The backend answered with a non-2xx status."""


HTTP_STATUS_MAP: Mapping[type[TicketBridgeError], HTTPStatus] = {
    ConfigurationError: ConfigurationError.http_status,
    UnknownBackendError: UnknownBackendError.http_status,
    MissingCredentialError: MissingCredentialError.http_status,
    InputValidationError: InputValidationError.http_status,
    BackendTransportError: BackendTransportError.http_status,
    BackendTimeoutError: BackendTimeoutError.http_status,
    UpstreamError: UpstreamError.http_status,
}
