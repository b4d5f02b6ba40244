"""tickets.service

Ticket generation use-cases, as called by the HTTP route layer.

`TicketService` depends only on the `GenerationBackend` interface: the
registry picks the adapter, the prompt builder writes the messages and the
interpreter recovers the result. Backend failures (`ConfigurationError`,
`BackendError` and subclasses) propagate unchanged; the service never retries.
"""

from __future__ import annotations

import logging
import re
import time
from typing import TYPE_CHECKING, Any

from ticket_bridge.core.exceptions import InputValidationError
from ticket_bridge.core.types import GenerationOptions
from ticket_bridge.tickets.interpreter import ResponseInterpreter
from ticket_bridge.tickets.models import MAX_TICKET_CONTENT_LENGTH, RefinementStyle, TicketInput
from ticket_bridge.tickets.prompts import (
    build_refinement_messages,
    build_regeneration_messages,
    build_ticket_messages,
    build_title_prompt,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ticket_bridge.core.abc import GenerationBackend
    from ticket_bridge.core.types import HealthStatus
    from ticket_bridge.registry.backend_registry import BackendRegistry
    from ticket_bridge.tickets.models import TicketPriority, TicketRecord, TicketType

logger = logging.getLogger(__name__)

_SURROUNDING_QUOTES = re.compile(r'^["\'`]+|["\'`]+$')


class TicketService:
    """Generate, refine and title tickets through a resolved backend.

    Parameters
    ----------
    registry
        Resolves backend names to adapters (and owns the adapter cache).
    max_tokens
        Output budget for ticket bodies.
    temperature
        Sampling temperature for fresh ticket generation.

    """

    def __init__(
        self,
        registry: BackendRegistry,
        *,
        interpreter: ResponseInterpreter | None = None,
        max_tokens: int = 4000,
        temperature: float = 0.7,
    ) -> None:
        self._registry = registry
        self._interpreter = interpreter or ResponseInterpreter()
        self._generate_options = GenerationOptions(max_tokens=max_tokens, temperature=temperature)
        self._refine_options = GenerationOptions(max_tokens=max_tokens, temperature=0.6)
        self._regenerate_options = GenerationOptions(max_tokens=max_tokens, temperature=0.5)
        self._title_options = GenerationOptions(max_tokens=50, temperature=0.5)

    # ------------------------------------------------------------------
    # Use-cases
    # ------------------------------------------------------------------

    def generate_ticket(
        self,
        ticket_input: TicketInput | dict[str, Any],
        backend_name: str | None = None,
    ) -> TicketRecord:
        """Generate a full ticket; missing type/priority/labels are auto-detected."""
        ticket_input = TicketInput.from_payload(ticket_input)
        backend = self._backend(backend_name)

        started = time.perf_counter()
        result = backend.complete(build_ticket_messages(ticket_input), self._generate_options)
        logger.info(
            'Ticket generated via %s/%s in %.0fms (auto_detect=%s)',
            backend.name,
            result.model,
            (time.perf_counter() - started) * 1000,
            ticket_input.needs_auto_detect,
        )
        return self._interpreter.interpret(result.content, ticket_input, model=result.model)

    def refine_ticket(
        self,
        current_content: str,
        style: RefinementStyle | str,
        backend_name: str | None = None,
    ) -> str:
        """Rewrite *current_content* in the requested *style*; returns markdown."""
        current_content = _require_content(current_content)
        try:
            style = RefinementStyle(style)
        except ValueError as exc:
            allowed = ', '.join(s.value for s in RefinementStyle)
            raise InputValidationError(f'style: must be one of {allowed}') from exc

        backend = self._backend(backend_name)
        result = backend.complete(build_refinement_messages(current_content, style), self._refine_options)
        logger.info('Ticket refined via %s (style=%s)', backend.name, style)
        return self._interpreter.clean_prose(result.content)

    def regenerate_ticket(
        self,
        edited_content: str,
        backend_name: str | None = None,
        *,
        title: str | None = None,
        ticket_type: TicketType | str | None = None,
        priority: TicketPriority | str | None = None,
        labels: Sequence[str] = (),
    ) -> str:
        """Polish user-edited content, guided by whatever metadata is known."""
        edited_content = _require_content(edited_content)
        backend = self._backend(backend_name)
        messages = build_regeneration_messages(
            edited_content,
            title=title,
            ticket_type=ticket_type,
            priority=priority,
            labels=tuple(labels),
        )
        result = backend.complete(messages, self._regenerate_options)
        logger.info('Ticket regenerated via %s', backend.name)
        return self._interpreter.clean_prose(result.content)

    def generate_title(self, description: str, backend_name: str | None = None) -> str:
        """Suggest a short title; a blank description yields ``''`` without a call."""
        if not description or not description.strip():
            return ''
        backend = self._backend(backend_name)
        raw = backend.generate(build_title_prompt(description.strip()), self._title_options)
        return clean_title(raw)

    def check_health(self, backend_name: str | None = None) -> HealthStatus:
        backend = self._backend(backend_name)
        status = backend.health_check()
        logger.info('%s health: healthy=%s latency=%sms', backend.name, status.healthy, status.latency_ms)
        return status

    # ------------------------------------------------------------------

    def _backend(self, backend_name: str | None) -> GenerationBackend:
        if backend_name:
            return self._registry.resolve(backend_name)
        return self._registry.resolve_default()


def clean_title(raw: str) -> str:
    """First line of *raw* without surrounding quotes or a trailing period."""
    line = next((ln.strip() for ln in raw.strip().splitlines() if ln.strip()), '')
    line = _SURROUNDING_QUOTES.sub('', line).strip()
    line = line.lstrip('#').strip()
    return line.removesuffix('.').strip()


def _require_content(content: str) -> str:
    if not isinstance(content, str) or not content.strip():
        raise InputValidationError('No ticket content to refine')
    if len(content) > MAX_TICKET_CONTENT_LENGTH:
        raise InputValidationError(f'Ticket content cannot exceed {MAX_TICKET_CONTENT_LENGTH} characters')
    return content.strip()
