"""tickets.models

Ticket domain types: the caller-owned `TicketInput` and the `TicketRecord`
produced once per generation call.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from ticket_bridge.core.exceptions import InputValidationError

MAX_DESCRIPTION_LENGTH = 5000
MIN_DESCRIPTION_LENGTH = 10
MAX_TITLE_LENGTH = 100
MAX_LABEL_LENGTH = 50
MAX_LABELS = 10
MAX_TICKET_CONTENT_LENGTH = 10000


class TicketType(StrEnum):
    task = 'Task'
    story = 'Story'
    bug = 'Bug'
    spike = 'Spike'
    epic = 'Epic'


class TicketPriority(StrEnum):
    low = 'Low'
    medium = 'Medium'
    high = 'High'
    critical = 'Critical'


class TemplateStyle(StrEnum):
    basic = 'Basic'
    detailed = 'Detailed'


class RefinementStyle(StrEnum):
    concise = 'concise'
    detailed = 'detailed'
    technical = 'technical'
    business = 'business'
    user_story = 'user-story'
    acceptance = 'acceptance'


DEFAULT_TYPE = TicketType.task
DEFAULT_PRIORITY = TicketPriority.medium


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


class TicketInput(BaseModel):
    """What the user typed into the form."""

    description: str = Field(..., min_length=MIN_DESCRIPTION_LENGTH, max_length=MAX_DESCRIPTION_LENGTH)
    title: str | None = Field(None, max_length=MAX_TITLE_LENGTH)
    type: TicketType | None = None
    priority: TicketPriority | None = None
    labels: tuple[str, ...] = Field(default=(), max_length=MAX_LABELS)
    template: TemplateStyle = TemplateStyle.basic
    writing_style: RefinementStyle | None = None

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_validator('title', mode='after')
    @classmethod
    def _blank_title_is_none(cls, v: str | None) -> str | None:
        return v or None

    @field_validator('labels', mode='after')
    @classmethod
    def _check_labels(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Labels are non-empty lowercase tokens; blanks are dropped."""
        labels = tuple(label.strip().lower() for label in v)
        for label in labels:
            if len(label) > MAX_LABEL_LENGTH:
                raise ValueError(f'label {label[:20]!r}... exceeds {MAX_LABEL_LENGTH} characters')
        return tuple(label for label in labels if label)

    @property
    def needs_auto_detect(self) -> bool:
        """True unless type, priority and at least one label were all supplied."""
        return self.type is None or self.priority is None or not self.labels

    @classmethod
    def from_payload(cls, payload: TicketInput | dict[str, Any]) -> TicketInput:
        """Validate a request payload, mapping failures to `InputValidationError`."""
        if isinstance(payload, cls):
            return payload
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise InputValidationError(_summarise(exc)) from exc


def _summarise(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = '.'.join(str(p) for p in err['loc']) or 'input'
        parts.append(f'{loc}: {err["msg"]}')
    return '; '.join(parts)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


class _Wire(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class AISuggested(_Wire):
    """Which metadata fields were inferred by the backend."""

    type: bool = False
    priority: bool = False
    labels: bool = False


class TicketMetadata(_Wire):
    type: TicketType
    priority: TicketPriority
    labels: tuple[str, ...] = ()
    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    model: str
    ai_suggested: AISuggested | None = None


class TicketRecord(_Wire):
    """Assembled ticket; owned by the caller once returned."""

    content: str
    title: str
    metadata: TicketMetadata

    def to_wire(self) -> dict[str, Any]:
        """camelCase JSON-ready dict for the route layer."""
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)
