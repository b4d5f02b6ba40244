"""tickets.interpreter

Turns a backend's free-form reply into a `TicketRecord`.

The reply may be a clean JSON object, a JSON object with formatting defects,
or plain markdown. `ResponseInterpreter.interpret()` walks an ordered fallback
chain and never raises for unparsable input:

1. extract a candidate block: the first fenced ```json block, otherwise the
   first balanced ``{...}`` span;
2. ``json.loads`` it;
3. on failure, escape raw newlines / carriage returns / tabs inside string
   literals and parse again;
4. validate and merge the parsed fields with what the user supplied;
5. if any of 1-3 fails, use the whole reply as the ticket body;
6. post-process: strip wrapping code fences, resolve the title, drop a leading
   heading that repeats the title, trim.

The repair in step 3 is a heuristic. It assumes control characters only appear
inside string bodies, and a string ending in an escaped backslash directly
before its closing quote can confuse the literal matcher.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ticket_bridge.tickets.models import (
    DEFAULT_PRIORITY,
    DEFAULT_TYPE,
    MAX_LABELS,
    MAX_TITLE_LENGTH,
    AISuggested,
    TicketMetadata,
    TicketPriority,
    TicketRecord,
    TicketType,
)

if TYPE_CHECKING:
    from ticket_bridge.tickets.models import TicketInput

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Regular-expression helpers
# ---------------------------------------------------------------------------

# Opening ```json / ``` fence. The block ends where its braces balance, not at
# the next fence: ticket bodies routinely carry fenced code of their own.
_FENCE_OPEN = re.compile(r'```[ \t]*(?P<lang>[A-Za-z]*)[ \t]*\r?\n')
# whole reply wrapped in ```markdown / ```md / bare fences
_WRAPPING_FENCE = re.compile(
    r'\A```[ \t]*(?:markdown|md)?[ \t]*\r?\n(?P<body>.*?)\r?\n?[ \t]*```\Z',
    re.DOTALL | re.IGNORECASE,
)
# a double-quoted JSON string literal, escapes included
_STRING_LITERAL = re.compile(r'"((?:[^"\\]|\\.)*)"', re.DOTALL)
_TITLE_LINE = re.compile(r'^#{1,2}[ \t]+(?P<text>.+?)[ \t]*#*[ \t]*$')
_TITLE_HEADING = re.compile(r'^#{1,2}[ \t]+(?P<text>.+?)[ \t]*#*[ \t]*$', re.MULTILINE)
_LEADING_H2 = re.compile(r'\A##[ \t]+[^\n]*(?:\n|\Z)')

_CONTROL_ESCAPES = {'\n': '\\n', '\r': '\\r', '\t': '\\t'}


# ---------------------------------------------------------------------------
# Steps 1-3: extraction, parse, repair
# ---------------------------------------------------------------------------


def extract_structured_block(text: str) -> str | None:
    """Return the first candidate JSON object text in *text*, if any.

    A fenced block marked ``json`` (or unmarked) whose body starts with ``{``
    wins over a bare brace span. With several candidates the first one wins.
    """
    for match in _FENCE_OPEN.finditer(text):
        if match.group('lang').lower() not in ('', 'json'):
            continue
        body = text[match.end() :]
        if body.lstrip().startswith('{') and (span := find_balanced_object(body)) is not None:
            return span
    return find_balanced_object(text)


def find_balanced_object(text: str) -> str | None:
    """First ``{...}`` span whose braces balance, ignoring braces in strings."""
    start = text.find('{')
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    # unterminated, e.g. the reply was cut off by max_tokens
    return None


def escape_control_characters(candidate: str) -> str:
    """Escape raw newlines, carriage returns and tabs inside string literals."""

    def _escape(match: re.Match[str]) -> str:
        inner = match.group(1)
        for raw, escaped in _CONTROL_ESCAPES.items():
            inner = inner.replace(raw, escaped)
        return f'"{inner}"'

    return _STRING_LITERAL.sub(_escape, candidate)


def parse_structured_block(candidate: str) -> dict[str, Any] | None:
    """Parse *candidate*, repairing control characters on the second attempt."""
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as exc:
        logger.debug('Structured block parse failed (%s); retrying after repair', exc)
        try:
            parsed = json.loads(escape_control_characters(candidate))
        except json.JSONDecodeError as retry_exc:
            logger.debug('Repaired block still unparsable: %s', retry_exc)
            return None

    if not isinstance(parsed, dict):
        logger.debug('Structured block is %s, not an object', type(parsed).__name__)
        return None
    return parsed


# ---------------------------------------------------------------------------
# Step 4: field validation
# ---------------------------------------------------------------------------


def validate_type(value: object) -> TicketType | None:
    if not isinstance(value, str):
        return None
    try:
        return TicketType(value)
    except ValueError:
        return None


def validate_priority(value: object) -> TicketPriority | None:
    if not isinstance(value, str):
        return None
    try:
        return TicketPriority(value)
    except ValueError:
        return None


def validate_labels(value: object) -> list[str]:
    """String entries only, normalised to non-empty lowercase, capped, in order."""
    if not isinstance(value, list):
        return []
    labels = [item.strip().lower() for item in value if isinstance(item, str)]
    return [label for label in labels if label][:MAX_LABELS]


def _non_blank(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


# ---------------------------------------------------------------------------
# Step 6: post-processing
# ---------------------------------------------------------------------------


def strip_wrapping_fence(content: str) -> str:
    """Remove a ```markdown / ```md / ``` fence wrapping the whole text."""
    content = content.strip()
    if match := _WRAPPING_FENCE.match(content):
        return match.group('body').strip()
    return content


def derive_title(content: str) -> str:
    """First H1/H2 heading, else the first non-empty line, at most 100 chars."""
    if match := _TITLE_HEADING.search(content):
        return match.group('text').strip()[:MAX_TITLE_LENGTH]
    for line in content.splitlines():
        line = line.strip().lstrip('#').strip()
        if line:
            return line[:MAX_TITLE_LENGTH]
    return ''


def strip_duplicate_heading(content: str, title: str) -> str:
    """Drop the first line if it is an H1/H2 heading repeating *title*."""
    if not title:
        return content
    first, _, rest = content.partition('\n')
    match = _TITLE_LINE.match(first.strip())
    if match and match.group('text').strip().casefold() == title.strip().casefold():
        return rest.strip()
    return content


# ---------------------------------------------------------------------------
# Interpreter
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Fields:
    content: str
    title: str | None
    ticket_type: TicketType
    priority: TicketPriority
    labels: tuple[str, ...]
    ai_suggested: AISuggested | None


class ResponseInterpreter:
    """Stateless; a single instance can be shared across threads."""

    def interpret(self, raw: str, ticket_input: TicketInput, *, model: str) -> TicketRecord:
        """Recover a `TicketRecord` from *raw*. Never raises for malformed replies.

        Extraction only runs when *ticket_input* needed auto-detection; a
        free-form reply is prose by contract and may contain ``{`` in code.
        """
        fields = None
        if ticket_input.needs_auto_detect:
            fields = self._from_structured(raw, ticket_input)
        if fields is None:
            fields = self._from_raw(raw, ticket_input)

        content = strip_wrapping_fence(fields.content)
        title = (ticket_input.title or fields.title or derive_title(content))[:MAX_TITLE_LENGTH]
        content = strip_duplicate_heading(content, title).strip()

        return TicketRecord(
            content=content,
            title=title,
            metadata=TicketMetadata(
                type=fields.ticket_type,
                priority=fields.priority,
                labels=fields.labels,
                model=model,
                ai_suggested=fields.ai_suggested,
            ),
        )

    def clean_prose(self, raw: str) -> str:
        """Post-processing for replies that are prose by contract (refine / regenerate)."""
        content = strip_wrapping_fence(raw)
        # the caller shows the title separately
        content = _LEADING_H2.sub('', content, count=1)
        return content.strip()

    # ------------------------------------------------------------------

    def _from_structured(self, raw: str, ticket_input: TicketInput) -> _Fields | None:
        candidate = extract_structured_block(raw)
        if candidate is None:
            logger.info('No structured block in reply; using raw content')
            return None
        parsed = parse_structured_block(candidate)
        if parsed is None:
            logger.warning('Structured block could not be parsed; using raw content')
            return None

        detected_type = validate_type(parsed.get('type'))
        detected_priority = validate_priority(parsed.get('priority'))
        detected_labels = validate_labels(parsed.get('labels'))

        suggested = AISuggested(
            type=ticket_input.type is None and detected_type is not None,
            priority=ticket_input.priority is None and detected_priority is not None,
            labels=not ticket_input.labels and bool(detected_labels),
        )
        return _Fields(
            content=_non_blank(parsed.get('content')) or raw,
            title=_non_blank(parsed.get('title')),
            ticket_type=ticket_input.type or detected_type or DEFAULT_TYPE,
            priority=ticket_input.priority or detected_priority or DEFAULT_PRIORITY,
            labels=ticket_input.labels or tuple(detected_labels),
            ai_suggested=suggested,
        )

    @staticmethod
    def _from_raw(raw: str, ticket_input: TicketInput) -> _Fields:
        return _Fields(
            content=raw,
            title=None,
            ticket_type=ticket_input.type or DEFAULT_TYPE,
            priority=ticket_input.priority or DEFAULT_PRIORITY,
            labels=ticket_input.labels,
            ai_suggested=None,
        )
