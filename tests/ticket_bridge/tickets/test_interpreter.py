from __future__ import annotations

import json

import pytest

from ticket_bridge.tickets.interpreter import (
    ResponseInterpreter,
    derive_title,
    escape_control_characters,
    extract_structured_block,
    find_balanced_object,
    strip_duplicate_heading,
    strip_wrapping_fence,
    validate_labels,
)
from ticket_bridge.tickets.models import TicketInput, TicketPriority, TicketType

_AUTO = TicketInput(description='Investigate X', labels=[])
_MODEL = 'test-model'


@pytest.fixture
def interpreter() -> ResponseInterpreter:
    return ResponseInterpreter()


def _reply(**fields: object) -> str:
    return json.dumps(fields)


# ---------------------------------------------------------------------------
# Structured replies
# ---------------------------------------------------------------------------


def test_clean_json_round_trips_exactly(interpreter: ResponseInterpreter) -> None:
    raw = _reply(
        title='Fix login redirect',
        type='Bug',
        priority='High',
        labels=['auth', 'frontend'],
        content='### Context\nLogin redirects to a 404.\n\n### Acceptance Criteria\n- [ ] Redirect works',
    )

    record = interpreter.interpret(raw, _AUTO, model=_MODEL)

    assert record.title == 'Fix login redirect'
    assert record.content == '### Context\nLogin redirects to a 404.\n\n### Acceptance Criteria\n- [ ] Redirect works'
    assert record.metadata.type is TicketType.bug
    assert record.metadata.priority is TicketPriority.high
    assert record.metadata.labels == ('auth', 'frontend')
    assert record.metadata.model == _MODEL
    assert record.metadata.ai_suggested is not None
    assert record.metadata.ai_suggested.type
    assert record.metadata.ai_suggested.priority
    assert record.metadata.ai_suggested.labels


def test_literal_newlines_are_repaired(interpreter: ResponseInterpreter) -> None:
    escaped = '{"title": "T", "type": "Task", "priority": "Low", "labels": ["a"], "content": "line1\\nline2\\tend"}'
    literal = escaped.replace('\\n', '\n').replace('\\t', '\t')
    assert '\n' in literal

    repaired = interpreter.interpret(literal, _AUTO, model=_MODEL)
    clean = interpreter.interpret(escaped, _AUTO, model=_MODEL)

    assert repaired.content == clean.content == 'line1\nline2\tend'
    assert repaired.metadata.priority is TicketPriority.low


def test_spec_fenced_reply_strips_duplicate_heading(interpreter: ResponseInterpreter) -> None:
    raw = (
        '```json\n'
        '{"title":"Investigate X","type":"Task","priority":"Medium","labels":["api"],'
        '"content":"## Investigate X\\n\\n### Context\\n..."}\n'
        '```'
    )

    record = interpreter.interpret(raw, _AUTO, model=_MODEL)

    assert record.title == 'Investigate X'
    assert record.metadata.type is TicketType.task
    assert record.content == '### Context\n...'
    assert record.metadata.ai_suggested is not None
    assert record.metadata.ai_suggested.labels
    assert record.to_wire()['metadata']['aiSuggested']['labels'] is True


def test_fenced_block_surrounded_by_chatter(interpreter: ResponseInterpreter) -> None:
    body = _reply(title='Add cache', type='Story', priority='Low', labels=['perf'], content='Body')
    raw = f'Sure! Here is your ticket:\n\n```json\n{body}\n```\n\nLet me know if you need changes.'

    record = interpreter.interpret(raw, _AUTO, model=_MODEL)

    assert record.title == 'Add cache'
    assert record.content == 'Body'
    assert record.metadata.type is TicketType.story


def test_nested_code_fence_in_content(interpreter: ResponseInterpreter) -> None:
    content = '### Context\nRun this:\n```bash\nmake test\n```\nThen check { braces }.'
    raw = '```json\n' + _reply(title='Run tests', type='Task', priority='Low', labels=['ci'], content=content) + '\n```'

    record = interpreter.interpret(raw, _AUTO, model=_MODEL)

    assert record.content == content
    assert record.metadata.labels == ('ci',)


def test_bare_brace_span_is_used_without_fence(interpreter: ResponseInterpreter) -> None:
    raw = 'Result: ' + _reply(title='Bare', type='Spike', priority='Critical', labels=[], content='Research') + ' done'

    record = interpreter.interpret(raw, _AUTO, model=_MODEL)

    assert record.title == 'Bare'
    assert record.metadata.type is TicketType.spike
    assert record.metadata.priority is TicketPriority.critical
    assert record.metadata.labels == ()
    assert record.metadata.ai_suggested is not None
    assert not record.metadata.ai_suggested.labels


def test_invalid_enum_values_fall_back_to_defaults(interpreter: ResponseInterpreter) -> None:
    raw = _reply(title='T', type='Chore', priority='urgent', labels=['x'], content='Body')

    record = interpreter.interpret(raw, _AUTO, model=_MODEL)

    assert record.metadata.type is TicketType.task
    assert record.metadata.priority is TicketPriority.medium
    assert record.metadata.ai_suggested is not None
    assert not record.metadata.ai_suggested.type
    assert not record.metadata.ai_suggested.priority


def test_labels_capped_and_normalised(interpreter: ResponseInterpreter) -> None:
    labels = [f'Label{i}' for i in range(15)]
    raw = _reply(title='T', type='Task', priority='Low', labels=labels, content='Body')

    record = interpreter.interpret(raw, _AUTO, model=_MODEL)

    assert record.metadata.labels == tuple(f'label{i}' for i in range(10))


def test_user_supplied_fields_win(interpreter: ResponseInterpreter) -> None:
    ticket_input = TicketInput(description='Investigate X', title='My title', type='Bug')
    raw = _reply(title='Model title', type='Epic', priority='High', labels=['api'], content='Body')

    record = interpreter.interpret(raw, ticket_input, model=_MODEL)

    assert record.title == 'My title'
    assert record.metadata.type is TicketType.bug
    assert record.metadata.priority is TicketPriority.high
    assert record.metadata.ai_suggested is not None
    assert not record.metadata.ai_suggested.type
    assert record.metadata.ai_suggested.priority


def test_missing_content_field_uses_raw_reply(interpreter: ResponseInterpreter) -> None:
    raw = _reply(title='T', type='Task', priority='Low', labels=['a'])

    record = interpreter.interpret(raw, _AUTO, model=_MODEL)

    assert record.content == raw


def test_repeated_heading_is_stripped_once(interpreter: ResponseInterpreter) -> None:
    raw = _reply(
        title='Investigate X',
        type='Task',
        priority='Low',
        labels=['a'],
        content='## Investigate X\n## Investigate X\nbody',
    )

    record = interpreter.interpret(raw, _AUTO, model=_MODEL)

    assert record.content == '## Investigate X\nbody'


def test_heading_kept_when_user_title_differs(interpreter: ResponseInterpreter) -> None:
    ticket_input = TicketInput(description='Investigate X', title='Audit the API')
    raw = _reply(
        title='Investigate X',
        type='Task',
        priority='Low',
        labels=['a'],
        content='## Investigate X\n\n### Context\nbody',
    )

    record = interpreter.interpret(raw, ticket_input, model=_MODEL)

    assert record.title == 'Audit the API'
    assert record.content == '## Investigate X\n\n### Context\nbody'


def test_user_labels_are_lowercased(interpreter: ResponseInterpreter) -> None:
    ticket_input = TicketInput(description='Investigate X thing', labels=['API', ' Backend '])

    record = interpreter.interpret('plain prose', ticket_input, model=_MODEL)

    assert record.metadata.labels == ('api', 'backend')


# ---------------------------------------------------------------------------
# Raw fallback
# ---------------------------------------------------------------------------


def test_plain_prose_falls_back_to_raw(interpreter: ResponseInterpreter) -> None:
    raw = '  Plain prose about the problem.\n\nMore detail here.  \n'

    record = interpreter.interpret(raw, _AUTO, model=_MODEL)

    assert record.content == raw.strip()
    assert record.title == 'Plain prose about the problem.'
    assert record.metadata.type is TicketType.task
    assert record.metadata.priority is TicketPriority.medium
    assert record.metadata.labels == ()
    assert record.metadata.ai_suggested is None
    assert 'aiSuggested' not in record.to_wire()['metadata']


def test_truncated_block_falls_back_to_raw(interpreter: ResponseInterpreter) -> None:
    raw = '```json\n{"title": "Cut", "type": "Bug", "content": "### Context\\nThe reply was'

    record = interpreter.interpret(raw, _AUTO, model=_MODEL)

    assert record.metadata.type is TicketType.task
    assert record.metadata.ai_suggested is None
    assert record.content.startswith('```json')


def test_unrepairable_block_falls_back_to_raw(interpreter: ResponseInterpreter) -> None:
    raw = '{"title": "T", "type": Task}'

    record = interpreter.interpret(raw, _AUTO, model=_MODEL)

    assert record.content == raw
    assert record.metadata.ai_suggested is None


def test_free_form_reply_is_not_parsed(interpreter: ResponseInterpreter) -> None:
    ticket_input = TicketInput(description='Investigate X', type='Bug', priority='Low', labels=['api'])
    raw = '## Broken parser\n\n### Context\nThe config `{"type": "Epic"}` is rejected.'

    record = interpreter.interpret(raw, ticket_input, model=_MODEL)

    assert record.title == 'Broken parser'
    assert record.content == '### Context\nThe config `{"type": "Epic"}` is rejected.'
    assert record.metadata.type is TicketType.bug
    assert record.metadata.labels == ('api',)


def test_wrapping_markdown_fence_is_removed(interpreter: ResponseInterpreter) -> None:
    ticket_input = TicketInput(description='Investigate X', type='Task', priority='Low', labels=['a'], title='T')
    raw = '```markdown\n### Context\nBody\n```'

    record = interpreter.interpret(raw, ticket_input, model=_MODEL)

    assert record.content == '### Context\nBody'


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def test_first_block_wins() -> None:
    text = '```json\n{"a": 1}\n```\n\n```json\n{"a": 2}\n```'
    assert extract_structured_block(text) == '{"a": 1}'


def test_non_json_fence_falls_back_to_first_brace_span() -> None:
    text = '```python\n{"x": 1}\n```\nthen {"y": 2}'
    assert extract_structured_block(text) == '{"x": 1}'


def test_find_balanced_object_ignores_braces_in_strings() -> None:
    assert find_balanced_object('x {"a": "}{", "b": {"c": "\\""}} y') == '{"a": "}{", "b": {"c": "\\""}}'
    assert find_balanced_object('no braces') is None
    assert find_balanced_object('{"open": 1') is None


def test_escape_control_characters_only_touches_strings() -> None:
    assert escape_control_characters('{\n"a": "x\ny"\n}') == '{\n"a": "x\\ny"\n}'


@pytest.mark.parametrize(
    ('value', 'expected'),
    [
        (['A', ' b ', '', 3, None, 'c'], ['a', 'b', 'c']),
        ('api', []),
        (None, []),
    ],
)
def test_validate_labels(value: object, expected: list[str]) -> None:
    assert validate_labels(value) == expected


def test_strip_duplicate_heading() -> None:
    assert strip_duplicate_heading('## T\n## T\nbody', 'T') == '## T\nbody'
    assert strip_duplicate_heading('# Fix login\n\nBody', 'fix LOGIN') == 'Body'
    assert strip_duplicate_heading('# Something else\nBody', 'Fix login') == '# Something else\nBody'
    assert strip_duplicate_heading('### Fix login\nBody', 'Fix login') == '### Fix login\nBody'


def test_derive_title() -> None:
    assert derive_title('intro\n## Heading two\nbody') == 'Heading two'
    assert derive_title('\n\nfirst line\nsecond') == 'first line'
    assert derive_title('x' * 150) == 'x' * 100
    assert derive_title('') == ''


def test_strip_wrapping_fence_leaves_partial_fences() -> None:
    text = 'Intro\n```bash\nls\n```'
    assert strip_wrapping_fence(text) == text
    assert strip_wrapping_fence('```md\nhello\n```') == 'hello'


def test_clean_prose(interpreter: ResponseInterpreter) -> None:
    assert interpreter.clean_prose('```markdown\n## Title\n### Context\nBody\n```') == '### Context\nBody'
    assert interpreter.clean_prose('### Context\nBody\n') == '### Context\nBody'
