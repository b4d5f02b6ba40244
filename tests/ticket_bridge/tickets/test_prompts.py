import pytest

from ticket_bridge.core.types import Role
from ticket_bridge.tickets.models import RefinementStyle, TicketInput
from ticket_bridge.tickets.prompts import (
    SYSTEM_PROMPT,
    build_refinement_messages,
    build_refinement_prompt,
    build_regeneration_prompt,
    build_ticket_messages,
    build_ticket_prompt,
    build_title_prompt,
    get_refinement_instructions,
    get_type_guidance,
    get_writing_style_guidance,
)

_DESCRIPTION = 'Users cannot log in after the password reset'


def test_auto_detect_prompt_asks_for_json() -> None:
    prompt = build_ticket_prompt(TicketInput(description=_DESCRIPTION))

    assert 'JSON' in prompt
    assert '```json' in prompt
    assert '"type"' in prompt
    assert '"content"' in prompt
    assert 'Task, Story, Bug, Spike, Epic' in prompt
    assert 'Low, Medium, High, Critical' in prompt
    assert _DESCRIPTION in prompt


def test_auto_detect_prompt_marks_user_specified_fields() -> None:
    ticket_input = TicketInput(description=_DESCRIPTION, type='Bug', labels=['auth'])

    prompt = build_ticket_prompt(ticket_input)

    assert '**Type (user-specified):** Bug' in prompt
    assert '**Labels (user-specified):** auth' in prompt
    assert '- **priority**' in prompt
    assert '- **type**' not in prompt
    assert '- **labels**' not in prompt


def test_free_form_prompt_when_everything_supplied() -> None:
    ticket_input = TicketInput(
        description=_DESCRIPTION,
        title='Fix login',
        type='Bug',
        priority='High',
        labels=['auth', 'backend'],
    )

    prompt = build_ticket_prompt(ticket_input)

    assert '```json' not in prompt
    assert '**Title:** Fix login' in prompt
    assert '**Type:** Bug' in prompt
    assert '**Priority:** High' in prompt
    assert '**Labels:** auth, backend' in prompt
    assert get_type_guidance('Bug') in prompt


def test_template_and_style_guidance() -> None:
    basic = build_ticket_prompt(TicketInput(description=_DESCRIPTION))
    detailed = build_ticket_prompt(
        TicketInput(description=_DESCRIPTION, template='Detailed', writing_style='technical')
    )

    assert 'Template Style: Basic' in basic
    assert 'Writing Style' not in basic
    assert 'Template Style: Detailed' in detailed
    assert 'Out of Scope' in detailed
    assert 'Writing Style: Technical' in detailed


def test_ticket_messages_carry_system_persona() -> None:
    messages = build_ticket_messages(TicketInput(description=_DESCRIPTION))

    assert [m.role for m in messages] == [Role.system, Role.user]
    assert messages[0].content == SYSTEM_PROMPT.strip()


def test_title_prompt() -> None:
    prompt = build_title_prompt(_DESCRIPTION)

    assert 'maximum 8 words' in prompt
    assert 'action verb' in prompt
    assert f'"{_DESCRIPTION}"' in prompt


@pytest.mark.parametrize('style', list(RefinementStyle))
def test_refinement_prompt_for_every_style(style: RefinementStyle) -> None:
    prompt = build_refinement_prompt('### Context\nSomething', style)

    assert '### Context\nSomething' in prompt
    assert get_refinement_instructions(style) in prompt


def test_refinement_messages() -> None:
    messages = build_refinement_messages('Body', 'user-story')
    assert 'As a [user type]' in messages[-1].content


def test_regeneration_prompt_includes_known_metadata_only() -> None:
    prompt = build_regeneration_prompt('Edited body', title='Fix login', ticket_type='Bug', labels=['auth'])

    assert '**Title:** Fix login' in prompt
    assert '**Type:** Bug' in prompt
    assert '**Labels:** auth' in prompt
    assert '**Priority:**' not in prompt
    assert 'steps to reproduce' in prompt
    assert 'Edited body' in prompt


def test_regeneration_prompt_without_metadata() -> None:
    prompt = build_regeneration_prompt('Edited body')
    assert 'Ticket Metadata' not in prompt


def test_guidance_fallbacks() -> None:
    assert get_type_guidance(None) == get_type_guidance('Task')
    assert get_writing_style_guidance(None) == ''
    assert get_writing_style_guidance('poetic') == ''
    assert get_refinement_instructions('poetic') == get_refinement_instructions('detailed')
