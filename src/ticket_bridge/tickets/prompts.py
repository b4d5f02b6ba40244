"""tickets.prompts

Prompt templates for ticket generation, title suggestion and refinement.

`build_ticket_prompt()` chooses between two modes:

* **free-form** - type, priority and at least one label were supplied, so the
  backend only has to write the ticket body as markdown prose;
* **auto-detect** - something is missing, so the backend must also infer it
  and answer with a single fenced JSON block
  (``title, type, priority, labels, content``).

Nothing here performs I/O.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from ticket_bridge.core.types import Message, Role
from ticket_bridge.tickets.models import RefinementStyle, TemplateStyle, TicketPriority, TicketType

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ticket_bridge.tickets.models import TicketInput

SYSTEM_PROMPT = """You are an expert technical writer who specialises in JIRA tickets and agile documentation.

The tickets you write are:
- clear and actionable
- well structured, with proper sections
- focused on outcomes rather than implementation details (unless the work is technical)
- written for their audience: developers, product managers, stakeholders

You use markdown deliberately:
- headings for sections (##, ###)
- checkboxes for acceptance criteria (- [ ])
- code blocks for technical details
- bold for key points

The ticket type is metadata; you never write it into the ticket body."""

_TYPE_GUIDANCE: dict[TicketType, str] = {
    TicketType.task: """This is a Task. Focus on:
- a clear definition of the work
- concrete deliverables
- dependencies or blockers""",
    TicketType.story: """This is a User Story. Focus on:
- the user's perspective and the benefit to them
- the "As a [user], I want [feature], so that [benefit]" format
- business value and user outcomes""",
    TicketType.bug: """This is a Bug Report. Focus on:
- a precise description of the problem
- steps to reproduce
- expected versus actual behaviour
- impact and severity""",
    TicketType.spike: """This is a Spike (research task). Focus on:
- the questions to answer
- research goals and scope
- a time-box and its deliverables
- the expected output (document, proof of concept, recommendation)""",
    TicketType.epic: """This is an Epic. Focus on:
- the high-level business objective
- success metrics
- key milestones or phases
- related features and stories""",
}

_TEMPLATE_GUIDANCE: dict[TemplateStyle, str] = {
    TemplateStyle.basic: """**Template Style: Basic**
Include these sections:
- Context
- Expected Outcome
- Acceptance Criteria""",
    TemplateStyle.detailed: """**Template Style: Detailed**
Include these sections:
- Context / Background
- Problem Statement
- Proposed Solution
- Technical Approach (if applicable)
- Acceptance Criteria (comprehensive)
- Out of Scope
- Dependencies
- Risks / Considerations""",
}

_WRITING_STYLE_GUIDANCE: dict[RefinementStyle, str] = {
    RefinementStyle.concise: '**Writing Style: Concise** - keep the ticket short and focused; direct language, no filler.',
    RefinementStyle.detailed: (
        '**Writing Style: Detailed** - be thorough: background, edge cases and comprehensive acceptance criteria.'
    ),
    RefinementStyle.technical: (
        '**Writing Style: Technical** - concentrate on implementation details, technical requirements '
        'and system-level concerns.'
    ),
    RefinementStyle.business: (
        '**Writing Style: Business-Focused** - stress user/customer impact, business metrics and ROI.'
    ),
    RefinementStyle.user_story: (
        '**Writing Style: User Story** - frame everything from the user\'s perspective using "As a [user]...".'
    ),
    RefinementStyle.acceptance: (
        '**Writing Style: Criteria-Heavy** - emphasise detailed, verifiable acceptance criteria including edge cases.'
    ),
}

_REFINEMENT_INSTRUCTIONS: dict[RefinementStyle, str] = {
    RefinementStyle.concise: """Make this ticket more concise:
- Remove redundant information
- Tighten the language without losing meaning
- Keep only the essential details
- Keep acceptance criteria clear but brief""",
    RefinementStyle.detailed: """Add more comprehensive detail:
- Expand the context and background
- Add technical considerations
- Make the acceptance criteria more specific
- Call out potential edge cases""",
    RefinementStyle.technical: """Make this more technical:
- Add implementation details
- List technical requirements and constraints
- Reference the specific technologies or systems involved
- Add technical acceptance criteria""",
    RefinementStyle.business: """Focus more on business value:
- Emphasise user/customer impact
- Include ROI or business metrics where applicable
- Frame the work in terms of business outcomes
- Add success criteria from a business perspective""",
    RefinementStyle.user_story: """Convert this into user story format:
- Lead with "As a [user type]..."
- Focus on user benefits and outcomes
- Phrase acceptance criteria from the user's perspective
- Include user journey context""",
    RefinementStyle.acceptance: """Expand the acceptance criteria:
- Add more specific test cases
- Cover edge cases and error scenarios
- Add performance or quality criteria
- Make every criterion independently verifiable""",
}

_FORMAT_RULES = """- Do NOT start with a title heading; begin directly with the ### Context section
- Use checkboxes (- [ ]) for acceptance criteria
- Do NOT include the ticket type in the output
- Use markdown formatting throughout"""


# ---------------------------------------------------------------------------
# Guidance lookups
# ---------------------------------------------------------------------------


def get_type_guidance(ticket_type: TicketType | str | None) -> str:
    try:
        return _TYPE_GUIDANCE[TicketType(ticket_type)]
    except ValueError:
        return _TYPE_GUIDANCE[TicketType.task]


def get_template_guidance(template: TemplateStyle | str) -> str:
    if template == TemplateStyle.detailed:
        return _TEMPLATE_GUIDANCE[TemplateStyle.detailed]
    return _TEMPLATE_GUIDANCE[TemplateStyle.basic]


def get_writing_style_guidance(style: RefinementStyle | str | None) -> str:
    if style is None:
        return ''
    try:
        return _WRITING_STYLE_GUIDANCE[RefinementStyle(style)]
    except ValueError:
        return ''


def get_refinement_instructions(style: RefinementStyle | str) -> str:
    try:
        return _REFINEMENT_INSTRUCTIONS[RefinementStyle(style)]
    except ValueError:
        return _REFINEMENT_INSTRUCTIONS[RefinementStyle.detailed]


def _join_blocks(*blocks: str) -> str:
    """Join non-empty blocks with one blank line between them."""
    return '\n\n'.join(b.strip('\n') for b in blocks if b and b.strip())


# ---------------------------------------------------------------------------
# Ticket prompts
# ---------------------------------------------------------------------------


def build_ticket_prompt(ticket_input: TicketInput) -> str:
    """Instruction for the user turn; see module docstring for the two modes."""
    template_guidance = get_template_guidance(ticket_input.template)
    style_guidance = get_writing_style_guidance(ticket_input.writing_style)

    if ticket_input.needs_auto_detect:
        return _build_auto_detect_prompt(ticket_input, template_guidance, style_guidance)

    header = '\n'.join(
        [
            f'**Title:** {ticket_input.title or "Generate an appropriate title"}',
            f'**Type:** {ticket_input.type}',
            f'**Priority:** {ticket_input.priority}',
            f'**Labels:** {", ".join(ticket_input.labels)}',
        ]
    )
    return _join_blocks(
        'Generate a JIRA ticket from the following information:',
        header,
        f'**Description/Context:**\n{ticket_input.description}',
        '---',
        '**Instructions:**\n' + get_type_guidance(ticket_input.type),
        template_guidance,
        style_guidance,
        f'**Format Requirements:**\n{_FORMAT_RULES}',
        'Return only the formatted ticket content, with no explanations.',
    )


def _build_auto_detect_prompt(ticket_input: TicketInput, template_guidance: str, style_guidance: str) -> str:
    type_values = ', '.join(t.value for t in TicketType)
    priority_values = ', '.join(p.value for p in TicketPriority)

    detect: list[str] = []
    fixed: list[str] = []
    if ticket_input.type is None:
        detect.append(
            f'- **type**: the most fitting ticket type. Choose exactly one of: {type_values}. '
            'Bug for defects, crashes or broken behaviour; Story for user-facing features; '
            'Spike for research or investigation; Epic for large initiatives; Task for everything else.'
        )
    else:
        fixed.append(f'**Type (user-specified):** {ticket_input.type}')
    if ticket_input.priority is None:
        detect.append(
            f'- **priority**: the appropriate priority. Choose exactly one of: {priority_values}. '
            'Critical for data loss, security issues or production outages; High for significant impact; '
            'Low for nice-to-haves and minor improvements; Medium otherwise.'
        )
    else:
        fixed.append(f'**Priority (user-specified):** {ticket_input.priority}')
    if not ticket_input.labels:
        detect.append(
            '- **labels**: 2-5 relevant lowercase labels derived from the content '
            '(for example "frontend", "backend", "api", "security", "performance", "database", "testing").'
        )
    else:
        fixed.append(f'**Labels (user-specified):** {", ".join(ticket_input.labels)}')

    title_hint = ticket_input.title or 'Concise ticket title (max 8 words, starting with an action verb)'
    example = (
        '{\n'
        f'  "title": {json.dumps(title_hint)},\n'
        f'  "type": {json.dumps(ticket_input.type.value if ticket_input.type else "<detected>")},\n'
        f'  "priority": {json.dumps(ticket_input.priority.value if ticket_input.priority else "<detected>")},\n'
        f'  "labels": {json.dumps(list(ticket_input.labels) or ["label1", "label2"])},\n'
        '  "content": "Full markdown ticket body. Begin directly with ### Context (no title heading). '
        'Include Acceptance Criteria as checkboxes (- [ ]). Do not mention the ticket type."\n'
        '}'
    )

    return _join_blocks(
        'Analyze the following description and generate a JIRA ticket.',
        f'**Description/Context:**\n{ticket_input.description}',
        '**Auto-detect the following from the description:**\n' + '\n'.join(detect),
        '\n'.join(fixed),
        template_guidance,
        style_guidance,
        '**CRITICAL: Respond with ONLY valid JSON in exactly this format (no other text). '
        'Escape newlines inside string values as \\n.**\n'
        f'```json\n{example}\n```',
    )


def build_ticket_messages(ticket_input: TicketInput) -> list[Message]:
    """System persona + user instruction, ready for `GenerationBackend.complete()`."""
    return _with_persona(build_ticket_prompt(ticket_input))


def _with_persona(prompt: str) -> list[Message]:
    return [
        Message(role=Role.system, content=SYSTEM_PROMPT),
        Message(role=Role.user, content=prompt),
    ]


# ---------------------------------------------------------------------------
# Title / refinement / regeneration prompts
# ---------------------------------------------------------------------------


def build_title_prompt(description: str) -> str:
    return _join_blocks(
        'Generate a concise JIRA ticket title (maximum 8 words) for this description:',
        f'"{description}"',
        """Requirements:
- Start with an action verb (Fix, Add, Update, Implement, Remove, Refactor)
- Be specific but brief
- No period or special characters at the end
- Describe the outcome, not the implementation""",
        'Return only the title, nothing else.',
    )


def build_refinement_prompt(current_content: str, style: RefinementStyle | str) -> str:
    return _join_blocks(
        'Refine this JIRA ticket with the following adjustment:',
        f'**Current Ticket:**\n{current_content}',
        f'**Refinement Request:**\n{get_refinement_instructions(style)}',
        """**Instructions:**
- Keep the overall structure and format
- Keep all existing information that is still relevant
- Apply the refinement while preserving clarity
- Keep acceptance criteria actionable""",
        'Return only the refined ticket content.',
    )


def build_refinement_messages(current_content: str, style: RefinementStyle | str) -> list[Message]:
    return _with_persona(build_refinement_prompt(current_content, style))


def build_regeneration_prompt(
    edited_content: str,
    *,
    title: str | None = None,
    ticket_type: TicketType | str | None = None,
    priority: TicketPriority | str | None = None,
    labels: Sequence[str] = (),
) -> str:
    """Ask the backend to polish user-edited content, guided by optional metadata."""
    meta = [
        (key, value)
        for key, value in (
            ('Title', title),
            ('Type', str(ticket_type) if ticket_type else None),
            ('Priority', str(priority) if priority else None),
            ('Labels', ', '.join(labels) if labels else None),
        )
        if value
    ]
    meta_section = ''
    if meta:
        meta_section = '**Ticket Metadata (use it to guide tone, structure and content):**\n' + '\n'.join(
            f'**{k}:** {v}' for k, v in meta
        )

    return _join_blocks(
        'Improve and refine this JIRA ticket while keeping its core information and structure:',
        meta_section,
        f'**Current Ticket Content:**\n{edited_content}',
        get_type_guidance(ticket_type) if ticket_type else '',
        """Instructions:
- Improve clarity and formatting
- Make acceptance criteria actionable checkboxes (- [ ])
- Fix grammatical issues
- Keep the existing information
- Match the content to the ticket type and priority above
- Do NOT wrap the output in code fences""",
        _FORMAT_RULES,
        'Return only the improved ticket content as raw markdown.',
    )


def build_regeneration_messages(edited_content: str, **metadata: object) -> list[Message]:
    return _with_persona(build_regeneration_prompt(edited_content, **metadata))  # type: ignore[arg-type]
