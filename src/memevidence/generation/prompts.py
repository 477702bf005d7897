"""Prompt templates for the three generation stages.

The overall shape of each prompt (persona block, output schema, hard
requirements) is shared; evidence types only contribute the parts that
differ, through the *PromptParts dataclasses.

Public API:
    PROJECT_BACKGROUND: Preamble sent with every generation prompt
    UseCasePromptParts, CorePromptParts, ConversationPromptParts
    build_use_case_prompt, build_core_prompt, build_conversation_prompt
"""

from __future__ import annotations

from dataclasses import dataclass

from ..data.schema import EvidenceUseCase, Message, Persona

PROJECT_BACKGROUND = """Project context: long-term memory benchmark for conversational AI.
We generate synthetic personas and multi-session conversations to test whether an
assistant can extract facts from long histories, reason across sessions, track
information that changes over time, reason about time, and abstain when the
information was never given. Every artifact you produce must be realistic,
specific to the persona, and directly usable as benchmark data.
"""

_NUMBER_WORDS = {1: "one", 2: "two", 3: "three", 4: "four"}


@dataclass
class UseCasePromptParts:
    """Evidence-type specific parts of the scenario catalog prompt."""

    evidence_type_description: str
    core_task_description: str
    evidence_distribution_description: str
    example_use_case: EvidenceUseCase
    additional_requirements: str | None = None


@dataclass
class CorePromptParts:
    """Evidence-type specific parts of the evidence core prompt."""

    scenario_type: str
    task_description: str
    specific_instructions: str
    field_definitions: str
    additional_guidance: str | None = None


@dataclass
class ConversationPromptParts:
    """Everything the conversation prompt needs about one core."""

    evidence_type: str
    scenario_description: str
    use_case_scenario: str | None
    evidence_messages: list[Message]
    question: str
    answer: str
    evidence_count: int


def _persona_block(persona: Persona) -> str:
    return (
        f"- Category: {persona.category}\n"
        f"- Role: {persona.role_name}\n"
        f"- Description: {persona.description}\n"
        f"- Background: {persona.background or 'No background provided'}"
    )


def build_use_case_prompt(persona: Persona, parts: UseCasePromptParts, count: int) -> str:
    """Prompt asking for ``count`` scenario descriptions for ``persona``."""
    example = parts.example_use_case
    return f"""{PROJECT_BACKGROUND}
You create personalized benchmark scenarios for evaluating conversational AI memory. Generate {count} high-level scenario descriptions that test {parts.evidence_type_description}.

{parts.core_task_description}

User profile (every scenario must be plausible for this person):
{_persona_block(persona)}

{parts.evidence_distribution_description}

Requirements:
- Exactly {count} use cases, each unique.
- About half about the user's Professional Life, half about their Personal Life.
- Each scenario_description includes the context, the natural question the user asks later, and enough detail to generate evidence from.
{parts.additional_requirements or ""}

Output a single JSON object:
{{"use_cases": [{{"id": 1, "category": "Professional Life or Personal Life", "scenario_description": "string"}}]}}

Example use case:
{{"id": {example.id}, "category": "{example.category}", "scenario_description": "{example.scenario_description}"}}

Return only the JSON object with {count} use cases."""


def build_core_prompt(
    persona: Persona,
    use_case: EvidenceUseCase,
    parts: CorePromptParts,
    evidence_count: int,
    expected_speaker: str,
) -> str:
    """Prompt asking for question, answer and ``evidence_count`` evidence messages."""
    schema_messages = ",\n".join(
        f'    {{"speaker": "{expected_speaker}", "text": "string"}}' for _ in range(evidence_count)
    )
    redundancy = ""
    if evidence_count > 1:
        redundancy = f"""
NON-REDUNDANCY ({evidence_count} pieces of evidence):
- Each evidence message carries unique information
- The question must be impossible to answer without ALL {evidence_count} messages
- Removing any one message must make the question unanswerable
"""
    return f"""{PROJECT_BACKGROUND}
You create the evidence core for a {parts.scenario_type.lower()} scenario. {parts.task_description}

Person profile:
{_persona_block(persona)}

Scenario:
{use_case.scenario_description}

Generate:
1. A refined, testable version of the scenario's question that {parts.specific_instructions}
2. The correct answer
3. Exactly {evidence_count} evidence message(s)

SPEAKER REQUIREMENTS:
- Every message in message_evidences has speaker "{expected_speaker}"
- Do not mix speakers; only "User" or "Assistant" are valid values
{redundancy}
{parts.additional_guidance or ""}

Output a single JSON object:
{{
  "question": "string",
  "answer": "string",
  "message_evidences": [
{schema_messages}
  ]
}}

Field definitions:
{parts.field_definitions}"""


def build_conversation_prompt(persona: Persona, parts: ConversationPromptParts) -> str:
    """Prompt asking for one conversation per evidence message."""
    n = parts.evidence_count
    described = "one conversation" if n == 1 else f"{_NUMBER_WORDS.get(n, str(n))} separate conversations"
    evidence_list = "\n".join(
        f"{i + 1}. [{m.speaker}] {m.text}" for i, m in enumerate(parts.evidence_messages)
    )
    scenario = f"\n\nSpecific scenario:\n{parts.use_case_scenario}" if parts.use_case_scenario else ""
    return f"""{PROJECT_BACKGROUND}
You write realistic conversations between a User and an Assistant for a {parts.evidence_type} memory test.

Who the User is:
{persona.role_name}: {persona.description}
{persona.background or ""}

What is being tested:
{parts.scenario_description}{scenario}

Evidence to embed (the speaker in brackets says it):
{evidence_list}

Later we will ask: "{parts.question}"
Expected answer: "{parts.answer}"

Write {described}. Each is a separate session at a different time, 80-120 messages long, natural for this person.

SPEAKERS: only "User" and "Assistant". No other names.

EVIDENCE PLACEMENT:
1. Number of conversations = number of evidence messages
2. Evidence message N appears in conversation N and nowhere else
3. Copy each evidence message EXACTLY, spoken by the speaker shown in brackets
4. Evidence must come up naturally in the flow of the conversation

Output a single JSON object:
{{"conversations": [{{"messages": [{{"speaker": "User or Assistant", "text": "string"}}]}}]}}"""


__all__ = [
    "PROJECT_BACKGROUND",
    "UseCasePromptParts",
    "CorePromptParts",
    "ConversationPromptParts",
    "build_use_case_prompt",
    "build_core_prompt",
    "build_conversation_prompt",
]
