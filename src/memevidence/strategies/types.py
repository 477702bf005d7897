"""Concrete evidence types.

Public API:
    UserFactsStrategy, ChangingStrategy, AbstentionStrategy,
    AssistantFactsStrategy, PreferenceStrategy, ImplicitConnectionStrategy,
    TemporalStrategy
    STRATEGIES: type_name -> strategy class
    get_strategy: Instantiate a strategy by name
"""

from __future__ import annotations

from ..data.schema import ASSISTANT, EvidenceUseCase
from ..generation.prompts import CorePromptParts, UseCasePromptParts
from ..verification.answering import (
    AbstentionAnsweringEvaluation,
    AnsweringEvaluation,
    RubricBasedAnsweringEvaluation,
    TemporalAnsweringEvaluation,
    UserFactsAnsweringEvaluation,
)
from ..verification.checks import (
    VerificationCheck,
    VerifyIntermediateEvidenceAddresses,
    VerifyWithEvidence,
    VerifyWithoutEvidence,
    VerifyWithPartialEvidenceLatest,
    multi_evidence_checks,
    standard_checks,
)
from .base import EvidenceTypeStrategy


def _distribution(count: int, single: str, many: str) -> str:
    return single if count == 1 else many.format(n=count)


class UserFactsStrategy(EvidenceTypeStrategy):
    """Facts the user shared; one fact to recall or several to combine."""

    type_name = "user_facts"
    display_name = "User facts"

    def use_case_prompt_parts(self, persona):
        n = self.evidence_count
        if n == 1:
            core = (
                "These scenarios test user fact recall: the user shares a specific fact, "
                "later asks about it, and the answer directly recalls that fact."
            )
            example = (
                "The project manager mentions the Q3 budget for Project Phoenix during planning. "
                "Later, preparing a quarterly report, they ask 'What budget did I mention for "
                "Project Phoenix's Q3 phase?'"
            )
        else:
            core = (
                f"These scenarios test combining {n} user facts shared in {n} separate "
                "conversations; the final question needs all of them."
            )
            example = (
                "The project manager shares the Phoenix budget in one chat, the timeline in "
                "another and the staffing in a third, then asks 'Based on what I told you, "
                "what is the total resource allocation for Phoenix?'"
            )
        return UseCasePromptParts(
            evidence_type_description="an AI's ability to recall user-provided facts",
            core_task_description=core,
            evidence_distribution_description=_distribution(
                n,
                "In each test, the user provides one specific fact.",
                "In each test, the user provides {n} related facts at different times.",
            ),
            example_use_case=EvidenceUseCase(1, "Professional Life", example),
            additional_requirements=(
                "Vary the fact types: preferences, specifications, names, dates, numbers, "
                "decisions, events."
            ),
        )

    def core_prompt_parts(self, persona, use_case):
        n = self.evidence_count
        return CorePromptParts(
            scenario_type="User Fact Recall" if n == 1 else "User Facts Aggregation",
            task_description=(
                "Generate a test where the user must recall a fact they shared."
                if n == 1
                else "Generate a test where several user facts must be combined."
            ),
            specific_instructions=(
                "asks about a specific fact the user mentioned"
                if n == 1
                else f"requires combining all {n} user facts"
            ),
            field_definitions=(
                "question: asks about facts the user shared\n"
                "answer: the correct answer based on those facts\n"
                f"message_evidences: exactly {n} User messages, one fact each"
            ),
        )

    def conversation_scenario_description(self):
        if self.evidence_count == 1:
            return "This tests recall of a specific fact the user shared earlier."
        return (
            "This tests combining several user facts shared in different conversations "
            "to answer one question."
        )

    def verification_checks(self) -> list[VerificationCheck]:
        return multi_evidence_checks() if self.evidence_count > 1 else standard_checks()

    def answering_evaluation(self) -> AnsweringEvaluation:
        return UserFactsAnsweringEvaluation(self.evidence_count)


class ChangingStrategy(EvidenceTypeStrategy):
    """A fact stated and then changed ``evidence_count - 1`` times."""

    type_name = "changing"
    display_name = "Changing"

    @property
    def change_count(self) -> int:
        return self.evidence_count - 1

    def use_case_prompt_parts(self, persona):
        n = self.evidence_count
        return UseCasePromptParts(
            evidence_type_description="an AI's ability to track information that changes over time",
            core_task_description=(
                "These scenarios test changing evidence: an initial state followed by "
                f"{self.change_count} change(s) (cancellation, rescheduling, replacement, status "
                "change). The user then asks a neutral question; the answer is the final state. "
                "Questions must NEVER use words like 'current', 'now', 'latest', 'updated', "
                "'new' or 'still'."
            ),
            evidence_distribution_description=(
                f"In each test, the user shares the initial state and {self.change_count} "
                f"update(s) across {n} separate conversations."
            ),
            example_use_case=EvidenceUseCase(
                1,
                "Professional Life",
                "The client presentation is set for Tuesday 2 PM in Room A, moved to Thursday "
                "10 AM, then to Friday 3 PM online. The user asks 'When and where is the client "
                "presentation?'",
            ),
        )

    def core_prompt_parts(self, persona, use_case):
        return CorePromptParts(
            scenario_type="Changing Evidence",
            task_description="Generate a test where information changes over time.",
            specific_instructions="naturally flows from the scenario context",
            field_definitions=(
                "question: a neutral question about the topic\n"
                "answer: the final state after all changes\n"
                f"message_evidences: exactly {self.evidence_count} messages, the initial state "
                "then each change in order"
            ),
            additional_guidance=(
                "The question must not reveal that anything changed: no 'current', 'now', "
                "'latest', 'updated', 'new', 'still'."
            ),
        )

    def conversation_scenario_description(self):
        return (
            "This tests tracking information that changes over time; later statements "
            "override earlier ones."
        )

    def verification_checks(self) -> list[VerificationCheck]:
        return standard_checks() + [
            VerifyWithPartialEvidenceLatest(),
            VerifyIntermediateEvidenceAddresses(),
        ]

    def expected_total_key(self) -> int:
        return self.evidence_count - 1


class AbstentionStrategy(EvidenceTypeStrategy):
    """Related information is present but the asked detail never is."""

    type_name = "abstention"
    display_name = "Abstention"

    def use_case_prompt_parts(self, persona):
        return UseCasePromptParts(
            evidence_type_description="an AI's ability to recognize missing information",
            core_task_description=(
                "These scenarios test abstention: the user discusses a topic but never gives "
                "the specific detail later asked about. The correct behaviour is to say the "
                "information was not provided."
            ),
            evidence_distribution_description=(
                "In each test, the conversations contain related information that does NOT "
                "answer the final question."
            ),
            example_use_case=EvidenceUseCase(
                1,
                "Personal Life",
                "The user talks about booking a beach holiday with their sister but never "
                "mentions the hotel. Later they ask 'Which hotel did I book for the trip?'",
            ),
        )

    def core_prompt_parts(self, persona, use_case):
        return CorePromptParts(
            scenario_type="Abstention",
            task_description="Generate a test where the information needed is never given.",
            specific_instructions="cannot be answered from the evidence",
            field_definitions=(
                "question: asks for a detail absent from the evidence\n"
                "answer: a statement that the information was not provided\n"
                f"message_evidences: exactly {self.evidence_count} related messages that do "
                "not contain the answer"
            ),
        )

    def verification_checks(self) -> list[VerificationCheck]:
        return [VerifyWithEvidence()]

    def answering_evaluation(self) -> AnsweringEvaluation:
        return AbstentionAnsweringEvaluation()


class AssistantFactsStrategy(EvidenceTypeStrategy):
    """Facts the assistant stated that the user later asks about."""

    type_name = "assistant_facts"
    display_name = "Assistant facts"

    def use_case_prompt_parts(self, persona):
        return UseCasePromptParts(
            evidence_type_description="an AI's ability to recall what the assistant itself said",
            core_task_description=(
                "These scenarios test recall of assistant statements: recommendations, "
                "explanations or advice the assistant gave, later asked about by the user."
            ),
            evidence_distribution_description=_distribution(
                self.evidence_count,
                "In each test, the assistant provides one recommendation or statement.",
                "In each test, the assistant provides {n} related statements at different times.",
            ),
            example_use_case=EvidenceUseCase(
                1,
                "Professional Life",
                "The assistant recommends a retrospective format for the team. Weeks later the "
                "user asks 'What retrospective format did you suggest?'",
            ),
        )

    def core_prompt_parts(self, persona, use_case):
        return CorePromptParts(
            scenario_type="Assistant Fact Recall",
            task_description="Generate a test where the user asks about what the assistant said.",
            specific_instructions="asks about information the assistant provided",
            field_definitions=(
                "question: asks about something the assistant said\n"
                "answer: what the assistant said\n"
                f"message_evidences: exactly {self.evidence_count} Assistant messages"
            ),
        )

    def expected_speaker(self) -> str:
        return ASSISTANT

    def verification_checks(self) -> list[VerificationCheck]:
        return multi_evidence_checks() if self.evidence_count > 1 else standard_checks()


class PreferenceStrategy(EvidenceTypeStrategy):
    """Preferences the user expressed; the answer is a rubric."""

    type_name = "preference"
    display_name = "Preferences"

    def use_case_prompt_parts(self, persona):
        return UseCasePromptParts(
            evidence_type_description="an AI's ability to apply remembered user preferences",
            core_task_description=(
                "These scenarios test preferences: the user expresses likes, dislikes or "
                "constraints, then later asks for a recommendation that should respect them."
            ),
            evidence_distribution_description=_distribution(
                self.evidence_count,
                "In each test, the user expresses one preference.",
                "In each test, the user expresses {n} preferences at different times.",
            ),
            example_use_case=EvidenceUseCase(
                1,
                "Personal Life",
                "The user says they avoid spicy food. Later they ask 'Can you suggest a "
                "restaurant for Friday dinner?'",
            ),
        )

    def core_prompt_parts(self, persona, use_case):
        return CorePromptParts(
            scenario_type="Preference",
            task_description="Generate a test where a good answer must respect stated preferences.",
            specific_instructions="asks for a recommendation shaped by the preference",
            field_definitions=(
                "question: a request for a recommendation\n"
                "answer: a rubric describing what a good response must respect\n"
                f"message_evidences: exactly {self.evidence_count} User messages stating preferences"
            ),
        )

    def answering_evaluation(self) -> AnsweringEvaluation:
        return RubricBasedAnsweringEvaluation()


class ImplicitConnectionStrategy(EvidenceTypeStrategy):
    """A fact that should shape an answer without being referenced."""

    type_name = "implicit_connection"
    display_name = "Implicit connection"

    def use_case_prompt_parts(self, persona):
        return UseCasePromptParts(
            evidence_type_description="an AI's ability to connect a past fact to a new request",
            core_task_description=(
                "These scenarios test implicit connections: the user mentions a circumstance, "
                "then later asks something whose best answer depends on it, without "
                "referring to it."
            ),
            evidence_distribution_description=(
                "In each test, the user mentions a circumstance that silently matters later."
            ),
            example_use_case=EvidenceUseCase(
                1,
                "Personal Life",
                "The user mentions a knee injury. Later they ask 'What weekend activities do "
                "you suggest?' A good answer avoids high-impact sports.",
            ),
        )

    def core_prompt_parts(self, persona, use_case):
        return CorePromptParts(
            scenario_type="Implicit Connection",
            task_description="Generate a test where an earlier fact should shape a later answer.",
            specific_instructions="does not mention the earlier fact",
            field_definitions=(
                "question: a request that does not mention the earlier fact\n"
                "answer: a rubric for a response that accounts for the fact\n"
                f"message_evidences: exactly {self.evidence_count} User messages"
            ),
        )

    def verification_checks(self) -> list[VerificationCheck]:
        return [VerifyWithEvidence(required_passes=1), VerifyWithoutEvidence()]

    def answering_evaluation(self) -> AnsweringEvaluation:
        return RubricBasedAnsweringEvaluation()


class TemporalStrategy(EvidenceTypeStrategy):
    """Dated events the question asks to reason about."""

    type_name = "temporal"
    display_name = "Temporal"
    start_year = 2023
    end_year = 2024

    def use_case_prompt_parts(self, persona):
        return UseCasePromptParts(
            evidence_type_description="an AI's ability to reason about dates and durations",
            core_task_description=(
                "These scenarios test temporal reasoning: the user mentions dated events and "
                "later asks about order, elapsed time or deadlines."
            ),
            evidence_distribution_description=(
                f"Events fall between {self.start_year} and {self.end_year}, with explicit dates."
            ),
            example_use_case=EvidenceUseCase(
                1,
                "Professional Life",
                "The user started a certification on 3 March 2023 and passed the exam on "
                "12 June 2023. They ask 'How long did my certification take?'",
            ),
        )

    def core_prompt_parts(self, persona, use_case):
        return CorePromptParts(
            scenario_type="Temporal",
            task_description="Generate a test that requires reasoning about dates.",
            specific_instructions="needs date arithmetic or ordering",
            field_definitions=(
                "question: asks about timing, order or duration\n"
                "answer: the computed date, order or duration\n"
                f"message_evidences: exactly {self.evidence_count} User messages with explicit dates"
            ),
            additional_guidance=f"Use dates between {self.start_year} and {self.end_year}.",
        )

    def verification_checks(self) -> list[VerificationCheck]:
        return []

    def answering_evaluation(self) -> AnsweringEvaluation:
        return TemporalAnsweringEvaluation()


STRATEGIES: dict[str, type[EvidenceTypeStrategy]] = {
    cls.type_name: cls
    for cls in (
        UserFactsStrategy,
        ChangingStrategy,
        AbstentionStrategy,
        AssistantFactsStrategy,
        PreferenceStrategy,
        ImplicitConnectionStrategy,
        TemporalStrategy,
    )
}


def get_strategy(name: str, evidence_count: int = 1) -> EvidenceTypeStrategy:
    """Instantiate the strategy registered under ``name``.

    Raises:
        ValueError: Unknown name, or changing evidence with fewer than 2 messages.
    """
    try:
        cls = STRATEGIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown evidence type '{name}'. Available: {', '.join(sorted(STRATEGIES))}"
        ) from None
    if cls is ChangingStrategy and evidence_count < 2:
        raise ValueError("Changing evidence needs at least 2 evidence messages")
    return cls(evidence_count)


__all__ = [
    "UserFactsStrategy",
    "ChangingStrategy",
    "AbstentionStrategy",
    "AssistantFactsStrategy",
    "PreferenceStrategy",
    "ImplicitConnectionStrategy",
    "TemporalStrategy",
    "STRATEGIES",
    "get_strategy",
]
