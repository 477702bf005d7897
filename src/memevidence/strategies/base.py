"""Evidence type strategy interface.

An evidence type (user facts, changing facts, abstention...) differs from
the others only in its prompt parts, the speaker of its evidence, the
verification checks it needs and how answers are judged. A strategy
object carries exactly those differences; the single EvidencePipeline
does everything else.

Public API:
    EvidenceTypeStrategy: Abstract strategy
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..data.schema import USER, EvidenceCore, EvidenceUseCase, Persona
from ..generation.prompts import ConversationPromptParts, CorePromptParts, UseCasePromptParts
from ..verification.answering import AnsweringEvaluation, DefaultAnsweringEvaluation
from ..verification.checks import VerificationCheck, standard_checks


class EvidenceTypeStrategy(ABC):
    """What makes one evidence type different from another.

    Subclasses set ``type_name`` (used in output paths and the CLI) and
    ``display_name`` (used in logs), and implement the three prompt-part
    builders, one per generation stage.
    """

    type_name: str = ""
    display_name: str = ""

    def __init__(self, evidence_count: int = 1):
        if evidence_count < 1:
            raise ValueError(f"evidence_count must be >= 1, got {evidence_count}")
        self.evidence_count = evidence_count

    # -- prompt parts ------------------------------------------------------

    @abstractmethod
    def use_case_prompt_parts(self, persona: Persona) -> UseCasePromptParts:
        """Parts of the scenario catalog prompt."""

    @abstractmethod
    def core_prompt_parts(self, persona: Persona, use_case: EvidenceUseCase) -> CorePromptParts:
        """Parts of the evidence core prompt."""

    def conversation_prompt_parts(
        self, persona: Persona, use_case: EvidenceUseCase, core: EvidenceCore
    ) -> ConversationPromptParts:
        """Parts of the conversation prompt; the core supplies most of them."""
        return ConversationPromptParts(
            evidence_type=self.conversation_evidence_type(),
            scenario_description=self.conversation_scenario_description(),
            use_case_scenario=use_case.scenario_description,
            evidence_messages=core.message_evidences,
            question=core.question,
            answer=core.answer,
            evidence_count=self.evidence_count,
        )

    def conversation_evidence_type(self) -> str:
        return self.display_name.lower()

    def conversation_scenario_description(self) -> str:
        return f"This tests the AI's ability to remember {self.display_name.lower()}."

    # -- behaviour ---------------------------------------------------------

    def expected_speaker(self) -> str:
        """Speaker of every evidence message."""
        return USER

    def verification_checks(self) -> list[VerificationCheck]:
        return standard_checks()

    def answering_evaluation(self) -> AnsweringEvaluation:
        return DefaultAnsweringEvaluation()

    def expected_total_key(self) -> int:
        """Key into the expected-totals table used to size a run."""
        return self.evidence_count

    @property
    def resource_path(self) -> str:
        """Relative output directory: ``{type}/{n}_evidence``."""
        return f"{self.type_name}/{self.evidence_count}_evidence"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(evidence_count={self.evidence_count})"


__all__ = ["EvidenceTypeStrategy"]
