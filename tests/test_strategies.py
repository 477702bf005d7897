"""Tests for the evidence type strategies."""

from __future__ import annotations

import pytest

from memevidence.data.schema import ASSISTANT, USER, EvidenceCore, EvidenceUseCase, Message, Persona
from memevidence.generation.prompts import CorePromptParts, UseCasePromptParts
from memevidence.strategies import (
    STRATEGIES,
    AbstentionStrategy,
    AssistantFactsStrategy,
    ChangingStrategy,
    EvidenceTypeStrategy,
    ImplicitConnectionStrategy,
    PreferenceStrategy,
    TemporalStrategy,
    UserFactsStrategy,
    get_strategy,
)
from memevidence.verification.answering import (
    AbstentionAnsweringEvaluation,
    DefaultAnsweringEvaluation,
    RubricBasedAnsweringEvaluation,
    TemporalAnsweringEvaluation,
    UserFactsAnsweringEvaluation,
)

PERSONA = Persona("Personal", "Gardener", "Grows tomatoes", id="g-1")
USE_CASE = EvidenceUseCase(1, "Personal Life", "The user mentions their tomato varieties.")


def _check_names(strategy: EvidenceTypeStrategy) -> list[str]:
    return [c.name for c in strategy.verification_checks()]


class TestRegistry:
    def test_all_types_registered(self):
        assert sorted(STRATEGIES) == [
            "abstention",
            "assistant_facts",
            "changing",
            "implicit_connection",
            "preference",
            "temporal",
            "user_facts",
        ]

    def test_get_strategy(self):
        strategy = get_strategy("user_facts", 3)
        assert isinstance(strategy, UserFactsStrategy)
        assert strategy.evidence_count == 3

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown evidence type 'facts'"):
            get_strategy("facts")

    def test_changing_needs_two_messages(self):
        with pytest.raises(ValueError, match="at least 2"):
            get_strategy("changing", 1)

    def test_evidence_count_must_be_positive(self):
        with pytest.raises(ValueError):
            UserFactsStrategy(0)

    @pytest.mark.parametrize("name", sorted(STRATEGIES))
    def test_prompt_parts_for_every_type(self, name):
        strategy = get_strategy(name, 2)
        assert isinstance(strategy.use_case_prompt_parts(PERSONA), UseCasePromptParts)
        assert isinstance(strategy.core_prompt_parts(PERSONA, USE_CASE), CorePromptParts)
        core = EvidenceCore("Q?", "A", [Message(strategy.expected_speaker(), "x")] * 2)
        parts = strategy.conversation_prompt_parts(PERSONA, USE_CASE, core)
        assert parts.evidence_count == 2
        assert parts.use_case_scenario == USE_CASE.scenario_description
        assert parts.question == "Q?"


class TestUserFacts:
    def test_single_evidence_checks(self):
        assert _check_names(UserFactsStrategy(1)) == ["with_evidence", "without_evidence"]

    def test_multi_evidence_adds_partial(self):
        assert _check_names(UserFactsStrategy(2)) == [
            "with_evidence",
            "without_evidence",
            "partial_evidence",
        ]

    def test_evaluation_knows_count(self):
        evaluation = UserFactsStrategy(3).answering_evaluation()
        assert isinstance(evaluation, UserFactsAnsweringEvaluation)
        assert evaluation.evidence_count == 3

    def test_resource_path(self):
        assert UserFactsStrategy(2).resource_path == "user_facts/2_evidence"


class TestChanging:
    def test_checks(self):
        assert _check_names(ChangingStrategy(3)) == [
            "with_evidence",
            "without_evidence",
            "partial_evidence_latest",
            "intermediate_evidence_addresses_question",
        ]

    def test_sized_by_change_count(self):
        strategy = ChangingStrategy(3)
        assert strategy.change_count == 2
        assert strategy.expected_total_key() == 2

    def test_prompt_mentions_changes(self):
        parts = ChangingStrategy(3).use_case_prompt_parts(PERSONA)
        assert "2 change(s)" in parts.core_task_description
        assert "'current'" in parts.core_task_description


class TestOtherTypes:
    def test_abstention(self):
        strategy = AbstentionStrategy(1)
        assert _check_names(strategy) == ["with_evidence"]
        assert isinstance(strategy.answering_evaluation(), AbstentionAnsweringEvaluation)

    def test_assistant_facts_speaker(self):
        strategy = AssistantFactsStrategy(1)
        assert strategy.expected_speaker() == ASSISTANT
        assert isinstance(strategy.answering_evaluation(), DefaultAnsweringEvaluation)

    def test_preference_uses_rubric(self):
        strategy = PreferenceStrategy(1)
        assert strategy.expected_speaker() == USER
        assert isinstance(strategy.answering_evaluation(), RubricBasedAnsweringEvaluation)

    def test_implicit_connection_single_pass(self):
        checks = ImplicitConnectionStrategy(1).verification_checks()
        assert [c.name for c in checks] == ["with_evidence", "without_evidence"]
        assert checks[0].required_passes == 1

    def test_temporal_has_no_checks(self):
        strategy = TemporalStrategy(1)
        assert strategy.verification_checks() == []
        assert isinstance(strategy.answering_evaluation(), TemporalAnsweringEvaluation)
        assert "2023" in strategy.core_prompt_parts(PERSONA, USE_CASE).additional_guidance
