"""Tests for judge prompts, verification checks and the executor."""

from __future__ import annotations

import random

import pytest

from memevidence.core.config import VerificationConfig
from memevidence.core.retry import BackoffPolicy
from memevidence.core.stats import GenerationStats
from memevidence.data.schema import ASSISTANT, USER, Conversation, EvidenceItem, Message
from memevidence.llm.client import LLMClient, LLMResponse
from memevidence.verification.answering import (
    AbstentionAnsweringEvaluation,
    DefaultAnsweringEvaluation,
    InvalidVerdictError,
    Judge,
    RubricBasedAnsweringEvaluation,
    TemporalAnsweringEvaluation,
    UserFactsAnsweringEvaluation,
    build_answer_prompt,
    parse_verdict,
)
from memevidence.verification.checks import (
    CheckContext,
    VerifyIntermediateEvidenceAddresses,
    VerifyWithEvidence,
    VerifyWithoutEvidence,
    VerifyWithPartialEvidence,
    VerifyWithPartialEvidenceLatest,
)
from memevidence.verification.executor import NO_VERIFICATION_REQUIRED, VerificationExecutor

NO_DELAY = BackoffPolicy(initial_delay=0, max_delay=0)


class ScriptedClient(LLMClient):
    """Answers answering prompts and judge prompts from separate scripts.

    The last scripted answer repeats; verdicts are consumed one per call.
    """

    def __init__(self, name: str = "judge-model", answers=None, verdicts=None):
        self._name = name
        self.answers = list(answers or ["The answer"])
        self.verdicts = list(verdicts or [])
        self.answer_prompts: list[str] = []
        self.judge_prompts: list[str] = []

    @property
    def model_name(self) -> str:
        return self._name

    def generate_content(self, prompt: str) -> LLMResponse:
        if prompt.startswith("Answer the question based on"):
            self.answer_prompts.append(prompt)
            text = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        else:
            self.judge_prompts.append(prompt)
            text = self.verdicts.pop(0)
        return LLMResponse(content=text, model_name=self._name)


class FailingClient(LLMClient):
    def __init__(self):
        self.calls = 0

    @property
    def model_name(self) -> str:
        return "failing"

    def generate_content(self, prompt: str) -> LLMResponse:
        self.calls += 1
        raise ConnectionError("unreachable")


EVIDENCE_1 = "My daughter started violin lessons on Tuesdays"
EVIDENCE_2 = "We moved the violin lessons to Thursdays this month"


def _item(evidence_texts=(EVIDENCE_1,), question="When are the violin lessons?") -> EvidenceItem:
    evidences = [Message(USER, t) for t in evidence_texts]
    conversations = [
        Conversation(
            messages=[
                Message(USER, "Hi, quick update from me."),
                Message(USER, text),
                Message(ASSISTANT, "Got it, thanks for sharing."),
            ]
        )
        for text in evidence_texts
    ]
    return EvidenceItem(
        question=question,
        answer="Thursdays",
        message_evidences=evidences,
        conversations=conversations,
        category="schedule",
    )


def _judge(client: LLMClient, extra=None) -> Judge:
    return Judge(client, client, extra_answer_clients=extra, max_retries=3, policy=NO_DELAY)


# ---------------------------------------------------------------------------
# Verdict parsing and judge prompts
# ---------------------------------------------------------------------------


class TestParseVerdict:
    @pytest.mark.parametrize(
        "reply,expected",
        [("RIGHT", True), ("  right.", True), ("WRONG", False), ("The answer is wrong", False)],
    )
    def test_single_word(self, reply, expected):
        assert parse_verdict(reply) is expected

    def test_both_words_is_wrong(self, caplog):
        assert parse_verdict("RIGHT or WRONG") is False
        assert "both RIGHT and WRONG" in caplog.text

    def test_neither_word_raises(self):
        with pytest.raises(InvalidVerdictError):
            parse_verdict("Maybe?")


class TestAnsweringEvaluations:
    def test_default_prompt_contains_fields(self):
        prompt = DefaultAnsweringEvaluation().judge_prompt("Q?", "A", "model said A", [])
        assert "Question: Q?" in prompt
        assert "Correct Answer: A" in prompt
        assert "model said A" in prompt
        assert "RIGHT" in prompt

    def test_user_facts_single_evidence(self):
        prompt = UserFactsAnsweringEvaluation(1).judge_prompt(
            "Q?", "A", "resp", [Message(USER, EVIDENCE_1)]
        )
        assert "Evidence Message Available to the Model:**\n" + EVIDENCE_1 in prompt

    def test_user_facts_numbers_multiple_evidence(self):
        prompt = UserFactsAnsweringEvaluation(2).judge_prompt(
            "Q?", "A", "resp", [Message(USER, EVIDENCE_1), Message(USER, EVIDENCE_2)]
        )
        assert f"Evidence Message 1: {EVIDENCE_1}" in prompt
        assert f"Evidence Message 2: {EVIDENCE_2}" in prompt
        assert "minor omissions" in prompt

    def test_other_evaluations_name_their_mode(self):
        assert "rubric" in RubricBasedAnsweringEvaluation().judge_prompt("Q", "R", "M", [])
        assert "temporal" in TemporalAnsweringEvaluation().judge_prompt("Q", "A", "M", [])
        assert "ABSTENTION" in AbstentionAnsweringEvaluation().judge_prompt("Q", "", "M", [])

    def test_answer_prompt_numbers_conversations(self):
        item = _item((EVIDENCE_1, EVIDENCE_2))
        prompt = build_answer_prompt(item.conversations, item.question)
        assert "Conversation 1:" in prompt
        assert "Conversation 2:" in prompt
        assert f"User: {EVIDENCE_2}" in prompt
        assert prompt.rstrip().endswith("Answer:")


class TestJudge:
    def test_verdict_retries_invalid_reply(self):
        client = ScriptedClient(verdicts=["hmm", "RIGHT"])
        assert _judge(client).verdict("Is it RIGHT?") is True
        assert len(client.judge_prompts) == 2

    def test_verdict_undetermined_after_retries(self):
        client = ScriptedClient(verdicts=["hmm", "unsure", "no idea"])
        assert _judge(client).verdict("prompt") is None

    def test_answer_returns_none_after_failures(self):
        client = FailingClient()
        judge = _judge(client)
        assert judge.answer(_item().conversations, "Q?") is None
        assert client.calls == 3

    def test_answer_clients_primary_first(self):
        primary, extra = ScriptedClient("a"), ScriptedClient("b")
        assert _judge(primary, [extra]).answer_clients == [primary, extra]


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


def _ctx(client: LLMClient, **kwargs) -> CheckContext:
    extra = kwargs.pop("extra", None)
    return CheckContext(judge=_judge(client, extra), stats=GenerationStats(), **kwargs)


class TestVerifyWithEvidence:
    def test_passes_after_k_consecutive_correct(self):
        client = ScriptedClient(verdicts=["RIGHT", "RIGHT"])
        ctx = _ctx(client, required_passes=2)
        result = VerifyWithEvidence().verify(_item(), ctx)
        assert result.passed
        assert result.details == "Model answered correctly 2 times in a row"
        assert len(client.answer_prompts) == 2
        assert ctx.stats.verification_check_stats["with_evidence"] == [1, 1]

    def test_stops_at_first_wrong_answer(self):
        client = ScriptedClient(answers=["Mondays"], verdicts=["WRONG"])
        ctx = _ctx(client, required_passes=3)
        result = VerifyWithEvidence().verify(_item(), ctx)
        assert not result.passed
        assert "answered incorrectly: Mondays" in result.details
        assert len(client.answer_prompts) == 1
        assert ctx.stats.verification_check_stats["with_evidence"] == [1, 0]

    def test_own_required_passes_overrides_context(self):
        client = ScriptedClient(verdicts=["RIGHT"])
        result = VerifyWithEvidence(required_passes=1).verify(_item(), _ctx(client))
        assert result.passed
        assert len(client.answer_prompts) == 1

    def test_undetermined_verdict_fails(self):
        client = ScriptedClient(verdicts=["?", "?", "?"])
        result = VerifyWithEvidence().verify(_item(), _ctx(client))
        assert not result.passed
        assert result.details == "Failed to get response from model"

    def test_extensive_asks_every_model(self):
        judge_client = ScriptedClient("judge", verdicts=["RIGHT"] * 6)
        extra = ScriptedClient("extra")
        ctx = _ctx(
            judge_client, extra=[extra], required_passes=3, extensive=True, rng=random.Random(0)
        )
        result = VerifyWithEvidence().verify(_item(), ctx)
        assert result.passed
        assert len(judge_client.answer_prompts) == 3
        assert len(extra.answer_prompts) == 3
        assert ctx.stats.judge_model_stats == {"judge": [1, 1], "extra": [1, 1]}

    def test_extensive_failure_names_model(self):
        judge_client = ScriptedClient("judge", verdicts=["WRONG"] * 2)
        extra = ScriptedClient("extra")
        ctx = _ctx(judge_client, extra=[extra], extensive=True, rng=random.Random(0))
        result = VerifyWithEvidence().verify(_item(), ctx)
        assert not result.passed
        assert result.details.split(":")[0] in {"judge", "extra"}


class TestVerifyWithoutEvidence:
    def test_passes_when_unanswerable(self):
        client = ScriptedClient(answers=["I don't know"], verdicts=["WRONG"])
        ctx = _ctx(client)
        result = VerifyWithoutEvidence().verify(_item(), ctx)
        assert result.passed
        assert EVIDENCE_1 not in client.answer_prompts[0]
        assert "quick update" in client.answer_prompts[0]
        assert ctx.stats.verification_check_stats["without_evidence"] == [1, 1]

    def test_fails_when_still_answerable(self):
        client = ScriptedClient(answers=["Thursdays"], verdicts=["RIGHT"])
        result = VerifyWithoutEvidence().verify(_item(), _ctx(client))
        assert not result.passed
        assert "answered correctly without evidence" in result.details

    def test_small_talk_when_nothing_left(self):
        item = _item()
        item.conversations = [Conversation(messages=[Message(USER, EVIDENCE_1)])]
        client = ScriptedClient(verdicts=["WRONG"])
        VerifyWithoutEvidence().verify(item, _ctx(client))
        assert "Can you tell me a joke?" in client.answer_prompts[0]


class TestVerifyWithPartialEvidence:
    def test_passes_when_every_conversation_needed(self):
        client = ScriptedClient(verdicts=["WRONG", "WRONG"])
        result = VerifyWithPartialEvidence().verify(_item((EVIDENCE_1, EVIDENCE_2)), _ctx(client))
        assert result.passed
        assert len(client.answer_prompts) == 2

    def test_fails_when_redundant(self):
        client = ScriptedClient(verdicts=["RIGHT"])
        result = VerifyWithPartialEvidence().verify(_item((EVIDENCE_1, EVIDENCE_2)), _ctx(client))
        assert not result.passed
        assert "without conversation 1" in result.details


class TestVerifyWithPartialEvidenceLatest:
    def test_passes_when_latest_needed(self):
        client = ScriptedClient(answers=["Tuesdays"], verdicts=["WRONG"])
        result = VerifyWithPartialEvidenceLatest().verify(
            _item((EVIDENCE_1, EVIDENCE_2)), _ctx(client)
        )
        assert result.passed
        assert EVIDENCE_2 not in client.answer_prompts[0]

    def test_fails_when_answerable_without_latest(self):
        client = ScriptedClient(verdicts=["RIGHT"])
        result = VerifyWithPartialEvidenceLatest().verify(
            _item((EVIDENCE_1, EVIDENCE_2)), _ctx(client)
        )
        assert not result.passed
        assert "final update" in result.details

    def test_single_conversation_skipped(self):
        client = ScriptedClient()
        result = VerifyWithPartialEvidenceLatest().verify(_item(), _ctx(client))
        assert result.passed
        assert client.answer_prompts == []


class TestVerifyIntermediateEvidenceAddresses:
    def test_stops_at_first_irrelevant_message(self):
        item = _item((EVIDENCE_1, "I love music in general", EVIDENCE_2))
        client = ScriptedClient(verdicts=["RIGHT", "WRONG"])
        result = VerifyIntermediateEvidenceAddresses().verify(item, _ctx(client))
        assert not result.passed
        assert result.details.startswith("Message 2 doesn't address")
        assert len(client.judge_prompts) == 2

    def test_all_relevant(self):
        client = ScriptedClient(verdicts=["RIGHT"])
        result = VerifyIntermediateEvidenceAddresses().verify(
            _item((EVIDENCE_1, EVIDENCE_2)), _ctx(client)
        )
        assert result.passed
        assert "All 1 intermediate" in result.details

    def test_single_evidence_passes_without_calls(self):
        client = ScriptedClient()
        assert VerifyIntermediateEvidenceAddresses().verify(_item(), _ctx(client)).passed
        assert client.judge_prompts == []


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class TestVerificationExecutor:
    def test_empty_check_list_passes(self):
        executor = VerificationExecutor(_judge(ScriptedClient()))
        result = executor.execute(_item(), [])
        assert result.passed
        assert result.checks == []
        assert result.last_model_answer == NO_VERIFICATION_REQUIRED

    def test_stops_at_first_failing_check(self):
        # with_evidence passes (2 answers), without_evidence is still answerable
        client = ScriptedClient(answers=["Thursdays"], verdicts=["RIGHT", "RIGHT", "RIGHT"])
        stats = GenerationStats()
        executor = VerificationExecutor(_judge(client))
        checks = [VerifyWithEvidence(), VerifyWithoutEvidence(), VerifyWithPartialEvidence()]
        result = executor.execute(_item(), checks, stats)

        assert not result.passed
        assert [c.check_name for c in result.checks] == ["with_evidence", "without_evidence"]
        assert result.failure_reason.startswith("without_evidence:")
        assert result.last_model_answer == "Thursdays"
        assert len(client.answer_prompts) == 3
        assert len(client.judge_prompts) == 3
        assert "partial_evidence" not in stats.verification_check_stats

    def test_all_checks_pass(self):
        client = ScriptedClient(
            answers=["Thursdays", "Thursdays", "No idea"], verdicts=["RIGHT", "RIGHT", "WRONG"]
        )
        executor = VerificationExecutor(_judge(client))
        result = executor.execute(_item(), [VerifyWithEvidence(), VerifyWithoutEvidence()])
        assert result.passed
        assert result.failure_reason is None
        assert result.last_model_answer == "No idea"
        assert result.to_dict()["checks"][1]["check_name"] == "without_evidence"

    def test_extensive_config_raises_required_passes(self):
        client = ScriptedClient(verdicts=["RIGHT"] * 3)
        executor = VerificationExecutor(_judge(client), VerificationConfig(extensive=True))
        result = executor.execute(_item(), [VerifyWithEvidence()])
        assert result.passed
        assert len(client.answer_prompts) == 3

    def test_uses_given_evaluation(self):
        client = ScriptedClient(verdicts=["RIGHT", "RIGHT"])
        executor = VerificationExecutor(_judge(client))
        executor.execute(_item(), [VerifyWithEvidence()], answering_evaluation=RubricBasedAnsweringEvaluation())
        assert all("rubric" in p for p in client.judge_prompts)
