"""Semantic verification checks.

Each check asks a judge model something about an evidence item under a
restricted context and reports pass/fail with details. Checks record one
attempt (and, on success, one pass) under their name in the run stats.

Checks:
    with_evidence            answered correctly K times in a row
    without_evidence         NOT answerable once evidence is removed
    partial_evidence         dropping any one conversation breaks it
    partial_evidence_latest  dropping the final update breaks it
    intermediate_evidence_addresses_question
                             every non-final evidence message is on topic

Public API:
    VerificationCheckResult: Outcome of one check
    CheckContext: Judge, evaluation strategy and stats handed to checks
    VerificationCheck: Base class
    VerifyWithEvidence, VerifyWithoutEvidence, VerifyWithPartialEvidence,
    VerifyWithPartialEvidenceLatest, VerifyIntermediateEvidenceAddresses
    SMALL_TALK_CONVERSATION: Fallback context with no evidence
"""

from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from ..core.stats import GenerationStats
from ..data.schema import ASSISTANT, USER, Conversation, EvidenceItem, Message
from ..generation.validator import ConversationValidator
from ..llm.client import LLMClient
from .answering import AnsweringEvaluation, DefaultAnsweringEvaluation, Judge

logger = logging.getLogger(__name__)

SMALL_TALK_CONVERSATION = Conversation(
    messages=[
        Message(USER, "Hello, how are you today?"),
        Message(ASSISTANT, "I'm doing well, thank you! How can I help you?"),
        Message(USER, "What's the weather like?"),
        Message(
            ASSISTANT,
            "I don't have access to real-time weather data, but I'd be happy to help "
            "with other questions.",
        ),
        Message(USER, "Can you tell me a joke?"),
        Message(ASSISTANT, "Sure! Why don't scientists trust atoms? Because they make up everything!"),
    ],
    id="dummy-no-evidence",
    contains_evidence=False,
)


@dataclass
class VerificationCheckResult:
    check_name: str
    passed: bool
    details: str
    model_answer: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "check_name": self.check_name,
            "passed": self.passed,
            "details": self.details,
            "model_answer": self.model_answer,
        }


@dataclass
class CheckContext:
    """Everything a check needs besides the item itself."""

    judge: Judge
    evaluation: AnsweringEvaluation = field(default_factory=DefaultAnsweringEvaluation)
    stats: GenerationStats | None = None
    validator: ConversationValidator = field(default_factory=ConversationValidator)
    required_passes: int = 2
    extensive: bool = False
    rng: random.Random = field(default_factory=random.Random)

    def record(self, check_name: str, passed: bool) -> None:
        if self.stats is not None:
            self.stats.record_check(check_name, passed)


@dataclass
class _Attempt:
    """Outcome of asking one model K times in a row."""

    passed: bool
    last_answer: str
    failure_reason: str | None = None


def answer_consecutively(
    item: EvidenceItem,
    ctx: CheckContext,
    required_passes: int,
    client: LLMClient | None = None,
) -> _Attempt | None:
    """Ask until ``required_passes`` consecutive correct answers or one wrong one.

    Returns None when an answer or verdict could not be obtained.
    """
    passes = 0
    last_answer = ""
    while passes < required_passes:
        answer = ctx.judge.answer(item.conversations, item.question, client)
        if answer is None:
            return None
        last_answer = answer
        correct = ctx.judge.is_correct(
            item.question, item.answer, answer, item.message_evidences, ctx.evaluation
        )
        if correct is None:
            return None
        if not correct:
            return _Attempt(
                passed=False,
                last_answer=answer,
                failure_reason=f"Model answered incorrectly: {answer} (expected: {item.answer})",
            )
        passes += 1
    return _Attempt(passed=True, last_answer=last_answer)


class VerificationCheck(ABC):
    """A single semantic check."""

    name: str = ""

    @abstractmethod
    def verify(self, item: EvidenceItem, ctx: CheckContext) -> VerificationCheckResult:
        """Run the check against ``item``."""

    def _result(
        self, ctx: CheckContext, passed: bool, details: str, answer: str | None = None
    ) -> VerificationCheckResult:
        ctx.record(self.name, passed)
        return VerificationCheckResult(self.name, passed, details, answer)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class VerifyWithEvidence(VerificationCheck):
    """The evidence conversations must let a model answer correctly.

    Args:
        required_passes: Consecutive correct answers needed; None uses the
            context default (which is higher in extensive mode)
        extensive: Force extensive mode on/off; None uses the context
    """

    name = "with_evidence"

    def __init__(self, required_passes: int | None = None, extensive: bool | None = None):
        self.required_passes = required_passes
        self.extensive = extensive

    def verify(self, item, ctx):
        passes = self.required_passes or ctx.required_passes
        extensive = ctx.extensive if self.extensive is None else self.extensive
        if ctx.stats is not None:
            ctx.stats.record_check_attempt(self.name)

        attempt = self._extensive(item, ctx, passes) if extensive else answer_consecutively(
            item, ctx, passes
        )

        if attempt is None:
            return VerificationCheckResult(self.name, False, "Failed to get response from model")
        if attempt.passed and ctx.stats is not None:
            ctx.stats.record_check_pass(self.name)
        details = attempt.failure_reason or f"Model answered correctly {passes} times in a row"
        return VerificationCheckResult(self.name, attempt.passed, details, attempt.last_answer)

    def _extensive(self, item: EvidenceItem, ctx: CheckContext, passes: int) -> _Attempt | None:
        clients = list(ctx.judge.answer_clients)
        ctx.rng.shuffle(clients)
        for client in clients:
            attempt = answer_consecutively(item, ctx, passes, client)
            if attempt is None:
                return None
            if ctx.stats is not None:
                ctx.stats.record_judge_model(client.model_name, attempt.passed)
            if not attempt.passed:
                attempt.failure_reason = f"{client.model_name}: {attempt.failure_reason}"
                return attempt
            logger.debug("%s passed %d consecutive answers", client.model_name, passes)
        return _Attempt(passed=True, last_answer="All models passed")

    def __repr__(self) -> str:
        return f"VerifyWithEvidence(required_passes={self.required_passes})"


class VerifyWithoutEvidence(VerificationCheck):
    """With the evidence messages removed the question must be unanswerable.

    The item's conversations are stripped of every message matching an
    evidence message; if nothing is left, a fixed small-talk conversation
    stands in.
    """

    name = "without_evidence"

    def verify(self, item, ctx):
        stripped = ctx.validator.strip_evidence(item.conversations, item.message_evidences)
        context = [c for c in stripped if c.messages] or [SMALL_TALK_CONVERSATION]

        answer = ctx.judge.answer(context, item.question)
        if answer is None:
            return self._result(ctx, False, "Failed to verify answer without evidence")

        correct = ctx.judge.is_correct(item.question, item.answer, answer, [], ctx.evaluation)
        if correct is None:
            return self._result(ctx, False, "Failed to judge answer without evidence", answer)
        if correct:
            return self._result(
                ctx, False, f"Model answered correctly without evidence: {answer}", answer
            )
        return self._result(ctx, True, "Model correctly failed to answer without evidence", answer)


class VerifyWithPartialEvidence(VerificationCheck):
    """Removing any single conversation must make the question unanswerable."""

    name = "partial_evidence"

    def verify(self, item, ctx):
        for idx in range(len(item.conversations)):
            reduced = item.conversations[:idx] + item.conversations[idx + 1:]
            if not reduced:
                continue
            attempt = answer_consecutively(item.with_conversations(reduced), ctx, 1)
            if attempt is not None and attempt.passed:
                return self._result(
                    ctx,
                    False,
                    "Evidence is too redundant - model can still answer correctly "
                    f"without conversation {idx + 1}",
                )
        return self._result(
            ctx, True, "All conversations are necessary - removing any one prevents correct answer"
        )


class VerifyWithPartialEvidenceLatest(VerificationCheck):
    """For changing facts: without the final update the answer must be wrong."""

    name = "partial_evidence_latest"

    def verify(self, item, ctx):
        if not item.conversations:
            return self._result(ctx, False, "No conversations to verify")
        without_latest = item.conversations[:-1]
        if not without_latest:
            return self._result(
                ctx, True, "Only one conversation present, skipping partial evidence check"
            )

        attempt = answer_consecutively(item.with_conversations(without_latest), ctx, 1)
        if attempt is None:
            return self._result(ctx, False, "Failed to verify answer without latest conversation")
        if attempt.passed:
            return self._result(
                ctx,
                False,
                "Model answered correctly without the latest conversation (final update): "
                f"{attempt.last_answer}",
                attempt.last_answer,
            )
        return self._result(
            ctx,
            True,
            "Latest conversation is necessary - model cannot answer correctly without the final update",
            attempt.last_answer,
        )


_RELEVANCE_PROMPT = """I will give you a question and a message. Decide whether the message DIRECTLY addresses the specific topic the question asks about.

STRICT CRITERIA:
1. The message is about the EXACT subject of the question, not something vaguely related
2. The message provides specific information needed to answer the question
3. General statements or tangential topics are WRONG

Examples:
- Question: "What time is the meeting?"
  "Let's schedule the meeting for 2 PM" -> RIGHT
  "We need to have a meeting soon" -> WRONG
  "I'm busy at 2 PM" -> WRONG
- Question: "What are my travel plans?"
  "I'm flying to Paris on March 15th" -> RIGHT
  "My trip got cancelled" -> RIGHT
  "I love traveling" -> WRONG

{answer_only}

Question: {question}
Message: {message}

Answer (RIGHT/WRONG):"""


class VerifyIntermediateEvidenceAddresses(VerificationCheck):
    """Every evidence message except the last must be on the question's topic."""

    name = "intermediate_evidence_addresses_question"

    def verify(self, item, ctx):
        if len(item.message_evidences) <= 1:
            return self._result(
                ctx, True, "Not enough evidence messages to check intermediate evidence"
            )

        intermediate = item.message_evidences[:-1]
        for idx, message in enumerate(intermediate):
            prompt = _RELEVANCE_PROMPT.format(
                answer_only='Answer only "RIGHT" or "WRONG".',
                question=item.question,
                message=message.text,
            )
            relevant = ctx.judge.verdict(prompt)
            if relevant is None:
                return self._result(
                    ctx, False, f"Failed to verify if message {idx + 1} addresses the question"
                )
            if not relevant:
                return self._result(
                    ctx,
                    False,
                    f"Message {idx + 1} doesn't address the question: '{message.text[:100]}...'",
                )
        return self._result(
            ctx, True, f"All {len(intermediate)} intermediate evidence messages address the question"
        )


def standard_checks() -> list[VerificationCheck]:
    return [VerifyWithEvidence(), VerifyWithoutEvidence()]


def multi_evidence_checks() -> list[VerificationCheck]:
    return standard_checks() + [VerifyWithPartialEvidence()]


__all__ = [
    "SMALL_TALK_CONVERSATION",
    "VerificationCheckResult",
    "CheckContext",
    "VerificationCheck",
    "VerifyWithEvidence",
    "VerifyWithoutEvidence",
    "VerifyWithPartialEvidence",
    "VerifyWithPartialEvidenceLatest",
    "VerifyIntermediateEvidenceAddresses",
    "answer_consecutively",
    "standard_checks",
    "multi_evidence_checks",
]
