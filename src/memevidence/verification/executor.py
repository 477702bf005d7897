"""Ordered, short-circuiting execution of verification checks.

Checks run in the order given and execution stops at the first failure,
so judge calls are only spent while an item is still viable and the
failure reason always names the check that failed.

Public API:
    CompositeVerificationResult: Aggregate of the executed checks
    VerificationExecutor: Runs a check list against an item
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any

from ..core.config import VerificationConfig
from ..core.stats import GenerationStats
from ..data.schema import EvidenceItem
from ..generation.validator import ConversationValidator
from .answering import AnsweringEvaluation, DefaultAnsweringEvaluation, Judge
from .checks import CheckContext, VerificationCheck, VerificationCheckResult

logger = logging.getLogger(__name__)

NO_VERIFICATION_REQUIRED = "No verification required"


@dataclass
class CompositeVerificationResult:
    passed: bool
    checks: list[VerificationCheckResult] = field(default_factory=list)
    last_model_answer: str = ""
    failure_reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "checks": [c.to_dict() for c in self.checks],
            "last_model_answer": self.last_model_answer,
            "failure_reason": self.failure_reason,
        }


class VerificationExecutor:
    """Runs verification checks with a shared judge.

    Args:
        judge: Answering and judge models
        config: Pass counts and extensive mode
        validator: Matcher used to strip evidence for the without-evidence check
        rng: Shuffles model order in extensive mode
    """

    def __init__(
        self,
        judge: Judge,
        config: VerificationConfig | None = None,
        validator: ConversationValidator | None = None,
        rng: random.Random | None = None,
    ):
        self.judge = judge
        self.config = config or VerificationConfig()
        self.validator = validator or ConversationValidator()
        self.rng = rng or random.Random()

    def execute(
        self,
        item: EvidenceItem,
        checks: list[VerificationCheck],
        stats: GenerationStats | None = None,
        answering_evaluation: AnsweringEvaluation | None = None,
    ) -> CompositeVerificationResult:
        """Run ``checks`` in order, stopping at the first failure."""
        if not checks:
            return CompositeVerificationResult(
                passed=True, last_model_answer=NO_VERIFICATION_REQUIRED
            )

        ctx = CheckContext(
            judge=self.judge,
            evaluation=answering_evaluation or DefaultAnsweringEvaluation(),
            stats=stats,
            validator=self.validator,
            required_passes=self.config.required_passes,
            extensive=self.config.extensive,
            rng=self.rng,
        )

        results: list[VerificationCheckResult] = []
        last_answer = ""
        for check in checks:
            result = check.verify(item, ctx)
            results.append(result)
            if result.model_answer:
                last_answer = result.model_answer
            if not result.passed:
                logger.debug("Check %s failed: %s", result.check_name, result.details)
                return CompositeVerificationResult(
                    passed=False,
                    checks=results,
                    last_model_answer=last_answer,
                    failure_reason=f"{result.check_name}: {result.details}",
                )

        return CompositeVerificationResult(passed=True, checks=results, last_model_answer=last_answer)


__all__ = ["CompositeVerificationResult", "VerificationExecutor", "NO_VERIFICATION_REQUIRED"]
