"""Semantic verification: judge prompts, checks and the executor."""

from __future__ import annotations

from .answering import (
    AbstentionAnsweringEvaluation,
    AnsweringEvaluation,
    DefaultAnsweringEvaluation,
    Judge,
    RubricBasedAnsweringEvaluation,
    TemporalAnsweringEvaluation,
    UserFactsAnsweringEvaluation,
)
from .checks import (
    CheckContext,
    VerificationCheck,
    VerificationCheckResult,
    VerifyIntermediateEvidenceAddresses,
    VerifyWithEvidence,
    VerifyWithoutEvidence,
    VerifyWithPartialEvidence,
    VerifyWithPartialEvidenceLatest,
    multi_evidence_checks,
    standard_checks,
)
from .executor import CompositeVerificationResult, VerificationExecutor

__all__ = [
    "AnsweringEvaluation",
    "DefaultAnsweringEvaluation",
    "RubricBasedAnsweringEvaluation",
    "TemporalAnsweringEvaluation",
    "UserFactsAnsweringEvaluation",
    "AbstentionAnsweringEvaluation",
    "Judge",
    "CheckContext",
    "VerificationCheck",
    "VerificationCheckResult",
    "VerifyWithEvidence",
    "VerifyWithoutEvidence",
    "VerifyWithPartialEvidence",
    "VerifyWithPartialEvidenceLatest",
    "VerifyIntermediateEvidenceAddresses",
    "standard_checks",
    "multi_evidence_checks",
    "CompositeVerificationResult",
    "VerificationExecutor",
]
