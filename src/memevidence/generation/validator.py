"""Deterministic placement validation for generated conversations.

Checks that every evidence message of a core appears exactly once across
the generated conversations, in the conversation with the same index,
spoken by the same speaker. No LLM is involved.

Matching is tiered because models rarely copy evidence byte-for-byte:
1. exact   - the message text contains the evidence text
2. partial - the evidence text contains the message text and the message
             is at least ``partial_min_ratio`` of the evidence length
3. fuzzy   - Levenshtein distance within max(floor, ratio * length)

Public API:
    ValidationResult: Outcome with errors and failure categories
    ConversationValidator: The validator
    levenshtein: Edit distance between two strings
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from ..core.config import MatchingConfig
from ..data.schema import VALID_SPEAKERS, Conversation, EvidenceCore, Message

logger = logging.getLogger(__name__)

INVALID_SPEAKERS = "invalid_speakers"
CONVERSATION_COUNT_MISMATCH = "conversation_count_mismatch"
EVIDENCE_NOT_FOUND = "evidence_not_found"
EVIDENCE_IN_MULTIPLE_CONVERSATIONS = "evidence_in_multiple_conversations"
EVIDENCE_IN_WRONG_CONVERSATION = "evidence_in_wrong_conversation"


def levenshtein(a: str, b: str) -> int:
    """Single-character insert/delete/substitute edit distance."""
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i] + [0] * len(b)
        for j, cb in enumerate(b, start=1):
            current[j] = min(
                previous[j] + 1,  # deletion
                current[j - 1] + 1,  # insertion
                previous[j - 1] + (ca != cb),  # substitution
            )
        previous = current
    return previous[-1]


@dataclass
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    failure_categories: set[str] = field(default_factory=set)


class ConversationValidator:
    """Verifies evidence placement across generated conversations."""

    def __init__(self, matching: MatchingConfig | None = None):
        self.matching = matching or MatchingConfig()

    def match_tier(self, evidence: Message, message: Message) -> str | None:
        """Return "exact", "partial", "fuzzy" or None for one message."""
        if not evidence.text.strip() or evidence.speaker.lower() != message.speaker.lower():
            return None

        if evidence.text in message.text:
            return "exact"

        if (
            message.text
            and message.text in evidence.text
            and len(message.text) >= self.matching.partial_min_ratio * len(evidence.text)
        ):
            return "partial"

        threshold = self.matching.fuzzy_threshold(len(evidence.text))
        # Length difference is a lower bound on the distance.
        if abs(len(message.text) - len(evidence.text)) > threshold * self.matching.near_miss_factor:
            return None
        distance = levenshtein(message.text, evidence.text)
        if distance <= threshold:
            return "fuzzy"
        if distance <= threshold * self.matching.near_miss_factor:
            logger.debug(
                "Near miss (distance %d, threshold %d): evidence=%r message=%r",
                distance, threshold, evidence.text[:80], message.text[:80],
            )
        return None

    def contains(self, conversation: Conversation, evidence: Message) -> bool:
        return any(self.match_tier(evidence, m) is not None for m in conversation.messages)

    def strip_evidence(
        self, conversations: list[Conversation], evidences: list[Message]
    ) -> list[Conversation]:
        """Copies of ``conversations`` with every matching evidence message removed."""
        stripped: list[Conversation] = []
        for conversation in conversations:
            kept = [
                m for m in conversation.messages
                if not any(self.match_tier(e, m) is not None for e in evidences)
            ]
            stripped.append(replace(conversation, messages=kept))
        return stripped

    def validate(self, core: EvidenceCore, conversations: list[Conversation]) -> ValidationResult:
        """Validate evidence placement.

        Args:
            core: Evidence core whose messages must be placed
            conversations: Generated conversations, index i carrying evidence i

        Returns:
            ValidationResult; ``failure_categories`` holds the category
            constants of this module.
        """
        errors: list[str] = []
        categories: set[str] = set()

        for conv_idx, conversation in enumerate(conversations):
            bad = sorted({
                m.speaker for m in conversation.messages
                if m.speaker.lower() not in VALID_SPEAKERS
            })
            if bad:
                errors.append(
                    f"Conversation {conv_idx + 1} has invalid speakers: {', '.join(bad)}"
                )
                categories.add(INVALID_SPEAKERS)

        evidences = core.message_evidences
        if len(conversations) != len(evidences):
            errors.append(
                f"Expected {len(evidences)} conversations (one per evidence message), "
                f"got {len(conversations)}"
            )
            categories.add(CONVERSATION_COUNT_MISMATCH)
            return ValidationResult(False, errors, categories)

        for ev_idx, evidence in enumerate(evidences):
            found_in = [
                conv_idx for conv_idx, conversation in enumerate(conversations)
                if self.contains(conversation, evidence)
            ]
            preview = evidence.text[:60]
            if not found_in:
                errors.append(f"Evidence {ev_idx + 1} not found in any conversation: {preview!r}")
                categories.add(EVIDENCE_NOT_FOUND)
            elif len(found_in) > 1:
                where = ", ".join(str(i + 1) for i in found_in)
                errors.append(f"Evidence {ev_idx + 1} found in multiple conversations ({where})")
                categories.add(EVIDENCE_IN_MULTIPLE_CONVERSATIONS)
            elif found_in[0] != ev_idx:
                errors.append(
                    f"Evidence {ev_idx + 1} found in conversation {found_in[0] + 1}, "
                    f"expected conversation {ev_idx + 1}"
                )
                categories.add(EVIDENCE_IN_WRONG_CONVERSATION)

        return ValidationResult(not errors, errors, categories)


__all__ = [
    "ValidationResult",
    "ConversationValidator",
    "levenshtein",
    "INVALID_SPEAKERS",
    "CONVERSATION_COUNT_MISMATCH",
    "EVIDENCE_NOT_FOUND",
    "EVIDENCE_IN_MULTIPLE_CONVERSATIONS",
    "EVIDENCE_IN_WRONG_CONVERSATION",
]
