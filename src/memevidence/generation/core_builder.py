"""Evidence core generation and validation.

Public API:
    EvidenceCoreBuilder: One use case -> Result[EvidenceCore]
    validate_core: Structural checks on a decoded core
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from ..core.result import GenerationError, Result, err, ok
from ..data.schema import VALID_SPEAKERS, EvidenceCore, EvidenceUseCase, Persona, SchemaError
from ..llm.client import LLMClient, MissingAPIKeyError, extract_json
from .prompts import build_core_prompt

if TYPE_CHECKING:
    from ..strategies.base import EvidenceTypeStrategy

logger = logging.getLogger(__name__)

EVIDENCE_COUNT_MISMATCH = "evidence_count_mismatch"
INVALID_SPEAKERS = "invalid_speakers"
MIXED_SPEAKERS = "mixed_speakers"
BLANK_EVIDENCE = "blank_evidence"
WRONG_SPEAKER = "wrong_speaker"
DECODE_FAILED = "decode_failed"
LLM_CALL_FAILED = "llm_call_failed"
MISSING_CREDENTIALS = "missing_credentials"


def validate_core(
    core: EvidenceCore, evidence_count: int, expected_speaker: str
) -> GenerationError | None:
    """Return the first structural violation of ``core``, or None."""
    evidences = core.message_evidences
    if len(evidences) != evidence_count:
        return GenerationError.transient(
            f"Expected {evidence_count} evidence messages, got {len(evidences)}",
            EVIDENCE_COUNT_MISMATCH,
        )
    blank = [i for i, m in enumerate(evidences) if not m.text.strip()]
    if blank:
        return GenerationError.transient(
            f"Evidence message(s) {blank} have no text", BLANK_EVIDENCE
        )

    speakers = [m.speaker.lower() for m in evidences]
    invalid = sorted({m.speaker for m in evidences if m.speaker.lower() not in VALID_SPEAKERS})
    if invalid:
        return GenerationError.transient(
            f"Invalid evidence speakers: {', '.join(invalid)}", INVALID_SPEAKERS
        )
    if len(set(speakers)) > 1:
        return GenerationError.transient(
            "Evidence messages mix User and Assistant speakers", MIXED_SPEAKERS
        )
    if speakers and speakers[0] != expected_speaker.lower():
        return GenerationError.transient(
            f"Evidence speaker is {evidences[0].speaker}, expected {expected_speaker}",
            WRONG_SPEAKER,
        )
    return None


class EvidenceCoreBuilder:
    """Generates the question, answer and evidence messages for a use case."""

    def __init__(self, client: LLMClient, strategy: EvidenceTypeStrategy):
        self.client = client
        self.strategy = strategy

    def build(self, persona: Persona, use_case: EvidenceUseCase) -> Result[EvidenceCore]:
        strategy = self.strategy
        prompt = build_core_prompt(
            persona,
            use_case,
            strategy.core_prompt_parts(persona, use_case),
            strategy.evidence_count,
            strategy.expected_speaker(),
        )

        try:
            response = self.client.generate_content(prompt)
        except MissingAPIKeyError as e:
            return err(GenerationError.fatal(str(e), MISSING_CREDENTIALS))
        except Exception as e:
            logger.debug("Core generation call failed: %s", e)
            return err(GenerationError.transient(f"LLM call failed: {e}", LLM_CALL_FAILED))

        try:
            core = EvidenceCore.from_dict(extract_json(response.content))
        except (json.JSONDecodeError, SchemaError) as e:
            return err(GenerationError.transient(f"Could not decode core: {e}", DECODE_FAILED))

        problem = validate_core(core, strategy.evidence_count, strategy.expected_speaker())
        if problem is not None:
            logger.debug("Rejected core for use case %d: %s", use_case.id, problem)
            return err(problem)

        core.model_name = response.model_name
        return ok(core)


__all__ = [
    "EvidenceCoreBuilder",
    "validate_core",
    "BLANK_EVIDENCE",
    "EVIDENCE_COUNT_MISMATCH",
    "INVALID_SPEAKERS",
    "MIXED_SPEAKERS",
    "WRONG_SPEAKER",
]
