"""Conversation embedding: one conversation per evidence message.

Public API:
    ConversationEmbedder: (persona, use case, core) -> Result[list[Conversation]]
    VALIDATION_FAILED: Error category for placement failures
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from ..core.result import GenerationError, Result, err, ok
from ..core.stats import GenerationStats
from ..data.schema import (
    Conversation,
    EvidenceCore,
    EvidenceUseCase,
    Persona,
    SchemaError,
    parse_conversations,
)
from ..llm.client import LLMClient, MissingAPIKeyError, extract_json
from .core_builder import DECODE_FAILED, LLM_CALL_FAILED, MISSING_CREDENTIALS
from .prompts import build_conversation_prompt
from .validator import ConversationValidator

if TYPE_CHECKING:
    from ..strategies.base import EvidenceTypeStrategy

logger = logging.getLogger(__name__)

VALIDATION_FAILED = "validation_failed"


class ConversationEmbedder:
    """Generates conversations carrying a core's evidence and validates placement.

    Every validation run is counted on ``stats`` (attempts, failures and
    the failure categories).
    """

    def __init__(
        self,
        client: LLMClient,
        strategy: EvidenceTypeStrategy,
        validator: ConversationValidator | None = None,
        stats: GenerationStats | None = None,
    ):
        self.client = client
        self.strategy = strategy
        self.validator = validator or ConversationValidator()
        self.stats = stats

    def embed(
        self, persona: Persona, use_case: EvidenceUseCase, core: EvidenceCore
    ) -> Result[list[Conversation]]:
        parts = self.strategy.conversation_prompt_parts(persona, use_case, core)
        prompt = build_conversation_prompt(persona, parts)

        try:
            response = self.client.generate_content(prompt)
        except MissingAPIKeyError as e:
            return err(GenerationError.fatal(str(e), MISSING_CREDENTIALS))
        except Exception as e:
            logger.debug("Conversation generation call failed: %s", e)
            return err(GenerationError.transient(f"LLM call failed: {e}", LLM_CALL_FAILED))

        try:
            conversations = parse_conversations(extract_json(response.content))
        except (json.JSONDecodeError, SchemaError) as e:
            return err(
                GenerationError.transient(f"Could not decode conversations: {e}", DECODE_FAILED)
            )

        result = self.validator.validate(core, conversations)
        if self.stats is not None:
            self.stats.increment("conversation_validation_attempts")
            if not result.is_valid:
                self.stats.increment("conversation_validation_failures")
                self.stats.record_validation_failures(result.failure_categories)

        if not result.is_valid:
            logger.debug(
                "Conversation validation failed for use case %d: %s",
                use_case.id, "; ".join(result.errors),
            )
            return err(GenerationError.transient("; ".join(result.errors), VALIDATION_FAILED))

        return ok([c.stamped(response.model_name) for c in conversations])


__all__ = ["ConversationEmbedder", "VALIDATION_FAILED"]
