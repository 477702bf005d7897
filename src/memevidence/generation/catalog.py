"""Scenario catalog: the use cases generated for one persona.

A single LLM reply rarely holds exactly the number of scenarios asked for,
so the catalog accumulates: it keeps asking for the remaining count until
enough use cases exist, then truncates. The number of rounds is bounded
so a model that keeps returning nothing cannot loop forever.

Public API:
    ScenarioCatalog: Generates ``target_count`` use cases for a persona
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..core.config import RetryConfig
from ..core.result import GenerationError, GenerationFailed
from ..core.retry import retry
from ..data.schema import EvidenceUseCase, Persona, parse_use_cases
from ..llm.client import LLMClient, MissingAPIKeyError, extract_json
from .prompts import build_use_case_prompt

if TYPE_CHECKING:
    from ..strategies.base import EvidenceTypeStrategy

logger = logging.getLogger(__name__)


class ScenarioCatalog:
    """Generates use cases for personas.

    Args:
        client: Generation model(s)
        strategy: Evidence type supplying the prompt parts
        retry_config: Attempts per round (``use_case_max_retries``) and backoff
        max_calls: Upper bound on LLM rounds per ``generate`` call
    """

    def __init__(
        self,
        client: LLMClient,
        strategy: EvidenceTypeStrategy,
        retry_config: RetryConfig | None = None,
        max_calls: int = 10,
    ):
        self.client = client
        self.strategy = strategy
        self.retry_config = retry_config or RetryConfig()
        self.max_calls = max_calls

    def _round(self, persona: Persona, count: int) -> list[EvidenceUseCase]:
        prompt = build_use_case_prompt(persona, self.strategy.use_case_prompt_parts(persona), count)

        def call() -> list[EvidenceUseCase]:
            response = self.client.generate_content(prompt)
            use_cases = parse_use_cases(extract_json(response.content))
            for use_case in use_cases:
                use_case.model_name = response.model_name
            return use_cases

        return retry(
            call,
            self.retry_config.use_case_max_retries,
            self.retry_config.policy(),
            give_up=(MissingAPIKeyError,),
        )

    def generate(self, persona: Persona, target_count: int) -> list[EvidenceUseCase]:
        """Return exactly ``target_count`` use cases for ``persona``.

        Raises:
            GenerationFailed: ``max_calls`` rounds did not yield enough use cases.
            Exception: The last LLM or decode error of a round that exhausted
                its retries.
        """
        if target_count <= 0:
            return []

        accumulated: list[EvidenceUseCase] = []
        for call_number in range(1, self.max_calls + 1):
            remaining = target_count - len(accumulated)
            batch = self._round(persona, remaining)
            accumulated.extend(batch)
            logger.debug(
                "Use case round %d for %s: got %d, have %d/%d",
                call_number, persona.role_name, len(batch), len(accumulated), target_count,
            )
            if len(accumulated) >= target_count:
                break
        else:
            raise GenerationFailed(
                GenerationError.transient(
                    f"Only {len(accumulated)}/{target_count} use cases for {persona.role_name} "
                    f"after {self.max_calls} calls",
                    category="use_case_shortfall",
                )
            )

        use_cases = accumulated[:target_count]
        logger.info("Generated %d use cases for %s", len(use_cases), persona.role_name)
        return use_cases


__all__ = ["ScenarioCatalog"]
