"""Process-wide runtime: model clients, judge, stats and the reporter thread.

Public API:
    RuntimeContext: Owns shared resources for one run; use as a context manager
"""

from __future__ import annotations

import logging
import os
import random

from ..llm.client import (
    AnthropicClient,
    LLMClient,
    LLMResponse,
    MissingAPIKeyError,
    RandomModelClient,
)
from ..verification.answering import Judge
from .config import PipelineConfig
from .stats import GenerationStats, StatsReporter

logger = logging.getLogger(__name__)


class RuntimeContext:
    """Creates and releases everything a run shares across threads.

    Clients can be injected (tests do); otherwise Anthropic clients are
    built from ``config.llm`` on ``init()``. Token usage of every built
    client is added to ``stats``.

    Example::

        with RuntimeContext(config, evidence_count=2) as runtime:
            supervisor = GenerationSupervisor(..., client=runtime.generation_client, ...)
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        evidence_count: int = 1,
        generation_client: LLMClient | None = None,
        judge_client: LLMClient | None = None,
        extra_answer_clients: list[LLMClient] | None = None,
        rng: random.Random | None = None,
    ):
        self.config = config or PipelineConfig()
        self.evidence_count = evidence_count
        self.rng = rng or random.Random()
        self.generation_client = generation_client
        self.judge_client = judge_client
        self.extra_answer_clients = extra_answer_clients
        self.stats: GenerationStats | None = None
        self.reporter: StatsReporter | None = None
        self.judge: Judge | None = None
        self._owned: list[LLMClient] = []

    def _on_usage(self, response: LLMResponse) -> None:
        if self.stats is not None:
            self.stats.record_tokens(response.input_tokens, response.output_tokens)

    def _anthropic(self, model: str, max_tokens: int) -> LLMClient:
        client = AnthropicClient(model, max_tokens=max_tokens, on_usage=self._on_usage)
        self._owned.append(client)
        return client

    def init(self) -> RuntimeContext:
        """Build missing clients, the judge, stats and reporter. Idempotent.

        Raises:
            MissingAPIKeyError: A client must be built and ANTHROPIC_API_KEY is unset.
        """
        if self.judge is not None:
            return self
        llm = self.config.llm
        needs_key = self.generation_client is None or self.judge_client is None
        if needs_key and not os.environ.get("ANTHROPIC_API_KEY"):
            raise MissingAPIKeyError("ANTHROPIC_API_KEY environment variable is required")
        self.stats = GenerationStats(evidence_count=self.evidence_count)
        self.reporter = StatsReporter(self.stats, self.config.threading.stats_interval_s)

        if self.generation_client is None:
            clients = [self._anthropic(m, llm.max_tokens) for m in llm.generation_models]
            self.generation_client = (
                clients[0] if len(clients) == 1 else RandomModelClient(clients, self.rng)
            )
        if self.judge_client is None:
            self.judge_client = self._anthropic(llm.judge_model, llm.judge_max_tokens)
        if self.extra_answer_clients is None:
            self.extra_answer_clients = [
                self._anthropic(m, llm.max_tokens)
                for m in self.config.verification.judge_models
                if m != llm.judge_model
            ]

        self.judge = Judge(
            answer_client=self.judge_client,
            judge_client=self.judge_client,
            extra_answer_clients=self.extra_answer_clients,
            max_retries=self.config.retry.judge_max_retries,
            policy=self.config.retry.policy(),
        )
        logger.debug(
            "Runtime ready: generation=%s judge=%s extra=%d",
            self.generation_client.model_name,
            self.judge_client.model_name,
            len(self.extra_answer_clients),
        )
        return self

    def shutdown(self) -> None:
        if self.reporter is not None and self.reporter.running:
            self.reporter.stop(final=False)
        for client in self._owned:
            try:
                client.close()
            except Exception as e:
                logger.warning("Failed to close client %s: %s", client.model_name, e)
        self._owned.clear()

    def __enter__(self) -> RuntimeContext:
        return self.init()

    def __exit__(self, *exc_info) -> None:
        self.shutdown()


__all__ = ["RuntimeContext"]
