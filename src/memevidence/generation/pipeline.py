"""Per use case generation: core, conversations, verification.

One EvidencePipeline serves every evidence type; the injected strategy
supplies what differs. Each use case moves through

    pending -> core_generated -> conversations_generated
            -> accepted | abandoned | timed_out

An attempt builds a fresh core, embeds it (with its own retry budget) and
verifies the assembled item. A failure anywhere starts the next attempt
from a new core. Timeouts are outcomes, not errors; fatal errors raise.

Public API:
    UseCaseState: States of the use case state machine
    UseCaseOutcome: Final state, accepted item and diagnostics
    EvidencePipeline: Runs the state machine for one use case
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from ..core.config import PipelineConfig
from ..core.result import GenerationError, GenerationFailed, SystemicFailureError
from ..core.retry import retry_result
from ..core.stats import GenerationStats
from ..data.schema import EvidenceCore, EvidenceItem, EvidenceUseCase, Persona
from ..llm.client import LLMClient
from ..strategies.base import EvidenceTypeStrategy
from ..verification.executor import CompositeVerificationResult, VerificationExecutor
from .core_builder import EvidenceCoreBuilder
from .embedder import ConversationEmbedder

logger = logging.getLogger(__name__)

VERIFICATION_FAILED = "verification_failed"


class UseCaseState(str, Enum):
    PENDING = "pending"
    CORE_GENERATED = "core_generated"
    CONVERSATIONS_GENERATED = "conversations_generated"
    ACCEPTED = "accepted"
    ABANDONED = "abandoned"
    TIMED_OUT = "timed_out"

    @property
    def terminal(self) -> bool:
        return self in (UseCaseState.ACCEPTED, UseCaseState.ABANDONED, UseCaseState.TIMED_OUT)


@dataclass
class UseCaseOutcome:
    """Where a use case ended up.

    Attributes:
        use_case: The processed use case
        state: Terminal state after ``process`` returns
        item: The accepted item (ACCEPTED only)
        attempts: Outer attempts started
        error: Error of the last failed attempt
        verification: Result of the last verification run
    """

    use_case: EvidenceUseCase
    state: UseCaseState = UseCaseState.PENDING
    item: EvidenceItem | None = None
    attempts: int = 0
    error: GenerationError | None = None
    verification: CompositeVerificationResult | None = None

    @property
    def accepted(self) -> bool:
        return self.state is UseCaseState.ACCEPTED


class EvidencePipeline:
    """Generates one verified evidence item per use case.

    Args:
        strategy: Evidence type
        client: Generation model(s) for cores and conversations
        executor: Verification executor (owns the judge and the matcher)
        config: Retry budgets and timeouts
        stats: Shared run statistics
        clock: Monotonic time source for the use case deadline
        sleep: Backoff sleep, injected for tests
        abort: Set by the supervisor to stop work after a systemic failure
    """

    def __init__(
        self,
        strategy: EvidenceTypeStrategy,
        client: LLMClient,
        executor: VerificationExecutor,
        config: PipelineConfig | None = None,
        stats: GenerationStats | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        abort: threading.Event | None = None,
    ):
        self.strategy = strategy
        self.executor = executor
        self.abort = abort
        self.config = config or PipelineConfig()
        self.stats = stats or GenerationStats(evidence_count=strategy.evidence_count)
        self.clock = clock
        self.sleep = sleep
        self.core_builder = EvidenceCoreBuilder(client, strategy)
        self.embedder = ConversationEmbedder(client, strategy, executor.validator, self.stats)
        self.checks = strategy.verification_checks()
        self.evaluation = strategy.answering_evaluation()

    def _aborted(self, outcome: UseCaseOutcome) -> bool:
        if self.abort is None or not self.abort.is_set():
            return False
        outcome.state = UseCaseState.ABANDONED
        logger.debug("Use case %d stopped: run aborted", outcome.use_case.id)
        return True

    def _deadline(self) -> float | None:
        timeout = self.config.timeouts.use_case_timeout_s
        return self.clock() + timeout if timeout is not None else None

    def _assemble(
        self, persona: Persona, use_case: EvidenceUseCase, core: EvidenceCore, conversations
    ) -> EvidenceItem:
        return EvidenceItem(
            question=core.question,
            answer=core.answer,
            message_evidences=core.message_evidences,
            conversations=conversations,
            category=use_case.category,
            scenario_description=use_case.scenario_description,
            person_id=persona.id,
            use_case_model_name=use_case.model_name,
            core_model_name=core.model_name,
        )

    def _record_accepted(self, item: EvidenceItem, attempts: int) -> None:
        stats = self.stats
        stats.record_model("use_case", item.use_case_model_name)
        stats.record_model("core", item.core_model_name)
        for conversation in item.conversations:
            stats.record_model("conversation", conversation.model_name)
        stats.increment("verification_passes")
        stats.increment("evidence_items_completed")
        stats.increment("total_retry_attempts", attempts)
        if attempts > 1:
            stats.increment("successful_evidence_retries")

    def _fail_fatal(self, persona: Persona, error: GenerationError, attempt: int) -> None:
        early = (
            self.stats.people_completed == 0
            and attempt <= self.config.generation.early_failure_attempts
        )
        if early:
            raise SystemicFailureError(
                f"Early failure in {self.strategy.display_name} evidence generation for "
                f"{persona.primitive_role_name} on attempt {attempt}: {error}"
            )
        raise GenerationFailed(error)

    def process(self, persona: Persona, use_case: EvidenceUseCase) -> UseCaseOutcome:
        """Drive one use case to a terminal state.

        Raises:
            SystemicFailureError: Fatal error before any person completed.
            GenerationFailed: Any other fatal error.
        """
        retry_cfg = self.config.retry
        policy = retry_cfg.policy()
        delays = policy.delays()
        deadline = self._deadline()
        outcome = UseCaseOutcome(use_case)
        core_generated = False
        conversations_generated = False

        for attempt in range(1, retry_cfg.evidence_max_retries + 1):
            if self._aborted(outcome):
                return outcome
            if deadline is not None and self.clock() > deadline:
                self.stats.increment("use_cases_timed_out")
                if core_generated:
                    self.stats.increment("abandoned_evidence_cores")
                logger.info(
                    "Use case %d for %s timed out after %d attempts",
                    use_case.id, persona.primitive_role_name, outcome.attempts,
                )
                outcome.state = UseCaseState.TIMED_OUT
                return outcome
            outcome.attempts = attempt

            core_result = self.core_builder.build(persona, use_case)
            if not core_result.ok:
                error = core_result.error
            else:
                core = core_result.unwrap()
                outcome.state = UseCaseState.CORE_GENERATED
                if not core_generated:
                    self.stats.increment("evidence_cores_generated")
                    core_generated = True
                if self._aborted(outcome):
                    return outcome

                conversations_result = retry_result(
                    lambda: self.embedder.embed(persona, use_case, core),
                    retry_cfg.conversation_max_retries,
                    policy,
                    sleep=self.sleep,
                )
                if not conversations_result.ok:
                    error = conversations_result.error
                else:
                    outcome.state = UseCaseState.CONVERSATIONS_GENERATED
                    if not conversations_generated:
                        self.stats.increment("conversations_generated")
                        conversations_generated = True

                    item = self._assemble(persona, use_case, core, conversations_result.unwrap())
                    verification = self.executor.execute(
                        item, self.checks, self.stats, self.evaluation
                    )
                    outcome.verification = verification
                    self.stats.increment("verification_attempts")
                    if verification.passed:
                        self._record_accepted(item, attempt)
                        outcome.state = UseCaseState.ACCEPTED
                        outcome.item = item
                        outcome.error = None
                        if attempt > 1:
                            logger.debug(
                                "%s evidence verified on attempt %d for %s",
                                self.strategy.display_name, attempt, persona.primitive_role_name,
                            )
                        return outcome

                    self.stats.increment("verification_failures")
                    reason = verification.failure_reason or (
                        f"Expected: {item.answer!r}, Got: {verification.last_model_answer!r}"
                    )
                    error = GenerationError.transient(
                        f"Failed verification. {reason}", VERIFICATION_FAILED
                    )

            outcome.error = error
            if error.is_fatal:
                self._fail_fatal(persona, error, attempt)
            if attempt > retry_cfg.log_threshold:
                logger.warning(
                    "%s evidence attempt %d failed for %s: %s",
                    self.strategy.display_name, attempt, persona.primitive_role_name, error,
                )
            else:
                logger.debug("Attempt %d for use case %d failed: %s", attempt, use_case.id, error)
            if attempt < retry_cfg.evidence_max_retries:
                self.sleep(next(delays))

        if core_generated:
            self.stats.increment("abandoned_evidence_cores")
        outcome.state = UseCaseState.ABANDONED
        logger.debug(
            "Abandoned use case %d for %s after %d attempts: %s",
            use_case.id, persona.primitive_role_name, outcome.attempts, outcome.error,
        )
        return outcome


__all__ = ["UseCaseState", "UseCaseOutcome", "EvidencePipeline", "VERIFICATION_FAILED"]
