"""Run-level orchestration: people, use cases, circuit breakers, persistence.

Philosophy:
- Two thread pools: people in parallel, and each person's use cases in parallel
- Fail fast on systemic problems: a small probe batch of people runs first,
  and a person whose use cases (nearly) all fail stops the run
- Abandonment of single use cases is normal and only counted; so is a
  person whose use case catalog cannot be built
- A run-ending failure sets one abort flag that every worker checks
- Top up, never regenerate: people with the fewest stored items go first
  and only the missing items are generated

Public API:
    PersonResult: Outcome of one person
    GenerationSupervisor: Runs a whole generation
"""

from __future__ import annotations

import logging
import math
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from ..core.config import PipelineConfig
from ..core.result import GenerationFailed, SystemicFailureError
from ..core.stats import GenerationStats, StatsReporter
from ..data.schema import EvidenceItem, Persona
from ..llm.client import LLMClient, MissingAPIKeyError
from ..strategies.base import EvidenceTypeStrategy
from ..verification.executor import VerificationExecutor
from .catalog import ScenarioCatalog
from .persistence import (
    count_existing_evidence_per_person,
    evidence_dir,
    save_evidence_to_file,
    select_people_by_existing_evidence,
)
from .pipeline import EvidencePipeline, UseCaseOutcome

logger = logging.getLogger(__name__)


@dataclass
class PersonResult:
    """What happened for one person."""

    persona: Persona
    use_case_count: int
    items: list[EvidenceItem] = field(default_factory=list)
    outcomes: list[UseCaseOutcome] = field(default_factory=list)
    timed_out: bool = False
    output_path: Path | None = None

    @property
    def failure_rate(self) -> float:
        if self.use_case_count == 0:
            return 0.0
        return (self.use_case_count - len(self.items)) / self.use_case_count


class GenerationSupervisor:
    """Generates evidence for a set of people.

    Args:
        strategy: Evidence type
        client: Generation model(s)
        executor: Verification executor
        config: Full pipeline configuration
        stats: Shared statistics (a fresh instance by default)
        reporter: Periodic stats reporter, stopped when the run ends
        output_dir: Overrides ``{output_root}/{type}/{n}_evidence/{version}``
        checkpoint: Commit stamped on saved files (looked up when None)
        clock: Monotonic time source for the person deadline
        sleep: Backoff sleep, injected for tests
    """

    def __init__(
        self,
        strategy: EvidenceTypeStrategy,
        client: LLMClient,
        executor: VerificationExecutor,
        config: PipelineConfig | None = None,
        stats: GenerationStats | None = None,
        reporter: StatsReporter | None = None,
        output_dir: str | Path | None = None,
        checkpoint: str | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.strategy = strategy
        self.config = config or PipelineConfig()
        self.stats = stats or GenerationStats(evidence_count=strategy.evidence_count)
        self.reporter = reporter
        gen = self.config.generation
        self.output_dir = (
            Path(output_dir)
            if output_dir is not None
            else evidence_dir(gen.output_root, strategy, gen.version)
        )
        self.checkpoint = checkpoint
        self.clock = clock
        self.abort = threading.Event()
        self.catalog = ScenarioCatalog(client, strategy, self.config.retry, gen.max_catalog_calls)
        self.pipeline = EvidencePipeline(
            strategy, client, executor, self.config, self.stats,
            clock=clock, sleep=sleep, abort=self.abort,
        )

    # -- planning ----------------------------------------------------------

    def use_cases_per_person(self) -> int:
        gen = self.config.generation
        if gen.use_cases_per_person is not None:
            return gen.use_cases_per_person
        total = gen.expected_total(self.strategy.expected_total_key())
        return math.ceil(total / max(gen.people_to_process, 1))

    def plan(self, people: list[Persona]) -> list[tuple[Persona, int]]:
        """People to process with the number of items each still needs."""
        counts = count_existing_evidence_per_person(self.output_dir)
        selected = select_people_by_existing_evidence(
            people, counts, self.config.generation.people_to_process
        )
        target = self.use_cases_per_person()
        plan = [(p, max(0, target - counts.get(p.id, 0))) for p in selected]
        if counts:
            for person, needed in plan[:5]:
                logger.info(
                    "%s: %d existing, %d needed",
                    person.primitive_role_name, counts.get(person.id, 0), needed,
                )
        return [(p, n) for p, n in plan if n > 0]

    # -- per person --------------------------------------------------------

    def _systemic(self, message: str) -> SystemicFailureError:
        self.abort.set()
        return SystemicFailureError(message)

    def _person_failed(self, result: PersonResult, error: Exception) -> PersonResult:
        logger.warning(
            "Skipping %s: use case generation failed: %s", result.persona.primitive_role_name, error
        )
        self.stats.increment("people_failed")
        return result

    def process_person(self, persona: Persona, target: int) -> PersonResult:
        """Generate, process and persist ``target`` use cases for ``persona``.

        A catalog that cannot be built (shortfall or exhausted retries) fails
        only this person. Once the run is aborted nothing new starts and
        nothing is saved.

        Raises:
            SystemicFailureError: All use cases failed, or more than the fatal
                failure rate did, without a timeout.
            GenerationFailed: A fatal error from the catalog or a stage.
            MissingAPIKeyError: No API key for the generation model.
        """
        cfg = self.config
        name = persona.primitive_role_name
        result = PersonResult(persona, 0)
        if self.abort.is_set():
            return result
        timeout = cfg.timeouts.person_timeout_s
        deadline = self.clock() + timeout if timeout is not None else None

        try:
            use_cases = self.catalog.generate(persona, target)
        except MissingAPIKeyError:
            raise
        except GenerationFailed as e:
            if e.error.is_fatal:
                raise
            return self._person_failed(result, e)
        except Exception as e:
            return self._person_failed(result, e)
        self.stats.increment("use_cases_completed", len(use_cases))
        result.use_case_count = len(use_cases)
        timed_out = threading.Event()

        def work(use_case) -> UseCaseOutcome | None:
            if self.abort.is_set():
                return None
            if timed_out.is_set() or (deadline is not None and self.clock() > deadline):
                timed_out.set()
                return None
            return self.pipeline.process(persona, use_case)

        if use_cases:
            workers = min(cfg.threading.use_case_threads, len(use_cases))
            pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="use-case")
            try:
                futures = [pool.submit(work, uc) for uc in use_cases]
                for future in as_completed(futures):
                    outcome = future.result()
                    if outcome is None:
                        continue
                    result.outcomes.append(outcome)
                    if outcome.accepted and outcome.item is not None:
                        result.items.append(outcome.item)
            except BaseException:
                self.abort.set()
                pool.shutdown(wait=False, cancel_futures=True)
                raise
            pool.shutdown(wait=True)

        if self.abort.is_set():
            logger.info("Run aborted, not saving %d items for %s", len(result.items), name)
            return result

        result.timed_out = timed_out.is_set()
        if result.timed_out:
            logger.warning(
                "Person %s timed out after %.1f hours: %d/%d use cases completed",
                name, cfg.timeouts.person_timeout_hours, len(result.items), len(use_cases),
            )
            self.stats.increment("people_timed_out")
        else:
            self._check_failure_rate(result)

        if result.items and not self.abort.is_set():
            result.output_path = save_evidence_to_file(
                persona, result.items, self.output_dir, checkpoint=self.checkpoint
            )
            self.stats.increment("files_generated")

        self.stats.increment("people_completed")
        logger.debug(
            "%s: %d/%d use cases succeeded", name, len(result.items), result.use_case_count
        )
        return result

    def _check_failure_rate(self, result: PersonResult) -> None:
        gen = self.config.generation
        name = result.persona.primitive_role_name
        failed = result.use_case_count - len(result.items)
        pct = int(result.failure_rate * 100)
        if result.use_case_count and not result.items:
            raise self._systemic(
                f"All {result.use_case_count} use cases failed for {name}. This indicates a "
                "systemic problem (API issues, schema problems, etc.)."
            )
        if result.failure_rate > gen.fatal_failure_rate:
            raise self._systemic(
                f"Critical failure rate for {name}: {pct}% of use cases failed "
                f"({failed}/{result.use_case_count})."
            )
        if result.failure_rate > gen.warning_failure_rate:
            logger.warning(
                "High failure rate for %s: %d%% of use cases failed (%d/%d)",
                name, pct, failed, result.use_case_count,
            )

    # -- run ---------------------------------------------------------------

    def _run_people(self, batch: list[tuple[Persona, int]], probe: bool = False) -> list[PersonResult]:
        gen = self.config.generation
        results: list[PersonResult] = []
        workers = min(self.config.threading.person_threads, len(batch))
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="person")
        try:
            futures: dict[Future, Persona] = {
                pool.submit(self.process_person, person, needed): person for person, needed in batch
            }
            for future in as_completed(futures):
                results.append(future.result())
                processed = self.stats.people_completed + self.stats.people_failed
                if (
                    probe
                    and processed >= gen.probe_min_completed
                    and self.stats.evidence_items_completed == 0
                ):
                    raise self._systemic(
                        f"No evidence generated after processing {processed} "
                        "people. Stopping to avoid wasting time on a systemic problem."
                    )
        except BaseException:
            self.abort.set()
            pool.shutdown(wait=False, cancel_futures=True)
            raise
        pool.shutdown(wait=True)
        return results

    def run(self, people: list[Persona]) -> list[PersonResult]:
        """Generate evidence for the people that need it most.

        A summary is printed whether the run succeeds or not. A run-ending
        error sets ``abort`` first, so workers still in flight stop at their
        next attempt and save nothing.

        Raises:
            SystemicFailureError: A circuit breaker tripped.
            GenerationFailed: A fatal error surfaced from a stage.
            MissingAPIKeyError: No API key for the generation model.
        """
        gen = self.config.generation
        self.abort.clear()
        plan = self.plan(people)
        if not plan:
            print(
                f"All selected people already have {self.use_cases_per_person()} or more "
                f"evidence items in {self.output_dir}. Nothing to generate."
            )
            return []

        self.stats.set_totals(len(plan), sum(n for _, n in plan))
        logger.info(
            "Generating %s evidence (%d evidence each) for %d people into %s",
            self.strategy.display_name, self.strategy.evidence_count, len(plan), self.output_dir,
        )
        if self.reporter is not None:
            self.reporter.start()

        results: list[PersonResult] = []
        try:
            probe, remaining = plan[: gen.probe_batch_size], plan[gen.probe_batch_size :]
            results.extend(self._run_people(probe, probe=True))
            if remaining:
                logger.info(
                    "First batch processed successfully, continuing with remaining %d people",
                    len(remaining),
                )
                results.extend(self._run_people(remaining))
        except SystemicFailureError as e:
            logger.error("Systemic failure: %s", e)
            print(f"\nSYSTEMIC FAILURE: {e}")
            raise
        finally:
            if self.reporter is not None:
                self.reporter.stop(final=False)
            self.print_summary()
        return results

    def print_summary(self) -> None:
        print("\n" + "=" * 70)
        print("GENERATION COMPLETE")
        print("=" * 70)
        print(self.stats.snapshot())
        print(f"Output: {self.output_dir}")
        print("=" * 70)


__all__ = ["PersonResult", "GenerationSupervisor"]
