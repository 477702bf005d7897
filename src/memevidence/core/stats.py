"""Thread-safe progress accounting for a generation run.

Workers in both thread pools update the same GenerationStats instance.
Every update happens under one lock, so counters and the per-check
``[attempts, passes]`` pairs never tear. ``snapshot()`` renders a tree
formatted report; ``StatsReporter`` logs it periodically from a daemon
thread until stopped.

Public API:
    GenerationStats: Counters, per-check and per-model breakdowns
    StatsReporter: Background periodic snapshot logging
    VALIDATION_CATEGORY_NAMES: Display names for validation failures
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

logger = logging.getLogger(__name__)

VALIDATION_CATEGORY_NAMES = {
    "invalid_speakers": "Invalid Speakers",
    "conversation_count_mismatch": "Count Mismatch",
    "evidence_not_found": "Evidence Not Found",
    "evidence_in_multiple_conversations": "Evidence Duplicated",
    "evidence_in_wrong_conversation": "Wrong Conversation Order",
}

_COUNTERS = (
    "people_completed",
    "use_cases_completed",
    "evidence_cores_generated",
    "conversations_generated",
    "evidence_items_completed",
    "files_generated",
    "verification_attempts",
    "verification_passes",
    "verification_failures",
    "abandoned_evidence_cores",
    "total_retry_attempts",
    "successful_evidence_retries",
    "conversation_validation_attempts",
    "conversation_validation_failures",
    "people_timed_out",
    "people_failed",
    "use_cases_timed_out",
    "input_tokens",
    "output_tokens",
)


def _pct(part: int, whole: int) -> str:
    return f"{part / whole * 100:.1f}%" if whole > 0 else "0.0%"


class GenerationStats:
    """Counters for one generation run.

    Args:
        total_people: People scheduled for this run
        total_use_cases: Use cases scheduled across all people
        evidence_count: Evidence messages per item (used in the title)
        clock: Monotonic time source, injected for tests
    """

    def __init__(
        self,
        total_people: int = 0,
        total_use_cases: int = 0,
        evidence_count: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.total_people = total_people
        self.total_use_cases = total_use_cases
        self.evidence_count = evidence_count
        self._clock = clock
        self._start = clock()
        self._lock = threading.Lock()
        self._counters: dict[str, int] = {name: 0 for name in _COUNTERS}
        self.verification_check_stats: dict[str, list[int]] = {}
        self.judge_model_stats: dict[str, list[int]] = {}
        self.validation_failure_categories: dict[str, int] = {}
        self.use_case_models: dict[str, int] = {}
        self.core_models: dict[str, int] = {}
        self.conversation_models: dict[str, int] = {}

    # -- updates -----------------------------------------------------------

    def increment(self, name: str, amount: int = 1) -> int:
        """Add ``amount`` to a named counter and return the new value."""
        if name not in self._counters:
            raise KeyError(f"Unknown counter: {name}")
        with self._lock:
            self._counters[name] += amount
            return self._counters[name]

    def get(self, name: str) -> int:
        with self._lock:
            return self._counters[name]

    def __getattr__(self, name: str) -> int:
        # Counters read as attributes: stats.people_completed
        counters = self.__dict__.get("_counters")
        if counters is not None and name in counters:
            return self.get(name)
        raise AttributeError(name)

    def set_totals(self, total_people: int, total_use_cases: int) -> None:
        with self._lock:
            self.total_people = total_people
            self.total_use_cases = total_use_cases

    def record_check_attempt(self, check_name: str) -> None:
        with self._lock:
            self.verification_check_stats.setdefault(check_name, [0, 0])[0] += 1

    def record_check_pass(self, check_name: str) -> None:
        with self._lock:
            self.verification_check_stats.setdefault(check_name, [0, 0])[1] += 1

    def record_check(self, check_name: str, passed: bool) -> None:
        """Count one attempt of ``check_name`` and, if it passed, one pass."""
        with self._lock:
            entry = self.verification_check_stats.setdefault(check_name, [0, 0])
            entry[0] += 1
            if passed:
                entry[1] += 1

    def record_judge_model(self, model_name: str, passed: bool) -> None:
        with self._lock:
            entry = self.judge_model_stats.setdefault(model_name, [0, 0])
            entry[0] += 1
            if passed:
                entry[1] += 1

    def record_validation_failures(self, categories: set[str] | list[str]) -> None:
        with self._lock:
            for category in categories:
                self.validation_failure_categories[category] = (
                    self.validation_failure_categories.get(category, 0) + 1
                )

    def record_model(self, stage: str, model_name: str | None) -> None:
        """Count one artifact produced by ``model_name`` at ``stage``.

        Stages: "use_case", "core", "conversation".
        """
        if not model_name:
            return
        target = {
            "use_case": self.use_case_models,
            "core": self.core_models,
            "conversation": self.conversation_models,
        }[stage]
        with self._lock:
            target[model_name] = target.get(model_name, 0) + 1

    def record_tokens(self, input_tokens: int, output_tokens: int) -> None:
        with self._lock:
            self._counters["input_tokens"] += input_tokens
            self._counters["output_tokens"] += output_tokens

    # -- reporting ---------------------------------------------------------

    @property
    def elapsed_s(self) -> float:
        return self._clock() - self._start

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "total_people": self.total_people,
                "total_use_cases": self.total_use_cases,
                "evidence_count": self.evidence_count,
                "elapsed_s": round(self.elapsed_s, 1),
                **dict(self._counters),
                "verification_check_stats": {
                    k: list(v) for k, v in self.verification_check_stats.items()
                },
                "judge_model_stats": {k: list(v) for k, v in self.judge_model_stats.items()},
                "validation_failure_categories": dict(self.validation_failure_categories),
                "use_case_models": dict(self.use_case_models),
                "core_models": dict(self.core_models),
                "conversation_models": dict(self.conversation_models),
            }

    def snapshot(self) -> str:
        """Human-readable point-in-time report."""
        d = self.to_dict()
        elapsed = max(d["elapsed_s"], 0.0)
        items = d["evidence_items_completed"]
        per_minute = items / elapsed * 60 if elapsed > 0 else 0.0
        cores_rate = d["evidence_cores_generated"] / elapsed if elapsed > 0 else 0.0
        convs_rate = d["conversations_generated"] / elapsed if elapsed > 0 else 0.0
        avg_retries = f"{d['total_retry_attempts'] / items:.1f}" if items else "0.0"

        lines = [f"{d['evidence_count']}-EVIDENCE GENERATION STATISTICS"]
        lines.append(self._progress("Use Cases", d["use_cases_completed"], d["total_use_cases"]))
        lines += self._model_lines(d["use_case_models"])
        lines.append(
            f"├─ {'Evidence Cores':<20} : {d['evidence_cores_generated']:4d} total "
            f"({cores_rate:.2f} cores/second)"
        )
        lines += self._model_lines(d["core_models"])
        lines.append(
            f"├─ {'Abandoned Cores':<20} : {d['abandoned_evidence_cores']:3d} "
            "(failed after all retries)"
        )
        lines.append(
            f"├─ {'Conversations':<20} : {d['conversations_generated']:4d} total "
            f"({convs_rate:.2f} conversations/second)"
        )
        lines += self._model_lines(d["conversation_models"])

        failures = d["conversation_validation_failures"]
        lines.append(
            f"├─ {'Validation Failures':<20} : {failures}/{d['conversation_validation_attempts']} "
            f"({_pct(failures, d['conversation_validation_attempts'])} failed)"
        )
        for category, count in sorted(
            d["validation_failure_categories"].items(), key=lambda kv: -kv[1]
        ):
            name = VALIDATION_CATEGORY_NAMES.get(category, category)
            lines.append(f"│  └─ {name:<25}: {count:4d} ({_pct(count, failures)})")

        lines.append(
            f"├─ {'Verification':<20} : {d['verification_passes']}/{d['verification_attempts']} "
            f"passed ({_pct(d['verification_passes'], d['verification_attempts'])})"
        )
        for check, (attempts, passes) in sorted(
            d["verification_check_stats"].items(), key=lambda kv: (-kv[1][0], -kv[1][1])
        ):
            lines.append(f"│  └─ {check:<20}: {passes}/{attempts} ({_pct(passes, attempts)})")
        for model, (attempts, passes) in sorted(
            d["judge_model_stats"].items(), key=lambda kv: (-kv[1][0], -kv[1][1])
        ):
            lines.append(f"│  └─ {model:<20}: {passes}/{attempts} ({_pct(passes, attempts)})")

        lines.append(
            f"├─ {'Evidence Items':<20} : {items:4d} total ({per_minute:.2f} evidence/minute)"
        )
        lines.append(f"├─ {'Avg Retry Attempts':<20} : {avg_retries} per successful evidence")
        lines.append(self._progress("People", d["people_completed"], d["total_people"]))
        if d["people_timed_out"]:
            lines.append(f"├─ {'People Timed Out':<20} : {d['people_timed_out']:3d}")
        if d["people_failed"]:
            lines.append(f"├─ {'People Failed':<20} : {d['people_failed']:3d}")
        if d["use_cases_timed_out"]:
            lines.append(f"├─ {'Use Cases Timed Out':<20} : {d['use_cases_timed_out']:3d}")
        lines.append(f"├─ {'Files':<20} : {d['files_generated']:3d} JSON files written")
        if d["input_tokens"] or d["output_tokens"]:
            lines.append(
                f"├─ {'Tokens':<20} : {d['input_tokens']} in / {d['output_tokens']} out"
            )

        remaining = (d["total_use_cases"] - d["abandoned_evidence_cores"]) - items
        if items > 0 and elapsed > 0 and remaining > 0:
            seconds = int(remaining * elapsed / items)
            eta = f"{seconds // 3600:02d}:{(seconds % 3600) // 60:02d}"
        elif items > 0 and remaining <= 0:
            eta = "00:00"
        else:
            eta = "--:--"
        lines.append(f"├─ {'Est. Time to Complete':<20}: {eta}")
        lines.append(f"└─ {'Runtime':<20} : {int(elapsed):3d} seconds")
        return "\n".join(lines)

    @staticmethod
    def _progress(label: str, completed: int, total: int) -> str:
        pct = completed / total * 100 if total > 0 else 0.0
        return f"├─ {label:<20} : {completed:3d} / {total:3d} completed ({pct:.1f}%)"

    @staticmethod
    def _model_lines(models: dict[str, int]) -> list[str]:
        total = sum(models.values())
        return [
            f"│  └─ {name:<20}: {count:4d} ({_pct(count, total)})"
            for name, count in sorted(models.items(), key=lambda kv: -kv[1])
        ]


class StatsReporter:
    """Logs ``stats.snapshot()`` every ``interval_s`` seconds on a daemon thread."""

    def __init__(self, stats: GenerationStats, interval_s: float = 10.0):
        self.stats = stats
        self.interval_s = interval_s
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="stats-reporter", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stop.wait(self.interval_s):
            logger.info("\n%s", self.stats.snapshot())

    def stop(self, final: bool = True) -> None:
        """Stop the thread; log one last snapshot when ``final``."""
        if self._thread is not None:
            self._stop.set()
            self._thread.join(timeout=self.interval_s + 1)
            self._thread = None
        if final:
            logger.info("\n%s", self.stats.snapshot())

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


__all__ = ["GenerationStats", "StatsReporter", "VALIDATION_CATEGORY_NAMES"]
