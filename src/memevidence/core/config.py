"""Pipeline configuration.

Configuration lives in plain dataclasses with production defaults. A YAML
file can override any section, and a few environment variables override
model choices so that a run can be redirected without editing files.

Example YAML::

    retry:
      evidence_max_retries: 8
    matching:
      fuzzy_ratio: 0.2
    verification:
      extensive: true
      judge_models: [claude-haiku-4-5, claude-sonnet-4-5-20250929]

Public API:
    PipelineConfig: Complete configuration (one attribute per section)
    load_config: Build a PipelineConfig from defaults, YAML and environment
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .retry import BackoffPolicy

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

# Target dataset size per evidence count; counts not listed fall back to
# GenerationConfig.default_expected_total.
_EXPECTED_EVIDENCE_TOTALS = {1: 5000, 2: 3000, 3: 2000, 4: 1000, 5: 500, 6: 500}


@dataclass
class RetryConfig:
    """Attempt budgets and backoff schedule."""

    evidence_max_retries: int = 5
    use_case_max_retries: int = 10
    conversation_max_retries: int = 10
    judge_max_retries: int = 3
    initial_delay_s: float = 1.0
    max_delay_s: float = 20.0
    log_threshold: int = 10

    def policy(self) -> BackoffPolicy:
        return BackoffPolicy(
            initial_delay=self.initial_delay_s,
            max_delay=self.max_delay_s,
            log_threshold=self.log_threshold,
        )


@dataclass
class ThreadingConfig:
    person_threads: int = 100
    use_case_threads: int = 100
    stats_interval_s: float = 10.0


@dataclass
class TimeoutConfig:
    """Cooperative deadlines for people and use cases."""

    person_timeout_hours: float = 10.0
    use_case_timeout_minutes: float = 120.0
    enable_person_timeout: bool = True
    enable_use_case_timeout: bool = True

    @property
    def person_timeout_s(self) -> float | None:
        return self.person_timeout_hours * 3600 if self.enable_person_timeout else None

    @property
    def use_case_timeout_s(self) -> float | None:
        return self.use_case_timeout_minutes * 60 if self.enable_use_case_timeout else None


@dataclass
class MatchingConfig:
    """Thresholds for the three-tier evidence matcher.

    Attributes:
        partial_min_ratio: A message contained in the evidence must be at
            least this fraction of the evidence length
        fuzzy_min_distance: Floor for the edit-distance tolerance
        fuzzy_ratio: Edit-distance tolerance as a fraction of evidence length
        near_miss_factor: Distances up to threshold * factor are logged
    """

    partial_min_ratio: float = 0.8
    fuzzy_min_distance: int = 10
    fuzzy_ratio: float = 0.15
    near_miss_factor: float = 1.5

    def fuzzy_threshold(self, evidence_length: int) -> int:
        return max(self.fuzzy_min_distance, int(evidence_length * self.fuzzy_ratio))


@dataclass
class VerificationConfig:
    consecutive_passes: int = 2
    extensive: bool = False
    extensive_passes: int = 3
    judge_models: list[str] = field(default_factory=list)

    @property
    def required_passes(self) -> int:
        return self.extensive_passes if self.extensive else self.consecutive_passes


@dataclass
class GenerationConfig:
    """Run sizing, circuit breaker thresholds and output layout."""

    people_to_process: int = 50
    use_cases_per_person: int | None = None
    expected_evidence_totals: dict[int, int] = field(
        default_factory=lambda: dict(_EXPECTED_EVIDENCE_TOTALS)
    )
    default_expected_total: int = 100
    probe_batch_size: int = 3
    probe_min_completed: int = 2
    fatal_failure_rate: float = 0.96
    warning_failure_rate: float = 0.7
    early_failure_attempts: int = 3
    max_catalog_calls: int = 10
    output_root: str = "data/evidence"
    version: str = "default"

    def expected_total(self, evidence_count: int) -> int:
        return self.expected_evidence_totals.get(evidence_count, self.default_expected_total)


@dataclass
class LLMConfig:
    generation_models: list[str] = field(default_factory=lambda: [DEFAULT_MODEL])
    judge_model: str = DEFAULT_MODEL
    max_tokens: int = 16000
    judge_max_tokens: int = 1024


@dataclass
class PipelineConfig:
    """Complete pipeline configuration."""

    retry: RetryConfig = field(default_factory=RetryConfig)
    threading: ThreadingConfig = field(default_factory=ThreadingConfig)
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    verification: VerificationConfig = field(default_factory=VerificationConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)

    def validate(self) -> list[str]:
        """Return a list of validation errors (empty = valid)."""
        errors: list[str] = []
        for name in ("evidence_max_retries", "use_case_max_retries", "conversation_max_retries"):
            if getattr(self.retry, name) < 1:
                errors.append(f"retry.{name} must be >= 1, got {getattr(self.retry, name)}")
        if self.retry.max_delay_s < self.retry.initial_delay_s:
            errors.append("retry.max_delay_s must be >= retry.initial_delay_s")
        if self.threading.person_threads < 1 or self.threading.use_case_threads < 1:
            errors.append("threading pool sizes must be >= 1")
        if not 0.0 < self.matching.partial_min_ratio <= 1.0:
            errors.append(
                f"matching.partial_min_ratio must be in (0, 1], got {self.matching.partial_min_ratio}"
            )
        if self.matching.fuzzy_min_distance < 0 or self.matching.fuzzy_ratio < 0:
            errors.append("matching fuzzy thresholds must be non-negative")
        if self.verification.consecutive_passes < 1 or self.verification.extensive_passes < 1:
            errors.append("verification pass counts must be >= 1")
        if not 0.0 <= self.generation.warning_failure_rate <= self.generation.fatal_failure_rate <= 1.0:
            errors.append("generation failure rates must satisfy 0 <= warning <= fatal <= 1")
        if self.generation.max_catalog_calls < 1:
            errors.append("generation.max_catalog_calls must be >= 1")
        if not self.llm.generation_models:
            errors.append("llm.generation_models must not be empty")
        return errors


def _merge(target: Any, raw: dict, section: str) -> None:
    """Copy known keys from a YAML mapping onto a section dataclass."""
    for key, value in raw.items():
        if not hasattr(target, key):
            logger.warning("Ignoring unknown config key %s.%s", section, key)
            continue
        if key == "expected_evidence_totals":
            value = {int(k): int(v) for k, v in value.items()}
        setattr(target, key, value)


def _apply_env(config: PipelineConfig) -> None:
    generation = os.environ.get("GENERATION_MODEL")
    if generation:
        config.llm.generation_models = [m.strip() for m in generation.split(",") if m.strip()]
    judge = os.environ.get("GRADER_MODEL")
    if judge:
        config.llm.judge_model = judge


def load_config(path: str | Path | None = None) -> PipelineConfig:
    """Load configuration from defaults, an optional YAML file and the environment.

    Args:
        path: YAML file with section overrides. None uses defaults only.

    Returns:
        Populated PipelineConfig.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If the YAML is not a mapping or the result is invalid.
    """
    config = PipelineConfig()

    if path is not None:
        yaml_path = Path(path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")
        with open(yaml_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Expected YAML dict in {yaml_path}, got {type(data).__name__}")
        for section, raw in data.items():
            target = getattr(config, section, None)
            if target is None or not isinstance(raw, dict):
                logger.warning("Ignoring unknown config section %r in %s", section, yaml_path)
                continue
            _merge(target, raw, section)
        logger.debug("Loaded config overrides from %s", yaml_path)

    _apply_env(config)

    errors = config.validate()
    if errors:
        raise ValueError("Invalid configuration: " + "; ".join(errors))
    return config


__all__ = [
    "DEFAULT_MODEL",
    "RetryConfig",
    "ThreadingConfig",
    "TimeoutConfig",
    "MatchingConfig",
    "VerificationConfig",
    "GenerationConfig",
    "LLMConfig",
    "PipelineConfig",
    "load_config",
]
