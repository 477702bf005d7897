"""Results, retry, configuration and statistics shared by every stage."""

from __future__ import annotations

from .config import PipelineConfig, load_config
from .result import (
    ErrorKind,
    GenerationError,
    GenerationFailed,
    Result,
    SystemicFailureError,
    err,
    ok,
)
from .retry import BackoffPolicy, retry, retry_result
from .stats import GenerationStats, StatsReporter

__all__ = [
    "PipelineConfig",
    "load_config",
    "ErrorKind",
    "GenerationError",
    "GenerationFailed",
    "Result",
    "SystemicFailureError",
    "ok",
    "err",
    "BackoffPolicy",
    "retry",
    "retry_result",
    "GenerationStats",
    "StatsReporter",
]
