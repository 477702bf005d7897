"""Explicit success/failure values for pipeline stages.

Every generation stage returns a ``Result`` instead of raising, so the
retry wrapper and the supervisor can tell a transient failure (malformed
JSON, schema violation, misplaced evidence) from a fatal one (missing API
key, broken configuration) by looking at the value, not at exception types.

Philosophy:
- Failures are data: kind, message and an optional category for stats
- Exceptions only at the process edge (unwrap, circuit breaker)
- Small surface: ok(), err(), unwrap()

Public API:
    ErrorKind: TRANSIENT or FATAL
    GenerationError: Failure description carried by a Result
    Result: Success value or GenerationError
    GenerationFailed: Raised when a failed Result is unwrapped
    SystemicFailureError: Raised when the whole run must abort
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")


class ErrorKind(str, Enum):
    """How the caller should react to a failure."""

    TRANSIENT = "transient"  # regenerate / retry
    FATAL = "fatal"  # stop immediately


@dataclass(frozen=True)
class GenerationError:
    """A failed stage outcome.

    Attributes:
        kind: Whether retrying can help
        message: Human-readable description
        category: Optional machine-readable bucket (e.g. "evidence_not_found")
    """

    kind: ErrorKind
    message: str
    category: str | None = None

    @classmethod
    def transient(cls, message: str, category: str | None = None) -> GenerationError:
        return cls(ErrorKind.TRANSIENT, message, category)

    @classmethod
    def fatal(cls, message: str, category: str | None = None) -> GenerationError:
        return cls(ErrorKind.FATAL, message, category)

    @property
    def is_fatal(self) -> bool:
        return self.kind is ErrorKind.FATAL

    def __str__(self) -> str:
        prefix = f"[{self.category}] " if self.category else ""
        return f"{prefix}{self.message}"


class GenerationFailed(Exception):
    """Raised when a caller needs the value of a failed Result."""

    def __init__(self, error: GenerationError):
        super().__init__(str(error))
        self.error = error


class SystemicFailureError(RuntimeError):
    """The pipeline as a whole is broken (prompt, schema or configuration).

    Distinct from ordinary abandonment: raising this aborts the run.
    """


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or a GenerationError, never both."""

    value: T | None = None
    error: GenerationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or raise GenerationFailed."""
        if self.error is not None:
            raise GenerationFailed(self.error)
        return self.value  # type: ignore[return-value]

    def map(self, fn: Callable[[T], U]) -> Result[U]:
        if self.error is not None:
            return Result(error=self.error)
        return Result(value=fn(self.value))  # type: ignore[arg-type]


def ok(value: T) -> Result[T]:
    return Result(value=value)


def err(error: GenerationError) -> Result:
    return Result(error=error)


__all__ = [
    "ErrorKind",
    "GenerationError",
    "GenerationFailed",
    "SystemicFailureError",
    "Result",
    "ok",
    "err",
]
