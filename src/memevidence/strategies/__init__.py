"""Evidence type strategies and their registry."""

from __future__ import annotations

from .base import EvidenceTypeStrategy
from .types import (
    STRATEGIES,
    AbstentionStrategy,
    AssistantFactsStrategy,
    ChangingStrategy,
    ImplicitConnectionStrategy,
    PreferenceStrategy,
    TemporalStrategy,
    UserFactsStrategy,
    get_strategy,
)

__all__ = [
    "EvidenceTypeStrategy",
    "UserFactsStrategy",
    "ChangingStrategy",
    "AbstentionStrategy",
    "AssistantFactsStrategy",
    "PreferenceStrategy",
    "ImplicitConnectionStrategy",
    "TemporalStrategy",
    "STRATEGIES",
    "get_strategy",
]
