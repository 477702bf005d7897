"""Data model and persona loading."""

from __future__ import annotations

from .personas import load_personas
from .schema import (
    ASSISTANT,
    USER,
    Conversation,
    EvidenceCore,
    EvidenceItem,
    EvidencePayload,
    EvidenceUseCase,
    Message,
    Persona,
    SchemaError,
)

__all__ = [
    "USER",
    "ASSISTANT",
    "Conversation",
    "EvidenceCore",
    "EvidenceItem",
    "EvidencePayload",
    "EvidenceUseCase",
    "Message",
    "Persona",
    "SchemaError",
    "load_personas",
]
