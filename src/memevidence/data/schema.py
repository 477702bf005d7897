"""Data model for evidence generation.

The dataclasses mirror the persisted JSON one-to-one: ``to_dict`` emits
the wire field names (``message_evidences``, ``containsEvidence``,
``personId``...) and ``from_dict`` parses them back, raising SchemaError
on anything that does not fit. LLM responses are decoded through the same
``from_dict`` functions, so a schema violation in a model reply and a
corrupt file surface the same way.

Public API:
    SchemaError: Raised for JSON that does not match the schema
    Persona: Who the User in generated conversations is
    Message: One (speaker, text) turn
    Conversation: Ordered messages plus bookkeeping
    EvidenceUseCase: One scenario description
    EvidenceCore: Question, answer and the evidence messages
    EvidenceItem: Accepted dataset unit
    EvidencePayload: File-level container with checkpoint
    parse_use_cases / parse_conversations: Decode LLM reply containers
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Any

USER = "User"
ASSISTANT = "Assistant"
VALID_SPEAKERS = frozenset({"user", "assistant"})


class SchemaError(ValueError):
    """JSON data does not match the expected schema."""


def _require(data: Any, key: str, kind: type | tuple[type, ...] = str) -> Any:
    if not isinstance(data, dict):
        raise SchemaError(f"Expected object with '{key}', got {type(data).__name__}")
    if key not in data or data[key] is None:
        raise SchemaError(f"Missing required field '{key}'")
    value = data[key]
    if not isinstance(value, kind):
        raise SchemaError(f"Field '{key}' has type {type(value).__name__}")
    return value


def _drop_none(d: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


@dataclass(frozen=True)
class Persona:
    """A user profile; created at load time, never mutated."""

    category: str
    role_name: str
    description: str
    background: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def primitive_role_name(self) -> str:
        """Role name safe for filenames: spaces to underscores, other symbols dropped."""
        underscored = self.role_name.replace(" ", "_")
        return "".join(c for c in underscored if c.isalnum() or c == "_")

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "category": self.category,
            "role_name": self.role_name,
            "description": self.description,
            "background": self.background,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Persona:
        kwargs: dict[str, Any] = {
            "category": _require(data, "category"),
            "role_name": _require(data, "role_name"),
            "description": _require(data, "description"),
            "background": data.get("background"),
        }
        if data.get("id"):
            kwargs["id"] = str(data["id"])
        return cls(**kwargs)


@dataclass(frozen=True)
class Message:
    speaker: str
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"speaker": self.speaker, "text": self.text}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        return cls(speaker=_require(data, "speaker"), text=_require(data, "text"))


@dataclass
class Conversation:
    """Ordered messages between User and Assistant."""

    messages: list[Message]
    id: str | None = None
    contains_evidence: bool | None = None
    model_name: str | None = None

    def stamped(self, model_name: str | None = None) -> Conversation:
        """Copy with a fresh id and the evidence flag set."""
        return replace(
            self,
            id=str(uuid.uuid4()),
            contains_evidence=True,
            model_name=model_name or self.model_name,
        )

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "messages": [m.to_dict() for m in self.messages],
            "id": self.id,
            "containsEvidence": self.contains_evidence,
            "model_name": self.model_name,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Conversation:
        messages = _require(data, "messages", list)
        return cls(
            messages=[Message.from_dict(m) for m in messages],
            id=data.get("id"),
            contains_evidence=data.get("containsEvidence"),
            model_name=data.get("model_name"),
        )


@dataclass
class EvidenceUseCase:
    id: int
    category: str
    scenario_description: str
    model_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "category": self.category,
            "scenario_description": self.scenario_description,
            "model_name": self.model_name,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EvidenceUseCase:
        raw_id = _require(data, "id", (int, str))
        try:
            use_case_id = int(raw_id)
        except ValueError as e:
            raise SchemaError(f"Use case id is not an integer: {raw_id!r}") from e
        return cls(
            id=use_case_id,
            category=_require(data, "category"),
            scenario_description=_require(data, "scenario_description"),
            model_name=data.get("model_name"),
        )


@dataclass
class EvidenceCore:
    """Question, answer and the evidence messages before embedding."""

    question: str
    answer: str
    message_evidences: list[Message]
    model_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "question": self.question,
            "answer": self.answer,
            "message_evidences": [m.to_dict() for m in self.message_evidences],
            "model_name": self.model_name,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EvidenceCore:
        evidences = _require(data, "message_evidences", list)
        return cls(
            question=_require(data, "question"),
            answer=_require(data, "answer"),
            message_evidences=[Message.from_dict(m) for m in evidences],
            model_name=data.get("model_name"),
        )


@dataclass
class EvidenceItem:
    """Accepted unit of the dataset.

    Conversation ``i`` carries evidence message ``i`` and no other.
    """

    question: str
    answer: str
    message_evidences: list[Message]
    conversations: list[Conversation]
    category: str
    scenario_description: str | None = None
    person_id: str | None = None
    use_case_model_name: str | None = None
    core_model_name: str | None = None

    def with_conversations(self, conversations: list[Conversation]) -> EvidenceItem:
        return replace(self, conversations=list(conversations))

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "question": self.question,
            "answer": self.answer,
            "message_evidences": [m.to_dict() for m in self.message_evidences],
            "conversations": [c.to_dict() for c in self.conversations],
            "category": self.category,
            "scenario_description": self.scenario_description,
            "personId": self.person_id,
            "use_case_model_name": self.use_case_model_name,
            "core_model_name": self.core_model_name,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EvidenceItem:
        return cls(
            question=_require(data, "question"),
            answer=_require(data, "answer"),
            message_evidences=[
                Message.from_dict(m) for m in _require(data, "message_evidences", list)
            ],
            conversations=[
                Conversation.from_dict(c) for c in _require(data, "conversations", list)
            ],
            category=_require(data, "category"),
            scenario_description=data.get("scenario_description"),
            person_id=data.get("personId"),
            use_case_model_name=data.get("use_case_model_name"),
            core_model_name=data.get("core_model_name"),
        )


@dataclass
class EvidencePayload:
    """Contents of one per-person evidence file."""

    evidence_items: list[EvidenceItem] = field(default_factory=list)
    checkpoint: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "evidence_items": [i.to_dict() for i in self.evidence_items],
            "checkpoint": self.checkpoint,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EvidencePayload:
        items = _require(data, "evidence_items", list)
        return cls(
            evidence_items=[EvidenceItem.from_dict(i) for i in items],
            checkpoint=data.get("checkpoint"),
        )


def parse_use_cases(data: dict[str, Any]) -> list[EvidenceUseCase]:
    """Decode an ``{"use_cases": [...]}`` reply."""
    return [EvidenceUseCase.from_dict(u) for u in _require(data, "use_cases", list)]


def parse_conversations(data: dict[str, Any]) -> list[Conversation]:
    """Decode a ``{"conversations": [...]}`` reply."""
    return [Conversation.from_dict(c) for c in _require(data, "conversations", list)]


__all__ = [
    "USER",
    "ASSISTANT",
    "VALID_SPEAKERS",
    "SchemaError",
    "Persona",
    "Message",
    "Conversation",
    "EvidenceUseCase",
    "EvidenceCore",
    "EvidenceItem",
    "EvidencePayload",
    "parse_use_cases",
    "parse_conversations",
]
