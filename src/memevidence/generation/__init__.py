"""Generation stages: catalog, core, conversations, validation, persistence.

The pipeline and supervisor depend on strategies and verification, which
in turn use the validator here; import them from their modules
(``memevidence.generation.pipeline`` / ``.supervisor``).
"""

from __future__ import annotations

from .catalog import ScenarioCatalog
from .core_builder import EvidenceCoreBuilder, validate_core
from .embedder import ConversationEmbedder
from .persistence import (
    count_existing_evidence_per_person,
    evidence_dir,
    get_checkpoint,
    load_evidence_items,
    save_evidence_to_file,
    select_people_by_existing_evidence,
)
from .validator import ConversationValidator, ValidationResult, levenshtein

__all__ = [
    "ScenarioCatalog",
    "EvidenceCoreBuilder",
    "validate_core",
    "ConversationEmbedder",
    "ConversationValidator",
    "ValidationResult",
    "levenshtein",
    "count_existing_evidence_per_person",
    "evidence_dir",
    "get_checkpoint",
    "load_evidence_items",
    "save_evidence_to_file",
    "select_people_by_existing_evidence",
]
