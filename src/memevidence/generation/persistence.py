"""Evidence file persistence.

One JSON file per person, named ``{person_id}_{primitive_role_name}.json``,
holding an EvidencePayload. Saving appends to whatever the file already
contains; loading normalizes older files (person id from the filename,
lower-case speakers, ``containsEvidence`` always set).

Public API:
    get_checkpoint: Current git commit, or "unknown"
    evidence_dir: Output directory for a strategy and version
    evidence_file_path: Path of one person's file
    save_evidence_to_file: Append items to a person's file
    load_evidence_items: Read every item in a directory
    count_existing_evidence_per_person: Inventory by person id
    select_people_by_existing_evidence: Fewest-first person selection
"""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

from ..data.schema import EvidenceItem, EvidencePayload, Message, Persona, SchemaError

if TYPE_CHECKING:
    from ..strategies.base import EvidenceTypeStrategy

logger = logging.getLogger(__name__)

UNKNOWN_CHECKPOINT = "unknown"


def get_checkpoint(cwd: str | Path | None = None) -> str:
    """Return ``git rev-parse HEAD`` for ``cwd``, or "unknown" outside a repository."""
    try:
        proc = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("git rev-parse failed: %s", e)
        return UNKNOWN_CHECKPOINT
    if proc.returncode != 0:
        return UNKNOWN_CHECKPOINT
    return proc.stdout.strip() or UNKNOWN_CHECKPOINT


def evidence_dir(output_root: str | Path, strategy: EvidenceTypeStrategy, version: str) -> Path:
    """``{output_root}/{evidence_type}/{n}_evidence/{version}``."""
    return Path(output_root) / strategy.resource_path / version


def evidence_file_path(persona: Persona, directory: str | Path) -> Path:
    return Path(directory) / f"{persona.id}_{persona.primitive_role_name}.json"


def _read_payload(path: Path) -> EvidencePayload:
    with open(path, encoding="utf-8") as f:
        return EvidencePayload.from_dict(json.load(f))


def save_evidence_to_file(
    persona: Persona,
    items: list[EvidenceItem],
    directory: str | Path,
    checkpoint: str | None = None,
) -> Path:
    """Append ``items`` to ``persona``'s evidence file, creating it if needed.

    An existing file that cannot be parsed is replaced (with a warning)
    rather than blocking the run.

    Returns:
        Path of the written file.
    """
    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = evidence_file_path(persona, out_dir)

    existing: list[EvidenceItem] = []
    if path.exists():
        try:
            existing = _read_payload(path).evidence_items
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, SchemaError) as e:
            logger.warning("Could not read existing evidence file %s, overwriting: %s", path, e)

    payload = EvidencePayload(
        evidence_items=existing + list(items),
        checkpoint=checkpoint if checkpoint is not None else get_checkpoint(),
    )
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload.to_dict(), f, indent=2)
    logger.info(
        "Saved %d evidence items for %s to %s (%d total)",
        len(items), persona.role_name, path, len(payload.evidence_items),
    )
    return path


def _person_id_from_filename(path: Path) -> str:
    return path.stem.split("_", 1)[0]


def _person_id(payload: EvidencePayload | None, path: Path) -> str:
    """The stored ``personId``; the file name only when no item carries one."""
    if payload is not None:
        for item in payload.evidence_items:
            if item.person_id:
                return item.person_id
    return _person_id_from_filename(path)


def _normalize(item: EvidenceItem, path: Path) -> EvidenceItem:
    if not item.person_id:
        item.person_id = _person_id_from_filename(path)
    item.message_evidences = [
        Message(m.speaker.lower(), m.text) for m in item.message_evidences
    ]
    for conversation in item.conversations:
        conversation.messages = [Message(m.speaker.lower(), m.text) for m in conversation.messages]
        conversation.contains_evidence = True
    return item


def _json_files(directory: str | Path) -> list[Path]:
    path = Path(directory)
    if not path.is_dir():
        raise FileNotFoundError(
            f"Evidence directory not found: {path}. Run 'memevidence generate' first "
            "or check --output-dir/--version."
        )
    files = sorted(path.glob("*.json"))
    if not files:
        raise FileNotFoundError(
            f"No evidence files in {path}. Run 'memevidence generate' to create some."
        )
    return files


def load_evidence_items(directory: str | Path) -> list[EvidenceItem]:
    """Load and normalize every evidence item in ``directory``.

    Raises:
        FileNotFoundError: Directory missing or holding no JSON files.
        ValueError: A file does not hold an evidence payload.
    """
    items: list[EvidenceItem] = []
    for path in _json_files(directory):
        try:
            payload = _read_payload(path)
        except (UnicodeDecodeError, json.JSONDecodeError, SchemaError) as e:
            raise ValueError(f"Invalid evidence file {path}: {e}") from e
        items.extend(_normalize(item, path) for item in payload.evidence_items)
    logger.info("Loaded %d evidence items from %s", len(items), directory)
    return items


def count_existing_evidence_per_person(directory: str | Path) -> dict[str, int]:
    """Map person id to the number of items already on disk.

    A missing directory means nothing exists yet; unreadable files count as
    zero items.
    """
    path = Path(directory)
    if not path.is_dir():
        return {}

    counts: dict[str, int] = {}
    for file in sorted(path.glob("*.json")):
        payload: EvidencePayload | None = None
        try:
            payload = _read_payload(file)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, SchemaError) as e:
            logger.warning("Skipping unreadable evidence file %s: %s", file, e)
        n = len(payload.evidence_items) if payload is not None else 0
        person_id = _person_id(payload, file)
        counts[person_id] = counts.get(person_id, 0) + n
    return counts


def select_people_by_existing_evidence(
    people: list[Persona], counts: dict[str, int], n: int
) -> list[Persona]:
    """The ``n`` people with the fewest existing items; ties keep input order."""
    ranked = sorted(enumerate(people), key=lambda ip: (counts.get(ip[1].id, 0), ip[0]))
    return [person for _, person in ranked[: max(n, 0)]]


__all__ = [
    "UNKNOWN_CHECKPOINT",
    "get_checkpoint",
    "evidence_dir",
    "evidence_file_path",
    "save_evidence_to_file",
    "load_evidence_items",
    "count_existing_evidence_per_person",
    "select_people_by_existing_evidence",
]
