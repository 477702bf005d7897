"""Persona file loading.

Persona files hold ``{"roles": [...]}`` (or a bare list) of persona
objects, in JSON or YAML. Personas are sorted by id so a run over the
first N people is reproducible across invocations.

Public API:
    load_personas(path, limit) -> list[Persona]
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import yaml

from .schema import Persona, SchemaError

logger = logging.getLogger(__name__)


def load_personas(path: str | Path, limit: int | None = None) -> list[Persona]:
    """Load personas from a JSON or YAML file.

    Args:
        path: File containing ``{"roles": [...]}`` or a list of personas
        limit: Keep only the first ``limit`` personas after sorting by id

    Returns:
        Personas sorted by id.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file does not contain persona records.
    """
    persona_path = Path(path)
    if not persona_path.exists():
        raise FileNotFoundError(f"Persona file not found: {persona_path}")

    with open(persona_path, encoding="utf-8") as f:
        if persona_path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)

    records = data.get("roles") if isinstance(data, dict) else data
    if not isinstance(records, list):
        raise ValueError(f"Expected a list of personas (or a 'roles' key) in {persona_path}")

    personas: list[Persona] = []
    for idx, raw in enumerate(records):
        try:
            personas.append(Persona.from_dict(raw))
        except SchemaError as e:
            raise ValueError(f"Invalid persona #{idx} in {persona_path}: {e}") from e

    personas.sort(key=lambda p: p.id)
    if limit is not None:
        personas = personas[:limit]
    logger.info("Loaded %d personas from %s", len(personas), persona_path)
    return personas


__all__ = ["load_personas"]
