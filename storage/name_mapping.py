from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

logger = logging.getLogger(__name__)


class NameMapping:
    """Friendly names for sensor ids, e.g. ``{"abcd": "living_room"}``."""

    def __init__(self, id_to_names: Optional[Mapping[str, str]] = None) -> None:
        self._names: Dict[str, str] = {str(k): str(v) for k, v in (id_to_names or {}).items()}

    def lookup(self, sensor_id: str) -> Optional[str]:
        return self._names.get(sensor_id)

    def as_dict(self) -> Dict[str, str]:
        return dict(self._names)

    def __len__(self) -> int:
        return len(self._names)


def load_name_mapping(path: Optional[Path]) -> NameMapping:
    """Load the ``id_to_names`` table from a YAML file.

    Any problem reading the file is logged and results in an empty mapping;
    sensors then fall back to their raw id as name.
    """
    if path is None:
        return NameMapping()

    try:
        raw = yaml.safe_load(path.read_text()) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Cannot parse mapping file %s: %s. Skipping", path, exc)
        return NameMapping()

    names = raw.get("id_to_names") if isinstance(raw, dict) else None
    if not isinstance(names, dict):
        logger.warning("Mapping file %s has no id_to_names table. Skipping", path)
        return NameMapping()

    mapping = NameMapping(names)
    logger.info("Using id to name mapping: %s", mapping.as_dict())
    return mapping
