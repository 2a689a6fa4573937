"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True, slots=True)
class SensorIdentity:
    """A physical sensor as announced on the wire."""

    vendor: str
    id: str = ""

    @property
    def key(self) -> str:
        """Registry key; kept as ``vendor + " "`` even when the id is empty."""
        return f"{self.vendor} {self.id}"

    @property
    def label_vendor(self) -> str:
        return self.vendor.lower().replace(" ", "_")


@dataclass(slots=True)
class FieldIssue:
    """A field that was skipped while parsing a message."""

    index: int
    key: Optional[str]
    reason: str
    token: Optional[str] = None


@dataclass(slots=True)
class ParsedMessage:
    """Decoded content of a single protocol line."""

    identity: SensorIdentity
    values: Dict[str, float] = field(default_factory=dict)
    issues: List[FieldIssue] = field(default_factory=list)
