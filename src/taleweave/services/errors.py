"""Service-layer errors and failure records."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from taleweave.core.types import ErrorKind


@dataclass(frozen=True, slots=True)
class NarrativeError:
    """Failure reported by an engine operation instead of raising."""

    kind: ErrorKind
    message: str
    context: Dict[str, object] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class SaveLoadError(Exception):
    """Raised when a snapshot payload cannot be serialized or restored."""
