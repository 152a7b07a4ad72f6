"""Narrative snapshot data passed to save collaborators."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict

SNAPSHOT_VERSION = 1


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class NarrativeSnapshot:
    """Story position plus a full copy of flags and stats."""

    story_id: str
    node_id: str
    flags: Dict[str, bool] = field(default_factory=dict)
    stats: Dict[str, float] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utc_now)
    version: int = SNAPSHOT_VERSION
