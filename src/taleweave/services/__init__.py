"""Service layer exports."""

from .errors import NarrativeError, SaveLoadError
from .narrative_engine import NarrativeEngine, NodeChangedCallback, TransitionResult
from .snapshot_codec import SnapshotCodec

__all__ = [
    "NarrativeEngine",
    "NarrativeError",
    "NodeChangedCallback",
    "SaveLoadError",
    "SnapshotCodec",
    "TransitionResult",
]
