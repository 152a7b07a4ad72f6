"""Serialization helpers for narrative snapshots."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Mapping

from taleweave.core.settings import DEFAULT_SETTINGS, NarrativeSettings
from taleweave.domain.snapshot import NarrativeSnapshot
from taleweave.services.errors import SaveLoadError

SavePayload = Dict[str, Any]


class SnapshotCodec:
    """Converts snapshots to/from a validated, versioned payload.

    Only the payload shape is handled here. Slots, files and migrations of
    older payloads belong to the save layer that calls this codec.
    """

    def __init__(self, settings: NarrativeSettings | None = None) -> None:
        self._max_version = (settings or DEFAULT_SETTINGS).snapshot_version

    def serialize(self, snapshot: NarrativeSnapshot) -> SavePayload:
        """Return a JSON-serializable payload for persistence."""
        if not isinstance(snapshot, NarrativeSnapshot):
            raise SaveLoadError("Only NarrativeSnapshot instances can be serialized.")
        return {
            "version": snapshot.version,
            "storyId": snapshot.story_id,
            "nodeId": snapshot.node_id,
            "flags": dict(snapshot.flags),
            "stats": dict(snapshot.stats),
            "timestamp": self._format_timestamp(snapshot.timestamp),
        }

    def deserialize(self, payload: Mapping[str, Any]) -> NarrativeSnapshot:
        """Rehydrate a snapshot from a persisted payload."""
        if not isinstance(payload, Mapping):
            raise SaveLoadError("Snapshot data must be a JSON object.")
        version = payload.get("version")
        if isinstance(version, bool) or not isinstance(version, int) or version < 1:
            raise SaveLoadError("Snapshot version must be a positive integer.")
        if version > self._max_version:
            raise SaveLoadError(
                f"Snapshot version {version} is newer than supported version {self._max_version}."
            )
        return NarrativeSnapshot(
            story_id=self._require_str(payload.get("storyId"), "storyId"),
            node_id=self._require_str(payload.get("nodeId"), "nodeId"),
            flags=self._coerce_bool_dict(payload.get("flags"), "flags"),
            stats=self._coerce_float_dict(payload.get("stats"), "stats"),
            timestamp=self._parse_timestamp(payload.get("timestamp")),
            version=version,
        )

    @staticmethod
    def _format_timestamp(value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()

    @staticmethod
    def _parse_timestamp(value: object) -> datetime:
        if not isinstance(value, str):
            raise SaveLoadError("timestamp must be an ISO-8601 string.")
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError as exc:
            raise SaveLoadError(f"Invalid timestamp: {value!r}") from exc
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    @staticmethod
    def _require_str(value: object, context: str) -> str:
        if not isinstance(value, str):
            raise SaveLoadError(f"{context} must be a string.")
        return value

    @staticmethod
    def _coerce_bool_dict(value: object, context: str) -> Dict[str, bool]:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise SaveLoadError(f"{context} must be an object.")
        result: Dict[str, bool] = {}
        for key, entry in value.items():
            if not isinstance(key, str) or not isinstance(entry, bool):
                raise SaveLoadError(f"{context} entries must map strings to booleans.")
            result[key] = entry
        return result

    @staticmethod
    def _coerce_float_dict(value: object, context: str) -> Dict[str, float]:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise SaveLoadError(f"{context} must be an object.")
        result: Dict[str, float] = {}
        for key, entry in value.items():
            if not isinstance(key, str) or isinstance(entry, bool) or not isinstance(entry, (int, float)):
                raise SaveLoadError(f"{context} entries must map strings to numbers.")
            result[key] = float(entry)
        return result
