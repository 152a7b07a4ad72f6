"""Runtime configuration for narrative sessions."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

_DEFAULT_STAT_EPSILON = 1e-5
_DEFAULT_SNAPSHOT_VERSION = 1


@dataclass(frozen=True, slots=True)
class NarrativeSettings:
    """Tunables for a narrative session."""

    stat_epsilon: float = _DEFAULT_STAT_EPSILON
    snapshot_version: int = _DEFAULT_SNAPSHOT_VERSION


DEFAULT_SETTINGS = NarrativeSettings()


def _normalize_epsilon(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return _DEFAULT_STAT_EPSILON
    if value < 0:
        return _DEFAULT_STAT_EPSILON
    return float(value)


def _normalize_version(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        return _DEFAULT_SNAPSHOT_VERSION
    return value


def settings_from_mapping(raw: Mapping[str, object] | None) -> NarrativeSettings:
    """Build settings from an untrusted mapping, falling back to defaults."""
    if not isinstance(raw, Mapping):
        return DEFAULT_SETTINGS
    return NarrativeSettings(
        stat_epsilon=_normalize_epsilon(raw.get("stat_epsilon")),
        snapshot_version=_normalize_version(raw.get("snapshot_version")),
    )
