"""Domain-level state tracking."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Dict

from taleweave.core.settings import DEFAULT_SETTINGS

FlagListener = Callable[[str, bool], None]
StatListener = Callable[[str, float], None]


@dataclass(slots=True)
class GameState:
    """Player flags and stats with change notification.

    Missing flags read as ``False`` and missing stats read as ``0``. Writes only
    notify the listener when the stored value actually changes, and writes with
    an empty key are ignored.
    """

    flags: Dict[str, bool] = field(default_factory=dict)
    stats: Dict[str, float] = field(default_factory=dict)
    stat_epsilon: float = DEFAULT_SETTINGS.stat_epsilon
    on_flag_changed: FlagListener | None = field(default=None, repr=False, compare=False)
    on_stat_changed: StatListener | None = field(default=None, repr=False, compare=False)

    def get_flag(self, key: str) -> bool:
        return self.flags.get(key, False)

    def set_flag(self, key: str, value: bool) -> None:
        if not key:
            return
        value = bool(value)
        previous = self.get_flag(key)
        self.flags[key] = value
        if previous != value and self.on_flag_changed is not None:
            self.on_flag_changed(key, value)

    def get_stat(self, key: str) -> float:
        return self.stats.get(key, 0.0)

    def set_stat(self, key: str, value: float) -> None:
        if not key:
            return
        value = float(value)
        previous = self.get_stat(key)
        self.stats[key] = value
        if self._stat_changed(previous, value) and self.on_stat_changed is not None:
            self.on_stat_changed(key, value)

    def adjust_stat(self, key: str, delta: float) -> float:
        """Add ``delta`` to a stat and return the new value."""
        new_value = self.get_stat(key) + float(delta)
        self.set_stat(key, new_value)
        return self.get_stat(key)

    def stats_equal(self, left: float, right: float) -> bool:
        return math.isclose(left, right, rel_tol=0.0, abs_tol=self.stat_epsilon)

    def _stat_changed(self, previous: float, value: float) -> bool:
        # NaN never compares close to itself; repeated NaN writes are not changes.
        if math.isnan(previous) and math.isnan(value):
            return False
        return not self.stats_equal(previous, value)

    def clear_all(self) -> None:
        """Drop every flag and stat without notifying listeners."""
        self.flags.clear()
        self.stats.clear()

    def snapshot_flags(self) -> Dict[str, bool]:
        return dict(self.flags)

    def snapshot_stats(self) -> Dict[str, float]:
        return dict(self.stats)
