"""Choice availability conditions.

Conditions form a closed set of variants. Each variant is a frozen dataclass so
it can be compared, hashed and serialized, and ``is_met`` dispatches over the
full set so evaluation is total. Adding a variant means bumping
``CONDITION_SCHEMA_VERSION`` and extending ``is_met`` and the story codec.
"""
from __future__ import annotations

import math
import operator
from dataclasses import dataclass
from typing import Callable, Dict, Tuple, Union

from taleweave.core.types import CompareOp
from taleweave.domain.state import GameState

CONDITION_SCHEMA_VERSION = 1

_COMPARATORS: Dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">=": operator.ge,
    ">": operator.gt,
}

COMPARE_OPS: tuple[str, ...] = ("<", "<=", "==", "!=", ">=", ">")


@dataclass(frozen=True, slots=True)
class FlagEquals:
    """Met when a flag holds the expected value (unset flags read as False)."""

    key: str
    expected: bool = True

    def is_met(self, state: GameState) -> bool:
        return is_met(self, state)


@dataclass(frozen=True, slots=True)
class StatCompare:
    """Met when ``stat <op> value`` holds."""

    key: str
    op: CompareOp
    value: float

    def __post_init__(self) -> None:
        if self.op not in COMPARE_OPS:
            raise ValueError(f"Unsupported stat comparison operator: {self.op!r}")

    def is_met(self, state: GameState) -> bool:
        return is_met(self, state)


@dataclass(frozen=True, slots=True)
class AllOf:
    conditions: Tuple["Condition", ...] = ()

    def is_met(self, state: GameState) -> bool:
        return is_met(self, state)


@dataclass(frozen=True, slots=True)
class AnyOf:
    conditions: Tuple["Condition", ...] = ()

    def is_met(self, state: GameState) -> bool:
        return is_met(self, state)


Condition = Union[FlagEquals, StatCompare, AllOf, AnyOf]


def is_met(condition: Condition | None, state: GameState) -> bool:
    """Evaluate a condition against the state; ``None`` is always met."""
    if condition is None:
        return True
    if isinstance(condition, FlagEquals):
        return state.get_flag(condition.key) == condition.expected
    if isinstance(condition, StatCompare):
        return _compare_stat(state, condition)
    if isinstance(condition, AllOf):
        return all(is_met(member, state) for member in condition.conditions)
    if isinstance(condition, AnyOf):
        return any(is_met(member, state) for member in condition.conditions)
    raise TypeError(f"Unknown condition variant: {type(condition).__name__}")


def _compare_stat(state: GameState, condition: StatCompare) -> bool:
    current = state.get_stat(condition.key)
    target = float(condition.value)
    if condition.op in ("==", "!="):
        equal = math.isclose(current, target, rel_tol=0.0, abs_tol=state.stat_epsilon)
        return equal if condition.op == "==" else not equal
    return _COMPARATORS[condition.op](current, target)


def iter_leaf_conditions(condition: Condition | None):
    """Yield the flag and stat conditions nested inside ``condition``."""
    if condition is None:
        return
    if isinstance(condition, (AllOf, AnyOf)):
        for member in condition.conditions:
            yield from iter_leaf_conditions(member)
        return
    yield condition
