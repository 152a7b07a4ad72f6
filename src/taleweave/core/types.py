"""Shared type aliases for the core, domain and service layers."""
from typing import Literal

Phase = Literal["unloaded", "loaded", "positioned"]

Severity = Literal["ERROR", "WARN"]

CompareOp = Literal["<", "<=", "==", "!=", ">=", ">"]

ErrorKind = Literal[
    "invalid_argument",
    "no_story_loaded",
    "missing_start_node",
    "node_not_found",
    "no_current_node",
    "choice_index_out_of_range",
    "story_mismatch",
    "null_snapshot",
]

__all__ = ["CompareOp", "ErrorKind", "Phase", "Severity"]
