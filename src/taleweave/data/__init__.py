"""Data layer utilities for exchanging story documents."""

from .errors import DataError, DataLoadError, DataValidationError
from .json_loader import parse_json
from .story_codec import (
    condition_from_payload,
    condition_to_payload,
    story_from_json,
    story_from_payload,
    story_to_json,
    story_to_payload,
)

__all__ = [
    "DataError",
    "DataLoadError",
    "DataValidationError",
    "condition_from_payload",
    "condition_to_payload",
    "parse_json",
    "story_from_json",
    "story_from_payload",
    "story_to_json",
    "story_to_payload",
]
