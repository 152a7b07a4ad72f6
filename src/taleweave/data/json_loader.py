"""Low-level JSON helpers for story documents."""
from __future__ import annotations

import json

from .errors import DataLoadError


def parse_json(text: str | bytes, source: str = "<string>") -> object:
    """Decode a JSON document and raise DataLoadError on failure."""
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DataLoadError(f"Story document {source} is not valid UTF-8") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise DataLoadError(f"Invalid JSON in {source}: {exc}") from exc
