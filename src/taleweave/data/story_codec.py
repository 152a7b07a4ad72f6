"""Conversion between story exchange payloads and story definitions.

The payload layout is the authoring contract::

    {"storyId", "title", "startNodeId",
     "nodes": [{"id", "text", "backgroundRef", "choices": [
         {"text", "targetNodeId", "condition"}]}]}

Parsing is structural only. Duplicate ids and dangling targets are kept so
``Story.validate()`` can report them.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping

from taleweave.domain.conditions import (
    COMPARE_OPS,
    AllOf,
    AnyOf,
    Condition,
    FlagEquals,
    StatCompare,
)
from taleweave.domain.defs import Choice, Story, StoryNode

from .errors import DataValidationError
from .json_loader import parse_json


def story_from_json(text: str | bytes, source: str = "<string>") -> Story:
    """Parse a JSON story document already read by the caller."""
    return story_from_payload(parse_json(text, source))


def story_to_json(story: Story, *, indent: int | None = 2) -> str:
    return json.dumps(story_to_payload(story), indent=indent, ensure_ascii=False)


def story_from_payload(raw: object) -> Story:
    story_data = _require_mapping(raw, "story")
    story_id = _optional_str(story_data.get("storyId"), "storyId")
    title = _optional_str(story_data.get("title"), "title")
    start_node_id = _optional_str(story_data.get("startNodeId"), "startNodeId")
    raw_nodes = story_data.get("nodes")
    if raw_nodes is None:
        raw_nodes = []
    if not isinstance(raw_nodes, list):
        raise DataValidationError("nodes must be a list if provided.")
    nodes = [_parse_node(entry, f"nodes[{index}]") for index, entry in enumerate(raw_nodes)]
    return Story(id=story_id, title=title, start_node_id=start_node_id, nodes=nodes)


def story_to_payload(story: Story) -> Dict[str, Any]:
    return {
        "storyId": story.id,
        "title": story.title,
        "startNodeId": story.start_node_id,
        "nodes": [_serialize_node(node) for node in story.nodes],
    }


def condition_from_payload(raw: object, context: str = "condition") -> Condition | None:
    """Build a condition from its tagged payload; ``None`` means always available."""
    if raw is None:
        return None
    data = _require_mapping(raw, context)
    condition_type = _require_str(data.get("type"), f"{context}.type")
    if condition_type in ("none", ""):
        return None
    if condition_type == "flag":
        key = _require_str(data.get("key"), f"{context}.key")
        expected = data.get("value", True)
        if not isinstance(expected, bool):
            raise DataValidationError(f"{context}.value must be a boolean.")
        return FlagEquals(key=key, expected=expected)
    if condition_type == "stat":
        key = _require_str(data.get("key"), f"{context}.key")
        op = data.get("op")
        if op not in COMPARE_OPS:
            raise DataValidationError(
                f"{context}.op must be one of {', '.join(COMPARE_OPS)}."
            )
        value = _require_number(data.get("value"), f"{context}.value")
        return StatCompare(key=key, op=op, value=value)
    if condition_type in ("all", "any"):
        raw_members = data.get("conditions")
        if not isinstance(raw_members, list):
            raise DataValidationError(f"{context}.conditions must be a list.")
        members: List[Condition] = []
        always_met = False
        for index, entry in enumerate(raw_members):
            member = condition_from_payload(entry, f"{context}.conditions[{index}]")
            if member is None:
                always_met = True
            else:
                members.append(member)
        if condition_type == "any" and always_met:
            # An absent condition is always met, so the whole alternative is.
            return None
        if condition_type == "all":
            return AllOf(conditions=tuple(members))
        return AnyOf(conditions=tuple(members))
    raise DataValidationError(f"{context}.type '{condition_type}' is not supported.")


def condition_to_payload(condition: Condition | None) -> Dict[str, Any] | None:
    if condition is None:
        return None
    if isinstance(condition, FlagEquals):
        return {"type": "flag", "key": condition.key, "value": condition.expected}
    if isinstance(condition, StatCompare):
        return {"type": "stat", "key": condition.key, "op": condition.op, "value": condition.value}
    if isinstance(condition, (AllOf, AnyOf)):
        return {
            "type": "all" if isinstance(condition, AllOf) else "any",
            "conditions": [condition_to_payload(member) for member in condition.conditions],
        }
    raise TypeError(f"Unknown condition variant: {type(condition).__name__}")


def _parse_node(raw: object, context: str) -> StoryNode:
    node_data = _require_mapping(raw, context)
    node_id = _require_str(node_data.get("id", ""), f"{context}.id")
    text = _require_str(node_data.get("text", ""), f"{context}.text")
    raw_choices = node_data.get("choices")
    if raw_choices is None:
        raw_choices = []
    if not isinstance(raw_choices, list):
        raise DataValidationError(f"{context}.choices must be a list if provided.")
    choices = [
        _parse_choice(entry, f"{context}.choices[{index}]")
        for index, entry in enumerate(raw_choices)
    ]
    return StoryNode(
        id=node_id,
        text=text,
        choices=choices,
        background_ref=node_data.get("backgroundRef"),
    )


def _parse_choice(raw: object, context: str) -> Choice:
    choice_data = _require_mapping(raw, context)
    text = _require_str(choice_data.get("text", ""), f"{context}.text")
    target = _require_str(choice_data.get("targetNodeId"), f"{context}.targetNodeId")
    condition = condition_from_payload(choice_data.get("condition"), f"{context}.condition")
    return Choice(text=text, target_node_id=target, condition=condition)


def _serialize_node(node: StoryNode) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"id": node.id, "text": node.text}
    if node.background_ref is not None:
        payload["backgroundRef"] = node.background_ref
    payload["choices"] = [_serialize_choice(choice) for choice in node.choices]
    return payload


def _serialize_choice(choice: Choice) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"text": choice.text, "targetNodeId": choice.target_node_id}
    condition = condition_to_payload(choice.condition)
    if condition is not None:
        payload["condition"] = condition
    return payload


def _require_mapping(value: object, context: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        raise DataValidationError(f"{context} must be an object/dict.")
    return value


def _require_str(value: object, context: str) -> str:
    if not isinstance(value, str):
        raise DataValidationError(f"{context} must be a string.")
    return value


def _require_number(value: object, context: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DataValidationError(f"{context} must be a number.")
    return float(value)


def _optional_str(value: object, context: str) -> str:
    """Read a string field where ``null`` and absent both mean empty."""
    if value is None:
        return ""
    return _require_str(value, context)
