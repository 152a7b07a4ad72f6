"""Static story graph validation utilities."""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

from taleweave.core.types import Severity
from taleweave.domain.conditions import FlagEquals, StatCompare, iter_leaf_conditions

if TYPE_CHECKING:
    from taleweave.domain.defs.story_def import Story, StoryNode


@dataclass(frozen=True, slots=True)
class Issue:
    severity: Severity
    code: str
    message: str
    context: dict[str, str]


def format_issue(issue: Issue) -> str:
    context = " ".join(f"{key}={value}" for key, value in issue.context.items())
    suffix = f" ({context})" if context else ""
    return f"[{issue.severity}] {issue.code}: {issue.message}{suffix}"


def issue_messages(issues: Iterable[Issue]) -> list[str]:
    return [format_issue(issue) for issue in issues]


def has_errors(issues: Iterable[Issue]) -> bool:
    return any(issue.severity == "ERROR" for issue in issues)


def validate_story(story: "Story") -> list[Issue]:
    """Return every issue found in ``story``; never fail-fast, never raise."""
    issues: list[Issue] = []
    _validate_metadata(story, issues)
    node_ids = {node.id for node in story.nodes if node.id}
    _validate_start_node(story, node_ids, issues)
    _validate_node_ids(story.nodes, issues)
    _validate_choice_targets(story.nodes, node_ids, issues)
    _validate_conditions(story.nodes, issues)
    if story.start_node_id and story.start_node_id in node_ids:
        _validate_reachability(story, node_ids, issues)
    return issues


def _validate_metadata(story: "Story", issues: list[Issue]) -> None:
    if not story.id:
        issues.append(
            Issue(severity="ERROR", code="EMPTY_STORY_ID", message="Story id is empty.", context={})
        )
    if not story.title:
        issues.append(
            Issue(severity="ERROR", code="EMPTY_TITLE", message="Story title is empty.", context={})
        )
    if not story.start_node_id:
        issues.append(
            Issue(
                severity="ERROR",
                code="EMPTY_START_NODE_ID",
                message="Start node id is empty.",
                context={},
            )
        )


def _validate_start_node(story: "Story", node_ids: set[str], issues: list[Issue]) -> None:
    if story.start_node_id and story.start_node_id not in node_ids:
        issues.append(
            Issue(
                severity="ERROR",
                code="MISSING_START_NODE",
                message="Start node not found in nodes list.",
                context={"referenced_id": story.start_node_id},
            )
        )


def _validate_node_ids(nodes: Iterable["StoryNode"], issues: list[Issue]) -> None:
    seen: set[str] = set()
    reported: set[str] = set()
    empty_count = 0
    for node in nodes:
        if not node.id:
            empty_count += 1
            continue
        if node.id in seen and node.id not in reported:
            reported.add(node.id)
            issues.append(
                Issue(
                    severity="ERROR",
                    code="DUPLICATE_NODE_ID",
                    message="Duplicate story node id detected.",
                    context={"node_id": node.id},
                )
            )
        seen.add(node.id)
    if empty_count:
        issues.append(
            Issue(
                severity="ERROR",
                code="EMPTY_NODE_ID",
                message=f"Found {empty_count} node(s) with empty ids.",
                context={"count": str(empty_count)},
            )
        )


def _validate_choice_targets(
    nodes: Iterable["StoryNode"], node_ids: set[str], issues: list[Issue]
) -> None:
    reported: set[str] = set()
    for node in nodes:
        for index, choice in enumerate(node.choices):
            target = choice.target_node_id
            if not target:
                issues.append(
                    Issue(
                        severity="WARN",
                        code="EMPTY_CHOICE_TARGET",
                        message="Choice has no target node.",
                        context={"node_id": node.id, "field_path": f"choices[{index}]"},
                    )
                )
                continue
            if target in node_ids or target in reported:
                continue
            reported.add(target)
            issues.append(
                Issue(
                    severity="ERROR",
                    code="MISSING_NODE_REF",
                    message="Choice references missing node.",
                    context={"node_id": node.id, "referenced_id": target},
                )
            )


def _validate_conditions(nodes: Iterable["StoryNode"], issues: list[Issue]) -> None:
    for node in nodes:
        for index, choice in enumerate(node.choices):
            for leaf in iter_leaf_conditions(choice.condition):
                if isinstance(leaf, (FlagEquals, StatCompare)) and not leaf.key:
                    issues.append(
                        Issue(
                            severity="WARN",
                            code="INVALID_CONDITION",
                            message="Condition has an empty key.",
                            context={
                                "node_id": node.id,
                                "field_path": f"choices[{index}].condition",
                            },
                        )
                    )


def _validate_reachability(story: "Story", node_ids: set[str], issues: list[Issue]) -> None:
    reachable: set[str] = set()
    stack = [story.start_node_id]
    while stack:
        node_id = stack.pop()
        if node_id in reachable:
            continue
        reachable.add(node_id)
        node = story.get_node(node_id)
        if node is None:
            continue
        for choice in node.choices:
            if choice.target_node_id in node_ids:
                stack.append(choice.target_node_id)
    for node_id in sorted(node_ids - reachable):
        issues.append(
            Issue(
                severity="WARN",
                code="UNREACHABLE_NODE",
                message="Node is unreachable from the start node.",
                context={"node_id": node_id},
            )
        )
