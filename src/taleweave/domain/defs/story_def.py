"""Story definition structures used by the runtime."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from taleweave.domain.conditions import Condition, is_met
from taleweave.domain.state import GameState
from taleweave.domain.story_validation import Issue, validate_story


@dataclass(slots=True)
class Choice:
    """Represents a selectable choice on a story node."""

    text: str
    target_node_id: str
    condition: Condition | None = None

    def is_available(self, state: GameState) -> bool:
        return is_met(self.condition, state)


@dataclass(slots=True)
class StoryNode:
    """Single narrative beat with its outgoing choices.

    ``background_ref`` is an opaque presentation handle; the runtime only
    carries it along.
    """

    id: str
    text: str = ""
    choices: List[Choice] = field(default_factory=list)
    background_ref: object | None = None

    @property
    def is_terminal(self) -> bool:
        """True when the node defines no choices at all (a real ending)."""
        return not self.choices

    def get_available_choices(self, state: GameState) -> List[Choice]:
        """Return a fresh list of the choices whose conditions are met, in order."""
        return [choice for choice in self.choices if choice.is_available(state)]

    def is_stuck(self, state: GameState) -> bool:
        """True when the node has choices but none are currently available."""
        return not self.is_terminal and not self.get_available_choices(state)

    def add_choice(self, choice: Choice | None) -> None:
        if choice is not None:
            self.choices.append(choice)

    def remove_choice(self, choice: Choice) -> bool:
        for index, existing in enumerate(self.choices):
            if existing is choice:
                del self.choices[index]
                return True
        return False

    def clear_choices(self) -> None:
        self.choices.clear()


@dataclass(slots=True)
class Story:
    """A complete branching story graph."""

    id: str
    title: str
    start_node_id: str
    nodes: List[StoryNode] = field(default_factory=list)

    def get_node(self, node_id: str) -> StoryNode | None:
        """Return the first node with ``node_id``; duplicates resolve to the first."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_start_node(self) -> StoryNode | None:
        return self.get_node(self.start_node_id)

    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]

    def validate(self) -> List[Issue]:
        """Collect every structural issue in the story. Never raises."""
        return validate_story(self)

    def add_node(self, node: StoryNode | None) -> bool:
        if node is None or any(existing is node for existing in self.nodes):
            return False
        self.nodes.append(node)
        return True

    def remove_node(self, node: StoryNode) -> bool:
        for index, existing in enumerate(self.nodes):
            if existing is node:
                del self.nodes[index]
                return True
        return False

    def sort_nodes_by_id(self) -> None:
        self.nodes.sort(key=lambda node: node.id)
