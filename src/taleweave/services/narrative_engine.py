"""Narrative session state machine."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Tuple

from taleweave.core.settings import DEFAULT_SETTINGS, NarrativeSettings
from taleweave.core.types import ErrorKind, Phase
from taleweave.domain.defs import Choice, Story, StoryNode
from taleweave.domain.snapshot import NarrativeSnapshot
from taleweave.domain.state import GameState
from taleweave.services.errors import NarrativeError

logger = logging.getLogger(__name__)

NodeChangedCallback = Callable[[StoryNode, Tuple[Choice, ...]], None]


@dataclass(frozen=True, slots=True)
class TransitionResult:
    """Outcome of an engine operation.

    Truthy on success. ``node`` and ``choices`` describe the position after a
    successful transition; ``error`` is set on failure.
    """

    ok: bool
    error: NarrativeError | None = None
    node: StoryNode | None = None
    choices: Tuple[Choice, ...] = field(default_factory=tuple)

    def __bool__(self) -> bool:
        return self.ok


class NarrativeEngine:
    """Application service that walks a story graph for one player session.

    The engine borrows the ``Story`` it is given and owns its ``GameState``.
    Every node change funnels through :meth:`go_to_node`, which notifies the
    single ``on_node_changed`` subscriber exactly once per successful move.
    Failed operations leave the story, node and state untouched.
    """

    def __init__(
        self,
        *,
        story: Story | None = None,
        state: GameState | None = None,
        settings: NarrativeSettings | None = None,
        on_node_changed: NodeChangedCallback | None = None,
    ) -> None:
        self._settings = settings or DEFAULT_SETTINGS
        if state is None:
            state = GameState(stat_epsilon=self._settings.stat_epsilon)
        self._state = state
        self._story: Story | None = None
        self._node: StoryNode | None = None
        self._lock = threading.RLock()
        self.on_node_changed = on_node_changed
        if story is not None:
            self.load_story(story)

    @property
    def current_story(self) -> Story | None:
        return self._story

    @property
    def current_node(self) -> StoryNode | None:
        return self._node

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def settings(self) -> NarrativeSettings:
        return self._settings

    @property
    def phase(self) -> Phase:
        if self._story is None:
            return "unloaded"
        if self._node is None:
            return "loaded"
        return "positioned"

    def subscribe(self, callback: NodeChangedCallback | None) -> NodeChangedCallback | None:
        """Replace the node-changed subscriber and return the previous one."""
        with self._lock:
            previous = self.on_node_changed
            self.on_node_changed = callback
            return previous

    def available_choices(self) -> Tuple[Choice, ...]:
        """Choices currently selectable at the current node, re-evaluated now."""
        with self._lock:
            if self._node is None:
                return ()
            return tuple(self._node.get_available_choices(self._state))

    def is_at_ending(self) -> bool:
        with self._lock:
            return self._node is not None and self._node.is_terminal

    def is_stuck(self) -> bool:
        with self._lock:
            return self._node is not None and self._node.is_stuck(self._state)

    def load_story(self, story: Story | None) -> TransitionResult:
        with self._lock:
            if story is None:
                return self._fail("invalid_argument", "Cannot load a missing story.")
            self._story = story
            self._node = None
            logger.info("Loaded story '%s' (%s)", story.title, story.id)
            return TransitionResult(ok=True)

    def start_story(self) -> TransitionResult:
        with self._lock:
            if self._story is None:
                return self._fail("no_story_loaded", "No story loaded. Call load_story() first.")
            if self._story.get_start_node() is None:
                return self._fail(
                    "missing_start_node",
                    f"Start node '{self._story.start_node_id}' not found in story '{self._story.title}'.",
                    story_id=self._story.id,
                    node_id=self._story.start_node_id,
                )
            return self.go_to_node(self._story.start_node_id)

    def go_to_node(self, node_id: str) -> TransitionResult:
        """Move to ``node_id`` and notify the subscriber."""
        with self._lock:
            if self._story is None:
                return self._fail("no_story_loaded", "No story loaded.", node_id=node_id)
            target = self._story.get_node(node_id)
            if target is None:
                return self._fail(
                    "node_not_found",
                    f"Node '{node_id}' not found in story '{self._story.title}'.",
                    story_id=self._story.id,
                    node_id=node_id,
                )
            return self._enter_node(target)

    def select_choice(self, index: int) -> TransitionResult:
        """Follow the ``index``-th currently available choice."""
        with self._lock:
            if self._node is None:
                return self._fail("no_current_node", "No current node.", index=index)
            if isinstance(index, bool) or not isinstance(index, int):
                return self._fail(
                    "invalid_argument",
                    f"Choice index must be an integer, got {type(index).__name__}.",
                    node_id=self._node.id,
                    index=index,
                )
            # Availability is re-derived here; the list the caller rendered may be stale.
            available = self._node.get_available_choices(self._state)
            if index < 0 or index >= len(available):
                return self._fail(
                    "choice_index_out_of_range",
                    f"Choice index {index} out of range. Available choices: {len(available)}.",
                    node_id=self._node.id,
                    index=index,
                    available_count=len(available),
                )
            selected = available[index]
            logger.debug("Selected choice '%s' at node '%s'", selected.text, self._node.id)
            return self.go_to_node(selected.target_node_id)

    def create_snapshot(self) -> NarrativeSnapshot | None:
        with self._lock:
            if self._story is None or self._node is None:
                return None
            return NarrativeSnapshot(
                story_id=self._story.id,
                node_id=self._node.id,
                flags=self._state.snapshot_flags(),
                stats=self._state.snapshot_stats(),
                timestamp=datetime.now(timezone.utc),
                version=self._settings.snapshot_version,
            )

    def restore_snapshot(self, snapshot: NarrativeSnapshot | None) -> TransitionResult:
        """Replace flags, stats and position with the snapshot contents."""
        with self._lock:
            if snapshot is None:
                return self._fail("null_snapshot", "Cannot restore a missing snapshot.")
            if self._story is None or self._story.id != snapshot.story_id:
                return self._fail(
                    "story_mismatch",
                    "Cannot restore snapshot: story mismatch.",
                    current_story_id=self._story.id if self._story else None,
                    snapshot_story_id=snapshot.story_id,
                )
            target = self._story.get_node(snapshot.node_id)
            if target is None:
                return self._fail(
                    "node_not_found",
                    f"Node '{snapshot.node_id}' not found in story '{self._story.title}'.",
                    story_id=self._story.id,
                    node_id=snapshot.node_id,
                )
            self._replay_state(snapshot)
            logger.info("Restored snapshot: %s at node %s", snapshot.story_id, snapshot.node_id)
            return self._enter_node(target)

    def _replay_state(self, snapshot: NarrativeSnapshot) -> None:
        self._state.clear_all()
        for key, value in snapshot.flags.items():
            self._state.set_flag(key, value)
        for key, value in snapshot.stats.items():
            self._state.set_stat(key, value)

    def _enter_node(self, node: StoryNode) -> TransitionResult:
        self._node = node
        choices = tuple(node.get_available_choices(self._state))
        logger.debug("Moved to node: %s (%d choices available)", node.id, len(choices))
        if self.on_node_changed is not None:
            self.on_node_changed(node, choices)
        return TransitionResult(ok=True, node=node, choices=choices)

    @staticmethod
    def _fail(kind: ErrorKind, message: str, **context: object) -> TransitionResult:
        logger.warning("%s: %s %s", kind, message, context or "")
        return TransitionResult(
            ok=False, error=NarrativeError(kind=kind, message=message, context=dict(context))
        )
