import logging

import pytest

from taleweave.core.settings import NarrativeSettings
from taleweave.domain.conditions import FlagEquals
from taleweave.domain.defs import Choice, Story, StoryNode
from taleweave.domain.snapshot import NarrativeSnapshot
from taleweave.services import NarrativeEngine

from tests.helpers.story_builders import build_forest_story, build_gated_story


def _make_engine(story: Story | None = None) -> tuple[NarrativeEngine, list]:
    events: list[tuple[str, list[str]]] = []
    engine = NarrativeEngine(
        on_node_changed=lambda node, choices: events.append(
            (node.id, [choice.text for choice in choices])
        )
    )
    if story is not None:
        engine.load_story(story)
    return engine, events


def test_forest_walkthrough_emits_each_transition() -> None:
    engine, events = _make_engine()

    assert engine.phase == "unloaded"
    assert engine.load_story(build_forest_story())
    assert engine.phase == "loaded"
    assert events == []

    assert engine.start_story()
    assert events == [("n1", ["left", "right"])]
    assert engine.phase == "positioned"

    result = engine.select_choice(0)

    assert result.ok
    assert result.node.id == "n2"
    assert result.choices == ()
    assert events[-1] == ("n2", [])
    assert engine.current_node.is_terminal
    assert engine.is_at_ending()
    assert engine.phase == "positioned"


def test_load_story_rejects_none() -> None:
    engine, _ = _make_engine(build_forest_story())
    engine.start_story()

    result = engine.load_story(None)

    assert not result
    assert result.error.kind == "invalid_argument"
    assert engine.current_story.id == "s1"
    assert engine.current_node.id == "n1"


def test_load_story_resets_position() -> None:
    engine, _ = _make_engine(build_forest_story())
    engine.start_story()

    engine.load_story(build_gated_story())

    assert engine.current_story.id == "gated"
    assert engine.current_node is None
    assert engine.phase == "loaded"


def test_story_can_be_passed_at_construction() -> None:
    engine = NarrativeEngine(story=build_forest_story())

    assert engine.phase == "loaded"
    assert engine.start_story().node.id == "n1"


def test_start_requires_loaded_story() -> None:
    engine, events = _make_engine()

    result = engine.start_story()

    assert result.error.kind == "no_story_loaded"
    assert events == []


def test_start_fails_when_start_node_missing() -> None:
    story = Story(id="s", title="t", start_node_id="nowhere", nodes=[StoryNode(id="n")])
    engine, events = _make_engine(story)

    result = engine.start_story()

    assert result.error.kind == "missing_start_node"
    assert result.error.context["node_id"] == "nowhere"
    assert engine.current_node is None
    assert events == []


def test_go_to_node_unknown_id_is_a_no_op() -> None:
    engine, events = _make_engine(build_forest_story())
    engine.start_story()

    result = engine.go_to_node("n9")

    assert result.error.kind == "node_not_found"
    assert result.error.context["node_id"] == "n9"
    assert engine.current_node.id == "n1"
    assert len(events) == 1


def test_go_to_node_empty_id_is_looked_up_like_any_other() -> None:
    engine, _ = _make_engine(build_forest_story())

    assert engine.go_to_node("").error.kind == "node_not_found"


def test_start_story_resolves_node_with_empty_id() -> None:
    story = Story(id="s", title="t", start_node_id="", nodes=[StoryNode(id="")])
    engine, events = _make_engine(story)

    result = engine.start_story()

    assert result.ok
    assert engine.current_node.id == ""
    assert events == [("", [])]


def test_start_story_with_empty_start_id_and_no_match() -> None:
    story = Story(id="s", title="t", start_node_id="", nodes=[StoryNode(id="n")])
    engine, _ = _make_engine(story)

    assert engine.start_story().error.kind == "missing_start_node"


def test_select_choice_without_position() -> None:
    engine, _ = _make_engine(build_forest_story())

    result = engine.select_choice(0)

    assert result.error.kind == "no_current_node"


def test_select_choice_out_of_range_reports_counts() -> None:
    engine, events = _make_engine(build_forest_story())
    engine.start_story()

    for index in (-1, 2):
        result = engine.select_choice(index)
        assert result.error.kind == "choice_index_out_of_range"
        assert result.error.context["index"] == index
        assert result.error.context["available_count"] == 2

    assert engine.current_node.id == "n1"
    assert len(events) == 1


@pytest.mark.parametrize("index", ["0", 1.5, True, None])
def test_select_choice_rejects_non_integer_index(index) -> None:
    engine, events = _make_engine(build_forest_story())
    engine.start_story()

    result = engine.select_choice(index)

    assert result.error.kind == "invalid_argument"
    assert engine.current_node.id == "n1"
    assert len(events) == 1


def test_select_choice_revalidates_against_current_state() -> None:
    engine, events = _make_engine(build_gated_story())
    engine.state.set_flag("found_key", True)
    engine.start_story()
    rendered = events[-1][1]
    assert rendered == ["north", "secret", "south"]

    engine.state.set_flag("found_key", False)
    result = engine.select_choice(2)

    assert result.error.kind == "choice_index_out_of_range"
    assert result.error.context["available_count"] == 2
    assert engine.current_node.id == "hall"


def test_select_choice_indexes_into_available_choices() -> None:
    engine, _ = _make_engine(build_gated_story())
    engine.start_story()

    result = engine.select_choice(1)

    assert result.node.id == "south"


def test_state_changes_update_availability_without_moving() -> None:
    engine, events = _make_engine(build_gated_story())
    engine.start_story()

    assert [choice.text for choice in engine.available_choices()] == ["north", "south"]

    engine.state.set_flag("found_key", True)

    assert [choice.text for choice in engine.available_choices()] == ["north", "secret", "south"]
    assert engine.current_node.id == "hall"
    assert len(events) == 1


def test_stuck_node_is_distinct_from_ending() -> None:
    story = Story(
        id="s",
        title="t",
        start_node_id="gate",
        nodes=[
            StoryNode(
                id="gate",
                choices=[
                    Choice(text="enter", target_node_id="gate", condition=FlagEquals(key="key"))
                ],
            ),
        ],
    )
    engine, events = _make_engine(story)
    engine.start_story()

    assert events == [("gate", [])]
    assert engine.is_stuck()
    assert not engine.is_at_ending()


def test_dangling_choice_target_fails_without_moving() -> None:
    story = Story(
        id="s",
        title="t",
        start_node_id="a",
        nodes=[StoryNode(id="a", choices=[Choice(text="void", target_node_id="missing")])],
    )
    engine, events = _make_engine(story)
    engine.start_story()

    result = engine.select_choice(0)

    assert result.error.kind == "node_not_found"
    assert engine.current_node.id == "a"
    assert len(events) == 1


def test_subscribe_replaces_previous_callback() -> None:
    engine, events = _make_engine(build_forest_story())
    replacement: list[str] = []

    previous = engine.subscribe(lambda node, choices: replacement.append(node.id))
    engine.start_story()

    assert previous is not None
    assert events == []
    assert replacement == ["n1"]


def test_callback_may_reenter_engine() -> None:
    engine = NarrativeEngine(story=build_forest_story())
    visited: list[str] = []

    def on_node_changed(node, choices) -> None:
        visited.append(node.id)
        if node.id == "n1":
            engine.select_choice(1)

    engine.subscribe(on_node_changed)
    engine.start_story()

    assert visited == ["n1", "n3"]
    assert engine.current_node.id == "n3"


def test_create_snapshot_requires_position() -> None:
    engine, _ = _make_engine()
    assert engine.create_snapshot() is None

    engine.load_story(build_forest_story())
    assert engine.create_snapshot() is None


def test_snapshot_round_trip_on_fresh_engine() -> None:
    engine, _ = _make_engine(build_gated_story())
    engine.state.set_flag("found_key", True)
    engine.state.set_stat("courage", 2.5)
    engine.start_story()
    engine.select_choice(1)

    snapshot = engine.create_snapshot()

    assert snapshot.story_id == "gated"
    assert snapshot.node_id == "vault"
    assert snapshot.timestamp.tzinfo is not None

    restored, events = _make_engine(build_gated_story())
    result = restored.restore_snapshot(snapshot)

    assert result.ok
    assert restored.current_node.id == "vault"
    assert restored.state.get_flag("found_key") is True
    assert restored.state.get_stat("courage") == 2.5
    assert events == [("vault", [])]


def test_snapshot_is_isolated_from_later_state_changes() -> None:
    engine, _ = _make_engine(build_forest_story())
    engine.start_story()
    engine.state.set_flag("a", True)

    snapshot = engine.create_snapshot()
    engine.state.set_flag("a", False)

    assert snapshot.flags == {"a": True}


def test_restore_replays_state_through_setters() -> None:
    engine, _ = _make_engine(build_forest_story())
    engine.state.set_flag("stale", True)
    flag_events: list[tuple[str, bool]] = []
    stat_events: list[tuple[str, float]] = []
    engine.state.on_flag_changed = lambda key, value: flag_events.append((key, value))
    engine.state.on_stat_changed = lambda key, value: stat_events.append((key, value))
    snapshot = NarrativeSnapshot(
        story_id="s1",
        node_id="n3",
        flags={"brave": True, "lost": False},
        stats={"gold": 3},
    )

    assert engine.restore_snapshot(snapshot)

    assert engine.state.get_flag("stale") is False
    assert flag_events == [("brave", True)]
    assert stat_events == [("gold", 3.0)]


def test_restore_rejects_missing_snapshot() -> None:
    engine, _ = _make_engine(build_forest_story())

    result = engine.restore_snapshot(None)

    assert not result
    assert result.error.kind == "null_snapshot"


def test_restore_rejects_other_story() -> None:
    engine, events = _make_engine(build_forest_story())
    engine.start_story()
    engine.state.set_flag("keep", True)

    result = engine.restore_snapshot(
        NarrativeSnapshot(story_id="other", node_id="n2", flags={"x": True})
    )

    assert result.error.kind == "story_mismatch"
    assert result.error.context["snapshot_story_id"] == "other"
    assert engine.current_node.id == "n1"
    assert engine.state.get_flag("keep") is True
    assert len(events) == 1


def test_restore_without_story_is_mismatch() -> None:
    engine, _ = _make_engine()

    result = engine.restore_snapshot(NarrativeSnapshot(story_id="s1", node_id="n1"))

    assert result.error.kind == "story_mismatch"


def test_restore_to_removed_node_fails_without_partial_state() -> None:
    engine, events = _make_engine(build_forest_story())
    engine.start_story()
    engine.state.set_flag("keep", True)

    result = engine.restore_snapshot(
        NarrativeSnapshot(story_id="s1", node_id="gone", flags={"other": True})
    )

    assert result.error.kind == "node_not_found"
    assert engine.current_node.id == "n1"
    assert engine.state.get_flag("keep") is True
    assert engine.state.get_flag("other") is False
    assert len(events) == 1


def test_restore_notifies_exactly_once() -> None:
    engine, events = _make_engine(build_forest_story())
    engine.start_story()

    result = engine.restore_snapshot(NarrativeSnapshot(story_id="s1", node_id="n3"))

    assert result.ok
    assert [node_id for node_id, _ in events] == ["n1", "n3"]


def test_snapshot_version_follows_settings() -> None:
    engine = NarrativeEngine(story=build_forest_story(), settings=NarrativeSettings(snapshot_version=3))
    engine.start_story()

    assert engine.create_snapshot().version == 3


def test_engine_state_uses_configured_epsilon() -> None:
    engine = NarrativeEngine(settings=NarrativeSettings(stat_epsilon=0.5))

    assert engine.state.stat_epsilon == 0.5


def test_failures_are_logged(caplog) -> None:
    engine, _ = _make_engine(build_forest_story())

    with caplog.at_level(logging.WARNING, logger="taleweave.services.narrative_engine"):
        engine.go_to_node("nowhere")

    assert any("node_not_found" in record.getMessage() for record in caplog.records)
