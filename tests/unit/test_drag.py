"""Tests for drag sessions and drop validation."""

import asyncio

import pytest

from pagetree.core.drag.coordinator import (
    MOVE_FAILED,
    DragCoordinator,
    drop_placement,
    is_valid_drop,
    topmost_ids,
)
from pagetree.core.tree import commands
from pagetree.core.tree.state import TreeState
from pagetree.core.tree.store import TreeStore
from pagetree.errors import DragInProgressError
from pagetree.models.node import DropRelation, DropTarget
from tests.unit.fakes import FakeNotifier, FakePersistence, make_node


@pytest.fixture
def refreshes() -> list[int]:
    return []


@pytest.fixture
def coordinator(
    abcd_store: TreeStore,
    fake_persistence: FakePersistence,
    fake_notifier: FakeNotifier,
    refreshes: list[int],
) -> DragCoordinator:
    async def refresh() -> None:
        refreshes.append(1)
        abcd_store.load_nodes(await fake_persistence.fetch_tree("space"))

    return DragCoordinator(abcd_store, fake_persistence, refresh=refresh, notifier=fake_notifier)


def test_descendant_of_dragged_node_is_an_invalid_target(coordinator: DragCoordinator) -> None:
    coordinator.start_drag(["B"])

    target = coordinator.update_drop_target("D")
    assert target is not None
    assert not target.is_valid

    target = coordinator.update_drop_target("C")
    assert target is not None
    assert target.is_valid


def test_dragged_node_itself_is_invalid(abcd_state: TreeState) -> None:
    assert not is_valid_drop(abcd_state, ["B"], "B")
    assert is_valid_drop(abcd_state, ["B"], "A")


def test_second_drag_is_rejected(coordinator: DragCoordinator) -> None:
    coordinator.start_drag(["B"])
    with pytest.raises(DragInProgressError):
        coordinator.start_drag(["C"])


def test_empty_drag_is_rejected(coordinator: DragCoordinator) -> None:
    with pytest.raises(ValueError, match="without any node ids"):
        coordinator.start_drag([])


def test_start_drag_snapshots_known_nodes(coordinator: DragCoordinator) -> None:
    session = coordinator.start_drag(["C", "C", "ghost"])
    assert session.dragged_ids == ("C", "ghost")
    assert [n.id for n in session.dragged_nodes] == ["C"]
    assert coordinator.is_active


def test_drop_target_depth_follows_relation(coordinator: DragCoordinator) -> None:
    coordinator.start_drag(["C"])
    inside = coordinator.update_drop_target("B", DropRelation.INSIDE)
    before = coordinator.update_drop_target("B", DropRelation.BEFORE)
    assert inside is not None and inside.depth == 2
    assert before is not None and before.depth == 1


def test_unknown_candidate_clears_the_target(coordinator: DragCoordinator) -> None:
    coordinator.start_drag(["C"])
    coordinator.update_drop_target("B")
    assert coordinator.update_drop_target("ghost") is None
    assert coordinator.session is not None
    assert coordinator.session.drop_target is None


def test_update_without_drag_does_nothing(coordinator: DragCoordinator) -> None:
    assert coordinator.update_drop_target("B") is None


@pytest.mark.parametrize(
    ("relation", "expected"),
    [
        (DropRelation.INSIDE, ("B", 1)),
        (DropRelation.BEFORE, ("A", 0)),
        (DropRelation.AFTER, ("A", 1)),
    ],
)
def test_drop_placement(abcd_state: TreeState, relation: DropRelation, expected: tuple) -> None:
    target = DropTarget("B", relation, 0, True)
    assert drop_placement(abcd_state, target) == expected


def test_drop_inside_leaf_with_unloaded_children_uses_child_count() -> None:
    state = commands.load_nodes(TreeState(), [make_node("L", None, 0, child_count=3)])
    assert drop_placement(state, DropTarget("L", DropRelation.INSIDE, 1, True)) == ("L", 3)


def test_drop_placement_counts_the_moving_sibling_slot(abcd_state: TreeState) -> None:
    after_c = DropTarget("C", DropRelation.AFTER, 1, True)
    assert drop_placement(abcd_state, after_c, "B") == ("A", 1)
    assert drop_placement(abcd_state, after_c, "D") == ("A", 2)
    before_b = DropTarget("B", DropRelation.BEFORE, 1, True)
    assert drop_placement(abcd_state, before_b, "C") == ("A", 0)


@pytest.mark.parametrize(
    ("target_id", "relation", "expected"),
    [
        ("C", DropRelation.AFTER, ("C", "B", "E")),
        ("E", DropRelation.BEFORE, ("C", "B", "E")),
        ("E", DropRelation.AFTER, ("C", "E", "B")),
        ("C", DropRelation.BEFORE, ("B", "C", "E")),
    ],
)
def test_drop_onto_later_sibling_lands_where_shown(
    coordinator: DragCoordinator,
    fake_persistence: FakePersistence,
    target_id: str,
    relation: DropRelation,
    expected: tuple,
) -> None:
    fake_persistence.pages["E"] = make_node("E", "A", 2)
    asyncio.run(coordinator.refresh())
    coordinator.start_drag(["B"])
    coordinator.update_drop_target(target_id, relation)

    assert asyncio.run(coordinator.commit_drag())
    assert coordinator.store.state.nodes["A"].children == expected


def test_multi_drag_after_later_sibling_keeps_dragged_order(
    coordinator: DragCoordinator, fake_persistence: FakePersistence
) -> None:
    fake_persistence.pages["E"] = make_node("E", "A", 2)
    asyncio.run(coordinator.refresh())
    coordinator.start_drag(["B", "C"])
    coordinator.update_drop_target("E", DropRelation.AFTER)

    assert asyncio.run(coordinator.commit_drag())
    moves = [args for name, args in fake_persistence.calls if name == "move_node"]
    assert moves == [("B", "A", 2), ("C", "A", 2)]
    assert coordinator.store.state.nodes["A"].children == ("E", "B", "C")


def test_topmost_ids_drops_dragged_descendants_and_sorts(abcd_state: TreeState) -> None:
    assert topmost_ids(abcd_state, ["D", "C", "B"]) == ["B", "C"]
    assert topmost_ids(abcd_state, ["ghost", "D"]) == ["D"]


def test_commit_moves_node_and_refreshes(
    coordinator: DragCoordinator, fake_persistence: FakePersistence, refreshes: list[int]
) -> None:
    coordinator.start_drag(["D"])
    coordinator.update_drop_target("C", DropRelation.INSIDE)

    assert asyncio.run(coordinator.commit_drag())
    assert ("move_node", ("D", "C", 0)) in fake_persistence.calls
    assert refreshes == [1]
    assert coordinator.store.state.nodes["C"].children == ("D",)


def test_commit_multi_drag_moves_topmost_in_order(
    coordinator: DragCoordinator, fake_persistence: FakePersistence
) -> None:
    fake_persistence.pages["E"] = make_node("E", None, 1)
    asyncio.run(coordinator.refresh())
    coordinator.start_drag(["C", "D", "B"])
    coordinator.update_drop_target("E", DropRelation.INSIDE)

    assert asyncio.run(coordinator.commit_drag())
    moves = [args for name, args in fake_persistence.calls if name == "move_node"]
    assert moves == [("B", "E", 0), ("C", "E", 1)]


def test_commit_on_invalid_target_requests_nothing(
    coordinator: DragCoordinator, fake_persistence: FakePersistence, refreshes: list[int]
) -> None:
    coordinator.start_drag(["B"])
    coordinator.update_drop_target("D")

    assert not asyncio.run(coordinator.commit_drag())
    assert "move_node" not in fake_persistence.call_names()
    assert refreshes == []


def test_failed_move_alerts_and_still_refreshes(
    coordinator: DragCoordinator,
    fake_persistence: FakePersistence,
    fake_notifier: FakeNotifier,
    refreshes: list[int],
) -> None:
    fake_persistence.failing.add("move_node")
    coordinator.start_drag(["D"])
    coordinator.update_drop_target("C")

    assert not asyncio.run(coordinator.commit_drag())
    assert fake_notifier.messages == [MOVE_FAILED]
    assert refreshes == [1]


def test_refused_move_stops_remaining_moves(
    coordinator: DragCoordinator, fake_persistence: FakePersistence, fake_notifier: FakeNotifier
) -> None:
    fake_persistence.refusing.add("move_node")
    coordinator.start_drag(["B", "C"])
    coordinator.update_drop_target("A", DropRelation.AFTER)

    assert not asyncio.run(coordinator.commit_drag())
    assert fake_persistence.call_names().count("move_node") == 1
    assert fake_notifier.messages == [MOVE_FAILED]


def test_on_drag_end_always_ends_the_session(coordinator: DragCoordinator) -> None:
    coordinator.on_drag_start(["B"])
    assert not coordinator.on_drag_over("D")
    assert not asyncio.run(coordinator.on_drag_end("D"))
    assert not coordinator.is_active

    coordinator.on_drag_start(["B"])
    assert not asyncio.run(coordinator.on_drag_end(None))
    assert not coordinator.is_active


def test_on_drag_end_reuses_hovered_relation(
    coordinator: DragCoordinator, fake_persistence: FakePersistence
) -> None:
    coordinator.on_drag_start(["C"])
    assert coordinator.on_drag_over("B", DropRelation.BEFORE)

    assert asyncio.run(coordinator.on_drag_end("B"))
    assert ("move_node", ("C", "A", 0)) in fake_persistence.calls
    assert coordinator.store.state.nodes["A"].children == ("C", "B")
