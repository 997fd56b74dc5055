"""Tests for the serialized tree store."""

import pytest

from pagetree.core.tree import commands
from pagetree.core.tree.state import TreeState
from pagetree.core.tree.store import TreeStore
from pagetree.errors import InvalidMoveError
from tests.unit.fakes import ABCD


def test_subscribers_receive_old_and_new_state() -> None:
    store = TreeStore()
    seen: list[tuple[TreeState, TreeState]] = []
    store.subscribe(lambda old, new: seen.append((old, new)))

    before = store.state
    after = store.load_nodes(ABCD)

    assert seen == [(before, after)]
    assert after is store.state


def test_noop_command_notifies_nobody(abcd_store: TreeStore) -> None:
    calls: list[TreeState] = []
    abcd_store.subscribe(lambda _old, new: calls.append(new))

    abcd_store.expand_node("D")  # leaf
    abcd_store.set_selected("nope")

    assert calls == []


def test_unsubscribe_stops_notifications(abcd_store: TreeStore) -> None:
    calls: list[TreeState] = []
    unsubscribe = abcd_store.subscribe(lambda _old, new: calls.append(new))
    abcd_store.expand_node("A")
    unsubscribe()
    unsubscribe()
    abcd_store.collapse_node("A")
    assert len(calls) == 1


def test_dispatch_from_subscriber_is_queued(abcd_store: TreeStore) -> None:
    order: list[str] = []

    def first(old: TreeState, new: TreeState) -> None:
        order.append(f"first:{sorted(new.expanded_ids)}")
        if "A" in new.expanded_ids and "B" not in new.expanded_ids:
            abcd_store.expand_node("B")
            # Still the state of the current round.
            assert abcd_store.state is new

    def second(old: TreeState, new: TreeState) -> None:
        order.append(f"second:{sorted(new.expanded_ids)}")

    abcd_store.subscribe(first)
    abcd_store.subscribe(second)
    final = abcd_store.expand_node("A")

    assert order == [
        "first:['A']",
        "second:['A']",
        "first:['A', 'B']",
        "second:['A', 'B']",
    ]
    assert final.expanded_ids == {"A", "B"}


def test_failing_subscriber_does_not_stop_others(abcd_store: TreeStore) -> None:
    calls: list[str] = []

    def broken(_old: TreeState, _new: TreeState) -> None:
        raise RuntimeError("boom")

    abcd_store.subscribe(broken)
    abcd_store.subscribe(lambda _old, _new: calls.append("ok"))
    abcd_store.expand_node("A")

    assert calls == ["ok"]
    assert "A" in abcd_store.state.expanded_ids


def test_raising_command_leaves_state_and_propagates(abcd_store: TreeStore) -> None:
    before = abcd_store.state
    with pytest.raises(InvalidMoveError):
        abcd_store.move_node("A", "D", 0)
    assert abcd_store.state is before


def test_raising_command_drops_queued_followups(abcd_store: TreeStore) -> None:
    def chain(_old: TreeState, new: TreeState) -> None:
        if new.selected_id == "C":
            abcd_store.move_node("A", "D", 0)
            abcd_store.expand_node("A")

    unsubscribe = abcd_store.subscribe(chain)
    with pytest.raises(InvalidMoveError):
        abcd_store.set_selected("C")

    assert abcd_store.state.selected_id == "C"
    assert "A" not in abcd_store.state.expanded_ids

    # The store is usable again afterwards.
    unsubscribe()
    abcd_store.expand_node("B")
    assert "B" in abcd_store.state.expanded_ids


def test_dispatch_accepts_any_command(abcd_store: TreeStore) -> None:
    state = abcd_store.dispatch(commands.expand_recursive, "A")
    assert state.expanded_ids == {"A", "B"}


def test_store_queries_delegate_to_state(abcd_store: TreeStore) -> None:
    abcd_store.expand_all()
    assert [n.id for n in abcd_store.get_visible_nodes()] == ["A", "B", "D", "C"]
    assert abcd_store.is_node_visible("D")
    assert abcd_store.is_descendant_of("D", "A")
    assert abcd_store.get_descendant_ids("B") == ["D"]
    assert [n.id for n in abcd_store.get_node_path("D")] == ["A", "B", "D"]
