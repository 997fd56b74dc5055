"""Serialized owner of the current tree state."""

from collections import deque
from collections.abc import Callable, Iterable
from typing import Any

from loguru import logger

from pagetree.core.tree import commands
from pagetree.core.tree.queries import (
    get_descendant_ids,
    get_node_path,
    is_descendant_of,
)
from pagetree.core.tree.state import TreeState
from pagetree.core.tree.visibility import get_visible_nodes, is_node_visible
from pagetree.models.node import DragSession, DropTarget, TreeNode

Subscriber = Callable[[TreeState, TreeState], None]


class TreeStore:
    """Holds one TreeState and applies commands to it one at a time.

    Commands dispatched from inside a subscriber are queued and run after the
    current notification round, so every subscriber sees each transition in
    order. A command that returns the same snapshot notifies nobody.
    """

    def __init__(self, state: TreeState | None = None) -> None:
        self._state = state if state is not None else TreeState()
        self._subscribers: list[Subscriber] = []
        self._pending: deque[tuple[Callable[..., TreeState], tuple, dict]] = deque()
        self._dispatching = False

    @property
    def state(self) -> TreeState:
        return self._state

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback(old, new)``; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def dispatch(self, command: Callable[..., TreeState], *args: Any, **kwargs: Any) -> TreeState:
        """Apply ``command(state, *args, **kwargs)`` and notify subscribers.

        A command that raises leaves the state untouched and drops any queued
        follow-up commands.
        """
        self._pending.append((command, args, kwargs))
        if self._dispatching:
            return self._state

        self._dispatching = True
        try:
            while self._pending:
                fn, fn_args, fn_kwargs = self._pending.popleft()
                old = self._state
                new = fn(old, *fn_args, **fn_kwargs)
                if new is old:
                    continue
                self._state = new
                for callback in list(self._subscribers):
                    try:
                        callback(old, new)
                    except Exception:
                        logger.exception("Tree subscriber {} failed", getattr(callback, "__name__", callback))
        except Exception:
            self._pending.clear()
            raise
        finally:
            self._dispatching = False
        return self._state

    # --- Commands ---

    def load_nodes(self, flat_nodes: Iterable[TreeNode]) -> TreeState:
        return self.dispatch(commands.load_nodes, list(flat_nodes))

    def add_node(self, node: TreeNode) -> TreeState:
        return self.dispatch(commands.add_node, node)

    def update_node(self, node_id: str, **updates: Any) -> TreeState:
        return self.dispatch(commands.update_node, node_id, **updates)

    def delete_node(self, node_id: str) -> TreeState:
        return self.dispatch(commands.delete_node, node_id)

    def move_node(self, node_id: str, new_parent_id: str | None, new_position: int) -> TreeState:
        return self.dispatch(commands.move_node, node_id, new_parent_id, new_position)

    def toggle_expand(self, node_id: str) -> TreeState:
        return self.dispatch(commands.toggle_expand, node_id)

    def expand_node(self, node_id: str) -> TreeState:
        return self.dispatch(commands.expand_node, node_id)

    def collapse_node(self, node_id: str) -> TreeState:
        return self.dispatch(commands.collapse_node, node_id)

    def expand_all(self) -> TreeState:
        return self.dispatch(commands.expand_all)

    def collapse_all(self) -> TreeState:
        return self.dispatch(commands.collapse_all)

    def expand_recursive(self, node_id: str) -> TreeState:
        return self.dispatch(commands.expand_recursive, node_id)

    def collapse_recursive(self, node_id: str) -> TreeState:
        return self.dispatch(commands.collapse_recursive, node_id)

    def set_expanded_ids(self, expanded_ids: Iterable[str]) -> TreeState:
        return self.dispatch(commands.set_expanded_ids, list(expanded_ids))

    def set_selected(self, node_id: str | None) -> TreeState:
        return self.dispatch(commands.set_selected, node_id)

    def set_focused(self, node_id: str | None) -> TreeState:
        return self.dispatch(commands.set_focused, node_id)

    def set_search_query(self, query: str) -> TreeState:
        return self.dispatch(commands.set_search_query, query)

    def set_drag(self, session: DragSession | None) -> TreeState:
        return self.dispatch(commands.set_drag, session)

    def set_drop_target(self, target: DropTarget | None) -> TreeState:
        return self.dispatch(commands.set_drop_target, target)

    def set_loading(self, is_loading: bool) -> TreeState:
        return self.dispatch(commands.set_loading, is_loading)

    def set_error(self, error: str | None) -> TreeState:
        return self.dispatch(commands.set_error, error)

    # --- Queries ---

    def get_visible_nodes(self) -> list[TreeNode]:
        return get_visible_nodes(self._state)

    def is_node_visible(self, node_id: str) -> bool:
        return is_node_visible(self._state, node_id)

    def get_descendant_ids(self, node_id: str) -> list[str]:
        return get_descendant_ids(self._state, node_id)

    def is_descendant_of(self, node_id: str, potential_ancestor_id: str) -> bool:
        return is_descendant_of(self._state, node_id, potential_ancestor_id)

    def get_node_path(self, node_id: str) -> list[TreeNode]:
        return get_node_path(self._state, node_id)
