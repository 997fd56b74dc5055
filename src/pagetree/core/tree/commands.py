"""Pure page tree commands.

Every command takes a TreeState snapshot and returns the next one. A command
that changes nothing returns the very same object, which lets the store skip
notifying subscribers.
"""

from collections.abc import Iterable
from dataclasses import replace
from typing import Any

from pagetree.core.search.filter import filter_nodes
from pagetree.core.tree.builder import build_tree
from pagetree.core.tree.queries import get_descendant_ids, is_descendant_of
from pagetree.core.tree.state import TreeState, freeze_nodes
from pagetree.errors import InvalidMoveError
from pagetree.models.node import DragSession, DropTarget, SearchState, TreeNode

# Fields owned by the tree builder; callers may not patch them directly.
_DERIVED_FIELDS = frozenset({"id", "children", "depth", "path"})


def _with_nodes(state: TreeState, nodes: Iterable[TreeNode], *, from_server: bool = False) -> TreeState:
    """Rebuild links from ``nodes`` and prune state that no longer applies.

    Local rebuilds reset ``child_count`` of nodes that had loaded children, so
    a parent whose last child went away stops reporting children. A server
    load keeps the reported counts of nodes whose children are not loaded.
    """
    if from_server:
        flat = list(nodes)
    else:
        flat = [replace(n, child_count=0) if n.children else n for n in nodes]
    node_map, root_ids = build_tree(flat)
    next_state = replace(state, nodes=freeze_nodes(node_map), root_ids=root_ids)

    expanded = frozenset(
        nid for nid in state.expanded_ids if nid in node_map and node_map[nid].has_children
    )
    selected = state.selected_id if state.selected_id in node_map else None
    focused = state.focused_id if state.focused_id in node_map else None
    search = state.search
    if search.filtered_ids is not None:
        search = SearchState(search.query, filter_nodes(next_state, search.query))

    return replace(
        next_state,
        expanded_ids=expanded,
        selected_id=selected,
        focused_id=focused,
        search=search,
    )


def _check_parent(state: TreeState, node_id: str, new_parent_id: str | None) -> None:
    """Raise InvalidMoveError if ``new_parent_id`` cannot hold ``node_id``."""
    if new_parent_id is None:
        return
    if new_parent_id == node_id:
        msg = f"Cannot move {node_id!r} into itself"
        raise InvalidMoveError(msg)
    if new_parent_id not in state.nodes:
        msg = f"Cannot move {node_id!r}: parent {new_parent_id!r} not found"
        raise InvalidMoveError(msg)
    if is_descendant_of(state, new_parent_id, node_id):
        msg = f"Cannot move {node_id!r} into its own descendant {new_parent_id!r}"
        raise InvalidMoveError(msg)


# --- Node data ---


def load_nodes(state: TreeState, flat_nodes: Iterable[TreeNode]) -> TreeState:
    """Replace all nodes with a fresh server listing.

    Expansion survives for ids that are still present and still have children.
    An active search is re-run against the new nodes.
    """
    next_state = _with_nodes(state, flat_nodes, from_server=True)
    return replace(next_state, is_loading=False, error=None)


def add_node(state: TreeState, node: TreeNode) -> TreeState:
    """Insert (or replace) a node and relink the tree."""
    _check_parent(state, node.id, node.parent_id)
    nodes = [n for n in state.nodes.values() if n.id != node.id]
    nodes.append(node)
    return _with_nodes(state, nodes)


def update_node(state: TreeState, node_id: str, **updates: Any) -> TreeState:
    """Patch fields of an existing node. Unknown ids are ignored.

    Changing ``parent_id`` is validated like a move.
    """
    node = state.nodes.get(node_id)
    if node is None or not updates:
        return state
    derived = _DERIVED_FIELDS.intersection(updates)
    if derived:
        msg = f"Cannot update derived fields: {sorted(derived)!r}"
        raise ValueError(msg)
    if "parent_id" in updates and updates["parent_id"] != node.parent_id:
        _check_parent(state, node_id, updates["parent_id"])

    updated = replace(node, **updates)
    return _with_nodes(state, (updated if n.id == node_id else n for n in state.nodes.values()))


def delete_node(state: TreeState, node_id: str) -> TreeState:
    """Remove a node and all of its descendants.

    The removed ids also leave ``expanded_ids``; selection and focus are
    cleared when they pointed into the removed subtree.
    """
    if node_id not in state.nodes:
        return state
    doomed = {node_id, *get_descendant_ids(state, node_id)}
    return _with_nodes(state, (n for n in state.nodes.values() if n.id not in doomed))


def move_node(
    state: TreeState, node_id: str, new_parent_id: str | None, new_position: int
) -> TreeState:
    """Reparent and/or reorder a node.

    ``new_position`` is the node's final index among its new siblings: the gap
    left at the old position closes, then siblings at or after the new
    position shift up by one. Moving to the current place is a no-op.

    Raises:
        InvalidMoveError: ``new_parent_id`` is the node itself, one of its
            descendants, or unknown. The state is left untouched.
    """
    node = state.nodes.get(node_id)
    if node is None:
        return state
    _check_parent(state, node_id, new_parent_id)

    if node.parent_id == new_parent_id and node.position == new_position:
        return state

    moved: list[TreeNode] = []
    for other in state.nodes.values():
        if other.id == node_id:
            moved.append(replace(other, parent_id=new_parent_id, position=new_position))
            continue
        position = other.position
        if other.parent_id == node.parent_id and position > node.position:
            position -= 1
        if other.parent_id == new_parent_id and position >= new_position:
            position += 1
        moved.append(other if position == other.position else replace(other, position=position))
    return _with_nodes(state, moved)


# --- Expansion ---


def expand_node(state: TreeState, node_id: str) -> TreeState:
    """Expand a node. Expanding a leaf or an unknown id is a no-op."""
    node = state.nodes.get(node_id)
    if node is None or not node.has_children or node_id in state.expanded_ids:
        return state
    return replace(state, expanded_ids=state.expanded_ids | {node_id})


def collapse_node(state: TreeState, node_id: str) -> TreeState:
    if node_id not in state.expanded_ids:
        return state
    return replace(state, expanded_ids=state.expanded_ids - {node_id})


def toggle_expand(state: TreeState, node_id: str) -> TreeState:
    if node_id in state.expanded_ids:
        return collapse_node(state, node_id)
    return expand_node(state, node_id)


def expand_all(state: TreeState) -> TreeState:
    expanded = frozenset(nid for nid, node in state.nodes.items() if node.has_children)
    return replace(state, expanded_ids=expanded)


def collapse_all(state: TreeState) -> TreeState:
    if not state.expanded_ids:
        return state
    return replace(state, expanded_ids=frozenset())


def expand_recursive(state: TreeState, node_id: str) -> TreeState:
    """Expand a node and every descendant that has children."""
    if node_id not in state.nodes:
        return state
    candidates = [node_id, *get_descendant_ids(state, node_id)]
    extra = {nid for nid in candidates if state.nodes[nid].has_children}
    return replace(state, expanded_ids=state.expanded_ids | extra)


def collapse_recursive(state: TreeState, node_id: str) -> TreeState:
    """Collapse a node and forget the expansion of its whole subtree."""
    doomed = {node_id, *get_descendant_ids(state, node_id)}
    return replace(state, expanded_ids=state.expanded_ids - doomed)


def set_expanded_ids(state: TreeState, expanded_ids: Iterable[str]) -> TreeState:
    """Restore a saved expansion set.

    Before any node is loaded the ids are kept as given; the next load prunes
    them. Once nodes exist, only ids of nodes with children are kept.
    """
    ids = frozenset(expanded_ids)
    if state.nodes:
        ids = frozenset(nid for nid in ids if nid in state.nodes and state.nodes[nid].has_children)
    return replace(state, expanded_ids=ids)


# --- Selection, search ---


def set_selected(state: TreeState, node_id: str | None) -> TreeState:
    if node_id is not None and node_id not in state.nodes:
        return state
    return replace(state, selected_id=node_id)


def set_focused(state: TreeState, node_id: str | None) -> TreeState:
    if node_id is not None and node_id not in state.nodes:
        return state
    return replace(state, focused_id=node_id)


def set_search_query(state: TreeState, query: str) -> TreeState:
    """Filter by title and auto-expand every ancestor of each match."""
    filtered = filter_nodes(state, query)
    if filtered is None:
        return replace(state, search=SearchState(query, None))

    parents = {
        node.parent_id
        for nid in filtered
        if (node := state.nodes.get(nid)) is not None and node.parent_id in state.nodes
    }
    return replace(
        state,
        search=SearchState(query, filtered),
        expanded_ids=state.expanded_ids | parents,
    )


# --- Drag session, loading ---


def set_drag(state: TreeState, session: DragSession | None) -> TreeState:
    return replace(state, drag=session)


def set_drop_target(state: TreeState, target: DropTarget | None) -> TreeState:
    if state.drag is None:
        return state
    return replace(state, drag=replace(state.drag, drop_target=target))


def set_loading(state: TreeState, is_loading: bool) -> TreeState:
    return replace(state, is_loading=is_loading)


def set_error(state: TreeState, error: str | None) -> TreeState:
    return replace(state, error=error, is_loading=False)
