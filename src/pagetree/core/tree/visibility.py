"""Flatten the tree into the rows a user can currently see."""

from pagetree.core.tree.state import TreeState
from pagetree.models.node import TreeNode


def get_visible_nodes(state: TreeState) -> list[TreeNode]:
    """Return the visible nodes in depth-first pre-order.

    A node is listed when every ancestor is expanded and, while a search is
    active, it is part of the filtered set. A node excluded by the filter
    hides its whole subtree.
    """
    filtered = state.filtered_ids
    visible: list[TreeNode] = []
    stack = list(reversed(state.root_ids))
    seen: set[str] = set()

    while stack:
        node_id = stack.pop()
        if node_id in seen:
            continue
        seen.add(node_id)
        node = state.nodes.get(node_id)
        if node is None:
            continue
        if filtered is not None and node_id not in filtered:
            continue
        visible.append(node)
        if node_id in state.expanded_ids and node.children:
            stack.extend(reversed(node.children))

    return visible


def is_node_visible(state: TreeState, node_id: str) -> bool:
    """Check a single node without flattening the whole tree."""
    filtered = state.filtered_ids
    node = state.nodes.get(node_id)
    if node is None:
        return False
    if filtered is not None and node_id not in filtered:
        return False

    seen = {node_id}
    while node.parent_id is not None:
        parent_id = node.parent_id
        if parent_id in seen or parent_id not in state.expanded_ids:
            return False
        parent = state.nodes.get(parent_id)
        if parent is None:
            return False
        if filtered is not None and parent_id not in filtered:
            return False
        seen.add(parent_id)
        node = parent
    return True
