"""Read-only tree queries: descendants, ancestors, paths."""

from pagetree.core.tree.state import TreeState
from pagetree.models.node import TreeNode


def get_descendant_ids(state: TreeState, node_id: str) -> list[str]:
    """Return every id strictly below ``node_id``.

    Walks the linked ``children`` with an explicit stack so deep trees do not
    hit the recursion limit. Unknown ids have no descendants.
    """
    ids: list[str] = []
    node = state.nodes.get(node_id)
    if node is None:
        return ids

    seen = {node_id}
    stack = list(node.children)
    while stack:
        current_id = stack.pop()
        if current_id in seen:
            continue
        seen.add(current_id)
        ids.append(current_id)
        current = state.nodes.get(current_id)
        if current is not None:
            stack.extend(current.children)
    return ids


def get_ancestor_ids(state: TreeState, node_id: str) -> list[str]:
    """Return the ancestor ids of a node, nearest parent first.

    Follows ``parent_id`` until a root or an unresolved parent. Stops on a
    repeated id, so malformed cyclic input cannot loop forever.
    """
    ancestors: list[str] = []
    seen = {node_id}
    current = state.nodes.get(node_id)
    while current is not None and current.parent_id is not None:
        parent_id = current.parent_id
        if parent_id in seen:
            break
        seen.add(parent_id)
        ancestors.append(parent_id)
        current = state.nodes.get(parent_id)
    return ancestors


def is_descendant_of(state: TreeState, node_id: str, potential_ancestor_id: str) -> bool:
    """Check whether ``node_id`` lies strictly below ``potential_ancestor_id``.

    Irreflexive: a node is never its own descendant.
    """
    if node_id == potential_ancestor_id:
        return False
    return potential_ancestor_id in get_ancestor_ids(state, node_id)


def get_node_path(state: TreeState, node_id: str) -> list[TreeNode]:
    """Return the nodes from the root down to ``node_id`` (inclusive).

    Used for breadcrumbs. Empty when the node is unknown.
    """
    node = state.nodes.get(node_id)
    if node is None:
        return []
    path = [node]
    for ancestor_id in get_ancestor_ids(state, node_id):
        ancestor = state.nodes.get(ancestor_id)
        if ancestor is None:
            break
        path.append(ancestor)
    path.reverse()
    return path


def has_children(state: TreeState, node_id: str) -> bool:
    node = state.nodes.get(node_id)
    return node is not None and node.has_children
