"""Build the linked page tree from a flat node list."""

from collections import defaultdict, deque
from collections.abc import Iterable
from dataclasses import replace

from loguru import logger

from pagetree.models.node import TreeNode


def build_tree(flat_nodes: Iterable[TreeNode]) -> tuple[dict[str, TreeNode], tuple[str, ...]]:
    """Link a flat list of nodes into a tree.

    Args:
        flat_nodes: Nodes carrying ``parent_id`` and ``position``. Any
            ``children``, ``depth`` or ``path`` they carry is discarded.

    Returns:
        Tuple of (node map by id, root ids ordered by position). Each node's
        ``children`` is ordered by position and ``child_count`` matches it
        whenever the node has loaded children.

    Nodes whose ``parent_id`` does not resolve stay in the map but are linked
    into neither a parent nor the roots.
    """
    node_map: dict[str, TreeNode] = {}
    children_map: dict[str, list[str]] = defaultdict(list)
    root_ids: list[str] = []

    # First pass: index every node, group ids by parent.
    for node in flat_nodes:
        node_map[node.id] = replace(node, children=(), depth=0, path=())
        if node.parent_id is None:
            root_ids.append(node.id)
        else:
            children_map[node.parent_id].append(node.id)

    def by_position(node_id: str) -> int:
        return node_map[node_id].position

    # Second pass: attach sorted children to each resolvable parent.
    for parent_id, child_ids in children_map.items():
        parent = node_map.get(parent_id)
        if parent is None:
            continue
        ordered = tuple(sorted(child_ids, key=by_position))
        node_map[parent_id] = replace(parent, children=ordered, child_count=len(ordered))

    root_ids.sort(key=by_position)

    # Derive depth and ancestor path breadth-first from the roots.
    reached: set[str] = set()
    todo: deque[tuple[str, int, tuple[str, ...]]] = deque((rid, 0, ()) for rid in root_ids)
    while todo:
        node_id, depth, path = todo.popleft()
        if node_id in reached:
            continue
        reached.add(node_id)
        node = node_map[node_id]
        node_map[node_id] = replace(node, depth=depth, path=path)
        for child_id in node.children:
            todo.append((child_id, depth + 1, (*path, node_id)))

    unreachable = sorted(set(node_map) - reached)
    if unreachable:
        logger.warning(
            "Dropping {} node(s) with unresolved parents from the hierarchy: {}",
            len(unreachable),
            unreachable[:10],
        )

    return node_map, tuple(root_ids)
