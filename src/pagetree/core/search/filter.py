"""Title search with ancestor closure."""

from pagetree.core.tree.queries import get_ancestor_ids
from pagetree.core.tree.state import TreeState


def filter_nodes(state: TreeState, query: str) -> frozenset[str] | None:
    """Compute the ids left visible by a search query.

    Args:
        state: Tree snapshot to search.
        query: Case-insensitive substring matched against page titles.

    Returns:
        None when the query is empty or whitespace (no filtering). Otherwise
        the matching ids plus every ancestor of each match, so the path from a
        root to each hit stays visible.
    """
    if not query.strip():
        return None

    needle = query.casefold()
    visible: set[str] = set()
    for node_id, node in state.nodes.items():
        if needle not in node.title.casefold():
            continue
        visible.add(node_id)
        visible.update(get_ancestor_ids(state, node_id))
    return frozenset(visible)


def match_ids(state: TreeState, query: str) -> list[str]:
    """Return only the direct title matches, without their ancestors."""
    if not query.strip():
        return []
    needle = query.casefold()
    return [nid for nid, node in state.nodes.items() if needle in node.title.casefold()]
