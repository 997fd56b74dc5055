"""Render page subtrees as markdown."""

import io

from pagetree.core.tree.state import TreeState
from pagetree.models.node import PageStatus


def render_subtree_as_markdown(
    state: TreeState,
    *,
    node_id: str,
    max_depth: int | None = None,
    include_status: bool = True,
) -> str:
    """Render a page and its loaded descendants as indented markdown.

    Args:
        state: Tree snapshot holding the pages.
        node_id: The page to start rendering from.
        max_depth: Max levels below the start page to include (None = unlimited).
        include_status: Whether to append non-draft statuses and the
            unpublished-changes marker.

    Returns:
        Markdown string with bullet-list hierarchy, empty for an unknown page.
    """
    if node_id not in state.nodes:
        return ""

    out = io.StringIO()
    stack: list[tuple[str, int]] = [(node_id, 0)]
    seen: set[str] = set()
    while stack:
        current_id, relative_depth = stack.pop()
        if current_id in seen:
            continue
        seen.add(current_id)
        node = state.nodes.get(current_id)
        if node is None:
            continue

        indent = "    " * relative_depth
        title = node.title or "Untitled"
        if node.icon:
            title = f"{node.icon} {title}"
        suffix = ""
        if include_status:
            if node.status is not PageStatus.DRAFT:
                suffix += f" `{node.status.value}`"
            if node.has_unpublished_changes:
                suffix += " *(unpublished changes)*"
        out.write(f"{indent}- {title}{suffix}\n")

        # Truncation indicator when children are cut off by max_depth
        if max_depth is not None and relative_depth >= max_depth:
            count = len(node.children) or node.child_count
            if count > 0:
                noun = "child" if count == 1 else "children"
                out.write(f"{indent}    - ... ({count} more {noun}, id={node.id})\n")
            continue

        stack.extend((child_id, relative_depth + 1) for child_id in reversed(node.children))

    return out.getvalue()
