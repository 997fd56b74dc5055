"""Turn the visible node list into display rows.

Rendering works on the already flattened ``get_visible_nodes`` output with
plain loops, so tree depth never matters.
"""

from dataclasses import replace

from pagetree.config import INDENT_PER_LEVEL, MAX_VISIBLE_LABELS
from pagetree.core.tree.state import TreeState
from pagetree.core.tree.visibility import get_visible_nodes
from pagetree.models.node import InlineCreationRequest, PageStatus, RenderedRow, TreeNode

UNTITLED = "Untitled"
NO_MATCHES = "No pages match your search"
NO_PAGES = "No pages yet"
CREATOR_PLACEHOLDER = "New page"


def empty_message(state: TreeState) -> str:
    return NO_MATCHES if state.search_query else NO_PAGES


def _creator_slot(
    visible: list[TreeNode], request: InlineCreationRequest
) -> tuple[int, int] | None:
    """Return ``(index, depth)`` where the creator row goes, or None if hidden."""
    if request.after_id is not None:
        for index, node in enumerate(visible):
            if node.id != request.after_id:
                continue
            end = index + 1
            while end < len(visible) and visible[end].depth > node.depth:
                end += 1
            return end, node.depth

    if request.parent_id is None:
        return len(visible), 0
    for index, node in enumerate(visible):
        if node.id == request.parent_id:
            return index + 1, node.depth + 1
    return None


def _node_row(state: TreeState, node: TreeNode) -> RenderedRow:
    labels = node.labels
    return RenderedRow(
        node_id=node.id,
        title=node.title or UNTITLED,
        depth=node.depth,
        indent=node.depth * INDENT_PER_LEVEL,
        icon=node.icon,
        has_children=node.has_children,
        is_expanded=node.has_children and node.id in state.expanded_ids,
        is_selected=node.id == state.selected_id,
        is_focused=node.id == state.focused_id,
        status=node.status,
        labels_shown=labels[:MAX_VISIBLE_LABELS],
        labels_hidden_count=max(0, len(labels) - MAX_VISIBLE_LABELS),
        has_unpublished_changes=node.has_unpublished_changes,
    )


def render_rows(state: TreeState, creator: InlineCreationRequest | None = None) -> list[RenderedRow]:
    """Build the display rows for the current state.

    Args:
        state: Tree snapshot.
        creator: Pending inline creation. Its row is the first child of its
            parent, after ``after_id``'s subtree when given, or after the last
            root for a root page. It is omitted when its parent is hidden.

    Returns:
        Rows in display order with sibling and connector flags filled in.
    """
    visible = get_visible_nodes(state)
    rows = [_node_row(state, node) for node in visible]

    if creator is not None:
        slot = _creator_slot(visible, creator)
        if slot is not None:
            index, depth = slot
            rows.insert(
                index,
                RenderedRow(
                    node_id=None,
                    title=creator.title,
                    depth=depth,
                    indent=depth * INDENT_PER_LEVEL,
                    is_inline_creator=True,
                ),
            )

    # Sibling flags: a row is first/last if no sibling appears before/after it
    # under the same visible parent.
    is_first = [False] * len(rows)
    is_last = [False] * len(rows)
    seen: list[bool] = []
    for i, row in enumerate(rows):
        del seen[row.depth + 1 :]
        seen.extend([False] * (row.depth + 1 - len(seen)))
        is_first[i] = not seen[row.depth]
        seen[row.depth] = True
    seen = []
    for i in range(len(rows) - 1, -1, -1):
        depth = rows[i].depth
        del seen[depth + 1 :]
        seen.extend([False] * (depth + 1 - len(seen)))
        is_last[i] = not seen[depth]
        seen[depth] = True

    # Connector lines continue at every ancestor depth whose ancestor is not last.
    result: list[RenderedRow] = []
    ancestor_last: list[bool] = []
    for i, row in enumerate(rows):
        del ancestor_last[row.depth :]
        lines = tuple(depth for depth, last in enumerate(ancestor_last) if not last)
        ancestor_last.extend([True] * (row.depth - len(ancestor_last)))
        ancestor_last.append(is_last[i])
        result.append(
            replace(row, is_first=is_first[i], is_last=is_last[i], parent_line_depths=lines)
        )
    return result


def format_row(row: RenderedRow) -> str:
    """Format a row's own text, without connectors."""
    if row.is_inline_creator:
        return f"+ {row.title or CREATOR_PLACEHOLDER}_"

    parts: list[str] = []
    if row.has_children:
        parts.append("▾" if row.is_expanded else "▸")
    if row.icon:
        parts.append(row.icon)
    parts.append(row.title)
    if row.status is not PageStatus.DRAFT:
        parts.append(f"[{row.status.value}]")
    parts.extend(f"#{label.name}" for label in row.labels_shown)
    if row.labels_hidden_count:
        parts.append(f"+{row.labels_hidden_count}")
    if row.has_unpublished_changes:
        parts.append("•")
    text = " ".join(parts)
    if row.is_selected:
        text = f"> {text}"
    return text


def render_text(rows: list[RenderedRow]) -> str:
    """Draw rows as a box-drawing tree. Roots are flush left."""
    lines: list[str] = []
    for row in rows:
        if row.depth == 0:
            lines.append(format_row(row))
            continue
        prefix = "".join(
            "│   " if depth in row.parent_line_depths else "    " for depth in range(1, row.depth)
        )
        connector = "└── " if row.is_last else "├── "
        lines.append(f"{prefix}{connector}{format_row(row)}")
    return "\n".join(lines)
