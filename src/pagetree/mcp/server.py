"""MCP server exposing page tree browsing and editing tools."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from pagetree.api import PageTreeApi
from pagetree.core.search.filter import match_ids
from pagetree.core.tree import commands
from pagetree.core.tree.markdown import render_subtree_as_markdown
from pagetree.core.tree.queries import get_descendant_ids, get_node_path
from pagetree.core.tree.state import TreeState
from pagetree.errors import InvalidMoveError, PersistenceError
from pagetree.persistence import HttpPersistence
from pagetree.protocols import PersistencePort


async def _load(persistence: PersistencePort, space: str) -> TreeState:
    return commands.load_nodes(TreeState(), await persistence.fetch_tree(space))


def _breadcrumbs_str(state: TreeState, node_id: str) -> str:
    ancestors = get_node_path(state, node_id)[:-1]
    return " > ".join((n.title or "Untitled")[:40] for n in ancestors)


def _node_json(state: TreeState, node_id: str, depth_left: int | None) -> dict[str, Any]:
    node = state.nodes[node_id]
    entry: dict[str, Any] = {
        "id": node.id,
        "title": node.title,
        "status": node.status.value,
        "position": node.position,
        "child_count": node.child_count,
    }
    if depth_left is None or depth_left > 0:
        next_depth = None if depth_left is None else depth_left - 1
        entry["children"] = [_node_json(state, cid, next_depth) for cid in node.children]
    return entry


# --- Core functions (testable without MCP context) ---


async def page_tree_view(
    persistence: PersistencePort,
    *,
    space: str,
    node_id: str | None = None,
    max_depth: int | None = None,
    output_format: str = "markdown",
) -> dict[str, Any]:
    """Read the page tree of a space, or one page's subtree.

    Args:
        space: Space id or slug.
        node_id: Page to start from (None = every root page).
        max_depth: Max depth levels to include (None = unlimited).
        output_format: "markdown" or "json".
    """
    try:
        state = await _load(persistence, space)
    except PersistenceError as e:
        return {"error": str(e)}

    if node_id is not None and node_id not in state.nodes:
        return {"error": f"Page '{node_id}' not found."}
    start_ids = [node_id] if node_id is not None else list(state.root_ids)

    output: dict[str, Any] = {"space": space, "page_count": len(state.nodes)}
    if output_format == "json":
        output["pages"] = [_node_json(state, sid, max_depth) for sid in start_ids]
    else:
        output["content"] = "".join(
            render_subtree_as_markdown(state, node_id=sid, max_depth=max_depth) for sid in start_ids
        )
    if node_id is not None:
        output["breadcrumbs"] = _breadcrumbs_str(state, node_id)
    return output


async def page_tree_search(
    persistence: PersistencePort,
    *,
    space: str,
    query: str,
    limit: int = 20,
) -> dict[str, Any]:
    """Find pages whose title contains ``query`` (case-insensitive).

    Args:
        space: Space id or slug.
        query: Title substring.
        limit: Max results (1-100, default 20).
    """
    if not query.strip():
        return {"error": "No search query provided.", "results": [], "count": 0, "total": 0}
    limit = max(1, min(limit, 100))

    try:
        state = await _load(persistence, space)
    except PersistenceError as e:
        return {"error": str(e), "results": [], "count": 0, "total": 0}

    matches = match_ids(state, query)
    results = [
        {
            "node_id": nid,
            "title": state.nodes[nid].title,
            "status": state.nodes[nid].status.value,
            "breadcrumbs": _breadcrumbs_str(state, nid),
        }
        for nid in matches[:limit]
    ]
    return {"results": results, "count": len(results), "total": len(matches)}


async def page_tree_move(
    persistence: PersistencePort,
    *,
    space: str,
    node_id: str,
    new_parent_id: str | None = None,
    new_position: int = 0,
) -> dict[str, Any]:
    """Move a page under a new parent and/or to a new sibling position.

    The move is checked against the current tree first; moving a page into
    itself or below itself is refused.
    """
    try:
        state = await _load(persistence, space)
    except PersistenceError as e:
        return {"success": False, "error": str(e)}
    if node_id not in state.nodes:
        return {"success": False, "error": f"Page '{node_id}' not found."}

    try:
        commands.move_node(state, node_id, new_parent_id, new_position)
    except InvalidMoveError as e:
        return {"success": False, "error": str(e)}

    try:
        ok = await persistence.move_node(node_id, new_parent_id, new_position)
    except PersistenceError as e:
        return {"success": False, "error": str(e)}
    if not ok:
        return {"success": False, "error": "Failed to move page"}
    return {"success": True, "node_id": node_id, "parent_id": new_parent_id, "position": new_position}


async def page_tree_create(
    persistence: PersistencePort,
    *,
    space: str,
    title: str,
    parent_id: str | None = None,
) -> dict[str, Any]:
    """Create a page (at the root when ``parent_id`` is None)."""
    if not title.strip():
        return {"success": False, "error": "Title must not be empty."}
    if parent_id is not None:
        try:
            state = await _load(persistence, space)
        except PersistenceError as e:
            return {"success": False, "error": str(e)}
        if parent_id not in state.nodes:
            return {"success": False, "error": f"Page '{parent_id}' not found."}

    try:
        page = await persistence.create_node(parent_id, title.strip())
    except PersistenceError as e:
        return {"success": False, "error": str(e)}
    if page is None:
        return {"success": False, "error": "Failed to create page"}
    return {"success": True, "node_id": page.id, "title": page.title}


async def page_tree_delete(
    persistence: PersistencePort,
    *,
    space: str,
    node_id: str,
) -> dict[str, Any]:
    """Delete a page together with every page below it."""
    try:
        state = await _load(persistence, space)
    except PersistenceError as e:
        return {"success": False, "error": str(e)}
    if node_id not in state.nodes:
        return {"success": False, "error": f"Page '{node_id}' not found."}

    descendants = get_descendant_ids(state, node_id)
    try:
        ok = await persistence.delete_node(node_id)
    except PersistenceError as e:
        return {"success": False, "error": str(e)}
    if not ok:
        return {"success": False, "error": "Failed to delete page"}
    return {"success": True, "node_id": node_id, "deleted_count": 1 + len(descendants)}


# --- MCP Server Setup ---


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime."""

    api: PageTreeApi | None
    error: str | None = None

    def persistence(self, space: str) -> PersistencePort:
        if self.api is None:
            raise PersistenceError(self.error or "Page service is not configured")
        return HttpPersistence(self.api, space_id=space)


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Create the page service client on startup."""
    try:
        api = PageTreeApi()
    except PersistenceError as e:
        logger.warning("Page service unavailable: {}", e)
        yield ServerContext(api=None, error=str(e))
        return
    try:
        yield ServerContext(api=api)
    finally:
        api.sess.close()


mcp_server = FastMCP(
    "pagetree",
    instructions="""\
The page tree is a hierarchy of pages inside a space. Every tool takes the
space id or slug.

## Workflow
1. Call page_tree_view_tool (optionally with max_depth=2) for an outline.
2. Use page_tree_search_tool to find pages by title; results carry breadcrumbs.
3. Read a page's subtree with page_tree_view_tool and its node_id.

Moves that would place a page inside itself or its own descendants are refused.
Deleting a page also deletes every page below it.
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


def _persistence(mcp_ctx: Context, space: str) -> PersistencePort | dict[str, Any]:
    try:
        return _ctx(mcp_ctx).persistence(space)
    except PersistenceError as e:
        return {"error": str(e)}


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def page_tree_view_tool(
    ctx: Context,
    space: str,
    node_id: str | None = None,
    max_depth: int | None = None,
    output_format: str = "markdown",
) -> dict[str, Any]:
    """Read the page tree of a space, or one page's subtree.

    Args:
        space: Space id or slug.
        node_id: Page to start from (omit for the whole tree).
        max_depth: Max depth levels (None = unlimited).
        output_format: "markdown" (human-readable) or "json" (structured).
    """
    persistence = _persistence(ctx, space)
    if isinstance(persistence, dict):
        return persistence
    return await page_tree_view(
        persistence, space=space, node_id=node_id, max_depth=max_depth, output_format=output_format
    )


@mcp_server.tool()
async def page_tree_search_tool(ctx: Context, space: str, query: str, limit: int = 20) -> dict[str, Any]:
    """Find pages whose title contains the query (case-insensitive).

    Args:
        space: Space id or slug.
        query: Title substring.
        limit: Max results (1-100, default 20).
    """
    persistence = _persistence(ctx, space)
    if isinstance(persistence, dict):
        return persistence
    return await page_tree_search(persistence, space=space, query=query, limit=limit)


@mcp_server.tool()
async def page_tree_move_tool(
    ctx: Context,
    space: str,
    node_id: str,
    new_parent_id: str | None = None,
    new_position: int = 0,
) -> dict[str, Any]:
    """Move a page under a new parent (omit for root) at a sibling position.

    Args:
        space: Space id or slug.
        node_id: Page to move.
        new_parent_id: New parent page id, or omit to make it a root page.
        new_position: Position among the new siblings (0 = first).
    """
    persistence = _persistence(ctx, space)
    if isinstance(persistence, dict):
        return persistence
    return await page_tree_move(
        persistence, space=space, node_id=node_id, new_parent_id=new_parent_id, new_position=new_position
    )


@mcp_server.tool()
async def page_tree_create_tool(
    ctx: Context,
    space: str,
    title: str,
    parent_id: str | None = None,
) -> dict[str, Any]:
    """Create a new page.

    Args:
        space: Space id or slug.
        title: Title of the page.
        parent_id: Parent page id, or omit to create a root page.
    """
    persistence = _persistence(ctx, space)
    if isinstance(persistence, dict):
        return persistence
    return await page_tree_create(persistence, space=space, title=title, parent_id=parent_id)


@mcp_server.tool()
async def page_tree_delete_tool(ctx: Context, space: str, node_id: str) -> dict[str, Any]:
    """Delete a page and every page below it.

    Args:
        space: Space id or slug.
        node_id: Page to delete.
    """
    persistence = _persistence(ctx, space)
    if isinstance(persistence, dict):
        return persistence
    return await page_tree_delete(persistence, space=space, node_id=node_id)


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from pagetree.logging_config import configure_logging

    configure_logging(server=True)
    mcp_server.run(transport="stdio")
