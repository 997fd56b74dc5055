"""CLI for the page tree (browse, edit, MCP server)."""

import asyncio
import json
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, TypeVar

import typer
from loguru import logger

from pagetree.api import PageTreeApi
from pagetree.config import STATE_DB_NAME, resolve_data_directory
from pagetree.controller import PageTreeController
from pagetree.core.database.schema import SqliteKeyValueStore
from pagetree.core.tree.sidebar import SidebarTree
from pagetree.errors import InvalidMoveError, PersistenceError
from pagetree.logging_config import configure_logging
from pagetree.persistence import HttpPersistence
from pagetree.protocols import PersistencePort

app = typer.Typer(help="Page tree: browse and edit the pages of a space.")

T = TypeVar("T")

SpaceArg = Annotated[str, typer.Argument(help="Space id or slug")]
NodeArg = Annotated[str, typer.Argument(help="Page id")]
DataDirOpt = Annotated[
    Path | None,
    typer.Option("--data-dir", "-d", help="Directory for saved expansion state"),
]


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)


def build_persistence(space: str) -> PersistencePort:
    """Create the HTTP persistence for a space."""
    return HttpPersistence(PageTreeApi(), space_id=space)


@contextmanager
def _open_controller(space: str, data_dir: Path | None) -> Iterator[PageTreeController]:
    """Yield a controller whose expansion state lives in the data directory."""
    try:
        persistence = build_persistence(space)
    except PersistenceError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e

    db_path = (data_dir or resolve_data_directory()) / STATE_DB_NAME
    kv = SqliteKeyValueStore.open(db_path)
    try:
        yield PageTreeController(persistence, space_id=space, kv=kv)
    finally:
        kv.close()


def _run(space: str, data_dir: Path | None, action: Callable[[PageTreeController], Awaitable[T]]) -> T:
    """Mount the tree, then run ``action`` against it."""

    async def go(controller: PageTreeController) -> T:
        if not await controller.mount():
            logger.error("Could not load pages of {}: {}", space, controller.state.error)
            raise typer.Exit(1)
        try:
            return await action(controller)
        finally:
            controller.unmount()

    with _open_controller(space, data_dir) as controller:
        return asyncio.run(go(controller))


def _require_node(controller: PageTreeController, node_id: str) -> None:
    if node_id not in controller.state.nodes:
        typer.echo(f"Page '{node_id}' not found.")
        raise typer.Exit(1)


@app.command()
def tree(
    space: SpaceArg,
    expand_all: bool = typer.Option(False, "--expand-all", "-a", help="Expand every page"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
    data_dir: DataDirOpt = None,
) -> None:
    """Show the page tree with the saved expansion."""

    async def action(controller: PageTreeController) -> None:
        if expand_all:
            controller.store.expand_all()
        if output_json:
            data = [
                {
                    "id": row.node_id,
                    "title": row.title,
                    "depth": row.depth,
                    "status": row.status.value,
                    "has_children": row.has_children,
                    "expanded": row.is_expanded,
                }
                for row in controller.rows()
            ]
            typer.echo(json.dumps(data, indent=2))
        else:
            typer.echo(controller.render())

    _run(space, data_dir, action)


@app.command()
def search(
    space: SpaceArg,
    query: str = typer.Argument(..., help="Case-insensitive title substring"),
    data_dir: DataDirOpt = None,
) -> None:
    """Show the pages whose title matches, with their ancestors."""

    async def action(controller: PageTreeController) -> None:
        controller.search(query)
        typer.echo(controller.render())

    _run(space, data_dir, action)


@app.command()
def sidebar(space: SpaceArg) -> None:
    """Show the flat sidebar listing of a space."""
    try:
        persistence = build_persistence(space)
    except PersistenceError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e

    listing = SidebarTree(persistence, space_id=space)
    asyncio.run(listing.load())
    typer.echo("\n".join(listing.render_lines()))


@app.command()
def create(
    space: SpaceArg,
    title: str = typer.Argument(..., help="Title of the new page"),
    parent: Annotated[str | None, typer.Option("--parent", "-p", help="Parent page id")] = None,
    data_dir: DataDirOpt = None,
) -> None:
    """Create a page (at the root unless --parent is given)."""

    async def action(controller: PageTreeController) -> None:
        if parent is not None:
            _require_node(controller, parent)
        try:
            page = await controller.create_page(parent, title)
        except PersistenceError as e:
            logger.error("{}", e)
            raise typer.Exit(1) from e
        if page is None:
            typer.echo("Nothing to create: the title is empty.")
            raise typer.Exit(1)
        typer.echo(f"Created page {page.title!r} [id={page.id}]")

    _run(space, data_dir, action)


@app.command()
def move(
    space: SpaceArg,
    node_id: NodeArg,
    parent: Annotated[str | None, typer.Option("--parent", "-p", help="New parent (default: root)")] = None,
    position: int = typer.Option(0, "--position", "-n", help="Position among the new siblings"),
    data_dir: DataDirOpt = None,
) -> None:
    """Move a page under a new parent and/or to a new position."""

    async def action(controller: PageTreeController) -> None:
        _require_node(controller, node_id)
        try:
            ok = await controller.move_page(node_id, parent, position)
        except InvalidMoveError as e:
            logger.error("{}", e)
            raise typer.Exit(1) from e
        if not ok:
            raise typer.Exit(1)
        typer.echo(f"Moved {node_id}")

    _run(space, data_dir, action)


@app.command()
def delete(space: SpaceArg, node_id: NodeArg, data_dir: DataDirOpt = None) -> None:
    """Delete a page and everything below it."""

    async def action(controller: PageTreeController) -> None:
        _require_node(controller, node_id)
        if not await controller.delete_page(node_id):
            raise typer.Exit(1)
        typer.echo(f"Deleted {node_id}")

    _run(space, data_dir, action)


@app.command()
def copy(space: SpaceArg, node_id: NodeArg, data_dir: DataDirOpt = None) -> None:
    """Duplicate a page."""

    async def action(controller: PageTreeController) -> None:
        _require_node(controller, node_id)
        page = await controller.copy_page(node_id)
        if page is None:
            raise typer.Exit(1)
        typer.echo(f"Copied {node_id} -> {page.title!r} [id={page.id}]")

    _run(space, data_dir, action)


@app.command()
def expand(
    space: SpaceArg,
    node_id: NodeArg,
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Also expand all descendants"),
    data_dir: DataDirOpt = None,
) -> None:
    """Expand a page; the expansion is remembered for the space."""

    async def action(controller: PageTreeController) -> None:
        _require_node(controller, node_id)
        if recursive:
            controller.store.expand_recursive(node_id)
        else:
            controller.store.expand_node(node_id)
        typer.echo(controller.render())

    _run(space, data_dir, action)


@app.command()
def collapse(
    space: SpaceArg,
    node_id: Annotated[str | None, typer.Argument(help="Page id (omit with --all)")] = None,
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Also forget descendant expansion"),
    collapse_all: bool = typer.Option(False, "--all", help="Collapse every page"),
    data_dir: DataDirOpt = None,
) -> None:
    """Collapse a page (or all pages)."""
    if node_id is None and not collapse_all:
        typer.echo("Give a page id or --all.")
        raise typer.Exit(1)

    async def action(controller: PageTreeController) -> None:
        if collapse_all:
            controller.store.collapse_all()
        else:
            assert node_id is not None
            _require_node(controller, node_id)
            if recursive:
                controller.store.collapse_recursive(node_id)
            else:
                controller.store.collapse_node(node_id)
        typer.echo(controller.render())

    _run(space, data_dir, action)


@app.command()
def export(
    space: SpaceArg,
    node_id: NodeArg,
    max_depth: Annotated[
        int | None,
        typer.Option("--max-depth", "-m", help="Max depth levels to render"),
    ] = None,
    data_dir: DataDirOpt = None,
) -> None:
    """Export a page and its subtree as markdown."""

    async def action(controller: PageTreeController) -> None:
        _require_node(controller, node_id)
        typer.echo(controller.export_page(node_id, max_depth=max_depth))

    _run(space, data_dir, action)


@app.command()
def history(space: SpaceArg, node_id: NodeArg, data_dir: DataDirOpt = None) -> None:
    """List the saved versions of a page, newest first."""

    async def action(controller: PageTreeController) -> None:
        try:
            versions = await controller.show_history(node_id)
        except PersistenceError as e:
            logger.error("{}", e)
            raise typer.Exit(1) from e
        typer.echo(f"{len(versions)} versions:\n")
        for v in versions:
            summary = f"  {v.change_summary}" if v.change_summary else ""
            label = f" ({v.label})" if v.label else ""
            typer.echo(f"  v{v.version_number}{label}  {v.created_at or '-'}  {v.author or '-'}{summary}  [id={v.id}]")

    _run(space, data_dir, action)


@app.command()
def restore(
    space: SpaceArg,
    node_id: NodeArg,
    version_id: str = typer.Argument(..., help="Version id to restore"),
    data_dir: DataDirOpt = None,
) -> None:
    """Restore a page to an earlier version."""

    async def action(controller: PageTreeController) -> None:
        if not await controller.restore_version(node_id, version_id):
            raise typer.Exit(1)
        typer.echo(f"Restored {node_id} to version {version_id}")

    _run(space, data_dir, action)


@app.command()
def access(space: SpaceArg, node_id: NodeArg, data_dir: DataDirOpt = None) -> None:
    """List who has access to a page."""

    async def action(controller: PageTreeController) -> None:
        try:
            entries = await controller.show_access(node_id)
        except PersistenceError as e:
            logger.error("{}", e)
            raise typer.Exit(1) from e
        typer.echo(f"{len(entries)} grants:\n")
        for entry in entries:
            who = entry.user_name or entry.user_email or entry.user_id
            expires = f"  expires {entry.expires_at}" if entry.expires_at else ""
            typer.echo(f"  {entry.role.value:<10} {who}{expires}  [user={entry.user_id} id={entry.id}]")

    _run(space, data_dir, action)


@app.command()
def grant(
    space: SpaceArg,
    node_id: NodeArg,
    user_id: str = typer.Argument(..., help="User to grant access to"),
    role: str = typer.Argument(..., help="OWNER, ADMIN, EDIT, COMMENT, VIEW or RESTRICTED"),
    data_dir: DataDirOpt = None,
) -> None:
    """Grant a user a role on a page."""

    async def action(controller: PageTreeController) -> None:
        try:
            ok = await controller.grant_access(node_id, user_id, role)
        except ValueError as e:
            logger.error("{}", e)
            raise typer.Exit(1) from e
        if not ok:
            raise typer.Exit(1)
        typer.echo(f"Granted {role.upper()} on {node_id} to {user_id}")

    _run(space, data_dir, action)


@app.command()
def revoke(
    space: SpaceArg,
    node_id: NodeArg,
    user_id: str = typer.Argument(..., help="User whose access is removed"),
    data_dir: DataDirOpt = None,
) -> None:
    """Remove a user's access to a page."""

    async def action(controller: PageTreeController) -> None:
        if not await controller.revoke_access(node_id, user_id):
            raise typer.Exit(1)
        typer.echo(f"Revoked access of {user_id} on {node_id}")

    _run(space, data_dir, action)


@app.command()
def serve() -> None:
    """Start the MCP server (stdio transport)."""
    from pagetree.mcp.server import run_mcp_server

    run_mcp_server()
