"""Page tree controller: wires the store, gestures and the persistence port."""

from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from pagetree.core.create.inline import InlineCreator
from pagetree.core.drag.coordinator import DragCoordinator
from pagetree.core.menu.context_menu import ContextMenuController
from pagetree.core.render.rows import empty_message, render_rows, render_text
from pagetree.core.state.expansion import ExpansionPersistence
from pagetree.core.tree.markdown import render_subtree_as_markdown
from pagetree.core.tree.queries import is_descendant_of
from pagetree.core.tree.state import TreeState
from pagetree.core.tree.store import TreeStore
from pagetree.errors import InvalidMoveError, PersistenceError
from pagetree.models.node import AccessEntry, AccessRole, RenderedRow, TreeNode, Version
from pagetree.protocols import KeyValueStoreProtocol, NotifierProtocol, PersistencePort

DELETE_FAILED = "Failed to delete page"
COPY_FAILED = "Failed to copy page"
MOVE_FAILED = "Failed to move page"
RESTORE_FAILED = "Failed to restore version"
ACCESS_FAILED = "Failed to update permissions"


class LogNotifier:
    """Default notifier: failure notices go to the error log."""

    def alert(self, message: str) -> None:
        logger.error(message)


@dataclass(frozen=True)
class VersionHistoryView:
    node_id: str
    versions: tuple[Version, ...]


@dataclass(frozen=True)
class AccessView:
    node_id: str
    entries: tuple[AccessEntry, ...]


def parse_role(role: AccessRole | str) -> AccessRole:
    """Accept a role or its name in any case.

    Raises:
        ValueError: Not one of the six access roles.
    """
    if isinstance(role, AccessRole):
        return role
    try:
        return AccessRole(role.strip().upper())
    except ValueError:
        msg = f"Unknown access role: {role!r} (expected one of {', '.join(r.value for r in AccessRole)})"
        raise ValueError(msg) from None


class PageTreeController:
    """The page tree of one space.

    Structural changes are requested from the persistence port and then
    resolved by refetching the whole tree; the last completed refetch wins.
    """

    def __init__(
        self,
        persistence: PersistencePort,
        *,
        space_id: str,
        kv: KeyValueStoreProtocol | None = None,
        notifier: NotifierProtocol | None = None,
        on_open: Callable[[str], object] | None = None,
    ) -> None:
        self.persistence = persistence
        self.space_id = space_id
        self.notifier = notifier or LogNotifier()
        self.on_open = on_open
        self.store = TreeStore()
        self.expansion = ExpansionPersistence(self.store, kv, space_id=space_id) if kv is not None else None
        self.drag = DragCoordinator(self.store, persistence, refresh=self.refresh, notifier=self.notifier)
        self.creator = InlineCreator(
            self.store, persistence, refresh=self.refresh, open_node=lambda node: self.open_page(node.id)
        )
        self.menu = ContextMenuController(
            {
                "open": self.open_page,
                "add-child": self.add_child,
                "copy": self.copy_page,
                "export": self.export_page,
                "view-history": self.show_history,
                "permissions": self.show_access,
                "delete": self.delete_page,
            }
        )
        self.history: VersionHistoryView | None = None
        self.access: AccessView | None = None
        self.last_export: str | None = None

    @property
    def state(self) -> TreeState:
        return self.store.state

    # --- Lifecycle ---

    async def mount(self) -> bool:
        """Restore saved expansion, then load the tree."""
        if self.expansion is not None:
            self.expansion.attach()
        return await self.refresh()

    def unmount(self) -> None:
        if self.expansion is not None:
            self.expansion.detach()

    async def refresh(self) -> bool:
        """Refetch the whole tree. A failure is recorded in ``state.error``."""
        self.store.set_loading(True)
        try:
            nodes = await self.persistence.fetch_tree(self.space_id)
        except PersistenceError as e:
            logger.exception("Failed to fetch page tree for {}", self.space_id)
            self.store.set_error(str(e))
            return False
        self.store.load_nodes(nodes)
        return True

    # --- Local gestures ---

    def select(self, node_id: str | None) -> None:
        self.store.set_selected(node_id)
        self.store.set_focused(node_id)

    def open_page(self, node_id: str) -> None:
        if node_id not in self.state.nodes:
            return
        self.select(node_id)
        logger.debug("Opening page {}", node_id)
        if self.on_open is not None:
            self.on_open(node_id)

    def add_child(self, node_id: str | None) -> None:
        self.creator.open(node_id)

    def toggle(self, node_id: str) -> None:
        self.store.toggle_expand(node_id)

    def search(self, query: str) -> None:
        self.store.set_search_query(query)

    def open_menu(self, node_id: str, x: int, y: int, *, viewport_width: int, viewport_height: int) -> None:
        self.menu.open(node_id, x, y, viewport_width=viewport_width, viewport_height=viewport_height)

    async def on_key(self, key: str) -> None:
        """Keyboard handling for the focused tree.

        An open inline creator takes Enter and Escape; otherwise the arrows
        move through and expand the visible rows.
        """
        if self.creator.is_open and key in ("Enter", "Escape"):
            await self.creator.on_key(key)
            return
        if key == "Escape":
            self.menu.close()
            if self.drag.is_active:
                self.drag.clear_drop_target()
            return

        state = self.state
        current = state.focused_id or state.selected_id
        if key in ("ArrowDown", "ArrowUp"):
            visible = [node.id for node in self.store.get_visible_nodes()]
            if not visible:
                return
            if current not in visible:
                target = visible[0] if key == "ArrowDown" else visible[-1]
            else:
                index = visible.index(current) + (1 if key == "ArrowDown" else -1)
                target = visible[max(0, min(index, len(visible) - 1))]
            self.select(target)
        elif key == "ArrowRight" and current is not None:
            self.store.expand_node(current)
        elif key == "ArrowLeft" and current is not None:
            self.store.collapse_node(current)
        elif key == "Enter" and state.selected_id is not None:
            self.open_page(state.selected_id)
        elif key == "n":
            self.creator.open(current)

    # --- Rendering ---

    def rows(self) -> list[RenderedRow]:
        return render_rows(self.state, self.creator.request)

    def render(self) -> str:
        rows = self.rows()
        if not rows:
            return empty_message(self.state)
        return render_text(rows)

    # --- Structural changes ---

    async def create_page(self, parent_id: str | None, title: str) -> TreeNode | None:
        """Create a page through the inline creator (same submit path as Enter)."""
        self.creator.open(parent_id)
        self.creator.set_title(title)
        return await self.creator.submit()

    async def move_page(self, node_id: str, new_parent_id: str | None, new_position: int) -> bool:
        """Request a move after checking it cannot create a cycle.

        Raises:
            InvalidMoveError: ``new_parent_id`` is the page itself or below it.
        """
        if new_parent_id is not None and (
            new_parent_id == node_id or is_descendant_of(self.state, new_parent_id, node_id)
        ):
            msg = f"Cannot move {node_id!r} into itself or its descendant {new_parent_id!r}"
            raise InvalidMoveError(msg)
        try:
            ok = await self.persistence.move_node(node_id, new_parent_id, new_position)
        except PersistenceError:
            logger.exception("Moving {} failed", node_id)
            ok = False
        if not ok:
            self.notifier.alert(MOVE_FAILED)
        await self.refresh()
        return ok

    async def delete_page(self, node_id: str) -> bool:
        """Delete a page; the local cascade is applied only after the service agrees."""
        try:
            ok = await self.persistence.delete_node(node_id)
        except PersistenceError:
            logger.exception("Deleting {} failed", node_id)
            ok = False
        if not ok:
            self.notifier.alert(DELETE_FAILED)
            return False
        self.store.delete_node(node_id)
        await self.refresh()
        return True

    async def copy_page(self, node_id: str) -> TreeNode | None:
        try:
            copy = await self.persistence.copy_node(node_id)
        except PersistenceError:
            logger.exception("Copying {} failed", node_id)
            copy = None
        if copy is None:
            self.notifier.alert(COPY_FAILED)
            return None
        await self.refresh()
        return copy

    def export_page(self, node_id: str, max_depth: int | None = None) -> str:
        self.last_export = render_subtree_as_markdown(self.state, node_id=node_id, max_depth=max_depth)
        return self.last_export

    # --- Version history ---

    async def show_history(self, node_id: str) -> list[Version]:
        versions = await self.persistence.fetch_version_history(node_id)
        self.history = VersionHistoryView(node_id, tuple(versions))
        return versions

    async def restore_version(self, node_id: str, version_id: str) -> bool:
        try:
            ok = await self.persistence.restore_version(node_id, version_id)
        except PersistenceError:
            logger.exception("Restoring {} to version {} failed", node_id, version_id)
            ok = False
        if not ok:
            self.notifier.alert(RESTORE_FAILED)
            return False
        await self.show_history(node_id)
        return True

    # --- Permissions ---

    async def show_access(self, node_id: str) -> list[AccessEntry]:
        entries = await self.persistence.fetch_access_list(node_id)
        self.access = AccessView(node_id, tuple(entries))
        return entries

    async def _after_access_change(self, node_id: str, ok: bool) -> bool:
        if not ok:
            self.notifier.alert(ACCESS_FAILED)
            return False
        await self.show_access(node_id)
        return True

    async def grant_access(self, node_id: str, user_id: str, role: AccessRole | str) -> bool:
        access_role = parse_role(role)
        try:
            ok = await self.persistence.grant_access(node_id, user_id, access_role)
        except PersistenceError:
            logger.exception("Granting {} on {} to {} failed", access_role.value, node_id, user_id)
            ok = False
        return await self._after_access_change(node_id, ok)

    async def update_access_role(self, node_id: str, access_id: str, role: AccessRole | str) -> bool:
        access_role = parse_role(role)
        try:
            ok = await self.persistence.update_access_role(node_id, access_id, access_role)
        except PersistenceError:
            logger.exception("Changing grant {} on {} failed", access_id, node_id)
            ok = False
        return await self._after_access_change(node_id, ok)

    async def revoke_access(self, node_id: str, user_id: str) -> bool:
        try:
            ok = await self.persistence.revoke_access(node_id, user_id)
        except PersistenceError:
            logger.exception("Revoking {} on {} failed", user_id, node_id)
            ok = False
        return await self._after_access_change(node_id, ok)
