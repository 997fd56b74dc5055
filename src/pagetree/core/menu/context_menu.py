"""Per-node context menu: placement, closing, action dispatch."""

import asyncio
import inspect
from collections.abc import Callable, Mapping

from loguru import logger

from pagetree.config import MENU_HEIGHT, MENU_MARGIN, MENU_WIDTH
from pagetree.models.node import ContextMenuState, MenuItem

MenuHandler = Callable[[str], object]

DEFAULT_MENU_ITEMS: tuple[MenuItem, ...] = (
    MenuItem("open", "Open page", shortcut="Enter"),
    MenuItem("add-child", "Add child page", shortcut="⌘N"),
    MenuItem("divider-1", "", divider=True),
    MenuItem("copy", "Copy", shortcut="⌘C"),
    MenuItem("divider-2", "", divider=True),
    MenuItem("export", "Export"),
    MenuItem("view-history", "View history"),
    MenuItem("permissions", "Permissions"),
    MenuItem("divider-3", "", divider=True),
    MenuItem("delete", "Delete", danger=True),
)


def clamp_menu_position(
    x: int,
    y: int,
    *,
    viewport_width: int,
    viewport_height: int,
    width: int = MENU_WIDTH,
    height: int = MENU_HEIGHT,
    margin: int = MENU_MARGIN,
) -> tuple[int, int]:
    """Keep a menu anchored at (x, y) inside the viewport.

    On right or bottom overflow the menu opens to the left of / above the
    pointer instead, then the result is clamped to
    ``[margin, viewport - size - margin]`` on each axis.
    """
    if x + width + margin > viewport_width:
        x -= width
    if y + height + margin > viewport_height:
        y -= height
    x = max(margin, min(x, viewport_width - width - margin))
    y = max(margin, min(y, viewport_height - height - margin))
    return x, y


def _log_failed_action(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.opt(exception=exc).error("Context menu action {} failed", task.get_name())


class ContextMenuController:
    """One open menu at a time; selecting an action closes it immediately.

    Handlers receive the node id. A handler returning an awaitable is run as
    a background task that is not awaited here; its failure is logged.
    """

    def __init__(
        self,
        handlers: Mapping[str, MenuHandler],
        *,
        items: tuple[MenuItem, ...] = DEFAULT_MENU_ITEMS,
        width: int = MENU_WIDTH,
        height: int = MENU_HEIGHT,
        margin: int = MENU_MARGIN,
    ) -> None:
        self.handlers = dict(handlers)
        self.items = items
        self.width = width
        self.height = height
        self.margin = margin
        self._menu: ContextMenuState | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def menu(self) -> ContextMenuState | None:
        return self._menu

    @property
    def is_open(self) -> bool:
        return self._menu is not None

    def open(self, node_id: str, x: int, y: int, *, viewport_width: int, viewport_height: int) -> ContextMenuState:
        """Open the menu for ``node_id``, replacing any menu already open."""
        left, top = clamp_menu_position(
            x,
            y,
            viewport_width=viewport_width,
            viewport_height=viewport_height,
            width=self.width,
            height=self.height,
            margin=self.margin,
        )
        self._menu = ContextMenuState(node_id=node_id, x=left, y=top, items=self.items)
        return self._menu

    def close(self) -> None:
        self._menu = None

    def on_key(self, key: str) -> None:
        if key == "Escape":
            self.close()

    def on_outside_click(self) -> None:
        self.close()

    def select(self, action_id: str) -> asyncio.Task | None:
        """Close the menu and dispatch ``action_id`` for its node.

        Returns the background task for asynchronous handlers, otherwise None.
        Selecting a divider does nothing. Asynchronous handlers are scheduled
        on the running event loop, so call this from inside it.

        Raises:
            ValueError: ``action_id`` is not one of the menu items.
            RuntimeError: An asynchronous handler was selected with no running
                event loop. The menu is closed and the action is dropped.
        """
        menu = self._menu
        if menu is None:
            return None
        item = next((i for i in self.items if i.id == action_id), None)
        if item is None:
            msg = f"Unknown context menu action: {action_id!r}"
            raise ValueError(msg)
        if item.divider:
            return None

        self.close()
        handler = self.handlers.get(action_id)
        if handler is None:
            logger.warning("No handler registered for context menu action {}", action_id)
            return None

        result = handler(menu.node_id)
        if not inspect.isawaitable(result):
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            if inspect.iscoroutine(result):
                result.close()
            msg = f"Context menu action {action_id!r} needs a running event loop"
            raise RuntimeError(msg) from e
        task = asyncio.ensure_future(result, loop=loop)
        task.set_name(f"{action_id}:{menu.node_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(_log_failed_action)
        return task
