"""Single-slot inline page creation."""

from collections.abc import Awaitable, Callable

from loguru import logger

from pagetree.core.tree.store import TreeStore
from pagetree.errors import PersistenceError
from pagetree.models.node import InlineCreationRequest, TreeNode
from pagetree.protocols import PersistencePort

CREATE_FAILED = "Failed to create page"


class InlineCreator:
    """Captures a new page title before asking the service to create it.

    There is one slot. Opening a request replaces the previous one without
    asking. Enter and blur both go through ``submit``, which ignores a second
    call while the first is still waiting on the service.
    """

    def __init__(
        self,
        store: TreeStore,
        persistence: PersistencePort,
        *,
        refresh: Callable[[], Awaitable[object]],
        open_node: Callable[[TreeNode], object] | None = None,
    ) -> None:
        self.store = store
        self.persistence = persistence
        self.refresh = refresh
        self.open_node = open_node
        self._request: InlineCreationRequest | None = None
        self._submitting = False

    @property
    def request(self) -> InlineCreationRequest | None:
        return self._request

    @property
    def is_open(self) -> bool:
        return self._request is not None

    def open(self, parent_id: str | None, after_id: str | None = None) -> InlineCreationRequest:
        """Open the slot under ``parent_id`` (None creates a root page)."""
        if self._request is not None:
            logger.debug("Replacing pending inline creation under {}", self._request.parent_id)
        self._request = InlineCreationRequest(parent_id=parent_id, after_id=after_id)
        if parent_id is not None:
            self.store.expand_node(parent_id)
        return self._request

    def set_title(self, title: str) -> None:
        if self._request is None:
            return
        self._request = InlineCreationRequest(self._request.parent_id, title, self._request.after_id)

    def cancel(self) -> None:
        self._request = None

    async def on_key(self, key: str) -> TreeNode | None:
        if key == "Enter":
            return await self.submit()
        if key == "Escape":
            self.cancel()
        return None

    async def on_blur(self) -> TreeNode | None:
        """Losing focus commits a non-empty title and cancels an empty one."""
        if self._request is None:
            return None
        if not self._request.title.strip():
            self.cancel()
            return None
        return await self.submit()

    async def submit(self) -> TreeNode | None:
        """Create the page and close the slot.

        Returns the created node, or None when there was nothing to submit
        (no open slot, an empty title, or a submit already in flight).

        Raises:
            PersistenceError: The service refused the page. The slot stays
                open with its title so the user can retry.
        """
        request = self._request
        if request is None or self._submitting:
            return None
        title = request.title.strip()
        if not title:
            self.cancel()
            return None

        self._submitting = True
        try:
            created = await self.persistence.create_node(request.parent_id, title)
            if created is None:
                raise PersistenceError(CREATE_FAILED)
        except PersistenceError:
            logger.exception("Creating page {!r} under {} failed", title, request.parent_id)
            raise
        finally:
            self._submitting = False

        if self._request is request:
            self._request = None
        logger.info("Created page {} ({!r})", created.id, created.title)
        await self.refresh()
        if self.open_node is not None:
            self.open_node(created)
        return created
