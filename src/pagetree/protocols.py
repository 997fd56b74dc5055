"""Protocols for dependency injection in the page tree."""

from typing import Any, Protocol, runtime_checkable

from pagetree.models.node import AccessEntry, AccessRole, TreeNode, Version


@runtime_checkable
class ApiProtocol(Protocol):
    """Protocol for page service HTTP clients."""

    def call(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Invoke an API endpoint and return the JSON response."""
        ...


@runtime_checkable
class PersistencePort(Protocol):
    """Remote persistence of the page tree.

    Every call is asynchronous. Failures raise PersistenceError; boolean
    results report whether the service accepted the change.
    """

    async def fetch_tree(self, space_id: str) -> list[TreeNode]:
        """Return the flat list of pages in a space."""
        ...

    async def create_node(self, parent_id: str | None, title: str) -> TreeNode | None:
        """Create a page and return it."""
        ...

    async def move_node(self, node_id: str, new_parent_id: str | None, new_position: int) -> bool:
        """Reparent and/or reorder a page."""
        ...

    async def delete_node(self, node_id: str) -> bool:
        """Delete a page; the service cascades to descendants."""
        ...

    async def copy_node(self, node_id: str) -> TreeNode | None:
        """Duplicate a page and return the copy."""
        ...

    async def fetch_version_history(self, node_id: str) -> list[Version]:
        """Return the versions of a page, newest first."""
        ...

    async def restore_version(self, node_id: str, version_id: str) -> bool:
        """Restore a page to a previous version."""
        ...

    async def fetch_access_list(self, node_id: str) -> list[AccessEntry]:
        """Return the access roster of a page."""
        ...

    async def grant_access(self, node_id: str, user_id: str, role: AccessRole) -> bool:
        """Give a user a role on a page."""
        ...

    async def update_access_role(self, node_id: str, access_id: str, role: AccessRole) -> bool:
        """Change the role of an existing grant."""
        ...

    async def revoke_access(self, node_id: str, user_id: str) -> bool:
        """Remove a user's grant on a page."""
        ...


@runtime_checkable
class KeyValueStoreProtocol(Protocol):
    """Durable string key-value store (expansion state)."""

    def get(self, key: str) -> str | None:
        """Return the stored value, or None if missing."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        ...


@runtime_checkable
class NotifierProtocol(Protocol):
    """Surface for user-visible failure notices."""

    def alert(self, message: str) -> None:
        """Show a blocking notice."""
        ...
