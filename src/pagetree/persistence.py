"""PersistencePort implementation over the page service HTTP API."""

import asyncio
from typing import Any

from loguru import logger

from pagetree.core.importer.json_reader import (
    parse_access_list,
    parse_page,
    parse_pages,
    parse_versions,
)
from pagetree.models.node import AccessEntry, AccessRole, TreeNode, Version
from pagetree.protocols import ApiProtocol


class HttpPersistence:
    """Async page tree persistence bound to one space.

    The blocking requests client runs in a worker thread so a pending call
    only suspends the coroutine that made it.
    """

    def __init__(self, api: ApiProtocol, *, space_id: str) -> None:
        self.api = api
        self.space_id = space_id

    async def _call(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        return await asyncio.to_thread(self.api.call, method, path, body=body, params=params)

    def _space(self, space_id: str | None = None) -> str:
        return f"/api/spaces/{space_id or self.space_id}"

    async def fetch_tree(self, space_id: str) -> list[TreeNode]:
        data = await self._call("GET", f"{self._space(space_id)}/pages/tree")
        pages = parse_pages(data)
        logger.debug("Fetched {} pages for space {}", len(pages), space_id)
        return pages

    async def create_node(self, parent_id: str | None, title: str) -> TreeNode | None:
        data = await self._call(
            "POST", f"{self._space()}/pages", body={"title": title, "parentId": parent_id}
        )
        page = data.get("page")
        return parse_page(page) if page else None

    async def move_node(self, node_id: str, new_parent_id: str | None, new_position: int) -> bool:
        data = await self._call(
            "POST",
            f"{self._space()}/pages/{node_id}/move",
            body={"newParentId": new_parent_id, "newPosition": new_position},
        )
        return bool(data.get("success", True))

    async def delete_node(self, node_id: str) -> bool:
        data = await self._call("DELETE", f"{self._space()}/documents/{node_id}")
        return bool(data.get("success", True))

    async def copy_node(self, node_id: str) -> TreeNode | None:
        data = await self._call("POST", f"{self._space()}/pages/{node_id}/copy")
        page = data.get("page")
        return parse_page(page) if page else None

    async def fetch_version_history(self, node_id: str) -> list[Version]:
        data = await self._call("GET", f"{self._space()}/documents/{node_id}/versions")
        return parse_versions(data)

    async def restore_version(self, node_id: str, version_id: str) -> bool:
        data = await self._call(
            "POST", f"{self._space()}/documents/{node_id}/versions", body={"versionId": version_id}
        )
        return bool(data.get("success", True))

    async def fetch_access_list(self, node_id: str) -> list[AccessEntry]:
        data = await self._call("GET", f"{self._space()}/documents/{node_id}/access")
        return parse_access_list(data)

    async def grant_access(self, node_id: str, user_id: str, role: AccessRole) -> bool:
        data = await self._call(
            "POST",
            f"{self._space()}/documents/{node_id}/access",
            body={"userId": user_id, "role": role.value, "expiresAt": None},
        )
        return bool(data.get("success", True))

    async def update_access_role(self, node_id: str, access_id: str, role: AccessRole) -> bool:
        data = await self._call(
            "PATCH",
            f"{self._space()}/documents/{node_id}/access/{access_id}",
            body={"role": role.value},
        )
        return bool(data.get("success", True))

    async def revoke_access(self, node_id: str, user_id: str) -> bool:
        data = await self._call(
            "DELETE", f"{self._space()}/documents/{node_id}/access", params={"userId": user_id}
        )
        return bool(data.get("success", True))
