"""Simplified sidebar listing of a space's pages.

A lower fidelity reader of the same ``fetch_tree`` listing: pages are shown
flat with no linked children, and expansion is tracked locally without any
of the main tree's rules.
"""

from dataclasses import replace

from loguru import logger

from pagetree.errors import PersistenceError
from pagetree.models.node import TreeNode
from pagetree.protocols import PersistencePort

CREATE_PROMPT = "+ Create a page"


class SidebarTree:
    def __init__(self, persistence: PersistencePort, *, space_id: str) -> None:
        self.persistence = persistence
        self.space_id = space_id
        self.pages: list[TreeNode] = []
        self.expanded_ids: set[str] = set()
        self.is_section_expanded = True
        self.is_loading = False

    async def load(self) -> list[TreeNode]:
        """Fetch the listing. Failures are logged and leave the old pages."""
        self.is_loading = True
        try:
            flat = await self.persistence.fetch_tree(self.space_id)
        except PersistenceError:
            logger.exception("Failed to fetch sidebar pages for {}", self.space_id)
            return self.pages
        finally:
            self.is_loading = False
        self.pages = [replace(page, children=()) for page in flat]
        return self.pages

    def toggle_section(self) -> None:
        self.is_section_expanded = not self.is_section_expanded

    def toggle_expand(self, node_id: str) -> None:
        if node_id in self.expanded_ids:
            self.expanded_ids.discard(node_id)
        else:
            self.expanded_ids.add(node_id)

    async def create_page(self, title: str = "Untitled") -> TreeNode | None:
        """Create a root page. Returns None (and logs) when it fails."""
        try:
            return await self.persistence.create_node(None, title)
        except PersistenceError:
            logger.exception("Failed to create sidebar page in {}", self.space_id)
            return None

    def render_lines(self) -> list[str]:
        if not self.is_section_expanded:
            return ["▸ Pages"]
        lines = ["▾ Pages"]
        if self.is_loading:
            lines.append("  Loading...")
        elif not self.pages:
            lines.append(f"  {CREATE_PROMPT}")
        else:
            for page in self.pages:
                marker = " "
                if page.has_children:
                    marker = "▾" if page.id in self.expanded_ids else "▸"
                icon = f"{page.icon} " if page.icon else ""
                lines.append(f"  {marker} {icon}{page.title or 'Untitled'}")
        return lines
