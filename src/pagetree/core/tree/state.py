"""Immutable snapshot of the page tree state."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from pagetree.models.node import DragSession, SearchState, TreeNode


@dataclass(frozen=True)
class TreeState:
    """Canonical page tree state.

    Snapshots are never mutated; every command returns a new one. ``nodes`` is
    the single source of truth for parentage; ``root_ids`` and each node's
    ``children`` are derived from it by the tree builder.
    """

    nodes: Mapping[str, TreeNode] = field(default_factory=lambda: MappingProxyType({}))
    root_ids: tuple[str, ...] = ()
    expanded_ids: frozenset[str] = frozenset()
    selected_id: str | None = None
    focused_id: str | None = None
    search: SearchState = SearchState()
    drag: DragSession | None = None
    is_loading: bool = False
    error: str | None = None

    @property
    def search_query(self) -> str:
        return self.search.query

    @property
    def filtered_ids(self) -> frozenset[str] | None:
        return self.search.filtered_ids

    def get(self, node_id: str | None) -> TreeNode | None:
        if node_id is None:
            return None
        return self.nodes.get(node_id)


def freeze_nodes(nodes: dict[str, TreeNode]) -> Mapping[str, TreeNode]:
    """Wrap a freshly built node map so snapshots cannot be edited in place."""
    return MappingProxyType(nodes)
