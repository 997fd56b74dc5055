"""Domain models for the page tree."""

from dataclasses import dataclass, field
from enum import Enum


class PageStatus(str, Enum):
    """Publication status of a page."""

    DRAFT = "DRAFT"
    IN_REVIEW = "IN_REVIEW"
    APPROVED = "APPROVED"
    ARCHIVED = "ARCHIVED"

    @classmethod
    def parse(cls, value: str | None) -> "PageStatus":
        """Parse a wire value, falling back to DRAFT for unknown statuses."""
        try:
            return cls(value)
        except ValueError:
            return cls.DRAFT


@dataclass(frozen=True)
class PageLabel:
    """A colored label lozenge attached to a page."""

    id: str
    name: str
    color: str


@dataclass(frozen=True)
class TreeNode:
    """A single page in the tree.

    ``children``, ``depth`` and ``path`` are derived by the tree builder from
    ``parent_id`` and ``position``; they are never edited on their own.
    """

    id: str
    parent_id: str | None
    title: str
    position: int = 0
    status: PageStatus = PageStatus.DRAFT
    icon: str | None = None
    labels: tuple[PageLabel, ...] = ()
    has_unpublished_changes: bool = False
    child_count: int = 0
    children: tuple[str, ...] = ()
    depth: int = 0
    path: tuple[str, ...] = ()
    created_at: str | None = None
    updated_at: str | None = None
    author_id: str | None = None
    author_name: str | None = None
    author_avatar: str | None = None

    @property
    def has_children(self) -> bool:
        return self.child_count > 0 or bool(self.children)


class DropRelation(str, Enum):
    """Where a dragged node lands relative to the drop target."""

    BEFORE = "before"
    AFTER = "after"
    INSIDE = "inside"


@dataclass(frozen=True)
class DropTarget:
    """The candidate location under the pointer during a drag."""

    node_id: str
    relation: DropRelation
    depth: int
    is_valid: bool


@dataclass(frozen=True)
class DragSession:
    """An active pointer-drag gesture. At most one exists at a time."""

    dragged_ids: tuple[str, ...]
    dragged_nodes: tuple[TreeNode, ...] = ()
    drop_target: DropTarget | None = None


@dataclass(frozen=True)
class SearchState:
    """Current search query and the ids it lets through (None = no filter)."""

    query: str = ""
    filtered_ids: frozenset[str] | None = None


@dataclass(frozen=True)
class InlineCreationRequest:
    """The single pending inline page creation."""

    parent_id: str | None
    title: str = ""
    after_id: str | None = None


@dataclass(frozen=True)
class Version:
    """A saved version of a page."""

    id: str
    version_number: int
    author: str | None
    created_at: str | None
    change_summary: str | None = None
    change_note: str | None = None
    label: str | None = None


class AccessRole(str, Enum):
    """Per-page access roles, strongest first."""

    OWNER = "OWNER"
    ADMIN = "ADMIN"
    EDIT = "EDIT"
    COMMENT = "COMMENT"
    VIEW = "VIEW"
    RESTRICTED = "RESTRICTED"

    @property
    def rank(self) -> int:
        return len(_ROLE_ORDER) - _ROLE_ORDER.index(self)

    @property
    def can_manage(self) -> bool:
        return self in (AccessRole.OWNER, AccessRole.ADMIN)

    def at_least(self, other: "AccessRole") -> bool:
        return self.rank >= other.rank


_ROLE_ORDER: tuple[AccessRole, ...] = tuple(AccessRole)


@dataclass(frozen=True)
class AccessEntry:
    """A user's access grant on a page."""

    id: str
    user_id: str
    role: AccessRole
    user_name: str | None = None
    user_email: str | None = None
    expires_at: str | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class MenuItem:
    """An entry of the per-node context menu."""

    id: str
    label: str
    shortcut: str | None = None
    danger: bool = False
    divider: bool = False


@dataclass(frozen=True)
class ContextMenuState:
    """An open context menu, already clamped into the viewport."""

    node_id: str
    x: int
    y: int
    items: tuple[MenuItem, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class RenderedRow:
    """One display row of the tree, ready for drawing.

    ``node_id`` is None for the inline creator row.
    """

    node_id: str | None
    title: str
    depth: int
    indent: int
    icon: str | None = None
    is_first: bool = False
    is_last: bool = False
    has_children: bool = False
    is_expanded: bool = False
    is_selected: bool = False
    is_focused: bool = False
    parent_line_depths: tuple[int, ...] = ()
    status: PageStatus = PageStatus.DRAFT
    labels_shown: tuple[PageLabel, ...] = ()
    labels_hidden_count: int = 0
    has_unpublished_changes: bool = False
    is_inline_creator: bool = False
