"""Parse page service JSON payloads into domain models."""

from typing import Any

from pagetree.models.node import (
    AccessEntry,
    AccessRole,
    PageLabel,
    PageStatus,
    TreeNode,
    Version,
)


def parse_page(data: dict[str, Any]) -> TreeNode:
    """Parse a single page as returned by the tree, create and copy endpoints.

    Tree metadata (children, depth, path) is not read from the payload; the
    tree builder derives it.
    """
    labels = tuple(
        PageLabel(id=str(lbl["id"]), name=lbl.get("name", ""), color=lbl.get("color", ""))
        for lbl in data.get("labels") or []
    )
    parent_id = data.get("parentId")
    return TreeNode(
        id=str(data["id"]),
        parent_id=str(parent_id) if parent_id else None,
        title=data.get("title") or "",
        icon=data.get("icon"),
        status=PageStatus.parse(data.get("status")),
        labels=labels,
        has_unpublished_changes=bool(data.get("hasUnpublishedChanges", False)),
        position=int(data.get("position") or 0),
        child_count=int(data.get("childCount") or 0),
        created_at=data.get("createdAt"),
        updated_at=data.get("updatedAt"),
        author_id=data.get("authorId"),
        author_name=data.get("authorName"),
        author_avatar=data.get("authorAvatar"),
    )


def parse_pages(data: dict[str, Any]) -> list[TreeNode]:
    """Parse the ``pages`` array of a tree response."""
    return [parse_page(p) for p in data.get("pages") or []]


def parse_version(data: dict[str, Any]) -> Version:
    """Parse one entry of the version history response."""
    created_by = data.get("createdBy")
    if isinstance(created_by, dict):
        author = created_by.get("name") or created_by.get("email")
    else:
        author = created_by
    return Version(
        id=str(data["id"]),
        version_number=int(data.get("version") or 0),
        author=author,
        created_at=data.get("createdAt"),
        change_summary=data.get("changeSummary"),
        change_note=data.get("changeNote"),
        label=data.get("label"),
    )


def parse_versions(data: dict[str, Any]) -> list[Version]:
    """Parse a version history response, newest first."""
    versions = [parse_version(v) for v in data.get("versions") or []]
    versions.sort(key=lambda v: v.version_number, reverse=True)
    return versions


def parse_access_entry(data: dict[str, Any]) -> AccessEntry:
    """Parse one grant of the access roster."""
    user = data.get("user") or {}
    return AccessEntry(
        id=str(data["id"]),
        user_id=str(data.get("userId") or user.get("id", "")),
        role=AccessRole(data["role"]),
        user_name=user.get("name"),
        user_email=user.get("email"),
        expires_at=data.get("expiresAt"),
        created_at=data.get("createdAt"),
    )


def parse_access_list(data: dict[str, Any]) -> list[AccessEntry]:
    """Parse the ``access`` array of an access roster response."""
    return [parse_access_entry(a) for a in data.get("access") or []]
