"""Fake implementations for testing the page tree."""

from dataclasses import replace

from pagetree.errors import PersistenceError
from pagetree.models.node import AccessEntry, AccessRole, TreeNode, Version


class FakePersistence:
    """In-memory fake for the page service.

    Behaves like the service for the structural calls (cascade delete, moves to
    a final sibling index) and records every call for assertions. Method names in
    ``failing`` raise PersistenceError; names in ``refusing`` return False
    (or None for calls that return a page).
    """

    def __init__(self, pages: list[TreeNode] | None = None) -> None:
        self.pages: dict[str, TreeNode] = {p.id: p for p in pages or []}
        self.versions: dict[str, list[Version]] = {}
        self.access: dict[str, list[AccessEntry]] = {}
        self.calls: list[tuple[str, tuple]] = []
        self.failing: set[str] = set()
        self.refusing: set[str] = set()
        self._next_id = 1

    def _enter(self, name: str, *args: object) -> bool:
        """Record a call; return False if it should be refused."""
        self.calls.append((name, args))
        if name in self.failing:
            msg = f"FakePersistence: {name} failed"
            raise PersistenceError(msg)
        return name not in self.refusing

    def call_names(self) -> list[str]:
        return [name for name, _args in self.calls]

    def _new_id(self) -> str:
        while f"page-{self._next_id}" in self.pages:
            self._next_id += 1
        return f"page-{self._next_id}"

    def _next_position(self, parent_id: str | None) -> int:
        positions = [p.position for p in self.pages.values() if p.parent_id == parent_id]
        return max(positions, default=-1) + 1

    async def fetch_tree(self, space_id: str) -> list[TreeNode]:
        self._enter("fetch_tree", space_id)
        counts: dict[str, int] = {}
        for page in self.pages.values():
            if page.parent_id is not None:
                counts[page.parent_id] = counts.get(page.parent_id, 0) + 1
        return [replace(p, child_count=counts.get(p.id, 0)) for p in self.pages.values()]

    async def create_node(self, parent_id: str | None, title: str) -> TreeNode | None:
        if not self._enter("create_node", parent_id, title):
            return None
        page = TreeNode(
            id=self._new_id(),
            parent_id=parent_id,
            title=title,
            position=self._next_position(parent_id),
        )
        self.pages[page.id] = page
        return page

    async def move_node(self, node_id: str, new_parent_id: str | None, new_position: int) -> bool:
        if not self._enter("move_node", node_id, new_parent_id, new_position):
            return False
        old = self.pages[node_id]
        for pid, page in list(self.pages.items()):
            if pid == node_id:
                continue
            position = page.position
            if page.parent_id == old.parent_id and position > old.position:
                position -= 1
            if page.parent_id == new_parent_id and position >= new_position:
                position += 1
            self.pages[pid] = replace(page, position=position)
        self.pages[node_id] = replace(self.pages[node_id], parent_id=new_parent_id, position=new_position)
        return True

    async def delete_node(self, node_id: str) -> bool:
        if not self._enter("delete_node", node_id):
            return False
        doomed = {node_id}
        changed = True
        while changed:
            changed = False
            for page in self.pages.values():
                if page.parent_id in doomed and page.id not in doomed:
                    doomed.add(page.id)
                    changed = True
        for pid in doomed:
            self.pages.pop(pid, None)
        return True

    async def copy_node(self, node_id: str) -> TreeNode | None:
        if not self._enter("copy_node", node_id):
            return None
        source = self.pages[node_id]
        page = replace(
            source,
            id=self._new_id(),
            title=f"{source.title} (copy)",
            position=self._next_position(source.parent_id),
        )
        self.pages[page.id] = page
        return page

    async def fetch_version_history(self, node_id: str) -> list[Version]:
        self._enter("fetch_version_history", node_id)
        return sorted(self.versions.get(node_id, []), key=lambda v: v.version_number, reverse=True)

    async def restore_version(self, node_id: str, version_id: str) -> bool:
        if not self._enter("restore_version", node_id, version_id):
            return False
        history = self.versions.setdefault(node_id, [])
        number = max((v.version_number for v in history), default=0) + 1
        history.append(
            Version(
                id=f"v-{number}",
                version_number=number,
                author="me",
                created_at=None,
                change_summary=f"Restored {version_id}",
            )
        )
        return True

    async def fetch_access_list(self, node_id: str) -> list[AccessEntry]:
        self._enter("fetch_access_list", node_id)
        return list(self.access.get(node_id, []))

    async def grant_access(self, node_id: str, user_id: str, role: AccessRole) -> bool:
        if not self._enter("grant_access", node_id, user_id, role):
            return False
        entries = self.access.setdefault(node_id, [])
        entries.append(AccessEntry(id=f"a-{len(entries) + 1}", user_id=user_id, role=role))
        return True

    async def update_access_role(self, node_id: str, access_id: str, role: AccessRole) -> bool:
        if not self._enter("update_access_role", node_id, access_id, role):
            return False
        entries = self.access.get(node_id, [])
        self.access[node_id] = [replace(e, role=role) if e.id == access_id else e for e in entries]
        return True

    async def revoke_access(self, node_id: str, user_id: str) -> bool:
        if not self._enter("revoke_access", node_id, user_id):
            return False
        self.access[node_id] = [e for e in self.access.get(node_id, []) if e.user_id != user_id]
        return True


class FakeKeyValueStore:
    """In-memory fake for the expansion state store."""

    def __init__(self, data: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(data or {})
        self.writes: list[tuple[str, str]] = []
        self.fail_writes = False

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            msg = "FakeKeyValueStore: disk full"
            raise OSError(msg)
        self.writes.append((key, value))
        self.data[key] = value


class FakeNotifier:
    """Collects alerts instead of showing them."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def alert(self, message: str) -> None:
        self.messages.append(message)


def make_node(
    node_id: str, parent_id: str | None = None, position: int = 0, title: str | None = None, **kw: object
) -> TreeNode:
    """Build a flat node the way the service lists it."""
    return TreeNode(
        id=node_id,
        parent_id=parent_id,
        title=title if title is not None else node_id,
        position=position,
        **kw,  # type: ignore[arg-type]
    )


# A(root,pos0) -> B(pos0) -> D(pos0); A -> C(pos1)
ABCD = [
    make_node("A", None, 0, title="Alpha"),
    make_node("B", "A", 0, title="Bravo"),
    make_node("C", "A", 1, title="Charlie"),
    make_node("D", "B", 0, title="Delta"),
]
