"""Tests for the page tree controller."""

import asyncio

import pytest

from pagetree.controller import (
    ACCESS_FAILED,
    COPY_FAILED,
    DELETE_FAILED,
    MOVE_FAILED,
    RESTORE_FAILED,
    PageTreeController,
    parse_role,
)
from pagetree.errors import InvalidMoveError
from pagetree.models.node import AccessRole, Version
from tests.unit.fakes import FakeKeyValueStore, FakeNotifier, FakePersistence


@pytest.fixture
def opened() -> list[str]:
    return []


@pytest.fixture
def controller(
    fake_persistence: FakePersistence,
    fake_kv: FakeKeyValueStore,
    fake_notifier: FakeNotifier,
    opened: list[str],
) -> PageTreeController:
    ctrl = PageTreeController(
        fake_persistence,
        space_id="s1",
        kv=fake_kv,
        notifier=fake_notifier,
        on_open=opened.append,
    )
    assert asyncio.run(ctrl.mount())
    return ctrl


def test_mount_loads_tree_with_saved_expansion(fake_persistence: FakePersistence) -> None:
    kv = FakeKeyValueStore({"pageTree_s1_expanded": '["A"]'})
    ctrl = PageTreeController(fake_persistence, space_id="s1", kv=kv)
    assert asyncio.run(ctrl.mount())
    assert ctrl.render().splitlines() == ["▾ Alpha", "├── ▸ Bravo", "└── Charlie"]


def test_mount_failure_is_recorded_in_state(fake_persistence: FakePersistence) -> None:
    fake_persistence.failing.add("fetch_tree")
    ctrl = PageTreeController(fake_persistence, space_id="s1")
    assert not asyncio.run(ctrl.mount())
    assert ctrl.state.error is not None
    assert not ctrl.state.is_loading


def test_render_empty_space() -> None:
    ctrl = PageTreeController(FakePersistence(), space_id="s1")
    asyncio.run(ctrl.mount())
    assert ctrl.render() == "No pages yet"
    ctrl.search("x")
    assert ctrl.render() == "No pages match your search"


def test_delete_success_removes_subtree(
    controller: PageTreeController, fake_persistence: FakePersistence, fake_notifier: FakeNotifier
) -> None:
    assert asyncio.run(controller.delete_page("B"))
    assert set(controller.state.nodes) == {"A", "C"}
    assert fake_persistence.call_names()[-1] == "fetch_tree"
    assert fake_notifier.messages == []


def test_delete_failure_leaves_tree_and_alerts(
    controller: PageTreeController, fake_persistence: FakePersistence, fake_notifier: FakeNotifier
) -> None:
    fake_persistence.failing.add("delete_node")
    before = controller.state
    assert not asyncio.run(controller.delete_page("B"))
    assert controller.state is before
    assert fake_notifier.messages == [DELETE_FAILED]


def test_copy_page_refreshes(controller: PageTreeController, fake_notifier: FakeNotifier) -> None:
    copy = asyncio.run(controller.copy_page("C"))
    assert copy is not None
    assert controller.state.nodes[copy.id].title == "Charlie (copy)"
    assert controller.state.nodes[copy.id].parent_id == "A"


def test_copy_failure_alerts(
    controller: PageTreeController, fake_persistence: FakePersistence, fake_notifier: FakeNotifier
) -> None:
    fake_persistence.refusing.add("copy_node")
    assert asyncio.run(controller.copy_page("C")) is None
    assert fake_notifier.messages == [COPY_FAILED]


def test_move_into_descendant_is_rejected_without_request(
    controller: PageTreeController, fake_persistence: FakePersistence
) -> None:
    with pytest.raises(InvalidMoveError):
        asyncio.run(controller.move_page("A", "D", 0))
    assert "move_node" not in fake_persistence.call_names()


def test_move_page_and_failure(
    controller: PageTreeController, fake_persistence: FakePersistence, fake_notifier: FakeNotifier
) -> None:
    assert asyncio.run(controller.move_page("D", None, 0))
    assert controller.state.root_ids == ("D", "A")

    fake_persistence.failing.add("move_node")
    assert not asyncio.run(controller.move_page("C", "D", 0))
    assert fake_notifier.messages == [MOVE_FAILED]


def test_create_page_opens_it(controller: PageTreeController, opened: list[str]) -> None:
    page = asyncio.run(controller.create_page("A", "Echo"))
    assert page is not None
    assert page.id in controller.state.nodes["A"].children
    assert opened == [page.id]
    assert controller.state.selected_id == page.id


def test_keyboard_navigation(controller: PageTreeController, opened: list[str]) -> None:
    async def press(*keys: str) -> None:
        for key in keys:
            await controller.on_key(key)

    asyncio.run(press("ArrowDown"))
    assert controller.state.selected_id == "A"

    asyncio.run(press("ArrowRight", "ArrowDown", "ArrowDown", "ArrowDown"))
    assert controller.state.selected_id == "C"

    asyncio.run(press("ArrowUp", "ArrowLeft"))
    assert controller.state.selected_id == "B"
    assert "B" not in controller.state.expanded_ids

    asyncio.run(press("Enter"))
    assert opened == ["B"]


def test_keyboard_creator_takes_enter_and_escape(
    controller: PageTreeController, fake_persistence: FakePersistence
) -> None:
    controller.select("C")
    asyncio.run(controller.on_key("n"))
    assert controller.creator.request is not None
    assert controller.creator.request.parent_id == "C"
    asyncio.run(controller.on_key("Escape"))
    assert not controller.creator.is_open
    assert "create_node" not in fake_persistence.call_names()


def test_keyboard_escape_closes_menu(controller: PageTreeController) -> None:
    controller.open_menu("A", 10, 10, viewport_width=800, viewport_height=600)
    asyncio.run(controller.on_key("Escape"))
    assert not controller.menu.is_open


def test_menu_delete_action_runs_in_background(controller: PageTreeController) -> None:
    async def scenario() -> None:
        controller.open_menu("B", 10, 10, viewport_width=800, viewport_height=600)
        task = controller.menu.select("delete")
        assert task is not None
        await task

    asyncio.run(scenario())
    assert "B" not in controller.state.nodes


def test_menu_export_is_synchronous(controller: PageTreeController) -> None:
    controller.open_menu("B", 10, 10, viewport_width=800, viewport_height=600)
    assert controller.menu.select("export") is None
    assert controller.last_export == "- Bravo\n    - Delta\n"


def test_expansion_changes_are_saved(controller: PageTreeController, fake_kv: FakeKeyValueStore) -> None:
    controller.toggle("A")
    assert fake_kv.data["pageTree_s1_expanded"] == '["A"]'
    controller.unmount()
    controller.toggle("B")
    assert fake_kv.data["pageTree_s1_expanded"] == '["A"]'


def test_history_and_restore(
    controller: PageTreeController, fake_persistence: FakePersistence, fake_notifier: FakeNotifier
) -> None:
    fake_persistence.versions["C"] = [Version(id="v-1", version_number=1, author="ada", created_at=None)]
    versions = asyncio.run(controller.show_history("C"))
    assert [v.id for v in versions] == ["v-1"]

    assert asyncio.run(controller.restore_version("C", "v-1"))
    assert controller.history is not None
    assert [v.version_number for v in controller.history.versions] == [2, 1]

    fake_persistence.refusing.add("restore_version")
    assert not asyncio.run(controller.restore_version("C", "v-1"))
    assert fake_notifier.messages == [RESTORE_FAILED]


def test_access_grant_update_revoke(
    controller: PageTreeController, fake_persistence: FakePersistence, fake_notifier: FakeNotifier
) -> None:
    assert asyncio.run(controller.grant_access("C", "u1", "edit"))
    assert controller.access is not None
    (entry,) = controller.access.entries
    assert entry.role is AccessRole.EDIT

    assert asyncio.run(controller.update_access_role("C", entry.id, AccessRole.VIEW))
    assert controller.access.entries[0].role is AccessRole.VIEW

    assert asyncio.run(controller.revoke_access("C", "u1"))
    assert controller.access.entries == ()

    fake_persistence.failing.add("grant_access")
    assert not asyncio.run(controller.grant_access("C", "u2", "VIEW"))
    assert fake_notifier.messages == [ACCESS_FAILED]


def test_parse_role_rejects_unknown_roles() -> None:
    assert parse_role(" admin ") is AccessRole.ADMIN
    with pytest.raises(ValueError, match="Unknown access role"):
        parse_role("superuser")
