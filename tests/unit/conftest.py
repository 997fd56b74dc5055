"""Shared test fixtures."""

import pytest

from pagetree.core.tree import commands
from pagetree.core.tree.state import TreeState
from pagetree.core.tree.store import TreeStore
from pagetree.models.node import TreeNode
from tests.unit.fakes import ABCD, FakeKeyValueStore, FakeNotifier, FakePersistence


@pytest.fixture
def abcd_nodes() -> list[TreeNode]:
    return list(ABCD)


@pytest.fixture
def abcd_state() -> TreeState:
    return commands.load_nodes(TreeState(), ABCD)


@pytest.fixture
def abcd_store() -> TreeStore:
    store = TreeStore()
    store.load_nodes(ABCD)
    return store


@pytest.fixture
def fake_persistence() -> FakePersistence:
    return FakePersistence(list(ABCD))


@pytest.fixture
def fake_kv() -> FakeKeyValueStore:
    return FakeKeyValueStore()


@pytest.fixture
def fake_notifier() -> FakeNotifier:
    return FakeNotifier()
