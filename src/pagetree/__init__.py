"""Hierarchical page tree navigator."""

from pagetree.api import PageTreeApi
from pagetree.controller import PageTreeController
from pagetree.core.tree.sidebar import SidebarTree
from pagetree.core.tree.state import TreeState
from pagetree.core.tree.store import TreeStore
from pagetree.persistence import HttpPersistence
from pagetree.protocols import KeyValueStoreProtocol, NotifierProtocol, PersistencePort

__all__ = [
    "HttpPersistence",
    "KeyValueStoreProtocol",
    "NotifierProtocol",
    "PageTreeApi",
    "PageTreeController",
    "PersistencePort",
    "SidebarTree",
    "TreeState",
    "TreeStore",
]
