"""Persist the expanded ids of a tree across sessions."""

import json
import sqlite3
from collections.abc import Callable

from loguru import logger

from pagetree.config import EXPANDED_KEY_TEMPLATE
from pagetree.core.tree.state import TreeState
from pagetree.core.tree.store import TreeStore
from pagetree.protocols import KeyValueStoreProtocol


def expansion_key(space_id: str) -> str:
    return EXPANDED_KEY_TEMPLATE.format(space=space_id)


class ExpansionPersistence:
    """Load expansion on attach, save it whenever it changes.

    Only ``expanded_ids`` is stored; selection, focus and search reset with
    every new session. Writes are fire-and-forget: a failing store logs a
    warning and the write is not retried.
    """

    def __init__(self, store: TreeStore, kv: KeyValueStoreProtocol, *, space_id: str) -> None:
        self.store = store
        self.kv = kv
        self.key = expansion_key(space_id)
        self._unsubscribe: Callable[[], None] | None = None

    def load(self) -> frozenset[str]:
        """Read the saved ids. Missing or unreadable values load as empty."""
        try:
            raw = self.kv.get(self.key)
        except (sqlite3.Error, OSError):
            logger.opt(exception=True).warning("Could not read expansion state {}", self.key)
            return frozenset()
        if raw is None:
            return frozenset()
        try:
            ids = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed expansion state {}: {!r}", self.key, raw[:80])
            return frozenset()
        if not isinstance(ids, list):
            logger.warning("Ignoring expansion state {}: expected a list", self.key)
            return frozenset()
        return frozenset(str(i) for i in ids)

    def save(self, expanded_ids: frozenset[str]) -> None:
        try:
            self.kv.set(self.key, json.dumps(sorted(expanded_ids)))
        except (sqlite3.Error, OSError):
            logger.opt(exception=True).warning("Could not save expansion state {}", self.key)

    def attach(self) -> None:
        """Restore saved expansion into the store and start saving changes."""
        if self._unsubscribe is not None:
            return
        self.store.set_expanded_ids(self.load())
        self._unsubscribe = self.store.subscribe(self._on_change)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_change(self, old: TreeState, new: TreeState) -> None:
        if old.expanded_ids != new.expanded_ids:
            self.save(new.expanded_ids)
