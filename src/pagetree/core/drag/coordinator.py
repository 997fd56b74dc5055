"""Drag-and-drop session handling with cycle-safe drop validation."""

from collections.abc import Awaitable, Callable, Sequence

from loguru import logger

from pagetree.core.tree import commands
from pagetree.core.tree.queries import get_node_path, is_descendant_of
from pagetree.core.tree.state import TreeState
from pagetree.core.tree.store import TreeStore
from pagetree.errors import DragInProgressError, PersistenceError
from pagetree.models.node import DragSession, DropRelation, DropTarget
from pagetree.protocols import NotifierProtocol, PersistencePort

MOVE_FAILED = "Failed to move page"


def is_valid_drop(state: TreeState, dragged_ids: Sequence[str], candidate_id: str) -> bool:
    """A candidate is invalid when it is dragged itself or lies below a dragged node."""
    if candidate_id in dragged_ids:
        return False
    return not any(is_descendant_of(state, candidate_id, dragged_id) for dragged_id in dragged_ids)


def topmost_ids(state: TreeState, ids: Sequence[str]) -> list[str]:
    """Keep only ids with no dragged ancestor, in document order.

    Descendants travel with their ancestor, so moving them on their own
    would tear them out of the subtree being moved.
    """
    chosen = [
        nid
        for nid in ids
        if nid in state.nodes and not any(is_descendant_of(state, nid, other) for other in ids if other != nid)
    ]

    def document_order(node_id: str) -> tuple[int, ...]:
        return tuple(node.position for node in get_node_path(state, node_id))

    return sorted(chosen, key=document_order)


def drop_placement(
    state: TreeState, target: DropTarget, moving_id: str | None = None
) -> tuple[str | None, int]:
    """Translate a drop target into ``(new_parent_id, new_position)``.

    The position is the final index the move endpoint expects. When
    ``moving_id`` is an earlier sibling under the same parent, its own slot
    closes first, so the index is one lower.
    """
    node = state.nodes[target.node_id]
    if target.relation is DropRelation.INSIDE:
        parent_id: str | None = node.id
        if node.children:
            position = state.nodes[node.children[-1]].position + 1
        else:
            position = node.child_count
    elif target.relation is DropRelation.BEFORE:
        parent_id, position = node.parent_id, node.position
    else:
        parent_id, position = node.parent_id, node.position + 1

    moving = state.nodes.get(moving_id) if moving_id is not None else None
    if moving is not None and moving.parent_id == parent_id and moving.position < position:
        position -= 1
    return parent_id, position


class DragCoordinator:
    """Owns the single drag session of a TreeStore.

    The store's ``drag`` field is the session; this class is the only writer.
    Dropping never reorders the local tree: the moves are requested from the
    persistence port and ``refresh`` reloads the tree afterwards.
    """

    def __init__(
        self,
        store: TreeStore,
        persistence: PersistencePort,
        *,
        refresh: Callable[[], Awaitable[object]],
        notifier: NotifierProtocol,
    ) -> None:
        self.store = store
        self.persistence = persistence
        self.refresh = refresh
        self.notifier = notifier

    @property
    def session(self) -> DragSession | None:
        return self.store.state.drag

    @property
    def is_active(self) -> bool:
        return self.session is not None

    def start_drag(self, ids: Sequence[str]) -> DragSession:
        """Open the drag session for ``ids``.

        Raises:
            DragInProgressError: Another drag has not been ended yet.
            ValueError: ``ids`` is empty.
        """
        if self.session is not None:
            msg = "A drag is already in progress; end it first"
            raise DragInProgressError(msg)
        dragged_ids = tuple(dict.fromkeys(ids))
        if not dragged_ids:
            msg = "Cannot start a drag without any node ids"
            raise ValueError(msg)

        state = self.store.state
        nodes = tuple(state.nodes[nid] for nid in dragged_ids if nid in state.nodes)
        session = DragSession(dragged_ids=dragged_ids, dragged_nodes=nodes)
        self.store.set_drag(session)
        logger.debug("Drag started for {}", list(dragged_ids))
        return session

    def update_drop_target(
        self, candidate_id: str, relation: DropRelation = DropRelation.INSIDE
    ) -> DropTarget | None:
        """Mark the candidate under the pointer as the drop target.

        Returns the new target, or None when no drag is active or the
        candidate is not a known node (the indicator is cleared).
        """
        session = self.session
        if session is None:
            return None
        state = self.store.state
        candidate = state.nodes.get(candidate_id)
        if candidate is None:
            self.store.set_drop_target(None)
            return None

        depth = candidate.depth + 1 if relation is DropRelation.INSIDE else candidate.depth
        target = DropTarget(
            node_id=candidate_id,
            relation=relation,
            depth=depth,
            is_valid=is_valid_drop(state, session.dragged_ids, candidate_id),
        )
        self.store.set_drop_target(target)
        return target

    def clear_drop_target(self) -> None:
        self.store.set_drop_target(None)

    async def commit_drag(self) -> bool:
        """Request the moves for the current valid drop target.

        Returns True when every move was accepted. With no target or an
        invalid one nothing is requested. The tree is refreshed after any
        request, including a partial failure.
        """
        session = self.session
        if session is None or session.drop_target is None or not session.drop_target.is_valid:
            return False
        state = self.store.state
        target = session.drop_target
        if target.node_id not in state.nodes:
            return False

        moved_ids = topmost_ids(state, session.dragged_ids)
        if not moved_ids:
            return False

        # Each move is placed against the tree as the previous moves left it;
        # later nodes follow the one moved before them.
        planned = state
        anchor = target
        ok = True
        try:
            for node_id in moved_ids:
                new_parent_id, position = drop_placement(planned, anchor, node_id)
                try:
                    accepted = await self.persistence.move_node(node_id, new_parent_id, position)
                except PersistenceError:
                    logger.exception("Moving {} failed", node_id)
                    accepted = False
                if not accepted:
                    ok = False
                    self.notifier.alert(MOVE_FAILED)
                    break
                planned = commands.move_node(planned, node_id, new_parent_id, position)
                anchor = DropTarget(node_id, DropRelation.AFTER, target.depth, True)
        finally:
            await self.refresh()
        return ok

    def end_drag(self) -> None:
        """Close the session regardless of outcome."""
        if self.session is not None:
            self.store.set_drag(None)

    # --- Narrow interface for UI plumbing ---

    def on_drag_start(self, ids: Sequence[str]) -> None:
        self.start_drag(ids)

    def on_drag_over(self, candidate_id: str, relation: DropRelation = DropRelation.INSIDE) -> bool:
        target = self.update_drop_target(candidate_id, relation)
        return target is not None and target.is_valid

    async def on_drag_end(
        self, target_id: str | None, relation: DropRelation | None = None
    ) -> bool:
        """Finish the gesture: drop on ``target_id`` or cancel when it is None."""
        try:
            if target_id is None:
                return False
            session = self.session
            current = session.drop_target if session is not None else None
            if relation is None:
                relation = current.relation if current is not None and current.node_id == target_id else DropRelation.INSIDE
            self.update_drop_target(target_id, relation)
            return await self.commit_drag()
        finally:
            self.end_drag()
