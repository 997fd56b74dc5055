"""Exceptions raised by the page tree."""


class PageTreeError(Exception):
    """Base class for page tree errors."""


class PersistenceError(PageTreeError, RuntimeError):
    """A call to the page service failed or was refused."""


class InvalidMoveError(PageTreeError, ValueError):
    """A move would create a cycle or targets a missing parent."""


class DragInProgressError(PageTreeError, RuntimeError):
    """A drag was started while another drag session is active."""
