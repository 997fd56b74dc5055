"""Logging configuration for the page tree."""

import os
import sys

from loguru import logger

from pagetree.config import LOG_LEVEL_ENV

CLI_FORMAT = "{level.icon} {message}"
# The MCP server owns stdout; its log lines go to stderr with a timestamp.
SERVER_FORMAT = "{time:HH:mm:ss} {level: <7} {name}: {message}"


def resolve_log_level(*, verbose: bool) -> str:
    """Pick the log level; PAGETREE_LOG_LEVEL overrides the verbose flag."""
    override = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    if override:
        return override
    return "DEBUG" if verbose else "INFO"


def configure_logging(*, verbose: bool = False, server: bool = False) -> None:
    """Replace loguru's default sink with a single stderr sink."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=resolve_log_level(verbose=verbose),
        format=SERVER_FORMAT if server else CLI_FORMAT,
    )
