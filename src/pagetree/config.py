"""Configuration constants for the page tree."""

import os
from pathlib import Path

# API token location. First file found is used, unless PAGETREE_TOKEN is set.
API_TOKEN_FILES: list[Path] = [
    Path("~/.config/pagetree-token.txt").expanduser(),
    Path("~/.config/secret/pagetree-token.txt").expanduser(),
    Path(f"/run/user/{os.getuid()}/pagetree-token"),
]

API_TOKEN_ENV = "PAGETREE_TOKEN"

# Log level override (DEBUG, INFO, WARNING, ...). Wins over --verbose.
LOG_LEVEL_ENV = "PAGETREE_LOG_LEVEL"

# Base URL of the page service.
API_URL_ENV = "PAGETREE_API_URL"
DEFAULT_API_URL = "http://localhost:3000"

# Seconds before a request to the page service is abandoned.
REQUEST_TIMEOUT: float = 15.0

# Directory with local state (expansion store). First directory which is found is used.
DATA_DIR_ENV = "PAGETREE_DATA_DIR"
DATA_DIRECTORIES: list[Path] = [
    Path("~/.local/share/pagetree").expanduser(),
    Path("~/.pagetree").expanduser(),
]

STATE_DB_NAME = "tree-state.db"

# Expansion state key, scoped by tree identity.
EXPANDED_KEY_TEMPLATE = "pageTree_{space}_expanded"

# Row geometry.
INDENT_PER_LEVEL = 28
NODE_HEIGHT = 32
MAX_VISIBLE_LABELS = 2

# Context menu geometry.
MENU_WIDTH = 200
MENU_HEIGHT = 280
MENU_MARGIN = 8


def resolve_api_url() -> str:
    """Return the page service base URL without a trailing slash."""
    return os.environ.get(API_URL_ENV, DEFAULT_API_URL).rstrip("/")


def resolve_data_directory() -> Path:
    """Return the directory for local state.

    PAGETREE_DATA_DIR wins; otherwise the first existing candidate, otherwise
    the first candidate (created on demand by the caller).
    """
    env_dir = os.environ.get(DATA_DIR_ENV)
    if env_dir:
        return Path(env_dir).expanduser()
    for candidate in DATA_DIRECTORIES:
        if candidate.is_dir():
            return candidate
    return DATA_DIRECTORIES[0]
