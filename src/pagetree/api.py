"""Page service HTTP client."""

import logging
import os
from typing import Any

import requests

from pagetree.config import API_TOKEN_ENV, API_TOKEN_FILES, REQUEST_TIMEOUT, resolve_api_url
from pagetree.errors import PersistenceError


def read_api_token() -> tuple[str, str]:
    """Return ``(token, source)``; the environment wins over token files."""
    env_token = os.environ.get(API_TOKEN_ENV)
    if env_token:
        return env_token.strip(), f"${API_TOKEN_ENV}"
    for token_path in API_TOKEN_FILES:
        try:
            return token_path.read_text(encoding="utf-8").strip(), str(token_path)
        except FileNotFoundError:
            pass
    msg = f"Cannot find page service token, set ${API_TOKEN_ENV} or create one of {API_TOKEN_FILES!r}"
    raise PersistenceError(msg)


class PageTreeApi:
    """Encapsulated page service API.

    The token is sent as the ``accessToken`` cookie, the way the web client
    authenticates. Every response is a JSON object with ``success`` and, on
    failure, ``message``.
    """

    def __init__(self, *, base_url: str | None = None, token: str | None = None) -> None:
        self.base_url = (base_url or resolve_api_url()).rstrip("/")
        self.sess = requests.Session()
        self.logger = logging.getLogger("api")

        token_source = "argument"
        if token is None:
            token, token_source = read_api_token()
        self.sess.cookies.set("accessToken", token)
        self.sess.headers["Accept"] = "application/json"

        self.logger.debug(f"API ready: {self.base_url!r}, token from {token_source!r}")

    def call(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Invoke a page service endpoint, return json.

        Raises:
            PersistenceError: Transport failure, HTTP error status, or a
                response with ``success: false``.
        """
        self.logger.debug(f"Making request: {method} {path!r} {repr(body)[:32]}")
        try:
            r = self.sess.request(
                method,
                f"{self.base_url}{path}",
                json=body,
                params=params,
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            msg = f"API call failed: {method} {path!r} -> {e}"
            raise PersistenceError(msg) from e

        try:
            rv: dict[str, Any] = r.json()
        except ValueError:
            rv = {}

        if not r.ok:
            msg = f"API call failed: {method} {path!r} -> HTTP {r.status_code} {rv.get('message') or r.reason!r}"
            raise PersistenceError(msg)
        if rv.get("success") is False:
            msg = f"API call failed: {method} {path!r} -> {rv.get('message')!r}"
            raise PersistenceError(msg)
        return rv
