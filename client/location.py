"""
Address-bar and navigation seams for the consuming view.

``Location`` stands in for the view's current URL; removing a query
parameter replaces the address in place, like ``history.replaceState``, so
a refresh or back-navigation cannot resubmit it.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

import httpx

from config.settings import config

logger = logging.getLogger(__name__)


class Location:
    def __init__(self, url: str, on_replace: Optional[Callable[[str], None]] = None) -> None:
        self._url = httpx.URL(url)
        self._on_replace = on_replace

    @property
    def url(self) -> str:
        return str(self._url)

    def query_param(self, name: str) -> Optional[str]:
        return self._url.params.get(name)

    def pop_query_param(self, name: str) -> Optional[str]:
        """Read *name* and strip it from the visible URL in one step."""
        if name not in self._url.params:
            return None
        value = self._url.params.get(name)
        self.replace(self._url.copy_remove_param(name))
        return value

    def replace(self, url: httpx.URL | str) -> None:
        self._url = httpx.URL(url)
        logger.debug("Location replaced: %s", self._url.path)
        if self._on_replace is not None:
            self._on_replace(str(self._url))


class Navigator(Protocol):
    def redirect_to_login(self) -> None: ...


class LoginRedirect:
    """Navigator that records the redirect and forwards it to an optional callback."""

    def __init__(
        self,
        login_url: Optional[str] = None,
        on_redirect: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.login_url = login_url or config.login_url
        self.redirected = False
        self._on_redirect = on_redirect

    def redirect_to_login(self) -> None:
        self.redirected = True
        logger.info("Redirecting to login: %s", self.login_url)
        if self._on_redirect is not None:
            self._on_redirect(self.login_url)
