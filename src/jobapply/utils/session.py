"""Browser session: attach to an already-running Chrome over its debugging endpoint.

The managed Playwright instance comes from robocorp-browser. Attaching is
mandatory (a run without a controllable browser is fatal); a connection that
drops mid-run gets exactly one reconnect attempt, falling back to relaunching
a persistent-profile browser.
"""
from __future__ import annotations

import time
from typing import Any, Callable, List, Optional
from urllib.parse import urlparse, urlunparse

from playwright.sync_api import Error as PlaywrightError
from robocorp import browser, log

_CONNECTION_LOST_MARKERS = (
    "target page, context or browser has been closed",
    "browser has been closed",
    "browser has disconnected",
    "connection closed",
    "target closed",
    "websocket",
)


class BrowserAttachError(Exception):
    """No controllable browser could be reached."""


class BrowserConnectionLost(Exception):
    """The browser went away while a candidate was being processed."""


def looks_like_connection_loss(error: BaseException) -> bool:
    if isinstance(error, BrowserConnectionLost):
        return True
    message = str(error).lower()
    return any(marker in message for marker in _CONNECTION_LOST_MARKERS)


def _endpoint_variants(endpoint: str) -> List[str]:
    """The endpoint as given plus its 127.0.0.1/localhost twin."""
    variants = [endpoint]
    parsed = urlparse(endpoint)
    host = parsed.hostname or ""
    swap = {"127.0.0.1": "localhost", "localhost": "127.0.0.1"}.get(host)
    if swap:
        netloc = parsed.netloc.replace(host, swap, 1)
        variants.append(urlunparse(parsed._replace(netloc=netloc)))
    return variants


class BrowserSession:
    def __init__(
        self,
        endpoint: str = "http://127.0.0.1:9222",
        relaunch_profile_dir: Optional[str] = None,
        navigation_timeout: float = 120.0,
    ):
        self.endpoint = endpoint
        self.relaunch_profile_dir = relaunch_profile_dir
        self.navigation_timeout = navigation_timeout
        self._browser = None
        self._context = None
        self._owned = True
        self.relaunched = False

    @classmethod
    def from_context(cls, context: Any, navigation_timeout: float = 120.0) -> "BrowserSession":
        """Wrap an existing browser context (used by embedding code and tests)."""
        session = cls(navigation_timeout=navigation_timeout)
        session._context = context
        session._browser = context.browser
        session._owned = False
        return session

    @property
    def context(self) -> Any:
        if self._context is None:
            raise BrowserAttachError("Browser session is not connected")
        return self._context

    def connect(self) -> "BrowserSession":
        """Attach over CDP; raise BrowserAttachError if nothing answers."""
        errors = []
        for endpoint in _endpoint_variants(self.endpoint):
            try:
                self._browser = browser.playwright().chromium.connect_over_cdp(endpoint)
            except PlaywrightError as e:
                errors.append(f"{endpoint}: {e}")
                continue
            contexts = self._browser.contexts
            self._context = contexts[0] if contexts else self._browser.new_context()
            log.info(f"[Session] Attached to browser {self._browser.version} at {endpoint}")
            return self
        raise BrowserAttachError(
            "Could not attach to a running browser. Start Chrome with "
            "--remote-debugging-port=9222. " + " | ".join(errors)
        )

    def is_connected(self) -> bool:
        if self._browser is None:
            return self._context is not None
        try:
            return self._browser.is_connected()
        except PlaywrightError:
            return False

    def reconnect(self) -> bool:
        """One reattach attempt, then one relaunch attempt."""
        log.warn("[Session] Browser connection lost, reconnecting")
        try:
            self.connect()
            return True
        except BrowserAttachError as e:
            log.warn(f"[Session] Reattach failed: {e}")

        if not self.relaunch_profile_dir:
            return False
        try:
            self._context = browser.playwright().chromium.launch_persistent_context(
                self.relaunch_profile_dir, headless=False
            )
            self._browser = self._context.browser
            self.relaunched = True
            log.info(f"[Session] Relaunched browser with profile {self.relaunch_profile_dir}")
            return True
        except PlaywrightError as e:
            log.critical(f"[Session] Relaunch failed: {e}")
            return False

    def pages(self) -> List[Any]:
        return list(self.context.pages)

    def new_tab(self) -> Any:
        if not self.is_connected():
            raise BrowserConnectionLost(f"Browser at {self.endpoint} is no longer connected")
        page = self.context.new_page()
        page.set_default_navigation_timeout(self.navigation_timeout * 1000)
        return page

    def wait_for_new_tab(
        self,
        known: List[Any],
        timeout: float,
        poll: float = 0.25,
        stop: Optional[Callable[[], bool]] = None,
    ) -> Optional[Any]:
        """Return a tab opened since `known` was taken.

        Gives up after `timeout`, or early once `stop()` is true (e.g. the
        current tab navigated in place).
        """
        deadline = time.monotonic() + timeout
        while True:
            for page in self.pages():
                if page not in known:
                    return page
            if time.monotonic() >= deadline or (stop is not None and stop()):
                return None
            time.sleep(poll)

    def close(self) -> None:
        """Drop the CDP connection; tabs left for the human stay open in the browser."""
        if self._browser is not None and self._owned and not self.relaunched:
            try:
                self._browser.close()
            except PlaywrightError as e:
                log.debug(f"[Session] Close failed: {e}")
        self._browser = None
        self._context = None
