"""Playwright-backed rendering session for the discovery loop."""

from __future__ import annotations

from typing import Any

from playwright.sync_api import ElementHandle, sync_playwright

from ..config import DiscoveryConfig


class PlaywrightSession:
    """One Chromium page driven through the sync API.

    Playwright objects are bound to the thread that started them, so the
    session must be created, used and closed on the same thread.
    """

    def __init__(self, config: DiscoveryConfig, user_agent: str | None = None) -> None:
        self.config = config
        self.user_agent = user_agent
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None

    def _ensure_started(self) -> None:
        if self._playwright is not None:
            return
        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(headless=self.config.headless)
        self._context = self._browser.new_context(
            user_agent=self.user_agent,
            locale="ko-KR",
            viewport={"width": 1920, "height": 1080},
        )
        self._page = self._context.new_page()
        self._page.set_default_timeout(self.config.navigation_timeout)

    def navigate(self, url: str) -> None:
        self._ensure_started()
        self._page.goto(url, wait_until="domcontentloaded")

    def query_all(self, selector: str) -> list[ElementHandle]:
        self._ensure_started()
        return self._page.query_selector_all(selector)

    def execute_script(self, script: str) -> Any:
        self._ensure_started()
        return self._page.evaluate(script)

    def element_attribute(self, element: ElementHandle, name: str) -> str | None:
        return element.get_attribute(name)

    def close(self) -> None:
        if self._playwright is None:
            return
        try:
            self._context.close()
            self._browser.close()
        finally:
            self._playwright.stop()
            self._playwright = None
            self._browser = None
            self._context = None
            self._page = None


__all__ = ["PlaywrightSession"]
