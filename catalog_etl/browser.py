"""Playwright page wrapper used by the source adapters."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from playwright.sync_api import Page, sync_playwright
from playwright.sync_api import TimeoutError as PlaywrightTimeout

from .config import Settings
from .models import Outcome

LOGGER = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)
LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
]


class BrowserSession:
    """One navigable page, reused for every category of a source."""

    def __init__(self, page: Page, settings: Optional[Settings] = None) -> None:
        self.page = page
        self.settings = settings or Settings()

    def navigate(self, url: str) -> None:
        """Load a URL and return once the network is idle."""
        LOGGER.info("Navigating to %s", url)
        self.page.goto(url, wait_until="networkidle", timeout=self.settings.nav_timeout_ms)

    def wait_for(self, selector: str, *, hidden: bool = False, timeout_ms: int = 5000) -> Outcome[bool]:
        """Wait for a selector to be attached (or hidden).

        A timeout is returned as a failed Outcome; callers decide whether
        it matters.
        """
        state = "hidden" if hidden else "attached"
        try:
            self.page.wait_for_selector(selector, state=state, timeout=timeout_ms)
        except PlaywrightTimeout:
            message = f"timeout after {timeout_ms}ms waiting for {selector} ({state})"
            LOGGER.debug(message)
            return Outcome.failure(message)
        return Outcome.success(True)

    def evaluate(self, script: str, arg: Any = None) -> Any:
        """Run a DOM query inside the page and return its result."""
        if arg is None:
            return self.page.evaluate(script)
        return self.page.evaluate(script, arg)

    def text_of(self, selector: str) -> str:
        element = self.page.query_selector(selector)
        if element is None:
            return ""
        return (element.text_content() or "").strip()

    def set_viewport(self, width: int, height: int) -> None:
        self.page.set_viewport_size({"width": width, "height": height})

    def scroll_to_bottom(self) -> int:
        """Scroll in fixed steps until the page height stops growing.

        Returns the number of scroll steps performed.
        """
        step = self.settings.scroll_step
        scrolled = 0
        steps = 0
        height = self.page.evaluate("document.body.scrollHeight")
        while steps < self.settings.max_scroll_steps:
            self.page.evaluate("(d) => window.scrollBy(0, d)", step)
            scrolled += step
            steps += 1
            self.page.wait_for_timeout(self.settings.scroll_interval_ms)
            if scrolled >= height:
                new_height = self.page.evaluate("document.body.scrollHeight")
                if new_height <= height:
                    break
                height = new_height
        else:
            LOGGER.warning("Stopped scrolling after %s steps (height still growing)", steps)

        self.page.wait_for_timeout(self.settings.settle_ms)
        LOGGER.debug("Scrolled %spx in %s steps", scrolled, steps)
        return steps

    def capture(self, path: str | Path) -> Outcome[str]:
        """Save a full-page screenshot for diagnostics. Never raises."""
        try:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            self.page.screenshot(path=str(path), full_page=True)
        except Exception as exc:
            LOGGER.warning("Screenshot %s failed: %s", path, exc)
            return Outcome.failure(str(exc))
        LOGGER.info("Screenshot saved to %s", path)
        return Outcome.success(str(path))


@contextmanager
def open_browser_session(settings: Settings) -> Iterator[BrowserSession]:
    """Launch Chromium for one source and always close it afterwards."""
    with sync_playwright() as p:
        browser = p.chromium.launch(headless=settings.headless, args=LAUNCH_ARGS)
        LOGGER.info("Browser started (headless=%s)", settings.headless)
        try:
            context = browser.new_context(user_agent=USER_AGENT)
            context.add_init_script(
                "Object.defineProperty(navigator, 'webdriver', {get: () => undefined});"
            )
            page = context.new_page()
            page.set_default_timeout(settings.nav_timeout_ms)
            page.set_default_navigation_timeout(settings.nav_timeout_ms)
            yield BrowserSession(page, settings)
        finally:
            browser.close()
            LOGGER.info("Browser closed")
