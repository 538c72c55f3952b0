# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Playwright-backed browser driver and element locator."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from playwright.async_api import ElementHandle as PlaywrightHandle
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from codenav_e2e.config import Config
from codenav_e2e.interfaces import BrowserDriver, ElementHandle, ElementLocator, ElementNotFound
from codenav_e2e.session import ScenarioSession

logger = logging.getLogger(__name__)


def subject_selector(test_id: str) -> str:
    """Translate a test subject id into a CSS selector.

    "codeRepositoryList codeRepositoryItem" becomes
    '[data-test-subj="codeRepositoryList"] [data-test-subj="codeRepositoryItem"]'.
    """
    parts = test_id.split()
    if not parts:
        raise ValueError("test subject id must not be empty")
    return " ".join(f'[data-test-subj="{part}"]' for part in parts)


class PlaywrightElement(ElementHandle):
    def __init__(self, handle: PlaywrightHandle):
        self.handle = handle

    async def get_visible_text(self) -> str:
        return (await self.handle.inner_text()).strip()

    async def click(self) -> None:
        await self.handle.click()


class PlaywrightBrowser(BrowserDriver):
    """Navigation and pointer control on a single Playwright page."""

    def __init__(self, page: Page, base_url: str):
        self.page = page
        self.base_url = base_url.rstrip("/")

    async def navigate_to_app(self, name: str) -> None:
        url = f"{self.base_url}/app/{name}"
        logger.debug(f"Navigating to {url}")
        await self.page.goto(url, wait_until="domcontentloaded")

    async def get_current_url(self) -> str:
        return self.page.url

    async def move_mouse_to(self, element: ElementHandle) -> None:
        if not isinstance(element, PlaywrightElement):
            raise TypeError(f"Expected PlaywrightElement, got {type(element).__name__}")
        await element.handle.hover()


class PlaywrightLocator(ElementLocator):
    """CSS and data-test-subj lookups on a single Playwright page."""

    def __init__(self, page: Page):
        self.page = page

    async def find_all(self, selector: str, timeout_ms: float) -> List[ElementHandle]:
        try:
            await self.page.wait_for_selector(selector, state="attached", timeout=timeout_ms)
        except PlaywrightTimeoutError:
            logger.debug(f"No element matched '{selector}' within {timeout_ms}ms")
            return []
        handles = await self.page.query_selector_all(selector)
        return [PlaywrightElement(handle) for handle in handles]

    async def find_all_test_subjects(self, test_id: str) -> List[ElementHandle]:
        handles = await self.page.query_selector_all(subject_selector(test_id))
        return [PlaywrightElement(handle) for handle in handles]

    async def exists(self, test_id: str) -> bool:
        return await self.page.query_selector(subject_selector(test_id)) is not None

    async def click(self, test_id: str) -> None:
        handle = await self._require(test_id)
        await handle.click()

    async def set_value(self, test_id: str, text: str) -> None:
        handle = await self._require(test_id)
        await handle.fill(text)

    async def _require(self, test_id: str) -> PlaywrightHandle:
        handle = await self.page.query_selector(subject_selector(test_id))
        if handle is None:
            raise ElementNotFound(f"Test subject '{test_id}' not found")
        return handle


@asynccontextmanager
async def launch_session(
    config: Config, headless: Optional[bool] = None
) -> AsyncIterator[ScenarioSession]:
    """Launch Chromium and yield a session bound to a fresh page.

    Args:
        config: Configuration supplying base URL, timeouts and headless default.
        headless: Overrides browser.headless when given.
    """
    if headless is None:
        headless = config.headless

    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=headless)
        try:
            page = await browser.new_page()
            page.set_default_timeout(config.find_timeout_ms)
            yield ScenarioSession.create(
                PlaywrightBrowser(page, config.base_url),
                PlaywrightLocator(page),
                config,
            )
        finally:
            await browser.close()
