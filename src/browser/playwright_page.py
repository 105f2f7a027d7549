"""
Playwright-backed browsing context.
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    ElementHandle as PlaywrightElement,
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from browser.base import ElementHandle, PageSession
from core.errors import NavigationFailed, NavigationTimeout

logger = logging.getLogger(__name__)


class PlaywrightElementHandle(ElementHandle):
    def __init__(self, element: PlaywrightElement):
        self._element = element

    async def text(self) -> str:
        return (await self._element.text_content() or "").strip()

    async def is_actionable(self) -> bool:
        try:
            return await self._element.is_visible() and await self._element.is_enabled()
        except PlaywrightError:
            # Detached from the DOM between query and check
            return False

    async def click(self) -> None:
        await self._element.click()


class PlaywrightPage(PageSession):
    """
    Wraps a single Playwright Page.
    """

    def __init__(self, page: Page, wait_until: str = "domcontentloaded"):
        self._page = page
        self.wait_until = wait_until

    @property
    def url(self) -> str:
        return self._page.url

    async def navigate(self, url: str, timeout_ms: int = 30000) -> None:
        logger.debug(f"Navigating to {url}")
        try:
            response = await self._page.goto(url, wait_until=self.wait_until, timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeout(f"Timed out after {timeout_ms}ms loading {url}") from e
        except PlaywrightError as e:
            raise NavigationFailed(f"Navigation to {url} failed: {e}") from e

        if response is not None and response.status >= 400:
            raise NavigationFailed(f"HTTP {response.status} for {url}")

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self._page.evaluate(script, arg)

    async def query_all(self, selector: str) -> List[ElementHandle]:
        elements = await self._page.query_selector_all(selector)
        return [PlaywrightElementHandle(el) for el in elements]

    async def wait_for_selector(self, selector: str, timeout_ms: int = 10000) -> bool:
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False

    async def content(self) -> str:
        return await self._page.content()

    async def close(self) -> None:
        await self._page.close()


class PlaywrightBrowser:
    """
    Owns the Playwright driver and browser process for one run.
    Hands out pages; each page opened through new_page() gets its own context.
    """

    def __init__(
        self,
        engine: str = "chromium",
        headless: bool = True,
        user_agent: Optional[str] = None,
        viewport: Optional[dict] = None,
        proxy: Optional[str] = None,
        wait_until: str = "domcontentloaded",
    ):
        self.engine = engine
        self.headless = headless
        self.user_agent = user_agent
        self.viewport = viewport or {"width": 1280, "height": 720}
        self.proxy = proxy
        self.wait_until = wait_until
        self._playwright = None
        self._browser: Optional[Browser] = None

    async def start(self) -> None:
        logger.info(f"Launching {self.engine} browser (headless: {self.headless})")
        self._playwright = await async_playwright().start()
        launcher = getattr(self._playwright, self.engine, self._playwright.chromium)
        launch_kwargs = {"headless": self.headless}
        if self.proxy:
            launch_kwargs["proxy"] = {"server": self.proxy}
        if launcher is self._playwright.chromium:
            launch_kwargs["args"] = ["--no-sandbox", "--disable-dev-shm-usage"]
        self._browser = await launcher.launch(**launch_kwargs)

    async def stop(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def _new_context(self) -> BrowserContext:
        if self._browser is None:
            raise RuntimeError("Browser not started")
        return await self._browser.new_context(
            user_agent=self.user_agent,
            viewport=self.viewport,
        )

    @asynccontextmanager
    async def new_page(self) -> AsyncIterator[PageSession]:
        context = await self._new_context()
        try:
            page = await context.new_page()
            yield PlaywrightPage(page, wait_until=self.wait_until)
        finally:
            await context.close()
