"""
Opens the browsing context described by BrowserConfig
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Tuple

import httpx

from browser.base import PageFactory, PageSession
from browser.http_page import DEFAULT_USER_AGENT, HttpPage
from services.config import BrowserConfig

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _http_context(config: BrowserConfig) -> AsyncIterator[Tuple[PageSession, PageFactory]]:
    client_kwargs = {"headers": {"User-Agent": config.user_agent or DEFAULT_USER_AGENT}}
    if config.proxy:
        client_kwargs["proxy"] = config.proxy

    async with httpx.AsyncClient(**client_kwargs) as client:

        # Requests are independent, so isolated pages can share one client
        @asynccontextmanager
        async def page_factory() -> AsyncIterator[PageSession]:
            yield HttpPage(client)

        yield HttpPage(client), page_factory


@asynccontextmanager
async def _playwright_context(config: BrowserConfig) -> AsyncIterator[Tuple[PageSession, PageFactory]]:
    # Imported lazily so the http engine runs without browser binaries
    from browser.playwright_page import PlaywrightBrowser

    browser = PlaywrightBrowser(
        engine=config.browser_type,
        headless=config.headless,
        user_agent=config.user_agent,
        viewport=config.viewport,
        proxy=config.proxy,
    )
    await browser.start()
    try:
        async with browser.new_page() as page:
            yield page, browser.new_page
    finally:
        await browser.stop()


@asynccontextmanager
async def open_browser(config: BrowserConfig) -> AsyncIterator[Tuple[PageSession, PageFactory]]:
    """
    Yields (page, page_factory): the page the orchestrator owns for the run,
    and a factory for isolated pages used by parallel enrichment.
    """
    logger.info(f"Opening {config.engine} browsing context")
    opener = _http_context if config.engine == "http" else _playwright_context
    async with opener(config) as (page, page_factory):
        yield page, page_factory
