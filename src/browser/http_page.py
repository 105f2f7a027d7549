"""
Static browsing context over httpx.

For server-rendered HTML and JSON endpoints no browser is needed. There is no
script engine, so evaluate() is a no-op; clicking an anchor follows its href
and appends the next page to the current document, which is how link-based
"More" pagination reveals additional items.
"""
import logging
from typing import Any, List, Optional
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup, Tag

from browser.base import ElementHandle, PageSession
from core.errors import NavigationFailed, NavigationTimeout

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "feed-extractor/1.0"


class StaticElementHandle(ElementHandle):
    def __init__(self, element: Tag, page: "HttpPage"):
        self._element = element
        self._page = page

    async def text(self) -> str:
        return self._element.get_text(" ", strip=True)

    async def is_actionable(self) -> bool:
        if self._element.has_attr("disabled"):
            return False
        return self._element.name == "a" and bool(self._element.get("href"))

    async def click(self) -> None:
        href = self._element.get("href")
        if self._element.name != "a" or not href:
            logger.debug("Ignoring click on a non-link element in a static page")
            return
        self._element.decompose()
        await self._page.append(urljoin(self._page.url, href))


class HttpPage(PageSession):
    """
    Wraps an httpx.AsyncClient as a PageSession.
    """

    def __init__(self, client: httpx.AsyncClient):
        self.client = client
        self._url = ""
        self._text = ""
        self._soup: Optional[BeautifulSoup] = None

    @property
    def url(self) -> str:
        return self._url

    async def _get(self, url: str, timeout_ms: int) -> httpx.Response:
        try:
            resp = await self.client.get(url, timeout=timeout_ms / 1000.0, follow_redirects=True)
            resp.raise_for_status()
        except httpx.TimeoutException as e:
            raise NavigationTimeout(f"Timed out after {timeout_ms}ms loading {url}") from e
        except httpx.HTTPStatusError as e:
            raise NavigationFailed(f"HTTP {e.response.status_code} for {url}") from e
        except httpx.HTTPError as e:
            raise NavigationFailed(f"Request to {url} failed: {e}") from e
        return resp

    async def navigate(self, url: str, timeout_ms: int = 30000) -> None:
        logger.debug(f"Fetching {url}")
        resp = await self._get(url, timeout_ms)
        self._url = str(resp.url)
        self._text = resp.text
        self._soup = None

    async def append(self, url: str, timeout_ms: int = 30000) -> None:
        """Fetch url and graft its body onto the current document."""
        logger.debug(f"Following pagination link {url}")
        resp = await self._get(url, timeout_ms)
        soup = self._document()
        extra = BeautifulSoup(resp.text, "html.parser")
        target = soup.body or soup
        for node in list((extra.body or extra).contents):
            target.append(node.extract())
        self._text = str(soup)

    def _document(self) -> BeautifulSoup:
        if self._soup is None:
            self._soup = BeautifulSoup(self._text, "html.parser")
        return self._soup

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return None

    async def query_all(self, selector: str) -> List[ElementHandle]:
        return [StaticElementHandle(el, self) for el in self._document().select(selector)]

    async def wait_for_selector(self, selector: str, timeout_ms: int = 10000) -> bool:
        return self._document().select_one(selector) is not None

    async def content(self) -> str:
        return self._text
