"""
Base classes for the browsing context.

The pipeline never touches a browser or HTTP client directly; it receives a
PageSession and treats every call on it as an I/O boundary.
"""
from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Callable, List

SCROLL_TO_BOTTOM = "() => window.scrollTo(0, document.body.scrollHeight)"


class ElementHandle(ABC):
    """
    A live element on the page. Only what the reveal strategies need.
    """

    @abstractmethod
    async def text(self) -> str:
        raise NotImplementedError

    @abstractmethod
    async def is_actionable(self) -> bool:
        """Visible and not disabled."""
        raise NotImplementedError

    @abstractmethod
    async def click(self) -> None:
        raise NotImplementedError


class PageSession(ABC):
    """
    Base interface for one browsing context (a tab, or an HTTP client
    pretending to be one).
    """

    @property
    @abstractmethod
    def url(self) -> str:
        raise NotImplementedError

    @abstractmethod
    async def navigate(self, url: str, timeout_ms: int = 30000) -> None:
        """
        Load url. Raises NavigationTimeout or NavigationFailed.
        """
        raise NotImplementedError

    @abstractmethod
    async def evaluate(self, script: str, arg: Any = None) -> Any:
        raise NotImplementedError

    @abstractmethod
    async def query_all(self, selector: str) -> List[ElementHandle]:
        raise NotImplementedError

    @abstractmethod
    async def wait_for_selector(self, selector: str, timeout_ms: int = 10000) -> bool:
        """
        True once selector matches, False on timeout. Never raises on timeout.
        """
        raise NotImplementedError

    @abstractmethod
    async def content(self) -> str:
        """Snapshot of the current document."""
        raise NotImplementedError

    async def close(self) -> None:
        return None


# Opens an isolated page (own context) for parallel detail fetches.
PageFactory = Callable[[], AsyncContextManager[PageSession]]
