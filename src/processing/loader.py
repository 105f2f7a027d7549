"""
Incremental loading: reveal more items (scroll / "load more") until the
target count is reached or the page stops growing.
"""
import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, List, Sequence

from browser.base import SCROLL_TO_BOTTOM, PageSession
from extraction.documents import parse_document
from extraction.item_extractor import count_containers

logger = logging.getLogger(__name__)

RevealStrategy = Callable[[PageSession], Awaitable[bool]]


class LoaderState(str, Enum):
    LOADING = "loading"
    COUNTING = "counting"
    CONVERGED = "converged"


async def _click_first_actionable(page: PageSession, selector: str, keywords: Sequence[str] = ()) -> bool:
    for element in await page.query_all(selector):
        if keywords:
            text = (await element.text()).lower()
            if not any(k in text for k in keywords):
                continue
        if not await element.is_actionable():
            continue
        await element.click()
        return True
    return False


def click_selectors(selectors: Sequence[str]) -> RevealStrategy:
    """Click the first visible, enabled element among explicit load-more selectors."""
    async def strategy(page: PageSession) -> bool:
        for selector in selectors:
            if await _click_first_actionable(page, selector):
                logger.debug(f"Clicked load-more control '{selector}'")
                return True
        return False
    return strategy


def click_keyword_buttons(keywords: Sequence[str], selector: str = "button") -> RevealStrategy:
    """Click any visible, enabled button whose text mentions a loading keyword."""
    lowered = [k.lower() for k in keywords]

    async def strategy(page: PageSession) -> bool:
        clicked = await _click_first_actionable(page, selector, lowered)
        if clicked:
            logger.debug("Clicked keyword-matched load-more button")
        return clicked
    return strategy


class IncrementalLoader:
    """
    Drives the reveal/count loop for one site profile.

    States: LOADING (scroll, then try reveal strategies, then settle),
    COUNTING (re-run container discovery), CONVERGED (target reached or
    max_stagnant_rounds rounds in a row without growth).
    """

    def __init__(self, profile, *, settle_delay_s: float = 1.0):
        self.profile = profile
        self.settle_delay_s = settle_delay_s
        self.reveal_strategies: List[RevealStrategy] = [
            click_selectors(profile.listing.load_more_selectors),
            click_keyword_buttons(profile.listing.load_more_keywords),
        ]
        self.state = LoaderState.COUNTING
        self.rounds = 0
        self.exhausted = False

    async def count(self, page: PageSession) -> int:
        scope = parse_document(await page.content(), self.profile.document_format)
        return count_containers(scope, self.profile.listing.containers)

    async def reveal(self, page: PageSession) -> bool:
        """One LOADING step. Returns True when a load-more control was clicked."""
        await page.evaluate(SCROLL_TO_BOTTOM)

        clicked = False
        for strategy in self.reveal_strategies:
            if await strategy(page):
                clicked = True
                break

        # A click triggers a fetch; give it longer to settle than a scroll
        await asyncio.sleep(self.settle_delay_s * (2 if clicked else 1))
        return clicked

    async def load_until(self, page: PageSession, target: int, max_stagnant_rounds: int) -> int:
        self.rounds = 0
        self.exhausted = False
        stagnant = 0

        self.state = LoaderState.COUNTING
        count = await self.count(page)
        logger.debug(f"Initial item count: {count} (target: {target})")

        while count < target:
            self.state = LoaderState.LOADING
            await self.reveal(page)
            self.rounds += 1

            self.state = LoaderState.COUNTING
            new_count = await self.count(page)
            logger.debug(f"Items loaded: {new_count} after {self.rounds} rounds")

            if new_count == count:
                stagnant += 1
                if stagnant >= max_stagnant_rounds:
                    self.exhausted = True
                    break
            else:
                stagnant = 0
            count = new_count

        self.state = LoaderState.CONVERGED
        reason = "content exhausted" if self.exhausted else "target reached"
        logger.info(f"Loader converged with {count} items after {self.rounds} rounds ({reason})")
        return count
