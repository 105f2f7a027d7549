"""
Deep enrichment: visit each item's detail page and merge what it holds
into the listing data.
"""
import asyncio
import logging
import time
from datetime import datetime
from typing import List, Optional, Sequence, Set

from browser.base import PageFactory, PageSession
from core.entities import DetailRecord, EnrichedItem, ExtractionSession, ListingRecord
from core.errors import BudgetExhausted, DetailFetchFailed, NavigationFailed, NavigationTimeout
from extraction.detail_extractor import DetailExtractor
from extraction.documents import parse_document
from extraction.timestamps import parse_timestamp
from processing.deduplicator import dedupe_records
from services.config import RunConfig
from services.retry import retry_async

logger = logging.getLogger(__name__)


def merge(item: EnrichedItem, detail: DetailRecord) -> EnrichedItem:
    """
    Fold a detail record into an item.

    A failed fetch changes nothing. Counters take the larger of the two
    values; an empty detail field never replaces a non-empty one. Author and
    timestamp from the detail page only fill gaps in the listing data.
    """
    if not detail.fetch_succeeded:
        return item

    score = item.score
    if detail.score_override is not None:
        score = max(score, detail.score_override)

    reply_count = item.reply_count
    if detail.reply_count_override is not None:
        reply_count = max(reply_count, detail.reply_count_override)

    approval = item.approval_ratio
    if detail.approval_ratio is not None:
        approval = detail.approval_ratio

    return item.with_updates(
        body_text=detail.body_text or item.body_text,
        tags=detail.tags or item.tags,
        replies=detail.replies or item.replies,
        score=score,
        reply_count=reply_count,
        author=item.author or detail.author,
        timestamp_raw=item.timestamp_raw or detail.timestamp_raw,
        approval_ratio=approval,
        fetch_succeeded=True,
    )


class DeepEnricher:
    """
    Fetches detail pages for up to enrichment_cap items.

    With concurrency 1 every fetch goes through the orchestrator's page, one
    after another. With a page factory and concurrency > 1, fetches run on
    isolated pages bounded by a semaphore; results are stored per index so
    output order always matches input order.
    """

    def __init__(
        self,
        profile,
        run_config: Optional[RunConfig] = None,
        *,
        session: Optional[ExtractionSession] = None,
        reference_time: Optional[datetime] = None,
    ):
        self.profile = profile
        self.config = run_config or RunConfig()
        self.session = session
        self.reference_time = reference_time or (session.started_at if session else None)
        self.extractor = DetailExtractor(
            profile,
            body_char_cap=self.config.body_char_cap,
            reply_char_cap=self.config.reply_char_cap,
        )

    def _with_published_at(self, item: EnrichedItem) -> EnrichedItem:
        if item.published_at is not None or not item.timestamp_raw:
            return item
        return item.with_updates(published_at=parse_timestamp(item.timestamp_raw, self.reference_time))

    def _record(self, scope: str, message: str, kind: str) -> None:
        if self.session is not None:
            self.session.record_error(scope, message, kind)

    async def fetch_detail(self, page: PageSession, url: str, timeout_s: Optional[float] = None) -> DetailRecord:
        """
        Navigate to url (with retries) and extract its detail record.
        Never raises: failures come back as DetailRecord.failed().
        """
        timeout_s = timeout_s or self.config.detail_timeout_s
        try:
            return await asyncio.wait_for(self._fetch_detail(page, url), timeout=timeout_s)
        except asyncio.TimeoutError:
            message = f"Detail fetch abandoned after {timeout_s:.1f}s"
        except (NavigationTimeout, NavigationFailed) as e:
            message = str(e)
        except Exception as e:
            message = f"Detail extraction failed: {e}"

        logger.warning(f"Failed to enrich {url}: {message}")
        self._record(url, message, DetailFetchFailed.__name__)
        return DetailRecord.failed(message)

    async def _fetch_detail(self, page: PageSession, url: str) -> DetailRecord:
        fetch_url = self.profile.detail_fetch_url(url)

        await retry_async(
            lambda: page.navigate(fetch_url, timeout_ms=self.config.navigation_timeout_ms),
            attempts=self.config.max_retries,
            base_delay_s=self.config.retry_base_delay_s,
            retry_on=(NavigationTimeout, NavigationFailed),
            description=f"Detail navigation to {fetch_url}",
        )

        wait_selector = self.profile.detail.wait_selector
        if wait_selector and not await page.wait_for_selector(wait_selector, self.config.wait_timeout_ms):
            logger.debug(f"Detail content selector not found on {fetch_url}, extracting anyway")

        scope = parse_document(await page.content(), self.profile.document_format)
        return self.extractor.extract(scope)

    def _remaining(self, deadline: Optional[float]) -> Optional[float]:
        if deadline is None:
            return None
        return deadline - time.monotonic()

    def _timeout_for(self, deadline: Optional[float]) -> float:
        remaining = self._remaining(deadline)
        if remaining is None:
            return self.config.detail_timeout_s
        return max(0.001, min(self.config.detail_timeout_s, remaining))

    async def enrich(
        self,
        records: Sequence[ListingRecord],
        page: PageSession,
        *,
        page_factory: Optional[PageFactory] = None,
        deadline: Optional[float] = None,
        seen: Optional[Set[str]] = None,
    ) -> List[EnrichedItem]:
        """
        De-duplicates records by canonical detail URL, then returns one
        EnrichedItem per remaining record in input order.

        seen carries canonical URLs across calls (categories of one session).
        deadline is a time.monotonic() value after which remaining fetches
        are abandoned.
        """
        records, removed = dedupe_records(records, seen)
        if removed:
            logger.info(f"Removed {removed} duplicate records")
            if self.session is not None:
                self.session.duplicates_removed += removed

        items = [self._with_published_at(EnrichedItem.from_listing(r)) for r in records]

        targets = [i for i, item in enumerate(items) if item.detail_url][: self.config.enrichment_cap]
        skipped = len([i for i in items if i.detail_url]) - len(targets)
        if skipped > 0:
            logger.info(f"Enrichment cap {self.config.enrichment_cap} reached, {skipped} items keep listing data")

        if not targets:
            return items

        details: List[Optional[DetailRecord]] = [None] * len(items)

        if page_factory is not None and self.config.concurrency > 1:
            await self._enrich_concurrently(items, targets, details, page_factory, deadline)
        else:
            await self._enrich_sequentially(items, targets, details, page, deadline)

        enriched = []
        for item, detail in zip(items, details):
            if detail is not None:
                item = self._with_published_at(merge(item, detail))
            enriched.append(item)

        ok = sum(1 for d in details if d is not None and d.fetch_succeeded)
        failed = len(targets) - ok
        if self.session is not None:
            self.session.enriched_ok += ok
            self.session.enriched_failed += failed
        logger.info(f"Enriched {ok}/{len(targets)} items ({failed} failed or abandoned)")

        return enriched

    def _budget_exhausted(self, deadline: Optional[float], pending: int) -> bool:
        remaining = self._remaining(deadline)
        if remaining is None or remaining > 0:
            return False
        message = f"Run time budget exhausted, {pending} detail fetches abandoned"
        logger.warning(message)
        self._record("enrichment", message, BudgetExhausted.__name__)
        return True

    async def _enrich_sequentially(self, items, targets, details, page, deadline) -> None:
        delay_s = self.config.request_delay_ms / 1000.0

        for position, index in enumerate(targets):
            if self._budget_exhausted(deadline, len(targets) - position):
                return
            if position > 0 and delay_s:
                await asyncio.sleep(delay_s)

            url = items[index].detail_url
            logger.debug(f"Enriching {position + 1}/{len(targets)}: {url}")
            details[index] = await self.fetch_detail(page, url, self._timeout_for(deadline))

    async def _enrich_concurrently(self, items, targets, details, page_factory, deadline) -> None:
        semaphore = asyncio.Semaphore(self.config.concurrency)
        delay_s = self.config.request_delay_ms / 1000.0
        abandoned = []

        async def worker(index: int) -> None:
            async with semaphore:
                remaining = self._remaining(deadline)
                if remaining is not None and remaining <= 0:
                    abandoned.append(index)
                    return
                url = items[index].detail_url
                try:
                    async with page_factory() as worker_page:
                        details[index] = await self.fetch_detail(worker_page, url, self._timeout_for(deadline))
                except Exception as e:
                    # Opening or closing the isolated page failed
                    logger.warning(f"Failed to enrich {url}: {e}")
                    self._record(url, str(e), DetailFetchFailed.__name__)
                    details[index] = DetailRecord.failed(str(e))
                if delay_s:
                    await asyncio.sleep(delay_s)

        await asyncio.gather(*(worker(i) for i in targets))

        if abandoned:
            self._budget_exhausted(deadline, len(abandoned))
