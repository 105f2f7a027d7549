"""
Session Orchestrator - drives every category through
loading → extraction → enrichment, then ranks the whole collection.
"""
import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Sequence, Set

from browser.base import PageFactory, PageSession
from core.entities import CategoryDescriptor, EnrichedItem, ExtractionSession
from core.errors import (
    BudgetExhausted,
    CategoryFatal,
    ConfigurationError,
    NavigationFailed,
    NavigationTimeout,
)
from core.scoring import rank
from core.sites import get_site
from extraction.documents import parse_document
from extraction.item_extractor import ItemExtractor
from processing.deduplicator import canonical_url, dedupe_records
from processing.enricher import DeepEnricher
from processing.loader import IncrementalLoader
from services.config import RunConfig, ScoringConfig
from services.retry import retry_async
from workflows.base import ExtractionWorkflow

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    EXTRACTING = "extracting"
    ENRICHING = "enriching"
    CATEGORY_FAILED = "category_failed"
    SCORING = "scoring"
    DONE = "done"


class SessionOrchestrator(ExtractionWorkflow):
    """
    Owns the page for the lifetime of a run. Category failures are recorded
    and the next category starts; only an empty category list ends the run
    early.
    """

    name = "extraction"

    def __init__(
        self,
        page: PageSession,
        *,
        run_config: Optional[RunConfig] = None,
        scoring_config: Optional[ScoringConfig] = None,
        page_factory: Optional[PageFactory] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.page = page
        self.run_config = run_config or RunConfig()
        self.scoring_config = scoring_config or ScoringConfig()
        self.page_factory = page_factory
        self.clock = clock
        self.state = SessionState.IDLE

    async def run(self, categories: Sequence[CategoryDescriptor]) -> ExtractionSession:
        config = self.run_config
        session = ExtractionSession(target_count=config.target_count, started_at=self.clock())
        self.state = SessionState.IDLE

        if not categories:
            error = ConfigurationError("No categories resolved from configuration")
            logger.error(str(error))
            session.record_error("config", str(error), error.kind)
            return self._finish(session)

        deadline = None
        if config.max_run_seconds is not None:
            deadline = time.monotonic() + config.max_run_seconds

        seen: Set[str] = set()
        collected: List[EnrichedItem] = []

        for descriptor in categories:
            budget_error = self._budget_error(deadline, len(collected))
            if budget_error:
                logger.warning(f"[{descriptor.key}] Skipped: {budget_error}")
                session.record_error(descriptor.key, budget_error, BudgetExhausted.__name__)
                continue

            session.categories_attempted += 1
            try:
                items = await self._run_category(descriptor, session, seen, deadline, len(collected))
                collected.extend(items)
                logger.info(f"[{descriptor.key}] Collected {len(items)} items")
            except Exception as e:
                self.state = SessionState.CATEGORY_FAILED
                session.categories_failed += 1
                kind = e.kind if isinstance(e, CategoryFatal) else type(e).__name__
                logger.error(f"[{descriptor.key}] Category failed: {e}", extra={"category": descriptor.key})
                session.record_error(descriptor.key, str(e), kind)

        self.state = SessionState.SCORING
        session.collected = rank(collected, self.clock(), self.scoring_config)

        return self._finish(session)

    def _budget_error(self, deadline: Optional[float], collected: int) -> Optional[str]:
        if deadline is not None and time.monotonic() >= deadline:
            return f"Run time budget of {self.run_config.max_run_seconds}s exhausted"
        limit = self.run_config.max_total_items
        if limit is not None and collected >= limit:
            return f"Item budget of {limit} exhausted"
        return None

    async def _run_category(
        self,
        descriptor: CategoryDescriptor,
        session: ExtractionSession,
        seen: Set[str],
        deadline: Optional[float],
        collected_so_far: int,
    ) -> List[EnrichedItem]:
        config = self.run_config
        profile = get_site(descriptor.site)
        key = descriptor.key

        # LOADING
        self.state = SessionState.LOADING
        logger.info(f"[{key}] Loading {descriptor.listing_url}")
        try:
            await retry_async(
                lambda: self.page.navigate(descriptor.listing_url, timeout_ms=config.navigation_timeout_ms),
                attempts=config.max_retries,
                base_delay_s=config.retry_base_delay_s,
                retry_on=(NavigationTimeout, NavigationFailed),
                description=f"[{key}] Listing navigation",
            )
        except (NavigationTimeout, NavigationFailed) as e:
            raise CategoryFatal(f"Listing page could not be loaded: {e}") from e

        wait_selector = profile.listing.wait_selector
        if wait_selector and not await self.page.wait_for_selector(wait_selector, config.wait_timeout_ms):
            logger.warning(f"[{key}] No item selector appeared within {config.wait_timeout_ms}ms, continuing")

        loader = IncrementalLoader(profile, settle_delay_s=config.settle_delay_ms / 1000.0)
        await loader.load_until(self.page, config.target_count, config.max_stagnant_rounds)

        # EXTRACTING
        self.state = SessionState.EXTRACTING
        scope = parse_document(await self.page.content(), profile.document_format)
        extractor = ItemExtractor(profile, preview_min_length=config.preview_min_length, session=session)
        records = extractor.extract_all(scope, key, self.page.url or descriptor.listing_url)
        session.listing_records += len(records)

        # De-duplicate before truncating; only kept URLs join seen.
        records, removed = dedupe_records(records, set(seen))
        if removed:
            logger.info(f"[{key}] Removed {removed} duplicate records")
            session.duplicates_removed += removed

        limit = config.target_count
        if config.max_total_items is not None:
            limit = min(limit, config.max_total_items - collected_so_far)
        records = records[:limit]
        seen.update(k for k in (canonical_url(r.detail_url) for r in records) if k)

        # ENRICHING
        self.state = SessionState.ENRICHING
        enricher = DeepEnricher(profile, config, session=session)
        return await enricher.enrich(
            records,
            self.page,
            page_factory=self.page_factory,
            deadline=deadline,
        )

    def _finish(self, session: ExtractionSession) -> ExtractionSession:
        session.ended_at = self.clock()
        self.state = SessionState.DONE
        logger.info(
            f"Session done: {len(session.collected)} items, "
            f"{session.categories_failed}/{session.categories_attempted} categories failed, "
            f"{session.duplicates_removed} duplicates removed, "
            f"{session.enriched_ok} enriched, {session.enriched_failed} enrichment failures, "
            f"{len(session.errors)} errors in {session.duration_seconds:.1f}s"
        )
        return session
