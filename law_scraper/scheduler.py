"""
Concurrent execution of one batch.

A fixed number of workers pull items from a shared cursor, so a slow
item only holds up the worker that drew it. Each worker keeps its own
counters; the scheduler merges them for checkpoints and the final
result. Items that already have a record file are skipped, which makes
re-running a batch a resume.
"""

import asyncio
import logging
import time
from typing import Callable, Iterable, Iterator, List, Optional, Tuple, Union

from law_scraper.config import ScraperConfig
from law_scraper.errors import ConfigurationError
from law_scraper.models import BatchRunResult, BatchStats, ItemOutcome, WorkItem, is_valid_input_law
from law_scraper.resilience import ProgressTracker, RateLimiter
from law_scraper.scraper import LawScraper
from law_scraper.utils import now_iso

logger = logging.getLogger(__name__)


class BatchScheduler:
    """Runs a batch of laws through a pool of scraping workers."""

    def __init__(
        self,
        config: Optional[ScraperConfig] = None,
        scraper: Optional[LawScraper] = None,
        progress: Optional[ProgressTracker] = None,
        limiter_factory: Optional[Callable[[], RateLimiter]] = None
    ):
        self.config = config or ScraperConfig()
        self.scraper = scraper or LawScraper(self.config)
        self.progress = progress or ProgressTracker(self.config.paths.progress_path)
        self.limiter_factory = limiter_factory or (lambda: RateLimiter(self.config.rate_limit))

    @staticmethod
    def prepare(laws: Iterable[Union[WorkItem, dict]]) -> Tuple[List[WorkItem], int]:
        """
        Validate raw worklist entries.

        Returns:
            Tuple of (valid work items, number of invalid entries dropped)
        """
        items = []
        invalid = 0
        for law in laws:
            if isinstance(law, WorkItem):
                items.append(law)
            elif is_valid_input_law(law):
                items.append(WorkItem.from_dict(law))
            else:
                invalid += 1
                logger.warning("Skipping invalid law entry: %r", law)
        return items, invalid

    async def run(
        self,
        laws: Iterable[Union[WorkItem, dict]],
        batch_id: str = 'batch',
        force: bool = False
    ) -> BatchRunResult:
        """
        Scrape every law in the batch.

        Args:
            laws: Work items or raw worklist entries
            batch_id: Identifier used in logs, checkpoints and failure records
            force: Scrape laws that already have a record file, overwriting it

        Returns:
            BatchRunResult with merged counters

        Raises:
            ConfigurationError: if no valid laws remain after validation
        """
        items, invalid = self.prepare(laws)
        if not items:
            raise ConfigurationError(f"No valid laws to scrape in {batch_id}")

        total = len(items)
        worker_count = max(1, min(self.config.concurrency, total))
        started_at = now_iso()
        start_time = time.monotonic()

        logger.info(
            "Starting %s: %d laws, %d workers%s",
            batch_id, total, worker_count, f" ({invalid} invalid entries dropped)" if invalid else ''
        )

        cursor = iter(enumerate(items, 1))
        worker_stats = [BatchStats() for _ in range(worker_count)]

        await asyncio.gather(*(
            self._worker(cursor, stats, batch_id, total, worker_stats, force)
            for stats in worker_stats
        ))

        stats = BatchStats.combine(worker_stats)
        self.progress.save(batch_id, stats, total, is_complete=True)

        result = BatchRunResult(
            batch_id=batch_id,
            total=total,
            successful=stats.successful,
            failed=stats.failed,
            skipped=stats.skipped,
            invalid=invalid,
            started_at=started_at,
            completed_at=now_iso(),
            duration_seconds=round(time.monotonic() - start_time, 2),
        )
        logger.info(
            "Finished %s: %d successful, %d failed, %d skipped",
            batch_id, result.successful, result.failed, result.skipped
        )
        return result

    async def _worker(
        self,
        cursor: Iterator[Tuple[int, WorkItem]],
        stats: BatchStats,
        batch_id: str,
        total: int,
        all_stats: List[BatchStats],
        force: bool = False
    ):
        limiter = self.limiter_factory()
        for index, item in cursor:
            outcome = await self._process(item, batch_id, index, total, force)
            stats.record(outcome)
            self._maybe_checkpoint(batch_id, total, all_stats)

            # No request was made for a skipped item, and nothing follows the last one
            if outcome is not ItemOutcome.SKIPPED and index < total:
                await limiter.wait()

    async def _process(
        self,
        item: WorkItem,
        batch_id: str,
        index: int,
        total: int,
        force: bool = False
    ) -> ItemOutcome:
        if not force and self.scraper.is_scraped(item):
            logger.info("[%d/%d] Skipping %s (already scraped)", index, total, item.law_id)
            return ItemOutcome.SKIPPED
        try:
            return await self.scraper.scrape_item(item, batch_id, index, total)
        except Exception as e:
            logger.error("[%d/%d] Unexpected error scraping %s: %s", index, total, item.law_id, e)
            return ItemOutcome.FAILED

    def _maybe_checkpoint(self, batch_id: str, total: int, all_stats: List[BatchStats]):
        every = self.config.checkpoint_every
        if every <= 0:
            return
        merged = BatchStats.combine(all_stats)
        if merged.handled % every == 0:
            self.progress.save(batch_id, merged, total)
