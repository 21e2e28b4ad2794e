"""
Per-item scraping with retries.

Every attempt runs in a fresh browser session: navigate, wait for the
content to settle, extract, normalize and validate. The session is torn
down after each attempt whatever happened. A valid record is written to
``<output_dir>/<lawId>.json``; an item that exhausts its retries goes to
the failure log instead.
"""

import asyncio
import dataclasses
import json
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional

from law_scraper.browser import BrowserSession, launch_session, wait_for_content_stability
from law_scraper.config import BrowserConfig, ScraperConfig
from law_scraper.errors import ContentValidationError, ExtractionError
from law_scraper.extractor import ContentExtractor
from law_scraper.models import ExtractionRecord, FailureRecord, ItemOutcome, WorkItem
from law_scraper.normalizer import normalize_law_text, was_truncated
from law_scraper.resilience import FailureLog, RetryHandler
from law_scraper.validator import TextValidator

logger = logging.getLogger(__name__)

SessionFactory = Callable[[BrowserConfig], Awaitable[BrowserSession]]


class LawScraper:
    """Scrapes single laws into record files."""

    def __init__(
        self,
        config: Optional[ScraperConfig] = None,
        session_factory: SessionFactory = launch_session,
        extractor: Optional[ContentExtractor] = None,
        validator: Optional[TextValidator] = None,
        failure_log: Optional[FailureLog] = None,
        retry_handler: Optional[RetryHandler] = None
    ):
        """
        Initialize the scraper.

        Args:
            config: ScraperConfig instance, uses defaults if None
            session_factory: Coroutine returning a new browser session
            extractor: Content extractor, built from the text config if None
            validator: Text validator
            failure_log: Log for items that fail every attempt
            retry_handler: Retry policy, built from the retry config if None
        """
        self.config = config or ScraperConfig()
        self.session_factory = session_factory
        self.extractor = extractor or ContentExtractor(self.config.text)
        self.validator = validator or TextValidator()
        self.failure_log = failure_log or FailureLog(self.config.paths.failed_log_path)
        self.retry_handler = retry_handler or RetryHandler(self.config.retry, self.failure_log)

    def output_path(self, item: WorkItem) -> Path:
        return Path(self.config.paths.output_dir) / f"{item.law_id}.json"

    def is_scraped(self, item: WorkItem) -> bool:
        """Whether a record file for the item already exists."""
        return self.output_path(item).exists()

    async def scrape_item(
        self,
        item: WorkItem,
        batch_id: str = '',
        index: int = 0,
        total: int = 0
    ) -> ItemOutcome:
        """
        Scrape one law, retrying failed attempts with backoff.

        Args:
            item: Law to scrape
            batch_id: Batch the item belongs to, used in failure records
            index: Position of the item in its batch (for logging)
            total: Size of the batch (for logging)

        Returns:
            ItemOutcome.SUCCESS if a record was written, else ItemOutcome.FAILED
        """
        label = f"{index}/{total}" if total else (item.law_id or item.link)
        logger.info("[%s] Scraping law %s: %s", label, item.law_id, item.title[:60])

        outcome = await self.retry_handler.execute_with_retry(self._attempt, item, label=label)

        if outcome.success:
            record = outcome.result
            try:
                await asyncio.to_thread(self.save_record, record)
            except OSError as e:
                logger.error("[%s] Could not write record for %s: %s", label, item.law_id, e)
                await self.retry_handler.record_permanent_failure(
                    FailureRecord.create(item, f"Write failed: {e}", outcome.attempts, batch_id)
                )
                return ItemOutcome.FAILED
            logger.info("[%s] Saved %s (%d chars)", label, item.law_id, record.text_length)
            return ItemOutcome.SUCCESS

        logger.warning(
            "[%s] Failed to scrape %s after %d attempts: %s",
            label, item.law_id, outcome.attempts, outcome.last_error
        )
        await self.retry_handler.record_permanent_failure(
            FailureRecord.create(item, outcome.last_error or 'Unknown error', outcome.attempts, batch_id)
        )
        return ItemOutcome.FAILED

    async def _attempt(self, attempt: int, item: WorkItem) -> ExtractionRecord:
        browser_config = self.config.browser
        session = None
        try:
            session = await self.session_factory(browser_config)
            await session.goto(item.link, browser_config.navigation_timeout)
            await wait_for_content_stability(session, browser_config)

            html = await session.page_source()
            extraction = await asyncio.to_thread(self.extractor.extract, html)
            logger.debug("Extracted %s with strategy %s", item.law_id, extraction.strategy)

            full_text = normalize_law_text(extraction.full_text, self.config.text.max_text_length)
            record = ExtractionRecord.create(
                item,
                dataclasses.replace(extraction, full_text=full_text),
                retry_count=attempt - 1,
                min_text_length=self.config.text.min_text_length,
            )

            if not record.is_complete:
                raise ExtractionError(f"Extracted text too short ({record.text_length} chars)")

            validation = self.validator.validate(
                record.full_text, size_truncated=was_truncated(record.full_text, self.config.text.max_text_length)
            )
            if not validation.is_valid:
                issues = ', '.join(issue.value for issue in validation.issues)
                raise ContentValidationError(f"Text failed validation: {issues}", validation)

            return record
        finally:
            if session is not None:
                await self._teardown(session)

    async def _teardown(self, session: BrowserSession):
        try:
            await session.close()
        except Exception as e:
            logger.warning("Error closing browser session: %s", e)

    def save_record(self, record: ExtractionRecord) -> Path:
        """Atomically write a record to its ``<lawId>.json`` file."""
        path = Path(self.config.paths.output_dir) / f"{record.law_id}.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_file = path.with_name(f"{path.stem}.tmp")
        with open(temp_file, 'w', encoding='utf-8') as f:
            json.dump(record.to_dict(), f, indent=2, ensure_ascii=False)
        temp_file.replace(path)
        return path
