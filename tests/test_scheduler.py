"""
Tests for concurrent batch execution.
"""

import asyncio
import json

import pytest

from conftest import LAW_TEXT, FakeBrowser, law_page, make_item, make_law
from law_scraper.config import RateLimitConfig
from law_scraper.errors import ConfigurationError
from law_scraper.models import ItemOutcome
from law_scraper.resilience import ProgressTracker, RateLimiter
from law_scraper.scheduler import BatchScheduler
from law_scraper.scraper import LawScraper


class TimedScraper:
    """Scraper stand-in with per-item latency and no browser."""

    def __init__(self, latencies=None, errors=(), done=()):
        self.latencies = latencies or {}
        self.errors = set(errors)
        self.done = set(done)
        self.started = []
        self.completed = []

    def is_scraped(self, item):
        return item.law_id in self.done

    async def scrape_item(self, item, batch_id='', index=0, total=0):
        self.started.append(item.law_id)
        await asyncio.sleep(self.latencies.get(item.law_id, 0.01))
        if item.law_id in self.errors:
            raise RuntimeError("browser crashed")
        self.completed.append(item.law_id)
        return ItemOutcome.SUCCESS


class RecordingTracker(ProgressTracker):
    def __init__(self, path):
        super().__init__(path)
        self.saves = []

    def save(self, batch_id, stats, total, is_complete=False):
        self.saves.append((stats.handled, is_complete))
        return super().save(batch_id, stats, total, is_complete)


class TestBatchScheduler:
    """Test work distribution, resume and accounting."""

    def test_resume_is_idempotent(self, fast_config):
        items = [make_item(160000 + n) for n in range(4)]
        browser = FakeBrowser(pages={item.link: law_page() for item in items})
        scheduler = BatchScheduler(fast_config, scraper=LawScraper(fast_config, session_factory=browser))

        first = asyncio.run(scheduler.run(items, 'batch_000'))
        visits_after_first = len(browser.visits)
        second = asyncio.run(scheduler.run(items, 'batch_000'))

        assert first.successful == 4
        assert first.skipped == 0
        assert second.successful == 0
        assert second.skipped == 4
        assert len(browser.visits) == visits_after_first

    def test_force_overwrites_existing_record(self, fast_config):
        item = make_item(160100)
        output = fast_config.paths.output_dir
        output.mkdir()
        (output / '160100.json').write_text(
            json.dumps({'lawId': '160100', 'fullText': 'кратко', 'textLength': 6}, ensure_ascii=False),
            encoding='utf-8',
        )
        browser = FakeBrowser(pages={item.link: law_page()})
        scheduler = BatchScheduler(fast_config, scraper=LawScraper(fast_config, session_factory=browser))

        skipped = asyncio.run(scheduler.run([item], 'batch_000'))
        forced = asyncio.run(scheduler.run([item], 'rescrape', force=True))

        assert skipped.skipped == 1
        assert forced.successful == 1
        assert forced.skipped == 0
        assert browser.visits == [item.link]
        record = json.loads((output / '160100.json').read_text(encoding='utf-8'))
        assert record['fullText'] == LAW_TEXT
        assert record['textLength'] == len(LAW_TEXT)

    def test_slow_item_does_not_block_other_worker(self, fast_config):
        fast_config.concurrency = 2
        items = [make_item(n) for n in range(1, 11)]
        scraper = TimedScraper(latencies={'3': 0.5})
        scheduler = BatchScheduler(fast_config, scraper=scraper)

        result = asyncio.run(scheduler.run(items, 'batch_000'))

        assert result.successful == 10
        assert scraper.completed[-1] == '3'
        assert scraper.completed[:9] == ['1', '2', '4', '5', '6', '7', '8', '9', '10']

    def test_skipped_and_invalid_are_counted(self, fast_config):
        laws = [make_law(1), make_law(2), {'title': 'без линк', 'date': ''}, make_law(3)]
        scraper = TimedScraper(done={'2'})
        scheduler = BatchScheduler(fast_config, scraper=scraper)

        result = asyncio.run(scheduler.run(laws, 'batch_001'))

        assert result.total == 3
        assert result.invalid == 1
        assert result.successful == 2
        assert result.skipped == 1
        assert result.failed == 0
        assert '2' not in scraper.started

    def test_item_exception_does_not_abort_batch(self, fast_config):
        items = [make_item(n) for n in range(1, 6)]
        scraper = TimedScraper(errors={'2'})
        scheduler = BatchScheduler(fast_config, scraper=scraper)

        result = asyncio.run(scheduler.run(items))

        assert result.failed == 1
        assert result.successful == 4

    def test_empty_batch_is_a_configuration_error(self, fast_config):
        scheduler = BatchScheduler(fast_config, scraper=TimedScraper())

        with pytest.raises(ConfigurationError):
            asyncio.run(scheduler.run([{'title': 'x'}]))

    def test_checkpoints_every_ten_items(self, fast_config):
        fast_config.concurrency = 3
        tracker = RecordingTracker(fast_config.paths.progress_path)
        items = [make_item(n) for n in range(1, 13)]
        scheduler = BatchScheduler(fast_config, scraper=TimedScraper(), progress=tracker)

        asyncio.run(scheduler.run(items, 'batch_002'))

        assert tracker.saves == [(10, False), (12, True)]
        checkpoint = json.loads(fast_config.paths.progress_path.read_text(encoding='utf-8'))
        assert checkpoint['batchId'] == 'batch_002'
        assert checkpoint['isComplete'] is True
        assert checkpoint['processed'] == 12

    def test_delay_between_items_but_not_after_last(self, fast_config):
        fast_config.concurrency = 1
        delays = []

        async def record(delay):
            delays.append(delay)

        scheduler = BatchScheduler(
            fast_config,
            scraper=TimedScraper(done={'2'}),
            limiter_factory=lambda: RateLimiter(RateLimitConfig(request_delay=2.0), sleep=record),
        )

        asyncio.run(scheduler.run([make_item(n) for n in range(1, 5)]))

        # Items 1 and 3 are followed by a delay; 2 was skipped and 4 is last
        assert delays == [2.0, 2.0]
