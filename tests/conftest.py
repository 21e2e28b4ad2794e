"""
Shared fixtures: sample law texts, worklists and an in-memory browser session.
"""

import asyncio
from typing import Dict, List, Optional, Sequence

import pytest

from law_scraper.browser import BrowserSession
from law_scraper.config import BrowserConfig, PathsConfig, RateLimitConfig, RetryConfig, ScraperConfig
from law_scraper.errors import ExtractionError
from law_scraper.models import WorkItem

LAW_TEXT = (
    "ЗАКОН ЗА ИЗМЕНЕНИЕ И ДОПЪЛНЕНИЕ НА ЗАКОНА ЗА ДАНЪК ВЪРХУ ДОБАВЕНАТА СТОЙНОСТ\n\n"
    "§ 1. В чл. 12, ал. 1 думите „по смисъла на този закон“ се заличават, "
    "а след думата „доставка“ се добавя „на стоки“.\n\n"
    "§ 2. В чл. 25 се създава нова ал. 7 със следното съдържание: „Данъчното събитие "
    "възниква на датата на получаване на плащането, когато то е извършено преди датата на доставката.“\n\n"
    "§ 3. Член 30 се изменя така: „Член 30. Освободени доставки са доставките, посочени "
    "в тази глава, когато отговарят на изискванията на закона.“\n\n"
    "Преходни и заключителни разпоредби\n\n"
    "§ 4. Законът влиза в сила от деня на обнародването му в „Държавен вестник“.\n\n"
    "Законът е приет от 51-вото Народно събрание на 12 март 2025 г. и е подпечатан "
    "с официалния печат на Народното събрание.\n\n"
    "Председател на Народното събрание: Наталия Киселова"
)


def law_page(body: str = LAW_TEXT, title: str = "Закон за изменение на Закона за ДДС") -> str:
    """Rendered law page the way the single-page app serves it."""
    paragraphs = ''.join(f"<p>{p}</p>" for p in body.split('\n\n'))
    return (
        "<html><head><title>Народно събрание</title>"
        "<script>window.app = {};</script><style>.x { color: red; }</style></head>"
        "<body>"
        "<div class=\"menu\">Законодателство Законопроекти Проекти на решения Парламентарен контрол</div>"
        f"<h1 class=\"p-container-title\">{title}</h1>"
        "<div class=\"law-details\">Обнародван в ДВ бр. 20 от 14.03.2025</div>"
        "<div class=\"law-details\">Приет на 12.03.2025</div>"
        f"<div class=\"act-body\">{paragraphs}</div>"
        "<footer>© Народно събрание</footer>"
        "</body></html>"
    )


def make_item(law_id: int, title: Optional[str] = None, date: str = '') -> WorkItem:
    return WorkItem(
        title=title or f"Закон за изменение {law_id}",
        date=date,
        link=f"https://www.parliament.bg/bg/laws/ID/{law_id}",
    )


def make_law(law_id: int, title: Optional[str] = None, date: str = '') -> dict:
    return make_item(law_id, title, date).to_dict()


class FakeSession(BrowserSession):
    """
    In-memory browser session.

    ``pages`` maps URLs to page markup; ``delays`` maps URLs to seconds
    spent in ``goto``. A URL listed in ``failures`` raises on navigation
    that many times before it starts loading.
    """

    def __init__(self, browser, pages: Dict[str, str], delays: Dict[str, float],
                 failures: Dict[str, int], close_error: bool = False):
        self.browser = browser
        self.pages = pages
        self.delays = delays
        self.failures = failures
        self.close_error = close_error
        self.url: Optional[str] = None
        self.closed = False

    async def goto(self, url: str, timeout: float):
        self.browser.visits.append(url)
        delay = self.delays.get(url, 0)
        if delay:
            await asyncio.sleep(delay)
        if self.failures.get(url, 0) > 0:
            self.failures[url] -= 1
            raise ExtractionError(f"Navigation to {url} failed")
        self.url = url

    async def wait_for_any_selector(self, selectors: Sequence[str], timeout: float) -> Optional[str]:
        return selectors[0] if self.url in self.pages else None

    async def wait_for_network_idle(self, timeout: float) -> bool:
        return True

    async def page_source(self) -> str:
        return self.pages.get(self.url, "<html><body></body></html>")

    async def body_size(self) -> int:
        return len(await self.page_source())

    async def close(self):
        self.closed = True
        self.browser.closed += 1
        if self.close_error:
            raise RuntimeError("browser already gone")


class FakeBrowser:
    """Session factory producing FakeSessions and recording what they did."""

    def __init__(self, pages: Optional[Dict[str, str]] = None, delays: Optional[Dict[str, float]] = None,
                 failures: Optional[Dict[str, int]] = None, close_error: bool = False):
        self.pages = pages or {}
        self.delays = delays or {}
        self.failures = failures or {}
        self.close_error = close_error
        self.sessions: List[FakeSession] = []
        self.visits: List[str] = []
        self.closed = 0

    async def __call__(self, config: BrowserConfig) -> FakeSession:
        session = FakeSession(self, self.pages, self.delays, self.failures, self.close_error)
        self.sessions.append(session)
        return session


async def no_sleep(delay: float):
    return None


@pytest.fixture
def fast_config(tmp_path) -> ScraperConfig:
    """Config with all waits shortened and every file under tmp_path."""
    return ScraperConfig(
        concurrency=2,
        browser=BrowserConfig(
            stability_initial_delay=0,
            stability_poll_interval=0,
            stability_checks=1,
            stability_timeout=1.0,
        ),
        retry=RetryConfig(max_retries=3, base_delay=0, max_delay=0),
        rate_limit=RateLimitConfig(request_delay=0),
        paths=PathsConfig(
            input_path=tmp_path / 'all_laws.json',
            output_dir=tmp_path / 'scraped_laws',
            batch_dir=tmp_path / 'batches',
            manifest_path=tmp_path / 'batch-config.json',
            failed_log_path=tmp_path / 'failed_laws.json',
            progress_path=tmp_path / 'scraping_progress.json',
            aggregated_path=tmp_path / 'aggregated_results.json',
            validation_report_path=tmp_path / 'text_validation_report.json',
        ),
    )
