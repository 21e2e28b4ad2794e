"""
Browser sessions for rendering law pages.

``BrowserSession`` is the small capability surface the scraper relies on.
``SeleniumBaseSession`` implements it with a SeleniumBase UC-mode driver;
the blocking driver calls run in a worker thread so a session never
blocks the event loop.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait
from seleniumbase import Driver

from law_scraper.config import BrowserConfig
from law_scraper.errors import ExtractionError

logger = logging.getLogger(__name__)


class BrowserSession(ABC):
    """One isolated browser session driving a single page."""

    @abstractmethod
    async def goto(self, url: str, timeout: float):
        """Navigate to a URL, raising ExtractionError on timeout or failure."""

    @abstractmethod
    async def wait_for_any_selector(self, selectors: Sequence[str], timeout: float) -> Optional[str]:
        """Wait until any selector is visible; return it, or None on timeout."""

    @abstractmethod
    async def wait_for_network_idle(self, timeout: float) -> bool:
        """Wait for network activity to settle; False if the timeout elapsed."""

    @abstractmethod
    async def page_source(self) -> str:
        """Serialized markup of the rendered document."""

    @abstractmethod
    async def body_size(self) -> int:
        """Length of the document body's serialized markup."""

    @abstractmethod
    async def close(self):
        """Release the session."""


class SeleniumBaseSession(BrowserSession):
    """BrowserSession backed by a SeleniumBase driver."""

    _RESOURCE_COUNT_JS = (
        "return [document.readyState, "
        "performance.getEntriesByType('resource').length];"
    )
    _BODY_SIZE_JS = "return document.body ? document.body.innerHTML.length : 0;"

    def __init__(self, driver, config: BrowserConfig):
        self.driver = driver
        self.config = config

    @classmethod
    async def launch(cls, config: BrowserConfig) -> "SeleniumBaseSession":
        """Start a fresh browser for one scraping attempt."""
        logger.debug("Launching browser (headless=%s)", config.headless)
        driver = await asyncio.to_thread(Driver, uc=True, headless=config.headless)
        try:
            driver.set_page_load_timeout(config.page_timeout)
        except WebDriverException:
            await asyncio.to_thread(driver.quit)
            raise
        return cls(driver, config)

    async def goto(self, url: str, timeout: float):
        def _navigate():
            self.driver.set_page_load_timeout(timeout)
            self.driver.get(url)

        try:
            await asyncio.to_thread(_navigate)
        except TimeoutException as e:
            raise ExtractionError(f"Navigation timeout after {timeout:.0f}s: {url}") from e
        except WebDriverException as e:
            raise ExtractionError(f"Navigation failed for {url}: {e.msg or e}") from e

    async def wait_for_any_selector(self, selectors: Sequence[str], timeout: float) -> Optional[str]:
        def _wait():
            locator = (By.CSS_SELECTOR, ", ".join(selectors))
            try:
                WebDriverWait(self.driver, timeout).until(
                    EC.visibility_of_any_elements_located(locator)
                )
            except TimeoutException:
                return None
            for selector in selectors:
                if self.driver.find_elements(By.CSS_SELECTOR, selector):
                    return selector
            return None

        return await asyncio.to_thread(_wait)

    async def wait_for_network_idle(self, timeout: float) -> bool:
        def _wait():
            deadline = time.monotonic() + timeout
            last_count = -1
            quiet_since = None
            while time.monotonic() < deadline:
                state, count = self.driver.execute_script(self._RESOURCE_COUNT_JS)
                now = time.monotonic()
                if state == 'complete' and count == last_count:
                    if quiet_since is None:
                        quiet_since = now
                    elif now - quiet_since >= 0.5:
                        return True
                else:
                    quiet_since = None
                last_count = count
                time.sleep(0.1)
            return False

        return await asyncio.to_thread(_wait)

    async def page_source(self) -> str:
        return await asyncio.to_thread(lambda: self.driver.page_source)

    async def body_size(self) -> int:
        size = await asyncio.to_thread(self.driver.execute_script, self._BODY_SIZE_JS)
        return int(size or 0)

    async def close(self):
        await asyncio.to_thread(self.driver.quit)


async def launch_session(config: BrowserConfig) -> BrowserSession:
    """Default session factory used by the scraper."""
    return await SeleniumBaseSession.launch(config)


async def wait_for_content_stability(session: BrowserSession, config: BrowserConfig) -> bool:
    """
    Wait until the single-page app has finished rendering the law.

    Three stages: any known content selector becomes visible, the network
    goes idle, and the body size stays unchanged across consecutive polls.
    Timeouts in the first two stages are tolerated; the polling stage gives
    up after ``stability_timeout`` seconds so pages with endless background
    activity still make progress.

    Returns:
        True if the body size settled, False if the fallback timeout hit
    """
    selector = await session.wait_for_any_selector(
        config.content_selectors, config.selector_timeout
    )
    if selector is None:
        logger.debug("No content selector appeared within %.0fs", config.selector_timeout)

    if not await session.wait_for_network_idle(config.network_idle_timeout):
        logger.debug("Network still busy after %.0fs, continuing", config.network_idle_timeout)

    loop = asyncio.get_running_loop()
    deadline = loop.time() + config.stability_timeout

    await asyncio.sleep(config.stability_initial_delay)
    last_size = await session.body_size()
    stable_count = 0

    while loop.time() < deadline:
        await asyncio.sleep(config.stability_poll_interval)
        size = await session.body_size()
        if size == last_size:
            stable_count += 1
            if stable_count >= config.stability_checks:
                return True
        else:
            stable_count = 0
            last_size = size

    logger.debug("Page never settled, proceeding after %.0fs", config.stability_timeout)
    return False
