"""
Tests for the content-stability wait and the SeleniumBase session adapter.
"""

import asyncio
from unittest.mock import Mock

import pytest
from selenium.common.exceptions import TimeoutException, WebDriverException

from law_scraper.browser import BrowserSession, SeleniumBaseSession, wait_for_content_stability
from law_scraper.config import BrowserConfig
from law_scraper.errors import ExtractionError


class SizeSession(BrowserSession):
    """Session whose body size follows a scripted sequence."""

    def __init__(self, sizes, selector=None, idle=True):
        self.sizes = list(sizes)
        self.selector = selector
        self.idle = idle
        self.polls = 0

    async def goto(self, url, timeout):
        pass

    async def wait_for_any_selector(self, selectors, timeout):
        return self.selector

    async def wait_for_network_idle(self, timeout):
        return self.idle

    async def page_source(self):
        return ''

    async def body_size(self):
        self.polls += 1
        if len(self.sizes) > 1:
            return self.sizes.pop(0)
        return self.sizes[0]

    async def close(self):
        pass


def quick_config(**overrides) -> BrowserConfig:
    settings = dict(
        stability_initial_delay=0,
        stability_poll_interval=0.001,
        stability_checks=3,
        stability_timeout=0.5,
    )
    settings.update(overrides)
    return BrowserConfig(**settings)


class TestContentStability:
    """Test the three-stage readiness wait."""

    def test_settles_after_consecutive_equal_sizes(self):
        session = SizeSession([100, 250, 400, 400])

        settled = asyncio.run(wait_for_content_stability(session, quick_config()))

        assert settled is True
        # initial read, two growing polls, then three equal polls
        assert session.polls == 6

    def test_growth_resets_the_count(self):
        session = SizeSession([100, 100, 100, 200, 200, 200, 200])

        assert asyncio.run(wait_for_content_stability(session, quick_config()))
        assert session.polls == 7

    def test_never_settling_page_times_out(self):
        class GrowingSession(SizeSession):
            async def body_size(self):
                self.polls += 1
                return self.polls

        session = GrowingSession([0])

        settled = asyncio.run(wait_for_content_stability(session, quick_config(stability_timeout=0.05)))

        assert settled is False
        assert session.polls > 1

    def test_selector_and_network_timeouts_are_tolerated(self):
        session = SizeSession([500], selector=None, idle=False)
        assert asyncio.run(wait_for_content_stability(session, quick_config()))


class TestSeleniumBaseSession:
    """Test the driver adapter with a mocked driver."""

    def test_navigation_timeout_becomes_extraction_error(self):
        driver = Mock()
        driver.get.side_effect = TimeoutException("page load")
        session = SeleniumBaseSession(driver, BrowserConfig())

        with pytest.raises(ExtractionError, match='Navigation timeout'):
            asyncio.run(session.goto('https://www.parliament.bg/bg/laws/ID/1', 30))

        driver.set_page_load_timeout.assert_called_with(30)

    def test_driver_failure_becomes_extraction_error(self):
        driver = Mock()
        driver.get.side_effect = WebDriverException("chrome not reachable")
        session = SeleniumBaseSession(driver, BrowserConfig())

        with pytest.raises(ExtractionError, match='chrome not reachable'):
            asyncio.run(session.goto('https://www.parliament.bg/bg/laws/ID/1', 30))

    def test_body_size_and_close(self):
        driver = Mock()
        driver.execute_script.return_value = 1234
        session = SeleniumBaseSession(driver, BrowserConfig())

        assert asyncio.run(session.body_size()) == 1234
        asyncio.run(session.close())
        driver.quit.assert_called_once()
