"""
Tests for content extraction from rendered law pages.
"""

from bs4 import BeautifulSoup

from conftest import LAW_TEXT, law_page
from law_scraper.config import TextConfig
from law_scraper.extractor import ContentExtractor, Step, first_success, is_navigation_block


class TestFirstSuccess:
    """Test the fallback cascade combinator."""

    def test_returns_first_accepted_value(self):
        steps = [
            Step('empty', lambda: '', bool),
            Step('good', lambda: 'value', bool),
            Step('later', lambda: 'other', bool),
        ]
        assert first_success(steps) == ('good', 'value')

    def test_failing_step_is_skipped(self):
        def boom():
            raise AttributeError("no element")

        steps = [Step('broken', boom, bool), Step('fallback', lambda: 'ok', bool)]
        assert first_success(steps) == ('fallback', 'ok')

    def test_default_when_nothing_matches(self):
        assert first_success([Step('empty', lambda: '', bool)], default='') == (None, '')


class TestContentExtractor:
    """Test title, metadata and body text extraction."""

    def setup_method(self):
        self.extractor = ContentExtractor(TextConfig(min_text_length=50))

    def test_extracts_full_law_page(self):
        extraction = self.extractor.extract(law_page())

        assert extraction.actual_title == "Закон за изменение на Закона за ДДС"
        assert extraction.metadata == ("Обнародван в ДВ бр. 20 от 14.03.2025", "Приет на 12.03.2025")
        assert extraction.strategy == 'act_body'
        assert extraction.full_text == LAW_TEXT
        assert 'window.app' not in extraction.full_text

    def test_title_falls_back_to_generic_heading(self):
        soup = BeautifulSoup("<h1>Кратко</h1><div class='title'>Закон за държавния бюджет</div>", 'html.parser')
        assert self.extractor.extract_title(soup) == "Закон за държавния бюджет"

    def test_missing_title_is_empty(self):
        soup = BeautifulSoup("<p>нищо</p>", 'html.parser')
        assert self.extractor.extract_title(soup) == ''

    def test_alternate_content_selector(self):
        body = "Чл. 1. Този закон урежда обществените отношения, свързани с водите и тяхното опазване."
        html = f"<html><body><div class='content'><div class='law-text'>{body}</div></div></body></html>"

        strategy, text = self.extractor.extract_full_text(BeautifulSoup(html, 'html.parser'))

        assert strategy == 'content:.content .law-text'
        assert text == body

    def test_short_act_body_falls_through(self):
        body = "Чл. 1. Този закон урежда обществените отношения, свързани с горите и тяхното опазване."
        html = f"<html><body><div class='act-body'>кратко</div><div class='law-content'>{body}</div></body></html>"

        strategy, text = self.extractor.extract_full_text(BeautifulSoup(html, 'html.parser'))

        assert strategy == 'content:.law-content'
        assert text == body

    def test_largest_block_skips_navigation(self):
        nav = "Законодателство " + "меню " * 40
        law = "Чл. 1. Този закон урежда правилата за движение по пътищата и контрола върху тях."
        html = f"<html><body><div>{nav}</div><div>{law}</div></body></html>"

        strategy, text = self.extractor.extract_full_text(BeautifulSoup(html, 'html.parser'))

        assert strategy == 'largest_block'
        assert text == law

    def test_no_content_returns_empty_text(self):
        extraction = self.extractor.extract("<html><body><div>кратко</div></body></html>")

        assert extraction.full_text == ''
        assert extraction.strategy is None
        assert extraction.metadata == ()

    def test_is_navigation_block(self):
        assert is_navigation_block("  Законопроекти и решения")
        assert not is_navigation_block("Чл. 1. Текст")
