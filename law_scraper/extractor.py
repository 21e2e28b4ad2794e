"""
Content extraction from rendered law pages.

The site renders each law inside a single-page app whose markup is not
consistent across documents, so every field is read through an ordered
cascade of strategies. ``first_success`` runs such a cascade: each step
is isolated, a failing step is logged and the next one is tried.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, Sequence, Tuple, TypeVar

from bs4 import BeautifulSoup

from law_scraper.config import TextConfig
from law_scraper.models import Extraction
from law_scraper.normalizer import strip_markup

logger = logging.getLogger(__name__)

T = TypeVar('T')

TITLE_SELECTORS: Tuple[Tuple[str, int], ...] = (
    # (selector, minimum length); generic headings must look like a real title
    ('h1.p-container-title', 0),
    ('h1', 10),
    ('.title', 10),
)
METADATA_SELECTOR = '.law-details'
ACT_BODY_SELECTOR = '.act-body'
CONTENT_SELECTORS: Tuple[str, ...] = (
    '.content .law',
    '.content .law-text',
    '.content .law-content',
    '.law-content',
    '.act-content',
)
BLOCK_SELECTOR = 'body div'

# Site menu entries; a block starting with one of these is navigation chrome
NAVIGATION_PHRASES: Tuple[str, ...] = (
    'Законодателство',
    'Законопроекти',
    'Проекти на решения',
    'Парламентарен контрол',
    'Европейски съюз',
    'Международна дейност',
    'Регистри',
    'Публични процедури',
    'Контакти',
    'НАРОДНО СЪБРАНИЕ НА РЕПУБЛИКА БЪЛГАРИЯ',
)


@dataclass(frozen=True)
class Step(Generic[T]):
    """One strategy in a fallback cascade."""
    name: str
    extract: Callable[[], T]
    accept: Callable[[T], bool]


def first_success(steps: Sequence[Step], default=None):
    """
    Evaluate steps in order and return the first accepted value.

    Returns:
        Tuple of (step name, value), or (None, default) if no step succeeded
    """
    for step in steps:
        try:
            value = step.extract()
        except Exception as e:
            logger.debug("Extraction step %s failed: %s", step.name, e)
            continue
        if step.accept(value):
            return step.name, value
    return None, default


def element_text(element) -> str:
    """Visible text of an element, one line per text node."""
    return element.get_text('\n', strip=True)


def is_navigation_block(text: str) -> bool:
    lowered = text.lstrip().lower()
    return any(lowered.startswith(phrase.lower()) for phrase in NAVIGATION_PHRASES)


class ContentExtractor:
    """Reads the title, metadata and body text out of a law page."""

    def __init__(self, config: Optional[TextConfig] = None):
        self.config = config or TextConfig()

    def extract(self, html: str) -> Extraction:
        """
        Extract content from the page's serialized markup.

        Never raises for missing content: absent fields come back empty and
        the validator decides whether the result is usable.
        """
        soup = BeautifulSoup(html or '', 'html.parser')
        strategy, full_text = self.extract_full_text(soup)
        return Extraction(
            actual_title=self.extract_title(soup),
            metadata=tuple(self.extract_metadata(soup)),
            full_text=full_text,
            strategy=strategy,
        )

    def extract_title(self, soup: BeautifulSoup) -> str:
        steps = [
            Step(
                name=selector,
                extract=lambda selector=selector: element_text(soup.select_one(selector)),
                accept=lambda text, min_length=min_length: bool(text) and len(text) > min_length,
            )
            for selector, min_length in TITLE_SELECTORS
        ]
        _, title = first_success(steps, default='')
        return title

    def extract_metadata(self, soup: BeautifulSoup) -> List[str]:
        metadata = []
        try:
            for element in soup.select(METADATA_SELECTOR):
                text = element_text(element)
                if text:
                    metadata.append(text)
        except Exception as e:
            logger.debug("Metadata extraction failed: %s", e)
        return metadata

    def extract_full_text(self, soup: BeautifulSoup) -> Tuple[Optional[str], str]:
        """
        Run the body-text cascade.

        Returns:
            Tuple of (strategy name, text); (None, '') when nothing matched
        """
        min_length = self.config.min_text_length

        def long_enough(text: str) -> bool:
            return bool(text) and len(text) >= min_length

        steps: List[Step] = [
            Step(
                name='act_body',
                extract=lambda: strip_markup(soup.select_one(ACT_BODY_SELECTOR).decode_contents()),
                accept=long_enough,
            )
        ]
        steps.extend(
            Step(
                name=f'content:{selector}',
                extract=lambda selector=selector: element_text(soup.select_one(selector)),
                accept=long_enough,
            )
            for selector in CONTENT_SELECTORS
        )
        steps.append(Step(name='largest_block', extract=lambda: self._largest_block(soup), accept=long_enough))

        return first_success(steps, default='')

    def _largest_block(self, soup: BeautifulSoup) -> str:
        texts = [element_text(div) for div in soup.select(BLOCK_SELECTOR)]
        texts = [text for text in texts if len(text) > self.config.min_text_length]
        if not texts:
            return ''
        content = [text for text in texts if not is_navigation_block(text)]
        return max(content or texts, key=len)
