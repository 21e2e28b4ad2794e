"""
Text normalization for extracted law content.

Turns raw page text into the statutory text: markup is stripped, the
text is trimmed to the law's opening heading and closing signature line,
and oversized texts are truncated with an explicit marker.
"""

import logging
import re
from typing import Optional, Pattern, Sequence, Tuple

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "[TRUNCATED]"
DEFAULT_MAX_TEXT_LENGTH = 1_000_000

_SCRIPT_RE = re.compile(r'<script[^>]*>[\s\S]*?</script>', re.IGNORECASE)
_STYLE_RE = re.compile(r'<style[^>]*>[\s\S]*?</style>', re.IGNORECASE)
_TAG_RE = re.compile(r'<[^>]+>')
_UNKNOWN_ENTITY_RE = re.compile(r'&[a-zA-Z0-9#]+;')
_INLINE_SPACE_RE = re.compile(r'[ \t\r\f\v]+')
_LINE_EDGE_SPACE_RE = re.compile(r' *\n *')
_BLANK_LINES_RE = re.compile(r'\n{3,}')

HTML_ENTITIES: Tuple[Tuple[str, str], ...] = (
    ('&nbsp;', ' '),
    ('&quot;', '"'),
    ('&amp;', '&'),
    ('&lt;', '<'),
    ('&gt;', '>'),
)

# Opening of a law document: the promulgation decree or the law heading.
# Each pattern captures the marker itself in the ``marker`` group.
START_PATTERNS: Tuple[Tuple[str, Pattern], ...] = (
    ('decree', re.compile(r'(?:^|\n)[ \t]*(?P<marker>УКАЗ\s*№\s*\d+)', re.IGNORECASE)),
    ('law_heading', re.compile(r'(?:^|\n)[ \t]*(?P<marker>ЗАКОН\s+(?:ЗА|№))', re.IGNORECASE)),
)

# Signature block closing a law, in precedence order. A pattern matches a
# whole line that starts with the signatory marker.
END_PATTERNS: Tuple[Tuple[str, Pattern], ...] = (
    ('chair_signature', re.compile(r'(?:^|\n)[ \t]*(?P<marker>Председател[^\n]*)', re.IGNORECASE)),
    ('prime_minister_signature', re.compile(r'(?:^|\n)[ \t]*(?P<marker>Министър-председател[^\n]*)', re.IGNORECASE)),
    ('issued', re.compile(r'(?:^|\n)[ \t]*(?P<marker>Издаден[^\n]*)', re.IGNORECASE)),
)


def strip_markup(html: str) -> str:
    """
    Convert an HTML fragment to plain text.

    Script and style blocks are dropped, every remaining tag becomes a line
    break, a fixed set of entities is decoded and any other entity removed.
    """
    if not html:
        return ''
    text = _SCRIPT_RE.sub('', html)
    text = _STYLE_RE.sub('', text)
    text = _TAG_RE.sub('\n', text)
    for entity, replacement in HTML_ENTITIES:
        text = text.replace(entity, replacement)
    text = _UNKNOWN_ENTITY_RE.sub('', text)
    text = _INLINE_SPACE_RE.sub(' ', text)
    text = _LINE_EDGE_SPACE_RE.sub('\n', text)
    text = _BLANK_LINES_RE.sub('\n\n', text)
    return text.strip()


def find_law_start(text: str, patterns: Sequence[Tuple[str, Pattern]] = START_PATTERNS) -> int:
    """Offset of the earliest opening marker, or 0 when there is none."""
    starts = []
    for _, pattern in patterns:
        match = pattern.search(text)
        if match:
            starts.append(match.start('marker'))
    return min(starts) if starts else 0


def find_law_end(
    text: str,
    start: int = 0,
    patterns: Sequence[Tuple[str, Pattern]] = END_PATTERNS
) -> Optional[int]:
    """
    Offset just past the signature line, searching after ``start``.

    Patterns are tried in precedence order; for the first one that matches,
    its last occurrence wins so that a decree's "Издаден" line or a mention
    inside the body does not cut the law short.
    """
    for _, pattern in patterns:
        last = None
        for last in pattern.finditer(text, start):
            pass
        if last is not None:
            return last.end('marker')
    return None


def trim_to_law(text: str) -> str:
    """Slice the text to ``[opening marker, end of signature line)``."""
    if not text:
        return ''
    start = find_law_start(text)
    end = find_law_end(text, start)
    if end is None:
        end = len(text)
    return text[start:end].strip()


def enforce_max_length(text: str, max_text_length: int = DEFAULT_MAX_TEXT_LENGTH) -> str:
    """Truncate to ``max_text_length`` characters and append the marker."""
    if len(text) <= max_text_length:
        return text
    logger.warning("Text truncated from %d to %d chars", len(text), max_text_length)
    return text[:max_text_length] + TRUNCATION_MARKER


def was_truncated(text: str, max_text_length: int = DEFAULT_MAX_TEXT_LENGTH) -> bool:
    """Whether ``text`` is the output of ``enforce_max_length`` cutting an oversized text."""
    return len(text) == max_text_length + len(TRUNCATION_MARKER) and text.endswith(TRUNCATION_MARKER)


def normalize_law_text(
    text: str,
    max_text_length: int = DEFAULT_MAX_TEXT_LENGTH,
    is_html: bool = False
) -> str:
    """
    Full normalization pipeline for one extracted text.

    Args:
        text: Raw text (or markup when ``is_html`` is set)
        max_text_length: Size limit before truncation
        is_html: Strip markup before boundary detection

    Returns:
        Canonical law text, possibly ending with the truncation marker
    """
    if not text:
        return ''
    if is_html:
        text = strip_markup(text)
    return enforce_max_length(trim_to_law(text), max_text_length)
