"""
Shared utility functions for the law scraper.
"""

import re
from datetime import date, datetime, timezone
from typing import Optional

SITE_HOST = "parliament.bg"

_LAW_ID_RE = re.compile(r'/ID/(\d+)')
_TITLE_DATE_RE = re.compile(r'(\d{1,2})/(\d{1,2})/(\d{4})')
_YEAR_RE = re.compile(r'(\d{4})')


def extract_law_id(url: str) -> Optional[str]:
    """
    Extract the numeric law ID from a law-detail URL.

    Args:
        url: Law URL (e.g., https://www.parliament.bg/bg/laws/ID/166100)

    Returns:
        Law ID as a string (e.g., '166100') or None if not found
    """
    if not url:
        return None
    match = _LAW_ID_RE.search(url)
    return match.group(1) if match else None


def is_law_link(url) -> bool:
    """Check that a link points at a law-detail page with an extractable ID."""
    if not isinstance(url, str) or SITE_HOST not in url:
        return False
    return extract_law_id(url) is not None


def parse_title_date(title: str) -> Optional[date]:
    """
    Parse a DD/MM/YYYY date embedded in a listing title.

    Args:
        title: Listing title (e.g., '12/03/2024 Закон за изменение ...')

    Returns:
        date or None if the title has no valid date
    """
    if not title:
        return None
    match = _TITLE_DATE_RE.search(title)
    if not match:
        return None
    day, month, year = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_title_year(title: str) -> Optional[int]:
    """Return the first four-digit number found in a title, if any."""
    if not title:
        return None
    match = _YEAR_RE.search(title)
    return int(match.group(1)) if match else None


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()
