"""
Data models for the law scraper.

Records are serialized with the camelCase keys used by the JSON files the
viewer consumes (``lawId``, ``fullText``, ...).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from law_scraper.utils import extract_law_id, is_law_link, now_iso


def is_valid_input_law(data) -> bool:
    """Check a raw worklist entry: title, date string and a law-detail link."""
    if not isinstance(data, dict):
        return False
    title = data.get('title')
    if not isinstance(title, str) or not title.strip():
        return False
    if not isinstance(data.get('date'), str):
        return False
    return is_law_link(data.get('link'))


@dataclass(frozen=True)
class WorkItem:
    """One law to scrape, as listed in the master worklist."""
    title: str
    date: str
    link: str

    @property
    def law_id(self) -> Optional[str]:
        return extract_law_id(self.link)

    @classmethod
    def from_dict(cls, data: dict) -> "WorkItem":
        return cls(title=data['title'], date=data['date'], link=data['link'])

    def to_dict(self) -> dict:
        return {'title': self.title, 'date': self.date, 'link': self.link}


@dataclass(frozen=True)
class Extraction:
    """Raw content pulled out of a rendered law page."""
    actual_title: str = ''
    metadata: Tuple[str, ...] = ()
    full_text: str = ''
    strategy: Optional[str] = None


@dataclass(frozen=True)
class ExtractionRecord:
    """Result of one scraping attempt, persisted as ``<lawId>.json``."""
    title: str
    date: str
    link: str
    law_id: Optional[str]
    actual_title: str
    metadata: Tuple[str, ...]
    full_text: str
    scraped_at: str
    error: Optional[str] = None
    retry_count: int = 0
    min_text_length: int = field(default=50, repr=False, compare=False)

    @property
    def text_length(self) -> int:
        return len(self.full_text)

    @property
    def is_complete(self) -> bool:
        return bool(self.full_text) and self.text_length > self.min_text_length

    @classmethod
    def create(
        cls,
        item: WorkItem,
        extraction: Extraction,
        retry_count: int = 0,
        min_text_length: int = 50,
        error: Optional[str] = None
    ) -> "ExtractionRecord":
        """Build a record for a work item from the extracted content."""
        return cls(
            title=item.title,
            date=item.date,
            link=item.link,
            law_id=item.law_id,
            actual_title=extraction.actual_title,
            metadata=tuple(extraction.metadata),
            full_text=extraction.full_text,
            scraped_at=now_iso(),
            error=error,
            retry_count=retry_count,
            min_text_length=min_text_length,
        )

    def to_dict(self) -> dict:
        return {
            'title': self.title,
            'date': self.date,
            'link': self.link,
            'lawId': self.law_id,
            'actualTitle': self.actual_title,
            'metadata': list(self.metadata),
            'fullText': self.full_text,
            'textLength': self.text_length,
            'scrapedAt': self.scraped_at,
            'isComplete': self.is_complete,
            'error': self.error,
            'retryCount': self.retry_count,
        }


@dataclass(frozen=True)
class FailureRecord:
    """Record of a law that failed all retries."""
    law_id: Optional[str]
    link: str
    title: str
    error: str
    retry_count: int
    failed_at: str
    batch_id: str

    @classmethod
    def create(cls, item: WorkItem, error: str, retry_count: int, batch_id: str) -> "FailureRecord":
        return cls(
            law_id=item.law_id,
            link=item.link,
            title=item.title,
            error=error,
            retry_count=retry_count,
            failed_at=now_iso(),
            batch_id=batch_id,
        )

    def to_dict(self) -> dict:
        return {
            'lawId': self.law_id,
            'link': self.link,
            'title': self.title,
            'error': self.error,
            'retryCount': self.retry_count,
            'failedAt': self.failed_at,
            'batchId': self.batch_id,
        }


@dataclass
class Batch:
    """A contiguous slice (or year group) of the sorted worklist."""
    batch_index: int
    laws: List[WorkItem]
    start_index: int
    end_index: int
    year: Optional[int] = None
    sub_batch: Optional[int] = None

    @property
    def size(self) -> int:
        return len(self.laws)

    @property
    def filename(self) -> str:
        return f"batch_{self.batch_index:03d}.json"

    def to_dict(self, total_batches: int, created_at: str) -> dict:
        return {
            'batchIndex': self.batch_index,
            'totalBatches': total_batches,
            'size': self.size,
            'startIndex': self.start_index,
            'endIndex': self.end_index,
            'year': self.year,
            'subBatch': self.sub_batch,
            'createdAt': created_at,
            'laws': [law.to_dict() for law in self.laws],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Batch":
        return cls(
            batch_index=data['batchIndex'],
            laws=[WorkItem.from_dict(law) for law in data.get('laws', [])],
            start_index=data.get('startIndex', 0),
            end_index=data.get('endIndex', 0),
            year=data.get('year'),
            sub_batch=data.get('subBatch'),
        )


@dataclass
class BatchManifest:
    """Durable record of how a worklist was partitioned."""
    total_laws: int
    total_batches: int
    batch_size: int
    strategy: str
    sort_order: str
    created_at: str
    worklist_hash: str
    batches: List[dict] = field(default_factory=list)

    def entry(self, batch_index: int) -> Optional[dict]:
        for entry in self.batches:
            if entry.get('batchIndex') == batch_index:
                return entry
        return None

    def to_dict(self) -> dict:
        return {
            'totalLaws': self.total_laws,
            'totalBatches': self.total_batches,
            'batchSize': self.batch_size,
            'strategy': self.strategy,
            'sortOrder': self.sort_order,
            'createdAt': self.created_at,
            'worklistHash': self.worklist_hash,
            'batches': self.batches,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BatchManifest":
        return cls(
            total_laws=data['totalLaws'],
            total_batches=data['totalBatches'],
            batch_size=data['batchSize'],
            strategy=data['strategy'],
            sort_order=data.get('sortOrder', 'desc'),
            created_at=data['createdAt'],
            worklist_hash=data.get('worklistHash', ''),
            batches=list(data.get('batches', [])),
        )


class ItemOutcome(Enum):
    """What happened to a single work item in a batch run."""
    SUCCESS = 'success'
    FAILED = 'failed'
    SKIPPED = 'skipped'


@dataclass
class BatchStats:
    """Running counters kept by one worker; merged by the scheduler."""
    processed: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0

    def record(self, outcome: ItemOutcome):
        if outcome is ItemOutcome.SKIPPED:
            self.skipped += 1
            return
        self.processed += 1
        if outcome is ItemOutcome.SUCCESS:
            self.successful += 1
        else:
            self.failed += 1

    @property
    def handled(self) -> int:
        return self.processed + self.skipped

    @classmethod
    def combine(cls, parts: Iterable["BatchStats"]) -> "BatchStats":
        total = cls()
        for part in parts:
            total.processed += part.processed
            total.successful += part.successful
            total.failed += part.failed
            total.skipped += part.skipped
        return total

    def to_dict(self) -> dict:
        return {
            'processed': self.processed,
            'successful': self.successful,
            'failed': self.failed,
            'skipped': self.skipped,
        }


@dataclass
class BatchRunResult:
    """Result of running one batch through the scheduler."""
    batch_id: str
    total: int
    successful: int
    failed: int
    skipped: int
    invalid: int
    started_at: str
    completed_at: str
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            'batchId': self.batch_id,
            'total': self.total,
            'successful': self.successful,
            'failed': self.failed,
            'skipped': self.skipped,
            'invalid': self.invalid,
            'startedAt': self.started_at,
            'completedAt': self.completed_at,
            'durationSeconds': self.duration_seconds,
        }
