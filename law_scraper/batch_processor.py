"""
Worklist partitioning.

Loads the master worklist, sorts it chronologically and splits it into
batch files plus a manifest (``batch-config.json``) that records how the
batches were cut. Batch creation is idempotent: the same worklist and
partitioning settings produce byte-identical files, because the
manifest stores a fingerprint of both and reuses its ``createdAt`` when
the fingerprint is unchanged.
"""

import hashlib
import json
import logging
import math
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from law_scraper.config import VALID_SORT_ORDERS, VALID_STRATEGIES, BatchConfig, PathsConfig
from law_scraper.errors import ConfigurationError
from law_scraper.models import Batch, BatchManifest, WorkItem, is_valid_input_law
from law_scraper.utils import now_iso, parse_title_date, parse_title_year

logger = logging.getLogger(__name__)

# (lowest law ID, year) pairs used when the title carries no usable year
ID_YEAR_BUCKETS: Tuple[Tuple[int, int], ...] = (
    (166000, 2025),
    (165000, 2024),
    (164000, 2023),
    (163000, 2022),
    (162000, 2021),
    (161000, 2020),
    (160000, 2019),
    (159000, 2018),
    (158000, 2017),
)
OLDEST_BUCKET_YEAR = 2016
DEFAULT_YEAR = 2025


def _numeric_id(item: WorkItem) -> int:
    law_id = item.law_id
    return int(law_id) if law_id else 0


class BatchProcessor:
    """Splits the worklist into batch files and manages the manifest."""

    def __init__(self, config: Optional[BatchConfig] = None, paths: Optional[PathsConfig] = None):
        """
        Initialize the processor.

        Args:
            config: Partitioning settings, uses defaults if None
            paths: File locations, uses defaults if None

        Raises:
            ConfigurationError: on an unknown strategy, sort order or a non-positive size
        """
        self.config = config or BatchConfig()
        self.paths = paths or PathsConfig()

        if self.config.strategy not in VALID_STRATEGIES:
            raise ConfigurationError(
                f"Unknown batch strategy '{self.config.strategy}' (expected one of {', '.join(VALID_STRATEGIES)})"
            )
        if self.config.sort_order not in VALID_SORT_ORDERS:
            raise ConfigurationError(f"Unknown sort order '{self.config.sort_order}'")
        if self.config.batch_size <= 0 or self.config.total_workers <= 0:
            raise ConfigurationError("Batch size and worker count must be positive")

    @property
    def batch_dir(self) -> Path:
        return Path(self.paths.batch_dir)

    @property
    def manifest_path(self) -> Path:
        return Path(self.paths.manifest_path)

    def load_worklist(self, input_path: Optional[Path] = None) -> List[WorkItem]:
        """
        Load and validate the master worklist.

        Invalid entries are logged and dropped.

        Raises:
            ConfigurationError: if the file is missing, not a JSON array or
                holds no valid laws
        """
        input_path = Path(input_path or self.paths.input_path)
        if not input_path.exists():
            raise ConfigurationError(f"Input file not found: {input_path}")

        try:
            with open(input_path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except ValueError as e:
            raise ConfigurationError(f"Input file is not valid JSON: {input_path}: {e}") from e

        if not isinstance(raw, list):
            raise ConfigurationError("Input file must contain an array of laws")

        items = []
        for index, law in enumerate(raw):
            if is_valid_input_law(law):
                items.append(WorkItem.from_dict(law))
            else:
                logger.warning("Invalid law at index %d: %r", index, law)

        logger.info("%d valid laws out of %d total", len(items), len(raw))
        if not items:
            raise ConfigurationError(f"No valid laws in {input_path}")
        return items

    def items_for_ids(
        self,
        law_ids: Sequence[str],
        output_dir: Optional[Path] = None
    ) -> Tuple[List[WorkItem], List[str]]:
        """
        Map law IDs back to work items, e.g. for a re-scrape list.

        The worklist is consulted first. An ID missing from it falls back to
        the title, date and link stored in its existing record file.

        Returns:
            Tuple of (work items in the order of ``law_ids``, IDs that could not be resolved)
        """
        output_dir = Path(output_dir or self.paths.output_dir)
        known: Dict[str, WorkItem] = {}
        if Path(self.paths.input_path).exists():
            known = {item.law_id: item for item in self.load_worklist()}
        else:
            logger.info("No worklist at %s, using stored records only", self.paths.input_path)

        items = []
        unresolved = []
        for law_id in law_ids:
            item = known.get(law_id) or self._item_from_record(output_dir / f"{law_id}.json")
            if item is None:
                logger.warning("Law %s is neither in the worklist nor in %s", law_id, output_dir)
                unresolved.append(law_id)
            else:
                items.append(item)
        return items, unresolved

    @staticmethod
    def _item_from_record(path: Path) -> Optional[WorkItem]:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                record = json.load(f)
        except (OSError, ValueError):
            return None
        return WorkItem.from_dict(record) if is_valid_input_law(record) else None

    def sort_key(self, item: WorkItem) -> Tuple[int, int, int]:
        """
        Best-effort chronological key.

        A date in the title wins; otherwise the law ID stands in (higher is
        newer). Dated items always rank as newer than undated ones.
        """
        law_date = parse_title_date(item.title)
        if law_date:
            return (1, law_date.toordinal(), _numeric_id(item))
        return (0, _numeric_id(item), 0)

    def sort_chronologically(self, items: List[WorkItem]) -> List[WorkItem]:
        return sorted(items, key=self.sort_key, reverse=self.config.sort_order == 'desc')

    def extract_year(self, item: WorkItem) -> int:
        """Year from the title if plausible, else estimated from the law ID."""
        year = parse_title_year(item.title)
        if year is not None and self.config.min_year <= year <= self.config.max_year:
            return year

        law_id = item.law_id
        if not law_id:
            return DEFAULT_YEAR
        numeric = int(law_id)
        for lowest_id, bucket_year in ID_YEAR_BUCKETS:
            if numeric >= lowest_id:
                return bucket_year
        return OLDEST_BUCKET_YEAR

    def create_batches_by_strategy(self, items: List[WorkItem]) -> List[Batch]:
        """Partition already-sorted items with the configured strategy."""
        if self.config.strategy == 'year':
            return self._batches_by_year(items)
        if self.config.strategy == 'equal':
            size = max(1, math.ceil(len(items) / self.config.total_workers))
            return self._batches_by_size(items, size)
        return self._batches_by_size(items, self.config.batch_size)

    def _batches_by_size(self, items: List[WorkItem], size: int) -> List[Batch]:
        batches = []
        for start in range(0, len(items), size):
            chunk = items[start:start + size]
            batches.append(Batch(
                batch_index=len(batches),
                laws=chunk,
                start_index=start,
                end_index=start + len(chunk),
            ))
        return batches

    def _batches_by_year(self, items: List[WorkItem]) -> List[Batch]:
        groups: Dict[int, List[Tuple[int, WorkItem]]] = {}
        for index, item in enumerate(items):
            groups.setdefault(self.extract_year(item), []).append((index, item))

        size = self.config.batch_size
        batches = []
        for year in sorted(groups, reverse=self.config.sort_order == 'desc'):
            group = groups[year]
            oversized = len(group) > size
            for offset in range(0, len(group), size):
                chunk = group[offset:offset + size]
                batches.append(Batch(
                    batch_index=len(batches),
                    laws=[item for _, item in chunk],
                    start_index=chunk[0][0],
                    end_index=chunk[-1][0] + 1,
                    year=year,
                    sub_batch=offset // size + 1 if oversized else None,
                ))
        return batches

    def worklist_hash(self, items: List[WorkItem]) -> str:
        """Fingerprint of the worklist and the settings that shape the batches."""
        payload = {
            'laws': [item.to_dict() for item in items],
            'strategy': self.config.strategy,
            'batchSize': self.config.batch_size,
            'sortOrder': self.config.sort_order,
            'totalWorkers': self.config.total_workers,
            'yearRange': [self.config.min_year, self.config.max_year],
        }
        encoded = json.dumps(payload, sort_keys=True, ensure_ascii=False).encode('utf-8')
        return hashlib.sha256(encoded).hexdigest()

    def create_batches(self, input_path: Optional[Path] = None) -> BatchManifest:
        """
        Load, sort and partition the worklist, then write batch files and manifest.

        Returns:
            The manifest that was written
        """
        logger.info("Starting batch processing...")
        items = self.load_worklist(input_path)
        sorted_items = self.sort_chronologically(items)
        batches = self.create_batches_by_strategy(sorted_items)
        logger.info("Created %d batches using strategy: %s", len(batches), self.config.strategy)

        fingerprint = self.worklist_hash(items)
        previous = self._load_manifest_quietly()
        if previous is not None and previous.worklist_hash == fingerprint:
            created_at = previous.created_at
            logger.info("Worklist unchanged since %s, rewriting identical batches", created_at)
        else:
            created_at = now_iso()

        self.batch_dir.mkdir(parents=True, exist_ok=True)
        self._remove_stale_batch_files({batch.filename for batch in batches})

        entries = []
        for batch in batches:
            path = self.batch_dir / batch.filename
            self._write_json(path, batch.to_dict(len(batches), created_at))
            entries.append({
                'batchIndex': batch.batch_index,
                'filename': batch.filename,
                'filePath': str(path),
                'size': batch.size,
                'year': batch.year,
                'subBatch': batch.sub_batch,
                'startIndex': batch.start_index,
                'endIndex': batch.end_index,
            })
            logger.debug("Created batch file: %s (%d laws)", batch.filename, batch.size)

        manifest = BatchManifest(
            total_laws=len(sorted_items),
            total_batches=len(batches),
            batch_size=self.config.batch_size,
            strategy=self.config.strategy,
            sort_order=self.config.sort_order,
            created_at=created_at,
            worklist_hash=fingerprint,
            batches=entries,
        )
        self._write_json(self.manifest_path, manifest.to_dict())
        logger.info("Saved batch configuration: %s", self.manifest_path)
        return manifest

    def _write_json(self, path: Path, data):
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    def _remove_stale_batch_files(self, keep: set):
        for path in self.batch_dir.glob('batch_*.json'):
            if path.name not in keep:
                path.unlink()
                logger.info("Removed stale batch file: %s", path.name)

    def _load_manifest_quietly(self) -> Optional[BatchManifest]:
        try:
            return self.load_manifest()
        except ConfigurationError:
            return None

    def load_manifest(self) -> BatchManifest:
        """
        Read the manifest.

        Raises:
            ConfigurationError: if it is missing or malformed
        """
        if not self.manifest_path.exists():
            raise ConfigurationError("No batch configuration found. Run create-batches first.")
        try:
            with open(self.manifest_path, 'r', encoding='utf-8') as f:
                return BatchManifest.from_dict(json.load(f))
        except (ValueError, KeyError, TypeError) as e:
            raise ConfigurationError(f"Malformed batch configuration {self.manifest_path}: {e}") from e

    def batch_indices(self) -> List[int]:
        """Batch indices in manifest order, e.g. for a CI job matrix."""
        return [entry['batchIndex'] for entry in self.load_manifest().batches]

    def get_batch(self, batch_index: int) -> Batch:
        """
        Load one batch file through the manifest.

        Raises:
            ConfigurationError: if the batch is unknown or its file is unusable
        """
        entry = self.load_manifest().entry(batch_index)
        if entry is None:
            raise ConfigurationError(f"Batch {batch_index} not found in configuration.")

        path = self.batch_dir / entry['filename']
        if not path.exists():
            raise ConfigurationError(f"Batch file not found: {path}")
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return Batch.from_dict(json.load(f))
        except (ValueError, KeyError, TypeError) as e:
            raise ConfigurationError(f"Malformed batch file {path}: {e}") from e

    def batch_progress(self, output_dir: Optional[Path] = None) -> List[dict]:
        """
        Per-batch count of laws that already have a record file.

        Unreadable batch files are logged and reported with ``error`` set.
        """
        output_dir = Path(output_dir or self.paths.output_dir)
        progress = []
        for batch_index in self.batch_indices():
            try:
                batch = self.get_batch(batch_index)
            except ConfigurationError as e:
                logger.warning("%s", e)
                progress.append({'batchIndex': batch_index, 'total': 0, 'scraped': 0,
                                 'complete': False, 'error': str(e)})
                continue
            scraped = sum(1 for law in batch.laws if (output_dir / f"{law.law_id}.json").exists())
            progress.append({
                'batchIndex': batch_index,
                'total': batch.size,
                'scraped': scraped,
                'complete': scraped == batch.size,
                'error': None,
            })
        return progress

    def cleanup(self) -> int:
        """
        Delete all batch files and the manifest.

        Returns:
            Number of files removed
        """
        removed = 0
        if self.batch_dir.is_dir():
            for path in sorted(self.batch_dir.glob('batch_*.json')):
                path.unlink()
                removed += 1
                logger.info("Deleted batch file: %s", path.name)
        if self.manifest_path.exists():
            self.manifest_path.unlink()
            removed += 1
            logger.info("Deleted batch configuration file")
        return removed
