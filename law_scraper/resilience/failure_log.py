"""
Shared log of laws that failed every retry.

The log is a single JSON array rewritten on every append. Appends from
concurrent workers go through one asyncio lock owned by the log, so
writers inside a process never interleave; separate processes sharing
the file are last-writer-wins.
"""

import asyncio
import json
import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import List

from law_scraper.models import FailureRecord

logger = logging.getLogger(__name__)


class FailureLog:
    """Read-modify-write JSON array of FailureRecords."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def load(self) -> List[dict]:
        """
        Load all recorded failures.

        Returns:
            List of failure dicts; empty if the file is missing or corrupted
        """
        if not self.path.exists():
            return []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error("Failure log corrupted: %s", e)
            self._backup_corrupted()
            return []
        if not isinstance(data, list):
            logger.error("Failure log is not a JSON array: %s", self.path)
            self._backup_corrupted()
            return []
        return data

    def _backup_corrupted(self):
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        backup_path = self.path.with_name(f"{self.path.stem}.corrupted.{timestamp}.json")
        try:
            shutil.copy2(self.path, backup_path)
            logger.warning("Backed up corrupted failure log to %s", backup_path)
        except OSError as e:
            logger.error("Failed to backup corrupted failure log: %s", e)

    def _append_sync(self, record: FailureRecord):
        failures = self.load()
        failures.append(record.to_dict())
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(failures, f, indent=2, ensure_ascii=False)

    async def append(self, record: FailureRecord):
        """Append one failure; write errors are logged, never raised."""
        async with self._lock:
            try:
                await asyncio.to_thread(self._append_sync, record)
            except OSError as e:
                logger.error("Error logging failed law %s: %s", record.law_id, e)

    def clear(self) -> bool:
        """Delete the log file. Returns True if a file was removed."""
        if self.path.exists():
            self.path.unlink()
            return True
        return False
