"""
Progress checkpoints for batch runs.
The checkpoint is diagnostic: resume relies on the presence of output
files, so a lost or stale checkpoint never loses work.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from law_scraper.models import BatchStats
from law_scraper.utils import now_iso

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Atomically persists the running counters of one batch."""

    def __init__(self, path: Path):
        """
        Initialize tracker with the checkpoint file location.

        Args:
            path: Checkpoint JSON file
        """
        self.path = Path(path)

    def load(self) -> Optional[dict]:
        """
        Load the last checkpoint.

        Returns:
            Checkpoint dict, or None if missing or unreadable
        """
        if not self.path.exists():
            return None
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Progress file unreadable: %s", e)
            return None

    def save(self, batch_id: str, stats: BatchStats, total: int, is_complete: bool = False) -> bool:
        """
        Atomically write a checkpoint.

        Args:
            batch_id: Batch being processed
            stats: Merged counters of all workers
            total: Number of valid items in the batch
            is_complete: Whether the batch run has finished

        Returns:
            True if the checkpoint was written
        """
        data = {
            'batchId': batch_id,
            'total': total,
            **stats.to_dict(),
            'isComplete': is_complete,
            'lastUpdate': now_iso(),
        }

        # Atomic write: write to temp file, then rename
        temp_file = self.path.with_name(f"{self.path.stem}.tmp{self.path.suffix}")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_file, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            temp_file.replace(self.path)
            return True
        except OSError as e:
            logger.error("Failed to save progress: %s", e)
            if temp_file.exists():
                try:
                    temp_file.unlink()
                except OSError:
                    pass
            return False

    def clear(self) -> bool:
        """Delete the checkpoint. Returns True if a file was removed."""
        if self.path.exists():
            self.path.unlink()
            return True
        return False
