"""
Aggregation of per-law record files into one dataset.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Set

from law_scraper.errors import ConfigurationError
from law_scraper.resilience import FailureLog
from law_scraper.utils import now_iso

logger = logging.getLogger(__name__)


class ResultAggregator:
    """Builds ``aggregated_results.json`` from the scraped laws directory."""

    def __init__(
        self,
        scraped_dir: Path = Path('scraped_laws'),
        output_path: Path = Path('aggregated_results.json'),
        failed_log_path: Path = Path('failed_laws.json'),
        min_text_length: int = 50
    ):
        self.scraped_dir = Path(scraped_dir)
        self.output_path = Path(output_path)
        self.failure_log = FailureLog(failed_log_path)
        self.min_text_length = min_text_length

    @property
    def report_path(self) -> Path:
        return self.output_path.with_name(f"{self.output_path.stem}_report.txt")

    def aggregate(self) -> dict:
        """
        Merge every record file and the failure log into one document.

        A file that cannot be parsed is counted as an error and skipped.

        Returns:
            Dict with ``metadata``, ``scrapedLaws`` and ``failedLaws``

        Raises:
            ConfigurationError: if the scraped laws directory does not exist
        """
        if not self.scraped_dir.is_dir():
            raise ConfigurationError(f"Scraped directory not found: {self.scraped_dir}")

        files = sorted(self.scraped_dir.glob('*.json'))
        logger.info("Found %d scraped law files", len(files))

        scraped_laws: List[dict] = []
        stats = {
            'total': len(files),
            'successful': 0,
            'withErrors': 0,
            'parseErrors': 0,
            'totalTextLength': 0,
            'minTextLength': 0,
            'maxTextLength': 0,
            'averageTextLength': 0,
        }
        lengths = []

        for path in files:
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    law = json.load(f)
                if not isinstance(law, dict):
                    raise ValueError("record is not a JSON object")
            except (OSError, ValueError) as e:
                logger.error("Error processing file %s: %s", path.name, e)
                stats['parseErrors'] += 1
                stats['withErrors'] += 1
                continue

            scraped_laws.append(law)
            full_text = law.get('fullText')
            text_length = len(full_text) if isinstance(full_text, str) else 0
            law['textLength'] = text_length
            if law.get('isComplete') and text_length > self.min_text_length:
                stats['successful'] += 1
                lengths.append(text_length)
            else:
                stats['withErrors'] += 1

        if lengths:
            stats['totalTextLength'] = sum(lengths)
            stats['minTextLength'] = min(lengths)
            stats['maxTextLength'] = max(lengths)
            stats['averageTextLength'] = round(stats['totalTextLength'] / len(lengths))

        recorded_ids = {path.stem for path in files}
        failed_laws = self.pending_failures(recorded_ids)

        scraped_laws.sort(key=lambda law: str(law.get('scrapedAt') or ''), reverse=True)

        result = {
            'metadata': {
                'aggregatedAt': now_iso(),
                'totalScrapedLaws': stats['total'],
                'successfulLaws': stats['successful'],
                'errorLaws': stats['withErrors'],
                'failedLaws': len(failed_laws),
                'statistics': stats,
            },
            'scrapedLaws': scraped_laws,
            'failedLaws': failed_laws,
        }

        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.output_path, 'w', encoding='utf-8') as f:
            json.dump(result, f, indent=2, ensure_ascii=False)

        logger.info(
            "Aggregated %d files: %d successful, %d with errors, %d failed completely",
            stats['total'], stats['successful'], stats['withErrors'], len(failed_laws)
        )
        return result

    def pending_failures(self, recorded_ids: Set[str]) -> List[dict]:
        """
        Failure log entries for laws that still have no record.

        The log is append-only, so a law that failed and later succeeded is
        dropped, and repeated failures of one law collapse to its latest entry.
        """
        latest: Dict[str, dict] = {}
        for failure in self.failure_log.load():
            if not isinstance(failure, dict):
                continue
            law_id = str(failure.get('lawId'))
            if law_id in recorded_ids:
                continue
            latest.pop(law_id, None)
            latest[law_id] = failure
        return list(latest.values())

    def generate_report(self) -> str:
        """Aggregate, then write the text report beside the JSON output."""
        result = self.aggregate()
        report = self.create_text_report(result)
        with open(self.report_path, 'w', encoding='utf-8') as f:
            f.write(report)
        logger.info("Report saved to %s", self.report_path)
        return report

    @staticmethod
    def create_text_report(result: dict) -> str:
        metadata = result['metadata']
        stats = metadata['statistics']
        total = metadata['totalScrapedLaws']
        successful = metadata['successfulLaws']
        attempted = total + metadata['failedLaws']

        overall_rate = successful / attempted * 100 if attempted else 0.0
        completion_rate = successful / total * 100 if total else 0.0

        lines = [
            "BULGARIAN LAWS SCRAPING REPORT",
            "=" * 31,
            "",
            f"Generated: {metadata['aggregatedAt']}",
            "",
            "SUMMARY",
            "-" * 7,
            f"Total Laws Processed: {total}",
            f"Successfully Scraped: {successful}",
            f"With Errors: {metadata['errorLaws']}",
            f"Unparsable Files: {stats.get('parseErrors', 0)}",
            f"Completely Failed: {metadata['failedLaws']}",
            "",
            "TEXT STATISTICS",
            "-" * 15,
            f"Total Text Length: {stats['totalTextLength']:,} characters",
            f"Average Text Length: {stats['averageTextLength']:,} characters",
            f"Minimum Text Length: {stats['minTextLength']:,} characters",
            f"Maximum Text Length: {stats['maxTextLength']:,} characters",
            "",
            "SUCCESS RATE",
            "-" * 12,
            f"Overall Success Rate: {overall_rate:.2f}%",
            f"Completion Rate: {completion_rate:.2f}%",
            "",
        ]

        failed_laws = result.get('failedLaws') or []
        if failed_laws:
            lines.extend(["FAILED LAWS BREAKDOWN", "-" * 21])
            for failure in failed_laws:
                lines.append(f"- {failure.get('lawId')}: {failure.get('title')} ({failure.get('error')})")
            lines.append("")

        lines.append("END OF REPORT")
        return '\n'.join(lines) + '\n'
