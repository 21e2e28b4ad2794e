"""
Command line entry point for the Bulgarian laws scraper.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import find_dotenv, load_dotenv
from pydantic import ValidationError

from law_scraper.aggregator import ResultAggregator
from law_scraper.batch_processor import BatchProcessor
from law_scraper.config import VALID_SORT_ORDERS, VALID_STRATEGIES, ScraperConfig, Settings
from law_scraper.errors import ConfigurationError
from law_scraper.models import BatchRunResult
from law_scraper.resilience import FailureLog, ProgressTracker
from law_scraper.scheduler import BatchScheduler
from law_scraper.validator import (
    RESCRAPE_SEVERITIES,
    load_rescrape_ids,
    validate_directory,
    write_validation_report,
)

logger = logging.getLogger(__name__)

BANNER = "=" * 60


def print_banner(title: str):
    print("\n" + BANNER)
    print(title)
    print(BANNER)


def build_config(args) -> Tuple[ScraperConfig, Settings]:
    """Read settings from the environment and apply command line overrides."""
    try:
        settings = Settings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid environment configuration: {e}") from e

    config = ScraperConfig.from_settings(settings)

    if args.concurrency is not None:
        config.concurrency = args.concurrency
    if args.retries is not None:
        config.retry.max_retries = args.retries
    if args.delay_ms is not None:
        config.rate_limit.request_delay = args.delay_ms / 1000.0
    if args.headless is not None:
        config.browser.headless = args.headless
    if args.batch_size is not None:
        config.batch.batch_size = args.batch_size
    if args.strategy is not None:
        config.batch.strategy = args.strategy
    if args.sort_order is not None:
        config.batch.sort_order = args.sort_order
    if args.input is not None:
        config.paths.input_path = Path(args.input)
    if args.output_dir is not None:
        config.paths.output_dir = Path(args.output_dir)
    if args.batch_dir is not None:
        config.paths.batch_dir = Path(args.batch_dir)

    if config.concurrency < 1:
        raise ConfigurationError("Concurrency must be at least 1")
    return config, settings


def print_run_result(result: BatchRunResult):
    print(f"Batch:       {result.batch_id}")
    print(f"Total:       {result.total}")
    print(f"Successful:  {result.successful}")
    print(f"Failed:      {result.failed}")
    print(f"Skipped:     {result.skipped}")
    if result.invalid:
        print(f"Invalid:     {result.invalid}")
    print(f"Duration:    {result.duration_seconds:.0f}s")


def cmd_create_batches(config: ScraperConfig, settings: Settings, args) -> int:
    processor = BatchProcessor(config.batch, config.paths)
    manifest = processor.create_batches()

    print_banner("BATCHES CREATED")
    print(f"Total laws:    {manifest.total_laws}")
    print(f"Total batches: {manifest.total_batches}")
    print(f"Strategy:      {manifest.strategy}")
    print(f"Batch size:    {manifest.batch_size}")
    print(f"Sort order:    {manifest.sort_order}")
    print("\nBatch indices:")
    print(json.dumps([entry['batchIndex'] for entry in manifest.batches]))
    return 0


async def run_batches(config: ScraperConfig, indices: List[int]) -> List[BatchRunResult]:
    """Run batches one after another; a broken batch is reported and skipped."""
    processor = BatchProcessor(config.batch, config.paths)
    scheduler = BatchScheduler(config)
    results = []
    for position, batch_index in enumerate(indices, 1):
        logger.info("Processing batch %d (%d/%d)", batch_index, position, len(indices))
        try:
            batch = processor.get_batch(batch_index)
            result = await scheduler.run(batch.laws, batch_id=batch.filename[:-len('.json')])
        except ConfigurationError as e:
            logger.error("Skipping batch %d: %s", batch_index, e)
            continue
        results.append(result)
        logger.info(
            "Batch %d done: %d successful, %d failed, %d skipped",
            batch_index, result.successful, result.failed, result.skipped
        )
    return results


def print_totals(results: List[BatchRunResult]):
    print(f"Batches run:       {len(results)}")
    print(f"Total successful:  {sum(r.successful for r in results)}")
    print(f"Total failed:      {sum(r.failed for r in results)}")
    print(f"Total skipped:     {sum(r.skipped for r in results)}")
    print(f"Total duration:    {sum(r.duration_seconds for r in results):.0f}s")


def cmd_scrape_batch(config: ScraperConfig, settings: Settings, args) -> int:
    batch_index = args.index if args.index is not None else settings.batch_index
    processor = BatchProcessor(config.batch, config.paths)
    batch = processor.get_batch(batch_index)
    print(f"Loaded batch {batch_index}: {batch.size} laws")

    result = asyncio.run(BatchScheduler(config).run(batch.laws, batch_id=batch.filename[:-len('.json')]))

    print_banner("BATCH SCRAPING COMPLETE")
    print_run_result(result)
    return 0


def cmd_scrape_all(config: ScraperConfig, settings: Settings, args) -> int:
    indices = BatchProcessor(config.batch, config.paths).batch_indices()
    print(f"Scraping {len(indices)} batches sequentially...")

    results = asyncio.run(run_batches(config, indices))

    print_banner("ALL BATCHES COMPLETE")
    print_totals(results)
    return 0


def cmd_resume(config: ScraperConfig, settings: Settings, args) -> int:
    processor = BatchProcessor(config.batch, config.paths)
    progress = processor.batch_progress(config.paths.output_dir)
    incomplete = [entry['batchIndex'] for entry in progress if not entry['complete'] and not entry['error']]

    if not incomplete:
        print("All batches are already complete!")
        return 0

    print(f"Found {len(incomplete)} incomplete batches")
    results = asyncio.run(run_batches(config, incomplete))

    print_banner("RESUME COMPLETE")
    print_totals(results)
    return 0


def cmd_status(config: ScraperConfig, settings: Settings, args) -> int:
    processor = BatchProcessor(config.batch, config.paths)
    manifest = processor.load_manifest()
    progress = processor.batch_progress(config.paths.output_dir)

    output_dir = Path(config.paths.output_dir)
    scraped = len(list(output_dir.glob('*.json'))) if output_dir.is_dir() else 0
    failed = len(FailureLog(config.paths.failed_log_path).load())
    total = manifest.total_laws
    completion = scraped / total * 100 if total else 0.0

    print_banner("SCRAPING STATUS")
    print(f"Total laws in dataset:  {total}")
    print(f"Successfully scraped:   {scraped} ({completion:.1f}%)")
    print(f"Failed to scrape:       {failed}")
    print(f"Remaining to scrape:    {max(0, total - scraped)}")
    print(f"Total batches:          {manifest.total_batches}")
    print(f"Strategy used:          {manifest.strategy}")
    print(f"Batches created:        {manifest.created_at}")

    checkpoint = ProgressTracker(config.paths.progress_path).load()
    if checkpoint:
        state = 'complete' if checkpoint.get('isComplete') else 'in progress'
        print(f"Last checkpoint:        {checkpoint.get('batchId')} ({state}, {checkpoint.get('lastUpdate')})")

    print("\nBatch status:")
    for entry in progress[:10]:
        if entry['error']:
            print(f"  batch {entry['batchIndex']:>3}: unreadable ({entry['error']})")
            continue
        marker = 'done' if entry['complete'] else 'pending'
        print(f"  batch {entry['batchIndex']:>3}: {entry['scraped']}/{entry['total']} {marker}")
    if len(progress) > 10:
        print(f"  ... and {len(progress) - 10} more batches")
    return 0


def cmd_cleanup(config: ScraperConfig, settings: Settings, args) -> int:
    removed = BatchProcessor(config.batch, config.paths).cleanup()
    if FailureLog(config.paths.failed_log_path).clear():
        removed += 1
        print(f"Deleted: {config.paths.failed_log_path}")
    if ProgressTracker(config.paths.progress_path).clear():
        removed += 1
        print(f"Deleted: {config.paths.progress_path}")
    print(f"Cleanup completed ({removed} files removed)")
    return 0


def cmd_aggregate(config: ScraperConfig, settings: Settings, args) -> int:
    aggregator = ResultAggregator(
        scraped_dir=config.paths.output_dir,
        output_path=config.paths.aggregated_path,
        failed_log_path=config.paths.failed_log_path,
        min_text_length=config.text.min_text_length,
    )
    if args.report:
        report = aggregator.generate_report()
        print(report)
        print(f"Report saved to: {aggregator.report_path}")
        return 0

    result = aggregator.aggregate()
    metadata = result['metadata']
    stats = metadata['statistics']

    print_banner("RESULTS SUMMARY")
    print(f"Total scraped files:  {metadata['totalScrapedLaws']}")
    print(f"Successful:           {metadata['successfulLaws']}")
    print(f"With errors:          {metadata['errorLaws']}")
    print(f"Failed:               {metadata['failedLaws']}")
    print(f"Average text length:  {stats['averageTextLength']:,} chars")
    print(f"Saved to:             {aggregator.output_path}")
    return 0


def cmd_validate(config: ScraperConfig, settings: Settings, args) -> int:
    summary = validate_directory(config.paths.output_dir, max_text_length=config.text.max_text_length)
    written = write_validation_report(summary, config.paths.validation_report_path)

    print_banner("TEXT VALIDATION")
    print(f"Total:    {summary.total}")
    print(f"Valid:    {summary.valid}")
    print(f"Invalid:  {summary.invalid}")
    for severity, count in summary.by_severity.items():
        if count:
            print(f"  {severity:<9} {count}")
    if summary.by_issue:
        print("\nIssues:")
        for issue, count in sorted(summary.by_issue.items(), key=lambda kv: -kv[1]):
            print(f"  {issue:<22} {count}")
    print("\nWritten:")
    for path in written:
        print(f"  {path}")
    return 0


def cmd_rescrape(config: ScraperConfig, settings: Settings, args) -> int:
    severities = [args.severity] if args.severity else list(RESCRAPE_SEVERITIES)
    law_ids = load_rescrape_ids(config.paths.validation_report_path, severities)
    if args.limit:
        law_ids = law_ids[:args.limit]
    if not law_ids:
        print(f"No laws listed for re-scraping ({', '.join(severities)}). Run validate first.")
        return 0

    items, unresolved = BatchProcessor(config.batch, config.paths).items_for_ids(law_ids)
    print(f"Re-scraping {len(items)} laws ({', '.join(severities)} priority)")
    if unresolved:
        print(f"Unknown law IDs skipped: {', '.join(unresolved)}")
    if not items:
        return 0

    result = asyncio.run(BatchScheduler(config).run(items, batch_id='rescrape', force=True))

    print_banner("RE-SCRAPE COMPLETE")
    print_run_result(result)
    print("\nRun 'law-scraper validate' to refresh the re-scrape lists.")
    return 0


COMMANDS = {
    'create-batches': cmd_create_batches,
    'scrape-batch': cmd_scrape_batch,
    'scrape-all': cmd_scrape_all,
    'resume': cmd_resume,
    'status': cmd_status,
    'cleanup': cmd_cleanup,
    'aggregate': cmd_aggregate,
    'validate': cmd_validate,
    'rescrape': cmd_rescrape,
}


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--log-level', default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging verbosity (default: INFO)')
    common.add_argument('--concurrency', type=int, help='Parallel workers per batch (env CONCURRENCY)')
    common.add_argument('--retries', type=int, help='Attempts per law (env MAX_RETRIES)')
    common.add_argument('--delay-ms', type=int, help='Per-worker delay between laws (env DELAY_MS)')
    common.add_argument('--headless', dest='headless', action='store_true', default=None,
                        help='Run the browser headless (env HEADLESS)')
    common.add_argument('--no-headless', dest='headless', action='store_false',
                        help='Show the browser window')
    common.add_argument('--batch-size', type=int, help='Laws per batch (env BATCH_SIZE)')
    common.add_argument('--strategy', choices=VALID_STRATEGIES, help='Batch strategy (env BATCH_STRATEGY)')
    common.add_argument('--sort-order', choices=VALID_SORT_ORDERS, help='Chronological order (env SORT_ORDER)')
    common.add_argument('--input', help='Worklist JSON file (env INPUT_PATH)')
    common.add_argument('--output-dir', help='Directory for scraped law records (env OUTPUT_DIR)')
    common.add_argument('--batch-dir', help='Directory for batch files (env BATCH_DIR)')

    parser = argparse.ArgumentParser(
        description='Bulgarian laws full-text scraper',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Split the worklist into batches of 50, newest laws first
  law-scraper create-batches --batch-size 50

  # Scrape one batch (index defaults to BATCH_INDEX)
  law-scraper scrape-batch 3 --concurrency 2

  # Continue where an interrupted run stopped
  law-scraper resume

  # Re-scrape the laws validate marked critical
  law-scraper rescrape --severity critical

  # Build aggregated_results.json and a text report
  law-scraper aggregate --report
        """
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('create-batches', parents=[common], help='Split the worklist into batch files')
    scrape_batch = subparsers.add_parser('scrape-batch', parents=[common], help='Scrape a single batch')
    scrape_batch.add_argument('index', nargs='?', type=int, help='Batch index (default: BATCH_INDEX)')
    subparsers.add_parser('scrape-all', parents=[common], help='Scrape every batch sequentially')
    subparsers.add_parser('resume', parents=[common], help='Scrape batches that are not complete yet')
    subparsers.add_parser('status', parents=[common], help='Show scraping progress')
    subparsers.add_parser('cleanup', parents=[common], help='Remove batch files, failure log and checkpoint')
    aggregate = subparsers.add_parser('aggregate', parents=[common], help='Aggregate scraped records')
    aggregate.add_argument('--report', action='store_true', help='Also write a plain-text report')
    subparsers.add_parser('validate', parents=[common], help='Validate scraped texts and write re-scrape lists')
    rescrape = subparsers.add_parser('rescrape', parents=[common],
                                     help='Scrape the laws on the re-scrape lists again, replacing their records')
    rescrape.add_argument('--severity', choices=RESCRAPE_SEVERITIES,
                          help='Only this priority list (default: critical, high and medium)')
    rescrape.add_argument('--limit', type=int, help='Re-scrape at most this many laws')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv(find_dotenv(usecwd=True))
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    )

    try:
        config, settings = build_config(args)
        return COMMANDS[args.command](config, settings, args)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print_banner("INTERRUPTED")
        print("Scraped laws are saved. Run 'law-scraper resume' to continue.")
        return 0


if __name__ == "__main__":
    sys.exit(main())
