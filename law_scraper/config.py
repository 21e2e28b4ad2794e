"""
Configuration for the law scraper.

Dataclasses hold the runtime configuration; ``Settings`` reads the same
knobs from the environment (or a ``.env`` file) and is turned into a
``ScraperConfig`` with ``ScraperConfig.from_settings``.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from pydantic_settings import BaseSettings, SettingsConfigDict


VALID_STRATEGIES = ('size', 'year', 'equal')
VALID_SORT_ORDERS = ('asc', 'desc')


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    backoff_factor: float = 2.0


@dataclass
class RateLimitConfig:
    """Per-worker pacing between requests."""
    request_delay: float = 2.0
    jitter_percent: float = 0.0


@dataclass
class BrowserConfig:
    """Browser session and page-readiness settings."""
    headless: bool = True
    page_timeout: float = 60.0
    navigation_timeout: float = 30.0
    selector_timeout: float = 15.0
    network_idle_timeout: float = 10.0

    # Content stability polling
    content_selectors: Tuple[str, ...] = (
        '.act-body',
        '.law-details',
        '.p-container-title',
        '.content',
    )
    stability_initial_delay: float = 1.0
    stability_poll_interval: float = 0.5
    stability_checks: int = 3
    stability_timeout: float = 15.0


@dataclass
class TextConfig:
    """Extraction and text-size limits."""
    min_text_length: int = 50
    max_text_length: int = 1_000_000


@dataclass
class BatchConfig:
    """Worklist partitioning settings."""
    batch_size: int = 100
    strategy: str = 'size'
    sort_order: str = 'desc'
    total_workers: int = 10
    min_year: int = 2016
    max_year: int = 2030


@dataclass
class PathsConfig:
    """Input and output locations."""
    input_path: Path = Path('public/all_laws.json')
    output_dir: Path = Path('scraped_laws')
    batch_dir: Path = Path('batches')
    manifest_path: Path = Path('batch-config.json')
    failed_log_path: Path = Path('failed_laws.json')
    progress_path: Path = Path('scraping_progress.json')
    aggregated_path: Path = Path('aggregated_results.json')
    validation_report_path: Path = Path('text_validation_report.json')


@dataclass
class ScraperConfig:
    """Main configuration for the scraper system."""
    concurrency: int = 3
    checkpoint_every: int = 10

    browser: BrowserConfig = field(default_factory=BrowserConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    text: TextConfig = field(default_factory=TextConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)

    @classmethod
    def from_settings(cls, settings: Optional["Settings"] = None) -> "ScraperConfig":
        """
        Build a configuration from environment settings.

        Args:
            settings: Settings instance, read from the environment if None

        Returns:
            ScraperConfig populated from the settings
        """
        settings = settings or Settings()
        return cls(
            concurrency=settings.concurrency,
            browser=BrowserConfig(headless=settings.headless),
            retry=RetryConfig(max_retries=settings.max_retries),
            rate_limit=RateLimitConfig(request_delay=settings.delay_ms / 1000.0),
            batch=BatchConfig(
                batch_size=settings.batch_size,
                strategy=settings.batch_strategy,
                sort_order=settings.sort_order,
                total_workers=settings.total_workers,
            ),
            paths=PathsConfig(
                input_path=Path(settings.input_path),
                output_dir=Path(settings.output_dir),
                batch_dir=Path(settings.batch_dir),
            ),
        )


class Settings(BaseSettings):
    """Environment-driven scraper settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    batch_size: int = 100
    max_retries: int = 3
    concurrency: int = 3
    delay_ms: int = 2000
    headless: bool = True

    input_path: str = "public/all_laws.json"
    output_dir: str = "scraped_laws"
    batch_dir: str = "batches"

    batch_strategy: str = "size"
    sort_order: str = "desc"
    total_workers: int = 10

    # Matrix index when a single batch is run per CI job
    batch_index: int = 0
