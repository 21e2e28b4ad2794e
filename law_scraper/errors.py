"""
Exception types raised by the scraping pipeline.
"""


class ScraperError(Exception):
    """Base class for all scraper errors."""


class ConfigurationError(ScraperError):
    """Missing input, empty worklist or unusable batch configuration."""


class ExtractionError(ScraperError):
    """A page could not be loaded or yielded no usable content."""


class ContentValidationError(ScraperError):
    """Extracted text was rejected by the text validator."""

    def __init__(self, message: str, validation=None):
        super().__init__(message)
        self.validation = validation
