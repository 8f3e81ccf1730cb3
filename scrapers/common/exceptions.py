"""Common exception classes for scrapers."""

from typing import Optional


class ScraperError(Exception):
    """Base exception for scraper errors."""
    pass


class NetworkError(ScraperError):
    """Network-related errors, including non-2xx responses."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParsingError(ScraperError):
    """Data parsing errors."""
    pass


class PayloadDecodeError(ParsingError):
    """Embedded page-state payload missing, unrecognized or malformed."""
    pass


class ValidationError(ScraperError):
    """Data validation errors."""
    pass


class ConfigurationError(ScraperError):
    """Configuration errors."""
    pass
