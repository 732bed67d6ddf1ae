"""
Custom Exceptions
"""
from typing import Optional


class CuratorError(Exception):
    """Base error for the ingestion pipeline"""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(CuratorError):
    """Missing or invalid configuration"""
    pass


class ValidationError(CuratorError):
    """Invalid caller input"""
    pass


class ScraperError(CuratorError):
    """Search API error"""

    def __init__(self, message: str, source: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.source = source


class TransientFetchError(ScraperError):
    """Retryable fetch failure (network, timeout, 5xx, API error body)"""

    def __init__(self, message: str, source: str = None, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, source, status_code=status_code, **kwargs)
        self.status_code = status_code


class RateLimitedError(TransientFetchError):
    """HTTP 429 from the search API"""

    def __init__(self, message: str, source: str = None, retry_after: Optional[float] = None, **kwargs):
        super().__init__(message, source, status_code=429, retry_after=retry_after, **kwargs)
        self.retry_after = retry_after


class InvalidCredentialError(TransientFetchError):
    """The API rejected the key itself; another key may still work"""
    pass


class CredentialExhaustedError(ScraperError):
    """No eligible API key left"""
    pass


class StorageError(CuratorError):
    """Store read/write error"""
    pass
