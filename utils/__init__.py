"""
Utils Module
"""
from .logger import configure_package_loggers, setup_logger
from .exceptions import (
    ConfigurationError,
    CredentialExhaustedError,
    CuratorError,
    InvalidCredentialError,
    RateLimitedError,
    ScraperError,
    StorageError,
    TransientFetchError,
    ValidationError,
)

__all__ = [
    "configure_package_loggers",
    "setup_logger",
    "ConfigurationError",
    "CredentialExhaustedError",
    "CuratorError",
    "InvalidCredentialError",
    "RateLimitedError",
    "ScraperError",
    "StorageError",
    "TransientFetchError",
    "ValidationError",
]
