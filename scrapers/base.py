"""
Base Scraper
Abstract base for search API scrapers
"""
from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar
import logging

import httpx


logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseScraper(ABC, Generic[T]):
    """
    Base class for scrapers.

    Owns a lazily created ``httpx.AsyncClient`` unless one is injected,
    in which case the caller keeps ownership of it.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 15.0):
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    @property
    @abstractmethod
    def name(self) -> str:
        """Scraper name used in logs and error messages"""
        pass

    @abstractmethod
    async def search(self, query) -> T:
        """
        Run one search

        Args:
            query: what to search for

        Returns:
            the scraper's result type
        """
        pass

    def is_configured(self) -> bool:
        """Subclasses override to check API keys and the like"""
        return True

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return self._client

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Release the HTTP client if this scraper created it"""
        if self._client is not None and self._owns_client and not self._client.is_closed:
            await self._client.aclose()
        if self._owns_client:
            self._client = None

    def _log_search(self, query: str, count: int):
        logger.info(f"[{self.name}] Search '{query}' returned {count} results")

    def _log_error(self, message: str, error: Exception):
        logger.error(f"[{self.name}] {message}: {error}")
