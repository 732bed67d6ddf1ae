"""
Scrapers Module
"""
from .base import BaseScraper
from .newsapi_scraper import NO_HEALTHY_KEYS, NewsApiScraper, parse_retry_after, source_domain

__all__ = [
    "BaseScraper",
    "NO_HEALTHY_KEYS",
    "NewsApiScraper",
    "parse_retry_after",
    "source_domain",
]
