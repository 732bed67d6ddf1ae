"""Article persistence interface and in-memory implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from threading import Lock
from typing import Dict, List, Optional, Sequence

from core import ScoredArticle
from utils.exceptions import StorageError


class ArticleStore(ABC):
    """URL-keyed article persistence."""

    @abstractmethod
    def exists_by_url(self, url: str) -> bool:
        pass

    @abstractmethod
    def insert_many(self, articles: Sequence[ScoredArticle]) -> int:
        """Insert articles and return how many were stored."""
        pass


class InMemoryArticleStore(ArticleStore):
    """Thread-safe article store keyed by URL, keeping insertion order."""

    def __init__(self) -> None:
        self._articles: Dict[str, ScoredArticle] = {}
        self._lock = Lock()

    def exists_by_url(self, url: str) -> bool:
        with self._lock:
            return str(url or "").strip() in self._articles

    def insert_many(self, articles: Sequence[ScoredArticle]) -> int:
        inserted = 0
        with self._lock:
            for article in articles:
                url = str(article.url or "").strip()
                if not url:
                    raise StorageError("Article without URL cannot be stored", {"title": article.title})
                if url in self._articles:
                    continue
                self._articles[url] = article.model_copy(deep=True)
                inserted += 1
        return inserted

    def get(self, url: str) -> Optional[ScoredArticle]:
        with self._lock:
            article = self._articles.get(url)
            return article.model_copy(deep=True) if article else None

    def list_all(self) -> List[ScoredArticle]:
        with self._lock:
            return [article.model_copy(deep=True) for article in self._articles.values()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._articles)
