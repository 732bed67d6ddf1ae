"""
Storage Module
Subject, article and run stores plus the namespaced cache
"""
from .cache import BaseCache, MemoryCache, namespaced
from .article_store import ArticleStore, InMemoryArticleStore
from .run_store import InMemoryRunStore, RunStore, new_run_id
from .subject_store import InMemorySubjectStore, SubjectStore

__all__ = [
    # Cache
    "BaseCache",
    "MemoryCache",
    "namespaced",
    # Stores
    "ArticleStore",
    "InMemoryArticleStore",
    "InMemoryRunStore",
    "RunStore",
    "new_run_id",
    "InMemorySubjectStore",
    "SubjectStore",
]
