"""
Cache
Namespaced TTL cache consumed by the serving layer; ingestion only invalidates it
"""
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional
from datetime import datetime, timedelta
from threading import Lock
import logging


logger = logging.getLogger(__name__)

NAMESPACE_SEPARATOR = ":"


def namespaced(namespace: str, key: str) -> str:
    return f"{namespace}{NAMESPACE_SEPARATOR}{key}"


class BaseCache(ABC):
    """
    Cache interface

    Keys are ``"<namespace>:<key>"`` strings so whole namespaces can be dropped.
    """

    def __init__(self, ttl: Optional[int] = None):
        """
        Args:
            ttl: default expiry in seconds, None = never expires
        """
        self.ttl = ttl

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass

    @abstractmethod
    def invalidate(self, namespace: str) -> int:
        """Drop every key in ``namespace``; returns how many were removed."""
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def get_or_set(
        self,
        key: str,
        factory: Callable[[], Any],
        ttl: Optional[int] = None,
    ) -> Any:
        value = self.get(key)
        if value is not None:
            return value

        value = factory()
        self.set(key, value, ttl)
        return value


class MemoryCache(BaseCache):
    """
    In-process dictionary cache with per-entry expiry and a size bound
    """

    def __init__(self, ttl: Optional[int] = None, max_size: int = 1000):
        super().__init__(ttl)
        self.max_size = max_size
        self._cache: Dict[str, Dict] = {}
        self._lock = Lock()

    def _is_expired(self, entry: Dict) -> bool:
        if entry.get("expires_at") is None:
            return False
        return datetime.now() > entry["expires_at"]

    def _cleanup(self) -> None:
        expired_keys = [k for k, v in self._cache.items() if self._is_expired(v)]
        for key in expired_keys:
            del self._cache[key]

        # still over the bound: evict oldest
        if len(self._cache) >= self.max_size:
            sorted_keys = sorted(
                self._cache.keys(),
                key=lambda k: self._cache[k].get("created_at", datetime.min),
            )
            for key in sorted_keys[:len(self._cache) - self.max_size + 1]:
                del self._cache[key]

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None

            if self._is_expired(entry):
                del self._cache[key]
                return None

            return entry["value"]

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        with self._lock:
            self._cleanup()

            ttl = ttl or self.ttl
            expires_at = None
            if ttl:
                expires_at = datetime.now() + timedelta(seconds=ttl)

            self._cache[key] = {
                "value": value,
                "created_at": datetime.now(),
                "expires_at": expires_at,
            }

    def delete(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def invalidate(self, namespace: str) -> int:
        prefix = f"{namespace}{NAMESPACE_SEPARATOR}"
        with self._lock:
            doomed = [key for key in self._cache if key == namespace or key.startswith(prefix)]
            for key in doomed:
                del self._cache[key]
        if doomed:
            logger.debug(f"Invalidated {len(doomed)} cache entries in '{namespace}'")
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._cache)
