"""In-memory run store for ingestion audit records."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, List, Optional
from uuid import uuid4

from core import RunRecord, RunStatusValue
from utils.exceptions import StorageError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_run_id() -> str:
    return f"run_{_utcnow().strftime('%Y%m%d_%H%M%S')}_{uuid4().hex[:8]}"


class RunStore(ABC):
    @abstractmethod
    def create(self, run: RunRecord) -> str:
        pass

    @abstractmethod
    def update(self, run_id: str, **fields: Any) -> RunRecord:
        pass

    @abstractmethod
    def get(self, run_id: str) -> Optional[RunRecord]:
        pass

    @abstractmethod
    def last_successful(self) -> Optional[RunRecord]:
        pass

    @abstractmethod
    def recent(self, limit: int = 10) -> List[RunRecord]:
        pass


class InMemoryRunStore(RunStore):
    """Thread-safe store for run records."""

    def __init__(self) -> None:
        self._runs: Dict[str, RunRecord] = {}
        self._lock = Lock()

    def create(self, run: RunRecord) -> str:
        with self._lock:
            if run.run_id in self._runs:
                raise StorageError("Run already exists", {"run_id": run.run_id})
            self._runs[run.run_id] = run.model_copy(deep=True)
            return run.run_id

    def update(self, run_id: str, **fields: Any) -> RunRecord:
        with self._lock:
            run = self._runs.get(run_id)
            if run is None:
                raise StorageError("Unknown run", {"run_id": run_id})
            updated = run.model_copy(update=fields, deep=True)
            self._runs[run_id] = updated
            return updated.model_copy(deep=True)

    def get(self, run_id: str) -> Optional[RunRecord]:
        with self._lock:
            run = self._runs.get(run_id)
            return run.model_copy(deep=True) if run else None

    def last_successful(self) -> Optional[RunRecord]:
        with self._lock:
            finished = [
                run for run in self._runs.values()
                if run.status == RunStatusValue.SUCCESS
            ]
            if not finished:
                return None
            latest = max(finished, key=lambda run: run.started_at)
            return latest.model_copy(deep=True)

    def recent(self, limit: int = 10) -> List[RunRecord]:
        with self._lock:
            runs = sorted(self._runs.values(), key=lambda run: run.started_at, reverse=True)
            return [run.model_copy(deep=True) for run in runs[:max(0, int(limit))]]
