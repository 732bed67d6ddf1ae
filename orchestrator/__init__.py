"""Run coordination and scheduling for the ingestion pipeline."""

from .service import (
    NO_ACTIVE_SUBJECTS,
    NO_KEYS_CONFIGURED,
    RUN_IN_PROGRESS,
    IngestionCoordinator,
    build_default_coordinator,
)
from .scheduler import IngestionScheduler

__all__ = [
    "NO_ACTIVE_SUBJECTS",
    "NO_KEYS_CONFIGURED",
    "RUN_IN_PROGRESS",
    "IngestionCoordinator",
    "IngestionScheduler",
    "build_default_coordinator",
]
