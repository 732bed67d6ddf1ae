"""
API Key Manager
Health-scored rotation over a pool of search API keys
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Union
import logging

from .validator import KeyValidation


logger = logging.getLogger(__name__)

KeyValidatorFn = Callable[[str], Awaitable[KeyValidation]]
Clock = Callable[[], datetime]

MAX_HEALTH = 100
SUCCESS_BONUS = 2
FAILURE_PENALTY = 10
RATE_LIMIT_PENALTY = 20
COOLDOWN_RECOVERY = 10
CHECK_VALID_BONUS = 5
CHECK_INVALID_PENALTY = 5
CHECK_ERROR_PENALTY = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def make_key_id(key: str) -> str:
    """Loggable identifier: first 8 chars only."""
    return f"{str(key)[:8]}..."


def _clamp_health(value: int) -> int:
    return max(0, min(MAX_HEALTH, int(value)))


@dataclass
class CredentialRecord:
    """Mutable health state of one API key."""

    key: str = field(repr=False)
    key_id: str
    index: int
    is_valid: bool = True
    is_rate_limited: bool = False
    consecutive_failures: int = 0
    total_requests: int = 0
    successful_requests: int = 0
    rate_limited_count: int = 0
    health_score: int = MAX_HEALTH
    cooldown_until: Optional[datetime] = None
    last_used: Optional[datetime] = None
    last_checked: Optional[datetime] = None

    @property
    def is_preferred(self) -> bool:
        return self.index == 0

    def in_cooldown(self, now: datetime) -> bool:
        return bool(self.is_rate_limited and self.cooldown_until and now < self.cooldown_until)


class ApiKeyManager:
    """
    Selects the healthiest key per call and tracks outcomes.

    Selection order:
    - invalid keys and keys in cooldown are excluded
    - not rate-limited before rate-limited
    - higher health score first
    - registration order breaks ties (primary key preferred)

    Outcome bookkeeping:
    - success: +2 health, failure streak reset
    - failure: -10 health, failure streak +1
    - rate limited: extra -20 and a cooldown window
    - a streak of ``max_consecutive_failures`` invalidates the key until a
      health check validates it again
    """

    def __init__(
        self,
        keys: Iterable[str],
        *,
        validator: Optional[KeyValidatorFn] = None,
        health_check_interval: float = 300.0,
        max_consecutive_failures: int = 3,
        rate_limit_cooldown: float = 3600.0,
        clock: Clock = _utcnow,
    ):
        self._records: Dict[str, CredentialRecord] = {}
        for key in keys:
            key = str(key or "").strip()
            if not key or key in self._records:
                continue
            self._records[key] = CredentialRecord(
                key=key,
                key_id=make_key_id(key),
                index=len(self._records),
            )

        self._validator = validator
        self._health_check_interval = timedelta(seconds=max(0.0, float(health_check_interval)))
        self._max_consecutive_failures = max(1, int(max_consecutive_failures))
        self._cooldown = timedelta(seconds=max(0.0, float(rate_limit_cooldown)))
        self._clock = clock
        self._last_health_check: Optional[datetime] = None
        self._lock = Lock()
        self._check_lock = asyncio.Lock()

        logger.info(f"Initialized {len(self._records)} API keys for management")

    @classmethod
    def from_settings(cls, settings, validator: Optional[KeyValidatorFn] = None) -> "ApiKeyManager":
        """Build from the root Settings object."""
        return cls(
            settings.news_api.api_keys(),
            validator=validator,
            health_check_interval=settings.keys.health_check_interval,
            max_consecutive_failures=settings.keys.max_consecutive_failures,
            rate_limit_cooldown=settings.keys.rate_limit_cooldown,
        )

    def __len__(self) -> int:
        return len(self._records)

    @property
    def cooldown(self) -> timedelta:
        return self._cooldown

    # ------------------------------------------------------------------ selection

    def _refresh_cooldown(self, record: CredentialRecord, now: datetime) -> None:
        """Clear an elapsed cooldown. Caller holds the lock."""
        if record.is_rate_limited and record.cooldown_until and now >= record.cooldown_until:
            record.is_rate_limited = False
            record.cooldown_until = None
            record.health_score = _clamp_health(record.health_score + COOLDOWN_RECOVERY)
            logger.info(f"API key {record.key_id} cooldown period ended")

    def _eligible(self, now: datetime, exclude: Optional[str] = None) -> List[CredentialRecord]:
        """Caller holds the lock."""
        candidates = []
        for record in self._records.values():
            self._refresh_cooldown(record, now)
            if not record.is_valid or record.in_cooldown(now):
                continue
            if exclude is not None and record.key == exclude:
                continue
            candidates.append(record)
        return sorted(
            candidates,
            key=lambda r: (r.is_rate_limited, -r.health_score, r.index),
        )

    async def select_best(self) -> Optional[CredentialRecord]:
        """
        Pick the key for the next request and record its use.

        Returns None when no key is eligible; callers treat that as
        "cannot fetch this cycle", not as an error.
        """
        await self.perform_health_check_if_needed()

        with self._lock:
            now = self._clock()
            ranked = self._eligible(now)
            if not ranked:
                logger.error("No healthy API keys available")
                return None
            best = ranked[0]
            best.total_requests += 1
            best.last_used = now

        logger.debug(f"Selected API key {best.key_id} (health: {best.health_score})")
        return best

    async def has_available(self) -> bool:
        """Eligibility preflight; does not count as a request."""
        await self.perform_health_check_if_needed()
        with self._lock:
            return bool(self._eligible(self._clock()))

    async def next_best(self, exclude: Optional[Union[str, CredentialRecord]] = None) -> Optional[CredentialRecord]:
        """Best key other than ``exclude``, for explicit rotation."""
        await self.perform_health_check_if_needed()
        exclude_key = exclude.key if isinstance(exclude, CredentialRecord) else exclude
        with self._lock:
            ranked = self._eligible(self._clock(), exclude=exclude_key)
        if not ranked:
            logger.warning("No alternative API keys available for rotation")
            return None
        logger.info(f"Rotating to API key {ranked[0].key_id} (health: {ranked[0].health_score})")
        return ranked[0]

    def reclaim(self, credential: Union[str, CredentialRecord]) -> Optional[CredentialRecord]:
        """
        Hand a rate-limited key back for one retry once the server's
        Retry-After has been waited out. The cooldown stays in place, so
        select_best() keeps skipping the key.
        """
        record = self._resolve(credential)
        if record is None:
            return None
        with self._lock:
            if not record.is_valid:
                return None
            record.total_requests += 1
            record.last_used = self._clock()
        logger.info(f"Retrying rate-limited API key {record.key_id} after its retry-after wait")
        return record

    # ------------------------------------------------------------------ outcomes

    def _resolve(self, credential: Union[str, CredentialRecord]) -> Optional[CredentialRecord]:
        key = credential.key if isinstance(credential, CredentialRecord) else str(credential)
        return self._records.get(key)

    def report(
        self,
        credential: Union[str, CredentialRecord],
        *,
        success: bool,
        rate_limited: bool = False,
    ) -> None:
        """Record the outcome of one request made with ``credential``."""
        record = self._resolve(credential)
        if record is None:
            key = credential.key if isinstance(credential, CredentialRecord) else str(credential)
            logger.warning(f"Unknown API key reported: {make_key_id(key)}")
            return

        with self._lock:
            now = self._clock()
            if success:
                record.successful_requests += 1
                record.consecutive_failures = 0
                record.health_score = _clamp_health(record.health_score + SUCCESS_BONUS)
            else:
                record.consecutive_failures += 1
                record.health_score = _clamp_health(record.health_score - FAILURE_PENALTY)

            if rate_limited:
                record.is_rate_limited = True
                record.rate_limited_count += 1
                record.cooldown_until = now + self._cooldown
                record.health_score = _clamp_health(record.health_score - RATE_LIMIT_PENALTY)
                logger.warning(
                    f"API key {record.key_id} rate limited "
                    f"(cooldown until {record.cooldown_until.isoformat(timespec='seconds')})"
                )

            if record.is_valid and record.consecutive_failures >= self._max_consecutive_failures:
                record.is_valid = False
                logger.error(
                    f"API key {record.key_id} marked as invalid after "
                    f"{self._max_consecutive_failures} consecutive failures"
                )

            record.last_used = now

    def mark_invalid(self, credential: Union[str, CredentialRecord], reason: str) -> None:
        """Invalidate a key the API rejected outright."""
        record = self._resolve(credential)
        if record is None:
            return
        with self._lock:
            record.is_valid = False
            record.health_score = 0
        logger.error(f"API key {record.key_id} marked as invalid: {reason}")

    # ------------------------------------------------------------------ health checks

    def _health_check_due(self, now: datetime) -> bool:
        if self._last_health_check is None:
            return True
        return now - self._last_health_check >= self._health_check_interval

    async def perform_health_check_if_needed(self) -> None:
        """Validate every key, at most once per health-check interval."""
        if self._validator is None:
            return
        if not self._health_check_due(self._clock()):
            return

        async with self._check_lock:
            now = self._clock()
            if not self._health_check_due(now):
                return
            self._last_health_check = now
            logger.info("Performing API key health check...")

            records = list(self._records.values())
            results = await asyncio.gather(
                *[self._validator(record.key) for record in records],
                return_exceptions=True,
            )

            with self._lock:
                now = self._clock()
                for record, result in zip(records, results):
                    self._apply_validation(record, result, now)
                healthy = sum(1 for r in self._records.values() if r.is_valid and not r.is_rate_limited)

            logger.info(f"Health check complete: {healthy}/{len(self._records)} keys healthy")

    def _apply_validation(self, record: CredentialRecord, result, now: datetime) -> None:
        """Caller holds the lock."""
        record.last_checked = now
        if isinstance(result, BaseException):
            logger.error(f"Health check failed for key {record.key_id}: {result}")
            record.health_score = _clamp_health(record.health_score - CHECK_ERROR_PENALTY)
            return

        if result.is_rate_limited:
            # rate limited implies the key itself is accepted
            record.is_valid = True
            record.is_rate_limited = True
            record.cooldown_until = now + self._cooldown
            return

        record.is_valid = bool(result.is_valid)
        if result.is_valid:
            # a clean probe means the quota is back
            record.is_rate_limited = False
            record.cooldown_until = None
            record.health_score = _clamp_health(record.health_score + CHECK_VALID_BONUS)
            record.consecutive_failures = 0
        else:
            record.health_score = _clamp_health(record.health_score - CHECK_INVALID_PENALTY)
            logger.warning(f"API key {record.key_id} failed validation: {result.error or 'unknown'}")

    async def force_health_check(self) -> None:
        """Run a health check now, ignoring the throttle."""
        self._last_health_check = None
        await self.perform_health_check_if_needed()

    # ------------------------------------------------------------------ reporting

    def statuses(self) -> List[CredentialRecord]:
        """Copies of every record in registration order."""
        with self._lock:
            now = self._clock()
            for record in self._records.values():
                self._refresh_cooldown(record, now)
            return [replace(record) for record in sorted(self._records.values(), key=lambda r: r.index)]

    def usage_statistics(self) -> Dict[str, Dict[str, object]]:
        stats: Dict[str, Dict[str, object]] = {}
        with self._lock:
            for record in self._records.values():
                success_rate = (
                    record.successful_requests / record.total_requests * 100
                    if record.total_requests
                    else 0.0
                )
                stats[record.key_id] = {
                    "total_requests": record.total_requests,
                    "success_rate": round(success_rate, 1),
                    "rate_limit_events": record.rate_limited_count,
                    "cooldown_until": record.cooldown_until,
                }
        return stats

    def reset_daily_statistics(self) -> None:
        """Zero the request counters; health and failure streaks are kept."""
        with self._lock:
            for record in self._records.values():
                record.total_requests = 0
                record.successful_requests = 0
                record.rate_limited_count = 0
        logger.info("Daily API key statistics reset")

    def health_summary(self) -> Dict[str, int]:
        with self._lock:
            records = list(self._records.values())
            total = len(records)
            return {
                "total_keys": total,
                "healthy_keys": sum(1 for r in records if r.is_valid and not r.is_rate_limited),
                "rate_limited_keys": sum(1 for r in records if r.is_rate_limited),
                "invalid_keys": sum(1 for r in records if not r.is_valid),
                "average_health_score": round(sum(r.health_score for r in records) / total) if total else 0,
            }
