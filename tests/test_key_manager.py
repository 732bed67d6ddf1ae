from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from credentials import ApiKeyManager, KeyValidation, NewsApiKeyValidator, make_key_id


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class ScriptedValidator:
    """Returns a fixed outcome per key and counts calls."""

    def __init__(self, outcomes):
        self.outcomes = outcomes
        self.calls = []

    async def __call__(self, api_key: str) -> KeyValidation:
        self.calls.append(api_key)
        outcome = self.outcomes.get(api_key, KeyValidation(is_valid=True))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))


def _record(manager: ApiKeyManager, key: str):
    return next(record for record in manager.statuses() if record.key == key)


def test_make_key_id_truncates() -> None:
    assert make_key_id("abcdefghijklmnop") == "abcdefgh..."


def test_duplicate_and_blank_keys_are_ignored(clock) -> None:
    manager = ApiKeyManager(["key-a", "", "key-a", "key-b"], clock=clock)
    assert len(manager) == 2
    assert [record.index for record in manager.statuses()] == [0, 1]


@pytest.mark.asyncio
async def test_select_best_prefers_registration_order_on_ties(clock) -> None:
    manager = ApiKeyManager(["key-a", "key-b"], clock=clock)

    best = await manager.select_best()

    assert best is not None
    assert best.key == "key-a"
    assert _record(manager, "key-a").total_requests == 1
    assert _record(manager, "key-a").last_used == clock.now


@pytest.mark.asyncio
async def test_select_best_prefers_higher_health(clock) -> None:
    manager = ApiKeyManager(["key-a", "key-b"], clock=clock)
    manager.report("key-a", success=False)

    best = await manager.select_best()

    assert best.key == "key-b"


def test_success_report_caps_health_and_resets_streak(clock) -> None:
    manager = ApiKeyManager(["key-a"], clock=clock)
    manager.report("key-a", success=False)
    manager.report("key-a", success=True)

    record = _record(manager, "key-a")
    assert record.health_score == 92
    assert record.consecutive_failures == 0
    assert record.successful_requests == 1

    for _ in range(10):
        manager.report("key-a", success=True)
    assert _record(manager, "key-a").health_score == 100


@pytest.mark.asyncio
async def test_rate_limited_report_sets_cooldown_and_lowers_health(clock) -> None:
    manager = ApiKeyManager(["key-a", "key-b"], clock=clock)

    manager.report("key-a", success=False, rate_limited=True)

    record = _record(manager, "key-a")
    assert record.is_rate_limited
    assert record.cooldown_until == clock.now + timedelta(hours=1)
    assert record.health_score == 70
    assert record.rate_limited_count == 1

    for _ in range(5):
        best = await manager.select_best()
        assert best.key == "key-b"


@pytest.mark.asyncio
async def test_cooldown_key_is_never_selected_until_expiry(clock) -> None:
    manager = ApiKeyManager(["key-a"], clock=clock)
    manager.report("key-a", success=False, rate_limited=True)

    assert await manager.select_best() is None
    assert not await manager.has_available()

    clock.advance(minutes=59)
    assert await manager.select_best() is None

    clock.advance(minutes=1)
    best = await manager.select_best()
    assert best is not None
    record = _record(manager, "key-a")
    assert not record.is_rate_limited
    assert record.cooldown_until is None
    assert record.health_score == 80


def test_consecutive_failures_invalidate_key(clock) -> None:
    manager = ApiKeyManager(["key-a"], clock=clock, max_consecutive_failures=3)

    manager.report("key-a", success=False)
    manager.report("key-a", success=False)
    assert _record(manager, "key-a").is_valid

    manager.report("key-a", success=False)
    record = _record(manager, "key-a")
    assert not record.is_valid
    assert record.health_score == 70


@pytest.mark.asyncio
async def test_no_eligible_key_returns_none(clock) -> None:
    manager = ApiKeyManager(["key-a", "key-b"], clock=clock)
    manager.mark_invalid("key-a", "apiKeyInvalid")
    manager.mark_invalid("key-b", "apiKeyDisabled")

    assert await manager.select_best() is None
    assert _record(manager, "key-a").health_score == 0


@pytest.mark.asyncio
async def test_has_available_does_not_record_usage(clock) -> None:
    manager = ApiKeyManager(["key-a"], clock=clock)

    assert await manager.has_available()
    assert _record(manager, "key-a").total_requests == 0


@pytest.mark.asyncio
async def test_next_best_excludes_given_key(clock) -> None:
    manager = ApiKeyManager(["key-a", "key-b"], clock=clock)
    current = await manager.select_best()

    other = await manager.next_best(current)

    assert other.key == "key-b"
    assert await ApiKeyManager(["key-a"], clock=clock).next_best("key-a") is None


@pytest.mark.asyncio
async def test_health_check_is_throttled(clock) -> None:
    validator = ScriptedValidator({})
    manager = ApiKeyManager(["key-a", "key-b"], validator=validator, clock=clock, health_check_interval=300)

    await manager.select_best()
    await manager.select_best()
    assert len(validator.calls) == 2

    clock.advance(minutes=4)
    await manager.select_best()
    assert len(validator.calls) == 2

    clock.advance(minutes=1)
    await manager.select_best()
    assert len(validator.calls) == 4


@pytest.mark.asyncio
async def test_health_check_nudges_scores(clock) -> None:
    validator = ScriptedValidator(
        {
            "key-valid": KeyValidation(is_valid=True),
            "key-invalid": KeyValidation(is_valid=False, error="INVALID_KEY"),
            "key-limited": KeyValidation(is_valid=False, is_rate_limited=True, error="RATE_LIMITED"),
            "key-broken": RuntimeError("boom"),
        }
    )
    manager = ApiKeyManager(
        ["key-valid", "key-invalid", "key-limited", "key-broken"],
        validator=validator,
        clock=clock,
    )
    for key in ("key-valid", "key-invalid", "key-limited", "key-broken"):
        manager.report(key, success=False)

    await manager.force_health_check()

    valid = _record(manager, "key-valid")
    assert valid.health_score == 95
    assert valid.is_valid
    assert valid.consecutive_failures == 0
    assert valid.last_checked == clock.now

    invalid = _record(manager, "key-invalid")
    assert invalid.health_score == 85
    assert not invalid.is_valid

    limited = _record(manager, "key-limited")
    assert limited.is_valid
    assert limited.is_rate_limited
    assert limited.cooldown_until == clock.now + timedelta(hours=1)

    broken = _record(manager, "key-broken")
    assert broken.health_score == 80


@pytest.mark.asyncio
async def test_clean_health_check_lifts_rate_limit(clock) -> None:
    validator = ScriptedValidator({"key-a": KeyValidation(is_valid=True)})
    manager = ApiKeyManager(["key-a"], validator=validator, clock=clock)
    manager.report("key-a", success=False, rate_limited=True)
    assert _record(manager, "key-a").is_rate_limited

    clock.advance(minutes=10)
    await manager.force_health_check()

    record = _record(manager, "key-a")
    assert not record.is_rate_limited
    assert record.cooldown_until is None
    best = await manager.select_best()
    assert best is not None and best.key == "key-a"


@pytest.mark.asyncio
async def test_health_check_revalidates_invalidated_key(clock) -> None:
    validator = ScriptedValidator({})
    manager = ApiKeyManager(["key-a"], validator=validator, clock=clock, max_consecutive_failures=3)
    await manager.force_health_check()
    for _ in range(3):
        manager.report("key-a", success=False)
    assert await manager.select_best() is None

    clock.advance(minutes=5)
    best = await manager.select_best()

    assert best is not None
    assert _record(manager, "key-a").is_valid


def test_statistics_summary_and_daily_reset(clock) -> None:
    manager = ApiKeyManager(["key-a-123456", "key-b-123456"], clock=clock)
    manager.report("key-a-123456", success=True)
    manager.report("key-b-123456", success=False, rate_limited=True)

    summary = manager.health_summary()
    assert summary == {
        "total_keys": 2,
        "healthy_keys": 1,
        "rate_limited_keys": 1,
        "invalid_keys": 0,
        "average_health_score": 85,
    }

    stats = manager.usage_statistics()
    assert set(stats) == {"key-a-12...", "key-b-12..."}
    assert stats["key-b-12..."]["rate_limit_events"] == 1

    manager.reset_daily_statistics()
    record = _record(manager, "key-b-123456")
    assert record.rate_limited_count == 0
    assert record.successful_requests == 0
    assert record.health_score == 70


def test_statuses_are_copies(clock) -> None:
    manager = ApiKeyManager(["secretkey-123456789"], clock=clock)
    snapshot = manager.statuses()[0]
    snapshot.health_score = 1

    assert _record(manager, "secretkey-123456789").health_score == 100
    assert "secretkey-123456789" not in repr(snapshot)
    assert snapshot.key_id in repr(snapshot)


def _validator_for(handler) -> NewsApiKeyValidator:
    return NewsApiKeyValidator(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.mark.asyncio
async def test_validator_probes_with_minimal_query() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"status": "ok", "totalResults": 1, "articles": []})

    result = await _validator_for(handler)("key-a")

    assert result.is_valid
    assert seen[0].url.params["q"] == "test"
    assert seen[0].url.params["pageSize"] == "1"
    assert seen[0].headers["X-Api-Key"] == "key-a"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,body,error,rate_limited",
    [
        (429, {"status": "error", "code": "rateLimited"}, "RATE_LIMITED", True),
        (401, {"status": "error", "code": "apiKeyInvalid"}, "INVALID_KEY", False),
        (500, {"status": "error", "code": "unexpectedError"}, "unexpectedError", False),
    ],
)
async def test_validator_classifies_failures(status, body, error, rate_limited) -> None:
    result = await _validator_for(lambda request: httpx.Response(status, json=body))("key-a")

    assert not result.is_valid
    assert result.error == error
    assert result.is_rate_limited is rate_limited


@pytest.mark.asyncio
async def test_validator_reports_network_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    result = await _validator_for(handler)("key-a")

    assert not result.is_valid
    assert result.error == "NETWORK_ERROR"
