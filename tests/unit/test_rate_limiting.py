"""
Unit tests for the mutation rate limiter.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest
from django.core.cache import cache

from okr_guard.rate_limiting import (
    MutationRateLimiter,
    RateLimitRule,
    clear_rate_limiter_cache,
    get_rate_limiter,
)
from okr_guard.rbac import Action

pytestmark = pytest.mark.unit


class FakeClock:
    def __init__(self, now=1_000_020.0):
        self.now = now

    def __call__(self):
        return self.now


def _limiter(clock, limit=3, window=60, **context):
    config = {
        "enabled": True,
        "contexts": {
            "mutation": {
                "rules": [{"name": "burst", "limit": limit, "window_seconds": window}],
                **context,
            }
        },
    }
    return MutationRateLimiter(config, clock=clock)


def test_allows_up_to_the_limit_then_rate_limits():
    clock = FakeClock()
    limiter = _limiter(clock)
    results = [limiter.check("u1", Action.EDIT_OKR) for _ in range(4)]

    assert [r.allowed for r in results] == [True, True, True, False]
    assert results[-1].rule == RateLimitRule(name="burst", limit=3, window_seconds=60)
    assert results[-1].retry_after == 60 - (1_000_020 % 60)


def test_counter_resets_with_the_window():
    clock = FakeClock()
    limiter = _limiter(clock, limit=1)
    assert limiter.check("u1", Action.EDIT_OKR).allowed
    assert not limiter.check("u1", Action.EDIT_OKR).allowed

    clock.now += 60
    assert limiter.check("u1", Action.EDIT_OKR).allowed


def test_counters_are_per_principal():
    clock = FakeClock()
    limiter = _limiter(clock, limit=1)
    assert limiter.check("u1", Action.EDIT_OKR).allowed
    assert limiter.check("u2", Action.EDIT_OKR).allowed
    assert not limiter.check("u1", Action.CREATE_OKR).allowed


def test_reads_are_not_counted():
    clock = FakeClock()
    limiter = _limiter(clock, limit=1)
    for _ in range(5):
        assert limiter.check("u1", Action.VIEW_OKR).allowed
    assert limiter.check("u1", Action.EDIT_OKR).allowed


def test_context_can_target_specific_actions():
    clock = FakeClock()
    config = {
        "contexts": {
            "publishing": {
                "actions": ["publish_okr"],
                "rules": [{"name": "publish", "limit": 1, "window_seconds": 60}],
            }
        }
    }
    limiter = MutationRateLimiter(config, clock=clock)
    assert limiter.context_for(Action.EDIT_OKR) is None
    assert limiter.context_for(Action.PUBLISH_OKR) == "publishing"
    assert limiter.check("u1", Action.PUBLISH_OKR).allowed
    assert not limiter.check("u1", Action.PUBLISH_OKR).allowed
    assert limiter.check("u1", Action.EDIT_OKR).allowed


def test_disabled_context_always_allows():
    limiter = _limiter(FakeClock(), limit=1, enabled=False)
    assert limiter.check("u1", Action.EDIT_OKR).allowed
    assert limiter.check("u1", Action.EDIT_OKR).allowed


def test_default_settings_allow_thirty_per_minute():
    clear_rate_limiter_cache()
    limiter = get_rate_limiter()
    rules = limiter.get_rules("mutation")
    assert rules == [RateLimitRule(name="principal_minute", limit=30, window_seconds=60)]
    assert get_rate_limiter() is limiter


def test_settings_disable_rate_limiting(settings):
    settings.OKR_GUARD = {"rate_limiting": {"enabled": False}}
    clear_rate_limiter_cache()
    limiter = get_rate_limiter()
    assert limiter.is_enabled("mutation") is False


def test_cache_errors_fail_open(monkeypatch):
    from okr_guard import rate_limiting

    def broken_add(*args, **kwargs):
        raise ConnectionError("cache down")

    monkeypatch.setattr(rate_limiting.cache, "add", broken_add)
    limiter = _limiter(FakeClock(), limit=1)
    assert limiter.check("u1", Action.EDIT_OKR).allowed
    assert limiter.check("u1", Action.EDIT_OKR).allowed


def test_concurrent_checks_never_exceed_the_limit():
    limiter = _limiter(FakeClock(), limit=30)
    with ThreadPoolExecutor(max_workers=16) as pool:
        results = list(pool.map(lambda _: limiter.check("u1", Action.EDIT_OKR), range(200)))

    assert sum(1 for r in results if r.allowed) == 30
    assert all(r.retry_after > 0 for r in results if not r.allowed)


def test_denied_request_counts_against_no_rule():
    clock = FakeClock()
    limiter = MutationRateLimiter(
        {
            "contexts": {
                "mutation": {
                    "rules": [
                        {"name": "minute", "limit": 10, "window_seconds": 60},
                        {"name": "burst", "limit": 2, "window_seconds": 10},
                    ]
                }
            }
        },
        clock=clock,
    )
    results = [limiter.check("u1", Action.EDIT_OKR) for _ in range(5)]

    assert [r.allowed for r in results] == [True, True, False, False, False]
    assert results[-1].rule.name == "burst"
    minute_key = f"okr_guard:rl:mutation:minute:u1:{int(clock.now // 60)}"
    burst_key = f"okr_guard:rl:mutation:burst:u1:{int(clock.now // 10)}"
    assert cache.get(minute_key) == 2
    assert cache.get(burst_key) == 2
