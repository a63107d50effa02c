"""Tests for rate limit state and the 429 retry budget."""

import pytest

from overwatch.app.providers.rate_limit import RateLimitRegistry, RateState
from overwatch.app.providers.retry import RetryBudget


class TestRateState:
    def test_cooldown_remaining(self):
        state = RateState(remaining=5, reset_time=0, blocked_until=110.0)

        assert state.cooldown_remaining(100.0) == 10.0
        assert state.cooldown_remaining(120.0) == 0.0

    def test_proactive_wait_only_when_exhausted(self):
        state = RateState(remaining=1, reset_time=105.0)
        assert state.proactive_wait(100.0, 0.1) == 0.0

        state.remaining = 0
        assert state.proactive_wait(100.0, 0.1) == pytest.approx(5.1)

        # Reset already passed
        assert state.proactive_wait(106.0, 0.1) == 0.0

    def test_alert_due(self):
        state = RateState(remaining=0, reset_time=0, last_alert_time=1000.0)

        assert not state.alert_due(1100.0, 120)
        assert state.alert_due(1121.0, 120)


class TestRateLimitRegistry:
    def test_lazy_state_defaults(self):
        registry = RateLimitRegistry(default_budget=35, clock=lambda: 500.0)

        assert "abc" not in registry
        state = registry.get_state("abc")

        assert "abc" in registry
        assert state.remaining == 35
        assert state.reset_time == 501.0
        assert registry.get_state("abc") is state

    def test_lock_per_key(self):
        registry = RateLimitRegistry()

        assert registry.get_lock("a") is registry.get_lock("a")
        assert registry.get_lock("a") is not registry.get_lock("b")

    def test_update_from_headers(self):
        registry = RateLimitRegistry(clock=lambda: 500.0)

        state = registry.update_from_headers(
            "abc", {"X-RateLimit-Remaining": "3", "X-RateLimit-Reset": "560"}
        )

        assert state.remaining == 3
        assert state.reset_time == 560.0

    def test_malformed_headers_are_ignored(self):
        registry = RateLimitRegistry(default_budget=35, clock=lambda: 500.0)

        state = registry.update_from_headers(
            "abc", {"X-RateLimit-Remaining": "lots", "X-RateLimit-Reset": ""}
        )

        assert state.remaining == 35
        assert state.reset_time == 501.0

    def test_reset_budget(self):
        registry = RateLimitRegistry(default_budget=35)
        registry.get_state("abc").remaining = 0

        registry.reset_budget("abc")

        assert registry.get_state("abc").remaining == 35


class TestRetryBudget:
    def test_defaults(self):
        budget = RetryBudget()

        assert budget.max_attempts == 3
        assert budget.default_retry_after == 5.0

    def test_should_retry(self):
        budget = RetryBudget(max_attempts=3)

        assert budget.should_retry(1)
        assert budget.should_retry(2)
        assert not budget.should_retry(3)

    def test_invalid_budget(self):
        with pytest.raises(ValueError):
            RetryBudget(max_attempts=0)

    @pytest.mark.parametrize(("body", "expected"), [
        ({"retry_after": 7}, 7.0),
        ({"retry_after": "2.5"}, 2.5),
        ({"retry_after": 0}, 5.0),
        ({"retry_after": "soon"}, 5.0),
        ({}, 5.0),
        ([], 5.0),
        (None, 5.0),
    ])
    def test_parse_retry_after(self, body, expected):
        assert RetryBudget(default_retry_after=5.0).parse_retry_after(body) == expected
