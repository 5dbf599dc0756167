"""Unit tests for the DynamoDB-backed RateLimiter."""

import time

import pytest

from parking_core.services.rate_limiter import RateLimiter
from webhook_helpers import table


@pytest.fixture
def limiter(db) -> RateLimiter:
    return RateLimiter(db, max_attempts=3, window_seconds=60)


class TestRateLimiter:
    def test_allows_up_to_max_attempts(self, limiter):
        decisions = [limiter.hit("payment-email#b1") for _ in range(3)]
        assert all(d.allowed for d in decisions)

    def test_denies_beyond_max_attempts(self, limiter):
        for _ in range(3):
            limiter.hit("payment-email#b1")

        decision = limiter.hit("payment-email#b1")

        assert decision.allowed is False
        assert 0 < decision.remaining_seconds <= 60
        # Denied attempts are not counted
        assert table("rate-limits").get_item(Key={"limit_key": "payment-email#b1"})["Item"]["count"] == 3

    def test_keys_are_independent(self, limiter):
        for _ in range(3):
            limiter.hit("payment-email#b1")

        assert limiter.hit("payment-email#b2").allowed is True

    def test_window_expiry_starts_new_window(self, db):
        now = [1_800_000_000.0]
        limiter = RateLimiter(db, max_attempts=3, window_seconds=60, clock=lambda: now[0])
        for _ in range(4):
            limiter.hit("payment-email#b1")

        now[0] += 61
        decision = limiter.hit("payment-email#b1")

        assert decision.allowed is True
        item = table("rate-limits").get_item(Key={"limit_key": "payment-email#b1"})["Item"]
        assert item["count"] == 1
        assert item["window_start"] == 1_800_000_061
        assert item["expires_at"] == 1_800_000_121

    def test_item_carries_ttl_attribute(self, limiter):
        before = int(time.time())
        limiter.hit("payment-email#b1")

        item = table("rate-limits").get_item(Key={"limit_key": "payment-email#b1"})["Item"]
        assert before + 60 <= item["expires_at"] <= int(time.time()) + 60

    def test_defaults_are_five_per_hour(self, db):
        limiter = RateLimiter(db)
        assert limiter.max_attempts == 5
        assert limiter.window_seconds == 3600
