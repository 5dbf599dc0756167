"""Fixed-window rate limiting backed by a shared DynamoDB counter.

Counters live in the ``rate-limits`` table, one item per key, with a TTL
attribute so DynamoDB expires stale windows. All Lambda instances share
the same counters, so the limit holds across concurrent invocations.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from parking_core.utils.logging import get_logger

from .dynamodb import RATE_LIMITS_TABLE

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = get_logger(__name__)

DEFAULT_WINDOW_SECONDS = 3600
DEFAULT_MAX_ATTEMPTS = 5


@dataclass
class RateLimitDecision:
    """Whether an action may proceed, and when the window reopens."""

    allowed: bool
    remaining_seconds: int = 0


class RateLimiter:
    """Bounds how often an action may run per key.

    Usage:
        limiter = RateLimiter(db, max_attempts=5, window_seconds=3600)
        if limiter.hit(f"payment-email#{booking_id}").allowed:
            send_email(...)
    """

    def __init__(
        self,
        db: "DynamoDBService",
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.db = db
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock

    def hit(self, key: str) -> RateLimitDecision:
        """Count one attempt for ``key``.

        Args:
            key: Rate limit key (e.g. ``payment-email#<booking_id>``)

        Returns:
            RateLimitDecision; attempts beyond the limit are not counted.
        """
        now = int(self._clock())

        # Within an open window and under the limit: increment
        incremented = self.db.update_item(
            RATE_LIMITS_TABLE,
            {"limit_key": key},
            "SET #count = #count + :one",
            {":one": 1, ":now": now, ":max": self.max_attempts},
            {"#count": "count"},
            condition_expression="attribute_exists(limit_key) AND expires_at > :now AND #count < :max",
        )
        if incremented is not None:
            return RateLimitDecision(allowed=True)

        # No window, or the previous one expired: start a new window
        started = self.db.update_item(
            RATE_LIMITS_TABLE,
            {"limit_key": key},
            "SET #count = :one, window_start = :now, expires_at = :expires",
            {":one": 1, ":now": now, ":expires": now + self.window_seconds},
            {"#count": "count"},
            condition_expression="attribute_not_exists(limit_key) OR expires_at <= :now",
        )
        if started is not None:
            return RateLimitDecision(allowed=True)

        item = self.db.get_item(RATE_LIMITS_TABLE, {"limit_key": key}) or {}
        remaining = max(int(item.get("expires_at", now)) - now, 0)
        logger.warning("Rate limit exceeded for %s, window reopens in %ss", key, remaining)
        return RateLimitDecision(allowed=False, remaining_seconds=remaining)
