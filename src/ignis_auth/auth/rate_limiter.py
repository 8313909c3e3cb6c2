"""Per-identifier issuance rate limiting over a rolling window."""

import math
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from ignis_auth.auth.store import Clock, InMemoryStore, StateStore
from ignis_auth.utils.identifiers import normalize_identifier


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after_seconds: int = 0
    remaining: int = 0


class IssuanceRateLimiter:
    """Allows at most ``limit`` token requests per identifier per window.

    Identifiers are normalized (lowercased, whitespace removed) so spelling
    variants share one budget. Checking and recording happen in a single
    atomic store update.
    """

    def __init__(
        self,
        limit: int = 3,
        window_seconds: float = 60 * 60,
        store: Optional[StateStore[Tuple[float, ...]]] = None,
        clock: Clock = time.time,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self.clock = clock
        self.store: StateStore[Tuple[float, ...]] = (
            store if store is not None else InMemoryStore(clock)
        )

    def acquire(self, identifier: str) -> RateLimitDecision:
        """Record a request for identifier if the window still has room."""
        key = normalize_identifier(identifier)
        now = self.clock()

        def take(
            current: Optional[Tuple[float, ...]]
        ) -> Tuple[Optional[Tuple[float, ...]], RateLimitDecision]:
            recent = tuple(t for t in current or () if now - t < self.window_seconds)
            if len(recent) >= self.limit:
                retry_after = max(1, math.ceil(recent[0] + self.window_seconds - now))
                return recent, RateLimitDecision(False, retry_after_seconds=retry_after)
            updated = recent + (now,)
            return updated, RateLimitDecision(True, remaining=self.limit - len(updated))

        return self.store.update(key, take, ttl_seconds=self.window_seconds)

    def cleanup(self) -> int:
        return self.store.purge_expired()
