"""Failed-attempt counting and temporary blocking per subject."""

import time
from dataclasses import dataclass
from typing import Optional, Tuple

from ignis_auth.auth.store import Clock, InMemoryStore, StateStore
from ignis_auth.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthAttempt:
    """Failure record for one subject (a patient id on a given channel)."""

    subject: str
    failed_count: int
    last_attempt_at: float
    blocked: bool = False


class AttemptTracker:
    """Counts failures and blocks a subject once the threshold is reached.

    A blocked record lifts itself once ``lockout_seconds`` have passed since
    the last failure. Every record expires from the store after the same
    period, so stray failures do not accumulate forever.
    """

    def __init__(
        self,
        max_failures: int = 3,
        lockout_seconds: float = 15 * 60,
        store: Optional[StateStore[AuthAttempt]] = None,
        clock: Clock = time.time,
    ):
        self.max_failures = max_failures
        self.lockout_seconds = lockout_seconds
        self.clock = clock
        self.store: StateStore[AuthAttempt] = store if store is not None else InMemoryStore(clock)

    def _lockout_over(self, attempt: AuthAttempt, now: float) -> bool:
        return now - attempt.last_attempt_at >= self.lockout_seconds

    def record_failure(self, subject: str) -> bool:
        """Count a failure. Returns whether the subject is now blocked."""
        now = self.clock()

        def increment(current: Optional[AuthAttempt]) -> Tuple[AuthAttempt, bool]:
            if current is None or (current.blocked and self._lockout_over(current, now)):
                count = 1
            else:
                count = current.failed_count + 1
            blocked = count >= self.max_failures
            return AuthAttempt(subject, count, now, blocked), blocked

        blocked = self.store.update(subject, increment, ttl_seconds=self.lockout_seconds)
        if blocked:
            logger.warning("subject_blocked", lockout_seconds=self.lockout_seconds)
        return blocked

    def is_blocked(self, subject: str) -> bool:
        """Whether the subject is currently locked out."""
        now = self.clock()

        def check(current: Optional[AuthAttempt]) -> Tuple[Optional[AuthAttempt], bool]:
            if current is None or not current.blocked:
                return current, False
            if self._lockout_over(current, now):
                return None, False
            return current, True

        return self.store.update(subject, check)

    def failed_count(self, subject: str) -> int:
        attempt = self.store.get(subject)
        return attempt.failed_count if attempt else 0

    def clear(self, subject: str) -> None:
        """Forget all failures after a successful authentication."""
        self.store.delete(subject)

    def cleanup(self) -> int:
        return self.store.purge_expired()
