"""Keyed state storage with expiry and atomic updates.

Token, rate-limit and attempt state all live behind ``StateStore`` so the
in-memory implementation can be replaced by a shared backend when the
service runs on more than one instance.
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Generic, Optional, Tuple, TypeVar

V = TypeVar("V")
R = TypeVar("R")

Clock = Callable[[], float]

# Mutation applied under the store lock: receives the current value (or None)
# and returns the new value (None deletes the entry) together with a result.
Mutation = Callable[[Optional[V]], Tuple[Optional[V], R]]


class StateStore(ABC, Generic[V]):
    """Key-value store whose entries may expire."""

    @abstractmethod
    def get(self, key: str) -> Optional[V]:
        """Return the live value for key."""

    @abstractmethod
    def put(self, key: str, value: V, ttl_seconds: Optional[float] = None) -> None:
        """Store a value, replacing any existing one."""

    @abstractmethod
    def add(self, key: str, value: V, ttl_seconds: Optional[float] = None) -> bool:
        """Store a value only if the key holds no live value."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove a key. Returns whether it held a live value."""

    @abstractmethod
    def update(
        self, key: str, mutation: "Mutation[V, R]", ttl_seconds: Optional[float] = None
    ) -> R:
        """Atomically read, transform and write the value of a key."""

    @abstractmethod
    def compare_and_swap(
        self, key: str, expected: Optional[V], new: Optional[V], ttl_seconds: Optional[float] = None
    ) -> bool:
        """Replace the value only if it still equals ``expected``."""

    @abstractmethod
    def purge_expired(self) -> int:
        """Drop expired entries. Returns how many were removed."""

    @abstractmethod
    def clear(self) -> None:
        """Drop all entries."""


class InMemoryStore(StateStore[V]):
    """Process-local store guarded by a single lock."""

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._entries: Dict[str, Tuple[V, Optional[float]]] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for key in list(self._entries) if self._live(key) is not None)

    def _expiry(self, ttl_seconds: Optional[float]) -> Optional[float]:
        return None if ttl_seconds is None else self._clock() + ttl_seconds

    def _live(self, key: str) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._entries[key]
            return None
        return value

    def get(self, key: str) -> Optional[V]:
        with self._lock:
            return self._live(key)

    def put(self, key: str, value: V, ttl_seconds: Optional[float] = None) -> None:
        with self._lock:
            self._entries[key] = (value, self._expiry(ttl_seconds))

    def add(self, key: str, value: V, ttl_seconds: Optional[float] = None) -> bool:
        with self._lock:
            if self._live(key) is not None:
                return False
            self._entries[key] = (value, self._expiry(ttl_seconds))
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            found = self._live(key) is not None
            self._entries.pop(key, None)
            return found

    def update(
        self, key: str, mutation: "Mutation[V, R]", ttl_seconds: Optional[float] = None
    ) -> R:
        with self._lock:
            current = self._live(key)
            new_value, result = mutation(current)
            if new_value is not None and new_value is current:
                return result
            if new_value is None:
                self._entries.pop(key, None)
            elif ttl_seconds is None and key in self._entries:
                # Keep the existing expiry
                self._entries[key] = (new_value, self._entries[key][1])
            else:
                self._entries[key] = (new_value, self._expiry(ttl_seconds))
            return result

    def compare_and_swap(
        self, key: str, expected: Optional[V], new: Optional[V], ttl_seconds: Optional[float] = None
    ) -> bool:
        def swap(current: Optional[V]) -> Tuple[Optional[V], bool]:
            if current != expected:
                return current, False
            return new, True

        return self.update(key, swap, ttl_seconds)

    def purge_expired(self) -> int:
        with self._lock:
            before = len(self._entries)
            for key in list(self._entries):
                self._live(key)
            return before - len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
