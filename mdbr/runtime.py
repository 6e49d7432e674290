from __future__ import annotations

import heapq
import itertools
import time
from collections import deque
from dataclasses import dataclass, field
from threading import Condition, Lock
from typing import Callable

from .db import utc_now
from .kinds import ObjectKey
from .settings import settings


class WorkQueue:
    """Deduplicating queue of reconcile keys.

    A key handed out by :meth:`get` is not handed out again until
    :meth:`done` is called for it; adds that arrive meanwhile are held back
    and re-queued once the key is done. That keeps one worker per key while
    different keys run in parallel.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._cond = Condition()
        self._clock = clock
        self._queue: deque[ObjectKey] = deque()
        self._queued: set[ObjectKey] = set()
        self._processing: set[ObjectKey] = set()
        self._dirty: set[ObjectKey] = set()
        self._delayed: list[tuple[float, int, ObjectKey]] = []
        self._seq = itertools.count()
        self._shutdown = False

    def _add_locked(self, key: ObjectKey) -> None:
        if key in self._processing:
            self._dirty.add(key)
            return
        if key in self._queued:
            return
        self._queued.add(key)
        self._queue.append(key)
        self._cond.notify()

    def add(self, key: ObjectKey) -> None:
        with self._cond:
            if not self._shutdown:
                self._add_locked(key)

    def add_after(self, key: ObjectKey, delay_s: float) -> None:
        if delay_s <= 0:
            self.add(key)
            return
        with self._cond:
            if self._shutdown:
                return
            heapq.heappush(self._delayed, (self._clock() + delay_s, next(self._seq), key))
            self._cond.notify()

    def _promote_due(self) -> None:
        now = self._clock()
        while self._delayed and self._delayed[0][0] <= now:
            _, _, key = heapq.heappop(self._delayed)
            self._add_locked(key)

    def get(self, timeout: float | None = None) -> ObjectKey | None:
        """Next ready key, or None on timeout/shutdown."""
        deadline = None if timeout is None else self._clock() + timeout
        with self._cond:
            while True:
                self._promote_due()
                if self._queue:
                    key = self._queue.popleft()
                    self._queued.discard(key)
                    self._processing.add(key)
                    return key
                if self._shutdown:
                    return None
                wait: float | None = None
                if self._delayed:
                    wait = max(0.0, self._delayed[0][0] - self._clock())
                if deadline is not None:
                    remaining = deadline - self._clock()
                    if remaining <= 0:
                        return None
                    wait = remaining if wait is None else min(wait, remaining)
                self._cond.wait(wait)

    def done(self, key: ObjectKey) -> None:
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._dirty.discard(key)
                self._add_locked(key)

    def shutdown(self) -> None:
        with self._cond:
            self._shutdown = True
            self._cond.notify_all()

    def reopen(self) -> None:
        """Accept keys again after :meth:`shutdown`."""
        with self._cond:
            self._shutdown = False

    def pending(self) -> list[ObjectKey]:
        with self._cond:
            return list(self._queue) + [k for _, _, k in sorted(self._delayed)]


@dataclass
class KeyStatus:
    key: str
    last_result: str  # ok|error
    fail_count: int = 0
    last_error: str | None = None
    updated_at: str = field(default_factory=utc_now)


class RuntimeState:
    """Per-key outcome of the most recent reconcile passes."""

    def __init__(self, backoff_base_s: float | None = None, backoff_max_s: float | None = None) -> None:
        self.lock = Lock()
        self.backoff_base_s = settings.backoff_base_s if backoff_base_s is None else backoff_base_s
        self.backoff_max_s = settings.backoff_max_s if backoff_max_s is None else backoff_max_s
        self.statuses: dict[ObjectKey, KeyStatus] = {}

    def mark_result(self, key: ObjectKey, ok: bool, error: str | None = None) -> tuple[bool | None, int]:
        """Record a pass outcome.

        Returns (previous pass ok, or None if first pass; consecutive failures).
        """
        with self.lock:
            prev = self.statuses.get(key)
            prev_ok = None if prev is None else prev.last_result == "ok"
            if ok:
                self.statuses[key] = KeyStatus(key=str(key), last_result="ok")
                return prev_ok, 0
            fail_count = (prev.fail_count if prev else 0) + 1
            self.statuses[key] = KeyStatus(key=str(key), last_result="error", fail_count=fail_count, last_error=error)
            return prev_ok, fail_count

    def backoff_for(self, fail_count: int) -> float:
        if fail_count <= 0:
            return 0.0
        return min(self.backoff_base_s * (2 ** (fail_count - 1)), self.backoff_max_s)

    def get(self, key: ObjectKey) -> KeyStatus | None:
        with self.lock:
            return self.statuses.get(key)

    def list_statuses(self) -> list[KeyStatus]:
        with self.lock:
            return [self.statuses[k] for k in sorted(self.statuses)]
