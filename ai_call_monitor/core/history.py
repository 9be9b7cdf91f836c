"""
Sliding-window ledger of recent call outcomes.

Keeps only outcomes inside the configured monitoring window. Expired
entries are pruned lazily whenever the store is written or read.
"""

import threading
from datetime import datetime, timedelta
from typing import Callable, List

from ai_call_monitor.storage.models import CallOutcome


class CallHistoryStore:
    """Bounded, time-windowed history of call outcomes.

    Record and query share one lock so that an append is never lost to a
    concurrent prune.
    """

    def __init__(self, window_minutes: int, clock: Callable[[], datetime] = datetime.now):
        """Initialize an empty store.

        Args:
            window_minutes: Retention window in minutes
            clock: Callable returning the current time
        """
        if window_minutes <= 0:
            raise ValueError("window_minutes must be > 0")
        self.window_minutes = window_minutes
        self._clock = clock
        self._outcomes: List[CallOutcome] = []
        self._lock = threading.Lock()

    def record(self, outcome: CallOutcome) -> None:
        """Append an outcome and drop anything older than the window."""
        with self._lock:
            self._outcomes.append(outcome)
            self._prune(self._clock())

    def query(self, window_minutes: int) -> List[CallOutcome]:
        """Return outcomes no older than `window_minutes` at call time.

        Args:
            window_minutes: Look-back period in minutes

        Returns:
            Matching outcomes in insertion order (may be empty)
        """
        with self._lock:
            now = self._clock()
            self._prune(now)
            cutoff = now - timedelta(minutes=window_minutes)
            return [o for o in self._outcomes if o.timestamp >= cutoff]

    def __len__(self) -> int:
        with self._lock:
            return len(self._outcomes)

    def _prune(self, now: datetime) -> None:
        # Caller holds the lock
        cutoff = now - timedelta(minutes=self.window_minutes)
        self._outcomes = [o for o in self._outcomes if o.timestamp >= cutoff]
