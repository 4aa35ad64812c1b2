"""Execution budget: wall-clock ceiling for one invocation, read from the monotonic clock."""
from __future__ import annotations

from newsletter_intel.clock import monotonic


class ExecutionBudget:
    """Fixed ceiling measured from construction. A pure clock read; never raises."""

    def __init__(self, ceiling_s: float, *, started_at: float | None = None) -> None:
        self._ceiling_s = ceiling_s
        self._started_at = monotonic() if started_at is None else started_at

    @property
    def ceiling_s(self) -> float:
        return self._ceiling_s

    def elapsed(self) -> float:
        return monotonic() - self._started_at

    def remaining(self) -> float:
        return max(0.0, self._ceiling_s - self.elapsed())

    def expired(self) -> bool:
        return self.elapsed() >= self._ceiling_s
