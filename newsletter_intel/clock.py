"""Testable clocks: UTC timestamps for persisted fields, monotonic seconds for execution budgets."""
import time
from datetime import datetime, timezone
from typing import Callable

# Defaults: real clocks. Tests can override.
_utc_now: Callable[[], datetime] = lambda: datetime.now(timezone.utc)
_monotonic: Callable[[], float] = time.monotonic


def set_utc_now(fn: Callable[[], datetime]) -> None:
    global _utc_now
    _utc_now = fn


def set_monotonic(fn: Callable[[], float]) -> None:
    global _monotonic
    _monotonic = fn


def reset_clocks() -> None:
    global _utc_now, _monotonic
    _utc_now = lambda: datetime.now(timezone.utc)
    _monotonic = time.monotonic


def utc_now() -> datetime:
    return _utc_now()


def monotonic() -> float:
    return _monotonic()
