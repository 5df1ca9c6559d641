# Overview: Session meter; turns elapsed table time into a charge.

"""
Session Meter

Both roundings are CEILING so the venue never undercharges:
- a started minute counts as a full minute
- a fraction of the hourly rate rounds up to the next whole unit

All arithmetic is integer so results are exact for any rate.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

_MINUTE = timedelta(minutes=1)


@dataclass(frozen=True)
class MeterReading:
    duration_minutes: int
    game_amount: int


def elapsed_minutes(start: datetime, end: datetime) -> int:
    """ceil((end - start) / 1 minute); a clock running backwards reads 0."""
    elapsed = end - start
    if elapsed <= timedelta(0):
        return 0
    whole, remainder = divmod(elapsed, _MINUTE)
    return whole + (1 if remainder else 0)


def game_amount(duration_minutes: int, hourly_rate: int) -> int:
    """ceil(duration_minutes / 60 * hourly_rate)."""
    return -(-duration_minutes * hourly_rate // 60)


def read_meter(start: datetime, end: datetime, hourly_rate: int) -> MeterReading:
    minutes = elapsed_minutes(start, end)
    return MeterReading(duration_minutes=minutes, game_amount=game_amount(minutes, hourly_rate))
