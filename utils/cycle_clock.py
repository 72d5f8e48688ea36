"""Weekly matchmaking cycle calculations.

Every function takes the instant explicitly and performs no I/O. ``now()`` is the
single place the system clock is read. Civil time is ``config.CYCLE_TIMEZONE``
(Asia/Seoul); naive datetimes are interpreted as UTC, which is how the database
stores them. Weeks start on Sunday.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Tuple, Union

import pytz

import config

SUNDAY = 0
FRIDAY = 5
SATURDAY = 6

END_OF_DAY = time(23, 59, 59, 999000)


class Phase(str, Enum):
    REGISTRATION = "REGISTRATION"
    MATCHING = "MATCHING"


@dataclass(frozen=True)
class CycleSnapshot:
    now: datetime
    phase: Phase
    current_batch_start: date
    target_batch_start: date
    application_window_start: datetime
    application_window_end: datetime
    interaction_cycle_start: datetime
    phase_ends_at: datetime


def civil_timezone():
    return pytz.timezone(config.CYCLE_TIMEZONE)


def now() -> datetime:
    return datetime.now(pytz.UTC).astimezone(civil_timezone())


def to_civil(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        instant = pytz.UTC.localize(instant)
    return instant.astimezone(civil_timezone())


def to_utc_naive(instant: datetime) -> datetime:
    """Convert to the naive UTC form used by the timestamp columns."""
    if instant.tzinfo is None:
        return instant
    return instant.astimezone(pytz.UTC).replace(tzinfo=None)


def civil_weekday(instant: datetime) -> int:
    """0 = Sunday ... 6 = Saturday"""
    return (to_civil(instant).weekday() + 1) % 7


def _at(day: date, at: time) -> datetime:
    return civil_timezone().localize(datetime.combine(day, at))


def current_phase(instant: datetime) -> Phase:
    if civil_weekday(instant) in (FRIDAY, SATURDAY):
        return Phase.MATCHING
    return Phase.REGISTRATION


def current_batch_start(instant: datetime) -> date:
    civil = to_civil(instant)
    return civil.date() - timedelta(days=civil_weekday(civil))


def target_batch_start(instant: datetime) -> date:
    """Batch an application made at ``instant`` belongs to.

    During MATCHING (Fri/Sat) new applications roll over to next Sunday's batch.
    """
    batch_start = current_batch_start(instant)
    if current_phase(instant) is Phase.MATCHING:
        return batch_start + timedelta(days=7)
    return batch_start


def application_window(batch_start: Union[date, datetime]) -> Tuple[datetime, datetime]:
    """Friday before the batch 00:00:00.000 through its Thursday 23:59:59.999."""
    if isinstance(batch_start, datetime):
        batch_start = to_civil(batch_start).date()
    start = _at(batch_start - timedelta(days=2), time.min)
    end = _at(batch_start + timedelta(days=4), END_OF_DAY)
    return start, end


def application_window_utc(batch_start: Union[date, datetime]) -> Tuple[datetime, datetime]:
    start, end = application_window(batch_start)
    return to_utc_naive(start), to_utc_naive(end)


def interaction_cycle_start(instant: datetime) -> datetime:
    civil = to_civil(instant)
    weekday = civil_weekday(civil)
    if weekday >= FRIDAY:
        day = civil.date() - timedelta(days=weekday - FRIDAY)
    else:
        day = current_batch_start(civil) - timedelta(days=2)
    return _at(day, time.min)


def phase_ends_at(instant: datetime) -> datetime:
    batch_start = current_batch_start(instant)
    if current_phase(instant) is Phase.MATCHING:
        return _at(batch_start + timedelta(days=7), time.min)
    return _at(batch_start + timedelta(days=FRIDAY), time.min)


def cycle_snapshot(instant: datetime) -> CycleSnapshot:
    target = target_batch_start(instant)
    window_start, window_end = application_window(target)
    return CycleSnapshot(
        now=to_civil(instant),
        phase=current_phase(instant),
        current_batch_start=current_batch_start(instant),
        target_batch_start=target,
        application_window_start=window_start,
        application_window_end=window_end,
        interaction_cycle_start=interaction_cycle_start(instant),
        phase_ends_at=phase_ends_at(instant),
    )
