"""
Arrival / departure classifier.

Pure lookups of a local wall-clock minute against the configured policy
bands.  Seconds are ignored: 10:00:45 is still exactly 10:00.

Arrival (defaults: start 10:00, grace 15)::

    t <  10:00            APPRECIATED
    t == 10:00            PERFECT  (or ON_TIME when exact_start_band == ON_TIME)
    10:00 < t <= 10:15    GRACE
    t >  10:15            LATE

Departure (defaults)::

    t <  18:15            EARLY
    18:15 <= t < 18:25    GRACE
    18:25 <= t < 19:00    ON_TIME
    t >= 19:00            APPRECIATED
    no check-out          NOT_CHECKED_OUT
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, time, timezone

from presence.core.clock import minute_of_day, parse_hhmm, parse_offset, to_local
from presence.models.office_settings import OfficeSettings


class ArrivalBand(str, enum.Enum):
    APPRECIATED = "APPRECIATED"
    PERFECT = "PERFECT"
    ON_TIME = "ON_TIME"
    GRACE = "GRACE"
    LATE = "LATE"


class DepartureBand(str, enum.Enum):
    EARLY = "EARLY"
    GRACE = "GRACE"
    ON_TIME = "ON_TIME"
    APPRECIATED = "APPRECIATED"
    NOT_CHECKED_OUT = "NOT_CHECKED_OUT"


@dataclass(frozen=True)
class PunctualityPolicy:
    office_start: time = time(10, 0)
    grace_minutes: int = 15
    exact_start_band: ArrivalBand = ArrivalBand.PERFECT
    departure_grace_start: time = time(18, 15)
    departure_on_time_start: time = time(18, 25)
    departure_appreciated_start: time = time(19, 0)

    @classmethod
    def from_office(cls, office: OfficeSettings) -> PunctualityPolicy:
        return cls(
            office_start=parse_hhmm(office.office_start),
            grace_minutes=office.grace_minutes,
            exact_start_band=ArrivalBand(office.exact_start_band),
            departure_grace_start=parse_hhmm(office.departure_grace_start),
            departure_on_time_start=parse_hhmm(office.departure_on_time_start),
            departure_appreciated_start=parse_hhmm(office.departure_appreciated_start),
        )


def classify_arrival(local_time: time, policy: PunctualityPolicy) -> ArrivalBand:
    minutes = minute_of_day(local_time)
    start = minute_of_day(policy.office_start)

    if minutes < start:
        return ArrivalBand.APPRECIATED
    if minutes == start:
        return policy.exact_start_band
    if minutes <= start + policy.grace_minutes:
        return ArrivalBand.GRACE
    return ArrivalBand.LATE


def classify_departure(local_time: time | None, policy: PunctualityPolicy) -> DepartureBand:
    if local_time is None:
        return DepartureBand.NOT_CHECKED_OUT

    minutes = minute_of_day(local_time)
    if minutes < minute_of_day(policy.departure_grace_start):
        return DepartureBand.EARLY
    if minutes < minute_of_day(policy.departure_on_time_start):
        return DepartureBand.GRACE
    if minutes < minute_of_day(policy.departure_appreciated_start):
        return DepartureBand.ON_TIME
    return DepartureBand.APPRECIATED


def arrival_band(instant: datetime, tz: timezone, policy: PunctualityPolicy) -> ArrivalBand:
    return classify_arrival(to_local(instant, tz).time(), policy)


def departure_band(
    instant: datetime | None, tz: timezone, policy: PunctualityPolicy
) -> DepartureBand:
    if instant is None:
        return DepartureBand.NOT_CHECKED_OUT
    return classify_departure(to_local(instant, tz).time(), policy)


@dataclass(frozen=True)
class SitePolicy:
    """Time zone + punctuality bands of one site, resolved from its settings row."""

    tz: timezone
    punctuality: PunctualityPolicy
    allow_reentry: bool = True

    @classmethod
    def from_office(cls, office: OfficeSettings) -> SitePolicy:
        return cls(
            tz=parse_offset(office.timezone_offset),
            punctuality=PunctualityPolicy.from_office(office),
            allow_reentry=office.allow_reentry,
        )
