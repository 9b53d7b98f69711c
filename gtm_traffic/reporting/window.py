"""Reporting interval selection and time window alignment.

The reporting API only accepts start/end times that sit on interval
boundaries, and only holds 90 days of data. Everything here is pure apart
from reading the clock for the retention horizon, and ``now`` can be passed
in to pin that too.
"""

import logging
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import NamedTuple, assert_never

from gtm_traffic.errors import InvalidQuery, WindowBeforeRetentionHorizon

logger = logging.getLogger(__name__)

FOUR_WEEKS_HOURS = 4 * 7 * 24
RETENTION = timedelta(days=90)
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class Interval(StrEnum):
    """Sampling granularity of the reporting API. Values are the wire names."""

    FINE = "FIVE_MINUTES"
    COARSE = "HOUR"

    @property
    def bucket(self) -> timedelta:
        match self:
            case Interval.FINE:
                return timedelta(minutes=5)
            case Interval.COARSE:
                return timedelta(hours=1)
            case _:
                assert_never(self)


class AlignedWindow(NamedTuple):
    start: datetime
    end: datetime


def _as_utc(t: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if t.tzinfo is None:
        return t.replace(tzinfo=UTC)
    return t.astimezone(UTC)


def select_interval(start: datetime, end: datetime, max_data_points: int) -> Interval:
    """Pick the coarsest interval the panel can make use of.

    HOUR is mandatory past four weeks. Below that, HOUR is used whenever there are
    at least as many hourly points as the panel can draw; otherwise FIVE_MINUTES.
    """
    span_hours = int((_as_utc(end) - _as_utc(start)) / timedelta(hours=1))
    if span_hours > FOUR_WEEKS_HOURS:
        return Interval.COARSE
    if span_hours >= max_data_points:
        return Interval.COARSE
    return Interval.FINE


def round_to_interval(t: datetime, interval: Interval) -> datetime:
    """Round to the nearest interval boundary; exact halves round up.

    Raises InvalidQuery when the result falls outside the datetime range.
    """
    bucket = interval.bucket
    try:
        buckets, remainder = divmod(_as_utc(t) - EPOCH, bucket)
        if remainder * 2 >= bucket:
            buckets += 1
        return EPOCH + buckets * bucket
    except OverflowError as e:
        raise InvalidQuery(f"Time out of range: {t.isoformat()}") from e


def oldest_available(interval: Interval, now: datetime | None = None) -> datetime:
    """Start of the retention horizon, on an interval boundary."""
    now = datetime.now(UTC) if now is None else _as_utc(now)
    return round_to_interval(now - RETENTION, interval)


def align_window(
    start: datetime,
    end: datetime,
    interval: Interval,
    now: datetime | None = None,
) -> AlignedWindow:
    """Snap a query window onto interval boundaries inside the retention horizon.

    Raises WindowBeforeRetentionHorizon when the whole window is older than the
    data the API still holds. A start older than that is clamped forward.
    """
    start_rounded = round_to_interval(start, interval)
    end_rounded = round_to_interval(end, interval)
    horizon = oldest_available(interval, now)

    if end_rounded < horizon:
        logger.info("Window %s..%s is before retention horizon %s", start_rounded, end_rounded, horizon)
        raise WindowBeforeRetentionHorizon()

    return AlignedWindow(start=max(start_rounded, horizon), end=end_rounded)
