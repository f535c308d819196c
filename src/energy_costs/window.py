"""Time window resolution and bucket selection."""

import math
from datetime import datetime, timedelta, timezone

from .errors import InvalidWindowSpec
from .models import BUCKETS, Bucket, TimeWindow, as_utc

HOUR = timedelta(hours=1)
DAY = timedelta(days=1)


def parse_instant(value: str | datetime) -> datetime:
    """Parse an ISO-8601 string (or datetime) into an aware UTC datetime.

    Strings without an offset, including bare dates, are taken to be UTC.
    """
    if isinstance(value, datetime):
        return as_utc(value)
    try:
        return as_utc(datetime.fromisoformat(value.strip()))
    except (AttributeError, ValueError) as e:
        raise InvalidWindowSpec(f"Invalid ISO-8601 timestamp: {value!r}") from e


def start_of_day(dt: datetime) -> datetime:
    return datetime(dt.year, dt.month, dt.day, tzinfo=timezone.utc)


def start_of_month(dt: datetime) -> datetime:
    return datetime(dt.year, dt.month, 1, tzinfo=timezone.utc)


def start_of_next_month(dt: datetime) -> datetime:
    if dt.month == 12:
        return datetime(dt.year + 1, 1, 1, tzinfo=timezone.utc)
    return datetime(dt.year, dt.month + 1, 1, tzinfo=timezone.utc)


def _anchored_window(anchor: datetime, bucket: Bucket, truncate_day: bool) -> TimeWindow:
    if bucket == "hour":
        return TimeWindow(anchor, anchor + HOUR, "hour")
    if bucket == "month":
        return TimeWindow(start_of_month(anchor), start_of_next_month(anchor), "month")
    start = start_of_day(anchor) if truncate_day else anchor
    return TimeWindow(start, start + DAY, "day")


def resolve_window(
    date: str | datetime | None = None,
    start: str | datetime | None = None,
    end: str | datetime | None = None,
    bucket: str | None = None,
) -> TimeWindow:
    """Resolve a loose time specification into a half-open UTC window.

    - ``date`` alone: the hour starting at ``date``, or the UTC day or month
      containing it, depending on ``bucket`` (default ``day``).
    - ``start`` alone: sized the same way but anchored at ``start``; only the
      month bucket is truncated to the calendar.
    - ``start`` and ``end``: used as given, with ``end`` coerced to
      ``start + 1 day`` when it is not after ``start``. Without a bucket hint
      the bucket is inferred from the span.

    Raises:
        InvalidWindowSpec: if neither ``date`` nor ``start`` is supplied.
    """
    if bucket is not None and bucket not in BUCKETS:
        raise InvalidWindowSpec(f"Unknown bucket {bucket!r}; use hour, day or month")

    if date and not start and not end:
        return _anchored_window(parse_instant(date), bucket or "day", truncate_day=True)

    if start and not end:
        return _anchored_window(parse_instant(start), bucket or "day", truncate_day=False)

    if start and end:
        from_ = parse_instant(start)
        to = parse_instant(end)
        if not to > from_:
            to = from_ + DAY
        if bucket is None:
            span_days = math.ceil((to - from_) / DAY)
            bucket = "hour" if span_days <= 1 else "day" if span_days <= 60 else "month"
        return TimeWindow(from_, to, bucket)

    raise InvalidWindowSpec("Provide a `date` or `from` (optionally `to`).")


def resolve_window_spec(spec: dict) -> TimeWindow:
    """Resolve a window from the JSON shape ``{date?, from?, to?, bucket?}``."""
    return resolve_window(
        date=spec.get("date"),
        start=spec.get("from"),
        end=spec.get("to"),
        bucket=spec.get("bucket"),
    )


def choose_bucket(start: datetime, end: datetime) -> Bucket:
    """Pick a plotting granularity for a time series between two instants.

    Separate from the inference in ``resolve_window``; the thresholds differ.
    """
    days = max(1, math.ceil((end - start) / DAY))
    if days <= 14:
        return "hour"
    if days <= 500:
        return "day"
    return "month"
