"""Map UTC instants to time-of-use periods in local time."""

from datetime import datetime
from typing import Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import InvalidTariff
from .models import TariffPeriod, as_utc


def get_zone(name: str) -> ZoneInfo:
    """Look up an IANA timezone, raising InvalidTariff for unknown ids."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTariff(f"Unknown timezone {name!r}") from e


def local_hour_and_weekday(instant: datetime, tz: str | ZoneInfo) -> tuple[int, int]:
    """Return (local hour 0..23, local weekday 0=Sunday..6=Saturday)."""
    zone = tz if isinstance(tz, ZoneInfo) else get_zone(tz)
    local = as_utc(instant).astimezone(zone)
    return local.hour, local.isoweekday() % 7


def find_period(
    local_hour: int, local_weekday: int, periods: Sequence[TariffPeriod]
) -> TariffPeriod | None:
    for period in periods:
        if period.covers(local_hour, local_weekday):
            return period
    return None


def match_period(
    instant: datetime, periods: Sequence[TariffPeriod], tz: str | ZoneInfo
) -> TariffPeriod | None:
    """Return the first period covering the local hour and weekday of ``instant``.

    Order of ``periods`` is the tie-break. Returns None when nothing matches.
    """
    hour, weekday = local_hour_and_weekday(instant, tz)
    return find_period(hour, weekday, periods)
