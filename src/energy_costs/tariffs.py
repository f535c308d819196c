"""Tariff loading, normalization and validation."""

from pathlib import Path
from typing import Any, Iterable, Sequence

import yaml

from .errors import (
    InvalidHourSpec,
    InvalidTariff,
    MissingFlatRate,
    OverlappingPeriods,
    UnknownTariffType,
)
from .models import ALL_DAYS, FlatTariff, RawTariffInput, Tariff, TariffPeriod, TouTariff
from .periods import get_zone

# Default tariff timezone for the strict schema path and for the loose
# tool-facing path respectively.
SCHEMA_DEFAULT_TIMEZONE = "UTC"
TOOL_DEFAULT_TIMEZONE = "America/Los_Angeles"
DEFAULT_CURRENCY = "USD"


def compress_hours(hours: Iterable[int]) -> list[tuple[int, int]]:
    """Turn an hour list into disjoint [start, end) ranges.

    A two-element list whose second value is larger is a [start, end) pair.
    Anything else is a set of discrete hours 0..23 merged into contiguous runs,
    e.g. [9, 11] -> [(9, 11)], [15, 16, 17] -> [(15, 18)] and
    [9, 11, 12] -> [(9, 10), (11, 13)].
    Runs do not wrap past midnight: [22, 23, 0, 1] -> [(0, 2), (22, 24)].
    """
    uniq = sorted(set(hours))
    if len(uniq) == 2 and uniq[1] > uniq[0]:
        return [(uniq[0], uniq[1])]

    slots = [h for h in uniq if h <= 23]
    if not slots:
        return []

    ranges = []
    start = prev = slots[0]
    for h in slots[1:]:
        if h == prev + 1:
            prev = h
            continue
        ranges.append((start, prev + 1))
        start = prev = h
    ranges.append((start, prev + 1))
    return ranges


def validate_tou_coverage(periods: Sequence[TariffPeriod]) -> None:
    """Reject periods that claim the same hour on the 0..23 grid.

    Days of week are ignored here, so two periods on disjoint days but the same
    hours are still reported as overlapping. Full 24-hour coverage is not
    required.
    """
    claimed: list[str | None] = [None] * 24
    for period in periods:
        for hour in range(period.hour_start, period.hour_end):
            if claimed[hour] is not None:
                raise OverlappingPeriods(hour, period.name, claimed[hour])
            claimed[hour] = period.name


def _normalize_flat(raw: RawTariffInput, **common: Any) -> FlatTariff:
    if raw.rate_import is None:
        raise MissingFlatRate("Flat plan requires `rateImport` (or provide TOU periods).")
    if raw.rate_import < 0:
        raise InvalidTariff("`rateImport` must be non-negative")
    rate_export = raw.rate_export if raw.rate_export is not None else -raw.rate_import
    return FlatTariff(rate_import=raw.rate_import, rate_export=rate_export, **common)


def _normalize_periods(raw: RawTariffInput) -> list[TariffPeriod]:
    periods = []
    for p in raw.periods or ():
        if any(not 0 <= h <= 24 for h in p.hours):
            raise InvalidHourSpec(
                f"TOU period {p.name!r} has hours outside 0..24: {list(p.hours)}", period=p.name
            )
        ranges = compress_hours(p.hours)
        if not ranges:
            raise InvalidHourSpec(f"TOU period {p.name!r} has invalid hours definition.", period=p.name)

        rate_export = p.rate_export if p.rate_export is not None else -p.rate_import
        days = p.days_of_week or ALL_DAYS
        for start, end in ranges:
            periods.append(
                TariffPeriod(
                    name=p.name,
                    rate_import=p.rate_import,
                    rate_export=rate_export,
                    hour_start=start,
                    hour_end=end,
                    days_of_week=days,
                )
            )
    return periods


def normalize_tariff(
    raw: RawTariffInput | dict,
    default_timezone: str = SCHEMA_DEFAULT_TIMEZONE,
    default_currency: str = DEFAULT_CURRENCY,
) -> Tariff:
    """Validate a loose tariff description and return a FlatTariff or TouTariff.

    Args:
        raw: Parsed input, or the camelCase dict it is parsed from
        default_timezone: Timezone used when the input names none
        default_currency: Currency used when the input names none

    Raises:
        TariffError: a subclass describing why the tariff was rejected
    """
    if isinstance(raw, dict):
        raw = RawTariffInput.from_dict(raw)

    tariff_type = raw.type.lower()
    fee = raw.fixed_monthly_fee if raw.fixed_monthly_fee is not None else 0.0
    if fee < 0:
        raise InvalidTariff("`fixedMonthlyFee` must be non-negative")

    tz = raw.timezone or default_timezone
    get_zone(tz)

    common = {
        "fixed_monthly_fee": fee,
        "prorate_fixed_fee": raw.prorate_fixed_fee if raw.prorate_fixed_fee is not None else True,
        "currency": raw.currency or default_currency,
        "timezone": tz,
    }

    # A "tou" tariff without periods falls back to its top-level flat rates
    if tariff_type == "flat" or (tariff_type == "tou" and not raw.periods):
        return _normalize_flat(raw, **common)

    if tariff_type != "tou":
        raise UnknownTariffType(raw.type)

    periods = _normalize_periods(raw)
    validate_tou_coverage(periods)
    return TouTariff(periods=tuple(periods), **common)


def load_tariff_from_yaml(config_path: Path, default_timezone: str = SCHEMA_DEFAULT_TIMEZONE) -> Tariff:
    """Load and normalize a tariff from a YAML (or JSON) file.

    The tariff may sit at the top level or under a ``tariff`` key.
    """
    with open(config_path) as f:
        data = yaml.safe_load(f)

    if isinstance(data, dict) and "tariff" in data:
        data = data["tariff"]
    if not isinstance(data, dict):
        raise InvalidTariff(f"{config_path} does not contain a tariff mapping")
    return normalize_tariff(data, default_timezone=default_timezone)
