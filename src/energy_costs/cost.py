"""Cost accumulation over a window of hourly readings."""

import calendar
from datetime import datetime
from itertools import groupby
from typing import Sequence

from .errors import UnmatchedPeriod
from .models import (
    CostResult,
    FlatTariff,
    HourlyReading,
    PeriodMatch,
    Tariff,
    TimeWindow,
    TouTariff,
    as_utc,
)
from .periods import find_period, get_zone, local_hour_and_weekday
from .summation import CompensatedSum, stable_sum
from .window import DAY, start_of_day


def days_in_utc_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def prorated_fixed_fee(start: datetime, end: datetime, monthly_fee: float) -> float:
    """Spread a monthly fee over [start, end) at UTC day granularity.

    Each UTC calendar day touching the window adds fee / days-in-that-month, so
    a whole month adds exactly the fee and any window within one day adds one
    day's share.
    """
    total = CompensatedSum()
    day = start_of_day(as_utc(start))
    end = as_utc(end)
    while day < end:
        total.add(monthly_fee / days_in_utc_month(day.year, day.month))
        day += DAY
    return total.value


def fixed_fee_for_window(window: TimeWindow, tariff: Tariff) -> float:
    """Fixed fee owed for a window.

    Without proration the whole fee is added on every call; callers must only
    ask once per billing period.
    """
    if tariff.prorate_fixed_fee and tariff.fixed_monthly_fee > 0:
        return prorated_fixed_fee(window.start, window.end, tariff.fixed_monthly_fee)
    return tariff.fixed_monthly_fee


def _flat_energy_cost(tariff: FlatTariff, readings: Sequence[HourlyReading]) -> CompensatedSum:
    imported = stable_sum(r.import_kwh for r in readings)
    exported = stable_sum(r.export_kwh for r in readings)
    return CompensatedSum([imported * tariff.rate_import, exported * tariff.rate_export])


def _tou_energy_cost(
    tariff: TouTariff, readings: Sequence[HourlyReading]
) -> tuple[CompensatedSum, list[PeriodMatch]]:
    zone = get_zone(tariff.timezone)
    total = CompensatedSum()
    trace = []
    for reading in readings:
        hour, weekday = local_hour_and_weekday(reading.timestamp, zone)
        period = find_period(hour, weekday, tariff.periods)
        if period is None:
            raise UnmatchedPeriod(reading.timestamp, hour, weekday, tariff.timezone)
        total.add(reading.import_kwh * period.rate_import)
        total.add(reading.export_kwh * period.rate_export)
        trace.append(PeriodMatch(reading.timestamp, period.name, hour, weekday))
    return total, trace


def _energy_cost(
    tariff: Tariff, readings: Sequence[HourlyReading]
) -> tuple[CompensatedSum, list[PeriodMatch]]:
    if isinstance(tariff, FlatTariff):
        return _flat_energy_cost(tariff, readings), []
    return _tou_energy_cost(tariff, readings)


def _result(
    window: TimeWindow,
    tariff: Tariff,
    energy: CompensatedSum,
    count: int,
    trace: list[PeriodMatch],
    breakdown: tuple[tuple[str, float], ...] = (),
) -> CostResult:
    fee = fixed_fee_for_window(window, tariff)
    total = CompensatedSum()
    total.merge(energy)
    total.add(fee)
    return CostResult(
        window=window,
        total=total.value,
        currency=tariff.currency,
        energy_cost=energy.value,
        fixed_fee=fee,
        reading_count=count,
        tariff=tariff,
        trace=tuple(trace),
        breakdown=breakdown,
    )


def accumulate(window: TimeWindow, tariff: Tariff, readings: Sequence[HourlyReading]) -> CostResult:
    """Price the readings of a window under a normalized tariff.

    Readings are taken as supplied; filtering to the window is the caller's job.
    A positive total is owed, a negative total is a credit.

    Raises:
        UnmatchedPeriod: if a TOU tariff does not cover a reading's local hour
    """
    readings = list(readings)
    energy, trace = _energy_cost(tariff, readings)
    return _result(window, tariff, energy, len(readings), trace)


def _month_key(reading: HourlyReading) -> str:
    return as_utc(reading.timestamp).strftime("%Y-%m")


def accumulate_partitioned(
    window: TimeWindow, tariff: Tariff, readings: Sequence[HourlyReading]
) -> CostResult:
    """Like ``accumulate``, but sums each UTC month separately and merges the partials.

    The per-month energy costs are returned in ``CostResult.breakdown`` as
    (month, cost) pairs.
    """
    readings = sorted(readings, key=lambda r: as_utc(r.timestamp))
    energy = CompensatedSum()
    trace: list[PeriodMatch] = []
    breakdown = []
    for month, group in groupby(readings, key=_month_key):
        partial, partial_trace = _energy_cost(tariff, list(group))
        breakdown.append((month, partial.value))
        energy.merge(partial)
        trace.extend(partial_trace)
    return _result(window, tariff, energy, len(readings), trace, tuple(breakdown))
