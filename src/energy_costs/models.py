"""Data models for readings, windows, tariffs and cost results."""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, ClassVar, Literal, Union

from .errors import InvalidHourSpec, InvalidTariff, InvalidWindowSpec

Bucket = Literal["hour", "day", "month"]
BUCKETS: tuple[str, ...] = ("hour", "day", "month")

ALL_DAYS: tuple[int, ...] = (0, 1, 2, 3, 4, 5, 6)  # 0=Sunday .. 6=Saturday

COST_NOTE = (
    "Exports use rateExport (default = -rateImport). "
    "Positive = you pay; negative = credit."
)


def as_utc(dt: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken to be UTC already."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def isoformat_utc(dt: datetime) -> str:
    """Format an instant as ISO-8601 with milliseconds and a trailing Z."""
    return as_utc(dt).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class HourlyReading:
    """A single hourly meter reading."""

    timestamp: datetime
    import_kwh: float
    export_kwh: float
    actual_cost: float | None = None  # billed cost from the utility export


@dataclass(frozen=True)
class TimeWindow:
    """A half-open UTC interval [start, end) with a reporting bucket."""

    start: datetime
    end: datetime
    bucket: Bucket = "day"

    def __post_init__(self):
        if not self.end > self.start:
            raise InvalidWindowSpec(
                f"Window end {self.end.isoformat()} must be after start {self.start.isoformat()}"
            )

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    def to_dict(self) -> dict:
        return {
            "from": isoformat_utc(self.start),
            "to": isoformat_utc(self.end),
            "bucket": self.bucket,
        }


@dataclass(frozen=True)
class TariffPeriod:
    """A time-of-use period covering local hours [hour_start, hour_end)."""

    name: str
    rate_import: float
    rate_export: float
    hour_start: int
    hour_end: int
    days_of_week: tuple[int, ...] = ALL_DAYS

    def __post_init__(self):
        if not 0 <= self.hour_start < self.hour_end <= 24:
            raise InvalidHourSpec(
                f"Invalid hours for {self.name!r}: [{self.hour_start}, {self.hour_end}]",
                period=self.name,
            )
        if self.rate_import < 0:
            raise InvalidTariff(f"Period {self.name!r} has a negative import rate")
        days = tuple(sorted(set(self.days_of_week)))
        if any(d not in ALL_DAYS for d in days):
            raise InvalidTariff(f"Period {self.name!r} has days outside 0..6: {list(days)}")
        object.__setattr__(self, "days_of_week", days)

    def covers(self, local_hour: int, local_weekday: int) -> bool:
        return local_weekday in self.days_of_week and self.hour_start <= local_hour < self.hour_end

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "rateImport": self.rate_import,
            "rateExport": self.rate_export,
            "hours": [self.hour_start, self.hour_end],
            "daysOfWeek": list(self.days_of_week),
        }


@dataclass(frozen=True)
class FlatTariff:
    """A single import/export rate applied at every hour."""

    kind: ClassVar[str] = "flat"

    rate_import: float
    rate_export: float
    fixed_monthly_fee: float = 0.0
    prorate_fixed_fee: bool = True
    currency: str = "USD"
    timezone: str = "UTC"

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "rateImport": self.rate_import,
            "rateExport": self.rate_export,
            "fixedMonthlyFee": self.fixed_monthly_fee,
            "prorateFixedFee": self.prorate_fixed_fee,
            "currency": self.currency,
            "timezone": self.timezone,
        }


@dataclass(frozen=True)
class TouTariff:
    """A time-of-use tariff made of non-overlapping periods."""

    kind: ClassVar[str] = "tou"

    periods: tuple[TariffPeriod, ...]
    fixed_monthly_fee: float = 0.0
    prorate_fixed_fee: bool = True
    currency: str = "USD"
    timezone: str = "UTC"

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "periods": [p.to_dict() for p in self.periods],
            "fixedMonthlyFee": self.fixed_monthly_fee,
            "prorateFixedFee": self.prorate_fixed_fee,
            "currency": self.currency,
            "timezone": self.timezone,
        }


Tariff = Union[FlatTariff, TouTariff]


def _optional_number(data: dict, key: str) -> float | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidTariff(f"`{key}` must be a number, got {value!r}")
    if not math.isfinite(value):
        raise InvalidTariff(f"`{key}` must be finite, got {value!r}")
    return float(value)


def _optional_str(data: dict, key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidTariff(f"`{key}` must be a string, got {value!r}")
    return value


def _int_list(values: Any, key: str, name: str) -> tuple[int, ...]:
    if not isinstance(values, (list, tuple)):
        raise InvalidTariff(f"`{key}` of period {name!r} must be a list")
    result = []
    for v in values:
        if (
            isinstance(v, bool)
            or not isinstance(v, (int, float))
            or not math.isfinite(v)
            or int(v) != v
        ):
            if key == "hours":
                raise InvalidHourSpec(f"Hour {v!r} in period {name!r} is not an integer", period=name)
            raise InvalidTariff(f"`{key}` of period {name!r} contains non-integer {v!r}")
        result.append(int(v))
    return tuple(result)


@dataclass(frozen=True)
class RawPeriodInput:
    """A loosely-specified TOU period as supplied by a caller."""

    name: str
    rate_import: float
    hours: tuple[int, ...]
    rate_export: float | None = None
    days_of_week: tuple[int, ...] | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "RawPeriodInput":
        if not isinstance(data, dict):
            raise InvalidTariff(f"TOU period must be an object, got {data!r}")
        name = str(data.get("name", ""))
        rate_import = _optional_number(data, "rateImport")
        if rate_import is None:
            raise InvalidTariff(f"TOU period {name!r} requires `rateImport`")
        days = data.get("daysOfWeek")
        return cls(
            name=name,
            rate_import=rate_import,
            rate_export=_optional_number(data, "rateExport"),
            hours=_int_list(data.get("hours", []), "hours", name),
            days_of_week=_int_list(days, "daysOfWeek", name) if days is not None else None,
        )


@dataclass(frozen=True)
class RawTariffInput:
    """A loosely-typed tariff description, prior to normalization."""

    type: str
    rate_import: float | None = None
    rate_export: float | None = None
    currency: str | None = None
    timezone: str | None = None
    fixed_monthly_fee: float | None = None
    prorate_fixed_fee: bool | None = None
    periods: tuple[RawPeriodInput, ...] | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "RawTariffInput":
        """Parse the camelCase JSON shape accepted from tools and tariff files."""
        if not isinstance(data, dict):
            raise InvalidTariff(f"Tariff must be an object, got {type(data).__name__}")

        prorate = data.get("prorateFixedFee")
        if prorate is not None and not isinstance(prorate, bool):
            raise InvalidTariff(f"`prorateFixedFee` must be a boolean, got {prorate!r}")

        periods = data.get("periods")
        if periods is not None:
            if not isinstance(periods, (list, tuple)):
                raise InvalidTariff("`periods` must be a list")
            periods = tuple(RawPeriodInput.from_dict(p) for p in periods)

        return cls(
            type=str(data.get("type") or ""),
            rate_import=_optional_number(data, "rateImport"),
            rate_export=_optional_number(data, "rateExport"),
            currency=_optional_str(data, "currency"),
            timezone=_optional_str(data, "timezone"),
            fixed_monthly_fee=_optional_number(data, "fixedMonthlyFee"),
            prorate_fixed_fee=prorate,
            periods=periods,
        )


@dataclass(frozen=True)
class PeriodMatch:
    """Which TOU period a reading was priced under."""

    timestamp: datetime
    period_name: str
    local_hour: int
    local_weekday: int


@dataclass(frozen=True)
class CostResult:
    """Signed cost of a window under a tariff."""

    window: TimeWindow
    total: float
    currency: str
    energy_cost: float
    fixed_fee: float
    reading_count: int
    tariff: Tariff
    trace: tuple[PeriodMatch, ...] = ()
    breakdown: tuple[tuple[str, float], ...] = ()  # (UTC month, energy cost) pairs

    def to_dict(self, include_trace: bool = False) -> dict:
        result = {
            "metric": "plan_cost",
            "window": self.window.to_dict(),
            "total": self.total,
            "unit": self.currency,
            "note": COST_NOTE,
            "breakdown": {"energy": self.energy_cost, "fixedFee": self.fixed_fee},
            "readings": self.reading_count,
            "normalizedPlan": self.tariff.to_dict(),
        }
        if self.breakdown:
            result["byMonth"] = dict(self.breakdown)
        if include_trace:
            result["trace"] = [
                {
                    "timestamp": isoformat_utc(m.timestamp),
                    "period": m.period_name,
                    "localHour": m.local_hour,
                    "localWeekday": m.local_weekday,
                }
                for m in self.trace
            ]
        return result
