"""Tests for tariff normalization."""

import pytest

from energy_costs.errors import (
    InvalidHourSpec,
    InvalidTariff,
    MissingFlatRate,
    OverlappingPeriods,
    UnknownTariffType,
)
from energy_costs.models import FlatTariff, RawTariffInput, TariffPeriod, TouTariff
from energy_costs.tariffs import (
    TOOL_DEFAULT_TIMEZONE,
    compress_hours,
    load_tariff_from_yaml,
    normalize_tariff,
    validate_tou_coverage,
)


@pytest.fixture
def tou_input():
    return {
        "type": "TOU",
        "timezone": "America/Los_Angeles",
        "fixedMonthlyFee": 10,
        "periods": [
            {"name": "off-peak", "rateImport": 0.25, "hours": [0, 16]},
            {"name": "peak", "rateImport": 0.5, "rateExport": -0.1, "hours": [16, 17, 18, 19, 20]},
            {"name": "night", "rateImport": 0.3, "hours": [21, 24], "daysOfWeek": [6, 0, 0]},
        ],
    }


def test_compress_pair():
    """A full-day pair stays a single range."""
    assert compress_hours([0, 24]) == [(0, 24)]


def test_compress_single_hour():
    """A single hour becomes a one-hour range."""
    assert compress_hours([3]) == [(3, 4)]


def test_compress_contiguous_run():
    """Consecutive hours merge into one range."""
    assert compress_hours([15, 16, 17]) == [(15, 18)]


def test_compress_pair_is_a_range():
    """Two increasing values are a [start, end) pair, not two hours."""
    assert compress_hours([9, 11]) == [(9, 11)]


def test_compress_gaps():
    """Non-consecutive hours give separate ranges."""
    assert compress_hours([9, 11, 12]) == [(9, 10), (11, 13)]


def test_non_finite_hour_rejected():
    with pytest.raises(InvalidHourSpec):
        normalize_tariff({"type": "tou", "periods": [{"name": "x", "rateImport": 0.1, "hours": [float("nan")]}]})
    with pytest.raises(InvalidHourSpec):
        normalize_tariff({"type": "tou", "periods": [{"name": "x", "rateImport": 0.1, "hours": [0, float("inf")]}]})


@pytest.mark.parametrize("key", ["rateImport", "rateExport", "fixedMonthlyFee"])
def test_non_finite_rates_rejected(key):
    """NaN and infinite rates or fees never reach the cost engine."""
    plan = {"type": "flat", "rateImport": 0.1, key: float("nan")}
    with pytest.raises(InvalidTariff, match=key):
        normalize_tariff(plan)
    plan[key] = float("-inf")
    with pytest.raises(InvalidTariff, match=key):
        normalize_tariff(plan)


def test_compress_does_not_wrap_midnight():
    """Hours either side of midnight stay as two ranges."""
    assert compress_hours([22, 23, 0, 1]) == [(0, 2), (22, 24)]


def test_compress_deduplicates():
    """Repeated hours are ignored; a repeated pair value collapses to one hour."""
    assert compress_hours([5, 5, 6, 6]) == [(5, 6)]
    assert compress_hours([7, 7]) == [(7, 8)]


def test_compress_only_24_is_empty():
    """Hour 24 alone is not a slot."""
    assert compress_hours([24]) == []


def test_flat_defaults():
    """Flat tariffs mirror the import rate for exports and take schema defaults."""
    tariff = normalize_tariff({"type": "Flat", "rateImport": 0.4})
    assert tariff == FlatTariff(rate_import=0.4, rate_export=-0.4)
    assert (tariff.currency, tariff.timezone, tariff.prorate_fixed_fee) == ("USD", "UTC", True)


def test_flat_requires_rate():
    """A flat tariff without rateImport is rejected."""
    with pytest.raises(MissingFlatRate):
        normalize_tariff({"type": "flat"})


def test_tou_without_periods_falls_back_to_flat():
    """type=tou with no periods uses the top-level rates."""
    tariff = normalize_tariff({"type": "tou", "rateImport": 0.2, "rateExport": 0.05, "periods": []})
    assert isinstance(tariff, FlatTariff)
    assert tariff.rate_export == 0.05


def test_tou_without_periods_or_rate():
    """The flat fallback still needs a rate."""
    with pytest.raises(MissingFlatRate):
        normalize_tariff({"type": "tou"})


def test_unknown_type():
    """Only flat and tou are accepted."""
    with pytest.raises(UnknownTariffType, match="tiered") as exc:
        normalize_tariff({"type": "tiered", "rateImport": 0.1, "periods": [{"name": "x", "rateImport": 1, "hours": [0, 24]}]})
    assert exc.value.tariff_type == "tiered"


def test_tou_normalization(tou_input):
    """Periods are split into ranges, with defaults filled in."""
    tariff = normalize_tariff(tou_input)
    assert isinstance(tariff, TouTariff)
    assert tariff.fixed_monthly_fee == 10.0
    assert [(p.name, p.hour_start, p.hour_end) for p in tariff.periods] == [
        ("off-peak", 0, 16),
        ("peak", 16, 21),
        ("night", 21, 24),
    ]
    off_peak, peak, night = tariff.periods
    assert off_peak.rate_export == -0.25
    assert off_peak.days_of_week == (0, 1, 2, 3, 4, 5, 6)
    assert peak.rate_export == -0.1
    assert night.days_of_week == (0, 6)


def test_fragmented_hours_emit_one_period_per_range():
    """Each contiguous run shares the name, rates and days of its source."""
    tariff = normalize_tariff(
        {"type": "tou", "periods": [{"name": "shoulder", "rateImport": 0.3, "hours": [7, 8, 12, 13], "daysOfWeek": [1]}]}
    )
    assert [(p.hour_start, p.hour_end) for p in tariff.periods] == [(7, 9), (12, 14)]
    assert {(p.name, p.rate_import, p.days_of_week) for p in tariff.periods} == {("shoulder", 0.3, (1,))}


def test_invalid_hours():
    """Hours that compress to nothing are rejected."""
    with pytest.raises(InvalidHourSpec, match="bad"):
        normalize_tariff({"type": "tou", "periods": [{"name": "bad", "rateImport": 0.1, "hours": []}]})


def test_hours_out_of_range():
    """Hours must lie within 0..24."""
    with pytest.raises(InvalidHourSpec):
        normalize_tariff({"type": "tou", "periods": [{"name": "late", "rateImport": 0.1, "hours": [20, 25]}]})


def test_explicit_range_must_be_increasing():
    """A period's end hour must be after its start hour."""
    with pytest.raises(InvalidHourSpec):
        TariffPeriod(name="p", rate_import=0.1, rate_export=-0.1, hour_start=5, hour_end=5)


def test_overlap_detected():
    """Two periods claiming hour 14 conflict."""
    with pytest.raises(OverlappingPeriods) as exc:
        normalize_tariff(
            {
                "type": "tou",
                "periods": [
                    {"name": "day", "rateImport": 0.2, "hours": [8, 15]},
                    {"name": "peak", "rateImport": 0.5, "hours": [14, 20]},
                ],
            }
        )
    assert (exc.value.hour, exc.value.period, exc.value.conflicting_period) == (14, "peak", "day")


def test_overlap_ignores_days_of_week():
    """Same hours on disjoint days still conflict on the 24-slot grid."""
    with pytest.raises(OverlappingPeriods):
        normalize_tariff(
            {
                "type": "tou",
                "periods": [
                    {"name": "weekday", "rateImport": 0.2, "hours": [0, 24], "daysOfWeek": [1, 2, 3, 4, 5]},
                    {"name": "weekend", "rateImport": 0.1, "hours": [0, 24], "daysOfWeek": [0, 6]},
                ],
            }
        )


def test_disjoint_hours_succeed():
    """Disjoint ranges on the same days are fine, and full coverage is optional."""
    periods = [
        TariffPeriod("a", 0.1, -0.1, 0, 7),
        TariffPeriod("b", 0.2, -0.2, 7, 12),
    ]
    validate_tou_coverage(periods)


def test_negative_import_rate_rejected():
    """Import rates must be non-negative."""
    with pytest.raises(InvalidTariff):
        normalize_tariff({"type": "flat", "rateImport": -0.1})


def test_bad_days_rejected():
    """Days of week must be 0..6."""
    with pytest.raises(InvalidTariff):
        normalize_tariff({"type": "tou", "periods": [{"name": "p", "rateImport": 0.1, "hours": [0, 24], "daysOfWeek": [7]}]})


def test_unknown_timezone_rejected():
    """Timezones are validated at normalization time."""
    with pytest.raises(InvalidTariff, match="Mars/Olympus"):
        normalize_tariff({"type": "flat", "rateImport": 0.1, "timezone": "Mars/Olympus"})


def test_non_numeric_rate_rejected():
    """Rates must be numbers."""
    with pytest.raises(InvalidTariff):
        RawTariffInput.from_dict({"type": "flat", "rateImport": "0.4"})


def test_tool_default_timezone():
    """The loose tool path can supply its own default timezone."""
    tariff = normalize_tariff({"type": "flat", "rateImport": 0.1}, default_timezone=TOOL_DEFAULT_TIMEZONE)
    assert tariff.timezone == "America/Los_Angeles"


def test_renormalization_is_idempotent(tou_input):
    """Feeding a normalized tariff back through gives identical periods."""
    tariff = normalize_tariff(tou_input)
    again = normalize_tariff(tariff.to_dict())
    assert again == tariff
    assert normalize_tariff(again.to_dict()).periods == tariff.periods


def test_load_from_yaml(tmp_path):
    """Tariff files may nest the tariff under a `tariff` key."""
    path = tmp_path / "tariff.yaml"
    path.write_text(
        "tariff:\n"
        "  type: tou\n"
        "  timezone: Europe/London\n"
        "  periods:\n"
        "    - {name: cheap, rateImport: 0.07, hours: [0, 7]}\n"
        "    - {name: standard, rateImport: 0.25, hours: [7, 24]}\n"
    )
    tariff = load_tariff_from_yaml(path)
    assert tariff.timezone == "Europe/London"
    assert [p.name for p in tariff.periods] == ["cheap", "standard"]
