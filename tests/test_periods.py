"""Tests for matching instants to TOU periods."""

from datetime import datetime, timezone

import pytest

from energy_costs.errors import InvalidTariff
from energy_costs.models import TariffPeriod
from energy_costs.periods import local_hour_and_weekday, match_period

WEEKDAYS = (1, 2, 3, 4, 5)


@pytest.fixture
def periods():
    return [
        TariffPeriod("weekday-peak", 0.5, -0.5, 16, 21, WEEKDAYS),
        TariffPeriod("off-peak", 0.2, -0.2, 0, 16),
        TariffPeriod("evening", 0.3, -0.3, 21, 24),
    ]


def test_local_hour_and_weekday():
    """UTC instants are converted to local clock hour and Sunday-based weekday."""
    # 2025-07-14 03:00 UTC is Sunday 20:00 in Los Angeles (PDT)
    instant = datetime(2025, 7, 14, 3, tzinfo=timezone.utc)
    assert local_hour_and_weekday(instant, "America/Los_Angeles") == (20, 0)
    assert local_hour_and_weekday(instant, "UTC") == (3, 1)


def test_match_uses_local_time(periods):
    """Monday 17:00 local is peak; the same UTC hour is off-peak in UTC."""
    instant = datetime(2025, 7, 15, 0, tzinfo=timezone.utc)  # Mon 17:00 PDT
    assert match_period(instant, periods, "America/Los_Angeles").name == "weekday-peak"
    assert match_period(instant, periods, "UTC").name == "off-peak"


def test_day_restriction(periods):
    """Weekend evenings at peak hours match nothing."""
    instant = datetime(2025, 7, 13, 0, tzinfo=timezone.utc)  # Sat 17:00 PDT
    assert match_period(instant, periods, "America/Los_Angeles") is None


def test_first_match_wins():
    """When periods overlap, input order breaks the tie."""
    overlapping = [
        TariffPeriod("first", 0.1, -0.1, 0, 24),
        TariffPeriod("second", 0.2, -0.2, 10, 12),
    ]
    instant = datetime(2025, 1, 1, 11, tzinfo=timezone.utc)
    assert match_period(instant, overlapping, "UTC").name == "first"


def test_dst_transition():
    """Local hour follows daylight saving changes."""
    before = datetime(2025, 3, 9, 9, tzinfo=timezone.utc)  # 01:00 PST
    after = datetime(2025, 3, 9, 10, tzinfo=timezone.utc)  # 03:00 PDT
    assert local_hour_and_weekday(before, "America/Los_Angeles")[0] == 1
    assert local_hour_and_weekday(after, "America/Los_Angeles")[0] == 3


def test_unknown_zone():
    """Unknown timezone ids are rejected."""
    with pytest.raises(InvalidTariff):
        local_hour_and_weekday(datetime(2025, 1, 1, tzinfo=timezone.utc), "Not/AZone")
