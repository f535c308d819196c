"""Tests for the utility CSV importer."""

from datetime import datetime, timezone

import pytest

from energy_costs.collectors import utility_csv
from energy_costs.db import get_readings

SAMPLE = """Name,JANE DOE
Address,1 MAIN ST
Account Number,12345

TYPE,DATE,START TIME,END TIME,IMPORT (kWh),EXPORT (kWh),COST,NOTES
Electric usage,2025-07-14,00:00,00:59,0.52,0.00,$0.15,
Electric usage,2025-07-14,01:00,01:59,0.418,0.004,$0.127,
Electric usage,2025-07-14,02:00,02:59,not-a-number,0.00,$0.10,
Electric usage,2025-07-14
"""


def test_parse_csv():
    """Local times are converted to UTC and values rounded to cents."""
    readings, invalid = utility_csv.parse_csv(SAMPLE, timezone="America/Los_Angeles")

    assert invalid == 2
    assert len(readings) == 2
    assert readings[0].timestamp == datetime(2025, 7, 14, 7, tzinfo=timezone.utc)
    assert readings[1].import_kwh == 0.42
    assert readings[1].export_kwh == 0.0
    assert readings[1].actual_cost == 0.13


def test_missing_header():
    """Files without the header row are rejected."""
    with pytest.raises(ValueError, match="header"):
        utility_csv.parse_csv("a,b,c\n1,2,3\n")


def test_import_from_csv(tmp_path, db_path):
    """Importing twice skips the hours already stored."""
    path = tmp_path / "usage.csv"
    path.write_text(SAMPLE)

    result = utility_csv.import_from_csv(path, db_path, timezone="UTC")
    assert result == {"imported": 2, "skipped": 0, "invalid": 2}
    assert utility_csv.import_from_csv(path, db_path, timezone="UTC")["skipped"] == 2

    readings = get_readings(datetime(2025, 7, 14, tzinfo=timezone.utc), datetime(2025, 7, 15, tzinfo=timezone.utc), db_path)
    assert [r.import_kwh for r in readings] == [0.52, 0.42]


FALL_BACK = """TYPE,DATE,START TIME,END TIME,IMPORT (kWh),EXPORT (kWh),COST,NOTES
Electric usage,2025-11-02,00:00,00:59,0.30,0.00,$0.09,
Electric usage,2025-11-02,01:00,01:59,0.40,0.00,$0.12,
Electric usage,2025-11-02,01:00,01:59,0.50,0.00,$0.15,
Electric usage,2025-11-02,02:00,02:59,0.60,0.00,$0.18,
"""


def test_parse_csv_repeated_hour_on_fall_back():
    """The second 01:00 row after clocks go back is the following UTC hour."""
    readings, invalid = utility_csv.parse_csv(FALL_BACK, timezone="America/Los_Angeles")

    assert invalid == 0
    assert [r.timestamp.hour for r in readings] == [7, 8, 9, 10]


def test_import_keeps_repeated_hour(tmp_path, db_path):
    path = tmp_path / "usage.csv"
    path.write_text(FALL_BACK)

    result = utility_csv.import_from_csv(path, db_path, timezone="America/Los_Angeles")
    assert result == {"imported": 4, "skipped": 0, "invalid": 0}
