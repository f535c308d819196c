"""Utility hourly usage importer.

Imports the hourly export downloaded from the utility's customer portal. The
file starts with account preamble lines, then a header row and one row per hour:
TYPE, DATE, START TIME, END TIME, IMPORT (kWh), EXPORT (kWh), COST
Dates and times are local to the meter's timezone.
"""

import csv
import io
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from ..db import save_readings
from ..models import HourlyReading, as_utc
from ..tariffs import TOOL_DEFAULT_TIMEZONE

HEADER_MARKER = "TYPE,DATE,START TIME"


def parse_decimal(value: str) -> float:
    """Parse a number like '$1.23' or '0.456', rounded to two decimals."""
    return round(float(value.strip().replace("$", "")), 2)


def local_start(fields: list[str]) -> datetime:
    """Naive local start time of a data row. Raises ValueError if it is malformed."""
    if len(fields) < 7:
        raise ValueError(f"Expected 7 fields, got {len(fields)}")
    _type, date_str, start_str = (f.strip() for f in fields[:3])
    return datetime.fromisoformat(f"{date_str}T{start_str}")


def parse_row(fields: list[str], tz: ZoneInfo, fold: int = 0) -> HourlyReading:
    """Parse one data row. Raises ValueError if it is malformed.

    ``fold=1`` selects the second occurrence of a local time repeated when
    clocks go back.
    """
    local = local_start(fields).replace(tzinfo=tz, fold=fold)
    return HourlyReading(
        timestamp=as_utc(local),
        import_kwh=parse_decimal(fields[4]),
        export_kwh=parse_decimal(fields[5]),
        actual_cost=parse_decimal(fields[6]),
    )


def parse_csv(text: str, timezone: str = TOOL_DEFAULT_TIMEZONE) -> tuple[list[HourlyReading], int]:
    """Parse a utility export.

    Rows are in local time order, so a row that repeats or goes behind the
    previous row's local time is the repeated hour after a DST fall-back.

    Returns the readings and the number of rows that could not be parsed.
    """
    lines = text.splitlines()
    header_index = next((i for i, line in enumerate(lines) if HEADER_MARKER in line), None)
    if header_index is None:
        raise ValueError("Could not find header row in CSV file")

    tz = ZoneInfo(timezone)
    readings = []
    invalid = 0
    previous = None
    data = [line for line in lines[header_index + 1 :] if line.strip()]
    for fields in csv.reader(io.StringIO("\n".join(data))):
        try:
            local = local_start(fields)
            fold = 1 if previous is not None and local <= previous else 0
            readings.append(parse_row(fields, tz, fold))
        except ValueError:
            invalid += 1
            continue
        previous = local
    return readings, invalid


def import_from_csv(
    csv_path: Path, db_path: Path | None = None, timezone: str = TOOL_DEFAULT_TIMEZONE
) -> dict:
    """Import hourly readings from a utility CSV export.

    Returns dict with 'imported', 'skipped' and 'invalid' counts.
    """
    with open(csv_path, newline="", encoding="utf-8-sig") as f:
        readings, invalid = parse_csv(f.read(), timezone)
    result = save_readings(readings, db_path)
    result["invalid"] = invalid
    return result
