"""Database connection, schema and hourly reading storage."""

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator

from .config import DEFAULT_DB_PATH
from .models import HourlyReading, as_utc

SCHEMA = """
-- Hourly meter readings; usage_hour is UTC ISO text so string order is time order
CREATE TABLE IF NOT EXISTS energy_usage (
    id INTEGER PRIMARY KEY,
    usage_hour TEXT NOT NULL UNIQUE,
    import_kwh REAL,
    export_kwh REAL,
    actual_cost REAL
);

CREATE INDEX IF NOT EXISTS idx_usage_hour ON energy_usage(usage_hour);
"""


def format_hour(dt: datetime) -> str:
    """Storage key for an instant: UTC ISO-8601 with offset."""
    return as_utc(dt).isoformat()


def get_db_path() -> Path:
    """Get the database path, creating parent directories if needed."""
    db_path = Path(DEFAULT_DB_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


@contextmanager
def get_connection(db_path: Path | None = None) -> Iterator[sqlite3.Connection]:
    """Get a database connection with row factory enabled."""
    path = db_path or get_db_path()
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: Path | None = None) -> None:
    """Initialize the database schema."""
    with get_connection(db_path) as conn:
        conn.executescript(SCHEMA)
        conn.commit()


def save_readings(readings: Iterable[HourlyReading], db_path: Path | None = None) -> dict:
    """Save hourly readings, skipping hours already stored.

    Returns dict with 'imported' and 'skipped' counts.
    """
    imported = 0
    skipped = 0

    with get_connection(db_path) as conn:
        for reading in readings:
            try:
                conn.execute(
                    """INSERT INTO energy_usage (usage_hour, import_kwh, export_kwh, actual_cost)
                       VALUES (?, ?, ?, ?)""",
                    (
                        format_hour(reading.timestamp),
                        reading.import_kwh,
                        reading.export_kwh,
                        reading.actual_cost,
                    ),
                )
                imported += 1
            except sqlite3.IntegrityError:
                # Duplicate usage_hour
                skipped += 1

        conn.commit()

    return {"imported": imported, "skipped": skipped}


def _row_to_reading(row: sqlite3.Row) -> HourlyReading:
    return HourlyReading(
        timestamp=datetime.fromisoformat(row["usage_hour"]),
        import_kwh=row["import_kwh"] or 0.0,
        export_kwh=row["export_kwh"] or 0.0,
        actual_cost=row["actual_cost"],
    )


def get_readings(start: datetime, end: datetime, db_path: Path | None = None) -> list[HourlyReading]:
    """Get readings with start <= usage_hour < end, ordered by time."""
    with get_connection(db_path) as conn:
        rows = conn.execute(
            """SELECT usage_hour, import_kwh, export_kwh, actual_cost
               FROM energy_usage
               WHERE usage_hour >= ? AND usage_hour < ?
               ORDER BY usage_hour""",
            (format_hour(start), format_hour(end)),
        ).fetchall()
    return [_row_to_reading(row) for row in rows]


def get_latest_reading(db_path: Path | None = None) -> datetime | None:
    """Get the timestamp of the most recent reading."""
    with get_connection(db_path) as conn:
        row = conn.execute("SELECT MAX(usage_hour) as latest FROM energy_usage").fetchone()
        if row and row["latest"]:
            return datetime.fromisoformat(row["latest"])
        return None


def get_stats(db_path: Path | None = None) -> dict:
    """Get database statistics."""
    with get_connection(db_path) as conn:
        row = conn.execute(
            """SELECT COUNT(*) as count, MIN(usage_hour) as earliest, MAX(usage_hour) as latest,
                      SUM(actual_cost IS NOT NULL) as with_cost
               FROM energy_usage"""
        ).fetchone()
        return {
            "energy_usage": {
                "count": row["count"],
                "earliest": row["earliest"],
                "latest": row["latest"],
                "with_cost": row["with_cost"] or 0,
            }
        }
