"""Usage totals, series and profiles over half-open windows."""

from datetime import datetime
from pathlib import Path

from ..db import format_hour, get_connection, get_readings
from ..errors import UnknownMetric
from ..models import TimeWindow
from ..summation import stable_sum
from ..window import choose_bucket

TOTAL_METRICS = ("usage", "import", "export", "actual_cost")
SERIES_METRICS = ("import", "export", "net")

SERIES_EXPR = {
    "import": "COALESCE(import_kwh, 0)",
    "export": "COALESCE(export_kwh, 0)",
    "net": "COALESCE(import_kwh, 0) - COALESCE(export_kwh, 0)",
}

# Length of the usage_hour prefix that identifies each bucket
BUCKET_PREFIX = {"hour": 13, "day": 10, "month": 7}

MAX_SERIES_POINTS = 400
MAX_TOP_DAYS = 50


def _check_metric(metric: str, allowed: tuple[str, ...]) -> None:
    if metric not in allowed:
        raise UnknownMetric(metric, allowed)


def bucket_label(prefix: str) -> str:
    """Expand a usage_hour prefix (YYYY-MM, YYYY-MM-DD or YYYY-MM-DDTHH) to ISO."""
    if len(prefix) == 7:
        prefix += "-01"
    if len(prefix) == 10:
        prefix += "T00"
    return f"{prefix}:00:00Z"


def energy_totals(
    window: TimeWindow, metric: str = "usage", db_path: Path | None = None, currency: str = "USD"
) -> dict:
    """Total usage, import, export or billed cost for a window.

    usage = import - export.
    """
    _check_metric(metric, TOTAL_METRICS)
    readings = get_readings(window.start, window.end, db_path)

    if metric == "usage":
        total = stable_sum(r.import_kwh - r.export_kwh for r in readings)
    elif metric == "import":
        total = stable_sum(r.import_kwh for r in readings)
    elif metric == "export":
        total = stable_sum(r.export_kwh for r in readings)
    else:
        total = stable_sum(r.actual_cost or 0.0 for r in readings)

    result = {
        "metric": metric,
        "window": window.to_dict(),
        "total": total,
        "unit": currency if metric == "actual_cost" else "kWh",
    }
    if metric == "usage":
        result["note"] = "usage = SUM(import_kwh - export_kwh)"
    return result


def monthly_import_export(window: TimeWindow, db_path: Path | None = None) -> dict:
    """Monthly import/export totals within a window."""
    with get_connection(db_path) as conn:
        rows = conn.execute(
            """SELECT substr(usage_hour, 1, 7) as month,
                      SUM(COALESCE(import_kwh, 0)) as import_kwh,
                      SUM(COALESCE(export_kwh, 0)) as export_kwh
               FROM energy_usage
               WHERE usage_hour >= ? AND usage_hour < ?
               GROUP BY 1
               ORDER BY 1""",
            (format_hour(window.start), format_hour(window.end)),
        ).fetchall()

    return {
        "metric": "monthly_import_export",
        "bucket": "month",
        "window": window.to_dict(),
        "months": [
            {
                "month": row["month"],
                "import_kwh": row["import_kwh"] or 0.0,
                "export_kwh": row["export_kwh"] or 0.0,
            }
            for row in rows
        ],
    }


def get_series(start: datetime, end: datetime, metric: str, db_path: Path | None = None) -> dict:
    """Bucketed time series for plotting, at most MAX_SERIES_POINTS points."""
    _check_metric(metric, SERIES_METRICS)
    bucket = choose_bucket(start, end)

    with get_connection(db_path) as conn:
        rows = conn.execute(
            f"""SELECT substr(usage_hour, 1, ?) as bucket, SUM({SERIES_EXPR[metric]}) as y
                FROM energy_usage
                WHERE usage_hour >= ? AND usage_hour < ?
                GROUP BY 1
                ORDER BY 1
                LIMIT ?""",
            (BUCKET_PREFIX[bucket], format_hour(start), format_hour(end), MAX_SERIES_POINTS),
        ).fetchall()

    return {
        "bucket": bucket,
        "series": [{"x": bucket_label(row["bucket"]), "y": row["y"]} for row in rows],
    }


def _daily_values(start: datetime, end: datetime, metric: str, db_path: Path | None) -> list:
    with get_connection(db_path) as conn:
        return conn.execute(
            f"""SELECT substr(usage_hour, 1, 10) as day, SUM({SERIES_EXPR[metric]}) as v
                FROM energy_usage
                WHERE usage_hour >= ? AND usage_hour < ?
                GROUP BY 1
                ORDER BY 1""",
            (format_hour(start), format_hour(end)),
        ).fetchall()


def get_stats(start: datetime, end: datetime, metric: str, db_path: Path | None = None) -> dict:
    """Summary statistics over daily totals."""
    _check_metric(metric, SERIES_METRICS)
    values = [row["v"] for row in _daily_values(start, end, metric, db_path)]
    if not values:
        return {"n": 0, "sum": 0.0, "mean": None, "min": None, "max": None}

    total = stable_sum(values)
    return {
        "n": len(values),
        "sum": total,
        "mean": total / len(values),
        "min": min(values),
        "max": max(values),
    }


def get_top_days(
    start: datetime, end: datetime, metric: str, k: int = 10, db_path: Path | None = None
) -> dict:
    """Top k days (at most MAX_TOP_DAYS) by daily total."""
    _check_metric(metric, SERIES_METRICS)
    rows = _daily_values(start, end, metric, db_path)
    top = sorted(rows, key=lambda row: row["v"], reverse=True)[: max(0, min(k, MAX_TOP_DAYS))]
    return {"topDays": [{"day": bucket_label(row["day"]), "v": row["v"]} for row in top]}


def get_hour_of_day_profile(
    start: datetime, end: datetime, metric: str, db_path: Path | None = None
) -> dict:
    """Average value per UTC clock hour (up to 24 rows)."""
    _check_metric(metric, SERIES_METRICS)
    with get_connection(db_path) as conn:
        rows = conn.execute(
            f"""SELECT CAST(substr(usage_hour, 12, 2) AS INTEGER) as hour,
                       AVG({SERIES_EXPR[metric]}) as v
                FROM energy_usage
                WHERE usage_hour >= ? AND usage_hour < ?
                GROUP BY 1
                ORDER BY 1""",
            (format_hour(start), format_hour(end)),
        ).fetchall()
    return {"byHour": [{"hour": row["hour"], "v": row["v"]} for row in rows]}
