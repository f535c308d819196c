"""Tool functions for an LLM agent.

Each tool takes loose JSON arguments and returns a JSON-serializable dict.
Tariffs and windows are normalized here and never passed on in loose form.
"""

import math
from pathlib import Path
from typing import Any, Callable

from . import db
from .analysis import totals
from .config import Settings, load_settings
from .cost import accumulate, accumulate_partitioned
from .errors import EmptyOperands, EnergyCostError, InvalidWindowSpec
from .models import TimeWindow
from .summation import stable_sum
from .tariffs import normalize_tariff
from .window import HOUR, parse_instant, resolve_window_spec, start_of_month

CALC_OPERATIONS = ("sum", "avg", "min", "max", "percentChange")


def _settings(settings: Settings | None) -> Settings:
    return settings or load_settings()


def _db_path(db_path: Path | None, settings: Settings | None) -> Path:
    return db_path or _settings(settings).db_path


def _range(args: dict) -> tuple:
    if not args.get("from") or not args.get("to"):
        raise InvalidWindowSpec("Both `from` and `to` are required.")
    return parse_instant(args["from"]), parse_instant(args["to"])


def plan_cost(args: dict, db_path: Path | None = None, settings: Settings | None = None) -> dict:
    """Simulate electricity cost for a window under a flat or TOU plan."""
    settings = _settings(settings)
    tariff = normalize_tariff(
        args.get("plan") or {},
        default_timezone=settings.tool_timezone,
        default_currency=settings.currency,
    )
    window = resolve_window_spec(args)
    readings = db.get_readings(window.start, window.end, _db_path(db_path, settings))

    if args.get("byMonth"):
        result = accumulate_partitioned(window, tariff, readings)
    else:
        result = accumulate(window, tariff, readings)
    return result.to_dict(include_trace=bool(args.get("trace")))


def calc(args: dict, db_path: Path | None = None, settings: Settings | None = None) -> dict:
    """Deterministic arithmetic: sum, avg, min, max, percentChange ([old, new])."""
    op = args.get("op")
    try:
        values = [float(v) for v in args.get("values") or []]
    except (TypeError, ValueError) as e:
        raise EnergyCostError(f"Values must be numbers: {e}") from e
    if op not in CALC_OPERATIONS:
        raise EnergyCostError(f"Invalid operation {op!r}; use one of {', '.join(CALC_OPERATIONS)}")
    if not values:
        raise EmptyOperands("Values array cannot be empty", required=1, received=0)

    if op == "sum":
        return {"result": stable_sum(values)}
    if op == "avg":
        return {"result": stable_sum(values) / len(values)}
    if op == "min":
        return {"result": min(values)}
    if op == "max":
        return {"result": max(values)}

    if len(values) != 2:
        raise EmptyOperands("percentChange expects [old, new]", required=2, received=len(values))
    old, new = values
    if old == 0:
        return {"result": 0.0 if new == 0 else math.inf}
    return {"result": (new - old) / old}


def energy_totals(args: dict, db_path: Path | None = None, settings: Settings | None = None) -> dict:
    """Total usage/import/export or billed cost for a window."""
    settings = _settings(settings)
    window = resolve_window_spec(args)
    return totals.energy_totals(
        window,
        metric=args.get("metric") or "usage",
        db_path=_db_path(db_path, settings),
        currency=args.get("currency") or settings.currency,
    )


def monthly_import_export(
    args: dict, db_path: Path | None = None, settings: Settings | None = None
) -> dict:
    """Monthly import/export totals, for a window or for the whole dataset."""
    path = _db_path(db_path, settings)
    if args.get("date") or args.get("from") or args.get("to"):
        window = resolve_window_spec({**args, "bucket": "month"})
    else:
        stats = db.get_stats(path)["energy_usage"]
        if not stats["count"]:
            return {"metric": "monthly_import_export", "bucket": "month", "months": []}
        window = TimeWindow(
            start_of_month(parse_instant(stats["earliest"])),
            parse_instant(stats["latest"]) + HOUR,
            "month",
        )
    return totals.monthly_import_export(window, path)


def get_series(args: dict, db_path: Path | None = None, settings: Settings | None = None) -> dict:
    """Bucketed time series for import/export/net."""
    start, end = _range(args)
    return totals.get_series(start, end, args.get("metric"), _db_path(db_path, settings))


def get_stats(args: dict, db_path: Path | None = None, settings: Settings | None = None) -> dict:
    """Summary stats over daily buckets."""
    start, end = _range(args)
    return totals.get_stats(start, end, args.get("metric"), _db_path(db_path, settings))


def get_top_days(args: dict, db_path: Path | None = None, settings: Settings | None = None) -> dict:
    """Top K days by import/export/net."""
    start, end = _range(args)
    try:
        k = int(args.get("k", 10))
    except (TypeError, ValueError, OverflowError) as e:
        raise EnergyCostError(f"`k` must be an integer, got {args.get('k')!r}") from e
    return totals.get_top_days(start, end, args.get("metric"), k, _db_path(db_path, settings))


def get_hour_of_day_profile(
    args: dict, db_path: Path | None = None, settings: Settings | None = None
) -> dict:
    """Average import/export/net by clock hour."""
    start, end = _range(args)
    return totals.get_hour_of_day_profile(start, end, args.get("metric"), _db_path(db_path, settings))


ToolFunction = Callable[..., dict]

TOOLS: dict[str, ToolFunction] = {
    "planCost": plan_cost,
    "energyTotals": energy_totals,
    "monthlyImportExport": monthly_import_export,
    "getSeries": get_series,
    "getStats": get_stats,
    "getTopDays": get_top_days,
    "getHourOfDayProfile": get_hour_of_day_profile,
    "calc": calc,
}


def run_tool(
    name: str, args: dict[str, Any], db_path: Path | None = None, settings: Settings | None = None
) -> dict:
    """Invoke a tool by name.

    Engine errors come back as ``{"error": {"type", "message"}}`` so the agent
    can correct its arguments. Unknown tool names raise KeyError.
    """
    tool = TOOLS[name]
    try:
        return tool(args, db_path=db_path, settings=settings)
    except EnergyCostError as e:
        return {"error": {"type": type(e).__name__, "message": str(e)}}
