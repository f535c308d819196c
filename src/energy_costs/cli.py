"""Command-line interface for energy cost analysis."""

import json
from pathlib import Path
from zoneinfo import ZoneInfoNotFoundError

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import db, tools
from .analysis import totals
from .collectors import utility_csv
from .config import load_settings
from .cost import accumulate, accumulate_partitioned
from .errors import EnergyCostError
from .models import FlatTariff, isoformat_utc
from .tariffs import load_tariff_from_yaml
from .window import parse_instant, resolve_window

console = Console()


def window_options(func):
    """Add --date/--from/--to/--bucket options to a command."""
    options = [
        click.option("--date", help="Day (or hour/month with --bucket) to cover, ISO-8601"),
        click.option("--from", "start", help="Window start, ISO-8601 (UTC if no offset)"),
        click.option("--to", "end", help="Window end (exclusive), ISO-8601"),
        click.option("--bucket", type=click.Choice(["hour", "day", "month"]), help="Granularity"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def fail(ctx: click.Context, message: str) -> None:
    console.print(f"[red]Error: {escape(message)}[/red]")
    ctx.exit(1)


def tariff_path_or_fail(ctx: click.Context, tariff_path: str | None) -> Path:
    path = Path(tariff_path) if tariff_path else ctx.obj["settings"].tariff_path
    if not path:
        fail(ctx, "Please specify --tariff or set ENERGY_COSTS_TARIFF_PATH")
    return path


@click.group()
@click.option("--db-path", type=click.Path(), help="Path to SQLite database")
@click.pass_context
def cli(ctx, db_path):
    """Energy cost analysis - price hourly meter readings under any tariff."""
    ctx.ensure_object(dict)
    settings = load_settings()
    path = Path(db_path) if db_path else settings.db_path
    path.parent.mkdir(parents=True, exist_ok=True)
    ctx.obj["settings"] = settings
    ctx.obj["db_path"] = path


# Database commands
@cli.group()
def database():
    """Database management commands."""
    pass


@database.command("init")
@click.pass_context
def db_init(ctx):
    """Initialize the database schema."""
    db.init_db(ctx.obj["db_path"])
    console.print("[green]Database initialized successfully[/green]")


@database.command("stats")
@click.pass_context
def db_stats(ctx):
    """Show database statistics."""
    stats = db.get_stats(ctx.obj["db_path"])["energy_usage"]

    table = Table(title="Database Statistics")
    table.add_column("Category", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Range")

    table.add_row(
        "Hourly readings",
        str(stats["count"]),
        f"{stats['earliest'] or 'N/A'} → {stats['latest'] or 'N/A'}",
    )
    table.add_row("  └ with billed cost", str(stats["with_cost"]), "")

    console.print(table)


# Import commands
@cli.group("import")
def import_cmd():
    """Import meter data."""
    pass


@import_cmd.command("csv")
@click.option("--file", "file_path", type=click.Path(exists=True), required=True, help="Utility CSV export")
@click.option("--timezone", help="Timezone of the DATE/START TIME columns")
@click.pass_context
def import_csv(ctx, file_path, timezone):
    """Import hourly usage from a utility CSV export."""
    tz = timezone or ctx.obj["settings"].tool_timezone
    try:
        result = utility_csv.import_from_csv(Path(file_path), ctx.obj["db_path"], timezone=tz)
    except (ValueError, ZoneInfoNotFoundError) as e:
        fail(ctx, str(e))
        return

    console.print(f"[green]Imported {result['imported']} readings[/green]")
    if result["skipped"]:
        console.print(f"[yellow]Skipped {result['skipped']} duplicates[/yellow]")
    if result["invalid"]:
        console.print(f"[yellow]Ignored {result['invalid']} invalid rows[/yellow]")


# Tariff commands
@cli.group()
def tariff():
    """Tariff commands."""
    pass


@tariff.command("show")
@click.option("--tariff", "tariff_path", type=click.Path(exists=True), help="Path to tariff YAML/JSON")
@click.pass_context
def tariff_show(ctx, tariff_path):
    """Validate a tariff file and show its normalized form."""
    path = tariff_path_or_fail(ctx, tariff_path)
    try:
        plan = load_tariff_from_yaml(path, default_timezone=ctx.obj["settings"].schema_timezone)
    except EnergyCostError as e:
        fail(ctx, str(e))
        return

    console.print(
        f"[cyan]{plan.kind.upper()}[/cyan] tariff in {plan.currency}, timezone {plan.timezone}; "
        f"fixed fee {plan.fixed_monthly_fee:.2f}/month "
        f"({'prorated' if plan.prorate_fixed_fee else 'not prorated'})"
    )

    if isinstance(plan, FlatTariff):
        console.print(f"  Import: {plan.rate_import}/kWh  Export: {plan.rate_export}/kWh")
        return

    table = Table(title="Time-of-use periods")
    table.add_column("Period", style="cyan")
    table.add_column("Hours")
    table.add_column("Days")
    table.add_column("Import", justify="right")
    table.add_column("Export", justify="right")
    for p in plan.periods:
        table.add_row(
            p.name,
            f"{p.hour_start:02d}:00 - {p.hour_end:02d}:00",
            ",".join(str(d) for d in p.days_of_week),
            f"{p.rate_import}",
            f"{p.rate_export}",
        )
    console.print(table)


# Cost commands
@cli.command()
@click.option("--tariff", "tariff_path", type=click.Path(exists=True), help="Path to tariff YAML/JSON")
@window_options
@click.option("--by-month", is_flag=True, help="Break the energy cost down by UTC month")
@click.option("--trace", is_flag=True, help="Show the period matched for each reading")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def cost(ctx, tariff_path, date, start, end, bucket, by_month, trace, as_json):
    """Calculate what a window of readings costs under a tariff."""
    path = tariff_path_or_fail(ctx, tariff_path)
    try:
        plan = load_tariff_from_yaml(path, default_timezone=ctx.obj["settings"].schema_timezone)
        window = resolve_window(date=date, start=start, end=end, bucket=bucket)
        readings = db.get_readings(window.start, window.end, ctx.obj["db_path"])
        if by_month:
            result = accumulate_partitioned(window, plan, readings)
        else:
            result = accumulate(window, plan, readings)
    except EnergyCostError as e:
        fail(ctx, str(e))
        return

    if as_json:
        click.echo(json.dumps(result.to_dict(include_trace=trace), indent=2))
        return

    table = Table(title=f"Plan cost {isoformat_utc(window.start)} → {isoformat_utc(window.end)}")
    table.add_column("Item", style="cyan")
    table.add_column(result.currency, justify="right")
    for month, value in result.breakdown:
        table.add_row(f"  energy {month}", f"{value:.2f}")
    table.add_row(f"Energy ({result.reading_count} hours)", f"{result.energy_cost:.2f}")
    table.add_row("Fixed fee", f"{result.fixed_fee:.2f}")
    style = "green" if result.total < 0 else "bold"
    table.add_row("Total", f"[{style}]{result.total:.2f}[/{style}]")
    console.print(table)
    if result.total < 0:
        console.print("[green]Negative total: net credit[/green]")

    if trace and result.trace:
        trace_table = Table(title="Matched periods")
        trace_table.add_column("Hour (UTC)", style="cyan")
        trace_table.add_column("Local hour", justify="right")
        trace_table.add_column("Weekday", justify="right")
        trace_table.add_column("Period")
        for m in result.trace:
            trace_table.add_row(isoformat_utc(m.timestamp), str(m.local_hour), str(m.local_weekday), m.period_name)
        console.print(trace_table)


@cli.command("totals")
@click.option(
    "--metric",
    type=click.Choice(list(totals.TOTAL_METRICS)),
    default="usage",
    help="usage = import - export",
)
@window_options
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def totals_cmd(ctx, metric, date, start, end, bucket, as_json):
    """Total usage, import, export or billed cost for a window."""
    try:
        window = resolve_window(date=date, start=start, end=end, bucket=bucket)
        data = totals.energy_totals(window, metric, ctx.obj["db_path"], ctx.obj["settings"].currency)
    except EnergyCostError as e:
        fail(ctx, str(e))
        return

    if as_json:
        click.echo(json.dumps(data, indent=2))
    else:
        console.print(
            f"{metric} {data['window']['from']} → {data['window']['to']}: "
            f"[bold]{data['total']:.2f} {data['unit']}[/bold]"
        )


@cli.command()
@click.option("--date", help="Any day in the month to cover")
@click.option("--from", "start", help="Start of range")
@click.option("--to", "end", help="End of range (exclusive)")
@click.pass_context
def monthly(ctx, date, start, end):
    """Monthly import/export totals."""
    args = {"date": date, "from": start, "to": end}
    try:
        data = tools.monthly_import_export(args, ctx.obj["db_path"], ctx.obj["settings"])
    except EnergyCostError as e:
        fail(ctx, str(e))
        return

    if not data["months"]:
        console.print("[yellow]No readings found[/yellow]")
        return

    table = Table(title="Monthly import/export")
    table.add_column("Month", style="cyan")
    table.add_column("Import kWh", justify="right")
    table.add_column("Export kWh", justify="right")
    for row in data["months"]:
        table.add_row(row["month"], f"{row['import_kwh']:.2f}", f"{row['export_kwh']:.2f}")
    console.print(table)


@cli.command()
@click.option("--from", "start", required=True, help="Start, ISO-8601")
@click.option("--to", "end", required=True, help="End (exclusive), ISO-8601")
@click.option("--metric", type=click.Choice(list(totals.SERIES_METRICS)), default="net")
@click.pass_context
def series(ctx, start, end, metric):
    """Bucketed time series (bucket chosen from the span)."""
    try:
        data = totals.get_series(parse_instant(start), parse_instant(end), metric, ctx.obj["db_path"])
    except EnergyCostError as e:
        fail(ctx, str(e))
        return

    table = Table(title=f"{metric} by {data['bucket']}")
    table.add_column("Bucket", style="cyan")
    table.add_column("kWh", justify="right")
    for point in data["series"]:
        table.add_row(point["x"], f"{point['y']:.2f}")
    console.print(table)


@cli.command("calc")
@click.argument("op", type=click.Choice(list(tools.CALC_OPERATIONS)))
@click.argument("values", nargs=-1, type=float)
@click.pass_context
def calc_cmd(ctx, op, values):
    """Deterministic arithmetic over VALUES."""
    try:
        result = tools.calc({"op": op, "values": list(values)})
    except EnergyCostError as e:
        fail(ctx, str(e))
        return
    console.print(result["result"])


@cli.command("tool")
@click.argument("name", type=click.Choice(list(tools.TOOLS)))
@click.option("--args", "args_json", default="{}", help="Tool arguments as a JSON object")
@click.pass_context
def tool_cmd(ctx, name, args_json):
    """Invoke an agent tool and print its JSON result."""
    try:
        args = json.loads(args_json)
    except json.JSONDecodeError as e:
        fail(ctx, f"--args is not valid JSON: {e}")
        return

    result = tools.run_tool(name, args, ctx.obj["db_path"], ctx.obj["settings"])
    click.echo(json.dumps(result, indent=2))
    if "error" in result:
        ctx.exit(1)


if __name__ == "__main__":
    cli()
