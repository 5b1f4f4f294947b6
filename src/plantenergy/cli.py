"""Command-line interface for plant energy analytics."""

import dataclasses
import functools
import json
import logging
from datetime import datetime
from pathlib import Path

import click
import httpx
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import db
from .analysis import accuracy, anomalies, projection, simulation, stats
from .collectors import gateway, meter_csv
from .config import get_log_level, get_site_config_path
from .errors import PlantEnergyError
from .models import Scope, parse_timestamp
from .sites import load_site_from_yaml, save_site_to_db
from .tariffs import calculate_supplier_cost, check_supplier_peak_time, estimate_supplier_costs

console = Console()
err_console = Console(stderr=True)


def handle_errors(f):
    """Print plantenergy errors and bad input values in red and exit with status 1."""

    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except (PlantEnergyError, ValueError) as e:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
            raise SystemExit(1)

    return wrapper


def print_json(data) -> None:
    if dataclasses.is_dataclass(data):
        data = dataclasses.asdict(data)
    console.print_json(json.dumps(data, default=str))


def parse_date(value: str | None) -> datetime | None:
    return parse_timestamp(value) if value else None


def scope_options(f):
    f = click.option("--plant", "plant_id", help="Plant id")(f)
    f = click.option("--area", "area_id", help="Area id")(f)
    f = click.option("--device", "device_id", help="Device id")(f)
    return f


@click.group()
@click.option("--db-path", type=click.Path(), help="Path to SQLite database")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, db_path, verbose):
    """Plant energy analytics - consumption statistics, costs and forecasts."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else get_log_level(),
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = Path(db_path) if db_path else None


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

    # Offer to load the site definition
    config_path = get_site_config_path()
    if config_path.exists():
        counts = save_site_to_db(load_site_from_yaml(config_path), ctx.obj["db_path"])
        console.print(
            f"[green]Loaded {counts['suppliers']} supplier(s) and {counts['plants']} plant(s) from config[/green]"
        )


@database.command("stats")
@click.pass_context
def db_stats(ctx):
    """Show database statistics."""
    data = db.get_stats(ctx.obj["db_path"])

    table = Table(title="Database Statistics")
    table.add_column("Category", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Range")

    readings = data["consumption_readings"]
    table.add_row(
        "Consumption readings",
        str(readings["count"]),
        f"{readings['earliest'] or 'N/A'} → {readings['latest'] or 'N/A'}",
    )
    for source, count in data.get("readings_by_source", {}).items():
        table.add_row(f"  └ {source}", str(count), "")

    table.add_row("Energy suppliers", str(data["energy_suppliers"]["count"]), "")
    table.add_row("Plants", str(data["plants"]["count"]), "")
    table.add_row("Areas", str(data["areas"]["count"]), "")
    table.add_row("Devices", str(data["devices"]["count"]), "")
    table.add_row(
        "Simulations",
        str(data["simulations"]["count"]),
        f"{data['simulations']['with_real']} with real consumption",
    )

    console.print(table)


# Site commands
@cli.group()
def site():
    """Supplier and plant hierarchy commands."""
    pass


@site.command("load")
@click.option("--config", type=click.Path(exists=True), help="Path to site.yaml")
@click.pass_context
def site_load(ctx, config):
    """Load suppliers and plants from YAML config."""
    counts = save_site_to_db(load_site_from_yaml(Path(config) if config else None), ctx.obj["db_path"])
    console.print(
        f"[green]Loaded {counts['suppliers']} supplier(s), {counts['plants']} plant(s), "
        f"{counts['areas']} area(s), {counts['devices']} device(s)[/green]"
    )


# Import commands
@cli.group("import")
def import_cmd():
    """Import consumption readings."""
    pass


@import_cmd.command("csv")
@click.option("--file", "file_path", type=click.Path(exists=True), required=True, help="Path to CSV file")
@click.pass_context
@handle_errors
def import_csv(ctx, file_path):
    """Import consumption readings from CSV."""
    result = meter_csv.import_from_csv(Path(file_path), ctx.obj["db_path"])
    console.print(f"[green]Imported {result['imported']} readings[/green]")
    if result["skipped"]:
        console.print(f"[yellow]Skipped {result['skipped']} duplicates[/yellow]")


@import_cmd.command("gateway")
@click.option("--device", "device_id", required=True, help="Device id")
@click.option("--days", default=1, help="Number of days to fetch (default: 1)")
@click.pass_context
@handle_errors
def import_gateway(ctx, device_id, days):
    """Import readings from the telemetry gateway.

    Requires PLANTENERGY_GATEWAY_URL, optionally PLANTENERGY_GATEWAY_TOKEN.
    """
    try:
        console.print(f"[cyan]Fetching last {days} day(s) for {device_id}...[/cyan]")
        result = gateway.fetch_and_import(device_id, days=days, db_path=ctx.obj["db_path"])
        console.print(f"[green]Imported {result['imported']} readings[/green]")
        if result["skipped"]:
            console.print(f"[yellow]Skipped {result['skipped']} duplicates[/yellow]")
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1)
    except (gateway.GatewayError, httpx.HTTPError) as e:
        console.print(f"[red]Failed to import gateway data: {e}[/red]")
        raise SystemExit(1)


# Analysis commands
@cli.command("stats")
@scope_options
@click.option("--from", "from_date", help="Start date (YYYY-MM-DD)")
@click.option("--to", "to_date", help="End date (YYYY-MM-DD, exclusive)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
@handle_errors
def stats_cmd(ctx, device_id, area_id, plant_id, from_date, to_date, as_json):
    """Consumption statistics for a device, area or plant."""
    scope = Scope.from_filters(device_id, area_id, plant_id)
    result = stats.get_consumption_stats(scope, parse_date(from_date), parse_date(to_date), ctx.obj["db_path"])

    if as_json:
        print_json(result)
        return

    s = result.stats
    table = Table(title=f"Consumption for {scope}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Total", f"{s.total:.2f} kWh")
    table.add_row("Average", f"{s.average:.2f} kWh")
    table.add_row("Peak", f"{s.max:.2f} kWh")
    table.add_row("Minimum", f"{s.min:.2f} kWh")
    table.add_row("Readings", str(s.count))
    console.print(table)


@cli.command()
@scope_options
@click.option("--from1", required=True, help="First period start (YYYY-MM-DD)")
@click.option("--to1", required=True, help="First period end (YYYY-MM-DD)")
@click.option("--from2", required=True, help="Second period start (YYYY-MM-DD)")
@click.option("--to2", required=True, help="Second period end (YYYY-MM-DD)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
@handle_errors
def compare(ctx, device_id, area_id, plant_id, from1, to1, from2, to2, as_json):
    """Compare consumption between two periods."""
    scope = Scope.from_filters(device_id, area_id, plant_id)
    result = stats.compare_consumption(
        scope,
        (parse_date(from1), parse_date(to1)),
        (parse_date(from2), parse_date(to2)),
        ctx.obj["db_path"],
    )

    if as_json:
        print_json(result)
        return

    console.print(f"Period 1: {result.period1.stats.total:.2f} kWh ({result.period1.stats.count} readings)")
    console.print(f"Period 2: {result.period2.stats.total:.2f} kWh ({result.period2.stats.count} readings)")
    colour = "red" if result.absolute_difference > 0 else "green"
    console.print(
        f"[{colour}]Difference: {result.absolute_difference:+.2f} kWh "
        f"({result.percentage_difference:+.1f}%)[/{colour}]"
    )


@cli.command("breakdown")
@scope_options
@click.option("--from", "from_date", help="Start date (default: 30 days ago)")
@click.option("--to", "to_date", help="End date (default: now)")
@click.option(
    "--granularity",
    type=click.Choice(stats.GRANULARITIES),
    default="daily",
    help="Bucket size",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
@handle_errors
def breakdown_cmd(ctx, device_id, area_id, plant_id, from_date, to_date, granularity, as_json):
    """Consumption per hour, day, week or month."""
    scope = Scope.from_filters(device_id, area_id, plant_id)
    result = stats.get_consumption_breakdown(
        scope, parse_date(from_date), parse_date(to_date), granularity, ctx.obj["db_path"]
    )

    if as_json:
        print_json(result)
        return

    table = Table(title=f"{granularity.capitalize()} consumption for {scope}")
    table.add_column("Period", style="cyan")
    table.add_column("kWh", justify="right")
    table.add_column("Readings", justify="right")
    for bucket in result.buckets:
        table.add_row(bucket.period_start.isoformat(), f"{bucket.consumption_kwh:.2f}", str(bucket.readings_count))
    console.print(table)


@cli.command("anomalies")
@click.option("--device", "device_id", required=True, help="Device id")
@click.option("--from", "from_date", help="Start date (YYYY-MM-DD)")
@click.option("--to", "to_date", help="End date (YYYY-MM-DD, exclusive)")
@click.option("--threshold", default=anomalies.DEFAULT_ANOMALY_THRESHOLD, help="Standard deviations (default: 2)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
@handle_errors
def anomalies_cmd(ctx, device_id, from_date, to_date, threshold, as_json):
    """Detect consumption anomalies for a device."""
    result = anomalies.detect_anomalies_from_db(
        device_id, parse_date(from_date), parse_date(to_date), threshold, ctx.obj["db_path"]
    )

    if as_json:
        print_json(result)
        return

    console.print(f"Mean {result.mean:.3f} kWh, stddev {result.stddev:.3f} kWh, threshold {result.threshold}σ")
    if not result.anomalies:
        console.print("[green]No anomalies found[/green]")
        return

    table = Table(title=f"Anomalies for {device_id}")
    table.add_column("Timestamp", style="cyan")
    table.add_column("kWh", justify="right")
    table.add_column("Z-score", justify="right")
    table.add_column("Source")
    for r in result.anomalies:
        z = abs(r.consumption_kwh - result.mean) / result.stddev
        table.add_row(r.timestamp.isoformat(), f"{r.consumption_kwh:.2f}", f"{z:.2f}", r.source.value)
    console.print(table)


@cli.command("project")
@click.option("--device", "device_id", required=True, help="Device id")
@click.option("--history-days", default=projection.DEFAULT_HISTORICAL_DAYS, help="Days of history (default: 30)")
@click.option("--projection-days", default=projection.DEFAULT_PROJECTION_DAYS, help="Days to project (default: 30)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
@handle_errors
def project_cmd(ctx, device_id, history_days, projection_days, as_json):
    """Project a device's consumption from its recent history."""
    result = projection.project_consumption(
        device_id, history_days, projection_days, db_path=ctx.obj["db_path"]
    )

    if as_json:
        print_json(result)
        return

    console.print(f"Daily average: {result.historical_average:.2f} kWh/day")
    console.print(f"Projected total ({projection_days} days): {result.projected_total:.2f} kWh")
    console.print(f"Confidence: {result.confidence}")


# Tariff commands
@cli.group()
def tariff():
    """Supplier tariff commands."""
    pass


@tariff.command("peak")
@click.option("--supplier", "supplier_id", required=True, help="Energy supplier id")
@click.option("--at", "at", help="Timestamp to check (default: now)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
@handle_errors
def tariff_peak(ctx, supplier_id, at, as_json):
    """Check whether a time falls in the supplier's peak window."""
    result = check_supplier_peak_time(supplier_id, parse_date(at), ctx.obj["db_path"])

    if as_json:
        print_json(result)
    elif not result.has_peak_time:
        console.print("[yellow]Supplier has no peak window[/yellow]")
    elif result.is_peak_time:
        console.print(f"[red]Peak time ({result.peak_start}-{result.peak_end})[/red]")
    else:
        console.print(f"[green]Off-peak (peak is {result.peak_start}-{result.peak_end})[/green]")


@tariff.command("cost")
@click.option("--supplier", "supplier_id", required=True, help="Energy supplier id")
@click.option("--regular", type=float, required=True, help="Off-peak consumption (kWh)")
@click.option("--peak", type=float, default=0.0, help="Peak consumption (kWh)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
@handle_errors
def tariff_cost(ctx, supplier_id, regular, peak, as_json):
    """Calculate the cost of a consumption under a supplier's tariff."""
    result = calculate_supplier_cost(supplier_id, regular, peak, ctx.obj["db_path"])

    if as_json:
        print_json(result)
        return

    info = result.tariff_info
    table = Table(title=f"Cost under {supplier_id} ({info.current_flag} flag)")
    table.add_column("Component", style="cyan")
    table.add_column("Cost", justify="right")
    table.add_row(f"Base ({regular:.2f} kWh × {info.base_tariff})", f"{result.base_cost:.2f}")
    table.add_row(f"Peak ({peak:.2f} kWh × {info.peak_tariff})", f"{result.peak_cost:.2f}")
    table.add_row(f"Flag ({result.consumption:.2f} kWh × {info.flag_value})", f"{result.flag_cost:.2f}")
    table.add_row("[bold]Total[/bold]", f"[bold]{result.total_cost:.2f}[/bold]")
    console.print(table)


@tariff.command("estimate")
@click.option("--supplier", "supplier_id", required=True, help="Energy supplier id")
@click.option("--daily", type=float, required=True, help="Average daily off-peak consumption (kWh)")
@click.option("--daily-peak", type=float, default=0.0, help="Average daily peak consumption (kWh)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
@handle_errors
def tariff_estimate(ctx, supplier_id, daily, daily_peak, as_json):
    """Estimate daily, monthly and annual cost."""
    result = estimate_supplier_costs(supplier_id, daily, daily_peak, ctx.obj["db_path"])

    if as_json:
        print_json(result)
        return

    console.print(f"Daily: {result.daily_cost:.2f}")
    console.print(f"Monthly: {result.monthly_cost:.2f}")
    console.print(f"Annual: {result.annual_cost:.2f}")


# Simulation commands
@cli.group("simulate")
def simulate():
    """Consumption and cost simulations."""
    pass


@simulate.command("auto")
@click.option("--scope", "scope_kind", type=click.Choice(["plant", "area", "device"]), required=True)
@click.option("--id", "scope_id", required=True, help="Plant, area or device id")
@click.option("--from", "from_date", required=True, help="Forecast start (YYYY-MM-DD)")
@click.option("--to", "to_date", required=True, help="Forecast end (YYYY-MM-DD, exclusive)")
@click.option("--factor", default=1.0, help="Adjustment factor (0.1-10, default: 1)")
@click.option("--save", "user_id", help="Save the simulation for this user id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
@handle_errors
def simulate_auto(ctx, scope_kind, scope_id, from_date, to_date, factor, user_id, as_json):
    """Forecast consumption and cost from the preceding period."""
    draft = simulation.auto_calculate_simulation(
        Scope(scope_kind, scope_id),
        parse_date(from_date),
        parse_date(to_date),
        factor,
        ctx.obj["db_path"],
    )

    if as_json:
        print_json(draft)
    else:
        calc = draft.calculation
        table = Table(title=draft.name)
        table.add_column("Step", style="cyan")
        table.add_column("Value", justify="right")
        table.add_row("Period", f"{calc.period_days} days")
        table.add_row("Historical daily average", f"{calc.historical_daily_average:.2f} kWh")
        table.add_row("Base consumption", f"{calc.base_consumption:.2f} kWh")
        table.add_row("Adjustment", f"× {calc.adjustment_factor}")
        table.add_row("Adjusted consumption", f"{calc.adjusted_consumption:.2f} kWh")
        table.add_row(f"Base cost (@ {draft.tariff_used})", f"{calc.base_cost:.2f}")
        table.add_row(f"Flag cost ({draft.flag_used})", f"{calc.flag_cost:.2f}")
        table.add_row("[bold]Total cost[/bold]", f"[bold]{calc.total_cost:.2f}[/bold]")
        console.print(table)

    if user_id:
        simulation_id = simulation.save_draft(draft, user_id, ctx.obj["db_path"])
        err_console.print(f"[green]Saved simulation {simulation_id}[/green]")


@simulate.command("record-real")
@click.argument("simulation_id", type=int)
@click.argument("real_consumption", type=float)
@click.pass_context
@handle_errors
def simulate_record_real(ctx, simulation_id, real_consumption):
    """Record the real consumption of a simulation."""
    result = simulation.record_real_consumption(simulation_id, real_consumption, ctx.obj["db_path"])
    console.print(
        f"[green]Simulation {simulation_id}: estimated {result.estimated_consumption:.2f} kWh, "
        f"real {real_consumption:.2f} kWh, variance {result.variance:+.2f}%[/green]"
    )


@simulate.command("accuracy")
@click.option("--user", "user_id", required=True, help="User id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
@handle_errors
def simulate_accuracy(ctx, user_id, as_json):
    """How accurate a user's past simulations were."""
    result = accuracy.get_accuracy_analysis(user_id, ctx.obj["db_path"])

    if as_json:
        print_json(result)
        return

    if not result.simulations_with_real:
        console.print(f"[yellow]No simulations with real consumption ({result.total_simulations} total)[/yellow]")
        return

    console.print(
        f"{result.simulations_with_real} of {result.total_simulations} simulations have real consumption"
    )
    console.print(f"Average variance: {result.average_variance:.2f}%")
    console.print(f"Accuracy: {result.accuracy_percentage:.1f}%")
    console.print(f"Most accurate: #{result.most_accurate.id} ({result.most_accurate.variance or 0:+.2f}%)")
    console.print(f"Least accurate: #{result.least_accurate.id} ({result.least_accurate.variance or 0:+.2f}%)")

    table = Table(title="By scope")
    table.add_column("Scope", style="cyan")
    table.add_column("Simulations", justify="right")
    table.add_column("Avg |variance|", justify="right")
    for row in result.by_scope:
        table.add_row(row.scope.value, str(row.count), f"{row.average_variance:.2f}%")
    console.print(table)


@simulate.command("statistics")
@click.option("--user", "user_id", required=True, help="User id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
@handle_errors
def simulate_statistics(ctx, user_id, as_json):
    """Counts and totals of a user's simulations."""
    result = accuracy.get_simulation_statistics(user_id, ctx.obj["db_path"])

    if as_json:
        print_json(result)
        return

    console.print(f"Simulations: {result.total}")
    console.print(f"Total estimated cost: {result.total_estimated_cost:.2f}")
    if result.average_variance is not None:
        console.print(f"Average variance: {result.average_variance:+.2f}%")
    for kind, count in result.by_scope.items():
        console.print(f"  └ {kind}: {count}")


if __name__ == "__main__":
    cli()
