"""Command-line interface for running the broker against a synthetic market."""

import logging
from pathlib import Path

import click

from .config.loader import load_config
from .reporting.diagnostics import StatsFileSink
from .reporting.export import export_csv, export_json
from .simulation.runner import SimulationRunner
from .validation.sanity_checks import SanityChecker, validate_history


@click.group()
@click.option("--config", "config_path", type=click.Path(exists=True), help="Path to a YAML config")
@click.option("-v", "--verbose", is_flag=True, help="Log at INFO level")
@click.pass_context
def cli(ctx, config_path, verbose):
    """Retail tariff broker - price consumption tariffs against a market."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = load_config(Path(config_path) if config_path else None)


@cli.command("run")
@click.option("--seed", type=int, help="Market seed (defaults to the config value)")
@click.option("--timeslots", type=int, help="Timeslots to simulate")
@click.option("--stats", "stats_path", type=click.Path(), help="Write per-period statistics here")
@click.option("--csv", "csv_path", type=click.Path(), help="Export period history as CSV")
@click.option("--json", "json_path", type=click.Path(), help="Export full results as JSON")
@click.pass_context
def run(ctx, seed, timeslots, stats_path, csv_path, json_path):
    """Run a synthetic market scenario."""
    config = ctx.obj["config"]
    if timeslots is not None:
        config = config.model_copy(update={
            "simulation": config.simulation.model_copy(update={"num_timeslots": timeslots})
        })

    stats_path = stats_path or config.diagnostics.stats_path
    sink = StatsFileSink(stats_path) if stats_path else None
    try:
        result = SimulationRunner(config, diagnostics=sink).run(seed=seed)
    finally:
        if sink is not None:
            sink.close()

    metrics = result.final_metrics
    click.echo(f"Config hash:        {config.compute_hash()}")
    click.echo(f"Decision periods:   {metrics['periods']}")
    click.echo(f"Tariffs published:  {metrics['tariffs_published']}")
    click.echo(f"Revocations:        {metrics['revocations']}")
    click.echo(f"Entry budget left:  {metrics['entry_budget_remaining']}")
    last_rate = metrics['last_rate']
    click.echo(f"Last rate:          {'-' if last_rate is None else f'{last_rate:.5f}'}")
    click.echo(f"Final cash:         {metrics['final_cash']:,.2f}")
    for key, count in sorted(result.customer_counts.items()):
        click.echo(f"  {key}: {count}")

    for warning in validate_history(config, result.periods):
        click.secho(f"[{warning.severity}] {warning.message}", fg="yellow")

    if csv_path:
        export_csv(result, csv_path)
        click.echo(f"Wrote {csv_path}")
    if json_path:
        export_json(result, json_path)
        click.echo(f"Wrote {json_path}")


@cli.command("check")
@click.pass_context
def check(ctx):
    """Sanity-check the configuration."""
    warnings = SanityChecker(ctx.obj["config"]).check_config_inputs()
    if not warnings:
        click.secho("Configuration looks sane", fg="green")
        return
    for warning in warnings:
        color = "red" if warning.severity == "error" else "yellow"
        click.secho(f"[{warning.severity}] {warning.category}: {warning.message}", fg=color)
        if warning.details:
            click.echo(f"    {warning.details}")
    if any(w.severity == "error" for w in warnings):
        ctx.exit(1)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
