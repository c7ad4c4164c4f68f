"""CLI entry point for the visual regression monitor."""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from visual_regression.errors import ConfigError
from visual_regression.models.config import DEFAULT_CONFIG_PATH, MonitorConfig, SiteConfig, load_config
from visual_regression.models.environment import RunEnvironment
from visual_regression.models.notification import NotifyMode
from visual_regression.orchestrator import Orchestrator
from visual_regression.scheduler.schedule import is_due

console = Console()

_STATUS_STYLE = {
    "pass": "[green]PASS[/green]",
    "fail": "[red]FAIL[/red]",
    "baseline_created": "[yellow]BASELINE[/yellow]",
}


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _parse_now(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        now = datetime.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(f"Not an ISO-8601 timestamp: {value}", param_hint="--now")
    return now if now.tzinfo else now.replace(tzinfo=timezone.utc)


def _load_orchestrator(config: str) -> Orchestrator:
    env = RunEnvironment.from_environ()
    try:
        cfg = load_config(env, config)
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {config}[/red]")
        console.print("Run 'visual-regression init' to create a starter config.")
        sys.exit(1)
    except ConfigError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(1)
    return Orchestrator(cfg, env)


config_option = click.option(
    "--config", "-c", default=DEFAULT_CONFIG_PATH, help="Site config YAML file"
)
now_option = click.option("--now", default=None, help="Evaluate the schedule at this ISO timestamp")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Scheduled visual regression checks for configured web pages"""
    setup_logging(verbose)


@cli.command("check-schedule")
@config_option
@now_option
def check_schedule(config: str, now: str | None) -> None:
    """Decide whether any site is due and write has_tests to the CI output."""
    orchestrator = _load_orchestrator(config)
    due = orchestrator.check_schedule(_parse_now(now))
    console.print(f"has_tests={'true' if due.has_tests else 'false'}")


@cli.command()
@config_option
@now_option
@click.option("--all", "force_all", is_flag=True, help="Check every site regardless of period")
@click.option("--site", "-s", "sites", multiple=True, help="Only check the named site(s)")
def run(config: str, now: str | None, force_all: bool, sites: tuple[str, ...]) -> None:
    """Capture due sites and compare them against their baselines."""
    orchestrator = _load_orchestrator(config)
    result = orchestrator.run_checks(_parse_now(now), force_all=force_all, only=sites)

    table = Table(title=f"Visual Regression Results ({result.run_id})")
    table.add_column("Site", style="bold")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Details")
    for test in result.tests:
        table.add_row(
            test.title,
            _STATUS_STYLE.get(test.status, test.status),
            str(test.attempts),
            escape(test.message),
        )
    console.print(table)
    console.print(
        f"[green]{result.passed} passed[/green], [red]{result.failed} failed[/red], "
        f"{result.baselines_created} baseline(s) created in {result.duration_seconds}s"
    )

    if result.failed:
        sys.exit(1)


@cli.command("notify")
@config_option
@click.option(
    "--mode", "-m",
    type=click.Choice([m.value for m in NotifyMode]),
    default=NotifyMode.ALWAYS.value,
    help="failure: only failed checks; always: every check",
)
@click.option("--results", "-r", default=None, help="Results summary JSON")
@click.option("--assets", "-a", default=None, help="Uploaded-asset map JSON")
def notify_cmd(config: str, mode: str, results: str | None, assets: str | None) -> None:
    """Post results to the chat webhook for the chosen mode."""
    orchestrator = _load_orchestrator(config)
    report = orchestrator.notify(mode, results_path=results, asset_map_path=assets)
    if report.skipped_reason:
        console.print(f"[yellow]{report.skipped_reason}[/yellow]")
        return
    color = "green" if report.sent == report.attempted else "red"
    console.print(f"[{color}]Sent {report.sent}/{report.attempted} notification(s)[/{color}]")


@cli.command()
@config_option
@now_option
def sites(config: str, now: str | None) -> None:
    """List configured sites and whether each is due now."""
    orchestrator = _load_orchestrator(config)
    when = _parse_now(now) or datetime.now(timezone.utc)
    window = orchestrator.config.due_window_minutes

    table = Table(title=f"Sites at {when:%Y-%m-%d %H:%M} UTC")
    table.add_column("Name", style="bold")
    table.add_column("Period")
    table.add_column("Due")
    table.add_column("URL")
    for site in orchestrator.config.sites:
        due = is_due(site.period, when, window)
        table.add_row(site.name, site.period, "[green]yes[/green]" if due else "no", site.url)
    console.print(table)
    if orchestrator.env.is_manual:
        console.print("[yellow]Manual/local run: every site would be checked[/yellow]")


@cli.command()
@click.option("--url", "-u", prompt="First site URL", help="URL of the first site to monitor")
@click.option("--name", "-n", default="Home", help="Name of the first site")
@click.option("--period", "-p", default="1h", help="Check period (e.g. 30m, 1h, 1d)")
@click.option("--output", "-o", default=DEFAULT_CONFIG_PATH, help="Config file to write")
def init(url: str, name: str, period: str, output: str) -> None:
    """Create a starter site configuration."""
    config_path = Path(output)
    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return

    try:
        cfg = MonitorConfig(sites=[SiteConfig(name=name, url=url, period=period)])
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(1)
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nAdd sites to the 'sites' list, then run:")
    console.print("  [blue]visual-regression run --all[/blue]")


@cli.command("migrate-config")
@config_option
@click.option("--output", "-o", default=None, help="Write here instead of overwriting --config")
def migrate_config(config: str, output: str | None) -> None:
    """Rewrite a period-grouped config in the flat 'sites' shape."""
    try:
        cfg = MonitorConfig.load(config)
    except (FileNotFoundError, ConfigError) as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(1)
    target = Path(output or config)
    cfg.save(target)
    console.print(f"[green]Wrote {len(cfg.sites)} site(s) to {target}[/green]")


if __name__ == "__main__":
    cli()
