import logging
import sys

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .. import __version__
from ..config import HarnessConfig
from ..harness.scenarios import SCENARIOS, run_scenarios

console = Console()


def _setup_logging(verbose: int):
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(version=__version__, prog_name="stake-harness")
def cli():
    """Lifecycle verification harness for a staking and minting token"""
    pass


@cli.command(name="list")
def list_scenarios():
    """List available scenarios"""
    table = Table(title="Scenarios")
    table.add_column("Name", style="cyan")
    table.add_column("Description", style="green")
    for scenario in SCENARIOS.values():
        table.add_row(scenario.name, scenario.description)
    console.print(table)


@cli.command()
@click.argument('scenarios', nargs=-1)
@click.option('--config', 'config_file', type=click.Path(exists=True),
              help='JSON file with harness settings')
@click.option('--mint-iterations', type=int, help='Mint calls per mint campaign')
@click.option('--withdrawal-wait', type=int,
              help='minBlockWaitingWithdrawal used by the withdraw scenario')
@click.option('-v', '--verbose', count=True, help='-v for INFO, -vv for DEBUG')
def run(scenarios, config_file, mint_iterations, withdrawal_wait, verbose):
    """Run scenarios (all of them when none are named)"""
    _setup_logging(verbose)

    unknown = [s for s in scenarios if s not in SCENARIOS]
    if unknown:
        console.print(f"[bold red]Unknown scenario(s):[/bold red] {', '.join(unknown)}")
        sys.exit(2)

    try:
        config = HarnessConfig.from_file(config_file) if config_file else HarnessConfig()
        overrides = {}
        if mint_iterations is not None:
            overrides["mint_iterations"] = mint_iterations
        if withdrawal_wait is not None:
            overrides["withdrawal_wait_blocks"] = withdrawal_wait
        if overrides:
            config = config.replace(**overrides)
    except (ValueError, OSError) as e:
        console.print(f"[bold red]Config error:[/bold red] {e}")
        sys.exit(2)

    reports = run_scenarios(scenarios, config)

    table = Table(title="Results")
    table.add_column("Scenario", style="cyan")
    table.add_column("Result")
    table.add_column("Time", style="yellow", justify="right")
    table.add_column("Details")
    for report in reports:
        if report.passed:
            result = "[bold green]✅ passed[/bold green]"
            details = ", ".join(f"{k}={v}" for k, v in report.details.items())
        else:
            result = "[bold red]❌ failed[/bold red]"
            details = report.error
        table.add_row(report.name, result, f"{report.duration:.2f}s", details)
    console.print(table)

    failed = [r for r in reports if not r.passed]
    if failed:
        console.print(f"[bold red]{len(failed)} of {len(reports)} scenario(s) failed[/bold red]")
        sys.exit(1)
    console.print(f"[bold green]All {len(reports)} scenario(s) passed[/bold green]")


if __name__ == "__main__":
    cli()
