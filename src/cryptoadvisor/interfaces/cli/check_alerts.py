# src/cryptoadvisor/interfaces/cli/check_alerts.py
"""Run one smart alert evaluation pass from the command line (cron-friendly)."""
import asyncio
import logging
import sys

import click
from rich.console import Console
from rich.table import Table

from cryptoadvisor.boot import build_services
from cryptoadvisor.domain.errors import PersistenceFailure
from cryptoadvisor.logging_conf import setup_logging

log = logging.getLogger(__name__)
console = Console()


def _render(report) -> None:
    if report.skipped:
        console.print("[yellow]Skipped: another evaluation pass is already running.[/yellow]")
        return

    console.print(
        f"Processed [bold]{report.total_processed}[/bold] alerts, "
        f"[green]{report.triggered_count} triggered[/green], "
        f"[red]{report.error_count} errors[/red]."
    )
    interesting = [o for o in report.outcomes if o.triggered or o.error]
    if not interesting:
        return

    table = Table(title="Alert outcomes")
    table.add_column("Alert", justify="right")
    table.add_column("Type")
    table.add_column("Result")
    table.add_column("Detail")
    for outcome in interesting:
        result = "[green]triggered[/green]" if outcome.triggered else f"[red]{outcome.error}[/red]"
        table.add_row(str(outcome.alert_id), outcome.kind, result, outcome.detail or "")
    console.print(table)


@click.command()
@click.option("--verbose", "-v", is_flag=True, help="Show every evaluated alert, not just hits and errors.")
def main(verbose: bool):
    """Evaluate all active smart alerts once."""
    setup_logging()
    services = build_services()
    alert_service = services["alert_service"]

    try:
        report = asyncio.run(alert_service.evaluate_all())
    except PersistenceFailure as e:
        log.error("Alert pass aborted: %s", e)
        console.print(f"[red]Alert store unavailable: {e}[/red]")
        sys.exit(1)

    _render(report)
    if verbose:
        for outcome in report.outcomes:
            console.print(f"  #{outcome.alert_id} {outcome.kind}: {outcome.detail or '-'}")


if __name__ == "__main__":
    main()
