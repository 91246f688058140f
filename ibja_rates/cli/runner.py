# ibja_rates/cli/runner.py

"""Headless CLI commands: print current rates or check upstream health."""

import json
import logging
import sys

from rich.console import Console
from rich.table import Table

from ibja_rates.scrapers.ibja_scraper import IbjaScraper, ScrapeError
from ibja_rates.services.health_checker import HealthChecker
from ibja_rates.services.rates_service import SUPPORTED_METALS

logger = logging.getLogger("ibja_rates.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _print_rates_table(metal: str, rates: dict[str, str | None]) -> None:
    """Render a Rich table of labelled rates to stdout."""
    table = Table(
        title=f"IBJA {metal.capitalize()} Rates",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Label", style="bold")
    table.add_column("Rate (₹)", justify="right", style="green")

    for label, value in rates.items():
        table.add_row(label, value or "—")

    Console().print(table)


def run_rates(metal: str, output_format: str = "table") -> int:
    """Fetch and print current rates for *metal* (0=ok, 1=fail)."""
    if metal not in SUPPORTED_METALS:
        _err.print(f"[red]Unknown metal: {metal}[/red]")
        _err.print(f"[dim]Available: {', '.join(SUPPORTED_METALS)}[/dim]")
        return 1

    _err.print(f"[bold]Fetching IBJA {metal} rates...[/bold]")
    try:
        rates = IbjaScraper().fetch_current_rates(metal)
    except ScrapeError as exc:
        logger.error("CLI fetch failed: %s", exc)
        _err.print(f"[red]Error: {exc}[/red]")
        return 1

    if not rates or all(v is None for v in rates.values()):
        _err.print(f"[yellow]No {metal} rates found.[/yellow]")
        return 1

    if output_format == "table":
        _print_rates_table(metal, rates)
    else:
        json.dump(rates, sys.stdout, ensure_ascii=False, indent=2)
        sys.stdout.write("\n")
    return 0


async def run_health_check() -> int:
    """Run connectivity health check on all sources."""
    _err.print("[bold]Running upstream health check...[/bold]")
    checker = HealthChecker()
    results = await checker.check_all()

    table = Table(
        title="Source Health Check",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Source", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Latency", justify="right")
    table.add_column("Notes", style="dim")

    any_down = False
    for r in results:
        if r.status == "ok":
            status = "[green]OK[/green]"
        elif r.status == "slow":
            status = "[yellow]SLOW[/yellow]"
        else:
            status = "[red]DOWN[/red]"
            any_down = True

        latency = f"{r.latency_ms:.0f}ms" if r.latency_ms > 0 else "—"
        table.add_row(r.source_id, status, latency, r.message)

    Console().print(table)
    return 1 if any_down else 0
