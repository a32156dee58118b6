"""Listing Pipeline CLI.

Usage:
    listing-pipeline listings [OPTIONS]
    listing-pipeline competitors INPUT_CSV [OPTIONS]
    listing-pipeline discounts [OPTIONS]

Exit codes: 0 = success, 1 = fatal error (configuration, input, output).
Items dropped during a run are reported but do not change the exit code.
"""

# Load .env file before any other imports
from dotenv import load_dotenv

load_dotenv()

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from listing_pipeline import __version__
from listing_pipeline.config import get_settings
from listing_pipeline.core.errors import ConfigurationError
from listing_pipeline.core.types import RunResult
from listing_pipeline.observability import setup_logging
from listing_pipeline.pipeline import ExportPipeline

# Create CLI app
app = typer.Typer(
    name="listing-pipeline",
    help="eBay listing, competitor and discount export CLI",
    add_completion=False,
)

console = Console()

OutputOption = Annotated[
    Path | None, typer.Option("--output", "-o", help="Output CSV file (default: data/<name>_<timestamp>.csv)")
]
StreamOption = Annotated[
    bool | None,
    typer.Option("--stream/--buffered", help="Force streaming or buffered output (default: automatic)"),
]
LimitOption = Annotated[int | None, typer.Option("--limit", help="Limit number of items")]
QuietOption = Annotated[bool, typer.Option("--quiet", "-q", help="Minimal output")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Verbose output")]
JsonLogsOption = Annotated[bool, typer.Option("--json-logs", help="Emit JSON log lines")]


def configure_logging(quiet: bool = False, verbose: bool = False, json_logs: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.WARNING if quiet else (logging.DEBUG if verbose else logging.INFO)
    handler = None if json_logs else RichHandler(console=console, show_path=False)
    setup_logging(level=level, json_format=json_logs, handler=handler)


def _print_result(result: RunResult, quiet: bool) -> None:
    if quiet:
        return
    console.print("\n" + "=" * 44)
    console.print(f"[green]{result.command.capitalize()} completed![/green]")
    console.print(f"  Items: {result.succeeded}/{result.total_items}")
    if result.failed:
        console.print(f"  [yellow]Failed: {result.failed}[/yellow]")
        for identity in result.failed_items[:10]:
            console.print(f"    - {identity}")
    console.print(f"  Rows written: {result.rows_written}")
    console.print(f"  Output: {result.output} ({'streamed' if result.streamed else 'buffered'})")
    console.print(
        f"  API requests: {result.request_count} "
        f"(retries: {result.retry_count}, errors: {result.error_count})"
    )
    for error in result.errors:
        console.print(f"  [yellow]{error}[/yellow]")
    console.print(f"  Duration: {result.duration_seconds:.1f}s")
    console.print("=" * 44)


def _run(coro) -> RunResult:
    logger = logging.getLogger(__name__)
    try:
        return asyncio.run(coro)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        if e.missing:
            console.print("[red]Set the missing values in your environment or .env file.[/red]")
        raise typer.Exit(code=1)
    except Exception as e:
        logger.debug("Run failed", exc_info=True)
        console.print(f"[red]Run failed: {e}[/red]")
        raise typer.Exit(code=1)


@app.command()
def listings(
    output: OutputOption = None,
    stream: StreamOption = None,
    limit: LimitOption = None,
    quiet: QuietOption = False,
    verbose: VerboseOption = False,
    json_logs: JsonLogsOption = False,
) -> None:
    """Export your eBay listings to CSV.

    Active listings come from GetMyeBaySelling; when fewer than 10 are
    found, listing history is crawled with GetSellerList as well.

    Examples:
        listing-pipeline listings
        listing-pipeline listings -o data/my_listings.csv --buffered
    """
    configure_logging(quiet=quiet, verbose=verbose, json_logs=json_logs)
    pipeline = ExportPipeline(settings=get_settings())

    if not quiet:
        console.print("[bold blue]Exporting eBay listings...[/bold blue]")

    result = _run(pipeline.run_listings_export(output, stream=stream, limit=limit))
    _print_result(result, quiet)
    if verbose:
        console.print(pipeline.metrics.get_summary())


@app.command()
def competitors(
    input_csv: Annotated[Path, typer.Argument(help="CSV with a 'Product Name' column")],
    output: OutputOption = None,
    my_listings: Annotated[
        Path | None, typer.Option("--my-listings", help="Previous listings export to compare prices")
    ] = None,
    stream: StreamOption = None,
    concurrency: Annotated[
        int | None, typer.Option("--concurrency", "-c", min=1, help="Concurrent items")
    ] = None,
    limit: LimitOption = None,
    quiet: QuietOption = False,
    verbose: VerboseOption = False,
    json_logs: JsonLogsOption = False,
) -> None:
    """Find competitor listings for every product in INPUT_CSV.

    Examples:
        listing-pipeline competitors data/products.csv
        listing-pipeline competitors data/products.csv --my-listings data/ebay_listings.csv -c 20
    """
    configure_logging(quiet=quiet, verbose=verbose, json_logs=json_logs)

    if not input_csv.exists():
        console.print(f"[red]Input file not found: {input_csv}[/red]")
        raise typer.Exit(code=1)

    pipeline = ExportPipeline(settings=get_settings())

    if not quiet:
        console.print("[bold blue]Analyzing competitors...[/bold blue]")
        console.print(f"Input: {input_csv}")
        if concurrency:
            console.print(f"Concurrency: {concurrency}")
        if limit:
            console.print(f"Limit: {limit}")

    result = _run(
        pipeline.run_competitor_analysis(
            input_csv,
            output,
            my_listings=my_listings,
            stream=stream,
            limit=limit,
            concurrency=concurrency,
        ),
    )
    _print_result(result, quiet)
    if verbose:
        console.print(pipeline.metrics.get_summary())


@app.command()
def discounts(
    output: OutputOption = None,
    hours: Annotated[
        int | None,
        typer.Option("--hours", min=1, help="Alert window in hours (default: ALERT_WINDOW_HOURS or 48)"),
    ] = None,
    stream: StreamOption = None,
    limit: LimitOption = None,
    quiet: QuietOption = False,
    verbose: VerboseOption = False,
    json_logs: JsonLogsOption = False,
) -> None:
    """Export promotions ending soon, most urgent first.

    Running, scheduled and paused promotions that end within the alert
    window are written with their time remaining and an urgency marker.

    Examples:
        listing-pipeline discounts
        listing-pipeline discounts --hours 24 -o data/expiring.csv
    """
    configure_logging(quiet=quiet, verbose=verbose, json_logs=json_logs)
    pipeline = ExportPipeline(settings=get_settings())

    if not quiet:
        window = hours or pipeline.settings.alert_window_hours
        console.print(f"[bold blue]Checking discounts ending within {window} hours...[/bold blue]")

    result = _run(pipeline.run_discounts_export(output, alert_window_hours=hours, stream=stream, limit=limit))
    _print_result(result, quiet)
    if verbose:
        console.print(pipeline.metrics.get_summary())


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"[bold]Listing Pipeline v{__version__}[/bold]")


if __name__ == "__main__":
    app()
