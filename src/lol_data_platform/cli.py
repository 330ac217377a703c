"""Command-line interface for the LoL data platform."""

import logging
from datetime import datetime
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .exceptions import ConfigurationError, SourceCursorError
from .ingestion.config import ExporterConfig, load_exporter_config
from .models import ExportFilters
from .pipeline.orchestrator import create_orchestrator
from .pipeline.partitioning import ALLOWED_QUEUE_ID_SET, build_partition_key, patch_bucket
from .pipeline.progress import ExportResult

app = typer.Typer(
    name="lol-etl",
    help="League of Legends Data Platform - lake export CLI",
    add_completion=False,
)
console = Console()
logger = logging.getLogger("lol_data_platform")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # boto3/pymongo/httpx are chatty at DEBUG
    for noisy in ("botocore", "boto3", "urllib3", "s3transfer", "pymongo", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def parse_filters(
    season: Optional[int] = None,
    patch: Optional[str] = None,
    queues: Optional[str] = None,
    since: Optional[str] = None,
) -> ExportFilters:
    """Build export filters from raw CLI values.

    Raises:
        ValueError: If queues or since cannot be parsed
    """
    queue_ids: list[int] = []
    if queues:
        try:
            queue_ids = [int(q.strip()) for q in queues.split(",") if q.strip()]
        except ValueError:
            raise ValueError(f"Invalid --queues value: {queues!r} (expected e.g. 420,440)")

    since_dt = None
    if since:
        try:
            since_dt = datetime.fromisoformat(since.replace("Z", "+00:00"))
        except ValueError:
            raise ValueError(f"Invalid --since value: {since!r} (expected ISO-8601)")

    return ExportFilters(
        season=season,
        patch_bucket=patch.strip() if patch else None,
        queues=queue_ids,
        since_updated_at=since_dt,
    )


@app.command()
def export(
    config_path: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to exporter YAML (default: environment variables)"
    ),
    season: Optional[int] = typer.Option(None, "--season", help="Season year (UTC year of game creation)"),
    patch: Optional[str] = typer.Option(None, "--patch", help="Patch bucket, e.g. 15.18"),
    queues: Optional[str] = typer.Option(None, "--queues", help="Comma-separated queue ids (default: allow-list)"),
    since: Optional[str] = typer.Option(None, "--since", help="Only documents updated at/after this ISO datetime"),
    match_concurrency: Optional[int] = typer.Option(None, "--match-concurrency", min=1, help="Match pool size"),
    timeline_concurrency: Optional[int] = typer.Option(
        None, "--timeline-concurrency", min=1, help="Timeline pool size"
    ),
    batch_size: Optional[int] = typer.Option(None, "--batch-size", min=1, help="Match ids per batch"),
    high_watermark: Optional[int] = typer.Option(
        None, "--timeline-high-watermark", min=0, help="Pause between batches while the timeline backlog is above this"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Export matches and timelines from MongoDB to the S3 bronze layer."""
    _configure_logging(verbose)

    try:
        filters = parse_filters(season, patch, queues, since)
        outside = sorted(set(filters.queues) - ALLOWED_QUEUE_ID_SET)
        if outside:
            logger.warning(f"Queues {outside} are not allow-listed and will not be exported")

        config = load_exporter_config(config_path) if config_path else ExporterConfig.from_env()

        overrides = {
            "match_concurrency": match_concurrency,
            "timeline_concurrency": timeline_concurrency,
            "batch_size": batch_size,
            "timeline_high_watermark": high_watermark,
        }
        overrides = {k: v for k, v in overrides.items() if v is not None}
        if overrides:
            config = config.model_copy(update={"export": config.export.model_copy(update=overrides)})

        logger.info(f"Database: {config.source.database}")
        logger.info(f"S3 Bucket: {config.object_store.bucket} ({config.object_store.region})")

        orchestrator, close = create_orchestrator(config)
        try:
            result = orchestrator.run(filters)
        finally:
            close()

    except (ConfigurationError, FileNotFoundError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        raise typer.Exit(1)
    except SourceCursorError as e:
        logger.error(f"Export aborted: {e}")
        raise typer.Exit(1)
    except Exception as e:
        logger.exception(f"Export failed with error: {e}")
        raise typer.Exit(1)

    _display_export_result(result)


def _display_export_result(result: ExportResult) -> None:
    """Render the final summary table."""
    table = Table(title="Export Summary", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Match ids read", str(result.processed))
    table.add_row("Matches written", f"[green]{result.matches_written}[/green]")
    table.add_row("Matches missing", str(result.matches_missing))
    table.add_row("Matches not allow-listed", str(result.matches_disallowed))
    table.add_row("Match failures", f"[yellow]{result.failed}[/yellow]")
    table.add_row("Timelines (local)", str(result.timelines_local))
    table.add_row("Timelines (upstream)", str(result.timelines_upstream))
    table.add_row("Timelines skipped", str(result.timelines_skipped))
    table.add_row("Timeline failures", f"[yellow]{result.timelines_failed}[/yellow]")
    table.add_row("Success rate", f"{result.success_rate:.1f}%")
    table.add_row("Duration", f"{result.duration_seconds:.1f}s")
    console.print(table)

    if result.errors:
        console.print("\n[bold yellow]Sample errors:[/bold yellow]")
        for i, sample in enumerate(result.errors, 1):
            console.print(f"  {i}. [red]{sample}[/red]")


@app.command("partition-key")
def partition_key(
    match_id: str = typer.Argument(..., help="Match id, e.g. EUW1_7000000000"),
    season: Optional[int] = typer.Option(None, "--season", help="Season year"),
    version: Optional[str] = typer.Option(None, "--version", help="Game version, e.g. 15.18.531.8881"),
    queue: Optional[int] = typer.Option(None, "--queue", help="Queue id"),
    prefix: str = typer.Option("raw/matches", "--prefix", help="Dataset prefix"),
):
    """Print the object key a record would be written to."""
    try:
        key = build_partition_key(prefix, season, patch_bucket(version), queue, match_id)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    console.print(key, soft_wrap=True, highlight=False)


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold]LoL Data Platform[/bold] version {__version__}")


if __name__ == "__main__":
    app()
