"""showrarity CLI using Typer.

Commands:
- score: Compute rarity scores and write them to CSV
- sync: Fetch new shows from elgoose.net into the local store
- clear-cache: Delete the stored dataset
"""

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console

from .cache import DatasetStore
from .config import get_settings
from .logging import configure_logging, get_logger
from .models import SyncProgress
from .pipeline import Pipeline
from .report import average_score, format_csv, rarity_table, top_shows, write_csv
from .sources import SourceError
from .sync import SyncError

DEFAULT_OUTFILE = Path("show_rarity_scores.csv")

app = typer.Typer(
    name="showrarity",
    help="Fetch Goose setlists from elgoose.net and compute rarity scores for each show.",
    add_completion=False,
)
console = Console()


def setup_logging(level: Optional[str], format: Optional[str]) -> None:
    """Configure logging, falling back to LOG_LEVEL / LOG_FORMAT from settings."""
    settings = get_settings()
    configure_logging(level=level or settings.log_level, format=format or settings.log_format)


def echo_progress(progress: SyncProgress) -> None:
    """Print sync progress; per-show setlist events only every 25 shows."""
    if progress.phase == "setlists" and progress.completed and progress.total:
        if progress.completed % 25 and progress.completed != progress.total:
            return
    typer.echo(progress.message, err=True)


@app.command()
def score(
    update: Annotated[bool, typer.Option("--update", help="Check elgoose.net for new shows before scoring")] = False,
    outfile: Annotated[Path, typer.Option("--outfile", "-o", help="Path to write the rarity CSV")] = DEFAULT_OUTFILE,
    year: Annotated[Optional[int], typer.Option("--year", "-y", help="Only shows from this calendar year")] = None,
    venue: Annotated[Optional[str], typer.Option("--venue", "-v", help="Case-insensitive venue/location substring")] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Number of rarest shows to display")] = 10,
    dataset: Annotated[Optional[Path], typer.Option("--dataset", "-d", help="Score this dataset JSON file instead of the cache")] = None,
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR); defaults to LOG_LEVEL")] = None,
    log_format: Annotated[Optional[str], typer.Option("--log-format", help="Log format (console, json); defaults to LOG_FORMAT")] = None,
) -> None:
    """Compute rarity scores for every show.

    Example:
        showrarity score --year 2023 --venue "Red Rocks" --limit 5
    """
    setup_logging(log_level, log_format)
    logger = get_logger(__name__)

    try:
        pipeline = Pipeline()
        data = pipeline.ensure_dataset(update=update, dataset_file=dataset, on_progress=echo_progress)
        report = pipeline.score(data, year=year, venue=venue)
        write_csv(outfile, format_csv(report.scores))
    except (ValueError, SourceError, SyncError, OSError) as e:
        typer.echo(f"Failed to compute rarity scores: {e}", err=True)
        raise typer.Exit(1)
    except Exception as e:
        logger.exception("score_failed", error=str(e))
        typer.echo(f"Failed to compute rarity scores: {e}", err=True)
        raise typer.Exit(1)

    if report.skipped:
        typer.echo(f"{len(report.skipped)} show(s) omitted because no setlist data was available.")
    if year is not None and not report.scores:
        typer.echo(f"No shows found for year {year}. Writing empty CSV and skipping top list.")

    typer.echo(f"Rarity scores written to {outfile}")

    average = average_score(report.scores)
    if average is not None:
        label = f"Average rarity score across {len(report.scores)} shows"
        if year is not None:
            label += f" in {year}"
        typer.echo(f"{label}: {average:.6f}")

    rarest = top_shows(report.scores, limit)
    if not rarest:
        typer.echo("No shows found in the dataset.")
        return
    typer.echo()
    console.print(rarity_table(rarest, title=f"Top {len(rarest)} Rarest Shows"))


@app.command()
def sync(
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR); defaults to LOG_LEVEL")] = None,
    log_format: Annotated[Optional[str], typer.Option("--log-format", help="Log format (console, json); defaults to LOG_FORMAT")] = None,
) -> None:
    """Fetch new shows and their setlists into the local cache."""
    setup_logging(log_level, log_format)

    try:
        result = Pipeline().update(on_progress=echo_progress)
    except (ValueError, SourceError, SyncError, OSError) as e:
        typer.echo(f"Sync failed: {e}", err=True)
        raise typer.Exit(1)

    if result.added_show_count == 0 and result.added_setlist_count == 0:
        typer.echo("No new shows found; cached dataset remains current.")
    else:
        typer.echo(
            f"Dataset updated with {result.added_show_count} new show(s) "
            f"and {result.added_setlist_count} setlist entries."
        )


@app.command()
def clear_cache() -> None:
    """Delete the locally stored dataset."""
    settings = get_settings()
    removed = DatasetStore(settings.dataset_path).clear()
    typer.echo(f"Cache cleared ({removed} dataset(s) removed).")


def main() -> None:
    """CLI entry point."""
    app()
