"""CSV and console rendering of show rarity scores."""

import csv
import io
from pathlib import Path

from rich.markup import escape
from rich.table import Table

from .models import RarityScore

CSV_COLUMNS = ["showId", "date", "venue", "rarityScore"]


def format_csv(scores: list[RarityScore]) -> str:
    """Render scores as CSV with six-decimal rarity values (no trailing newline)."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for score in scores:
        writer.writerow([score.show_id, score.date or "", score.venue, f"{score.rarity_score:.6f}"])
    return buffer.getvalue().rstrip("\n")


def write_csv(path: Path, content: str) -> None:
    """Write CSV text to ``path``, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"{content}\n", encoding="utf-8")


def top_shows(scores: list[RarityScore], limit: int = 10) -> list[RarityScore]:
    """The ``limit`` rarest shows, highest score first."""
    return sorted(scores, key=lambda score: score.rarity_score, reverse=True)[:limit]


def average_score(scores: list[RarityScore]) -> float | None:
    if not scores:
        return None
    return sum(score.rarity_score for score in scores) / len(scores)


def rarity_table(scores: list[RarityScore], title: str | None = None) -> Table:
    """Build a ranked table of shows for the console."""
    table = Table(title=title)
    table.add_column("rank", justify="right", style="dim")
    table.add_column("showId", justify="right")
    table.add_column("date")
    table.add_column("venue", style="cyan")
    table.add_column("location")
    table.add_column("rarityScore", justify="right", style="green")

    for rank, score in enumerate(scores, 1):
        table.add_row(
            str(rank),
            str(score.show_id),
            score.date or "",
            escape(score.venue),
            escape(score.location),
            f"{score.rarity_score:.6f}",
        )
    return table
