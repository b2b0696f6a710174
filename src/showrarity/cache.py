"""SQLite store for the cached dataset.

The whole Dataset is kept as one JSON document per name, so a save either
replaces the previous corpus entirely or leaves it untouched.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from .logging import get_logger
from .models import Dataset

logger = get_logger(__name__)


class DatasetStore:
    """SQLite-backed persistence for Dataset values."""

    DEFAULT_NAME = "elgoose"

    def __init__(self, db_path: Path):
        """Initialize the store.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._create_tables()

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _create_tables(self) -> None:
        with self._get_connection() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS datasets (
                    name TEXT PRIMARY KEY,
                    fetched_at TEXT,
                    show_count INTEGER NOT NULL,
                    setlist_count INTEGER NOT NULL,
                    payload_json TEXT NOT NULL,
                    saved_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );
            """)
            conn.commit()

    def load(self, name: str = DEFAULT_NAME) -> Dataset | None:
        """Load a stored dataset, or None if nothing was saved under ``name``.

        Raises:
            DatasetError: If the stored payload is corrupt
        """
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT payload_json FROM datasets WHERE name = ?",
                (name,),
            ).fetchone()

        if row is None:
            return None
        return Dataset.from_json(row["payload_json"])

    def save(self, dataset: Dataset, name: str = DEFAULT_NAME) -> None:
        """Replace the dataset stored under ``name``."""
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO datasets
                    (name, fetched_at, show_count, setlist_count, payload_json, saved_at)
                VALUES (?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
                """,
                (
                    name,
                    dataset.fetched_at.isoformat() if dataset.fetched_at else None,
                    len(dataset.shows),
                    len(dataset.setlists),
                    dataset.to_json(indent=None),
                ),
            )
            conn.commit()
        logger.info(
            "dataset_saved",
            name=name,
            shows=len(dataset.shows),
            setlist_entries=len(dataset.setlists),
        )

    def clear(self) -> int:
        """Delete every stored dataset. Returns the number removed."""
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM datasets")
            conn.commit()
        return cursor.rowcount
