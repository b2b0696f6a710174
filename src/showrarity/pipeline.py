"""Pipeline orchestrator for showrarity.

Coordinates the full flow:
1. Resolve the dataset (environment override, a JSON file, or the local store)
2. Sync with elgoose.net when the store is empty or an update is requested
3. Score every show
4. Apply user filters to the scored shows
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path

from .cache import DatasetStore
from .config import Settings, get_settings
from .filters import FilterChain, VenueFilter, YearFilter
from .logging import get_logger
from .models import ComputeResult, Dataset, DatasetError, RarityScore, SyncResult
from .scoring import compute_rarity_scores
from .sources import ElgooseSource, ShowSource
from .sync import ProgressCallback, sync_dataset

logger = get_logger(__name__)


@dataclass
class ScoreReport:
    """Scorer output narrowed by the user's filters."""

    result: ComputeResult
    scores: list[RarityScore]
    skipped: list[RarityScore]


class Pipeline:
    """Main pipeline orchestrator for showrarity."""

    def __init__(
        self,
        settings: Settings | None = None,
        store: DatasetStore | None = None,
        source: ShowSource | None = None,
    ):
        """Initialize the pipeline.

        Args:
            settings: Optional settings override
            store: Optional dataset store, defaults to one at ``settings.dataset_path``
            source: Optional remote source, defaults to the elgoose.net API
        """
        self.settings = settings or get_settings()
        self._store = store
        self._source = source

    @property
    def store(self) -> DatasetStore:
        """Lazy initialization so env/file datasets never touch the disk."""
        if self._store is None:
            self._store = DatasetStore(self.settings.dataset_path)
        return self._store

    async def sync(
        self, existing: Dataset | None, on_progress: ProgressCallback | None = None
    ) -> SyncResult:
        """Run one incremental sync against the configured source."""
        options = {
            "on_progress": on_progress,
            "concurrency": self.settings.setlist_fetch_concurrency,
            "fetch_timeout": self.settings.setlist_fetch_timeout,
        }
        if self._source is not None:
            return await sync_dataset(self._source, existing, **options)
        async with ElgooseSource(
            base_url=self.settings.api_base_url,
            timeout=self.settings.request_timeout,
        ) as source:
            return await sync_dataset(source, existing, **options)

    def dataset_from_env(self) -> Dataset | None:
        """Dataset supplied through ``ELGOOSE_DATASET_JSON``, if any.

        Raises:
            DatasetError: If the variable is set but unusable
        """
        payload = self.settings.elgoose_dataset_json
        if payload is None:
            return None
        try:
            return Dataset.from_json(payload)
        except DatasetError as e:
            raise DatasetError(f"Failed to parse dataset from ELGOOSE_DATASET_JSON: {e}") from e

    def update(self, on_progress: ProgressCallback | None = None) -> SyncResult:
        """Sync the stored dataset and save it if anything changed."""
        current = self.store.load()
        result = asyncio.run(self.sync(current, on_progress))
        if current is None or result.added_show_count or result.added_setlist_count:
            self.store.save(result.dataset)
        else:
            logger.info("dataset_current", shows=len(current.shows))
        return result

    def ensure_dataset(
        self,
        update: bool = False,
        dataset_file: Path | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> Dataset:
        """Resolve the dataset to score.

        Args:
            update: Check the remote source for new shows first
            dataset_file: Read the dataset from this JSON file instead of the store
            on_progress: Optional sync progress callback

        Returns:
            The dataset, synced and saved when needed
        """
        from_env = self.dataset_from_env()
        if from_env is not None:
            logger.info("dataset_source", source="environment")
            return from_env

        if dataset_file is not None:
            logger.info("dataset_source", source="file", path=str(dataset_file))
            try:
                text = dataset_file.read_text(encoding="utf-8")
            except OSError as e:
                raise DatasetError(f"Cannot read dataset file {dataset_file}: {e}") from e
            return Dataset.from_json(text)

        cached = self.store.load()
        if cached is None or update:
            logger.info("dataset_source", source="remote", cached=cached is not None)
            return self.update(on_progress).dataset

        logger.info("dataset_source", source="store", path=str(self.settings.dataset_path))
        return cached

    def score(
        self,
        dataset: Dataset,
        year: int | None = None,
        venue: str | None = None,
    ) -> ScoreReport:
        """Score the dataset and apply the year/venue filters."""
        result = compute_rarity_scores(dataset)

        chain = FilterChain()
        if year is not None:
            chain.add(YearFilter(year))
        if venue:
            chain.add(VenueFilter(venue))

        scores = chain.apply(result.scores).included
        skipped = chain.apply(result.skipped).included
        logger.info(
            "shows_scored",
            scored=len(result.scores),
            skipped=len(result.skipped),
            after_filter=len(scores),
            filters=[f.name for f in chain.filters],
        )
        return ScoreReport(result=result, scores=scores, skipped=skipped)
