"""Tests for dataset resolution and scoring in the pipeline."""

import pytest

from showrarity.cache import DatasetStore
from showrarity.config import Settings
from showrarity.models import DatasetError
from showrarity.pipeline import Pipeline


class CountingStore(DatasetStore):
    """DatasetStore that counts saves."""

    def __init__(self, db_path):
        super().__init__(db_path)
        self.saves = 0

    def save(self, dataset, name=DatasetStore.DEFAULT_NAME):
        self.saves += 1
        super().save(dataset, name)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        dataset_path=tmp_path / "dataset.db",
        elgoose_dataset_json=None,
        setlist_fetch_timeout=None,
    )


@pytest.fixture
def store(settings) -> CountingStore:
    return CountingStore(settings.dataset_path)


class TestEnsureDataset:
    """Where the dataset comes from."""

    def test_empty_store_triggers_sync(self, settings, store, fake_source, raw_shows, raw_setlists):
        source = fake_source(raw_shows, raw_setlists)
        dataset = Pipeline(settings, store, source).ensure_dataset()
        assert len(dataset.shows) == 3
        assert len(dataset.setlists) == 4
        assert source.show_calls == 1
        assert store.saves == 1
        assert store.load().model_dump() == dataset.model_dump()

    def test_cached_dataset_used_without_update(self, settings, store, fake_source, base_dataset, raw_shows):
        store.save(base_dataset)
        source = fake_source(raw_shows)
        dataset = Pipeline(settings, store, source).ensure_dataset()
        assert dataset.model_dump() == base_dataset.model_dump()
        assert source.show_calls == 0

    def test_update_without_changes_skips_save(self, settings, store, fake_source, base_dataset, raw_shows):
        store.save(base_dataset)
        source = fake_source(raw_shows)
        Pipeline(settings, store, source).ensure_dataset(update=True)
        assert source.show_calls == 1
        assert source.setlist_calls == []
        assert store.saves == 1

    def test_update_with_new_show_saves(self, settings, store, fake_source, base_dataset, raw_shows):
        store.save(base_dataset)
        remote = [*raw_shows, {"show_id": 4, "showdate": "2024-02-02", "venuename": "New Venue"}]
        source = fake_source(remote, {4: [{"show_id": 4, "song_id": 101, "songname": "Arcadia"}]})
        dataset = Pipeline(settings, store, source).ensure_dataset(update=True)
        assert len(dataset.shows) == 4
        assert len(dataset.setlists) == 5
        assert store.saves == 2
        assert len(store.load().shows) == 4

    def test_progress_is_forwarded(self, settings, store, fake_source, raw_shows, raw_setlists):
        events = []
        Pipeline(settings, store, fake_source(raw_shows, raw_setlists)).ensure_dataset(
            on_progress=events.append
        )
        assert events[0].message == "Fetching latest shows..."
        assert events[-1].phase == "complete"

    def test_environment_override(self, settings, fake_source, base_dataset):
        env_settings = settings.model_copy(update={"elgoose_dataset_json": base_dataset.to_json()})
        source = fake_source([])
        pipeline = Pipeline(env_settings, source=source)
        dataset = pipeline.ensure_dataset(update=True)
        assert dataset.model_dump() == base_dataset.model_dump()
        assert source.show_calls == 0
        assert not env_settings.dataset_path.exists()

    def test_invalid_environment_dataset(self, settings):
        env_settings = settings.model_copy(update={"elgoose_dataset_json": '{"shows": []}'})
        with pytest.raises(DatasetError, match="Failed to parse dataset from ELGOOSE_DATASET_JSON"):
            Pipeline(env_settings).ensure_dataset()

    def test_dataset_file(self, settings, tmp_path, base_dataset, fake_source):
        path = tmp_path / "dataset.json"
        path.write_text(base_dataset.to_json())
        source = fake_source([])
        dataset = Pipeline(settings, source=source).ensure_dataset(dataset_file=path)
        assert len(dataset.shows) == 3
        assert source.show_calls == 0

    def test_missing_dataset_file(self, settings, tmp_path):
        with pytest.raises(DatasetError, match="Cannot read dataset file"):
            Pipeline(settings).ensure_dataset(dataset_file=tmp_path / "missing.json")


class TestScore:
    """Scoring with filters."""

    def test_unfiltered(self, settings, base_dataset):
        report = Pipeline(settings).score(base_dataset)
        assert {s.show_id for s in report.scores} == {1, 2}
        assert [s.show_id for s in report.skipped] == [3]

    def test_year_filter(self, settings, base_dataset):
        report = Pipeline(settings).score(base_dataset, year=2023)
        assert [s.show_id for s in report.scores] == [1]
        assert report.skipped == []
        # Normalization still uses the whole corpus
        assert len(report.result.scores) == 2

    def test_venue_filter(self, settings, base_dataset):
        report = Pipeline(settings).score(base_dataset, venue="capitol")
        assert [s.show_id for s in report.scores] == [2]

    def test_year_without_shows(self, settings, base_dataset):
        report = Pipeline(settings).score(base_dataset, year=1999)
        assert report.scores == []
