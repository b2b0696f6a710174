"""Tests for the incremental sync engine."""

import asyncio

import pytest

from showrarity.models import Dataset, Show
from showrarity.sync import SyncError, merge_shows, sync_dataset


def remote_show(show_id, date="2023-01-01", venue="Venue"):
    return {"show_id": show_id, "showdate": date, "venuename": venue}


def entry(show_id, position, name, **extra):
    return {"show_id": show_id, "position": position, "songname": name, **extra}


class TestMergeShows:
    """Show-list merge rules."""

    def test_cached_record_wins(self):
        cached = [Show(show_id=1, venuename="Original Venue")]
        merged, new_ids = merge_shows(cached, [remote_show(1, venue="Edited Venue")])
        assert merged[0] is cached[0]
        assert new_ids == []

    def test_local_only_shows_kept(self):
        cached = [Show(show_id=1), Show(show_id=2)]
        merged, new_ids = merge_shows(cached, [remote_show(2), remote_show(3)])
        assert [show.show_id for show in merged] == [2, 3, 1]
        assert new_ids == [3]

    def test_string_ids_and_missing_ids(self):
        merged, new_ids = merge_shows([], [{"show_id": "7"}, {"venuename": "No id"}, "junk"])
        assert [show.show_id for show in merged] == [7]
        assert new_ids == [7]

    def test_duplicate_remote_ids_collapse(self):
        merged, new_ids = merge_shows([], [remote_show(5), remote_show(5, venue="Again")])
        assert len(merged) == 1
        assert new_ids == [5]


class TestSyncDataset:
    """sync_dataset behaviour against an in-memory source."""

    @pytest.mark.asyncio
    async def test_first_download(self, fake_source):
        source = fake_source(
            shows=[remote_show(1), remote_show(2)],
            setlists={1: [entry(1, 1, "Arcadia"), entry(1, 2, "Empress")], 2: [entry(2, 1, "Arcadia")]},
        )
        result = await sync_dataset(source)
        assert result.added_show_count == 2
        assert result.added_setlist_count == 3
        assert [s.show_id for s in result.dataset.shows] == [1, 2]
        assert [(e.show_id, e.songname) for e in result.dataset.setlists] == [
            (1, "Arcadia"), (1, "Empress"), (2, "Arcadia"),
        ]
        assert result.dataset.fetched_at is not None

    @pytest.mark.asyncio
    async def test_no_new_shows_short_circuits(self, fake_source, base_dataset):
        source = fake_source(shows=[remote_show(1), remote_show(2), remote_show(3)])
        result = await sync_dataset(source, base_dataset)
        assert result.added_show_count == 0
        assert result.added_setlist_count == 0
        assert result.dataset.shows == base_dataset.shows
        assert result.dataset.setlists == base_dataset.setlists
        assert source.setlist_calls == []

    @pytest.mark.asyncio
    async def test_second_sync_adds_nothing(self, fake_source):
        source = fake_source(
            shows=[remote_show(1), remote_show(2)],
            setlists={1: [entry(1, 1, "Arcadia")], 2: [entry(2, 1, "Empress")]},
        )
        first = await sync_dataset(source)
        second = await sync_dataset(source, first.dataset)
        assert (second.added_show_count, second.added_setlist_count) == (0, 0)
        assert second.dataset.setlists == first.dataset.setlists

    @pytest.mark.asyncio
    async def test_only_new_shows_fetched(self, fake_source, base_dataset):
        source = fake_source(
            shows=[remote_show(4, "2023-02-01"), remote_show(1), remote_show(2), remote_show(3)],
            setlists={4: [entry(4, 1, "Hungersite")]},
        )
        result = await sync_dataset(source, base_dataset)
        assert source.setlist_calls == [4]
        assert result.added_show_count == 1
        assert result.added_setlist_count == 1
        assert result.dataset.setlists[: len(base_dataset.setlists)] == base_dataset.setlists
        assert result.dataset.setlists[-1].songname == "Hungersite"

    @pytest.mark.asyncio
    async def test_omitted_cached_show_survives(self, fake_source, base_dataset):
        source = fake_source(shows=[remote_show(2), remote_show(3), remote_show(4)])
        result = await sync_dataset(source, base_dataset)
        shows = {show.show_id: show for show in result.dataset.shows}
        assert shows[1] == base_dataset.shows[0]

    @pytest.mark.asyncio
    async def test_duplicate_entries_dropped(self, fake_source, base_dataset):
        already_cached = dict(base_dataset.setlists[0].model_dump(exclude_none=True))
        source = fake_source(
            shows=[remote_show(1), remote_show(2), remote_show(3), remote_show(4)],
            setlists={4: [
                {**already_cached, "uniqueid": None, "show_id": 1},
                entry(4, 1, "Arcadia", uniqueid=900),
                entry(4, 2, "Arcadia", uniqueid=900),
            ]},
        )
        result = await sync_dataset(source, base_dataset)
        assert result.added_setlist_count == 1
        assert result.dataset.setlists[-1].uniqueid == 900

    @pytest.mark.asyncio
    async def test_entries_linked_to_requested_show(self, fake_source):
        source = fake_source(shows=[remote_show(8)], setlists={8: [{"songname": "Arcadia", "position": 1}]})
        result = await sync_dataset(source)
        assert result.dataset.setlists[0].show_id == 8

    @pytest.mark.asyncio
    async def test_append_order_ignores_completion_order(self, fake_source):
        source = fake_source(
            shows=[remote_show(1), remote_show(2), remote_show(3)],
            setlists={i: [entry(i, 1, f"Song {i}")] for i in (1, 2, 3)},
            delays={1: 0.05, 2: 0.02, 3: 0},
        )
        result = await sync_dataset(source)
        assert [e.show_id for e in result.dataset.setlists] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_worker_pool_is_bounded(self, fake_source):
        ids = list(range(1, 13))
        source = fake_source(
            shows=[remote_show(i) for i in ids],
            setlists={i: [entry(i, 1, "Arcadia")] for i in ids},
            delays={i: 0.01 for i in ids},
        )
        result = await sync_dataset(source, concurrency=5)
        assert sorted(source.setlist_calls) == ids
        assert source.max_in_flight == 5
        assert result.added_setlist_count == 12

    @pytest.mark.asyncio
    async def test_fewer_shows_than_workers(self, fake_source):
        source = fake_source(shows=[remote_show(1), remote_show(2)], delays={1: 0.01, 2: 0.01})
        await sync_dataset(source, concurrency=5)
        assert source.max_in_flight == 2


class TestSyncFailures:
    """All-or-nothing merge semantics."""

    @pytest.mark.asyncio
    async def test_one_failure_rejects_sync(self, fake_source, base_dataset):
        source = fake_source(
            shows=[remote_show(1), remote_show(2), remote_show(3),
                   remote_show(4), remote_show(5), remote_show(6)],
            setlists={4: [entry(4, 1, "A")], 6: [entry(6, 1, "B")]},
            failures={5},
        )
        before = base_dataset.model_dump()
        with pytest.raises(SyncError) as exc_info:
            await sync_dataset(source, base_dataset)

        assert exc_info.value.failures == [(5, "boom 5")]
        assert "1 new show(s)" in str(exc_info.value)
        assert "5: boom 5" in str(exc_info.value)
        # The successful fetches still ran, but nothing leaked into the input
        assert sorted(source.setlist_calls) == [4, 5, 6]
        assert base_dataset.model_dump() == before

    @pytest.mark.asyncio
    async def test_error_message_lists_first_five(self, fake_source):
        ids = list(range(1, 9))
        source = fake_source(shows=[remote_show(i) for i in ids], failures=set(ids))
        with pytest.raises(SyncError) as exc_info:
            await sync_dataset(source, concurrency=1)
        message = str(exc_info.value)
        assert "8 new show(s)" in message
        assert message.count("boom") == 5
        assert len(exc_info.value.failures) == 8

    @pytest.mark.asyncio
    async def test_fetch_timeout_counts_as_failure(self, fake_source):
        source = fake_source(shows=[remote_show(1), remote_show(2)], delays={2: 1.0})
        with pytest.raises(SyncError) as exc_info:
            await sync_dataset(source, fetch_timeout=0.05)
        assert [show_id for show_id, _ in exc_info.value.failures] == [2]
        assert "timed out" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_malformed_entry_is_a_failure(self, fake_source):
        source = fake_source(shows=[remote_show(1)], setlists={1: ["not an object"]})
        with pytest.raises(SyncError):
            await sync_dataset(source)

    @pytest.mark.asyncio
    async def test_unexpected_source_error_is_a_failure(self, fake_source):
        class FlakySource(fake_source):
            async def fetch_setlist(self, show_id):
                if show_id == 1:
                    raise RuntimeError("connection reset")
                return await super().fetch_setlist(show_id)

        source = FlakySource(
            shows=[remote_show(1), remote_show(2), remote_show(3)],
            setlists={2: [entry(2, 1, "A")], 3: [entry(3, 1, "B")]},
            delays={2: 0.05, 3: 0.05},
        )
        with pytest.raises(SyncError) as exc_info:
            await sync_dataset(source)

        assert exc_info.value.failures == [(1, "connection reset")]
        # The other workers finished before the sync was rejected
        assert sorted(source.setlist_calls) == [2, 3]
        assert source.in_flight == 0

    @pytest.mark.asyncio
    async def test_failing_progress_callback_stops_workers(self, fake_source):
        source = fake_source(
            shows=[remote_show(1), remote_show(2), remote_show(3)],
            delays={2: 0.05, 3: 0.05},
        )

        def on_progress(progress):
            if progress.phase == "setlists" and progress.completed == 1:
                raise RuntimeError("display closed")

        with pytest.raises(RuntimeError, match="display closed"):
            await sync_dataset(source, on_progress=on_progress)

        assert source.in_flight == 0
        await asyncio.sleep(0.1)
        assert source.in_flight == 0

    @pytest.mark.asyncio
    async def test_invalid_concurrency(self, fake_source):
        with pytest.raises(ValueError):
            await sync_dataset(fake_source(shows=[]), concurrency=0)


class TestProgress:
    """Progress callback events."""

    @pytest.mark.asyncio
    async def test_progress_sequence(self, fake_source):
        events = []
        source = fake_source(
            shows=[remote_show(1), remote_show(2), remote_show(3)],
            setlists={1: [entry(1, 1, "A")]},
        )
        await sync_dataset(source, on_progress=events.append)

        phases = [event.phase for event in events]
        assert phases[:2] == ["shows", "shows"]
        assert phases[-1] == "complete"
        assert "Comparing with cached data" in events[1].message

        setlist_events = [event for event in events if event.phase == "setlists"]
        assert [event.completed for event in setlist_events] == [0, 1, 2, 3]
        assert all(event.total == 3 for event in setlist_events)
        assert events[-1].message == "Sync complete. Added 3 new shows and 1 setlist entry."

    @pytest.mark.asyncio
    async def test_up_to_date_message(self, fake_source, base_dataset):
        events = []
        await sync_dataset(fake_source(shows=[remote_show(1)]), base_dataset, on_progress=events.append)
        assert events[-1].phase == "complete"
        assert events[-1].message == "Dataset is already up to date."
        assert not any(event.phase == "setlists" for event in events)
