"""Incremental dataset synchronization.

A sync fetches the remote show list, keeps cached shows as they are, and
downloads setlists only for shows not seen before. Setlist downloads run on a
small pool of asyncio workers; if any download fails the whole sync is
rejected and nothing new is merged, so retrying the same sync is always safe.
"""

import asyncio
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timezone
from typing import Any

from .identity import setlist_entry_key
from .logging import get_logger
from .models import Dataset, SetlistEntry, Show, SyncProgress, SyncResult
from .normalize import to_numeric_id
from .sources import ShowSource

logger = get_logger(__name__)

SETLIST_FETCH_CONCURRENCY = 5
MAX_REPORTED_FAILURES = 5

ProgressCallback = Callable[[SyncProgress], None]


class SyncError(Exception):
    """One or more setlist downloads failed; nothing was merged."""

    def __init__(self, failures: list[tuple[int, str]]):
        self.failures = failures
        detail = "; ".join(
            f"{show_id}: {message}" for show_id, message in failures[:MAX_REPORTED_FAILURES]
        )
        super().__init__(
            f"Failed to download setlists for {len(failures)} new show(s): {detail}"
        )


def _plural(count: int, singular: str, plural: str) -> str:
    return singular if count == 1 else plural


def merge_shows(
    cached: Sequence[Show], remote: Iterable[Any]
) -> tuple[list[Show], list[int]]:
    """Merge the remote show list into the cached one.

    Cached records win over remote ones with the same id, and cached shows
    missing from the remote list are kept at the end.

    Returns:
        (merged shows, ids of shows not seen before) in remote order
    """
    cached_by_id: dict[int, Show] = {}
    for show in cached:
        cached_by_id.setdefault(show.show_id, show)

    merged: list[Show] = []
    new_ids: list[int] = []
    seen: set[int] = set()
    for record in remote:
        show_id = to_numeric_id(record.get("show_id")) if isinstance(record, dict) else None
        if show_id is None:
            logger.warning("remote_show_without_id", record=record)
            continue
        if show_id in seen:
            continue
        seen.add(show_id)
        if show_id in cached_by_id:
            merged.append(cached_by_id[show_id])
        else:
            merged.append(Show.model_validate({**record, "show_id": show_id}))
            new_ids.append(show_id)

    for show in cached:
        if show.show_id not in seen:
            seen.add(show.show_id)
            merged.append(show)

    return merged, new_ids


def _entry_for_show(record: dict[str, Any], show_id: int) -> SetlistEntry:
    """Validate a fetched entry, linking it to the requested show if it names none."""
    if not isinstance(record, dict):
        raise ValueError(f"setlist entry is not an object: {record!r}")
    if record.get("show_id") is None:
        record = {**record, "show_id": show_id}
    return SetlistEntry.model_validate(record)


def _per_show_keys(entries: Iterable[SetlistEntry]) -> set[str]:
    """Dedup keys for cached entries, using each entry's ordinal within its show."""
    ordinals: dict[int | None, int] = {}
    keys: set[str] = set()
    for entry in entries:
        ordinal = ordinals.get(entry.show_id, 0)
        ordinals[entry.show_id] = ordinal + 1
        keys.add(setlist_entry_key(entry, ordinal))
    return keys


async def _download_setlists(
    source: ShowSource,
    show_ids: list[int],
    known_keys: set[str],
    emit: ProgressCallback,
    concurrency: int,
    fetch_timeout: float | None,
) -> dict[int, list[SetlistEntry]]:
    """Fetch setlists for ``show_ids`` on a bounded worker pool.

    Workers claim the next show by advancing a shared cursor. They only
    interleave at awaits, so the cursor, ``known_keys`` and the results need no
    locking.

    Raises:
        SyncError: If any fetch failed or timed out
    """
    total = len(show_ids)
    cursor = 0
    completed = 0
    additions: dict[int, list[SetlistEntry]] = {}
    failures: list[tuple[int, str]] = []

    async def fetch(show_id: int) -> list[dict[str, Any]]:
        request = source.fetch_setlist(show_id)
        if fetch_timeout is None:
            return await request
        return await asyncio.wait_for(request, fetch_timeout)

    async def worker() -> None:
        nonlocal cursor, completed
        while cursor < total:
            show_id = show_ids[cursor]
            cursor += 1
            try:
                records = await fetch(show_id)
                entries = [_entry_for_show(record, show_id) for record in records]
            except asyncio.TimeoutError:
                logger.warning("setlist_fetch_timeout", show_id=show_id, timeout=fetch_timeout)
                failures.append((show_id, f"timed out after {fetch_timeout}s"))
            except Exception as e:
                logger.warning("setlist_fetch_failed", show_id=show_id, error=repr(e))
                failures.append((show_id, str(e) or type(e).__name__))
            else:
                kept: list[SetlistEntry] = []
                for ordinal, entry in enumerate(entries):
                    key = setlist_entry_key(entry, ordinal)
                    if key in known_keys:
                        continue
                    known_keys.add(key)
                    kept.append(entry)
                if kept:
                    additions[show_id] = kept
            completed += 1
            emit(
                SyncProgress(
                    phase="setlists",
                    completed=completed,
                    total=total,
                    message=f"Downloading setlists ({completed}/{total})...",
                )
            )

    tasks = [asyncio.create_task(worker()) for _ in range(min(concurrency, total))]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        # A progress callback raised or we were cancelled; stop the other workers
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    if failures:
        raise SyncError(failures)
    return additions


async def sync_dataset(
    source: ShowSource,
    existing: Dataset | None = None,
    *,
    on_progress: ProgressCallback | None = None,
    concurrency: int = SETLIST_FETCH_CONCURRENCY,
    fetch_timeout: float | None = None,
) -> SyncResult:
    """Bring a cached dataset up to date with the remote source.

    Args:
        source: Remote archive to read from
        existing: Previously cached dataset, or None for a first download
        on_progress: Optional callback receiving advisory progress events
        concurrency: Maximum number of setlist downloads in flight
        fetch_timeout: Deadline in seconds for each setlist download

    Returns:
        SyncResult with the new dataset and how much was added

    Raises:
        SourceError: If the show list cannot be fetched
        SyncError: If any new show's setlist cannot be fetched
    """
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")

    def emit(progress: SyncProgress) -> None:
        if on_progress is not None:
            on_progress(progress)

    emit(SyncProgress(phase="shows", completed=0, message="Fetching latest shows..."))

    cached_shows = existing.shows if existing else ()
    cached_setlists = existing.setlists if existing else ()

    remote_shows = await source.fetch_shows()
    emit(
        SyncProgress(
            phase="shows",
            completed=len(remote_shows),
            message=f"Fetched {len(remote_shows):,} shows. Comparing with cached data...",
        )
    )

    merged_shows, new_ids = merge_shows(cached_shows, remote_shows)
    logger.info(
        "shows_compared",
        source=source.name,
        remote=len(remote_shows),
        cached=len(cached_shows),
        new=len(new_ids),
    )

    if not new_ids:
        dataset = Dataset(
            fetched_at=existing.fetched_at if existing else datetime.now(timezone.utc),
            shows=merged_shows,
            setlists=cached_setlists,
        )
        emit(
            SyncProgress(
                phase="complete",
                completed=len(merged_shows),
                total=len(merged_shows),
                message="Dataset is already up to date.",
            )
        )
        return SyncResult(dataset=dataset)

    total = len(new_ids)
    emit(
        SyncProgress(
            phase="setlists",
            completed=0,
            total=total,
            message=(
                f"Downloading setlists for {total} new {_plural(total, 'show', 'shows')} "
                f"(0/{total})..."
            ),
        )
    )

    additions = await _download_setlists(
        source,
        new_ids,
        _per_show_keys(cached_setlists),
        emit,
        concurrency,
        fetch_timeout,
    )

    # Append in merged-show order so the result doesn't depend on completion order
    combined = list(cached_setlists)
    for show in merged_shows:
        combined.extend(additions.get(show.show_id, ()))
    added_setlist_count = sum(len(entries) for entries in additions.values())

    dataset = Dataset(
        fetched_at=datetime.now(timezone.utc),
        shows=merged_shows,
        setlists=combined,
    )

    logger.info(
        "sync_complete",
        added_shows=total,
        added_setlist_entries=added_setlist_count,
    )
    emit(
        SyncProgress(
            phase="complete",
            completed=total,
            total=total,
            message=(
                f"Sync complete. Added {total} new {_plural(total, 'show', 'shows')} and "
                f"{added_setlist_count} setlist "
                f"{_plural(added_setlist_count, 'entry', 'entries')}."
            ),
        )
    )
    return SyncResult(
        dataset=dataset,
        added_show_count=total,
        added_setlist_count=added_setlist_count,
    )
