"""Corpus-wide song usage statistics.

Built in two passes: the per-show entry counts and the sorted show timeline
must be complete before any song's "shows since first play" can be answered.
"""

import sys
from bisect import bisect_left
from dataclasses import dataclass, field
from datetime import datetime, timezone

from ..identity import song_key
from ..models import Dataset, SetlistEntry
from ..normalize import is_cover, parse_calendar_date

# Performance history before this date is too sparse to judge frequency by
FIRST_PLAY_CUTOFF = datetime(2015, 1, 1, tzinfo=timezone.utc)

EPSILON = sys.float_info.epsilon


@dataclass
class SongUsageStats:
    """Accumulated appearances of one song."""

    show_ids: set[int] = field(default_factory=set)
    first_appearance: datetime | None = None
    first_eligible_date: datetime | None = None

    def observe(self, when: datetime) -> None:
        if self.first_appearance is None or when < self.first_appearance:
            self.first_appearance = when
        if when >= FIRST_PLAY_CUTOFF and (
            self.first_eligible_date is None or when < self.first_eligible_date
        ):
            self.first_eligible_date = when

    @property
    def plays(self) -> int:
        return max(len(self.show_ids), 1)

    @property
    def first_date(self) -> datetime | None:
        """First eligible appearance, falling back to the first ever."""
        return self.first_eligible_date or self.first_appearance


@dataclass
class SongMeta:
    """Display metadata for a song, taken from the first entry that has it."""

    name: str | None = None
    slug: str | None = None
    song_id: int | None = None
    cover_count: int = 0
    original_count: int = 0


@dataclass(frozen=True)
class SongUsage:
    """Frequency figures for one song."""

    plays: int
    percentage: float
    frequency_metric: float
    first_date: datetime | None


@dataclass
class UsageStatistics:
    """Everything the scorer needs to know about the corpus."""

    setlist_counts: dict[int, int]
    show_dates: dict[int, datetime]
    timeline: list[datetime]
    songs: dict[str, SongUsageStats]
    meta: dict[str, SongMeta]
    entry_song_keys: list[str]

    def shows_since(self, when: datetime | None) -> int:
        """Number of timeline shows on or after ``when`` (all of them if None)."""
        if not self.timeline:
            return 0
        if when is None:
            return len(self.timeline)
        return len(self.timeline) - bisect_left(self.timeline, when)

    def entry_date(self, entry: SetlistEntry) -> datetime | None:
        """The entry's own date, falling back to its show's date."""
        when = parse_calendar_date(entry.showdate)
        if when is None and entry.show_id is not None:
            when = self.show_dates.get(entry.show_id)
        return when

    def usage(self, key: str) -> SongUsage:
        stats = self.songs[key]
        plays = stats.plays
        denominator = max(self.shows_since(stats.first_date), plays)
        percentage = plays / denominator if denominator > 0 else 1.0
        return SongUsage(
            plays=plays,
            percentage=percentage,
            frequency_metric=max(percentage * 100, EPSILON),
            first_date=stats.first_date,
        )


def build_usage_statistics(dataset: Dataset) -> UsageStatistics:
    """Scan the corpus and collect per-song usage statistics."""
    setlist_counts: dict[int, int] = {}
    for entry in dataset.setlists:
        if entry.show_id is None:
            continue
        setlist_counts[entry.show_id] = setlist_counts.get(entry.show_id, 0) + 1

    show_dates: dict[int, datetime] = {}
    timeline: list[datetime] = []
    for show in dataset.shows:
        when = parse_calendar_date(show.showdate)
        if when is None:
            continue
        show_dates[show.show_id] = when
        if setlist_counts.get(show.show_id, 0) > 0:
            timeline.append(when)
    timeline.sort()

    stats = UsageStatistics(
        setlist_counts=setlist_counts,
        show_dates=show_dates,
        timeline=timeline,
        songs={},
        meta={},
        entry_song_keys=[],
    )

    for index, entry in enumerate(dataset.setlists):
        key = song_key(entry, index)
        stats.entry_song_keys.append(key)

        song = stats.songs.setdefault(key, SongUsageStats())
        if entry.show_id is not None:
            song.show_ids.add(entry.show_id)

        meta = stats.meta.setdefault(key, SongMeta())
        if entry.songname and meta.name is None:
            meta.name = entry.songname
        if entry.slug and meta.slug is None:
            meta.slug = entry.slug
        if entry.song_id is not None and meta.song_id is None:
            meta.song_id = entry.song_id
        if is_cover(entry):
            meta.cover_count += 1
        else:
            meta.original_count += 1

        when = stats.entry_date(entry)
        if when is not None:
            song.observe(when)

    return stats
