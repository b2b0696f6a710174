"""Show rarity scoring.

Each setlist entry gets a raw rarity from its song's play frequency, its
cover status and whether it was the song's debut. Raw values are normalized
across the whole corpus, averaged per show with a mild boost for longer
setlists, and the show scores are normalized once more into [0, 1].
"""

import math
from dataclasses import dataclass

from ..identity import setlist_entry_key
from ..logging import get_logger
from ..models import ComputeResult, Dataset, RarityScore, Show, SongAggregate, SongRarityDetail
from ..normalize import decode_html_entities, is_cover, parse_show_year
from .usage import EPSILON, UsageStatistics, build_usage_statistics

logger = get_logger(__name__)

W_F = 1.0
W_C = 0.5
F_CAP = 3
MIN_NORMALIZED_RARITY = 0.05
MAX_NORMALIZED_RARITY = 1.0
MIN_SHOW_SCORE = 0.001
LENGTH_ATTENUATION = 0.1
FTP_BONUS_ORIGINAL = 0.1
FTP_BONUS_COVER = 0.05


@dataclass(frozen=True)
class _EntryRarity:
    key: str
    song_key: str
    show_id: int | None
    raw: float
    is_cover: bool


def _show_score(show: Show, rarity_score: float, normalized_score: float, entries: int) -> RarityScore:
    return RarityScore(
        show_id=show.show_id,
        date=show.showdate,
        venue=decode_html_entities(show.venuename),
        location=decode_html_entities(show.location),
        rarity_score=rarity_score,
        normalized_score=normalized_score,
        entries=entries,
        year=parse_show_year(show),
    )


def _raw_rarities(dataset: Dataset, stats: UsageStatistics) -> list[_EntryRarity]:
    usage_by_song = {key: stats.usage(key) for key in stats.songs}

    rarities = []
    for index, entry in enumerate(dataset.setlists):
        key = stats.entry_song_keys[index]
        usage = usage_by_song[key]
        cover = is_cover(entry)

        base = min(1 / usage.frequency_metric, 1 / F_CAP)
        raw = W_F * base * max(1 - W_C * cover, 0)

        # Same UTC calendar day as the song's (eligible) debut
        when = stats.entry_date(entry)
        debut = usage.first_date
        if when is not None and debut is not None and when.date() == debut.date():
            raw += FTP_BONUS_COVER if cover else FTP_BONUS_ORIGINAL

        rarities.append(
            _EntryRarity(
                key=setlist_entry_key(entry, index),
                song_key=key,
                show_id=entry.show_id,
                raw=raw,
                is_cover=cover,
            )
        )
    return rarities


def _normalize(value: float, low: float, spread: float, floor: float, ceiling: float) -> float:
    if spread <= EPSILON:
        return ceiling
    scaled = floor + (ceiling - floor) * ((value - low) / spread)
    return min(max(scaled, floor), ceiling)


def compute_rarity_scores(dataset: Dataset) -> ComputeResult:
    """Score every show in the dataset.

    Shows without setlist entries are reported in ``skipped`` rather than
    ``scores``, except when the corpus has no entries at all: then every show is
    scored at ``MIN_SHOW_SCORE``.
    """
    if not dataset.setlists:
        logger.debug("no_setlist_entries", shows=len(dataset.shows))
        return ComputeResult(
            scores=[_show_score(show, MIN_SHOW_SCORE, 1.0, 0) for show in dataset.shows],
        )

    stats = build_usage_statistics(dataset)
    rarities = _raw_rarities(dataset, stats)

    raw_values = [item.raw for item in rarities]
    min_raw = min(raw_values)
    raw_spread = max(raw_values) - min_raw

    totals_by_show: dict[int, float] = {}
    song_details: dict[str, SongRarityDetail] = {}
    for item in rarities:
        normalized = _normalize(
            item.raw, min_raw, raw_spread, MIN_NORMALIZED_RARITY, MAX_NORMALIZED_RARITY
        )
        if item.show_id is not None:
            totals_by_show[item.show_id] = totals_by_show.get(item.show_id, 0.0) + normalized

        song = stats.songs[item.song_key]
        usage = stats.usage(item.song_key)
        song_details[item.key] = SongRarityDetail(
            key=item.key,
            song_key=item.song_key,
            show_id=item.show_id,
            normalized=normalized,
            raw=item.raw,
            plays=usage.plays,
            percentage=usage.percentage,
            is_cover=item.is_cover,
            first_date=usage.first_date,
            first_appearance=song.first_appearance,
        )

    drafts: list[tuple[Show, float, int]] = []
    skipped: list[RarityScore] = []
    for show in dataset.shows:
        entries = stats.setlist_counts.get(show.show_id, 0)
        if entries == 0:
            skipped.append(_show_score(show, MIN_SHOW_SCORE, 0.0, 0))
            continue
        average = totals_by_show.get(show.show_id, 0.0) / entries
        length_multiplier = 1 + math.log1p(entries) * LENGTH_ATTENUATION
        drafts.append((show, max(average * length_multiplier, MIN_SHOW_SCORE), entries))

    scores: list[RarityScore] = []
    if drafts:
        draft_scores = [score for _, score, _ in drafts]
        min_score = min(draft_scores)
        score_spread = max(draft_scores) - min_score
        scores = [
            _show_score(show, score, _normalize(score, min_score, score_spread, 0.0, 1.0), entries)
            for show, score, entries in drafts
        ]

    song_aggregates: dict[str, SongAggregate] = {}
    for key, meta in stats.meta.items():
        usage = stats.usage(key)
        song_aggregates[key] = SongAggregate(
            song_key=key,
            name=meta.name,
            song_id=meta.song_id,
            slug=meta.slug,
            plays=usage.plays,
            percentage=usage.percentage,
            first_date=usage.first_date,
            cover_count=meta.cover_count,
            original_count=meta.original_count,
        )

    logger.debug(
        "rarity_scores_computed",
        scored=len(scores),
        skipped=len(skipped),
        entries=len(rarities),
        songs=len(song_aggregates),
    )
    return ComputeResult(
        scores=scores,
        skipped=skipped,
        song_details=song_details,
        song_aggregates=song_aggregates,
    )
