"""Usage statistics and rarity scoring over a Dataset."""

from .scorer import (
    MAX_NORMALIZED_RARITY,
    MIN_NORMALIZED_RARITY,
    MIN_SHOW_SCORE,
    compute_rarity_scores,
)
from .usage import FIRST_PLAY_CUTOFF, UsageStatistics, build_usage_statistics

__all__ = [
    "compute_rarity_scores",
    "build_usage_statistics",
    "UsageStatistics",
    "FIRST_PLAY_CUTOFF",
    "MIN_NORMALIZED_RARITY",
    "MAX_NORMALIZED_RARITY",
    "MIN_SHOW_SCORE",
]
