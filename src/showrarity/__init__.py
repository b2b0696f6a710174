"""showrarity - Rarity scores for Goose shows.

Keeps a local copy of the elgoose.net setlist archive in sync and scores
every show by how unusual its song selection is.
"""

from .models import Dataset
from .scoring import compute_rarity_scores
from .sync import sync_dataset

__all__ = ["Dataset", "compute_rarity_scores", "sync_dataset"]
