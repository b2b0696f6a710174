"""Venue/location substring filter for scored shows."""

from ..models import RarityScore
from . import BaseFilter


class VenueFilter(BaseFilter):
    """Keep shows whose venue or location contains a search term.

    Matching is case-insensitive. A blank term matches every show.
    """

    def __init__(self, term: str | None):
        self.term = term or ""
        self._needle = self.term.strip().lower()

    @property
    def name(self) -> str:
        return f"venue({self.term!r})"

    def matches(self, score: RarityScore) -> bool:
        if not self._needle:
            return True
        return any(
            self._needle in candidate.lower() for candidate in (score.venue, score.location)
        )
