"""Calendar-year filter for scored shows."""

from ..models import RarityScore
from . import BaseFilter


class YearFilter(BaseFilter):
    """Keep shows from one calendar year. Shows with no known year are dropped."""

    def __init__(self, year: int):
        self.year = year

    @property
    def name(self) -> str:
        return f"year({self.year})"

    def matches(self, score: RarityScore) -> bool:
        return score.year == self.year
