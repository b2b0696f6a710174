"""Filters over scored shows.

Filters narrow a list of RarityScore records, e.g. to one year or one venue.
Add new filters by implementing the Filter protocol.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from ..models import RarityScore


@dataclass
class FilterResult:
    """Result of applying a filter."""

    included: list[RarityScore] = field(default_factory=list)
    excluded: list[RarityScore] = field(default_factory=list)


@runtime_checkable
class Filter(Protocol):
    """Protocol for score filters."""

    @property
    def name(self) -> str:
        """Unique identifier for this filter."""
        ...

    def apply(self, scores: list[RarityScore]) -> FilterResult:
        """Split scores into included and excluded."""
        ...


class BaseFilter(ABC):
    """Abstract base class for predicate-style filters."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def matches(self, score: RarityScore) -> bool:
        """True if the score should be kept."""
        pass

    def apply(self, scores: list[RarityScore]) -> FilterResult:
        result = FilterResult()
        for score in scores:
            if self.matches(score):
                result.included.append(score)
            else:
                result.excluded.append(score)
        return result


class FilterChain:
    """Chain of filters applied sequentially.

    Each filter receives the included items from the previous filter.
    Excluded items accumulate across all filters.
    """

    def __init__(self):
        self._filters: list[Filter] = []

    def add(self, filter: Filter) -> "FilterChain":
        """Add a filter to the chain. Returns self for chaining."""
        self._filters.append(filter)
        return self

    def apply(self, scores: list[RarityScore]) -> FilterResult:
        current = scores
        excluded: list[RarityScore] = []
        for filter in self._filters:
            result = filter.apply(current)
            current = result.included
            excluded.extend(result.excluded)
        return FilterResult(included=current, excluded=excluded)

    @property
    def filters(self) -> list[Filter]:
        return self._filters.copy()


from .venue import VenueFilter
from .year import YearFilter

__all__ = [
    "Filter",
    "FilterResult",
    "BaseFilter",
    "FilterChain",
    "VenueFilter",
    "YearFilter",
]
