"""Shared fixtures for showrarity tests."""

import asyncio

import pytest
import structlog

from showrarity.config import get_settings
from showrarity.models import Dataset
from showrarity.sources import SourceError


SHOWS = [
    {"show_id": 1, "showdate": "2023-01-01", "venuename": "Madison Square Garden", "location": "New York, NY"},
    {"show_id": 2, "showdate": "2022-12-31", "venuename": "Capitol Theatre", "location": "Port Chester, NY"},
    {"show_id": 3, "showdate": "2021-07-04", "venuename": "Red Rocks Amphitheatre", "location": "Morrison, CO"},
]

SETLISTS = [
    {"show_id": 1, "showdate": "2023-01-01", "song_id": 101, "songname": "Arcadia",
     "isoriginal": 1, "settype": "set", "setnumber": 1, "position": 1},
    {"show_id": 1, "showdate": "2023-01-01", "song_id": 102, "songname": "Take On Me",
     "isoriginal": 0, "original_artist": "A-ha", "settype": "set", "setnumber": 1, "position": 2},
    {"show_id": 2, "showdate": "2022-12-31", "song_id": 101, "songname": "Arcadia",
     "isoriginal": 1, "settype": "set", "setnumber": 1, "position": 1},
    {"show_id": 2, "showdate": "2022-12-31", "song_id": 103, "songname": "Empress",
     "isoriginal": 1, "settype": "set", "setnumber": 1, "position": 2},
]


@pytest.fixture(autouse=True)
def reset_global_state():
    """Undo logging configuration and cached settings between tests."""
    get_settings.cache_clear()
    yield
    structlog.reset_defaults()
    get_settings.cache_clear()


@pytest.fixture
def base_dataset() -> Dataset:
    """Three shows, the last one without any setlist entries."""
    return Dataset.from_payload({"shows": SHOWS, "setlists": SETLISTS})


class FakeSource:
    """In-memory ShowSource that records how it was called."""

    name = "fake"

    def __init__(self, shows, setlists=None, failures=None, delays=None):
        self.shows = shows
        self.setlists = setlists or {}
        self.failures = failures or set()
        self.delays = delays or {}
        self.show_calls = 0
        self.setlist_calls: list[int] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_shows(self):
        self.show_calls += 1
        return [dict(show) for show in self.shows]

    async def fetch_setlist(self, show_id):
        self.setlist_calls.append(show_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(show_id, 0))
            if show_id in self.failures:
                raise SourceError(f"boom {show_id}")
            return [dict(entry) for entry in self.setlists.get(show_id, [])]
        finally:
            self.in_flight -= 1


@pytest.fixture
def fake_source():
    """The FakeSource class, for tests that build their own remote state."""
    return FakeSource


@pytest.fixture
def raw_shows() -> list[dict]:
    """Remote show records matching ``base_dataset``."""
    return [dict(show) for show in SHOWS]


@pytest.fixture
def raw_setlists() -> dict[int, list[dict]]:
    """Remote setlist records matching ``base_dataset``, keyed by show id."""
    by_show: dict[int, list[dict]] = {}
    for entry in SETLISTS:
        by_show.setdefault(entry["show_id"], []).append(dict(entry))
    return by_show
