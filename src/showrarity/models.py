"""Pydantic data models for showrarity.

Raw records (shows and setlist entries) mirror the elgoose.net API payloads and
keep any fields we don't model explicitly. Derived records are the outputs of
the scorer and the sync engine.
"""

import json
from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError

from .normalize import to_numeric_id

# Loosely-typed numeric ids ("12", 12.0, "") collapse to int or None
LenientId = Annotated[int | None, BeforeValidator(to_numeric_id)]


class DatasetError(ValueError):
    """A dataset payload is structurally unusable."""


class Show(BaseModel):
    """A single dated live performance."""

    model_config = ConfigDict(frozen=True, extra="allow", coerce_numbers_to_str=True)

    show_id: int = Field(description="Show identifier")
    showdate: str | None = Field(default=None, description="Calendar date, YYYY-MM-DD")
    show_year: int | str | None = Field(default=None, description="Explicit year, if supplied")
    venuename: str | None = Field(default=None, description="Venue name, may contain HTML entities")
    location: str | None = Field(default=None, description="City/state, may contain HTML entities")


class SetlistEntry(BaseModel):
    """One song performed within a show."""

    model_config = ConfigDict(frozen=True, extra="allow", coerce_numbers_to_str=True)

    uniqueid: int | str | None = None
    show_id: LenientId = None
    showdate: str | None = None

    # Song identity
    song_id: LenientId = None
    slug: str | None = None
    songname: str | None = None

    # Cover/original
    isoriginal: bool | int | str | None = None
    original_artist: str | None = None

    tracktime: str | None = None

    # Set/segment descriptor
    settype: str | None = None
    setnumber: int | str | None = None
    position: int | str | None = None

    # Annotations
    footnote: str | None = None
    transition: str | None = None
    shownotes: str | None = None


class Dataset(BaseModel):
    """The cached corpus: every known show plus every known setlist entry.

    Treated as a value; operations that change the corpus return a new Dataset.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    fetched_at: datetime | None = Field(default=None, alias="fetchedAt")
    shows: tuple[Show, ...] = ()
    setlists: tuple[SetlistEntry, ...] = ()

    @classmethod
    def from_payload(cls, payload: Any) -> "Dataset":
        """Validate a decoded JSON payload.

        Raises:
            DatasetError: If ``shows`` or ``setlists`` is missing or a record is malformed
        """
        if (
            not isinstance(payload, dict)
            or not isinstance(payload.get("shows"), list)
            or not isinstance(payload.get("setlists"), list)
        ):
            raise DatasetError('Dataset is missing "shows" or "setlists" arrays.')
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise DatasetError(
                f"Dataset has {e.error_count()} malformed field(s); first at {location}: {first['msg']}"
            ) from e

    @classmethod
    def from_json(cls, text: str | bytes) -> "Dataset":
        """Parse a serialized dataset.

        Raises:
            DatasetError: If the text is not JSON or fails validation
        """
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise DatasetError(f"Dataset is not valid JSON: {e}") from e
        return cls.from_payload(payload)

    def to_json(self, indent: int | None = 2) -> str:
        """Serialize using the on-disk field names (``fetchedAt``)."""
        return self.model_dump_json(by_alias=True, indent=indent)


class RarityScore(BaseModel):
    """Rarity of one show relative to the corpus."""

    show_id: int
    date: str | None = None
    venue: str = ""
    location: str = ""
    rarity_score: float
    normalized_score: float = Field(ge=0.0, le=1.0)
    entries: int = 0
    year: int | None = None


class SongRarityDetail(BaseModel):
    """Rarity of one setlist entry."""

    key: str = Field(description="Setlist entry key")
    song_key: str
    show_id: int | None = None
    normalized: float
    raw: float
    plays: int
    percentage: float
    is_cover: bool
    first_date: datetime | None = Field(
        default=None, description="First eligible appearance, else first appearance"
    )
    first_appearance: datetime | None = None


class SongAggregate(BaseModel):
    """Corpus-wide usage of one song."""

    song_key: str
    name: str | None = None
    song_id: int | None = None
    slug: str | None = None
    plays: int
    percentage: float
    first_date: datetime | None = None
    cover_count: int = 0
    original_count: int = 0


class ComputeResult(BaseModel):
    """Everything the scorer produces for one dataset."""

    scores: list[RarityScore] = Field(default_factory=list)
    skipped: list[RarityScore] = Field(default_factory=list)
    song_details: dict[str, SongRarityDetail] = Field(default_factory=dict)
    song_aggregates: dict[str, SongAggregate] = Field(default_factory=dict)


class SyncProgress(BaseModel):
    """Advisory progress event emitted by the sync engine."""

    phase: Literal["shows", "setlists", "complete"]
    completed: int | None = None
    total: int | None = None
    message: str


class SyncResult(BaseModel):
    """Outcome of a successful sync."""

    dataset: Dataset
    added_show_count: int = 0
    added_setlist_count: int = 0
