"""Remote show/setlist sources.

The sync engine only depends on the ShowSource protocol, so tests and
alternative archives can stand in for the elgoose.net API.
"""

from typing import Any, Protocol, runtime_checkable


class SourceError(Exception):
    """A remote request failed (transport, HTTP status or API error envelope)."""


@runtime_checkable
class ShowSource(Protocol):
    """Protocol for remote archives of shows and setlists.

    Both calls must be idempotent reads.
    """

    @property
    def name(self) -> str:
        """Unique identifier for this source."""
        ...

    async def fetch_shows(self) -> list[dict[str, Any]]:
        """Fetch every known show as raw records.

        Raises:
            SourceError: If the request fails
        """
        ...

    async def fetch_setlist(self, show_id: int) -> list[dict[str, Any]]:
        """Fetch the raw setlist entries of one show.

        Raises:
            SourceError: If the request fails
        """
        ...


from .elgoose import ElgooseSource

__all__ = ["ShowSource", "SourceError", "ElgooseSource"]
