"""elgoose.net data source implementation.

API documentation: https://elgoose.net/api/docs/
Every response is an envelope: ``{"error": false, "data": [...]}`` on
success, ``{"error": true, "error_message": "..."}`` otherwise.
"""

from typing import Any

import httpx

from ..logging import get_logger
from . import SourceError

logger = get_logger(__name__)


class ElgooseSource:
    """Async client for the elgoose.net v2 API."""

    BASE_URL = "https://elgoose.net/api/v2"

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the elgoose.net source.

        Args:
            base_url: API root, defaults to the public v2 API
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "elgoose.net"

    async def fetch_json(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """GET an endpoint and unwrap the response envelope.

        Raises:
            SourceError: On transport failure, non-2xx status, unparsable body
                or an error envelope
        """
        query = {k: str(v) for k, v in (params or {}).items() if v is not None and v != ""}
        url = f"{self.base_url}/{endpoint}"

        try:
            response = await self._client.get(f"/{endpoint}", params=query)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            reason = e.response.reason_phrase
            logger.error("request_failed", url=url, status=status)
            raise SourceError(f"Request to {url} failed: {status} {reason}") from e
        except httpx.HTTPError as e:
            logger.error("request_failed", url=url, error=str(e))
            raise SourceError(f"Request to {url} failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise SourceError(f"Response from {url} is not valid JSON") from e

        if isinstance(body, dict):
            if body.get("error"):
                message = body.get("error_message")
                if not isinstance(message, str) or not message:
                    message = "Unknown error"
                raise SourceError(f"elgoose API error for {url}: {message}")
            if "data" in body:
                return body["data"]
        return body

    async def fetch_shows(self) -> list[dict[str, Any]]:
        shows = await self.fetch_json("shows.json")
        if not isinstance(shows, list):
            logger.warning("unexpected_payload", endpoint="shows.json", type=type(shows).__name__)
            return []
        logger.debug("shows_fetched", count=len(shows))
        return shows

    async def fetch_setlist(self, show_id: int) -> list[dict[str, Any]]:
        entries = await self.fetch_json(f"setlists/show_id/{show_id}.json")
        if not isinstance(entries, list):
            return []
        logger.debug("setlist_fetched", show_id=show_id, count=len(entries))
        return entries

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "ElgooseSource":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()
