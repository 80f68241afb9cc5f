"""Async HTTP client for the read-only media catalog service."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from ..board.model import MediaItem, MediaType
from ..errors import CatalogError, CatalogUnavailableError
from . import telemetry
from .settings import Settings

__all__ = ["CatalogClient", "CatalogClientSettings", "SearchPage", "UNAVAILABLE_STATUSES"]

LOGGER = logging.getLogger(__name__)

UNAVAILABLE_STATUSES = frozenset({503, 504})
_DEFAULT_ERROR_MESSAGE = "An error occurred while fetching the data."

QueryParams = Sequence[tuple[str, str]]


@dataclass(slots=True)
class CatalogClientSettings:
    """Subset of settings required to configure the catalog client."""

    base_url: str
    request_timeout: float | None = 15.0
    retry_attempts: int = 3
    retry_wait_seconds: float = 2.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "CatalogClientSettings":
        return cls(
            base_url=settings.catalog_base_url,
            request_timeout=settings.request_timeout,
            retry_attempts=settings.retry_attempts,
            retry_wait_seconds=settings.retry_wait_seconds,
        )


@dataclass(slots=True, frozen=True)
class SearchPage:
    """One page of catalog search results. Pages are 1-indexed."""

    results: tuple[MediaItem, ...]
    page: int
    total_pages: int

    @property
    def has_more(self) -> bool:
        return self.page < self.total_pages


class CatalogClient:
    """Search and detail lookups with retry on upstream unavailability.

    503 and 504 responses are retried with a fixed wait; every other non-2xx
    response raises :class:`CatalogError` immediately.
    """

    def __init__(
        self,
        settings: CatalogClientSettings,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._owns_client = client is None
        self._client = client or self._build_client(settings)

    @property
    def settings(self) -> CatalogClientSettings:
        return self._settings

    async def search(self, params: QueryParams) -> SearchPage:
        """Run a catalog search for the canonical ``params`` of a request."""

        payload = await self._get_json("search", params)
        if not isinstance(payload, Mapping):
            raise CatalogError(502, "Invalid data from upstream")
        results = []
        for raw in payload.get("results") or ():
            try:
                results.append(MediaItem.from_dict(raw))
            except (TypeError, ValueError) as exc:
                LOGGER.debug("Skipping malformed search result %r: %s", raw, exc)
        page = int(payload.get("page") or 1)
        total_pages = int(payload.get("totalPages") or 0)
        return SearchPage(results=tuple(results), page=page, total_pages=total_pages)

    async def details(self, item_id: str, media_type: MediaType | str) -> dict[str, Any]:
        """Fetch the deep details blob for one ``(id, type)`` pair."""

        kind = MediaType.coerce(media_type).value
        payload = await self._get_json("details", [("id", item_id), ("type", kind)])
        if not isinstance(payload, Mapping):
            raise CatalogError(502, "Invalid data from upstream")
        return dict(payload)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "CatalogClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _get_json(self, endpoint: str, params: QueryParams) -> Any:
        attempts = 0
        async for attempt in self._retrying():
            with attempt:
                attempts += 1
                if attempts > 1:
                    LOGGER.info("Retrying catalog %s request (attempt %d)", endpoint, attempts)
                response = await self._client.get(endpoint, params=list(params))
                self._raise_for_status(response)
                telemetry.emit(f"{endpoint}.fetch", {"endpoint": endpoint, "attempts": attempts})
                return response.json()
        raise AssertionError("unreachable")  # pragma: no cover

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        status = response.status_code
        message = _error_message(response)
        if status in UNAVAILABLE_STATUSES:
            raise CatalogUnavailableError(status, message)
        raise CatalogError(status, message)

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.retry_attempts)),
            wait=wait_fixed(max(0.0, self._settings.retry_wait_seconds)),
            retry=retry_if_exception_type(CatalogUnavailableError),
        )

    def _build_client(self, settings: CatalogClientSettings) -> httpx.AsyncClient:
        base_url = settings.base_url.rstrip("/") + "/"
        return httpx.AsyncClient(base_url=base_url, timeout=settings.request_timeout)


def _error_message(response: httpx.Response) -> str:
    try:
        info = response.json()
    except ValueError:
        return response.reason_phrase or _DEFAULT_ERROR_MESSAGE
    if isinstance(info, Mapping) and "error" in info:
        return str(info["error"])
    return response.reason_phrase or _DEFAULT_ERROR_MESSAGE
