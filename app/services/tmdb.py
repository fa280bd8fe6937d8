"""Gateway to The Movie Database (TMDB) catalog API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..config import Settings
from ..errors import NotFound, UpstreamUnavailable
from ..models import (
    DiscoverFilters,
    GenreList,
    ItemDetails,
    MediaKind,
    PagedResults,
    ResolvedItem,
    SearchKind,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# TMDB calls TV shows "tv" in its paths.
KIND_SEGMENTS: dict[str, str] = {"movie": "movie", "show": "tv", "multi": "multi"}
DETAIL_APPENDS = "credits,videos,images"


def kind_segment(kind: str) -> str:
    try:
        return KIND_SEGMENTS[kind]
    except KeyError:
        raise ValueError(f"Unsupported catalog kind: {kind}") from None


class CatalogGateway:
    """Thin wrapper around the TMDB v3 HTTP API.

    Every public call maps to one upstream GET. A 404 surfaces as ``NotFound``;
    anything else that prevents a usable payload (other error statuses,
    network failures, timeouts, schema violations) surfaces as
    ``UpstreamUnavailable``. Transport errors and 5xx responses are retried a
    bounded number of times with exponential backoff.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        if not settings.tmdb_api_key:
            raise ValueError("TMDB API key is required when initialising CatalogGateway")
        self._settings = settings
        self._client = http_client
        self._max_retries = settings.tmdb_retry_limit

    async def trending(self, kind: MediaKind, *, page: int = 1) -> PagedResults:
        return await self._get_model(
            f"/trending/{kind_segment(kind)}/week", PagedResults, params={"page": page}
        )

    async def popular(self, kind: MediaKind, *, page: int = 1) -> PagedResults:
        return await self._get_model(
            f"/{kind_segment(kind)}/popular", PagedResults, params={"page": page}
        )

    async def details(self, kind: MediaKind, item_id: int) -> ItemDetails:
        return await self._get_model(
            f"/{kind_segment(kind)}/{item_id}",
            ItemDetails,
            params={"append_to_response": DETAIL_APPENDS},
        )

    async def similar(
        self, item_id: int, *, kind: MediaKind = "movie", page: int = 1
    ) -> PagedResults:
        return await self._get_model(
            f"/{kind_segment(kind)}/{item_id}/similar",
            PagedResults,
            params={"page": page},
        )

    async def search(
        self, query: str, *, kind: SearchKind = "multi", page: int = 1
    ) -> PagedResults:
        normalized = (query or "").strip()
        if not normalized:
            raise ValueError("Search query must not be empty")
        return await self._get_model(
            f"/search/{kind_segment(kind)}",
            PagedResults,
            params={"query": normalized, "page": page, "include_adult": "false"},
        )

    async def genres(self, kind: MediaKind) -> GenreList:
        return await self._get_model(f"/genre/{kind_segment(kind)}/list", GenreList)

    async def discover(
        self, kind: MediaKind, filters: DiscoverFilters | None = None
    ) -> PagedResults:
        filters = filters or DiscoverFilters()
        params: dict[str, Any] = {"page": filters.page, "sort_by": "popularity.desc"}
        if filters.genre:
            params["with_genres"] = filters.genre
        if filters.year:
            if kind == "movie":
                params["primary_release_year"] = filters.year
            else:
                params["first_air_date_year"] = filters.year
        return await self._get_model(
            f"/discover/{kind_segment(kind)}", PagedResults, params=params
        )

    async def resolve_item(self, item_id: int) -> ResolvedItem:
        """Look ``item_id`` up as a movie, falling back to a show on ``NotFound``.

        Only ``NotFound`` triggers the fallback; ``UpstreamUnavailable`` from the
        movie lookup propagates. Both lookups missing raises ``NotFound``.
        """

        try:
            movie = await self.details("movie", item_id)
        except NotFound:
            logger.debug("Item %s is not a movie, trying show lookup", item_id)
        else:
            return ResolvedItem(kind="movie", item=movie)

        try:
            show = await self.details("show", item_id)
        except NotFound:
            raise NotFound(f"Item {item_id} is neither a movie nor a show") from None
        return ResolvedItem(kind="show", item=show)

    async def _get_model(
        self,
        path: str,
        model: type[ModelT],
        *,
        params: Mapping[str, Any] | None = None,
    ) -> ModelT:
        payload = await self._get_json(path, params=params)
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            logger.warning("TMDB payload for %s failed validation: %s", path, exc)
            raise UpstreamUnavailable(
                f"TMDB returned an unexpected payload for {path}"
            ) from exc

    async def _get_json(
        self, path: str, *, params: Mapping[str, Any] | None = None
    ) -> Any:
        query: dict[str, Any] = {
            "api_key": self._settings.tmdb_api_key,
            "language": self._settings.tmdb_language,
        }
        if params:
            query.update(params)

        attempt = 0
        while True:
            try:
                response = await self._client.get(path, params=query)
            except httpx.HTTPError as exc:
                attempt += 1
                if attempt <= self._max_retries:
                    backoff = self._backoff(attempt)
                    logger.info(
                        "Transient error talking to TMDB (%s) for %s. Retrying in %.1fs",
                        exc.__class__.__name__,
                        path,
                        backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                logger.warning("TMDB request for %s failed: %s", path, exc)
                raise UpstreamUnavailable(f"TMDB is unreachable: {exc}") from exc

            if response.status_code == 404:
                raise NotFound(f"TMDB has no resource at {path}")
            if 500 <= response.status_code < 600:
                attempt += 1
                if attempt <= self._max_retries:
                    backoff = self._backoff(attempt)
                    logger.info(
                        "TMDB %s for %s. Retrying in %.1fs",
                        response.status_code,
                        path,
                        backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
            if response.status_code >= 400:
                logger.warning(
                    "TMDB request for %s failed with %s: %s",
                    path,
                    response.status_code,
                    response.text[:200],
                )
                raise UpstreamUnavailable(
                    f"TMDB responded with status {response.status_code}"
                )
            break

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamUnavailable(f"TMDB returned invalid JSON for {path}") from exc

    @staticmethod
    def _backoff(attempt: int) -> float:
        return min(0.25 * 2 ** (attempt - 1), 2.0)
