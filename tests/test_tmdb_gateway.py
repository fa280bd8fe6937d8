"""Tests for the TMDB catalog gateway."""

from __future__ import annotations

from typing import Any, Callable

import httpx
import pytest

from app.config import Settings
from app.errors import NotFound, UpstreamUnavailable
from app.models import DiscoverFilters
from app.services.tmdb import CatalogGateway


def build_settings(**overrides: Any) -> Settings:
    """Return a settings object with defaults suitable for tests."""

    base: dict[str, Any] = {"TMDB_API_KEY": "tmdb-key", "TMDB_RETRY_LIMIT": 0}
    base.update(overrides)
    return Settings(_env_file=None, **base)  # type: ignore[arg-type]


def _page(*items: dict[str, Any]) -> dict[str, Any]:
    return {
        "page": 1,
        "results": list(items),
        "total_pages": 1,
        "total_results": len(items),
    }


def _gateway(
    handler: Callable[[httpx.Request], httpx.Response], **overrides: Any
) -> tuple[CatalogGateway, httpx.AsyncClient]:
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url="https://api.example.com/3",
    )
    return CatalogGateway(build_settings(**overrides), http_client), http_client


def test_gateway_requires_api_key() -> None:
    with pytest.raises(ValueError, match="TMDB API key is required"):
        CatalogGateway(build_settings(TMDB_API_KEY="  "), httpx.AsyncClient())


@pytest.mark.anyio("asyncio")
async def test_similar_parses_results_and_sends_api_key() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=_page({"id": 9, "title": "Nine"}, {"id": 301, "title": "Three"}))

    gateway, http_client = _gateway(handler)
    async with http_client:
        result = await gateway.similar(101)

    assert [item.id for item in result.results] == [9, 301]
    assert requests[0].url.path == "/3/movie/101/similar"
    assert requests[0].url.params["api_key"] == "tmdb-key"
    assert requests[0].url.params["page"] == "1"


@pytest.mark.anyio("asyncio")
async def test_show_kind_maps_to_tv_segment() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if request.url.path.endswith("/list"):
            return httpx.Response(200, json={"genres": [{"id": 18, "name": "Drama"}]})
        return httpx.Response(200, json=_page({"id": 1399, "name": "Game of Thrones"}))

    gateway, http_client = _gateway(handler)
    async with http_client:
        trending = await gateway.trending("show", page=2)
        popular = await gateway.popular("show")
        genres = await gateway.genres("show")

    assert trending.results[0].title == "Game of Thrones"
    assert popular.results[0].id == 1399
    assert genres.genres[0].name == "Drama"
    assert paths == ["/3/trending/tv/week", "/3/tv/popular", "/3/genre/tv/list"]


@pytest.mark.anyio("asyncio")
async def test_discover_maps_filters_per_kind() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=_page())

    gateway, http_client = _gateway(handler)
    filters = DiscoverFilters(genre=28, year=2020, page=3)
    async with http_client:
        await gateway.discover("movie", filters)
        await gateway.discover("show", filters)

    movie_params, show_params = requests[0].url.params, requests[1].url.params
    assert movie_params["with_genres"] == "28"
    assert movie_params["primary_release_year"] == "2020"
    assert movie_params["sort_by"] == "popularity.desc"
    assert movie_params["page"] == "3"
    assert show_params["first_air_date_year"] == "2020"
    assert "primary_release_year" not in show_params


@pytest.mark.anyio("asyncio")
async def test_search_rejects_blank_query_without_calling_upstream() -> None:
    def handler(_: httpx.Request) -> httpx.Response:  # pragma: no cover - must not run
        raise AssertionError("Network access should not be triggered")

    gateway, http_client = _gateway(handler)
    async with http_client:
        with pytest.raises(ValueError):
            await gateway.search("   ")


@pytest.mark.anyio("asyncio")
async def test_not_found_is_distinguished_from_outage() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if "/movie/1/" in request.url.path or request.url.path.endswith("/movie/1"):
            return httpx.Response(404, json={"status_message": "not found"})
        return httpx.Response(503, json={"status_message": "down"})

    gateway, http_client = _gateway(handler)
    async with http_client:
        with pytest.raises(NotFound):
            await gateway.details("movie", 1)
        with pytest.raises(UpstreamUnavailable):
            await gateway.details("movie", 2)


@pytest.mark.anyio("asyncio")
async def test_server_errors_are_retried_up_to_the_limit(monkeypatch) -> None:
    calls = 0

    async def _no_sleep(_: float) -> None:
        return None

    monkeypatch.setattr("app.services.tmdb.asyncio.sleep", _no_sleep)

    def handler(_: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls < 3:
            return httpx.Response(502)
        return httpx.Response(200, json=_page({"id": 5, "title": "Five"}))

    gateway, http_client = _gateway(handler, TMDB_RETRY_LIMIT=2)
    async with http_client:
        result = await gateway.popular("movie")

    assert calls == 3
    assert result.results[0].id == 5


@pytest.mark.anyio("asyncio")
async def test_timeouts_surface_as_upstream_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    gateway, http_client = _gateway(handler)
    async with http_client:
        with pytest.raises(UpstreamUnavailable):
            await gateway.similar(10)


@pytest.mark.anyio("asyncio")
async def test_schema_violations_surface_as_upstream_unavailable() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"unexpected": True})

    gateway, http_client = _gateway(handler)
    async with http_client:
        with pytest.raises(UpstreamUnavailable):
            await gateway.trending("movie")


@pytest.mark.anyio("asyncio")
async def test_resolve_item_falls_back_to_show_on_not_found() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if request.url.path == "/3/movie/1399":
            return httpx.Response(404)
        return httpx.Response(
            200,
            json={"id": 1399, "name": "Game of Thrones", "first_air_date": "2011-04-17"},
        )

    gateway, http_client = _gateway(handler)
    async with http_client:
        resolved = await gateway.resolve_item(1399)

    assert resolved.kind == "show"
    assert resolved.item.title == "Game of Thrones"
    assert paths == ["/3/movie/1399", "/3/tv/1399"]


@pytest.mark.anyio("asyncio")
async def test_resolve_item_raises_not_found_when_both_kinds_miss() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    gateway, http_client = _gateway(handler)
    async with http_client:
        with pytest.raises(NotFound):
            await gateway.resolve_item(77)


@pytest.mark.anyio("asyncio")
async def test_resolve_item_does_not_fall_back_on_outage() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(500)

    gateway, http_client = _gateway(handler)
    async with http_client:
        with pytest.raises(UpstreamUnavailable):
            await gateway.resolve_item(603)

    assert paths == ["/3/movie/603"]
