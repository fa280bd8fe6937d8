"""Entry point for the FastAPI-powered CineList backend."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, TypeVar

import httpx
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from .config import Settings, settings
from .database import Database
from .errors import CineListError, InvalidInput
from .models import (
    ChatRequest,
    DiscoverFilters,
    LoginRequest,
    MediaKind,
    RegisterRequest,
    UserPublic,
    WishlistAddRequest,
)
from .services.accounts import AccountService
from .services.assistant import AssistantContextBuilder
from .services.openrouter import OpenRouterClient
from .services.recommendations import RecommendationAggregator
from .services.tmdb import CatalogGateway
from .services.wishlist import WishlistStore
from .utils import parse_item_id

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"

ServiceT = TypeVar("ServiceT")
RequestModelT = TypeVar("RequestModelT", bound=BaseModel)

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    async with AsyncExitStack() as exit_stack:
        tmdb_http_client = await exit_stack.enter_async_context(
            httpx.AsyncClient(
                base_url=str(settings.tmdb_api_url),
                timeout=httpx.Timeout(settings.tmdb_timeout_seconds, connect=5.0),
            )
        )
        openrouter_http_client = await exit_stack.enter_async_context(
            httpx.AsyncClient(
                base_url=str(settings.openrouter_api_url),
                timeout=httpx.Timeout(settings.assistant_timeout_seconds, connect=10.0),
            )
        )
        database = Database(settings.database_url)
        exit_stack.push_async_callback(database.dispose)
        await database.create_all()

        install_services(
            fastapi_app,
            settings,
            database=database,
            tmdb_client=tmdb_http_client,
            openrouter_client=openrouter_http_client,
        )
        logger.info(
            "%s started (database: %s)", settings.app_name, database.engine.url
        )
        yield


def install_services(
    fastapi_app: FastAPI,
    app_settings: Settings,
    *,
    database: Database,
    tmdb_client: httpx.AsyncClient,
    openrouter_client: httpx.AsyncClient,
) -> None:
    """Wire the service graph onto ``fastapi_app.state``."""

    gateway = CatalogGateway(app_settings, tmdb_client)
    openrouter = OpenRouterClient(app_settings, openrouter_client)
    wishlist = WishlistStore(database.session_factory)

    fastapi_app.state.database = database
    fastapi_app.state.catalog_gateway = gateway
    fastapi_app.state.wishlist_store = wishlist
    fastapi_app.state.account_service = AccountService(
        app_settings, database.session_factory
    )
    fastapi_app.state.recommendation_aggregator = RecommendationAggregator(
        app_settings, gateway, wishlist
    )
    fastapi_app.state.assistant = AssistantContextBuilder(
        app_settings, gateway, wishlist, openrouter
    )


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Movie and TV browsing with a wishlist, recommendations and a chat assistant",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def _get_service(fastapi_app: FastAPI, name: str, expected: type[ServiceT]) -> ServiceT:
    service = getattr(fastapi_app.state, name, None)
    if not isinstance(service, expected):
        raise RuntimeError(f"{expected.__name__} not initialised")
    return service


def _session_token(request: Request) -> str | None:
    authorization = (request.headers.get("authorization") or "").strip()
    if authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
        if token:
            return token
    return request.cookies.get(SESSION_COOKIE) or None


async def _read_body(request: Request, model: type[RequestModelT]) -> RequestModelT:
    try:
        payload = await request.json()
    except ValueError:
        # Covers malformed JSON and bodies that are not valid UTF-8.
        payload = {}
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=400,
            detail=exc.errors(include_url=False, include_context=False),
        ) from exc


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.exception_handler(CineListError)
    async def _cinelist_error_handler(_: Request, exc: CineListError) -> JSONResponse:
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            {"detail": exc.message}, status_code=exc.status_code, headers=headers
        )

    def accounts() -> AccountService:
        return _get_service(fastapi_app, "account_service", AccountService)

    def wishlist_store() -> WishlistStore:
        return _get_service(fastapi_app, "wishlist_store", WishlistStore)

    def gateway() -> CatalogGateway:
        return _get_service(fastapi_app, "catalog_gateway", CatalogGateway)

    async def current_user(request: Request) -> UserPublic:
        return await accounts().authenticate(_session_token(request))

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    # Accounts -----------------------------------------------------------------

    @fastapi_app.post("/api/register")
    async def register(request: Request) -> JSONResponse:
        body = await _read_body(request, RegisterRequest)
        service = accounts()
        user = await service.register(body.username, body.email, body.password)
        token = await service.create_session(user.id)
        response = JSONResponse(
            {**user.to_payload(), "token": token}, status_code=201
        )
        _set_session_cookie(response, token)
        return response

    @fastapi_app.post("/api/login")
    async def login(request: Request) -> JSONResponse:
        body = await _read_body(request, LoginRequest)
        user, token = await accounts().login(body.username, body.password)
        response = JSONResponse({**user.to_payload(), "token": token})
        _set_session_cookie(response, token)
        return response

    @fastapi_app.post("/api/logout")
    async def logout(request: Request) -> JSONResponse:
        await accounts().logout(_session_token(request))
        response = JSONResponse({"status": "logged_out"})
        response.delete_cookie(SESSION_COOKIE)
        return response

    @fastapi_app.get("/api/user")
    async def user_profile(request: Request) -> dict[str, Any]:
        user = await current_user(request)
        return user.to_payload()

    # Wishlist -----------------------------------------------------------------

    @fastapi_app.get("/api/wishlist")
    async def list_wishlist(request: Request) -> JSONResponse:
        user = await current_user(request)
        entries = await wishlist_store().list_entries(user.id)
        return JSONResponse([entry.to_payload() for entry in entries])

    @fastapi_app.post("/api/wishlist")
    async def add_to_wishlist(request: Request) -> JSONResponse:
        user = await current_user(request)
        body = await _read_body(request, WishlistAddRequest)
        entry = await wishlist_store().add(user.id, body.item_id)
        return JSONResponse(entry.to_payload(), status_code=201)

    @fastapi_app.get("/api/wishlist/{item_id}")
    async def wishlist_status(request: Request, item_id: str) -> dict[str, Any]:
        user = await current_user(request)
        parsed = parse_item_id(item_id)
        wishlisted = await wishlist_store().contains(user.id, parsed)
        return {"itemId": parsed, "wishlisted": wishlisted}

    @fastapi_app.delete("/api/wishlist/{item_id}")
    async def remove_from_wishlist(request: Request, item_id: str) -> dict[str, Any]:
        user = await current_user(request)
        parsed = parse_item_id(item_id)
        await wishlist_store().remove(user.id, parsed)
        return {"status": "removed", "itemId": parsed}

    @fastapi_app.get("/api/recommendations")
    async def recommendations(request: Request) -> JSONResponse:
        user = await current_user(request)
        aggregator = _get_service(
            fastapi_app, "recommendation_aggregator", RecommendationAggregator
        )
        result = await aggregator.recommend(user.id)
        return JSONResponse(result.to_payload())

    @fastapi_app.post("/api/chat")
    async def chat(request: Request) -> JSONResponse:
        user = await current_user(request)
        body = await _read_body(request, ChatRequest)
        assistant = _get_service(fastapi_app, "assistant", AssistantContextBuilder)
        reply = await assistant.answer(user.id, body.question)
        return JSONResponse(reply.to_payload())

    # Catalog pass-through -------------------------------------------------------
    # Static paths are registered before the ``{item_id}`` routes they overlap.

    def _register_kind_routes(prefix: str, kind: MediaKind) -> None:
        @fastapi_app.get(f"/api/{prefix}/trending", name=f"{prefix}_trending")
        async def trending(page: int = Query(default=1, ge=1, le=500)) -> dict[str, Any]:
            result = await gateway().trending(kind, page=page)
            return result.model_dump(mode="json")

        @fastapi_app.get(f"/api/{prefix}/popular", name=f"{prefix}_popular")
        async def popular(page: int = Query(default=1, ge=1, le=500)) -> dict[str, Any]:
            result = await gateway().popular(kind, page=page)
            return result.model_dump(mode="json")

        @fastapi_app.get(f"/api/{prefix}/{{item_id}}/similar", name=f"{prefix}_similar")
        async def similar(
            item_id: str, page: int = Query(default=1, ge=1, le=500)
        ) -> dict[str, Any]:
            result = await gateway().similar(parse_item_id(item_id), kind=kind, page=page)
            return result.model_dump(mode="json")

        @fastapi_app.get(f"/api/{prefix}/{{item_id}}", name=f"{prefix}_details")
        async def details(item_id: str) -> dict[str, Any]:
            result = await gateway().details(kind, parse_item_id(item_id))
            return result.model_dump(mode="json")

    _register_kind_routes("movies", "movie")
    _register_kind_routes("tv", "show")

    @fastapi_app.get("/api/genres/{content_type}")
    async def genres(content_type: str) -> dict[str, Any]:
        kind = _parse_route_kind(content_type, allow_multi=False)
        result = await gateway().genres(kind)
        return result.model_dump(mode="json")

    @fastapi_app.get("/api/search")
    async def search(
        query: str | None = None,
        content_type: str = Query(default="multi", alias="type"),
        page: int = Query(default=1, ge=1, le=500),
    ) -> dict[str, Any]:
        if not query or not query.strip():
            raise InvalidInput("Query parameter is required")
        kind = _parse_route_kind(content_type, allow_multi=True)
        result = await gateway().search(query, kind=kind, page=page)
        return result.model_dump(mode="json")

    @fastapi_app.get("/api/discover/{content_type}")
    async def discover(
        content_type: str,
        genre: str | None = None,
        year: str | None = None,
        page: int = Query(default=1, ge=1, le=500),
    ) -> dict[str, Any]:
        kind = _parse_route_kind(content_type, allow_multi=False)
        try:
            filters = DiscoverFilters.model_validate(
                {"genre": genre, "year": year, "page": page}
            )
        except ValidationError as exc:
            raise HTTPException(
                status_code=400,
                detail=exc.errors(include_url=False, include_context=False),
            ) from exc
        result = await gateway().discover(kind, filters)
        return result.model_dump(mode="json")


def _parse_route_kind(value: str, *, allow_multi: bool) -> Any:
    normalized = (value or "").strip().lower()
    mapping = {"movie": "movie", "movies": "movie", "tv": "show", "show": "show"}
    if allow_multi:
        mapping["multi"] = "multi"
    if normalized not in mapping:
        allowed = '"movie", "tv" or "multi"' if allow_multi else '"movie" or "tv"'
        raise InvalidInput(f"Invalid type, must be {allowed}")
    return mapping[normalized]


def _set_session_cookie(response: JSONResponse, token: str) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.environment == "production",
    )


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
