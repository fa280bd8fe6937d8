"""Pydantic models describing catalog payloads and API bodies."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from .utils import extract_year, parse_item_id, truncate_text

logger = logging.getLogger(__name__)

MediaKind = Literal["movie", "show"]
SearchKind = Literal["movie", "show", "multi"]
RecommendationStatus = Literal[
    "ok", "wishlist_empty", "no_similar_items", "upstream_unavailable"
]


class CatalogItem(BaseModel):
    """A movie or TV show entry as returned by TMDB list endpoints."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    title: str = Field(validation_alias=AliasChoices("title", "name"))
    overview: str = ""
    release_date: str | None = Field(
        default=None,
        validation_alias=AliasChoices("release_date", "first_air_date"),
    )
    vote_average: float | None = None
    vote_count: int | None = None
    popularity: float | None = None
    genre_ids: list[int] = Field(default_factory=list)
    poster_path: str | None = None
    backdrop_path: str | None = None
    media_type: str | None = None

    @field_validator("overview", mode="before")
    @classmethod
    def _null_overview(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("release_date", mode="before")
    @classmethod
    def _blank_date(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def year(self) -> int | None:
        return extract_year(self.release_date)

    def context_line(self, *, overview_limit: int | None = None) -> str:
        """Render the item as ``Title (release-date): overview``."""

        overview = self.overview or "No overview available."
        if overview_limit is not None:
            overview = truncate_text(overview, overview_limit)
        return f"{self.title} ({self.release_date or 'unknown'}): {overview}"


class Genre(BaseModel):
    id: int
    name: str


class GenreList(BaseModel):
    genres: list[Genre] = Field(default_factory=list)


class ItemDetails(CatalogItem):
    """Detail payload; unknown upstream fields (credits, videos, ...) are kept."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    genres: list[Genre] = Field(default_factory=list)
    runtime: int | None = None
    status: str | None = None
    number_of_seasons: int | None = None
    number_of_episodes: int | None = None


class PagedResults(BaseModel):
    """Paginated list payload shared by trending, popular, search and similar."""

    page: int
    results: list[CatalogItem] = Field(default_factory=list)
    total_pages: int
    total_results: int

    @field_validator("results", mode="before")
    @classmethod
    def _drop_malformed_results(cls, value: object) -> object:
        if not isinstance(value, list):
            raise ValueError("results must be a list")
        cleaned: list[CatalogItem] = []
        for entry in value:
            if isinstance(entry, CatalogItem):
                cleaned.append(entry)
                continue
            if not isinstance(entry, dict):
                continue
            try:
                cleaned.append(CatalogItem.model_validate(entry))
            except ValidationError:
                logger.debug("Skipping malformed catalog entry: %s", entry.get("id"))
                continue
        return cleaned


class ResolvedItem(BaseModel):
    """Outcome of a movie-then-show lookup."""

    kind: MediaKind
    item: ItemDetails


class DiscoverFilters(BaseModel):
    genre: int | None = Field(default=None, ge=1)
    year: int | None = Field(default=None, ge=1870, le=2200)
    page: int = Field(default=1, ge=1, le=500)

    @field_validator("genre", "year", mode="before")
    @classmethod
    def _blank_filter(cls, value: object) -> object:
        if value is None or value == "":
            return None
        return value


class WishlistEntry(BaseModel):
    """A persisted ``(user, item)`` pair."""

    model_config = ConfigDict(from_attributes=True)

    user_id: int = Field(serialization_alias="userId")
    item_id: int = Field(serialization_alias="itemId")
    created_at: datetime | None = Field(default=None, serialization_alias="createdAt")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class WishlistAddRequest(BaseModel):
    item_id: int = Field(validation_alias=AliasChoices("itemId", "movieId", "item_id"))

    @field_validator("item_id", mode="before")
    @classmethod
    def _parse_item_id(cls, value: object) -> int:
        return parse_item_id(value)


class RecommendationSet(BaseModel):
    """Ranked, deduplicated recommendations with an explicit empty reason."""

    status: RecommendationStatus
    items: list[CatalogItem] = Field(default_factory=list)
    seeds: list[int] = Field(default_factory=list)
    failed_seeds: list[int] = Field(
        default_factory=list, serialization_alias="failedSeeds"
    )

    def is_empty(self) -> bool:
        return not self.items

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ChatRequest(BaseModel):
    question: str = Field(min_length=1, max_length=2_000)

    @field_validator("question", mode="before")
    @classmethod
    def _strip_question(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value


class AssistantReply(BaseModel):
    answer: str
    short_circuited: bool = Field(default=False, serialization_alias="shortCircuited")
    used_item_ids: list[int] = Field(
        default_factory=list, serialization_alias="usedItemIds"
    )
    skipped_item_ids: list[int] = Field(
        default_factory=list, serialization_alias="skippedItemIds"
    )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=64)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(min_length=6, max_length=256)

    @field_validator("username", "email", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value


class LoginRequest(BaseModel):
    username: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=6, max_length=256)


class UserPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    created_at: datetime | None = Field(default=None, serialization_alias="createdAt")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
