"""Recommendations derived from a user's most recent wishlist entries."""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from ..config import Settings
from ..errors import NotFound, UpstreamUnavailable
from ..models import CatalogItem, RecommendationSet
from ..utils import dedupe_by
from .tmdb import CatalogGateway
from .wishlist import WishlistStore

logger = logging.getLogger(__name__)


class RecommendationAggregator:
    """Merge "similar items" results seeded by recent wishlist entries.

    Seeds are the last ``seed_count`` wishlist entries, most recent first. The
    seed lookups run concurrently and settle independently: a seed that fails
    upstream is skipped and reported in ``failed_seeds`` instead of aborting
    its siblings. Results are concatenated in seed order, deduplicated by id
    keeping the first occurrence, stripped of anything already wishlisted and
    cut to ``limit``.
    """

    def __init__(
        self,
        settings: Settings,
        gateway: CatalogGateway,
        wishlist: WishlistStore,
    ):
        self._settings = settings
        self._gateway = gateway
        self._wishlist = wishlist

    async def recommend(
        self,
        user_id: int,
        *,
        seed_count: int | None = None,
        limit: int | None = None,
    ) -> RecommendationSet:
        item_ids = await self._wishlist.list(user_id)
        return await self.recommend_for_items(
            item_ids, seed_count=seed_count, limit=limit
        )

    async def recommend_for_items(
        self,
        wishlist_ids: Sequence[int],
        *,
        seed_count: int | None = None,
        limit: int | None = None,
    ) -> RecommendationSet:
        """Build recommendations for an insertion-ordered list of item ids."""

        if seed_count is None:
            seed_count = self._settings.recommendation_seed_count
        if limit is None:
            limit = self._settings.recommendation_limit

        if not wishlist_ids:
            return RecommendationSet(status="wishlist_empty")

        seeds = self.select_seeds(wishlist_ids, seed_count)
        results = await asyncio.gather(
            *(self._gateway.similar(seed) for seed in seeds),
            return_exceptions=True,
        )

        batches: list[list[CatalogItem]] = []
        failed: list[int] = []
        unavailable = 0
        for seed, result in zip(seeds, results):
            if isinstance(result, (NotFound, UpstreamUnavailable)):
                logger.warning(
                    "Skipping recommendation seed %s: %s", seed, result.message
                )
                failed.append(seed)
                if isinstance(result, UpstreamUnavailable):
                    unavailable += 1
                continue
            if isinstance(result, BaseException):
                raise result
            batches.append(result.results)

        # Unknown seed ids are a catalog answer, not an outage.
        if not batches and unavailable:
            return RecommendationSet(
                status="upstream_unavailable", seeds=seeds, failed_seeds=failed
            )

        items = self.merge(batches, exclude=wishlist_ids, limit=limit)
        return RecommendationSet(
            status="ok" if items else "no_similar_items",
            items=items,
            seeds=seeds,
            failed_seeds=failed,
        )

    @staticmethod
    def select_seeds(wishlist_ids: Sequence[int], seed_count: int) -> list[int]:
        """Return the ``seed_count`` most recently added ids, newest first."""

        if seed_count <= 0:
            return []
        return list(reversed(list(wishlist_ids)[-seed_count:]))

    @staticmethod
    def merge(
        batches: Sequence[Sequence[CatalogItem]],
        *,
        exclude: Sequence[int] = (),
        limit: int,
    ) -> list[CatalogItem]:
        excluded = set(exclude)
        flattened = (item for batch in batches for item in batch)
        unique = dedupe_by(flattened, key=lambda item: item.id)
        return [item for item in unique if item.id not in excluded][:limit]
