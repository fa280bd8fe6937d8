"""Durable per-user wishlist storage."""

from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import WishlistRecord
from ..errors import Conflict
from ..models import WishlistEntry

logger = logging.getLogger(__name__)


class WishlistStore:
    """Add, remove and list the catalog items a user has saved.

    Rows are ordered by insertion. The ``(user_id, item_id)`` unique constraint
    on the table is what keeps concurrent duplicate adds from creating two rows;
    the existence check in :meth:`add` only avoids a failed insert in the common
    case.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def add(self, user_id: int, item_id: int) -> WishlistEntry:
        async with self._session_factory() as session:
            existing = await session.execute(
                select(WishlistRecord.id).where(
                    WishlistRecord.user_id == user_id,
                    WishlistRecord.item_id == item_id,
                )
            )
            if existing.scalar_one_or_none() is not None:
                raise Conflict(f"Item {item_id} is already in the wishlist")

            record = WishlistRecord(user_id=user_id, item_id=item_id)
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                logger.info(
                    "Concurrent duplicate wishlist add for user %s item %s",
                    user_id,
                    item_id,
                )
                raise Conflict(f"Item {item_id} is already in the wishlist") from exc

            logger.info("User %s added item %s to wishlist", user_id, item_id)
            return WishlistEntry.model_validate(record)

    async def remove(self, user_id: int, item_id: int) -> bool:
        """Delete the entry if present; removing a missing entry still succeeds."""

        async with self._session_factory() as session:
            result = await session.execute(
                delete(WishlistRecord).where(
                    WishlistRecord.user_id == user_id,
                    WishlistRecord.item_id == item_id,
                )
            )
            await session.commit()
        removed = bool(result.rowcount)
        if removed:
            logger.info("User %s removed item %s from wishlist", user_id, item_id)
        else:
            logger.debug(
                "User %s removed item %s which was not wishlisted", user_id, item_id
            )
        return removed

    async def list(self, user_id: int) -> list[int]:
        """Return saved item ids for ``user_id``, oldest first."""

        async with self._session_factory() as session:
            result = await session.execute(
                select(WishlistRecord.item_id)
                .where(WishlistRecord.user_id == user_id)
                .order_by(WishlistRecord.id)
            )
            return [row[0] for row in result.all()]

    async def list_entries(self, user_id: int) -> list[WishlistEntry]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(WishlistRecord)
                .where(WishlistRecord.user_id == user_id)
                .order_by(WishlistRecord.id)
            )
            return [WishlistEntry.model_validate(row) for row in result.scalars()]

    async def contains(self, user_id: int, item_id: int) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(WishlistRecord.id).where(
                    WishlistRecord.user_id == user_id,
                    WishlistRecord.item_id == item_id,
                )
            )
            return result.scalar_one_or_none() is not None
