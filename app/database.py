"""Database utilities for the CineList service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import MetaData, inspect, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)

WISHLIST_UNIQUE_INDEX = "uq_wishlist_user_item"


class Base(DeclarativeBase):
    """Declarative base with consistent naming conventions."""

    metadata = MetaData()


class Database:
    """Thin wrapper managing the SQLAlchemy async engine and sessions."""

    def __init__(self, database_url: str):
        self._engine: AsyncEngine = create_async_engine(database_url, future=True)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self._engine, expire_on_commit=False
        )

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def create_all(self) -> None:
        """Create database tables if they do not yet exist."""

        # Import for the side effect of registering the mapped tables.
        from . import db_models  # noqa: F401

        async with self._engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
            await connection.run_sync(self._apply_schema_migrations)

    @staticmethod
    def _apply_schema_migrations(sync_connection) -> None:
        """Bring tables created by older deployments up to the current schema."""

        inspector = inspect(sync_connection)
        if "wishlists" not in inspector.get_table_names():
            return

        existing_columns = {
            column["name"] for column in inspector.get_columns("wishlists")
        }
        if "created_at" not in existing_columns:
            sync_connection.execute(
                text("ALTER TABLE wishlists ADD COLUMN created_at DATETIME")
            )

        # The composite uniqueness is the backstop for concurrent duplicate adds.
        unique_sets = {
            tuple(constraint.get("column_names") or ())
            for constraint in inspector.get_unique_constraints("wishlists")
        }
        unique_sets.update(
            tuple(index.get("column_names") or ())
            for index in inspector.get_indexes("wishlists")
            if index.get("unique")
        )
        if ("user_id", "item_id") in unique_sets:
            return

        logger.info("Adding unique index %s to wishlists", WISHLIST_UNIQUE_INDEX)
        sync_connection.execute(
            text(
                "DELETE FROM wishlists WHERE id NOT IN ("
                "SELECT MIN(id) FROM wishlists GROUP BY user_id, item_id)"
            )
        )
        sync_connection.execute(
            text(
                f"CREATE UNIQUE INDEX {WISHLIST_UNIQUE_INDEX} "
                "ON wishlists (user_id, item_id)"
            )
        )

    async def dispose(self) -> None:
        """Dispose of the underlying database engine."""

        await self._engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Provide a transactional scope around a series of operations."""

        async with self.session_factory() as session:
            yield session
