"""
数据库Repository层 - 封装数据访问逻辑
"""

import asyncio
from datetime import datetime, timedelta
from typing import Callable, Literal

from loguru import logger
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from swipefeed.datasource.base import NormalizedItem, Provider
from swipefeed.datastore.models import ListingItemDB
from swipefeed.services.errors import PersistenceError

DELETE_BATCH_SIZE = 500

StoreStatus = Literal["healthy", "empty", "error"]


class ListingItemRepository:
    """Listing item Repository"""

    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.session = session
        self._clock = clock

    async def get(self, item_id: str) -> ListingItemDB | None:
        result = await self.session.execute(
            select(ListingItemDB).where(ListingItemDB.id == item_id)
        )
        return result.scalar_one_or_none()

    async def upsert(self, item: NormalizedItem) -> ListingItemDB:
        """
        Insert a new listing or merge into the existing row.

        On merge ``created_at`` is kept, ``view_count`` goes up by one and
        ``popularity`` keeps the highest ``like_count`` seen so far. Every
        re-fetch of the same item counts as a "view" here.
        """
        now = self._clock()
        row = await self.get(item.id)

        if row:
            row.apply(item)
            row.last_updated_at = now
            row.view_count = (row.view_count or 0) + 1
            row.popularity = max(row.popularity or 0, item.like_count)
        else:
            row = ListingItemDB(
                id=item.id,
                created_at=now,
                last_updated_at=now,
                view_count=0,
                popularity=item.like_count,
            )
            row.apply(item)
            self.session.add(row)

        await self.session.flush()
        return row

    def _filtered(self, stmt, keyword: str | None, provider: Provider | None):
        if keyword:
            stmt = stmt.where(
                ListingItemDB.title >= keyword,
                func.substr(ListingItemDB.title, 1, len(keyword)) == keyword,
            )
        if provider is not None:
            stmt = stmt.where(ListingItemDB.source_provider == provider.value)
        return stmt

    async def query(
        self,
        limit: int,
        offset: int = 0,
        keyword: str | None = None,
        provider: Provider | None = None,
    ) -> list[ListingItemDB]:
        """
        Most recently refreshed listings first.

        ``keyword`` is a case-sensitive prefix match on the title.
        """
        stmt = self._filtered(select(ListingItemDB), keyword, provider)
        stmt = (
            stmt.order_by(ListingItemDB.last_updated_at.desc(), ListingItemDB.id)
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count(
        self, keyword: str | None = None, provider: Provider | None = None
    ) -> int:
        stmt = self._filtered(
            select(func.count()).select_from(ListingItemDB), keyword, provider
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def delete_older_than(
        self, cutoff: datetime, batch_size: int = DELETE_BATCH_SIZE
    ) -> int:
        """Delete listings created before ``cutoff``, ``batch_size`` rows at a time."""
        deleted = 0
        while True:
            result = await self.session.execute(
                select(ListingItemDB.id)
                .where(ListingItemDB.created_at < cutoff)
                .limit(batch_size)
            )
            ids = list(result.scalars().all())
            if not ids:
                break
            await self.session.execute(
                delete(ListingItemDB).where(ListingItemDB.id.in_(ids))
            )
            await self.session.flush()
            deleted += len(ids)

        if deleted > 0:
            logger.debug(f"Deleted {deleted} listings created before {cutoff}")
        return deleted


class ListingStore:
    """
    Session-owning facade over ListingItemRepository.

    Every call runs in its own session and commits on success. Failures are
    wrapped in PersistenceError so callers can log and move on.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = datetime.now,
        write_concurrency: int | None = None,
    ):
        self.session_factory = session_factory
        self._clock = clock
        if write_concurrency is None:
            # SQLite allows a single writer at a time
            bind = getattr(session_factory, "kw", {}).get("bind")
            is_sqlite = bind is not None and bind.dialect.name == "sqlite"
            write_concurrency = 1 if is_sqlite else 8
        self._write_slots = asyncio.Semaphore(write_concurrency)

    async def upsert(self, item: NormalizedItem) -> None:
        async with self._write_slots:
            try:
                async with self.session_factory() as session:
                    await ListingItemRepository(session, self._clock).upsert(item)
                    await session.commit()
            except Exception as e:
                raise PersistenceError(
                    f"Failed to save {item.id}: {e}", service_id="store"
                ) from e

    async def upsert_many(self, items: list[NormalizedItem]) -> list[Exception]:
        """
        Save items concurrently; one failure never cancels the others.

        Returns the collected failures.
        """
        results = await asyncio.gather(
            *(self.upsert(item) for item in items), return_exceptions=True
        )
        failures = [r for r in results if isinstance(r, Exception)]
        if failures:
            logger.warning(
                f"[Store] {len(failures)}/{len(items)} listing writes failed: {failures[0]}"
            )
        else:
            logger.debug(f"[Store] Saved {len(items)} listings")
        return failures

    async def query(
        self,
        limit: int,
        offset: int = 0,
        keyword: str | None = None,
        provider: Provider | None = None,
    ) -> list[NormalizedItem]:
        try:
            async with self.session_factory() as session:
                rows = await ListingItemRepository(session, self._clock).query(
                    limit, offset, keyword, provider
                )
                return [row.to_item() for row in rows]
        except Exception as e:
            raise PersistenceError(f"Query failed: {e}", service_id="store") from e

    async def count(
        self, keyword: str | None = None, provider: Provider | None = None
    ) -> int:
        try:
            async with self.session_factory() as session:
                return await ListingItemRepository(session, self._clock).count(
                    keyword, provider
                )
        except Exception as e:
            raise PersistenceError(f"Count failed: {e}", service_id="store") from e

    async def delete_older_than(self, cutoff: datetime) -> int:
        async with self._write_slots:
            try:
                async with self.session_factory() as session:
                    deleted = await ListingItemRepository(
                        session, self._clock
                    ).delete_older_than(cutoff)
                    await session.commit()
                    return deleted
            except Exception as e:
                raise PersistenceError(
                    f"Delete failed: {e}", service_id="store"
                ) from e

    async def purge_expired(self, retention_days: int = 30) -> int:
        cutoff = self._clock() - timedelta(days=retention_days)
        deleted = await self.delete_older_than(cutoff)
        logger.info(f"[Store] Purged {deleted} listings older than {retention_days} days")
        return deleted

    async def status(self) -> StoreStatus:
        try:
            total = await self.count()
        except PersistenceError as e:
            logger.error(f"[Store] Health check failed: {e}")
            return "error"
        return "healthy" if total > 0 else "empty"
