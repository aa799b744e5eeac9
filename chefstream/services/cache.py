"""Search result cache backed by the search_cache table.

TTL: fixed 24 hours from the latest write.

Reads:
  - rows whose expires_at is not in the future are treated as absent
  - the stored payload is validated against ResultSet; a row that fails
    validation is deleted in the background and reported as a miss
  - any failure while reading (driver, connection, undecodable column)
    raises StorageError so callers can tell it apart from a miss

Writes and deletes never raise: failures go to the error hook.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Coroutine

from pydantic import ValidationError
from sqlalchemy import delete as sa_delete
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chefstream.models.search_cache import SearchCache
from chefstream.orchestrator.schemas import ResultSet
from chefstream.services.error_reporting import ErrorHook, capture_error

logger = logging.getLogger(__name__)

CACHE_TTL = timedelta(hours=24)

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class StorageError(Exception):
    """The cache table could not be read. Not the same thing as a miss."""


class DataIntegrityError(Exception):
    """A stored payload no longer matches the ResultSet shape."""


@dataclass(frozen=True)
class CacheLookup:
    found: bool
    results: ResultSet | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SearchCacheStore:
    """Read/write/delete of cached ResultSets by query key."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        on_error: ErrorHook = capture_error,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._session_factory = session_factory
        self._on_error = on_error
        self._clock = clock
        self._background: set[asyncio.Task] = set()

    async def get(self, key: str) -> CacheLookup:
        """Return the live ResultSet for key, or a miss."""
        stmt = select(SearchCache.results_json, SearchCache.expires_at).where(
            SearchCache.query_key == key,
            SearchCache.expires_at > self._clock(),
        )
        try:
            async with self._session_factory() as session:
                row = (await session.execute(stmt)).one_or_none()
        except Exception as e:
            raise StorageError(f"Database error: {e}") from e

        if row is None:
            logger.info("Cache MISS | key=%s", key[:12])
            return CacheLookup(found=False)

        payload, expires_at = row
        try:
            results = ResultSet.model_validate(payload)
        except ValidationError as e:
            logger.warning("Cache entry corrupted — deleting | key=%s | errors=%d", key[:12], e.error_count())
            self._report(
                DataIntegrityError(f"Cached payload failed validation: {e.error_count()} error(s)"),
                {"flow": "cache_validate", "query_key": key},
            )
            # Only the row that was read; a newer write under the same key survives
            self._spawn(self.delete(key, expires_at=expires_at))
            return CacheLookup(found=False)

        logger.info("Cache HIT | key=%s | videos=%d", key[:12], len(results.videos))
        return CacheLookup(found=True, results=results)

    async def set(self, key: str, results: ResultSet) -> None:
        """Upsert results under key with a fresh TTL; created_at is kept on conflict."""
        now = self._clock()
        values = {
            "query_key": key,
            "results_json": results.model_dump(mode="json"),
            "created_at": now,
            "expires_at": now + CACHE_TTL,
        }
        try:
            async with self._session_factory() as session:
                insert = _UPSERT_INSERTS[session.bind.dialect.name]
                stmt = insert(SearchCache).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[SearchCache.query_key],
                    set_={
                        "results_json": stmt.excluded.results_json,
                        "expires_at": stmt.excluded.expires_at,
                    },
                )
                await session.execute(stmt)
                await session.commit()
            logger.info("Cache SET | key=%s | videos=%d", key[:12], len(results.videos))
        except Exception as e:
            self._report(e, {"flow": "cache_write", "query_key": key})

    async def delete(self, key: str, expires_at: datetime | None = None) -> None:
        """Remove the row for key. Best effort.

        With expires_at, only a row still carrying that expiry is removed.
        """
        stmt = sa_delete(SearchCache).where(SearchCache.query_key == key)
        if expires_at is not None:
            stmt = stmt.where(SearchCache.expires_at == expires_at)
        try:
            async with self._session_factory() as session:
                await session.execute(stmt)
                await session.commit()
            logger.info("Cache DELETE | key=%s", key[:12])
        except Exception as e:
            self._report(e, {"flow": "cache_delete", "query_key": key})

    async def purge_expired(self) -> int:
        """Delete rows that are past expiry. Returns the number removed."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    sa_delete(SearchCache).where(SearchCache.expires_at <= self._clock())
                )
                await session.commit()
        except Exception as e:
            self._report(e, {"flow": "cache_purge"})
            return 0
        logger.info("Cache purge | removed=%d", result.rowcount)
        return result.rowcount

    async def drain(self) -> None:
        """Wait for background cleanup tasks started by get()."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def _spawn(self, coro: Coroutine) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _report(self, error: BaseException, context: dict[str, str]) -> None:
        try:
            self._on_error(error, context)
        except Exception:
            logger.exception("Error hook failed | flow=%s", context.get("flow", ""))
