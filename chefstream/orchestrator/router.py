"""Orchestrator — serves one search request.

Responsibilities:
  - Validate input (non-empty query)
  - Derive the cache key and check the cache
  - Fall back to YouTube on a miss or when the cache is unreachable
  - Schedule the cache write after the response is sent
  - Turn upstream failures into typed SearchErrors

Side effects (cache write, error reporting) go through BackgroundTasks so
they never delay the response.
"""

import asyncio
import logging

from fastapi import BackgroundTasks

from chefstream.config import settings
from chefstream.integrations.youtube import YouTubeClient, timeout_error
from chefstream.orchestrator.errors import InternalError, RequestValidationFailed, SearchError
from chefstream.orchestrator.schemas import ResultSet, SearchParams, SearchResponse
from chefstream.services.cache import SearchCacheStore, StorageError
from chefstream.services.cache_keys import derive_key
from chefstream.services.error_reporting import ErrorHook, capture_error

logger = logging.getLogger(__name__)


class SearchOrchestrator:
    """Cache-first search: cache → YouTube → write-back."""

    def __init__(
        self,
        store: SearchCacheStore,
        youtube: YouTubeClient,
        on_error: ErrorHook = capture_error,
        timeout: float | None = None,
        cache_timeout: float | None = None,
    ):
        self.store = store
        self.youtube = youtube
        self.on_error = on_error
        self.timeout = timeout or settings.youtube_timeout_seconds
        self.cache_timeout = cache_timeout or settings.cache_read_timeout_seconds

    async def route(self, params: SearchParams, background_tasks: BackgroundTasks) -> SearchResponse:
        query = params.query
        if not query:
            raise RequestValidationFailed()

        key = derive_key(query, params.locale, params.pageToken)

        try:
            lookup = await asyncio.wait_for(self.store.get(key), timeout=self.cache_timeout)
        except asyncio.TimeoutError:
            logger.warning("Cache read exceeded %.1fs — falling through | key=%s", self.cache_timeout, key[:12])
            error = StorageError(f"Cache read timed out after {self.cache_timeout}s")
            background_tasks.add_task(self.on_error, error, {"flow": "cache_read", "query_key": key})
        except StorageError as e:
            # Unreachable cache behaves like a miss
            logger.warning("Cache read failed — falling through | key=%s", key[:12])
            background_tasks.add_task(self.on_error, e, {"flow": "cache_read", "query_key": key})
        else:
            if lookup.found and lookup.results is not None:
                return SearchResponse.from_results(lookup.results, cached=True)

        results = await self._fetch(query, params, background_tasks)

        background_tasks.add_task(self.store.set, key, results)
        return SearchResponse.from_results(results, cached=False)

    async def _fetch(
        self, query: str, params: SearchParams, background_tasks: BackgroundTasks,
    ) -> ResultSet:
        """Call YouTube under the request timeout; cancellation aborts the HTTP call."""
        try:
            return await asyncio.wait_for(
                self.youtube.search(query, locale=params.locale, page_token=params.pageToken),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning("YouTube call exceeded %.1fs | query=%s", self.timeout, query[:80])
            raise timeout_error() from e
        except SearchError:
            raise
        except Exception as e:
            logger.error("YouTube call failed unexpectedly | %s", str(e)[:200])
            background_tasks.add_task(self.on_error, e, {"flow": "youtube_call"})
            raise InternalError() from e
