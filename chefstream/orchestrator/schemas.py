"""Pydantic models for the search API — shared by the cache, the YouTube client and the router.

Split into: cached/public result shapes, the inbound request and the error envelope.
"""

from __future__ import annotations

from pydantic import BaseModel, StrictInt, StrictStr


# ═══════════════ RESULT SET (cached + returned) ═══════════════

class Video(BaseModel):
    """Single search hit."""
    video_id: StrictStr
    title: StrictStr
    channel_title: StrictStr
    thumbnail_url: StrictStr


class ResultSet(BaseModel):
    """One page of videos in provider relevance order.

    Field types are strict so that rows written by an older or broken
    writer (e.g. stringified counts) fail validation on read instead of
    being coerced.
    """
    videos: list[Video]
    nextPageToken: StrictStr | None
    totalResults: StrictInt


# ═══════════════ REQUEST ═══════════════

class SearchParams(BaseModel):
    """Query parameters of GET /search."""
    q: str = ""
    locale: str | None = None
    pageToken: str | None = None

    @property
    def query(self) -> str:
        return self.q.strip()


# ═══════════════ RESPONSES ═══════════════

class SearchResponse(ResultSet):
    """Success body — the ResultSet plus where it came from."""
    cached: bool = False

    @classmethod
    def from_results(cls, results: ResultSet, cached: bool) -> SearchResponse:
        return cls(
            videos=results.videos,
            nextPageToken=results.nextPageToken,
            totalResults=results.totalResults,
            cached=cached,
        )


class ErrorResponse(BaseModel):
    """Error body for every non-2xx response."""
    error: str
    code: str
    retryable: bool
