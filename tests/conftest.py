"""Shared test fixtures and configuration."""

import os
from datetime import datetime, timedelta, timezone

import pytest

# No real credentials or error tracking during tests
os.environ.setdefault("YOUTUBE_API_KEY", "")
os.environ.setdefault("SENTRY_DSN", "")

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from chefstream.models import Base  # noqa: E402
from chefstream.orchestrator.schemas import ResultSet, Video  # noqa: E402
from chefstream.services.cache import SearchCacheStore  # noqa: E402


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class ErrorRecorder:
    """Error hook that remembers what it was given."""

    def __init__(self):
        self.calls: list[tuple[BaseException, dict[str, str]]] = []

    def __call__(self, error: BaseException, context: dict[str, str]) -> None:
        self.calls.append((error, context))

    @property
    def flows(self) -> list[str]:
        return [ctx.get("flow", "") for _, ctx in self.calls]


def _memory_engine():
    return create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )


@pytest.fixture
async def session_factory():
    """In-memory SQLite database with the search_cache table."""
    engine = _memory_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def broken_session_factory():
    """Database without the table — every statement fails."""
    engine = _memory_engine()
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def errors():
    return ErrorRecorder()


@pytest.fixture
def store(session_factory, errors, clock):
    return SearchCacheStore(session_factory, on_error=errors, clock=clock)


@pytest.fixture
def broken_store(broken_session_factory, errors, clock):
    return SearchCacheStore(broken_session_factory, on_error=errors, clock=clock)


@pytest.fixture
def sample_results():
    return ResultSet(
        videos=[
            Video(
                video_id="abc123",
                title="Classic Pasta Carbonara",
                channel_title="Italian Kitchen",
                thumbnail_url="https://i.ytimg.com/vi/abc123/hqdefault.jpg",
            ),
            Video(
                video_id="def456",
                title="Carbonara in 10 Minutes",
                channel_title="Quick Meals",
                thumbnail_url="https://i.ytimg.com/vi/def456/mqdefault.jpg",
            ),
        ],
        nextPageToken="CBQQAA",
        totalResults=1000000,
    )


@pytest.fixture
def sample_youtube_response():
    """Sample YouTube search.list response (one channel hit mixed in)."""
    return {
        "kind": "youtube#searchListResponse",
        "etag": "etag-1",
        "nextPageToken": "CBQQAA",
        "regionCode": "US",
        "pageInfo": {"totalResults": 1000000, "resultsPerPage": 20},
        "items": [
            {
                "kind": "youtube#searchResult",
                "id": {"kind": "youtube#video", "videoId": "abc123"},
                "snippet": {
                    "title": "Classic Pasta Carbonara",
                    "channelTitle": "Italian Kitchen",
                    "thumbnails": {
                        "default": {"url": "https://i.ytimg.com/vi/abc123/default.jpg"},
                        "medium": {"url": "https://i.ytimg.com/vi/abc123/mqdefault.jpg"},
                        "high": {"url": "https://i.ytimg.com/vi/abc123/hqdefault.jpg"},
                    },
                },
            },
            {
                "kind": "youtube#searchResult",
                "id": {"kind": "youtube#channel", "channelId": "UC999"},
                "snippet": {
                    "title": "Italian Kitchen",
                    "channelTitle": "Italian Kitchen",
                    "thumbnails": {
                        "default": {"url": "https://yt3.ggpht.com/UC999.jpg"},
                    },
                },
            },
            {
                "kind": "youtube#searchResult",
                "id": {"kind": "youtube#video", "videoId": "def456"},
                "snippet": {
                    "title": "Carbonara in 10 Minutes",
                    "channelTitle": "Quick Meals",
                    "thumbnails": {
                        "default": {"url": "https://i.ytimg.com/vi/def456/default.jpg"},
                        "medium": {"url": "https://i.ytimg.com/vi/def456/mqdefault.jpg"},
                    },
                },
            },
        ],
    }


def youtube_error_body(status: int, reason: str, message: str) -> dict:
    """Google API error envelope."""
    return {
        "error": {
            "code": status,
            "message": message,
            "errors": [{"message": message, "domain": "youtube.quota", "reason": reason}],
        },
    }


@pytest.fixture
def error_body():
    return youtube_error_body
