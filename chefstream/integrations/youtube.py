"""YouTube Data API v3 search integration.

Docs: https://developers.google.com/youtube/v3/docs/search/list

Results are biased toward recipe/cooking content:
  - query augmentation: appends "recipe OR cooking" unless already present
  - category restriction: Howto & Style (id=26)
  - safeSearch=strict, embeddable + syndicated videos only
  - relevanceLanguage=en regardless of locale
"""

import logging
import re
import time
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from chefstream.config import settings
from chefstream.orchestrator.errors import SearchError
from chefstream.orchestrator.schemas import ResultSet, Video

logger = logging.getLogger(__name__)

SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"
HOW_TO_CATEGORY_ID = "26"
DEFAULT_MAX_RESULTS = 20
MIN_RESULTS = 1
MAX_RESULTS = 50
RECIPE_BIAS_TERMS = ("recipe", "cooking")

_LOCALE_SEPARATOR = re.compile(r"[-_]")
_REGION_SUBTAG = re.compile(r"^[A-Za-z]{2}$")


class ErrorCodes:
    QUOTA_EXCEEDED = "YOUTUBE_QUOTA_EXCEEDED"
    RATE_LIMITED = "YOUTUBE_RATE_LIMITED"
    INVALID_API_KEY = "YOUTUBE_INVALID_API_KEY"
    INVALID_REQUEST = "YOUTUBE_INVALID_REQUEST"
    NETWORK_ERROR = "YOUTUBE_NETWORK_ERROR"
    VALIDATION_ERROR = "YOUTUBE_VALIDATION_ERROR"
    TIMEOUT_ERROR = "YOUTUBE_TIMEOUT_ERROR"
    UNKNOWN_ERROR = "YOUTUBE_UNKNOWN_ERROR"


# Response status we send back for each error code
HTTP_STATUS = {
    ErrorCodes.INVALID_REQUEST: 400,
    ErrorCodes.QUOTA_EXCEEDED: 403,
    ErrorCodes.INVALID_API_KEY: 403,
    ErrorCodes.RATE_LIMITED: 429,
    ErrorCodes.TIMEOUT_ERROR: 504,
    ErrorCodes.NETWORK_ERROR: 500,
    ErrorCodes.VALIDATION_ERROR: 500,
    ErrorCodes.UNKNOWN_ERROR: 500,
}

QUOTA_REASONS = {"quotaExceeded", "dailyLimitExceeded"}
RATE_LIMIT_REASONS = {"rateLimitExceeded", "userRateLimitExceeded"}


class YouTubeAPIError(SearchError):
    """Typed failure of a YouTube search call.

    provider_status is the HTTP status YouTube returned, if any; status_code
    is the status our own response should use.
    """

    def __init__(self, message: str, code: str, retryable: bool, provider_status: int | None = None):
        super().__init__(message, code, retryable, status_code=HTTP_STATUS.get(code, 500))
        self.provider_status = provider_status


def timeout_error() -> YouTubeAPIError:
    return YouTubeAPIError("Request timed out", ErrorCodes.TIMEOUT_ERROR, retryable=True)


# ═══════════════ RAW RESPONSE SCHEMA ═══════════════

class _Thumbnail(BaseModel):
    url: str


class _Thumbnails(BaseModel):
    high: _Thumbnail | None = None
    medium: _Thumbnail | None = None
    default: _Thumbnail | None = None


class _Snippet(BaseModel):
    title: str
    channelTitle: str
    thumbnails: _Thumbnails


class _ItemId(BaseModel):
    videoId: str | None = None


class _Item(BaseModel):
    id: _ItemId
    snippet: _Snippet


class _PageInfo(BaseModel):
    totalResults: int
    resultsPerPage: int


class YouTubeSearchResponse(BaseModel):
    kind: str
    nextPageToken: str | None = None
    pageInfo: _PageInfo
    items: list[_Item]


# ═══════════════ REQUEST BUILDING ═══════════════

def augment_query(query: str) -> str:
    """Append the recipe bias unless the query already mentions it."""
    trimmed = query.strip()
    lower = trimmed.lower()
    if any(term in lower for term in RECIPE_BIAS_TERMS):
        return trimmed
    return f"{trimmed} {' OR '.join(RECIPE_BIAS_TERMS)}"


def clamp_max_results(value: int | None) -> int:
    n = DEFAULT_MAX_RESULTS if value is None else value
    return max(MIN_RESULTS, min(MAX_RESULTS, n))


def parse_region_from_locale(locale: str) -> str | None:
    """Region subtag of a BCP-47-ish locale, upper-cased.

    Only an explicit 2-letter region counts; a bare language is not mapped
    to a country.

      "en-US" → "US", "pt_br" → "BR", "zh-Hans-CN" → "CN", "it" → None
    """
    parts = _LOCALE_SEPARATOR.split(locale)
    for part in parts[1:]:
        if _REGION_SUBTAG.match(part):
            return part.upper()
    return None


def build_params(
    query: str,
    api_key: str,
    locale: str | None = None,
    page_token: str | None = None,
    max_results: int | None = None,
) -> dict[str, str]:
    params = {
        "key": api_key,
        "part": "snippet",
        "q": augment_query(query),
        "type": "video",
        "videoCategoryId": HOW_TO_CATEGORY_ID,
        "safeSearch": "strict",
        "videoEmbeddable": "true",
        "videoSyndicated": "true",
        "relevanceLanguage": "en",
        "maxResults": str(clamp_max_results(max_results)),
    }

    if locale:
        region = parse_region_from_locale(locale)
        if region:
            params["regionCode"] = region

    if page_token:
        params["pageToken"] = page_token

    return params


# ═══════════════ RESPONSE HANDLING ═══════════════

def transform_response(response: YouTubeSearchResponse) -> ResultSet:
    """Map the raw response to a ResultSet, dropping items that are not videos."""
    videos = []
    for item in response.items:
        if not item.id.videoId:
            continue
        thumbs = item.snippet.thumbnails
        best = thumbs.high or thumbs.medium or thumbs.default
        videos.append(Video(
            video_id=item.id.videoId,
            title=item.snippet.title,
            channel_title=item.snippet.channelTitle,
            thumbnail_url=best.url if best else "",
        ))

    return ResultSet(
        videos=videos,
        nextPageToken=response.nextPageToken,
        totalResults=response.pageInfo.totalResults,
    )


def error_from_response(response: httpx.Response) -> YouTubeAPIError:
    """Classify a non-2xx YouTube response."""
    try:
        body: Any = response.json()
    except ValueError:
        body = None

    error_obj = body.get("error", {}) if isinstance(body, dict) else {}
    if not isinstance(error_obj, dict):
        error_obj = {}
    errors = error_obj.get("errors")
    first = errors[0] if isinstance(errors, list) and errors else {}
    reason = first.get("reason", "") if isinstance(first, dict) else ""
    message = error_obj.get("message") or response.reason_phrase or f"HTTP {response.status_code}"
    status = response.status_code

    if status == 400:
        return YouTubeAPIError(message, ErrorCodes.INVALID_REQUEST, False, status)
    if status == 403 and reason in QUOTA_REASONS:
        return YouTubeAPIError(message, ErrorCodes.QUOTA_EXCEEDED, False, status)
    if status == 429 or (status == 403 and reason in RATE_LIMIT_REASONS):
        return YouTubeAPIError(message, ErrorCodes.RATE_LIMITED, True, status)
    if status in (401, 403):
        return YouTubeAPIError(message, ErrorCodes.INVALID_API_KEY, False, status)
    return YouTubeAPIError(message, ErrorCodes.UNKNOWN_ERROR, status >= 500, status)


# ═══════════════ CLIENT ═══════════════

class YouTubeClient:
    """Async client for the YouTube search.list endpoint."""

    def __init__(self, api_key: str | None = None, timeout: float | None = None):
        self.api_key = settings.youtube_api_key if api_key is None else api_key
        self.timeout = timeout or settings.youtube_timeout_seconds

    async def search(
        self,
        query: str,
        locale: str | None = None,
        page_token: str | None = None,
        max_results: int | None = None,
    ) -> ResultSet:
        """Search recipe videos. Raises YouTubeAPIError on any failure."""
        if not self.api_key:
            raise YouTubeAPIError("YouTube API key not configured", ErrorCodes.INVALID_API_KEY, False)
        if not query or not query.strip():
            raise YouTubeAPIError("Search query is required", ErrorCodes.INVALID_REQUEST, False)

        if max_results is None:
            max_results = settings.youtube_max_results
        params = build_params(query, self.api_key, locale, page_token, max_results)

        start = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    SEARCH_URL, params=params, headers={"Accept": "application/json"},
                )
        except httpx.TimeoutException as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.warning("YouTube timeout | %dms | query=%s", elapsed_ms, query[:80])
            raise timeout_error() from e
        except httpx.HTTPError as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.error("YouTube network error | %dms | %s", elapsed_ms, str(e)[:200])
            raise YouTubeAPIError(f"Network error: {e}", ErrorCodes.NETWORK_ERROR, True) from e

        elapsed_ms = int((time.monotonic() - start) * 1000)

        if not response.is_success:
            error = error_from_response(response)
            logger.warning(
                "YouTube | status=%d | code=%s | %dms | query=%s",
                response.status_code, error.code, elapsed_ms, query[:80],
            )
            raise error

        try:
            parsed = YouTubeSearchResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error("YouTube response invalid | %dms | %s", elapsed_ms, str(e)[:200])
            raise YouTubeAPIError(
                f"Invalid response: {str(e)[:200]}", ErrorCodes.VALIDATION_ERROR, False,
            ) from e

        result = transform_response(parsed)
        logger.info(
            "YouTube OK | videos=%d | total=%d | %dms | query=%s",
            len(result.videos), result.totalResults, elapsed_ms, query[:80],
        )
        return result
