"""Cache key derivation for search results.

Keys are SHA-256 hex digests of "v1:normalized_query|locale|pageToken".
The version prefix means a future change to normalization produces new,
unreachable keys instead of colliding with rows written by the old scheme.
"""

import hashlib
import re

CACHE_KEY_VERSION = "v1"

_WHITESPACE = re.compile(r"\s+")


def normalize_query(query: str) -> str:
    """Trim, collapse internal whitespace and lower-case."""
    return _WHITESPACE.sub(" ", query.strip()).lower()


def derive_key(query: str, locale: str | None = None, page_token: str | None = None) -> str:
    """Build the 64-char hex cache key for a (query, locale, page token) triple.

    None and "" are equivalent for locale and page token. The page token is
    opaque and used verbatim.

    >>> derive_key("Pasta", "en-US") == derive_key("  pasta ", "EN-us", "")
    True
    """
    normalized_locale = (locale or "").lower()
    canonical = f"{CACHE_KEY_VERSION}:{normalize_query(query)}|{normalized_locale}|{page_token or ''}"
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
