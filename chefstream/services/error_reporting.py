"""Error reporting — always logged, forwarded to Sentry when a DSN is configured.

`capture_error` is the default error hook for the cache store and the
search orchestrator. Both accept any callable with the same signature so
tests can observe side-effect failures without a monitoring backend.
"""

import logging
from typing import Callable

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from chefstream.config import settings

logger = logging.getLogger(__name__)

ErrorHook = Callable[[BaseException, dict[str, str]], None]

_initialized = False


def init_sentry() -> bool:
    """Initialize Sentry once. Returns True if error tracking is active."""
    global _initialized
    if _initialized:
        return True
    if not settings.has_sentry:
        logger.info("Sentry DSN not set — error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        integrations=[FastApiIntegration()],
        environment=settings.sentry_env,
        release=settings.sentry_release or None,
        traces_sample_rate=settings.sentry_traces_sample_rate,
        send_default_pii=False,
    )
    _initialized = True
    logger.info("Sentry initialized | env=%s", settings.sentry_env)
    return True


def capture_error(error: BaseException, tags: dict[str, str] | None = None) -> None:
    """Log the error and send it to Sentry with the given tags."""
    tags = tags or {}
    tag_text = " | ".join(f"{k}={v}" for k, v in tags.items())
    logger.error("%s | %s: %s", tag_text or "untagged", type(error).__name__, str(error)[:200])

    if not _initialized:
        return

    with sentry_sdk.new_scope() as scope:
        for key, value in tags.items():
            scope.set_tag(key, value)
        sentry_sdk.capture_exception(error)
