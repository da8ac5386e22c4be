from typing import Callable

from .base import Deadline, JobSearchBase
from .jsearch import JSearchSource
from .adzuna import AdzunaSource
from .remotive import RemotiveSource

from jobfeed.log import get_logger

log = get_logger(__name__)

__all__ = [
    "Deadline", "JobSearchBase", "JSearchSource", "AdzunaSource", "RemotiveSource",
    "get_sources",
]

_FALSY = {"0", "false", "no", "off"}


def get_sources(env_getter: Callable[..., str], request_timeout: float = 20.0) -> list[JobSearchBase]:
    """Every known adapter; unconfigured ones report ``enabled() == False``."""
    jsearch_key = env_getter("JSEARCH_API_KEY") or env_getter("RAPIDAPI_KEY")
    sources: list[JobSearchBase] = [
        JSearchSource(jsearch_key, request_timeout=request_timeout),
        # no key needed; on unless switched off
        RemotiveSource(
            enabled=env_getter("REMOTIVE_ENABLED").lower() not in _FALSY,
            request_timeout=request_timeout,
        ),
        AdzunaSource(
            env_getter("ADZUNA_APP_ID"),
            env_getter("ADZUNA_APP_KEY"),
            country=env_getter("ADZUNA_COUNTRY") or "us",
            request_timeout=request_timeout,
        ),
    ]

    for src in sources:
        if src.enabled():
            log.info("Registered source: %s", src.name)
        else:
            log.info("Source %s not configured, skipped", src.name)
    return sources
