from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

import requests

from jobfeed.errors import SourceError
from jobfeed.models import FeedJob, Profile
from jobfeed.normalize import normalize as normalize_raw
from jobfeed.planner import ProviderQuery, plan_for

# Floor for a single HTTP timeout so a nearly-spent budget still gets one try.
_MIN_REQUEST_TIMEOUT = 1.0


class Deadline:
    """One time budget shared by every provider call in a refresh."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._expires = clock() + seconds
        self._cancelled = threading.Event()

    def remaining(self) -> float:
        if self._cancelled.is_set():
            return 0.0
        return max(0.0, self._expires - self._clock())

    def expired(self) -> bool:
        return self.remaining() <= 0.0

    def cancel(self) -> None:
        """Mark the budget spent; in-flight units stop at their next check."""
        self._cancelled.set()

    def request_timeout(self, ceiling: float) -> float:
        return max(_MIN_REQUEST_TIMEOUT, min(ceiling, self.remaining()))


class JobSearchBase(ABC):
    """A job-listing provider: plans queries, fetches raw payloads, converts them."""

    name: str = ""

    def __init__(self, request_timeout: float = 20.0) -> None:
        self.request_timeout = request_timeout

    def enabled(self) -> bool:
        return True

    def plan(self, profile: Profile) -> list[ProviderQuery]:
        return plan_for(self.name, profile)

    def normalize(self, raw: dict) -> FeedJob:
        return normalize_raw(self.name, raw)

    @abstractmethod
    def search(self, query: Any, deadline: Deadline) -> list[dict]:
        """Run one planned query; raise SourceError on any provider failure."""

    def _get_json(
        self,
        url: str,
        deadline: Deadline,
        *,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> dict:
        if deadline.expired():
            raise SourceError(self.name, "refresh deadline exceeded before request")
        try:
            r = requests.get(
                url,
                params=params,
                headers=headers,
                timeout=deadline.request_timeout(self.request_timeout),
            )
        except requests.RequestException as exc:
            raise SourceError(self.name, f"request failed: {exc}") from exc

        if r.status_code != 200:
            raise SourceError(self.name, f"API returned {r.status_code}: {r.text[:500]}")
        try:
            data = r.json()
        except ValueError as exc:
            raise SourceError(self.name, f"unparsable response: {exc}") from exc
        if not isinstance(data, dict):
            raise SourceError(self.name, f"unexpected payload type {type(data).__name__}")
        return data

    def _listings(self, data: dict, key: str) -> list[dict]:
        """The listing array under *key*; a missing or null field means no results."""
        value = data.get(key)
        if value is None:
            return []
        if not isinstance(value, list):
            raise SourceError(self.name, f"unexpected payload shape: {key!r} is {type(value).__name__}")
        return [hit for hit in value if isinstance(hit, dict)]
