"""
Multi-source feed refresh.

Runs: throttle check → fan out one worker per enabled source → per query
fetch/normalize → upsert, score and link each job → aggregate → log.
"""
from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime, timedelta
from typing import Callable, Sequence

from jobfeed.config import FeedSettings
from jobfeed.errors import ProfileNotFoundError, SourceError, StoreError
from jobfeed.log import get_logger
from jobfeed.models import FeedJob, Profile, RefreshResult
from jobfeed.normalize import sanitize_feed_job
from jobfeed.scorer import score_job
from jobfeed.sources.base import Deadline, JobSearchBase
from jobfeed.store import FeedStore, ProfileStore

log = get_logger(__name__)

REFRESH_LABEL = "multi-source"


class _Tally:
    """Fetched/new counts shared by the per-source workers.

    Workers add one job at a time, right after it is linked, so the totals
    match what landed in the feed up to the barrier. A job linked in the
    instant the barrier closes stays in the feed but is not counted.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._fetched = 0
        self._new = 0
        self._closed = False

    def add(self, fetched: int, new: int) -> bool:
        """Record one job; False once the barrier has closed."""
        with self._lock:
            if self._closed:
                return False
            self._fetched += fetched
            self._new += new
            return True

    def close(self) -> tuple[int, int]:
        with self._lock:
            self._closed = True
            return self._fetched, self._new


class RefreshOrchestrator:
    def __init__(
        self,
        sources: Sequence[JobSearchBase],
        feed_store: FeedStore,
        profile_store: ProfileStore,
        settings: FeedSettings | None = None,
        *,
        now: Callable[[], datetime] | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.sources = list(sources)
        self.feed_store = feed_store
        self.profile_store = profile_store
        self.settings = settings or FeedSettings()
        self._now = now or feed_store.db.now
        self._monotonic = monotonic

    def refresh(self, user_id: str, force: bool = False) -> RefreshResult:
        profile = self.profile_store.find_by_id(user_id)
        if profile is None:
            raise ProfileNotFoundError(user_id)

        if not force and self._throttled(user_id):
            log.info("Refresh throttled for user=%s (window %.1fh)", user_id, self.settings.throttle_hours)
            return RefreshResult(throttled=True)

        enabled = [s for s in self.sources if s.enabled()]
        deadline = Deadline(self.settings.refresh_timeout, clock=self._monotonic)
        tally = _Tally()

        log.info("Refreshing feed for user=%s across %d source(s)", user_id, len(enabled))
        pool = ThreadPoolExecutor(max_workers=max(1, len(enabled)), thread_name_prefix="feed-refresh")
        futures = {
            pool.submit(self._run_source, src, user_id, profile, deadline, tally): src.name
            for src in enabled
        }
        done, pending = wait(futures, timeout=deadline.remaining())

        abandoned = sorted(futures[f] for f in pending)
        if abandoned:
            # stragglers stop at their next deadline check; their counts are dropped
            deadline.cancel()
            log.warning("Refresh deadline reached; abandoning source(s): %s", ", ".join(abandoned))
        fetched, new = tally.close()
        pool.shutdown(wait=False, cancel_futures=True)

        for future in done:
            exc = future.exception()
            if exc is not None:
                log.error("[%s] FAILED: %s", futures[future], exc)

        try:
            self.feed_store.log_refresh(user_id, REFRESH_LABEL, fetched, new)
        except StoreError as exc:
            log.warning("Could not log refresh for user=%s: %s", user_id, exc)

        log.info("Refresh complete for user=%s: fetched=%d, new=%d", user_id, fetched, new)
        return RefreshResult(fetched=fetched, new=new, abandoned=abandoned)

    def _throttled(self, user_id: str) -> bool:
        try:
            last = self.feed_store.get_last_refresh(user_id)
        except StoreError as exc:
            log.warning("Could not read last refresh for user=%s: %s", user_id, exc)
            return False
        if last is None:
            return False
        return self._now() - last < timedelta(hours=self.settings.throttle_hours)

    def _run_source(
        self,
        source: JobSearchBase,
        user_id: str,
        profile: Profile,
        deadline: Deadline,
        tally: _Tally,
    ) -> None:
        queries = source.plan(profile)
        if not queries:
            log.info("[%s] no queries planned for user=%s, skipping", source.name, user_id)
            return

        log.debug("[%s] planned %d queries: %s", source.name, len(queries), [q.label() for q in queries])
        for query in queries:
            if deadline.expired():
                log.warning("[%s] deadline reached before query=%r", source.name, query.label())
                return
            try:
                raws = source.search(query, deadline)
            except SourceError as exc:
                log.warning("[%s] query=%r failed: %s", source.name, query.label(), exc)
                continue

            fetched = new = 0
            for raw in raws:
                if deadline.expired():
                    log.warning("[%s] deadline reached mid-query=%r; remaining results dropped", source.name, query.label())
                    return
                try:
                    job = source.normalize(raw)
                except (KeyError, TypeError, ValueError, AttributeError, OverflowError) as exc:
                    log.warning("[%s] skipping malformed listing: %s", source.name, exc)
                    continue
                created = self._upsert_and_link(user_id, profile, job)
                if not tally.add(1, int(created)):
                    log.warning("[%s] query=%r still running after the barrier; counts discarded", source.name, query.label())
                    return
                fetched += 1
                new += int(created)

            log.info("[%s] query=%r returned %d jobs (%d new)", source.name, query.label(), fetched, new)

    def _upsert_and_link(self, user_id: str, profile: Profile, job: FeedJob) -> bool:
        """Persist one job for the user; True only when the cache row is new."""
        sanitize_feed_job(job)
        try:
            stored, created = self.feed_store.upsert_feed_job(job)
            score = score_job(profile, stored, self.settings.weights)
            self.feed_store.link_job_to_user(user_id, stored.id, score)
        except StoreError as exc:
            log.warning("Skipping job source=%s external_id=%s: %s", job.source, job.external_id, exc)
            return False
        return created
