"""
Feed service: wires settings, stores, sources and the background runner.

This is the surface the rest of the application talks to: refresh and
rescore (inline or detached), the ranked feed, dismiss, save-to-tracker,
profile updates and cache purging.
"""
from __future__ import annotations

from concurrent.futures import Future
from datetime import timedelta
from typing import Sequence

from jobfeed.background import BackgroundRunner
from jobfeed.config import FeedSettings, get_env, load_settings
from jobfeed.log import get_logger
from jobfeed.models import FeedEntry, Profile, RefreshResult, SavedJob
from jobfeed.refresh import RefreshOrchestrator
from jobfeed.rescore import RescoreCoordinator
from jobfeed.sources import JobSearchBase, get_sources
from jobfeed.store import Database, FeedStore, ProfileStore

log = get_logger(__name__)


class FeedService:
    def __init__(
        self,
        settings: FeedSettings,
        db: Database,
        sources: Sequence[JobSearchBase],
        runner: BackgroundRunner | None = None,
    ) -> None:
        self.settings = settings
        self.db = db
        self.profiles = ProfileStore(db)
        self.feed = FeedStore(db, ttl=timedelta(days=settings.job_ttl_days))
        self.sources = list(sources)
        self.orchestrator = RefreshOrchestrator(self.sources, self.feed, self.profiles, settings)
        self.rescorer = RescoreCoordinator(self.feed, self.profiles, settings.weights)
        self.runner = runner or BackgroundRunner(settings.background_workers)

    @classmethod
    def from_settings(cls, settings: FeedSettings | None = None) -> FeedService:
        settings = settings or load_settings()
        db = Database(settings.database_path).connect()
        sources = get_sources(get_env, request_timeout=settings.request_timeout)
        return cls(settings, db, sources)

    def close(self) -> None:
        self.runner.shutdown(wait=True)
        self.db.close()

    # ── Refresh / rescore ───────────────────────────────

    def refresh(self, user_id: str, force: bool = False) -> RefreshResult:
        return self.orchestrator.refresh(user_id, force=force)

    def rescore(self, user_id: str) -> int:
        return self.rescorer.rescore(user_id)

    def request_refresh(self, user_id: str, force: bool = False) -> Future:
        """Start a refresh detached from the caller; returns at once."""
        return self.runner.submit(f"refresh user={user_id}", self.refresh, user_id, force)

    def request_rescore(self, user_id: str) -> Future:
        return self.runner.submit(f"rescore user={user_id}", self.rescore, user_id)

    # ── Profiles ────────────────────────────────────────

    def update_profile(self, profile: Profile) -> Future | None:
        """Save the profile; rescore in the background if scoring inputs changed.

        Returns the rescore Future, or None when no rescore was needed.
        """
        previous = self.profiles.find_by_id(profile.user_id)
        self.profiles.upsert(profile)
        log.info("Saved profile for user=%s", profile.user_id)

        if previous is None or previous.scoring_signature() == profile.scoring_signature():
            return None
        return self.request_rescore(profile.user_id)

    # ── Feed surface ────────────────────────────────────

    def get_feed(self, user_id: str, limit: int | None = None) -> list[FeedEntry]:
        return self.feed.get_user_feed(user_id, self._clamp_limit(limit))

    def dismiss(self, user_id: str, feed_job_id: int) -> bool:
        dismissed = self.feed.dismiss_feed_job(user_id, feed_job_id)
        if not dismissed:
            log.warning("Nothing to dismiss: user=%s feed_job_id=%d", user_id, feed_job_id)
        return dismissed

    def save_to_tracker(self, user_id: str, feed_job_id: int) -> SavedJob:
        saved = self.feed.save_feed_job(user_id, feed_job_id)
        log.info("Saved feed job %d to tracker for user=%s (saved_job_id=%d)", feed_job_id, user_id, saved.id)
        return saved

    def purge_expired(self) -> int:
        removed = self.feed.clean_expired_feed_jobs()
        log.info("Purged %d expired feed job(s)", removed)
        return removed

    def _clamp_limit(self, limit: int | None) -> int:
        if limit is None or limit <= 0:
            return self.settings.feed_limit_default
        return min(limit, self.settings.feed_limit_max)
