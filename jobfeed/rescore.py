"""Recompute a user's feed scores after a profile change, without fetching."""
from __future__ import annotations

from jobfeed.config import ScoringWeights
from jobfeed.errors import ProfileNotFoundError
from jobfeed.log import get_logger
from jobfeed.scorer import DEFAULT_WEIGHTS, score_job
from jobfeed.store import FeedStore, ProfileStore

log = get_logger(__name__)


class RescoreCoordinator:
    def __init__(
        self,
        feed_store: FeedStore,
        profile_store: ProfileStore,
        weights: ScoringWeights = DEFAULT_WEIGHTS,
    ) -> None:
        self.feed_store = feed_store
        self.profile_store = profile_store
        self.weights = weights

    def rescore(self, user_id: str) -> int:
        """Rescore every non-dismissed link; only match_score changes."""
        profile = self.profile_store.find_by_id(user_id)
        if profile is None:
            raise ProfileNotFoundError(user_id)

        entries = self.feed_store.get_links_for_rescore(user_id)
        if not entries:
            log.info("Nothing to rescore for user=%s", user_id)
            return 0

        scores = {e.job.id: score_job(profile, e.job, self.weights) for e in entries}
        self.feed_store.batch_update_scores(user_id, scores)
        log.info("Rescored %d feed jobs for user=%s", len(scores), user_id)
        return len(scores)
