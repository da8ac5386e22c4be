from __future__ import annotations

from dataclasses import replace

import pytest

from conftest import make_job
from jobfeed.errors import ProfileNotFoundError
from jobfeed.rescore import RescoreCoordinator
from jobfeed.scorer import score_job


def _link(feed_store, user_id, job, score):
    stored, _ = feed_store.upsert_feed_job(job)
    feed_store.link_job_to_user(user_id, stored.id, score)
    return stored


def test_rescore_recomputes_with_current_profile(feed_store, profile_store, profile):
    go_job = _link(feed_store, profile.user_id, make_job("a", title="Go Engineer", required_skills=["Go"]), 1)
    py_job = _link(feed_store, profile.user_id, make_job("b", title="Python Engineer", required_skills=["Python"]), 1)

    updated = replace(profile, target_roles=["Python Engineer"], skills=["Python"])
    profile_store.upsert(updated)

    count = RescoreCoordinator(feed_store, profile_store).rescore(profile.user_id)

    assert count == 2
    scores = {e.job.id: e.match_score for e in feed_store.get_user_feed(profile.user_id)}
    assert scores[py_job.id] == score_job(updated, py_job)
    assert scores[go_job.id] == score_job(updated, go_job)
    assert scores[py_job.id] > scores[go_job.id]


def test_rescore_never_touches_flags_or_dismissed_links(db, feed_store, profile_store, profile):
    saved = _link(feed_store, profile.user_id, make_job("saved"), 5)
    dismissed = _link(feed_store, profile.user_id, make_job("dismissed"), 5)
    feed_store.save_feed_job(profile.user_id, saved.id)
    feed_store.dismiss_feed_job(profile.user_id, dismissed.id)

    assert RescoreCoordinator(feed_store, profile_store).rescore(profile.user_id) == 1

    rows = {
        r["feed_job_id"]: tuple(r)[1:]
        for r in db.connection.execute("SELECT feed_job_id, match_score, dismissed, saved FROM user_feed")
    }
    assert rows[saved.id][1:] == (0, 1)
    assert rows[saved.id][0] != 5
    assert rows[dismissed.id] == (5, 1, 0)


def test_rescore_with_no_links_is_zero(feed_store, profile_store, profile):
    assert RescoreCoordinator(feed_store, profile_store).rescore(profile.user_id) == 0


def test_rescore_missing_profile(feed_store, profile_store):
    with pytest.raises(ProfileNotFoundError):
        RescoreCoordinator(feed_store, profile_store).rescore("ghost")
