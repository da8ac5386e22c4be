from __future__ import annotations

import concurrent.futures
from types import SimpleNamespace

import pytest

from conftest import make_job
from jobfeed.cli import cmd_profile, main
from jobfeed.config import FeedSettings
from jobfeed.store import Database, FeedStore


@pytest.fixture
def env(tmp_path, monkeypatch):
    """Isolated settings + database with every network source switched off."""
    db_path = tmp_path / "cli.sqlite3"
    settings = tmp_path / "settings.yaml"
    settings.write_text("feed:\n  throttle_hours: 2\n", encoding="utf-8")
    profile = tmp_path / "profile.yaml"
    profile.write_text(
        "target_roles: [Backend Engineer]\nskills: [Go, Postgres]\nwork_style: remote\nsalary_min: 120000\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("FEED_DB_PATH", str(db_path))
    monkeypatch.setenv("REMOTIVE_ENABLED", "0")
    for key in ("JSEARCH_API_KEY", "RAPIDAPI_KEY", "ADZUNA_APP_ID", "ADZUNA_APP_KEY"):
        monkeypatch.delenv(key, raising=False)
    return {"settings": str(settings), "profile": str(profile), "db": db_path}


def run(env, *args) -> int:
    return main(["--settings", env["settings"], *args])


def _seed_job(db_path, user_id: str, score: int) -> int:
    db = Database(db_path).connect()
    try:
        store = FeedStore(db)
        job, _ = store.upsert_feed_job(make_job("jsearch-77", title="Backend Engineer"))
        store.link_job_to_user(user_id, job.id, score)
        return job.id
    finally:
        db.close()


def test_profile_then_refresh_then_throttle(env, capsys):
    assert run(env, "profile", "alice", env["profile"]) == 0
    assert run(env, "refresh", "alice") == 0
    assert "Fetched 0 job(s), 0 new." in capsys.readouterr().out

    assert run(env, "refresh", "alice") == 0
    assert "--force" in capsys.readouterr().out

    assert run(env, "refresh", "alice", "--force") == 0
    assert "Fetched 0 job(s)" in capsys.readouterr().out


def test_feed_listing_with_breakdown(env, capsys):
    run(env, "profile", "alice", env["profile"])
    job_id = _seed_job(env["db"], "alice", 88)
    capsys.readouterr()

    assert run(env, "feed", "alice", "--explain") == 0
    out = capsys.readouterr().out
    assert f"#{job_id} Backend Engineer at Initech" in out
    assert "[ 88]" in out
    assert "role=25" in out


def test_save_dismiss_and_rescore(env, capsys):
    run(env, "profile", "alice", env["profile"])
    job_id = _seed_job(env["db"], "alice", 10)

    assert run(env, "save", "alice", str(job_id)) == 0
    assert run(env, "rescore", "alice") == 0
    assert run(env, "dismiss", "alice", str(job_id)) == 0
    out = capsys.readouterr().out
    assert "Saved 'Backend Engineer' to tracker" in out
    assert "Rescored 1 job(s)." in out

    assert run(env, "feed", "alice") == 0
    assert "Feed is empty" in capsys.readouterr().out


def test_errors_exit_non_zero(env, tmp_path):
    assert run(env, "refresh", "nobody") == 1
    assert run(env, "rescore", "nobody") == 1
    run(env, "profile", "alice", env["profile"])
    assert run(env, "save", "alice", "999") == 1
    assert run(env, "dismiss", "alice", "999") == 1
    assert run(env, "profile", "bob", str(tmp_path / "missing.yaml")) == 1


def test_sources_and_purge(env, capsys):
    assert run(env, "sources") == 0
    out = capsys.readouterr().out
    assert "jsearch" in out and "not configured" in out

    assert run(env, "purge") == 0
    assert "Removed 0 expired job(s)." in capsys.readouterr().out


def test_profile_rescore_timeout_waits_for_shutdown(env, caplog):
    pending = concurrent.futures.Future()
    service = SimpleNamespace(
        settings=FeedSettings(rescore_timeout=0.01),
        update_profile=lambda profile: pending,
    )
    args = SimpleNamespace(file=env["profile"], user_id="alice")

    with caplog.at_level("WARNING", logger="jobfeed.cli"):
        assert cmd_profile(service, args) == 0

    assert any("waiting for it to finish before exit" in r.getMessage() for r in caplog.records)
