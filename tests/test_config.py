from __future__ import annotations

import textwrap

import pytest

from jobfeed.config import PROJECT_ROOT, FeedSettings, ScoringWeights, load_profile, load_settings, profile_from_dict
from jobfeed.errors import ConfigError
from jobfeed.models import Experience


@pytest.fixture(autouse=True)
def _no_db_override(monkeypatch):
    monkeypatch.delenv("FEED_DB_PATH", raising=False)


def _write(tmp_path, name, body):
    path = tmp_path / name
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


def test_missing_file_gives_defaults(tmp_path):
    settings = load_settings(tmp_path / "absent.yaml")
    defaults = FeedSettings()
    assert settings.throttle_hours == defaults.throttle_hours == 2.0
    assert settings.refresh_timeout == 90.0
    assert settings.job_ttl_days == 7
    assert settings.weights == ScoringWeights()


def test_partial_file_overrides_only_given_keys(tmp_path):
    path = _write(tmp_path, "settings.yaml", """
        feed:
          throttle_hours: 6
          feed_limit_default: 50
          database_path: /var/lib/jobfeed/feed.sqlite3
        weights:
          role: 40
    """)
    settings = load_settings(path)
    assert settings.throttle_hours == 6.0
    assert isinstance(settings.throttle_hours, float)
    assert settings.feed_limit_default == 50
    assert settings.feed_limit_max == 200
    assert settings.database_path == "/var/lib/jobfeed/feed.sqlite3"
    assert settings.weights.role == 40
    assert settings.weights.skill_overlap == 25


def test_relative_database_path_resolves_under_project_root(tmp_path):
    path = _write(tmp_path, "settings.yaml", """
        feed:
          database_path: data/test.sqlite3
    """)
    assert load_settings(path).database_path == str(PROJECT_ROOT / "data/test.sqlite3")


def test_env_overrides_database_path(tmp_path, monkeypatch):
    monkeypatch.setenv("FEED_DB_PATH", str(tmp_path / "env.sqlite3"))
    assert load_settings(tmp_path / "absent.yaml").database_path == str(tmp_path / "env.sqlite3")


@pytest.mark.parametrize("body", [
    "feed:\n  throttle_hours: soon\n",
    "feed:\n  job_ttl_days: -1\n",
    "feed:\n  background_workers: true\n",
    "weights:\n  role: 2.5\n",
    "feed:\n  feed_limit_default: 500\n",
    "feed: [1, 2]\n",
    "- just\n- a list\n",
    "feed: {throttle_hours: [\n",
])
def test_invalid_settings_raise_config_error(tmp_path, body):
    path = tmp_path / "settings.yaml"
    path.write_text(body, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_settings(path)


def test_unknown_keys_are_ignored(tmp_path):
    path = _write(tmp_path, "settings.yaml", """
        feed:
          colour: blue
    """)
    assert load_settings(path) == load_settings(tmp_path / "absent.yaml")


def test_load_profile_yaml(tmp_path):
    path = _write(tmp_path, "profile.yaml", """
        target_roles: [Backend Engineer, Platform Engineer]
        skills: [Go, Postgres]
        location: Austin
        work_style: Remote
        salary:
          min: 120000
          max: 160000
        experience:
          - title: Software Engineer
            company: Acme
          - Intern
    """)
    profile = load_profile(path, "user-9")
    assert profile.user_id == "user-9"
    assert profile.target_roles == ["Backend Engineer", "Platform Engineer"]
    assert profile.work_style == "remote"
    assert (profile.salary_min, profile.salary_max) == (120000, 160000)
    assert profile.experience == [Experience("Software Engineer", "Acme"), Experience("Intern")]


def test_load_profile_accepts_legacy_role_keys(tmp_path):
    path = _write(tmp_path, "profile.yaml", """
        core_roles: [Data Engineer]
        skills: [SQL]
    """)
    assert load_profile(path, "u").target_roles == ["Data Engineer"]


def test_profile_from_dict_validation():
    with pytest.raises(ConfigError):
        profile_from_dict("u", {"work_style": "sometimes"})
    with pytest.raises(ConfigError):
        profile_from_dict("u", {"salary_min": "lots"})
    with pytest.raises(ConfigError):
        profile_from_dict("u", {"salary": 100000})
