"""Shared fixtures: a temp SQLite feed database, a controllable clock,
profile/job factories and scripted in-memory sources.
"""
from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from jobfeed.errors import SourceError
from jobfeed.models import Experience, FeedJob, Profile
from jobfeed.planner import JSearchQuery
from jobfeed.sources.base import Deadline, JobSearchBase
from jobfeed.store import Database, FeedStore, ProfileStore

START = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class Clock:
    """Wall clock the tests move by hand."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


def make_profile(user_id: str = "user-1", **overrides: Any) -> Profile:
    values: dict[str, Any] = {
        "target_roles": ["Backend Engineer"],
        "skills": ["Go", "Postgres"],
        "location": "Austin",
        "work_style": "remote",
        "salary_min": 120000,
        "salary_max": 160000,
        "experience": [Experience("Software Engineer", "Acme")],
    }
    values.update(overrides)
    return Profile(user_id=user_id, **values)


def make_job(external_id: str = "jsearch-1", source: str = "jsearch", **overrides: Any) -> FeedJob:
    values: dict[str, Any] = {
        "title": "Senior Backend Engineer",
        "company": "Initech",
        "location": "Remote",
        "salary_min": 130000,
        "salary_max": 150000,
        "description": "Build Go services on Postgres.",
        "required_skills": ["Go", "Kubernetes"],
        "apply_url": "https://example.com/apply",
    }
    values.update(overrides)
    return FeedJob(source=source, external_id=external_id, **values)


def raw_listing(native_id: str, title: str = "Backend Engineer", **extra: Any) -> dict:
    return {"id": native_id, "title": title, **extra}


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code: int = 200, payload: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class Recorder:
    """Stands in for requests.get, replaying responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def __call__(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeSource(JobSearchBase):
    """Scripted adapter: fixed plan, canned listings, optional failures."""

    def __init__(
        self,
        name: str,
        listings: list[dict] | None = None,
        *,
        queries: list | None = None,
        fail_on: set[str] | None = None,
        fail_all: bool = False,
        gate: threading.Event | None = None,
        enabled: bool = True,
    ) -> None:
        super().__init__()
        self.name = name
        self.listings = listings or []
        self.queries = [JSearchQuery("backend engineer")] if queries is None else queries
        self.fail_on = fail_on or set()
        self.fail_all = fail_all
        self.gate = gate
        self._enabled = enabled
        self.calls: list[str] = []

    def enabled(self) -> bool:
        return self._enabled

    def plan(self, profile: Profile) -> list:
        return list(self.queries)

    def normalize(self, raw: dict) -> FeedJob:
        return FeedJob(
            source=self.name,
            external_id=f"{self.name}-{raw['id']}",
            title=raw["title"],
            location=raw.get("location", "Remote"),
            description=raw.get("description", ""),
            required_skills=list(raw.get("skills", [])),
        )

    def search(self, query: Any, deadline: Deadline) -> list[dict]:
        self.calls.append(query.label())
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.fail_all or query.label() in self.fail_on:
            raise SourceError(self.name, f"HTTP 503 for {query.label()!r}")
        return [dict(item) for item in self.listings]


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def db(tmp_path, clock):
    database = Database(tmp_path / "feed.sqlite3", clock=clock).connect()
    yield database
    database.close()


@pytest.fixture
def feed_store(db) -> FeedStore:
    return FeedStore(db)


@pytest.fixture
def profile_store(db) -> ProfileStore:
    return ProfileStore(db)


@pytest.fixture
def profile(profile_store) -> Profile:
    p = make_profile()
    profile_store.upsert(p)
    return p
