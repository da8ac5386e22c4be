from __future__ import annotations

import pytest

from conftest import make_profile
from jobfeed.models import Experience
from jobfeed.planner import (
    ADZUNA_MAX_QUERIES,
    FALLBACK_QUERY,
    JSEARCH_MAX_QUERIES,
    REMOTIVE_MAX_QUERIES,
    JSearchQuery,
    RemotiveQuery,
    category_terms,
    plan_adzuna,
    plan_for,
    plan_jsearch,
    plan_remotive,
    skill_bundle,
)


def _bare(**overrides):
    values = dict(target_roles=[], skills=[], location="", work_style="", salary_min=0, experience=[])
    values.update(overrides)
    return make_profile(**values)


# ── JSearch ──────────────────────────────────────────


def test_jsearch_roles_come_first_with_most_pages():
    plan = plan_jsearch(_bare(target_roles=["Backend Engineer", "SRE"], skills=["Go", "Postgres", "Docker"]))
    assert [q.query for q in plan] == ["Backend Engineer", "SRE", "Go Postgres Docker developer"]
    assert [q.num_pages for q in plan] == [3, 3, 2]


def test_jsearch_adds_second_skill_bundle_and_experience():
    profile = _bare(
        target_roles=["Backend Engineer"],
        skills=["Go", "Postgres", "Docker", "Kafka", "Redis"],
        experience=[Experience("Platform Engineer"), Experience("SRE"), Experience("Intern")],
    )
    assert [q.query for q in plan_jsearch(profile)] == [
        "Backend Engineer",
        "Go Postgres Docker developer",
        "Kafka Redis engineer",
        "Platform Engineer",
        "SRE",
    ]


def test_jsearch_dedups_case_insensitively_and_caps():
    roles = ["Backend Engineer", "backend engineer"] + [f"Role {i}" for i in range(12)]
    plan = plan_jsearch(_bare(target_roles=roles))
    assert len(plan) == JSEARCH_MAX_QUERIES
    assert [q.query.lower() for q in plan].count("backend engineer") == 1


def test_jsearch_fallback_when_profile_is_empty():
    assert plan_jsearch(_bare()) == [JSearchQuery(FALLBACK_QUERY, num_pages=2)]


def test_jsearch_carries_location_and_remote_flag():
    [q] = plan_jsearch(_bare(target_roles=["SRE"], location="Austin", work_style="remote"))
    assert q.location == "Austin"
    assert q.remote_only is True


# ── Remotive ─────────────────────────────────────────


def test_remotive_skips_onsite_users():
    assert plan_remotive(_bare(target_roles=["SRE"], work_style="onsite")) == []


def test_remotive_roles_skills_categories_experience():
    profile = _bare(
        target_roles=["Backend Engineer"],
        skills=["Go", "Kubernetes", "SQL"],
        experience=[Experience("Platform Engineer")],
    )
    assert plan_remotive(profile) == [
        RemotiveQuery(search="Backend Engineer", limit=50),
        RemotiveQuery(search="Go Kubernetes SQL", limit=50),
        RemotiveQuery(category="software-dev", limit=50),
        RemotiveQuery(category="devops-sysadmin", limit=50),
        RemotiveQuery(category="data", limit=50),
        RemotiveQuery(search="Platform Engineer", limit=30),
    ]


def test_remotive_has_no_fallback():
    assert plan_remotive(_bare()) == []


def test_remotive_cap():
    plan = plan_remotive(_bare(target_roles=[f"Role {i}" for i in range(10)]))
    assert len(plan) == REMOTIVE_MAX_QUERIES


def test_category_terms_are_distinct_and_ordered():
    profile = _bare(skills=["Python", "Go", "Figma", "Unknown", "Docker"])
    assert category_terms(profile) == ["software-dev", "design", "devops-sysadmin"]


# ── Adzuna ───────────────────────────────────────────


def test_adzuna_remote_user_appends_remote_and_drops_location():
    plan = plan_adzuna(_bare(target_roles=["SRE"], location="Austin", work_style="remote", salary_min=90000))
    [q] = plan[:1]
    assert q.keywords == "SRE remote"
    assert q.location == ""
    assert (q.results_per_page, q.max_days_old, q.full_time, q.salary_min) == (50, 30, True, 90000)


def test_adzuna_onsite_user_keeps_location_and_country():
    [q, *_] = plan_adzuna(_bare(target_roles=["SRE"], location="London", work_style="onsite"), country="gb")
    assert q.keywords == "SRE"
    assert q.location == "London"
    assert q.country == "gb"


def test_adzuna_fallback_and_cap():
    assert [q.keywords for q in plan_adzuna(_bare())] == [FALLBACK_QUERY, "developer"]
    plan = plan_adzuna(_bare(target_roles=[f"Role {i}" for i in range(10)]))
    assert len(plan) == ADZUNA_MAX_QUERIES


# ── Shared ───────────────────────────────────────────


def test_skill_bundle_slices_and_skips_blanks():
    profile = _bare(skills=["Go", " ", "Rust", "SQL", "Kafka"])
    assert skill_bundle(profile, 0, 3) == "Go Rust SQL"
    assert skill_bundle(profile, 3, 3) == "Kafka"


def test_plan_for_dispatches_and_rejects_unknown():
    profile = _bare(target_roles=["SRE"])
    assert plan_for("jsearch", profile) == plan_jsearch(profile)
    with pytest.raises(ValueError):
        plan_for("monster", profile)
