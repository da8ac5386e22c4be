"""Derive per-provider search queries from a profile.

Each provider gets an ordered, deduplicated, capped plan built from the
same priority of signals: target roles, then skills, then (Remotive only)
skill categories, then recent experience titles, then a generic fallback.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from jobfeed.models import Profile

FALLBACK_QUERY = "software engineer"

JSEARCH_MAX_QUERIES = 8
REMOTIVE_MAX_QUERIES = 6
ADZUNA_MAX_QUERIES = 6

# Map common skill keywords to Remotive category slugs.
REMOTIVE_CATEGORY_MAP: dict[str, str] = {
    "react": "software-dev",
    "javascript": "software-dev",
    "python": "software-dev",
    "go": "software-dev",
    "golang": "software-dev",
    "java": "software-dev",
    "typescript": "software-dev",
    "rust": "software-dev",
    "node": "software-dev",
    "node.js": "software-dev",
    "ruby": "software-dev",
    "swift": "software-dev",
    "kotlin": "software-dev",
    "c++": "software-dev",
    "c#": "software-dev",
    ".net": "software-dev",
    "php": "software-dev",
    "vue": "software-dev",
    "angular": "software-dev",
    "figma": "design",
    "ui/ux": "design",
    "design": "design",
    "devops": "devops-sysadmin",
    "kubernetes": "devops-sysadmin",
    "docker": "devops-sysadmin",
    "terraform": "devops-sysadmin",
    "aws": "devops-sysadmin",
    "azure": "devops-sysadmin",
    "gcp": "devops-sysadmin",
    "data science": "data",
    "machine learning": "data",
    "sql": "data",
    "analytics": "data",
    "product": "product",
    "qa": "qa",
    "testing": "qa",
}


@dataclass(frozen=True)
class JSearchQuery:
    query: str
    location: str = ""
    remote_only: bool = False
    num_pages: int = 1

    @property
    def key(self) -> str:
        return self.query.lower()

    def label(self) -> str:
        return self.query


@dataclass(frozen=True)
class RemotiveQuery:
    search: str = ""
    category: str = ""
    limit: int = 20

    @property
    def key(self) -> str:
        if self.category:
            return f"category:{self.category}"
        return self.search.lower()

    def label(self) -> str:
        return self.search or f"category={self.category}"


@dataclass(frozen=True)
class AdzunaQuery:
    keywords: str
    location: str = ""
    country: str = "us"
    results_per_page: int = 25
    max_days_old: int = 0
    full_time: bool = False
    salary_min: int = 0

    @property
    def key(self) -> str:
        return self.keywords.lower()

    def label(self) -> str:
        return self.keywords


ProviderQuery = Union[JSearchQuery, RemotiveQuery, AdzunaQuery]
Q = TypeVar("Q", JSearchQuery, RemotiveQuery, AdzunaQuery)


class _PlanBuilder(Generic[Q]):
    """Collects queries in priority order, dropping duplicates and overflow."""

    def __init__(self, cap: int) -> None:
        self.cap = cap
        self.queries: list[Q] = []
        self._seen: set[str] = set()

    def __len__(self) -> int:
        return len(self.queries)

    def add(self, query: Q, key: str) -> bool:
        key = key.strip().lower()
        if not key or key in self._seen or len(self.queries) >= self.cap:
            return False
        self._seen.add(key)
        self.queries.append(query)
        return True


# ── Candidate rules ──────────────────────────────────


def role_terms(profile: Profile) -> list[str]:
    return [r.strip() for r in profile.target_roles if r.strip()]


def skill_bundle(profile: Profile, start: int = 0, size: int = 3) -> str:
    """Join a slice of the user's skills into one keyword string."""
    skills = [s.strip() for s in profile.skills if s.strip()]
    return " ".join(skills[start:start + size])


def category_terms(profile: Profile, category_map: dict[str, str] = REMOTIVE_CATEGORY_MAP) -> list[str]:
    """Distinct provider categories implied by the user's skills, in skill order."""
    categories: list[str] = []
    for skill in profile.skills:
        cat = category_map.get(skill.strip().lower())
        if cat and cat not in categories:
            categories.append(cat)
    return categories


def experience_terms(profile: Profile, count: int = 1) -> list[str]:
    titles = [e.title.strip() for e in profile.experience[:count]]
    return [t for t in titles if t]


# ── Provider plans ───────────────────────────────────


def plan_jsearch(profile: Profile) -> list[JSearchQuery]:
    """Target roles are the primary driver and get the most pages."""
    location = profile.location.strip()
    remote = profile.is_remote
    plan: _PlanBuilder[JSearchQuery] = _PlanBuilder(JSEARCH_MAX_QUERIES)

    def add(text: str, pages: int) -> None:
        plan.add(JSearchQuery(text, location=location, remote_only=remote, num_pages=pages), text)

    for role in role_terms(profile):
        add(role, 3)

    top = skill_bundle(profile, 0, 3)
    if top and len(plan) < 4:
        add(f"{top} developer", 2)

    more = skill_bundle(profile, 3, 3)
    if more and len(plan) < 5:
        add(f"{more} engineer", 2)

    for title in experience_terms(profile, 2):
        if len(plan) >= 6:
            break
        add(title, 2)

    if not plan.queries:
        add(FALLBACK_QUERY, 2)

    return plan.queries


def plan_remotive(profile: Profile) -> list[RemotiveQuery]:
    """Remotive lists remote jobs only, so onsite-only users get no plan."""
    if profile.work_style.strip().lower() == "onsite":
        return []

    plan: _PlanBuilder[RemotiveQuery] = _PlanBuilder(REMOTIVE_MAX_QUERIES)

    for role in role_terms(profile):
        plan.add(RemotiveQuery(search=role, limit=50), role)

    top = skill_bundle(profile, 0, 3)
    if top and len(plan) < 3:
        plan.add(RemotiveQuery(search=top, limit=50), top)

    for cat in category_terms(profile):
        if len(plan) >= 5:
            break
        plan.add(RemotiveQuery(category=cat, limit=50), f"category:{cat}")

    for title in experience_terms(profile, 1):
        if len(plan) < 6:
            plan.add(RemotiveQuery(search=title, limit=30), title)

    return plan.queries


def plan_adzuna(profile: Profile, country: str = "us") -> list[AdzunaQuery]:
    remote = profile.is_remote
    location = profile.location.strip()
    plan: _PlanBuilder[AdzunaQuery] = _PlanBuilder(ADZUNA_MAX_QUERIES)

    def add(keywords: str) -> None:
        plan.add(
            AdzunaQuery(
                keywords=f"{keywords} remote" if remote else keywords,
                location="" if remote else location,
                country=country,
                results_per_page=50,
                max_days_old=30,
                full_time=True,
                salary_min=max(profile.salary_min, 0),
            ),
            keywords,
        )

    for role in role_terms(profile):
        add(role)

    top = skill_bundle(profile, 0, 3)
    if top and len(plan) < 4:
        add(top)

    for title in experience_terms(profile, 1):
        if len(plan) < 5:
            add(title)

    if not plan.queries:
        add(FALLBACK_QUERY)
        add("developer")

    return plan.queries


PLANNERS = {
    "jsearch": plan_jsearch,
    "remotive": plan_remotive,
    "adzuna": plan_adzuna,
}


def plan_for(source: str, profile: Profile) -> list[ProviderQuery]:
    try:
        planner = PLANNERS[source]
    except KeyError:
        raise ValueError(f"No query planner for source: {source!r}") from None
    return list(planner(profile))
