"""Data models for profiles, canonical feed jobs and per-user feed entries."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

JOB_TYPES: tuple[str, ...] = ("full-time", "part-time", "contract", "internship")


@dataclass
class Experience:
    title: str
    company: str = ""


@dataclass
class Profile:
    """Read-only view of a user's job preferences."""

    user_id: str
    target_roles: list[str] = field(default_factory=list)
    skills: list[str] = field(default_factory=list)
    location: str = ""
    work_style: str = ""
    salary_min: int = 0
    salary_max: int = 0
    experience: list[Experience] = field(default_factory=list)

    @property
    def is_remote(self) -> bool:
        return self.work_style.strip().lower() == "remote"

    def scoring_signature(self) -> tuple:
        """Fields that feed into the match score; a change means a rescore."""
        return (
            tuple(self.target_roles),
            tuple(s.lower() for s in self.skills),
            self.location.strip().lower(),
            self.work_style.strip().lower(),
            self.salary_min,
            self.salary_max,
        )


@dataclass
class FeedJob:
    source: str
    external_id: str
    title: str
    company: str = ""
    location: str = ""
    salary_min: int = 0
    salary_max: int = 0
    salary_text: str = ""
    job_type: str = "full-time"
    description: str = ""
    required_skills: list[str] = field(default_factory=list)
    apply_url: str = ""
    company_logo: str = ""
    posted_at: datetime | None = None
    fetched_at: datetime | None = None
    expires_at: datetime | None = None
    id: int | None = None


@dataclass
class FeedEntry:
    """A FeedJob joined with one user's link fields."""

    job: FeedJob
    match_score: int
    dismissed: bool = False
    saved: bool = False
    saved_job_id: int | None = None


@dataclass
class SavedJob:
    id: int
    user_id: str
    source: str
    external_id: str
    title: str
    company: str
    location: str
    salary_range: str
    job_type: str
    description: str
    required_skills: list[str]
    apply_url: str
    company_logo: str
    match_score: int
    status: str = "saved"
    created_at: datetime | None = None


@dataclass
class RefreshResult:
    fetched: int = 0
    new: int = 0
    throttled: bool = False
    abandoned: list[str] = field(default_factory=list)
