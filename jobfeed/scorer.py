"""Score a canonical job against a user profile.

Pure and deterministic: the same (Profile, FeedJob) always gives the same
0-100 integer. Breakdown with default weights:

  - Base:                30 points
  - Target role match:   up to +25 (highest weight)
  - Skill overlap:       up to +25
  - Keyword mentions:    up to +10
  - Location match:      +5
  - Salary match:        +5
"""
from __future__ import annotations

from dataclasses import dataclass

from jobfeed.config import ScoringWeights
from jobfeed.models import FeedJob, Profile

DEFAULT_WEIGHTS = ScoringWeights()
MAX_SCORE = 100


@dataclass(frozen=True)
class ScoreBreakdown:
    base: int
    role: int
    skill_overlap: int
    keywords: int
    location: int
    salary: int

    @property
    def total(self) -> int:
        raw = self.base + self.role + self.skill_overlap + self.keywords + self.location + self.salary
        return max(0, min(max(raw, self.base), MAX_SCORE))


def _normalize(s: str) -> str:
    return (s or "").lower().strip()


def role_match_ratio(roles: list[str], title: str, text: str) -> float:
    """Best match of any target role against the job, in [0, 1].

    A role phrase inside the title scores 1.0; otherwise the fraction of the
    role's words found in the title. A phrase found only in title+description
    earns 0.5 when nothing better matched.
    """
    title_norm = _normalize(title)
    text_norm = _normalize(text)
    best = 0.0
    for role_raw in roles:
        role = _normalize(role_raw)
        if not role:
            continue
        if role in title_norm:
            return 1.0

        words = role.split()
        matched = sum(1 for w in words if w in title_norm)
        best = max(best, matched / len(words))

        if best < 0.5 and role in text_norm:
            best = 0.5
    return best


def skill_overlap_ratio(user_skills: list[str], job_skills: list[str]) -> float:
    """Share of the job's required skills the user has (case-insensitive)."""
    if not job_skills:
        return 0.0
    have = {_normalize(s) for s in user_skills if _normalize(s)}
    matches = sum(1 for s in job_skills if _normalize(s) in have)
    return matches / len(job_skills)


def skill_mentions(user_skills: list[str], text: str) -> int:
    text_norm = _normalize(text)
    return sum(1 for s in user_skills if _normalize(s) and _normalize(s) in text_norm)


def location_fits(profile: Profile, job: FeedJob) -> bool:
    job_loc = _normalize(job.location)
    if not job_loc:
        return False
    if profile.is_remote and "remote" in job_loc:
        return True
    user_loc = _normalize(profile.location)
    return bool(user_loc) and user_loc in job_loc


def salary_fits(profile: Profile, job: FeedJob) -> bool:
    if profile.salary_min <= 0 or job.salary_max <= 0:
        return False
    return job.salary_max >= profile.salary_min


def explain_score(profile: Profile, job: FeedJob, weights: ScoringWeights = DEFAULT_WEIGHTS) -> ScoreBreakdown:
    text = f"{job.title} {job.description}"

    # --- Role match (title-first) ---
    role_points = 0
    if profile.target_roles:
        ratio = role_match_ratio(profile.target_roles, job.title, text)
        role_points = min(int(ratio * weights.role), weights.role)

    # --- Skills ---
    overlap_points = 0
    keyword_points = 0
    if profile.skills:
        ratio = skill_overlap_ratio(profile.skills, job.required_skills)
        overlap_points = min(int(ratio * weights.skill_overlap), weights.skill_overlap)
        keyword_points = min(skill_mentions(profile.skills, text) * weights.keyword_per_skill, weights.keyword_cap)

    return ScoreBreakdown(
        base=weights.base,
        role=role_points,
        skill_overlap=overlap_points,
        keywords=keyword_points,
        location=weights.location if location_fits(profile, job) else 0,
        salary=weights.salary if salary_fits(profile, job) else 0,
    )


def score_job(profile: Profile, job: FeedJob, weights: ScoringWeights = DEFAULT_WEIGHTS) -> int:
    return explain_score(profile, job, weights).total
