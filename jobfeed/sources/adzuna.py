"""Adzuna job search: aggregator with salary data.

Free tier: 250 requests/day.  Sign up at https://developer.adzuna.com/
"""
from __future__ import annotations

from jobfeed.log import get_logger
from jobfeed.models import Profile
from jobfeed.planner import AdzunaQuery, plan_adzuna
from jobfeed.sources.base import Deadline, JobSearchBase

log = get_logger(__name__)

BASE_URL = "https://api.adzuna.com/v1/api/jobs"
MAX_PER_PAGE = 50


class AdzunaSource(JobSearchBase):
    name = "adzuna"

    def __init__(self, app_id: str, app_key: str, country: str = "us", request_timeout: float = 20.0) -> None:
        super().__init__(request_timeout)
        self.app_id = app_id
        self.app_key = app_key
        self.country = (country or "us").lower()

    def enabled(self) -> bool:
        return bool(self.app_id and self.app_key)

    def plan(self, profile: Profile) -> list[AdzunaQuery]:
        return plan_adzuna(profile, country=self.country)

    def search(self, query: AdzunaQuery, deadline: Deadline) -> list[dict]:
        if not self.enabled():
            return []

        per_page = query.results_per_page
        if per_page <= 0 or per_page > MAX_PER_PAGE:
            per_page = 25

        params: dict = {
            "app_id": self.app_id,
            "app_key": self.app_key,
            "results_per_page": per_page,
            "sort_by": "date",
            "content-type": "application/json",
        }
        if query.keywords:
            params["what"] = query.keywords
        if query.location:
            params["where"] = query.location
        if query.max_days_old > 0:
            params["max_days_old"] = query.max_days_old
        if query.full_time:
            params["full_time"] = 1
        if query.salary_min > 0:
            params["salary_min"] = query.salary_min

        country = query.country or self.country
        data = self._get_json(f"{BASE_URL}/{country}/search/1", deadline, params=params)
        jobs = self._listings(data, "results")
        log.debug("Adzuna what=%r where=%r returned %d jobs", query.keywords, query.location, len(jobs))
        return jobs
