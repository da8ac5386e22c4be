"""Remotive: free API for remote tech jobs, no key required.

Docs: https://remotive.com/api/remote-jobs
"""
from __future__ import annotations

from jobfeed.log import get_logger
from jobfeed.planner import RemotiveQuery
from jobfeed.sources.base import Deadline, JobSearchBase

log = get_logger(__name__)

API_URL = "https://remotive.com/api/remote-jobs"


class RemotiveSource(JobSearchBase):
    name = "remotive"

    def __init__(self, enabled: bool = True, request_timeout: float = 20.0) -> None:
        super().__init__(request_timeout)
        self._enabled = enabled

    def enabled(self) -> bool:
        return self._enabled

    def search(self, query: RemotiveQuery, deadline: Deadline) -> list[dict]:
        params: dict = {"limit": query.limit if query.limit > 0 else 20}
        if query.search:
            params["search"] = query.search
        if query.category:
            params["category"] = query.category

        data = self._get_json(API_URL, deadline, params=params)
        jobs = self._listings(data, "jobs")
        log.debug("Remotive search=%r category=%r returned %d jobs", query.search, query.category, len(jobs))
        return jobs
