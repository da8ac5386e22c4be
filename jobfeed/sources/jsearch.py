"""JSearch API (RapidAPI): aggregated listings from Google for Jobs."""
from __future__ import annotations

from jobfeed.errors import SourceError
from jobfeed.log import get_logger
from jobfeed.planner import JSearchQuery
from jobfeed.sources.base import Deadline, JobSearchBase

log = get_logger(__name__)

MAX_PAGES = 5
# A page shorter than this means there are no further pages.
FULL_PAGE = 10


class JSearchSource(JobSearchBase):
    name = "jsearch"
    BASE = "https://jsearch.p.rapidapi.com"

    def __init__(self, api_key: str, request_timeout: float = 20.0) -> None:
        super().__init__(request_timeout)
        self.api_key = api_key

    def enabled(self) -> bool:
        return bool(self.api_key)

    def _query_string(self, q: JSearchQuery) -> str:
        if q.remote_only:
            return f"{q.query} remote"
        if q.location:
            return f"{q.query} in {q.location}"
        return q.query

    def search(self, query: JSearchQuery, deadline: Deadline) -> list[dict]:
        """Fetch each page separately; free-tier plans may cap ``num_pages``."""
        if not self.api_key:
            raise SourceError(self.name, "RapidAPI key not configured")

        text = self._query_string(query)
        pages = query.num_pages if 0 < query.num_pages <= MAX_PAGES else 1
        results: list[dict] = []

        for page in range(1, pages + 1):
            params = {
                "query": text,
                "page": str(page),
                "num_pages": "1",
                "date_posted": "month",
            }
            if query.remote_only:
                params["remote_jobs_only"] = "true"

            try:
                data = self._get_json(
                    f"{self.BASE}/search",
                    deadline,
                    params=params,
                    headers={
                        "X-RapidAPI-Key": self.api_key,
                        "X-RapidAPI-Host": "jsearch.p.rapidapi.com",
                    },
                )
                batch = self._listings(data, "data")
            except SourceError:
                if page == 1:
                    raise
                # Later pages failing usually means a rate limit; keep what we have.
                log.warning("JSearch page %d failed for %r — keeping %d results", page, text, len(results))
                break

            results.extend(batch)
            log.debug("JSearch query=%r page=%d returned %d jobs", text, page, len(batch))
            if len(batch) < FULL_PAGE:
                break

        return results
