"""Convert raw provider payloads into canonical FeedJob records.

Each provider has one pure converter. They share the helpers below so
location, salary, job type, dates, descriptions and ids come out in the
same shape whatever the source.
"""
from __future__ import annotations

import hashlib
import re
from dataclasses import fields
from datetime import datetime, timezone
from typing import Any, Callable

from dateutil import parser as date_parser

from jobfeed.models import JOB_TYPES, FeedJob
from jobfeed.text import sanitize_text, strip_html, truncate_utf8

DESCRIPTION_MAX_BYTES = 2000
DEFAULT_JOB_TYPE = "full-time"

_JSEARCH_JOB_TYPES: dict[str, str] = {
    "FULLTIME": "full-time",
    "PARTTIME": "part-time",
    "CONTRACTOR": "contract",
    "INTERN": "internship",
}

_REMOTIVE_JOB_TYPES: dict[str, str] = {
    "full_time": "full-time",
    "part_time": "part-time",
    "contract": "contract",
    "freelance": "contract",
    "internship": "internship",
}

_ANYWHERE = {"anywhere", "worldwide"}

_NUMBER = r"\d[\d,]*(?:\.\d+)?(?:\s*[kK]\b)?"
_AMOUNT = re.compile(_NUMBER)
_CURRENCY_AMOUNT = re.compile(rf"[$£€]\s*{_NUMBER}")
_RANGE = re.compile(rf"([$£€]?\s*{_NUMBER})\s*(?:-|–|to)\s*([$£€]?\s*{_NUMBER})")
_NON_ANNUAL = re.compile(r"\b(hour|hr|hourly|month|mo|monthly|week|weekly|day|daily)\b", re.IGNORECASE)


def _str(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _int(value: Any) -> int:
    try:
        return max(int(float(value)), 0)
    except (TypeError, ValueError, OverflowError):
        return 0


def _str_list(value: Any) -> list[str]:
    if not value or not isinstance(value, (list, tuple)):
        return []
    return [s for s in (_str(v) for v in value) if s]


def namespaced_id(source: str, native: Any, *fallback: str) -> str:
    """Provider-prefixed id; hashes *fallback* fields when the native id is missing."""
    native_id = _str(native)
    if not native_id:
        native_id = hashlib.sha256("|".join(fallback).encode("utf-8")).hexdigest()[:12]
    return f"{source}-{native_id}"


def parse_posted_at(value: Any) -> datetime | None:
    """Parse ISO 8601, RFC 2822, naive timestamps (assumed UTC) or epoch seconds."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)) or (isinstance(value, str) and value.strip().isdigit()):
            return datetime.fromtimestamp(float(value), tz=timezone.utc)
        dt = date_parser.parse(str(value))
    except (ValueError, OverflowError, OSError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _amount(token: str) -> int:
    number = token.strip().lstrip("$£€").strip()
    thousands = number[-1:] in ("k", "K")
    value = float(number.rstrip("kK").strip().replace(",", ""))
    return int(value * 1000 if thousands else value)


def parse_salary_text(text: str) -> tuple[int, int]:
    """Annual (min, max) from free text like "$120k - $160k"; (0, 0) otherwise.

    Only the first range is read, or failing that the first currency amount,
    so perks such as "401k match" never widen the band.
    """
    if not text or _NON_ANNUAL.search(text):
        return 0, 0
    for match in _RANGE.finditer(text):
        low, high = sorted((_amount(match.group(1)), _amount(match.group(2))))
        if low >= 1000:
            return low, high
    for pattern in (_CURRENCY_AMOUNT, _AMOUNT):
        for match in pattern.finditer(text):
            value = _amount(match.group(0))
            if value >= 1000:
                return value, value
    return 0, 0


def format_salary(salary_min: int, salary_max: int, period: str = "YEAR") -> str:
    if salary_min <= 0 and salary_max <= 0:
        return ""
    period = period.upper()
    if period == "YEAR":
        return f"${salary_min // 1000}k - ${salary_max // 1000}k/yr"
    if period == "HOUR":
        return f"${salary_min} - ${salary_max}/hr"
    if period == "MONTH":
        return f"${salary_min:,} - ${salary_max:,}/mo"
    return ""


def clean_description(markup: Any) -> str:
    return truncate_utf8(strip_html(sanitize_text(_str(markup))), DESCRIPTION_MAX_BYTES)


def sanitize_feed_job(job: FeedJob) -> FeedJob:
    """Make every text field safe to persist and pin job_type to a known value, in place."""
    for f in fields(job):
        value = getattr(job, f.name)
        if isinstance(value, str):
            setattr(job, f.name, sanitize_text(value))
    job.required_skills = [sanitize_text(s) for s in job.required_skills or []]
    if job.job_type not in JOB_TYPES:
        job.job_type = DEFAULT_JOB_TYPE
    return job


# ── Providers ────────────────────────────────────────


def normalize_jsearch(raw: dict) -> FeedJob:
    parts: list[str] = []
    if raw.get("job_is_remote"):
        parts.append("Remote")
    city = _str(raw.get("job_city"))
    if city:
        state = _str(raw.get("job_state"))
        parts.append(f"{city}, {state}" if state else city)
    location = " / ".join(parts) or _str(raw.get("job_country"))

    salary_min = _int(raw.get("job_min_salary"))
    salary_max = _int(raw.get("job_max_salary"))
    salary_text = format_salary(salary_min, salary_max, _str(raw.get("job_salary_period")))

    job_type = _JSEARCH_JOB_TYPES.get(_str(raw.get("job_employment_type")).upper(), DEFAULT_JOB_TYPE)

    posted_at = parse_posted_at(raw.get("job_posted_at_datetime_utc"))
    if posted_at is None:
        posted_at = parse_posted_at(raw.get("job_posted_at_timestamp"))

    title = _str(raw.get("job_title"))
    company = _str(raw.get("employer_name"))
    apply_url = _str(raw.get("job_apply_link"))
    return FeedJob(
        source="jsearch",
        external_id=namespaced_id("jsearch", raw.get("job_id"), title, company, apply_url),
        title=title,
        company=company,
        location=location,
        salary_min=salary_min,
        salary_max=salary_max,
        salary_text=salary_text,
        job_type=job_type,
        description=clean_description(raw.get("job_description")),
        required_skills=_str_list(raw.get("job_required_skills")),
        apply_url=apply_url,
        company_logo=_str(raw.get("employer_logo")),
        posted_at=posted_at,
    )


def normalize_remotive(raw: dict) -> FeedJob:
    # Remotive only lists remote roles; the required location narrows eligibility.
    location = "Remote"
    required = _str(raw.get("candidate_required_location"))
    if required and required.lower() not in _ANYWHERE:
        location = f"Remote / {required}"

    salary_text = _str(raw.get("salary"))
    salary_min, salary_max = parse_salary_text(salary_text)

    job_type = _REMOTIVE_JOB_TYPES.get(_str(raw.get("job_type")).lower(), DEFAULT_JOB_TYPE)

    title = _str(raw.get("title"))
    company = _str(raw.get("company_name"))
    url = _str(raw.get("url"))
    return FeedJob(
        source="remotive",
        external_id=namespaced_id("remotive", raw.get("id"), title, company, url),
        title=title,
        company=company,
        location=location,
        salary_min=salary_min,
        salary_max=salary_max,
        salary_text=salary_text,
        job_type=job_type,
        description=clean_description(raw.get("description")),
        required_skills=_str_list(raw.get("tags")),
        apply_url=url,
        company_logo=_str(raw.get("company_logo")),
        posted_at=parse_posted_at(raw.get("publication_date")),
    )


def normalize_adzuna(raw: dict) -> FeedJob:
    loc = raw.get("location") or {}
    location = _str(loc.get("display_name"))
    if not location:
        location = ", ".join(_str_list(loc.get("area")))

    salary_min = _int(raw.get("salary_min"))
    salary_max = _int(raw.get("salary_max"))

    job_type = DEFAULT_JOB_TYPE
    if _str(raw.get("contract_time")).lower() == "part_time":
        job_type = "part-time"
    if _str(raw.get("contract_type")).lower() == "contract":
        job_type = "contract"

    title = _str(raw.get("title"))
    company = _str((raw.get("company") or {}).get("display_name"))
    url = _str(raw.get("redirect_url"))
    return FeedJob(
        source="adzuna",
        external_id=namespaced_id("adzuna", raw.get("id"), title, company, location),
        title=title,
        company=company,
        location=location,
        salary_min=salary_min,
        salary_max=salary_max,
        salary_text=format_salary(salary_min, salary_max),
        job_type=job_type,
        description=clean_description(raw.get("description")),
        required_skills=[],
        apply_url=url,
        company_logo="",
        posted_at=parse_posted_at(raw.get("created")),
    )


NORMALIZERS: dict[str, Callable[[dict], FeedJob]] = {
    "jsearch": normalize_jsearch,
    "remotive": normalize_remotive,
    "adzuna": normalize_adzuna,
}


def normalize(source: str, raw: dict) -> FeedJob:
    try:
        converter = NORMALIZERS[source]
    except KeyError:
        raise ValueError(f"No normalizer for source: {source!r}") from None
    return converter(raw)
