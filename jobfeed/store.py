"""SQLite persistence for profiles, the shared job cache and per-user feeds.

``feed_jobs`` is a cache shared by every user and deduplicated on
(source, external_id); rows live until their TTL regardless of which user
fetched them. ``user_feed`` links a user to a cached job with that user's
match score and dismiss/save flags.
"""
from __future__ import annotations

import json
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Iterator

from jobfeed.config import profile_from_dict
from jobfeed.errors import FeedJobNotFoundError, StoreError
from jobfeed.log import get_logger
from jobfeed.models import FeedEntry, FeedJob, Profile, SavedJob

log = get_logger(__name__)

DEFAULT_TTL = timedelta(days=7)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS profiles (
    user_id TEXT PRIMARY KEY,
    config_json TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS feed_jobs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    external_id TEXT NOT NULL,
    source TEXT NOT NULL,
    title TEXT NOT NULL,
    company TEXT NOT NULL DEFAULT '',
    location TEXT NOT NULL DEFAULT '',
    salary_min INTEGER NOT NULL DEFAULT 0,
    salary_max INTEGER NOT NULL DEFAULT 0,
    salary_text TEXT NOT NULL DEFAULT '',
    job_type TEXT NOT NULL DEFAULT 'full-time',
    description TEXT NOT NULL DEFAULT '',
    required_skills TEXT NOT NULL DEFAULT '[]',
    apply_url TEXT NOT NULL DEFAULT '',
    company_logo TEXT NOT NULL DEFAULT '',
    posted_at TEXT,
    fetched_at TEXT NOT NULL,
    expires_at TEXT,
    UNIQUE(external_id, source)
);

CREATE TABLE IF NOT EXISTS saved_jobs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL REFERENCES profiles(user_id) ON DELETE CASCADE,
    external_id TEXT NOT NULL,
    source TEXT NOT NULL,
    title TEXT NOT NULL,
    company TEXT NOT NULL DEFAULT '',
    location TEXT NOT NULL DEFAULT '',
    salary_range TEXT NOT NULL DEFAULT '',
    job_type TEXT NOT NULL DEFAULT '',
    description TEXT NOT NULL DEFAULT '',
    required_skills TEXT NOT NULL DEFAULT '[]',
    apply_url TEXT NOT NULL DEFAULT '',
    company_logo TEXT NOT NULL DEFAULT '',
    match_score INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'saved',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS user_feed (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL REFERENCES profiles(user_id) ON DELETE CASCADE,
    feed_job_id INTEGER NOT NULL REFERENCES feed_jobs(id) ON DELETE CASCADE,
    match_score INTEGER NOT NULL DEFAULT 0,
    dismissed INTEGER NOT NULL DEFAULT 0,
    saved INTEGER NOT NULL DEFAULT 0,
    saved_job_id INTEGER REFERENCES saved_jobs(id) ON DELETE SET NULL,
    created_at TEXT NOT NULL,
    UNIQUE(user_id, feed_job_id)
);

CREATE TABLE IF NOT EXISTS feed_refresh_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL REFERENCES profiles(user_id) ON DELETE CASCADE,
    query_used TEXT NOT NULL DEFAULT '',
    jobs_fetched INTEGER NOT NULL DEFAULT 0,
    jobs_new INTEGER NOT NULL DEFAULT 0,
    refreshed_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_feed_jobs_expires ON feed_jobs(expires_at);
CREATE INDEX IF NOT EXISTS idx_user_feed_user ON user_feed(user_id, dismissed, match_score DESC);
CREATE INDEX IF NOT EXISTS idx_user_feed_job ON user_feed(feed_job_id);
CREATE INDEX IF NOT EXISTS idx_feed_refresh_user ON feed_refresh_log(user_id, refreshed_at DESC);
"""

_FEED_JOB_COLUMNS = """fj.id, fj.external_id, fj.source, fj.title, fj.company, fj.location,
       fj.salary_min, fj.salary_max, fj.salary_text, fj.job_type,
       fj.description, fj.required_skills, fj.apply_url, fj.company_logo,
       fj.posted_at, fj.fetched_at, fj.expires_at"""

_LINK_COLUMNS = "uf.match_score, uf.dismissed, uf.saved, uf.saved_job_id"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


class Database:
    """One shared SQLite connection guarded by a re-entrant lock."""

    def __init__(self, database_path: str | Path, clock: Callable[[], datetime] = utcnow) -> None:
        self.database_path = str(database_path)
        self.now = clock
        self._connection: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    @property
    def connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise RuntimeError("Database connection is not initialized")
        return self._connection

    def connect(self) -> Database:
        with self._lock:
            if self._connection is not None:
                return self
            if self.database_path != ":memory:":
                Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)
            try:
                self._connection = sqlite3.connect(self.database_path, check_same_thread=False)
                self._connection.row_factory = sqlite3.Row
                self._connection.execute("PRAGMA foreign_keys=ON")
                self._connection.executescript(_SCHEMA)
                self._connection.commit()
            except sqlite3.Error as exc:
                raise StoreError(f"opening {self.database_path}: {exc}") from exc
            log.debug("Opened feed database %s", self.database_path)
        return self

    def close(self) -> None:
        with self._lock:
            if self._connection is None:
                return
            self._connection.close()
            self._connection = None

    @contextmanager
    def transaction(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Run a unit of work atomically; sqlite errors become StoreError."""
        with self._lock:
            conn = self.connection
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                raise StoreError(f"{operation}: {exc}") from exc
            except BaseException:
                conn.rollback()
                raise


class ProfileStore:
    def __init__(self, db: Database) -> None:
        self.db = db

    def find_by_id(self, user_id: str) -> Profile | None:
        with self.db.transaction("finding profile") as conn:
            row = conn.execute(
                "SELECT config_json FROM profiles WHERE user_id = ?", (user_id,)
            ).fetchone()
        if row is None:
            return None
        return profile_from_dict(user_id, json.loads(row["config_json"]))

    def upsert(self, profile: Profile) -> None:
        data = asdict(profile)
        data.pop("user_id")
        now = _iso(self.db.now())
        with self.db.transaction("saving profile") as conn:
            conn.execute(
                """
                INSERT INTO profiles (user_id, config_json, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    config_json = excluded.config_json,
                    updated_at = excluded.updated_at
                """,
                (profile.user_id, json.dumps(data), now, now),
            )

    def delete(self, user_id: str) -> bool:
        """Remove a profile; its links, saved jobs and refresh log cascade."""
        with self.db.transaction("deleting profile") as conn:
            cur = conn.execute("DELETE FROM profiles WHERE user_id = ?", (user_id,))
        return cur.rowcount > 0


class FeedStore:
    def __init__(self, db: Database, ttl: timedelta = DEFAULT_TTL) -> None:
        self.db = db
        self.ttl = ttl

    # -- shared job cache ----------------------------------------------------

    def upsert_feed_job(self, job: FeedJob) -> tuple[FeedJob, bool]:
        """Insert by (source, external_id) or refresh title and fetched_at.

        Returns the stored row and whether it was newly created.
        """
        now = self.db.now()
        with self.db.transaction("upserting feed job") as conn:
            cur = conn.execute(
                """
                INSERT INTO feed_jobs (external_id, source, title, company, location,
                                       salary_min, salary_max, salary_text, job_type,
                                       description, required_skills, apply_url, company_logo,
                                       posted_at, fetched_at, expires_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(external_id, source) DO NOTHING
                """,
                (
                    job.external_id, job.source, job.title, job.company, job.location,
                    job.salary_min, job.salary_max, job.salary_text, job.job_type,
                    job.description, json.dumps(job.required_skills or []), job.apply_url,
                    job.company_logo, _iso(job.posted_at), _iso(now), _iso(now + self.ttl),
                ),
            )
            created = cur.rowcount == 1
            if not created:
                conn.execute(
                    """
                    UPDATE feed_jobs SET title = ?, fetched_at = ?
                    WHERE external_id = ? AND source = ?
                    """,
                    (job.title, _iso(now), job.external_id, job.source),
                )
            row = conn.execute(
                f"SELECT {_FEED_JOB_COLUMNS} FROM feed_jobs fj WHERE fj.external_id = ? AND fj.source = ?",
                (job.external_id, job.source),
            ).fetchone()
        return _to_feed_job(row), created

    def get_feed_job(self, feed_job_id: int) -> FeedJob | None:
        with self.db.transaction("getting feed job") as conn:
            row = conn.execute(
                f"SELECT {_FEED_JOB_COLUMNS} FROM feed_jobs fj WHERE fj.id = ?", (feed_job_id,)
            ).fetchone()
        return _to_feed_job(row) if row else None

    def clean_expired_feed_jobs(self) -> int:
        with self.db.transaction("cleaning expired jobs") as conn:
            cur = conn.execute(
                "DELETE FROM feed_jobs WHERE expires_at IS NOT NULL AND expires_at < ?",
                (_iso(self.db.now()),),
            )
        return cur.rowcount

    # -- per-user links ------------------------------------------------------

    def link_job_to_user(self, user_id: str, feed_job_id: int, match_score: int) -> None:
        """Create the link or overwrite its score; flags are left alone."""
        with self.db.transaction("linking job to user") as conn:
            conn.execute(
                """
                INSERT INTO user_feed (user_id, feed_job_id, match_score, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, feed_job_id) DO UPDATE SET
                    match_score = excluded.match_score
                """,
                (user_id, feed_job_id, match_score, _iso(self.db.now())),
            )

    def get_user_feed(self, user_id: str, limit: int = 30) -> list[FeedEntry]:
        """Ranked, non-dismissed, unexpired jobs for a user."""
        if limit <= 0:
            limit = 30
        with self.db.transaction("getting user feed") as conn:
            rows = conn.execute(
                f"""
                SELECT {_FEED_JOB_COLUMNS}, {_LINK_COLUMNS}
                FROM user_feed uf
                JOIN feed_jobs fj ON fj.id = uf.feed_job_id
                WHERE uf.user_id = ?
                  AND uf.dismissed = 0
                  AND (fj.expires_at IS NULL OR fj.expires_at > ?)
                ORDER BY uf.match_score DESC, fj.posted_at IS NULL, fj.posted_at DESC, fj.id DESC
                LIMIT ?
                """,
                (user_id, _iso(self.db.now()), limit),
            ).fetchall()
        return [_to_feed_entry(r) for r in rows]

    def get_links_for_rescore(self, user_id: str) -> list[FeedEntry]:
        with self.db.transaction("getting feed for rescore") as conn:
            rows = conn.execute(
                f"""
                SELECT {_FEED_JOB_COLUMNS}, {_LINK_COLUMNS}
                FROM user_feed uf
                JOIN feed_jobs fj ON fj.id = uf.feed_job_id
                WHERE uf.user_id = ? AND uf.dismissed = 0
                """,
                (user_id,),
            ).fetchall()
        return [_to_feed_entry(r) for r in rows]

    def batch_update_scores(self, user_id: str, scores: dict[int, int]) -> None:
        if not scores:
            return
        with self.db.transaction("batch updating scores") as conn:
            conn.executemany(
                "UPDATE user_feed SET match_score = ? WHERE user_id = ? AND feed_job_id = ?",
                [(score, user_id, job_id) for job_id, score in scores.items()],
            )

    def dismiss_feed_job(self, user_id: str, feed_job_id: int) -> bool:
        with self.db.transaction("dismissing feed job") as conn:
            cur = conn.execute(
                "UPDATE user_feed SET dismissed = 1 WHERE user_id = ? AND feed_job_id = ?",
                (user_id, feed_job_id),
            )
        return cur.rowcount > 0

    def save_feed_job(self, user_id: str, feed_job_id: int) -> SavedJob:
        """Copy a feed job into the user's tracker and mark the link saved.

        Saving an already-saved job returns the existing copy.
        """
        with self.db.transaction("saving feed job") as conn:
            row = conn.execute(
                f"""
                SELECT {_FEED_JOB_COLUMNS}, {_LINK_COLUMNS}
                FROM user_feed uf
                JOIN feed_jobs fj ON fj.id = uf.feed_job_id
                WHERE uf.user_id = ? AND uf.feed_job_id = ?
                """,
                (user_id, feed_job_id),
            ).fetchone()
            if row is None:
                raise FeedJobNotFoundError(feed_job_id)

            entry = _to_feed_entry(row)
            if entry.saved and entry.saved_job_id is not None:
                existing = conn.execute(
                    "SELECT * FROM saved_jobs WHERE id = ?", (entry.saved_job_id,)
                ).fetchone()
                if existing is not None:
                    return _to_saved_job(existing)

            fj = entry.job
            salary_range = fj.salary_text
            if not salary_range and fj.salary_min > 0:
                salary_range = f"${fj.salary_min // 1000}k - ${fj.salary_max // 1000}k"

            cur = conn.execute(
                """
                INSERT INTO saved_jobs (user_id, external_id, source, title, company, location,
                                        salary_range, job_type, description, required_skills,
                                        apply_url, company_logo, match_score, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'saved', ?)
                """,
                (
                    user_id, fj.external_id, fj.source, fj.title, fj.company, fj.location,
                    salary_range, fj.job_type, fj.description, json.dumps(fj.required_skills),
                    fj.apply_url, fj.company_logo, entry.match_score, _iso(self.db.now()),
                ),
            )
            saved_id = cur.lastrowid
            conn.execute(
                "UPDATE user_feed SET saved = 1, saved_job_id = ? WHERE user_id = ? AND feed_job_id = ?",
                (saved_id, user_id, feed_job_id),
            )
            saved = conn.execute("SELECT * FROM saved_jobs WHERE id = ?", (saved_id,)).fetchone()
        return _to_saved_job(saved)

    # -- refresh log ---------------------------------------------------------

    def get_last_refresh(self, user_id: str) -> datetime | None:
        with self.db.transaction("getting last refresh") as conn:
            row = conn.execute(
                """
                SELECT refreshed_at FROM feed_refresh_log
                WHERE user_id = ?
                ORDER BY refreshed_at DESC
                LIMIT 1
                """,
                (user_id,),
            ).fetchone()
        return _parse_iso(row["refreshed_at"]) if row else None

    def log_refresh(self, user_id: str, label: str, fetched: int, new: int) -> None:
        with self.db.transaction("logging refresh") as conn:
            conn.execute(
                """
                INSERT INTO feed_refresh_log (user_id, query_used, jobs_fetched, jobs_new, refreshed_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, label, fetched, new, _iso(self.db.now())),
            )


def _to_feed_job(row: sqlite3.Row) -> FeedJob:
    return FeedJob(
        id=row["id"],
        external_id=row["external_id"],
        source=row["source"],
        title=row["title"],
        company=row["company"],
        location=row["location"],
        salary_min=row["salary_min"],
        salary_max=row["salary_max"],
        salary_text=row["salary_text"],
        job_type=row["job_type"],
        description=row["description"],
        required_skills=json.loads(row["required_skills"] or "[]"),
        apply_url=row["apply_url"],
        company_logo=row["company_logo"],
        posted_at=_parse_iso(row["posted_at"]),
        fetched_at=_parse_iso(row["fetched_at"]),
        expires_at=_parse_iso(row["expires_at"]),
    )


def _to_feed_entry(row: sqlite3.Row) -> FeedEntry:
    return FeedEntry(
        job=_to_feed_job(row),
        match_score=row["match_score"],
        dismissed=bool(row["dismissed"]),
        saved=bool(row["saved"]),
        saved_job_id=row["saved_job_id"],
    )


def _to_saved_job(row: sqlite3.Row) -> SavedJob:
    return SavedJob(
        id=row["id"],
        user_id=row["user_id"],
        source=row["source"],
        external_id=row["external_id"],
        title=row["title"],
        company=row["company"],
        location=row["location"],
        salary_range=row["salary_range"],
        job_type=row["job_type"],
        description=row["description"],
        required_skills=json.loads(row["required_skills"] or "[]"),
        apply_url=row["apply_url"],
        company_logo=row["company_logo"],
        match_score=row["match_score"],
        status=row["status"],
        created_at=_parse_iso(row["created_at"]),
    )
