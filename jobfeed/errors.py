"""Exception hierarchy for the feed engine.

Provider and persistence errors are recoverable inside a refresh (logged and
skipped); a missing profile is fatal for the call that needs it.
"""
from __future__ import annotations


class FeedError(Exception):
    """Base class for every error raised by jobfeed."""


class ConfigError(FeedError):
    """Invalid value in settings.yaml or a profile file."""


class ProfileNotFoundError(FeedError):
    def __init__(self, user_id: str) -> None:
        super().__init__(f"user not found: {user_id}")
        self.user_id = user_id


class FeedJobNotFoundError(FeedError):
    def __init__(self, feed_job_id: int) -> None:
        super().__init__(f"feed job not found: {feed_job_id}")
        self.feed_job_id = feed_job_id


class SourceError(FeedError):
    """A provider call failed: network, timeout, non-2xx or unparsable body."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source


class StoreError(FeedError):
    """A read or write against the feed database failed."""
