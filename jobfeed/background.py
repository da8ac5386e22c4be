"""Fire-and-forget execution for refresh and rescore requests."""
from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from typing import Any, Callable

from jobfeed.log import get_logger

log = get_logger(__name__)


class BackgroundRunner:
    """Runs work on its own threads; the submitter only gets an acknowledgement.

    Outcomes are logged by a done-callback. The returned Future can be
    waited on (CLI, tests) but nothing is re-raised unless the caller asks.
    """

    def __init__(self, max_workers: int = 4) -> None:
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="feed-bg")

    def submit(self, label: str, fn: Callable[..., Any], *args: Any) -> Future:
        log.info("Queued background task: %s", label)
        future = self._pool.submit(fn, *args)
        future.add_done_callback(partial(self._report, label))
        return future

    @staticmethod
    def _report(label: str, future: Future) -> None:
        if future.cancelled():
            log.warning("Background task cancelled: %s", label)
            return
        exc = future.exception()
        if exc is not None:
            log.error("Background task %s failed: %s", label, exc)
        else:
            log.info("Background task %s finished: %s", label, future.result())

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)
