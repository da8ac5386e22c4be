"""
Command line interface for the job feed.

Subcommands map one-to-one onto FeedService operations: seed or update a
profile, refresh, rescore, show the ranked feed, dismiss or save a job,
purge expired cache rows and list the configured sources.
"""
from __future__ import annotations

import argparse
import concurrent.futures
import sys

from jobfeed.config import load_profile, load_settings
from jobfeed.errors import FeedError
from jobfeed.log import configure_logging, get_logger
from jobfeed.scorer import explain_score
from jobfeed.service import FeedService

log = get_logger(__name__)


def cmd_profile(service: FeedService, args: argparse.Namespace) -> int:
    profile = load_profile(args.file, args.user_id)
    pending = service.update_profile(profile)
    if pending is None:
        return 0
    try:
        rescored = pending.result(timeout=service.settings.rescore_timeout)
        log.info("Rescored %d feed job(s) after profile change", rescored)
    except concurrent.futures.TimeoutError:
        log.warning("Rescore still running after %.0fs; waiting for it to finish before exit", service.settings.rescore_timeout)
    except FeedError as exc:
        # the profile is saved either way
        log.warning("Rescore failed: %s", exc)
    return 0


def cmd_refresh(service: FeedService, args: argparse.Namespace) -> int:
    result = service.refresh(args.user_id, force=args.force)
    if result.throttled:
        print("Refreshed recently; use --force to refresh anyway.")
        return 0
    print(f"Fetched {result.fetched} job(s), {result.new} new.")
    if result.abandoned:
        print(f"Timed out: {', '.join(result.abandoned)}")
    return 0


def cmd_rescore(service: FeedService, args: argparse.Namespace) -> int:
    count = service.rescore(args.user_id)
    print(f"Rescored {count} job(s).")
    return 0


def cmd_feed(service: FeedService, args: argparse.Namespace) -> int:
    entries = service.get_feed(args.user_id, args.limit)
    if not entries:
        print("Feed is empty. Run `refresh` first.")
        return 0

    profile = service.profiles.find_by_id(args.user_id) if args.explain else None
    for i, entry in enumerate(entries, start=1):
        job = entry.job
        flags = " [saved]" if entry.saved else ""
        print(f"{i:02d}. [{entry.match_score:3d}] #{job.id} {job.title} at {job.company or '?'}{flags}")
        details = [d for d in (job.location, job.salary_text, job.job_type, job.source) if d]
        print(f"     {' | '.join(details)}")
        if job.apply_url:
            print(f"     {job.apply_url}")
        if profile is not None:
            b = explain_score(profile, job, service.settings.weights)
            print(
                f"     base={b.base} role={b.role} skills={b.skill_overlap} "
                f"keywords={b.keywords} location={b.location} salary={b.salary}"
            )
    return 0


def cmd_dismiss(service: FeedService, args: argparse.Namespace) -> int:
    if not service.dismiss(args.user_id, args.feed_job_id):
        print(f"Feed job {args.feed_job_id} is not in this user's feed.")
        return 1
    print(f"Dismissed feed job {args.feed_job_id}.")
    return 0


def cmd_save(service: FeedService, args: argparse.Namespace) -> int:
    saved = service.save_to_tracker(args.user_id, args.feed_job_id)
    print(f"Saved '{saved.title}' to tracker (id {saved.id}).")
    return 0


def cmd_purge(service: FeedService, args: argparse.Namespace) -> int:
    removed = service.purge_expired()
    print(f"Removed {removed} expired job(s).")
    return 0


def cmd_sources(service: FeedService, args: argparse.Namespace) -> int:
    for src in service.sources:
        status = "enabled" if src.enabled() else "not configured"
        print(f"{src.name:10s} {status}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jobfeed", description="Personalized multi-source job feed")
    parser.add_argument("--settings", help="Path to settings.yaml (default: config/settings.yaml)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level on the console")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("profile", help="Create or update a user's profile from YAML")
    p.add_argument("user_id")
    p.add_argument("file", help="Profile YAML file")
    p.set_defaults(func=cmd_profile)

    p = sub.add_parser("refresh", help="Fetch new jobs for a user from every enabled source")
    p.add_argument("user_id")
    p.add_argument("--force", action="store_true", help="Ignore the throttle window")
    p.set_defaults(func=cmd_refresh)

    p = sub.add_parser("rescore", help="Recompute scores without fetching")
    p.add_argument("user_id")
    p.set_defaults(func=cmd_rescore)

    p = sub.add_parser("feed", help="Show a user's ranked feed")
    p.add_argument("user_id")
    p.add_argument("--limit", type=int, default=None, help="Number of jobs to show")
    p.add_argument("--explain", action="store_true", help="Show the score breakdown per job")
    p.set_defaults(func=cmd_feed)

    p = sub.add_parser("dismiss", help="Hide a job from a user's feed")
    p.add_argument("user_id")
    p.add_argument("feed_job_id", type=int)
    p.set_defaults(func=cmd_dismiss)

    p = sub.add_parser("save", help="Copy a feed job into the user's tracker")
    p.add_argument("user_id")
    p.add_argument("feed_job_id", type=int)
    p.set_defaults(func=cmd_save)

    p = sub.add_parser("purge", help="Delete cached jobs past their TTL")
    p.set_defaults(func=cmd_purge)

    p = sub.add_parser("sources", help="List job sources and whether they are configured")
    p.set_defaults(func=cmd_sources)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        configure_logging("DEBUG", force=True)

    try:
        service = FeedService.from_settings(load_settings(args.settings))
    except FeedError as exc:
        log.error("Startup failed: %s", exc)
        return 1

    try:
        return args.func(service, args)
    except (FeedError, OSError) as exc:
        log.error("%s failed: %s", args.command, exc)
        return 1
    finally:
        service.close()


if __name__ == "__main__":
    sys.exit(main())
