from __future__ import annotations

import argparse
import dataclasses
import datetime as dt
import sys
from pathlib import Path

from .aggregate import build_snapshot
from .cache import DataError, load_snapshot, save_snapshot
from .commits import extract_commits
from .config import (
    DEFAULT_HOURS,
    DEFAULT_MAX_DEPTH,
    default_roots,
    exclude_dirnames_from_config,
    resolve_author,
    resolve_gh_author,
    resolve_roots,
    split_csv,
)
from .git import DEFAULT_EXCLUDE_DIRNAMES, discover_git_repos, get_remote_origin, parse_remote
from .models import Commit, PullRequest, Snapshot
from .pull_requests import DEFAULT_PR_LIMIT, fetch_pull_requests
from .render import render_report, window_label, write_report


@dataclasses.dataclass(frozen=True)
class CollectOptions:
    roots: list[Path]
    since: dt.datetime
    max_depth: int = DEFAULT_MAX_DEPTH
    author: str | None = None
    gh_author: str = "@me"
    include_prs: bool = True
    exclude_dirnames: frozenset[str] = DEFAULT_EXCLUDE_DIRNAMES
    pr_limit: int = DEFAULT_PR_LIMIT
    git_timeout_s: int = 300
    gh_timeout_s: int = 120


def _iso_z(d: dt.datetime) -> str:
    return d.astimezone(dt.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def collect_commits(opts: CollectOptions) -> list[Commit]:
    commits: list[Commit] = []
    for root in opts.roots:
        for repo in discover_git_repos(root, opts.max_depth, opts.exclude_dirnames):
            remote_url, owner, slug = parse_remote(get_remote_origin(repo))
            res = extract_commits(
                repo,
                since=opts.since,
                author=opts.author,
                owner=owner,
                repo_slug=slug,
                remote_url=remote_url,
                timeout_s=opts.git_timeout_s,
            )
            if not res.ok:
                print(f"   Skipping {repo}: {res.error}", file=sys.stderr)
                continue
            commits.extend(res.commits)
    return commits


def collect_pull_requests(opts: CollectOptions) -> list[PullRequest]:
    print("   Fetching PRs...")
    res = fetch_pull_requests(
        author=opts.gh_author,
        since=opts.since.astimezone(dt.timezone.utc).date(),
        limit=opts.pr_limit,
        timeout_s=opts.gh_timeout_s,
    )
    if not res.ok:
        print(f"   PR fetch skipped: {res.error}", file=sys.stderr)
        return []
    for why in res.skipped:
        print(f"   Skipping PR {why}", file=sys.stderr)
    return res.pull_requests


def collect_snapshot(opts: CollectOptions, *, now: dt.datetime | None = None) -> Snapshot:
    generated = now or dt.datetime.now(dt.timezone.utc)
    print(f"   Since: {_iso_z(opts.since)}")
    commits = collect_commits(opts)
    prs = collect_pull_requests(opts) if opts.include_prs else []
    return build_snapshot(
        commits=commits,
        pull_requests=prs,
        generated_at=_iso_z(generated),
        period_start=_iso_z(opts.since),
    )


def _number(value: object, fallback: float) -> float:
    if value is None or value == "":
        return fallback
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return fallback


def collect_options_from_args(args: argparse.Namespace, config: dict, *, now: dt.datetime) -> CollectOptions:
    hours = _number(args.hours if args.hours is not None else config.get("hours"), DEFAULT_HOURS)
    max_depth = int(_number(args.max_depth if args.max_depth is not None else config.get("max_depth"), DEFAULT_MAX_DEPTH))

    paths = split_csv(args.paths) if args.paths else list(config.get("paths") or []) or default_roots()
    roots, missing = resolve_roots([str(p) for p in paths])
    for m in missing:
        print(f"Note: skipping missing root {m}", file=sys.stderr)

    author = resolve_author(args.author, config)
    if not author:
        print("Note: no author identity configured; including commits from all authors.")

    include_prs = args.prs if args.prs is not None else config.get("include_prs", True)

    return CollectOptions(
        roots=roots,
        since=now - dt.timedelta(hours=hours),
        max_depth=max_depth,
        author=author,
        gh_author=resolve_gh_author(args.gh_author, config),
        include_prs=include_prs,
        exclude_dirnames=exclude_dirnames_from_config(config),
        pr_limit=int(_number(config.get("pr_limit"), DEFAULT_PR_LIMIT)),
        git_timeout_s=int(_number(config.get("git_timeout_s"), 300)),
        gh_timeout_s=int(_number(config.get("gh_timeout_s"), 120)),
    )


def run_report(*, args: argparse.Namespace, config: dict) -> int:
    now = dt.datetime.now(dt.timezone.utc)
    cache_file: Path = args.cache_file
    output_file: Path = args.output_file
    hours = _number(args.hours if args.hours is not None else config.get("hours"), DEFAULT_HOURS)

    snapshot: Snapshot | None = None
    if args.cached and cache_file.exists():
        try:
            snapshot = load_snapshot(cache_file)
            print("Using cached data")
        except DataError as e:
            print(f"Cache unusable, fetching fresh data instead: {e}", file=sys.stderr)

    if snapshot is None:
        print("Fetching fresh data...")
        opts = collect_options_from_args(args, config, now=now)
        snapshot = collect_snapshot(opts, now=now)
        if args.cache_write:
            save_snapshot(snapshot, cache_file)
            print(f"Cached to {cache_file}")

    write_report(output_file, render_report(snapshot, window_label(hours)))
    print(f"Generated {output_file}")
    return 0
