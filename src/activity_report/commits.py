"""
Commit extraction from `git log --numstat`.

Grammar of the log text produced by `LOG_FORMAT`:

    ===COMMIT===
    <hash> US <author date, ISO-8601> US <subject>
    <added> TAB <deleted> TAB <path>
    ...

A record starts only at a line that is exactly the marker. US is the ASCII unit
separator (0x1f), which cannot appear in a subject line.
Numstat rows for binary files carry `-` instead of numbers; those count as a
touched file with zero lines. Records whose header lacks a field, and stat rows
without a path, are dropped.
"""
from __future__ import annotations

import dataclasses
import datetime as dt
import re
from pathlib import Path

from .git import run_git
from .models import Commit, CommitStats, FileStat, parse_iso

COMMIT_MARKER = "===COMMIT==="
FIELD_SEP = "\x1f"
LOG_FORMAT = f"{COMMIT_MARKER}%n%H%x1f%aI%x1f%s"

_PR_REF = re.compile(r"\(#(\d+)\)\s*$")


@dataclasses.dataclass(frozen=True)
class CommitsResult:
    commits: list[Commit]
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.error


def pr_number_from_headline(headline: str) -> int | None:
    m = _PR_REF.search(headline or "")
    if not m:
        return None
    return int(m.group(1))


def _parse_count(raw: str) -> int:
    try:
        return max(0, int(raw))
    except ValueError:
        return 0


def parse_numstat_line(line: str) -> FileStat | None:
    parts = line.split("\t", 2)
    if len(parts) < 3 or not parts[2]:
        return None
    return FileStat(path=parts[2], added=_parse_count(parts[0].strip()), deleted=_parse_count(parts[1].strip()))


def _split_records(text: str) -> list[list[str]]:
    # Only a line that is exactly the marker starts a record; subjects may contain it.
    records: list[list[str]] = []
    for raw in text.split("\n"):
        line = raw.rstrip("\r")
        if line == COMMIT_MARKER:
            records.append([])
        elif records:
            records[-1].append(line)
    return records


def parse_git_log(
    text: str,
    *,
    repo_name: str,
    owner: str = "",
    repo_slug: str = "",
    remote_url: str = "",
) -> list[Commit]:
    commits: list[Commit] = []
    for lines in _split_records(text):
        if not lines or not lines[0]:
            continue
        header = lines[0].split(FIELD_SEP, 2)
        if len(header) < 3 or not header[0].strip() or not header[1].strip():
            continue
        full_hash, date_s, headline = header[0].strip(), header[1].strip(), header[2]

        files: list[FileStat] = []
        for line in lines[1:]:
            if not line.strip():
                continue
            f = parse_numstat_line(line)
            if f is not None:
                files.append(f)

        added = sum(f.added for f in files)
        deleted = sum(f.deleted for f in files)
        commits.append(
            Commit(
                full_hash=full_hash,
                timestamp=date_s,
                headline=headline,
                repo_name=repo_name,
                owner=owner,
                repo_slug=repo_slug,
                remote_url=remote_url,
                pr_number=pr_number_from_headline(headline),
                stats=CommitStats(added=added, deleted=deleted, file_count=len(files)),
                files=tuple(files),
            )
        )
    return commits


def _git_date(d: dt.datetime) -> str:
    if d.tzinfo is None:
        d = d.replace(tzinfo=dt.timezone.utc)
    return d.astimezone(dt.timezone.utc).strftime("%Y-%m-%d %H:%M:%S +0000")


def git_log_args(since: dt.datetime, author: str | None) -> list[str]:
    args = ["log"]
    if author:
        args.append(f"--author={author}")
    args.extend(
        [
            f"--since={_git_date(since)}",
            f"--pretty=format:{LOG_FORMAT}",
            "--numstat",
            "--no-merges",
        ]
    )
    return args


def extract_commits(
    repo: Path,
    *,
    since: dt.datetime,
    author: str | None = None,
    repo_name: str | None = None,
    owner: str = "",
    repo_slug: str = "",
    remote_url: str = "",
    timeout_s: int = 300,
) -> CommitsResult:
    """Non-merge commits in `repo` authored at or after `since`, newest first as git lists them."""
    name = repo_name or repo.name
    code, out, err = run_git(git_log_args(since, author), cwd=repo, timeout_s=timeout_s)
    if code != 0:
        return CommitsResult(commits=[], error=f"git log exited {code}: {err.strip()[:500]}")

    parsed = parse_git_log(out, repo_name=name, owner=owner, repo_slug=repo_slug, remote_url=remote_url)
    # git filters --since on committer date; the window is defined on author date.
    cutoff = since if since.tzinfo is not None else since.replace(tzinfo=dt.timezone.utc)
    commits = []
    for c in parsed:
        authored = parse_iso(c.timestamp)
        if authored is not None and authored < cutoff:
            continue
        commits.append(c)
    return CommitsResult(commits=commits)
