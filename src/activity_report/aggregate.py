from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

from .models import Commit, PullRequest, RepoSummary, Snapshot, Totals, timestamp_key


def sort_newest_first(items: Iterable, key_attr: str) -> list:
    # sorted() is stable, so equal timestamps keep their input order.
    return sorted(items, key=lambda x: timestamp_key(getattr(x, key_attr)), reverse=True)


def summarize_repos(commits: Iterable[Commit]) -> dict[str, RepoSummary]:
    counts: dict[str, dict[str, int]] = defaultdict(lambda: {"commits": 0, "additions": 0, "deletions": 0})
    remote_of: dict[str, Commit] = {}
    for c in commits:
        row = counts[c.repo_name]
        row["commits"] += 1
        row["additions"] += c.stats.added
        row["deletions"] += c.stats.deleted
        known = remote_of.get(c.repo_name)
        if known is None or (not known.remote_url and c.remote_url):
            remote_of[c.repo_name] = c

    return {
        name: RepoSummary(
            commit_count=row["commits"],
            additions=row["additions"],
            deletions=row["deletions"],
            remote_url=remote_of[name].remote_url,
            owner=remote_of[name].owner,
            repo_slug=remote_of[name].repo_slug,
        )
        for name, row in counts.items()
    }


def compute_totals(commits: Iterable[Commit], pull_requests: Iterable[PullRequest]) -> Totals:
    commits_n = additions = deletions = files = 0
    for c in commits:
        commits_n += 1
        additions += c.stats.added
        deletions += c.stats.deleted
        files += c.stats.file_count

    prs_n = pr_additions = pr_deletions = pr_files = 0
    for p in pull_requests:
        prs_n += 1
        pr_additions += p.stats.added
        pr_deletions += p.stats.deleted
        pr_files += p.stats.changed_files

    return Totals(
        commits=commits_n,
        additions=additions,
        deletions=deletions,
        files=files,
        prs=prs_n,
        pr_additions=pr_additions,
        pr_deletions=pr_deletions,
        pr_files=pr_files,
    )


def build_snapshot(
    *,
    commits: Iterable[Commit],
    pull_requests: Iterable[PullRequest],
    generated_at: str,
    period_start: str,
) -> Snapshot:
    ordered_commits = sort_newest_first(commits, "timestamp")
    ordered_prs = sort_newest_first(pull_requests, "created_at")
    return Snapshot(
        generated_at=generated_at,
        period_start=period_start,
        commits=tuple(ordered_commits),
        pull_requests=tuple(ordered_prs),
        repositories=summarize_repos(ordered_commits),
        totals=compute_totals(ordered_commits, ordered_prs),
    )
