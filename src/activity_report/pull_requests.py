from __future__ import annotations

import dataclasses
import datetime as dt
import json
import subprocess

from .models import PR_STATES, PullRequest, PullRequestStats, Review

DEFAULT_PR_LIMIT = 20

SEARCH_FIELDS = "number,repository,url"
DETAIL_FIELDS = (
    "number,title,url,state,createdAt,additions,deletions,changedFiles,commits,"
    "baseRefName,headRefName,mergeable,reviews,labels"
)


@dataclasses.dataclass(frozen=True)
class PullRequestsResult:
    pull_requests: list[PullRequest]
    error: str = ""
    skipped: list[str] = dataclasses.field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.error


def run_gh(args: list[str], timeout_s: int = 120) -> tuple[int, str, str]:
    try:
        proc = subprocess.run(
            ["gh", *args],
            capture_output=True,
            text=True,
            timeout=timeout_s,
        )
    except FileNotFoundError as e:
        return 127, "", f"gh not available: {e}"
    except subprocess.TimeoutExpired:
        return 124, "", f"gh {' '.join(args[:2])} timed out after {timeout_s}s"
    except OSError as e:
        return 126, "", str(e)
    return proc.returncode, proc.stdout, proc.stderr


def search_pull_requests(
    *, author: str, since: dt.date, limit: int = DEFAULT_PR_LIMIT, timeout_s: int = 120
) -> tuple[list[dict], str]:
    """Returns (search hits, error). The error is empty on success."""
    code, out, err = run_gh(
        [
            "search",
            "prs",
            f"--author={author}",
            f"--created=>={since.isoformat()}",
            "--limit",
            str(limit),
            "--json",
            SEARCH_FIELDS,
        ],
        timeout_s=timeout_s,
    )
    if code != 0:
        msg = err.strip()[:500] or f"gh exited {code}"
        return [], f"gh not available or not authenticated ({msg})"
    try:
        hits = json.loads(out or "[]")
    except json.JSONDecodeError as e:
        return [], f"unreadable gh search output: {e}"
    if not isinstance(hits, list):
        return [], "unreadable gh search output: expected a list"
    return [h for h in hits if isinstance(h, dict)], ""


def pull_request_from_detail(detail: dict, *, repo_name: str, repo_full: str) -> PullRequest:
    state = str(detail.get("state") or "").lower()
    if state not in PR_STATES:
        state = "closed" if detail.get("closed") else "open"
    reviews = []
    for r in detail.get("reviews") or []:
        author = r.get("author") or {}
        reviews.append(
            Review(
                author=str(author.get("login") or "") if isinstance(author, dict) else "",
                state=str(r.get("state") or ""),
                submitted_at=str(r.get("submittedAt") or ""),
            )
        )
    return PullRequest(
        number=int(detail["number"]),
        title=str(detail.get("title") or ""),
        url=str(detail.get("url") or ""),
        state=state,
        created_at=str(detail.get("createdAt") or ""),
        repo_name=repo_name,
        repo_full=repo_full,
        stats=PullRequestStats(
            added=int(detail.get("additions") or 0),
            deleted=int(detail.get("deletions") or 0),
            changed_files=int(detail.get("changedFiles") or 0),
        ),
        base_branch=str(detail.get("baseRefName") or ""),
        head_branch=str(detail.get("headRefName") or ""),
        mergeable=str(detail.get("mergeable") or ""),
        commit_count=len(detail.get("commits") or []),
        reviews=tuple(reviews),
        labels=frozenset(str(lb.get("name")) for lb in (detail.get("labels") or []) if isinstance(lb, dict) and lb.get("name")),
    )


def fetch_pull_request(hit: dict, *, timeout_s: int = 120) -> tuple[PullRequest | None, str]:
    repo = hit.get("repository")
    if not isinstance(repo, dict):
        repo = {}
    repo_full = str(repo.get("nameWithOwner") or "")
    repo_name = str(repo.get("name") or repo_full.rsplit("/", 1)[-1])
    number = hit.get("number")
    label = f"{repo_full}#{number}"
    if not repo_full or number is None:
        return None, f"{label}: incomplete search hit"

    code, out, err = run_gh(["pr", "view", str(number), "--repo", repo_full, "--json", DETAIL_FIELDS], timeout_s=timeout_s)
    if code != 0:
        return None, f"{label}: gh pr view exited {code}: {err.strip()[:200]}"
    try:
        detail = json.loads(out)
        return pull_request_from_detail(detail, repo_name=repo_name, repo_full=repo_full), ""
    except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
        return None, f"{label}: unreadable gh pr view output: {e}"


def fetch_pull_requests(
    *, author: str, since: dt.date, limit: int = DEFAULT_PR_LIMIT, timeout_s: int = 120
) -> PullRequestsResult:
    hits, error = search_pull_requests(author=author, since=since, limit=limit, timeout_s=timeout_s)
    if error:
        return PullRequestsResult(pull_requests=[], error=error)

    prs: list[PullRequest] = []
    skipped: list[str] = []
    for hit in hits:
        pr, why = fetch_pull_request(hit, timeout_s=timeout_s)
        if pr is None:
            skipped.append(why)
            continue
        prs.append(pr)
    return PullRequestsResult(pull_requests=prs, skipped=skipped)
