from __future__ import annotations

import dataclasses
import datetime as dt


def parse_iso(value: str) -> dt.datetime | None:
    s = (value or "").strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        d = dt.datetime.fromisoformat(s)
    except ValueError:
        return None
    if d.tzinfo is None:
        d = d.replace(tzinfo=dt.timezone.utc)
    return d


def timestamp_key(value: str) -> float:
    d = parse_iso(value)
    return d.timestamp() if d is not None else float("-inf")


@dataclasses.dataclass(frozen=True)
class FileStat:
    path: str
    added: int = 0
    deleted: int = 0

    def to_dict(self) -> dict:
        return {"file": self.path, "added": self.added, "deleted": self.deleted}

    @classmethod
    def from_dict(cls, d: dict) -> FileStat:
        return cls(path=str(d["file"]), added=int(d.get("added") or 0), deleted=int(d.get("deleted") or 0))


@dataclasses.dataclass(frozen=True)
class CommitStats:
    added: int = 0
    deleted: int = 0
    file_count: int = 0


@dataclasses.dataclass(frozen=True)
class Commit:
    full_hash: str
    timestamp: str  # author date, ISO-8601 as emitted by git
    headline: str
    repo_name: str
    owner: str = ""
    repo_slug: str = ""
    remote_url: str = ""
    pr_number: int | None = None
    stats: CommitStats = CommitStats()
    files: tuple[FileStat, ...] = ()
    body: str = ""

    @property
    def short_hash(self) -> str:
        return self.full_hash[:7]

    @property
    def commit_url(self) -> str:
        if not self.remote_url:
            return ""
        return f"{self.remote_url}/commit/{self.full_hash}"

    def to_dict(self) -> dict:
        d: dict[str, object] = {
            "type": "commit",
            "hash": self.full_hash,
            "shortHash": self.short_hash,
            "date": self.timestamp,
            "headline": self.headline,
            "repo": self.repo_name,
            "owner": self.owner,
            "repoSlug": self.repo_slug,
            "remoteUrl": self.remote_url,
            "prNumber": str(self.pr_number) if self.pr_number is not None else None,
            "stats": {"added": self.stats.added, "deleted": self.stats.deleted, "files": self.stats.file_count},
            "files": [f.to_dict() for f in self.files],
        }
        if self.body:
            d["body"] = self.body
        return d

    @classmethod
    def from_dict(cls, d: dict) -> Commit:
        stats = d.get("stats") or {}
        pr = d.get("prNumber")
        return cls(
            full_hash=str(d["hash"]),
            timestamp=str(d["date"]),
            headline=str(d.get("headline") or ""),
            repo_name=str(d["repo"]),
            owner=str(d.get("owner") or ""),
            repo_slug=str(d.get("repoSlug") or ""),
            remote_url=str(d.get("remoteUrl") or ""),
            pr_number=int(pr) if pr not in (None, "") else None,
            stats=CommitStats(
                added=int(stats.get("added") or 0),
                deleted=int(stats.get("deleted") or 0),
                file_count=int(stats.get("files") or 0),
            ),
            files=tuple(FileStat.from_dict(f) for f in (d.get("files") or [])),
            body=str(d.get("body") or ""),
        )


@dataclasses.dataclass(frozen=True)
class Review:
    author: str
    state: str
    submitted_at: str

    def to_dict(self) -> dict:
        return {"author": self.author, "state": self.state, "submittedAt": self.submitted_at}

    @classmethod
    def from_dict(cls, d: dict) -> Review:
        return cls(author=str(d.get("author") or ""), state=str(d.get("state") or ""), submitted_at=str(d.get("submittedAt") or ""))


@dataclasses.dataclass(frozen=True)
class PullRequestStats:
    added: int = 0
    deleted: int = 0
    changed_files: int = 0


PR_STATES = ("open", "merged", "closed")


@dataclasses.dataclass(frozen=True)
class PullRequest:
    number: int
    title: str
    url: str
    state: str  # open | merged | closed
    created_at: str
    repo_name: str
    repo_full: str
    stats: PullRequestStats = PullRequestStats()
    base_branch: str = ""
    head_branch: str = ""
    mergeable: str = ""
    commit_count: int = 0
    reviews: tuple[Review, ...] = ()
    labels: frozenset[str] = frozenset()

    def to_dict(self) -> dict:
        return {
            "type": "pr",
            "number": self.number,
            "title": self.title,
            "url": self.url,
            "state": self.state,
            "date": self.created_at,
            "repo": self.repo_name,
            "repoFull": self.repo_full,
            "stats": {"added": self.stats.added, "deleted": self.stats.deleted, "files": self.stats.changed_files},
            "baseBranch": self.base_branch,
            "headBranch": self.head_branch,
            "mergeable": self.mergeable,
            "commits": self.commit_count,
            "reviews": [r.to_dict() for r in self.reviews],
            "labels": sorted(self.labels),
        }

    @classmethod
    def from_dict(cls, d: dict) -> PullRequest:
        stats = d.get("stats") or {}
        return cls(
            number=int(d["number"]),
            title=str(d.get("title") or ""),
            url=str(d.get("url") or ""),
            state=str(d.get("state") or "").lower(),
            created_at=str(d["date"]),
            repo_name=str(d.get("repo") or ""),
            repo_full=str(d.get("repoFull") or ""),
            stats=PullRequestStats(
                added=int(stats.get("added") or 0),
                deleted=int(stats.get("deleted") or 0),
                changed_files=int(stats.get("files") or 0),
            ),
            base_branch=str(d.get("baseBranch") or ""),
            head_branch=str(d.get("headBranch") or ""),
            mergeable=str(d.get("mergeable") or ""),
            commit_count=int(d.get("commits") or 0),
            reviews=tuple(Review.from_dict(r) for r in (d.get("reviews") or [])),
            labels=frozenset(str(x) for x in (d.get("labels") or [])),
        )


@dataclasses.dataclass(frozen=True)
class RepoSummary:
    commit_count: int = 0
    additions: int = 0
    deletions: int = 0
    remote_url: str = ""
    owner: str = ""
    repo_slug: str = ""

    def to_dict(self) -> dict:
        return {
            "commits": self.commit_count,
            "additions": self.additions,
            "deletions": self.deletions,
            "remoteUrl": self.remote_url,
            "owner": self.owner,
            "repoSlug": self.repo_slug,
        }

    @classmethod
    def from_dict(cls, d: dict) -> RepoSummary:
        return cls(
            commit_count=int(d.get("commits") or 0),
            additions=int(d.get("additions") or 0),
            deletions=int(d.get("deletions") or 0),
            remote_url=str(d.get("remoteUrl") or ""),
            owner=str(d.get("owner") or ""),
            repo_slug=str(d.get("repoSlug") or ""),
        )


@dataclasses.dataclass(frozen=True)
class Totals:
    commits: int = 0
    additions: int = 0
    deletions: int = 0
    files: int = 0
    prs: int = 0
    pr_additions: int = 0
    pr_deletions: int = 0
    pr_files: int = 0

    def to_dict(self) -> dict:
        return {
            "commits": self.commits,
            "additions": self.additions,
            "deletions": self.deletions,
            "files": self.files,
            "prs": self.prs,
            "prAdditions": self.pr_additions,
            "prDeletions": self.pr_deletions,
            "prFiles": self.pr_files,
        }

    @classmethod
    def from_dict(cls, d: dict) -> Totals:
        return cls(
            commits=int(d.get("commits") or 0),
            additions=int(d.get("additions") or 0),
            deletions=int(d.get("deletions") or 0),
            files=int(d.get("files") or 0),
            prs=int(d.get("prs") or 0),
            pr_additions=int(d.get("prAdditions") or 0),
            pr_deletions=int(d.get("prDeletions") or 0),
            pr_files=int(d.get("prFiles") or 0),
        )


@dataclasses.dataclass(frozen=True)
class Snapshot:
    generated_at: str
    period_start: str
    commits: tuple[Commit, ...] = ()
    pull_requests: tuple[PullRequest, ...] = ()
    repositories: dict[str, RepoSummary] = dataclasses.field(default_factory=dict)
    totals: Totals = Totals()

    def to_dict(self) -> dict:
        return {
            "generatedAt": self.generated_at,
            "periodStart": self.period_start,
            "commits": [c.to_dict() for c in self.commits],
            "prs": [p.to_dict() for p in self.pull_requests],
            "repos": {name: r.to_dict() for name, r in self.repositories.items()},
            "stats": self.totals.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> Snapshot:
        if not isinstance(d, dict):
            raise TypeError(f"snapshot must be an object, got {type(d).__name__}")
        commits = d["commits"]
        if not isinstance(commits, list):
            raise TypeError("snapshot.commits must be a list")
        return cls(
            generated_at=str(d["generatedAt"]),
            period_start=str(d["periodStart"]),
            commits=tuple(Commit.from_dict(c) for c in commits),
            pull_requests=tuple(PullRequest.from_dict(p) for p in (d.get("prs") or [])),
            repositories={str(k): RepoSummary.from_dict(v) for k, v in (d.get("repos") or {}).items()},
            totals=Totals.from_dict(d.get("stats") or {}),
        )
