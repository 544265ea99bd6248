from __future__ import annotations

import json
import os
import stat
from pathlib import Path

import pytest

from activity_report.aggregate import build_snapshot
from activity_report.cache import DataError, load_snapshot, save_snapshot
from activity_report.models import Commit, CommitStats, FileStat, PullRequest, PullRequestStats, Review


def _snapshot():
    commit = Commit(
        full_hash="0123456789abcdef0123456789abcdef01234567",
        timestamp="2025-02-01T10:00:00+02:00",
        headline="Ship it (#12)",
        repo_name="widgets",
        owner="octo",
        repo_slug="widgets",
        remote_url="https://github.com/octo/widgets",
        pr_number=12,
        stats=CommitStats(added=3, deleted=1, file_count=2),
        files=(FileStat("a.py", 3, 1), FileStat("logo.png", 0, 0)),
    )
    pr = PullRequest(
        number=12,
        title="Ship it",
        url="https://github.com/octo/widgets/pull/12",
        state="merged",
        created_at="2025-01-31T09:00:00Z",
        repo_name="widgets",
        repo_full="octo/widgets",
        stats=PullRequestStats(3, 1, 2),
        base_branch="main",
        head_branch="ship",
        mergeable="UNKNOWN",
        commit_count=1,
        reviews=(Review("alice", "APPROVED", "2025-01-31T10:00:00Z"),),
        labels=frozenset({"release"}),
    )
    return build_snapshot(
        commits=[commit],
        pull_requests=[pr],
        generated_at="2025-02-02T00:00:00.000Z",
        period_start="2025-01-26T00:00:00.000Z",
    )


def test_round_trip(tmp_path: Path) -> None:
    snap = _snapshot()
    path = tmp_path / "nested" / "dir" / "activity-data.json"
    save_snapshot(snap, path)
    loaded = load_snapshot(path)

    assert loaded == snap
    assert loaded.commits[0].timestamp == "2025-02-01T10:00:00+02:00"
    assert loaded.pull_requests[0].reviews[0].author == "alice"
    assert list(tmp_path.joinpath("nested", "dir").iterdir()) == [path]


def test_file_is_pretty_printed_json_with_original_keys(tmp_path: Path) -> None:
    path = tmp_path / "activity-data.json"
    save_snapshot(_snapshot(), path)
    text = path.read_text(encoding="utf-8")
    assert text.startswith("{\n  ")
    data = json.loads(text)
    assert set(data) == {"generatedAt", "periodStart", "commits", "prs", "repos", "stats"}
    c = data["commits"][0]
    assert c["type"] == "commit"
    assert c["shortHash"] == "0123456"
    assert c["prNumber"] == "12"
    assert c["stats"] == {"added": 3, "deleted": 1, "files": 2}
    assert c["files"][1] == {"file": "logo.png", "added": 0, "deleted": 0}
    assert data["repos"]["widgets"]["commits"] == 1


def test_overwrites_previous_snapshot(tmp_path: Path) -> None:
    path = tmp_path / "activity-data.json"
    path.write_text("stale", encoding="utf-8")
    save_snapshot(_snapshot(), path)
    assert load_snapshot(path) == _snapshot()


def test_missing_file_raises_data_error(tmp_path: Path) -> None:
    with pytest.raises(DataError):
        load_snapshot(tmp_path / "nope.json")


def test_invalid_json_raises_data_error(tmp_path: Path) -> None:
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(DataError):
        load_snapshot(path)


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"commits": []},
        {"generatedAt": "g", "periodStart": "p", "commits": "nope"},
        {"generatedAt": "g", "periodStart": "p", "commits": [{"hash": "x"}]},
    ],
)
def test_wrong_shape_raises_data_error(tmp_path: Path, payload: object) -> None:
    path = tmp_path / "shape.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    with pytest.raises(DataError):
        load_snapshot(path)


@pytest.mark.skipif(os.name != "posix", reason="POSIX file modes")
def test_saved_file_honours_umask(tmp_path: Path) -> None:
    old = os.umask(0o022)
    try:
        path = tmp_path / "activity-data.json"
        save_snapshot(_snapshot(), path)
        plain = tmp_path / "plain.json"
        plain.write_text("{}", encoding="utf-8")
    finally:
        os.umask(old)
    assert stat.S_IMODE(path.stat().st_mode) == 0o644
    assert stat.S_IMODE(path.stat().st_mode) == stat.S_IMODE(plain.stat().st_mode)
