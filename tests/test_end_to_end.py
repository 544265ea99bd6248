from __future__ import annotations

import datetime as dt
import json
import os
import shutil
import subprocess
import sys
from pathlib import Path

import pytest

from activity_report.cli import main
from activity_report.run import CollectOptions, collect_snapshot

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is required")

AUTHOR = "dev@example.com"


def _git(repo: Path, *args: str, when: dt.datetime | None = None) -> None:
    env = os.environ.copy()
    env.update(
        {
            "GIT_AUTHOR_NAME": "Dev",
            "GIT_AUTHOR_EMAIL": AUTHOR,
            "GIT_COMMITTER_NAME": "Dev",
            "GIT_COMMITTER_EMAIL": AUTHOR,
            "GIT_CONFIG_NOSYSTEM": "1",
        }
    )
    if when is not None:
        stamp = when.strftime("%Y-%m-%dT%H:%M:%S+0000")
        env["GIT_AUTHOR_DATE"] = stamp
        env["GIT_COMMITTER_DATE"] = stamp
    subprocess.run(["git", "-c", "commit.gpgsign=false", *args], cwd=str(repo), env=env, check=True, capture_output=True, text=True)


def _lines(prefix: str, n: int) -> str:
    return "".join(f"{prefix}{i}\n" for i in range(n))


def _make_repo(root: Path, now: dt.datetime) -> Path:
    repo = root / "proj"
    repo.mkdir(parents=True)
    _git(repo, "init", "-q")
    _git(repo, "remote", "add", "origin", "git@github.com:octo/proj.git")

    # Outside a 168h window.
    (repo / "a.txt").write_text(_lines("old", 5), encoding="utf-8")
    _git(repo, "add", "a.txt")
    _git(repo, "commit", "-q", "-m", "Initial import", when=now - dt.timedelta(hours=300))

    # +10/-2 across one file.
    (repo / "a.txt").write_text(_lines("old", 5)[len("old0\nold1\n"):] + _lines("new", 10), encoding="utf-8")
    _git(repo, "add", "a.txt")
    _git(repo, "commit", "-q", "-m", "Rework a (#5)", when=now - dt.timedelta(hours=30))

    # +5/-0 across two files.
    (repo / "b.txt").write_text(_lines("b", 3), encoding="utf-8")
    (repo / "c.txt").write_text(_lines("c", 2), encoding="utf-8")
    _git(repo, "add", "b.txt", "c.txt")
    _git(repo, "commit", "-q", "-m", "Add b and c", when=now - dt.timedelta(hours=2))
    return repo


def test_snapshot_contains_only_in_window_commits(tmp_path: Path) -> None:
    now = dt.datetime.now(dt.timezone.utc).replace(microsecond=0)
    root = tmp_path / "roots"
    _make_repo(root, now)

    opts = CollectOptions(roots=[root], since=now - dt.timedelta(hours=168), author=AUTHOR, include_prs=False)
    snap = collect_snapshot(opts, now=now)

    assert [c.headline for c in snap.commits] == ["Add b and c", "Rework a (#5)"]
    assert snap.repositories["proj"].commit_count == 2
    assert snap.totals.additions == 15
    assert snap.totals.deletions == 2
    assert snap.totals.files == 3

    rework = snap.commits[1]
    assert (rework.stats.added, rework.stats.deleted, rework.stats.file_count) == (10, 2, 1)
    assert rework.pr_number == 5
    assert rework.owner == "octo"
    assert rework.remote_url == "https://github.com/octo/proj"
    assert snap.repositories["proj"].repo_slug == "proj"


def test_author_filter_excludes_other_authors(tmp_path: Path) -> None:
    now = dt.datetime.now(dt.timezone.utc).replace(microsecond=0)
    root = tmp_path / "roots"
    _make_repo(root, now)

    opts = CollectOptions(roots=[root], since=now - dt.timedelta(hours=168), author="someone-else@example.com", include_prs=False)
    snap = collect_snapshot(opts, now=now)
    assert snap.commits == ()
    assert snap.repositories == {}


def test_failed_pr_search_still_produces_report(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    now = dt.datetime.now(dt.timezone.utc).replace(microsecond=0)
    root = tmp_path / "roots"
    _make_repo(root, now)

    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    gh = bin_dir / "gh"
    gh.write_text(f"#!{sys.executable}\nimport sys\nsys.stderr.write('not logged in\\n')\nraise SystemExit(1)\n", encoding="utf-8")
    gh.chmod(0o755)
    monkeypatch.setenv("PATH", str(bin_dir) + os.pathsep + os.environ.get("PATH", ""))

    cache_file = tmp_path / "out" / "activity-data.json"
    output_file = tmp_path / "out" / "index.html"
    code = main(
        [
            "--paths",
            str(root),
            "--author",
            AUTHOR,
            "--cache-file",
            str(cache_file),
            "--output-file",
            str(output_file),
            "--config",
            str(tmp_path / "no-config.json"),
        ]
    )
    assert code == 0

    data = json.loads(cache_file.read_text(encoding="utf-8"))
    assert len(data["commits"]) == 2
    assert data["prs"] == []
    assert data["stats"]["additions"] == 15
    html = output_file.read_text(encoding="utf-8")
    assert "Rework a (#5)" in html
    assert "Pull Requests" not in html


def test_cached_run_skips_fetching(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    now = dt.datetime.now(dt.timezone.utc).replace(microsecond=0)
    root = tmp_path / "roots"
    _make_repo(root, now)
    cache_file = tmp_path / "activity-data.json"
    output_file = tmp_path / "index.html"
    common = ["--paths", str(root), "--author", AUTHOR, "--no-prs", "--cache-file", str(cache_file), "--output-file", str(output_file), "--config", str(tmp_path / "none.json")]

    assert main(common) == 0
    first = cache_file.read_text(encoding="utf-8")
    capsys.readouterr()

    shutil.rmtree(root)
    assert main([*common, "--cached"]) == 0
    out = capsys.readouterr().out
    assert "Using cached data" in out
    assert cache_file.read_text(encoding="utf-8") == first
    assert "Rework a (#5)" in output_file.read_text(encoding="utf-8")


def test_corrupt_cache_falls_back_to_fresh_fetch(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    now = dt.datetime.now(dt.timezone.utc).replace(microsecond=0)
    root = tmp_path / "roots"
    _make_repo(root, now)
    cache_file = tmp_path / "activity-data.json"
    cache_file.write_text("{broken", encoding="utf-8")

    code = main(
        ["--paths", str(root), "--author", AUTHOR, "--no-prs", "--cached", "--cache-file", str(cache_file), "--output-file", str(tmp_path / "index.html"), "--config", str(tmp_path / "none.json")]
    )
    assert code == 0
    captured = capsys.readouterr()
    assert "Cache unusable" in captured.err
    assert "Fetching fresh data..." in captured.out
    assert len(json.loads(cache_file.read_text(encoding="utf-8"))["commits"]) == 2


def test_no_cache_write(tmp_path: Path) -> None:
    cache_file = tmp_path / "activity-data.json"
    code = main(
        ["--paths", str(tmp_path), "--hours", "1", "--no-prs", "--no-cache-write", "--cache-file", str(cache_file), "--output-file", str(tmp_path / "index.html"), "--config", str(tmp_path / "none.json")]
    )
    assert code == 0
    assert not cache_file.exists()
    assert (tmp_path / "index.html").exists()
