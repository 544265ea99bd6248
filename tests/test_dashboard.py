from __future__ import annotations

import datetime as dt
import json
import threading
import urllib.error
import urllib.request
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path

import pytest

from activity_report.cache import DataError
from activity_report.categories import OTHER, PRIMARY, TOOLING, CategoryTable
from activity_report.dashboard import (
    DATA_PATH,
    build_dashboard_view,
    fetch_activity_data,
    make_dashboard_server,
    render_dashboard,
)

UTC = dt.timezone.utc
TABLE = CategoryTable(exact={"wp-fusion": PRIMARY}, labels={PRIMARY: "WP Fusion"})


def _c(sha: str, date: str, repo: str, added: int, deleted: int, body: str = "") -> dict:
    d = {
        "type": "commit",
        "hash": sha * 40,
        "shortHash": sha * 7,
        "date": date,
        "headline": f"commit {sha}",
        "repo": repo,
        "owner": "o",
        "repoSlug": repo,
        "remoteUrl": f"https://github.com/o/{repo}",
        "stats": {"added": added, "deleted": deleted, "files": 1},
        "files": [{"file": "f.py", "added": added, "deleted": deleted}],
    }
    if body:
        d["body"] = body
    return d


DATA = {
    "generatedAt": "2025-02-07T18:00:00.000Z",
    "periodStart": "2025-01-31T18:00:00.000Z",
    "commits": [
        _c("a", "2025-02-07T12:00:00Z", "wp-fusion", 10, 1, body="Longer explanation"),
        _c("b", "2025-02-07T10:00:00Z", "mcp-weather", 5, 0),
        _c("c", "2025-02-05T10:00:00Z", "wp-fusion", 3, 3),
        _c("d", "2025-01-20T10:00:00Z", "misc", 1, 0),
    ],
}


def test_day_buckets_cover_last_seven_days() -> None:
    view = build_dashboard_view(DATA, table=TABLE, today=dt.date(2025, 2, 7), tz=UTC)
    rhythm = view["rhythm"]
    assert [d["date"] for d in rhythm] == [f"2025-02-0{i}" for i in range(1, 8)]
    assert rhythm[-1]["is_today"] is True
    assert rhythm[-1]["weekday"] == "Fri"
    assert rhythm[-1]["total"] == 2
    assert rhythm[-1]["categories"] == {PRIMARY: 1, TOOLING: 1}
    assert rhythm[4]["categories"] == {PRIMARY: 1}
    assert sum(d["total"] for d in rhythm) == 3


def test_projects_grouped_by_category() -> None:
    view = build_dashboard_view(DATA, table=TABLE, today=dt.date(2025, 2, 7), tz=UTC)
    groups = {g["category"]: g for g in view["projects"]}
    assert set(groups) == {PRIMARY, TOOLING, OTHER}
    assert groups[PRIMARY]["label"] == "WP Fusion"
    (wp,) = groups[PRIMARY]["repos"]
    assert (wp["repo"], wp["commits"], wp["added"], wp["deleted"]) == ("wp-fusion", 2, 13, 4)


def test_totals_and_recent_list() -> None:
    data = {**DATA, "commits": DATA["commits"] * 6}
    view = build_dashboard_view(data, table=TABLE, today=dt.date(2025, 2, 7), tz=UTC)
    assert view["totals"] == {"commits": 24, "added": 19 * 6, "deleted": 4 * 6}
    assert len(view["recent"]) == 20
    assert view["more"] == 4
    first = view["recent"][0]
    assert first["body"] == "Longer explanation"
    assert first["url"] == "https://github.com/o/wp-fusion/commit/" + "a" * 40


def test_malformed_commit_fields_count_as_zero() -> None:
    bad = _c("e", "2025-02-07T09:00:00Z", "misc", 0, 0)
    bad["stats"] = {"added": "n/a", "deleted": None}
    bad["files"] = ["f.py", {"file": "g.py", "added": "x", "deleted": 2}]
    odd = _c("f", "2025-02-06T09:00:00Z", "misc", 0, 0)
    odd["stats"] = "broken"
    data = {"generatedAt": "", "commits": [bad, odd, DATA["commits"][0]]}

    view = build_dashboard_view(data, table=TABLE, today=dt.date(2025, 2, 7), tz=UTC)
    assert view["totals"] == {"commits": 3, "added": 10, "deleted": 1}
    assert (view["recent"][0]["added"], view["recent"][0]["deleted"], view["recent"][0]["files"]) == (0, 2, 1)
    assert "Updated unknown" in render_dashboard(view, tz=UTC)


def test_render_dashboard() -> None:
    view = build_dashboard_view(DATA, table=TABLE, today=dt.date(2025, 2, 7), tz=UTC)
    html = render_dashboard(view, tz=UTC)
    assert "Weekly Rhythm" in html
    assert "Project Breakdown" in html
    assert "WP Fusion" in html
    assert "Longer explanation" in html
    assert "Updated 2025-02-07 18:00" in html
    assert "Show" not in html


def _serve(handler_cls: type[BaseHTTPRequestHandler]) -> HTTPServer:
    server = HTTPServer(("127.0.0.1", 0), handler_cls)
    threading.Thread(target=server.serve_forever, daemon=True).start()
    return server


def test_fetch_activity_data_over_http() -> None:
    body = json.dumps(DATA).encode("utf-8")

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:  # noqa: N802
            if self.path != DATA_PATH:
                self.send_response(404)
                self.end_headers()
                return
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, fmt: str, *args: object) -> None:
            return

    server = _serve(Handler)
    try:
        data = fetch_activity_data(f"http://127.0.0.1:{server.server_port}{DATA_PATH}")
        assert data == DATA
        with pytest.raises(DataError):
            fetch_activity_data(f"http://127.0.0.1:{server.server_port}/missing.json")
    finally:
        server.shutdown()
        server.server_close()


def test_fetch_rejects_payload_without_commits() -> None:
    body = json.dumps({"generatedAt": "x"}).encode("utf-8")

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:  # noqa: N802
            self.send_response(200)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, fmt: str, *args: object) -> None:
            return

    server = _serve(Handler)
    try:
        with pytest.raises(DataError, match="Commits missing"):
            fetch_activity_data(f"http://127.0.0.1:{server.server_port}{DATA_PATH}")
    finally:
        server.shutdown()
        server.server_close()


def test_dashboard_server_is_read_only(tmp_path: Path) -> None:
    data_file = tmp_path / "activity-data.json"
    data_file.write_text(json.dumps(DATA), encoding="utf-8")
    server = make_dashboard_server(data_file, port=0, table=TABLE)
    threading.Thread(target=server.serve_forever, daemon=True).start()
    base = f"http://127.0.0.1:{server.server_port}"
    try:
        assert fetch_activity_data(base + DATA_PATH) == DATA

        with urllib.request.urlopen(base + "/", timeout=10) as resp:
            html = resp.read().decode("utf-8")
        assert "Project Breakdown" in html

        req = urllib.request.Request(base + DATA_PATH, data=b"{}", method="POST")
        with pytest.raises(urllib.error.HTTPError) as exc:
            urllib.request.urlopen(req, timeout=10)
        assert exc.value.code == 501
        assert json.loads(data_file.read_text(encoding="utf-8")) == DATA
    finally:
        server.shutdown()
        server.server_close()
