"""
Dashboard over a published `activity-data.json`.

The dashboard never writes back into the pipeline: it reads the snapshot over
HTTP (or from the cache file when serving it), buckets commits by day and by
repository category and renders a small HTML page.
"""
from __future__ import annotations

import datetime as dt
import json
import urllib.error
import urllib.request
from collections import defaultdict
from functools import partial
from html import escape
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

from .cache import DataError
from .categories import CATEGORIES, CATEGORY_COLORS, DEFAULT_TABLE, CategoryTable, category_for
from .models import parse_iso

DATA_PATH = "/activity-data.json"
RHYTHM_DAYS = 7
RECENT_LIMIT = 20
BAR_MIN_SCALE = 5


def fetch_activity_data(url: str, timeout_s: int = 30) -> dict:
    req = urllib.request.Request(url, method="GET", headers={"Accept": "application/json"})
    try:
        with urllib.request.urlopen(req, timeout=timeout_s) as resp:
            body = resp.read().decode("utf-8", errors="replace")
    except urllib.error.HTTPError as e:
        raise DataError(f"GET {url} failed: HTTP {e.code}") from e
    except urllib.error.URLError as e:
        raise DataError(f"GET {url} failed: {e.reason}") from e
    return parse_activity_data(body, source=url)


def parse_activity_data(text: str, *, source: str) -> dict:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DataError(f"{source}: invalid JSON ({e})") from e
    if not isinstance(data, dict) or not isinstance(data.get("commits"), list):
        raise DataError("Invalid data format. Commits missing.")
    return data


def _commit_day(commit: dict, tz: dt.tzinfo | None) -> dt.date | None:
    d = parse_iso(str(commit.get("date") or ""))
    if d is None:
        return None
    return (d.astimezone(tz) if tz is not None else d.astimezone()).date()


def _as_int(value: object) -> int:
    try:
        return int(value or 0)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0


def _stat(commit: dict, key: str) -> int:
    stats = commit.get("stats")
    return _as_int(stats.get(key)) if isinstance(stats, dict) else 0


def build_dashboard_view(
    data: dict,
    *,
    table: CategoryTable = DEFAULT_TABLE,
    today: dt.date | None = None,
    tz: dt.tzinfo | None = None,
) -> dict:
    commits = [c for c in data.get("commits") or [] if isinstance(c, dict)]
    if today is None:
        today = dt.datetime.now(tz).date() if tz is not None else dt.date.today()

    by_day: dict[dt.date, list[dict]] = defaultdict(list)
    for c in commits:
        day = _commit_day(c, tz)
        if day is not None:
            by_day[day].append(c)

    rhythm = []
    for offset in range(RHYTHM_DAYS - 1, -1, -1):
        day = today - dt.timedelta(days=offset)
        day_commits = by_day.get(day, [])
        counts: dict[str, int] = {}
        for c in day_commits:
            cat = category_for(str(c.get("repo") or ""), table)
            counts[cat] = counts.get(cat, 0) + 1
        rhythm.append(
            {
                "date": day.isoformat(),
                "weekday": f"{day:%a}",
                "day": day.day,
                "is_today": offset == 0,
                "total": len(day_commits),
                "categories": counts,
            }
        )

    repo_stats: dict[str, dict[str, object]] = {}
    groups: dict[str, list[str]] = {}
    for c in commits:
        repo = str(c.get("repo") or "")
        cat = category_for(repo, table)
        if repo not in repo_stats:
            repo_stats[repo] = {"repo": repo, "commits": 0, "added": 0, "deleted": 0, "url": str(c.get("remoteUrl") or "")}
            groups.setdefault(cat, []).append(repo)
        s = repo_stats[repo]
        s["commits"] = int(s["commits"]) + 1
        s["added"] = int(s["added"]) + _stat(c, "added")
        s["deleted"] = int(s["deleted"]) + _stat(c, "deleted")

    projects = [
        {"category": cat, "label": table.label(cat), "repos": [repo_stats[r] for r in repos]}
        for cat, repos in groups.items()
    ]

    recent = []
    for c in commits[:RECENT_LIMIT]:
        files = [f for f in (c.get("files") or []) if isinstance(f, dict)]
        remote = str(c.get("remoteUrl") or "")
        recent.append(
            {
                "repo": str(c.get("repo") or ""),
                "hash": str(c.get("hash") or ""),
                "short_hash": str(c.get("shortHash") or str(c.get("hash") or "")[:7]),
                "date": str(c.get("date") or ""),
                "headline": str(c.get("headline") or ""),
                "body": str(c.get("body") or ""),
                "url": f"{remote}/commit/{c.get('hash')}" if remote and c.get("hash") else "",
                "added": sum(_as_int(f.get("added")) for f in files),
                "deleted": sum(_as_int(f.get("deleted")) for f in files),
                "files": len(files),
            }
        )

    return {
        "generated_at": str(data.get("generatedAt") or ""),
        "period_start": str(data.get("periodStart") or ""),
        "totals": {
            "commits": len(commits),
            "added": sum(_stat(c, "added") for c in commits),
            "deleted": sum(_stat(c, "deleted") for c in commits),
        },
        "rhythm": rhythm,
        "projects": projects,
        "recent": recent,
        "more": max(0, len(commits) - RECENT_LIMIT),
    }


def _render_rhythm(rhythm: list[dict]) -> str:
    cols = []
    for day in rhythm:
        total = int(day["total"])
        if total == 0:
            bar = '<div class="empty"></div>'
        else:
            scale = max(total, BAR_MIN_SCALE)
            segs = []
            for cat in CATEGORIES:
                n = day["categories"].get(cat, 0)
                if n:
                    segs.append(f'<div class="seg" title="{escape(cat)}" style="height:{n / scale * 100:.1f}%;background:{CATEGORY_COLORS[cat][0]}"></div>')
            bar = "".join(segs)
        cls = "bar today" if day["is_today"] else "bar"
        cols.append(
            f'<div class="day"><div class="dow">{escape(day["weekday"])}</div>'
            f'<div class="{cls}">{bar}</div><div class="dnum">{day["day"]}</div></div>'
        )
    return '<div class="rhythm">' + "".join(cols) + "</div>"


def _render_projects(projects: list[dict]) -> str:
    out = []
    for group in projects:
        solid, text, tint = CATEGORY_COLORS.get(group["category"], CATEGORY_COLORS["other"])
        cards = []
        for r in group["repos"]:
            href = escape(r["url"] or "#", quote=True)
            cards.append(
                f'<a class="project" href="{href}" target="_blank"><div class="project-head">'
                f'<span class="mono">{escape(r["repo"])}</span>'
                f'<span class="pill" style="background:{tint};color:{text}">{r["commits"]}c</span></div>'
                f'<div class="mono muted"><span class="added">+{r["added"]}</span> <span class="deleted">-{r["deleted"]}</span></div></a>'
            )
        out.append(f'<div><h3 style="color:{text}">{escape(group["label"])}</h3>{"".join(cards)}</div>')
    return '<div class="projects">' + "".join(out) + "</div>"


def _render_recent(recent: list[dict], more: int, tz: dt.tzinfo | None) -> str:
    rows = []
    for c in recent:
        d = parse_iso(c["date"])
        time_s = f"{(d.astimezone(tz) if tz is not None else d.astimezone()):%H:%M}" if d is not None else ""
        hash_html = escape(c["short_hash"])
        if c["url"]:
            hash_html = f'<a href="{escape(c["url"], quote=True)}" target="_blank">{hash_html}</a>'
        body = f'<p class="muted">{escape(c["body"])}</p>' if c["body"] else ""
        rows.append(
            f'<div class="commit"><div class="mono muted when">{time_s}</div><div class="what">'
            f'<div><span class="mono repo">{escape(c["repo"])}</span> <span class="mono hash">{hash_html}</span></div>'
            f"<h4>{escape(c['headline'])}</h4>{body}</div>"
            f'<div class="mono muted size"><span class="added">+{c["added"]}</span> / <span class="deleted">-{c["deleted"]}</span>'
            f'<div>{c["files"]} files</div></div></div>'
        )
    if more:
        rows.append(f'<div class="muted more">Show {more} more commits</div>')
    return "".join(rows)


DASHBOARD_STYLE = """
body { margin:0;background:#F8FAFC;color:#0F172A;font-family:system-ui,-apple-system,sans-serif; }
.mono { font-family:ui-monospace,SFMono-Regular,Menlo,monospace; }
.muted { color:#64748B; }
.added { color:#16A34A; } .deleted { color:#DC2626; }
header { border-bottom:1px solid #E2E8F0;background:rgba(255,255,255,0.5);padding:1rem; }
header .inner, main { max-width:72rem;margin:0 auto; }
header .inner { display:flex;justify-content:space-between;align-items:center; }
main { padding:2rem 1rem; }
h2 { font-size:1.1rem; }
.rhythm { display:flex;gap:0.5rem;align-items:flex-end; }
.day { flex:1;display:flex;flex-direction:column;align-items:center;gap:0.5rem; }
.bar { width:100%;height:6rem;border-radius:0.375rem;background:#F8FAFC;display:flex;flex-direction:column-reverse;overflow:hidden; }
.bar.today { height:8rem;background:#F1F5F9;outline:2px solid #E2E8F0; }
.projects { display:grid;grid-template-columns:repeat(auto-fill,minmax(18rem,1fr));gap:1.5rem; }
.projects h3 { font-size:0.75rem;text-transform:uppercase;letter-spacing:0.1em; }
.project { display:block;background:#FFF;border:1px solid #E2E8F0;border-radius:0.5rem;padding:1rem;margin-bottom:0.75rem;text-decoration:none;color:inherit; }
.project-head { display:flex;justify-content:space-between; }
.pill { font-size:0.65rem;padding:0.1rem 0.4rem;border-radius:0.25rem; }
.commit { display:flex;gap:1rem;padding:1rem;border-radius:0.5rem; }
.commit .when { width:6rem; } .commit .what { flex:1; } .commit .size { text-align:right;font-size:0.7rem; }
.repo { font-weight:700;text-transform:uppercase;font-size:0.75rem; }
.hash a { color:#3B82F6;font-size:0.65rem; }
.more { text-align:center; }
""".strip()


def render_dashboard(view: dict, *, tz: dt.tzinfo | None = None) -> str:
    t = view["totals"]
    generated = parse_iso(view["generated_at"])
    updated = f"{(generated.astimezone(tz) if tz is not None else generated.astimezone()):%Y-%m-%d %H:%M}" if generated else "unknown"
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Activity Dashboard</title>
  <style>
{DASHBOARD_STYLE}
  </style>
</head>
<body>
<header><div class="inner">
  <div><h1>Activity Report</h1><div class="mono muted">Updated {escape(updated)}</div></div>
  <div class="mono muted"><b>{t['commits']}</b> commits &nbsp; <span class="added">+{t['added']:,}</span> / <span class="deleted">-{t['deleted']:,}</span> lines</div>
</div></header>
<main>
  <section><h2>Weekly Rhythm</h2>{_render_rhythm(view['rhythm'])}</section>
  <section><h2>Project Breakdown</h2>{_render_projects(view['projects'])}</section>
  <section><h2>Recent Commits</h2>{_render_recent(view['recent'], int(view['more']), tz)}</section>
</main>
</body>
</html>
"""


class DashboardHandler(BaseHTTPRequestHandler):
    """Read-only: serves the snapshot file and a dashboard rendered from it."""

    def __init__(self, *args, data_file: Path, table: CategoryTable, **kwargs) -> None:
        self.data_file = data_file
        self.table = table
        super().__init__(*args, **kwargs)

    def _send(self, code: int, body: bytes, content_type: str) -> None:
        self.send_response(code)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Cache-Control", "no-store")
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self) -> None:  # noqa: N802
        path = self.path.split("?", 1)[0]
        try:
            text = self.data_file.read_text(encoding="utf-8")
        except OSError as e:
            self._send(503, f"snapshot unavailable: {e}\n".encode("utf-8"), "text/plain; charset=utf-8")
            return

        if path == DATA_PATH:
            self._send(200, text.encode("utf-8"), "application/json; charset=utf-8")
            return
        if path in ("/", "/index.html"):
            try:
                data = parse_activity_data(text, source=str(self.data_file))
            except DataError as e:
                self._send(500, f"{e}\n".encode("utf-8"), "text/plain; charset=utf-8")
                return
            html = render_dashboard(build_dashboard_view(data, table=self.table))
            self._send(200, html.encode("utf-8"), "text/html; charset=utf-8")
            return
        self._send(404, b"not found\n", "text/plain; charset=utf-8")

    def log_message(self, fmt: str, *args: object) -> None:
        return


def make_dashboard_server(data_file: Path, *, host: str = "127.0.0.1", port: int = 8000, table: CategoryTable = DEFAULT_TABLE) -> ThreadingHTTPServer:
    handler = partial(DashboardHandler, data_file=data_file, table=table)
    return ThreadingHTTPServer((host, port), handler)


def serve_dashboard(data_file: Path, *, host: str = "127.0.0.1", port: int = 8000, table: CategoryTable = DEFAULT_TABLE) -> None:
    server = make_dashboard_server(data_file, host=host, port=port, table=table)
    print(f"Serving {data_file} at http://{host}:{server.server_port}/ (snapshot at {DATA_PATH}); Ctrl-C to stop.")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("")
    finally:
        server.server_close()
