from __future__ import annotations

import datetime as dt
from html import escape
from pathlib import Path

from .models import Commit, PullRequest, Snapshot, parse_iso

DEFAULT_PALETTE = (
    "#3B82F6",
    "#8B5CF6",
    "#10B981",
    "#F59E0B",
    "#EF4444",
    "#EC4899",
    "#6366F1",
    "#14B8A6",
    "#84CC16",
    "#06B6D4",
)
FALLBACK_COLOR = "#94A3B8"
SUMMARY_FILE_NAMES = 3

STYLE = """
:root { --bg:#F8FAFC;--surface:#FFF;--border:#E2E8F0;--text:#0F172A;--muted:#64748B;--green:#166534;--red:#991B1B;--blue:#3B82F6; }
* { margin:0;padding:0;box-sizing:border-box; }
body { background:var(--bg);color:var(--text);font-family:'Inter',system-ui,-apple-system,sans-serif;line-height:1.5;padding:2rem; }
a { color:inherit; }
a:hover { color:var(--blue); }
code, .mono { font-family:'JetBrains Mono',ui-monospace,SFMono-Regular,Menlo,monospace; }
.container { max-width:1200px;margin:0 auto; }
.header { display:flex;justify-content:space-between;align-items:flex-start;margin-bottom:3rem;flex-wrap:wrap;gap:2rem; }
h1 { font-size:2.5rem;font-weight:700;letter-spacing:-0.02em; }
.subtitle { color:var(--muted);margin-top:0.25rem; }
.stats-row { display:flex;gap:1.5rem; }
.stat { background:var(--surface);border:1px solid var(--border);padding:1.25rem 1.5rem;border-radius:0.75rem;text-align:center;min-width:100px; }
.stat-val { font-size:1.75rem;font-weight:700; }
.stat-val.added { color:var(--green); }
.stat-val.deleted { color:var(--red); }
.stat-label { font-size:0.8rem;color:var(--muted);font-weight:500; }
.repos { display:flex;flex-wrap:wrap;gap:0.5rem;margin-bottom:2rem;padding:1rem;background:var(--surface);border-radius:0.75rem;border:1px solid var(--border); }
.repo-chip { font-size:0.8rem;padding:0.25rem 0.75rem;border-radius:2rem;background:var(--bg);border:1px solid var(--border);display:flex;align-items:center;gap:0.5rem;text-decoration:none; }
.repo-dot { width:8px;height:8px;border-radius:50%; }
.section-title { font-size:1.25rem;font-weight:600;margin:2rem 0 1rem; }
.prs { display:grid;gap:1rem;margin-bottom:3rem; }
.pr-card { background:var(--surface);border:1px solid var(--border);border-radius:0.75rem;padding:1.25rem;display:grid;grid-template-columns:auto 1fr auto;gap:1rem;align-items:start; }
.pr-state { width:12px;height:12px;border-radius:50%;margin-top:0.3rem; }
.pr-state.open { background:#22C55E;box-shadow:0 0 8px rgba(34,197,94,0.4); }
.pr-state.merged { background:#8B5CF6;box-shadow:0 0 8px rgba(139,92,246,0.4); }
.pr-state.closed { background:#EF4444; }
.pr-title { font-weight:600;margin-bottom:0.25rem; }
.pr-meta { font-size:0.8rem;color:var(--muted);display:flex;flex-wrap:wrap;gap:0.75rem;align-items:center; }
.pr-meta code { background:var(--bg);padding:0.1rem 0.4rem;border-radius:4px;font-size:0.75rem; }
.badge { font-size:0.7rem;padding:0.05rem 0.45rem;border-radius:1rem;border:1px solid var(--border); }
.badge.mergeable { color:var(--green); }
.pr-stats { text-align:right;font-size:0.8rem; }
.added { color:var(--green); }
.deleted { color:var(--red); }
.timeline { display:grid;grid-template-columns:90px 1fr;gap:0 2rem;width:100%; }
.day-header { grid-column:1/-1;font-weight:600;color:var(--muted);font-size:0.85rem;text-transform:uppercase;letter-spacing:0.05em;margin:2rem 0 1rem;padding-bottom:0.5rem;border-bottom:1px dashed var(--border); }
.time { text-align:right;font-size:0.8rem;color:var(--muted);padding-top:1rem; }
.event { position:relative;padding-left:1.5rem;border-left:2px solid var(--border);padding-bottom:1rem; }
.event-dot { position:absolute;left:-7px;top:1rem;width:12px;height:12px;border-radius:50%;background:var(--surface);border:3px solid currentColor; }
.event-card { background:var(--surface);border:1px solid var(--border);border-radius:0.5rem;padding:0.75rem 1rem; }
.event-header { display:flex;justify-content:space-between;align-items:center;margin-bottom:0.5rem;gap:1rem; }
.event-repo { font-size:0.7rem;font-weight:600;text-transform:uppercase;letter-spacing:0.03em;white-space:nowrap; }
.event-stats { font-size:0.7rem;display:flex;gap:0.5rem;white-space:nowrap; }
.event-msg { font-weight:500; }
.event-msg a { text-decoration:none; }
.event-hash { font-size:0.7rem;color:var(--blue);background:rgba(59,130,246,0.1);padding:0.1rem 0.3rem;border-radius:3px;margin-left:0.5rem; }
.event-summary { margin-top:0.5rem;font-size:0.75rem;color:var(--muted);font-style:italic; }
.event-files { margin-top:0.75rem;padding-top:0.75rem;border-top:1px dashed var(--border);font-size:0.75rem;color:var(--muted);display:none; }
.event-card:hover .event-summary { display:none; }
.event-card:hover .event-files { display:block; }
.file-line { display:flex;justify-content:space-between;margin-bottom:0.25rem;padding:0.25rem 0.5rem;background:var(--bg);border-radius:0.25rem; }
.file-name { color:var(--text);flex:1;overflow:hidden;text-overflow:ellipsis;white-space:nowrap; }
.file-stats { display:flex;gap:0.75rem;margin-left:1rem;flex-shrink:0;font-weight:600; }
@media (hover: none) { .event-summary { display:none; } .event-files { display:block; } }
@media (max-width: 768px) {
  body { padding:1rem; }
  .header { flex-direction:column;gap:1rem; }
  h1 { font-size:1.75rem; }
  .stats-row { flex-wrap:wrap;gap:0.75rem; }
  .pr-card { grid-template-columns:auto 1fr; }
  .pr-stats { grid-column:2;text-align:left; }
  .timeline { grid-template-columns:60px 1fr;gap:0 1rem; }
  .event-header { flex-direction:column;align-items:flex-start;gap:0.25rem; }
}
""".strip()


def window_label(hours: float) -> str:
    if hours >= 24 and hours % 24 == 0:
        days = int(hours // 24)
        return f"Last {days} day{'s' if days != 1 else ''}"
    if hours == int(hours):
        h = int(hours)
        return f"Last {h} hour{'s' if h != 1 else ''}"
    return f"Last {hours:g} hours"


def thousands(n: int) -> str:
    return f"{n / 1000:.1f}k"


def repo_colors(snapshot: Snapshot, palette: tuple[str, ...] = DEFAULT_PALETTE) -> dict[str, str]:
    return {name: palette[i % len(palette)] for i, name in enumerate(repos_by_activity(snapshot))}


def repos_by_activity(snapshot: Snapshot) -> list[str]:
    return sorted(snapshot.repositories, key=lambda name: (-snapshot.repositories[name].commit_count, name))


def _local(ts: str, tz: dt.tzinfo | None) -> dt.datetime | None:
    d = parse_iso(ts)
    if d is None:
        return None
    return d.astimezone(tz) if tz is not None else d.astimezone()


def day_label(d: dt.datetime) -> str:
    return f"{d:%A}, {d:%b} {d.day}"


def file_summary(commit: Commit) -> str:
    names = [f.path.rsplit("/", 1)[-1] for f in commit.files[:SUMMARY_FILE_NAMES]]
    n = len(commit.files)
    more = " +more" if n > SUMMARY_FILE_NAMES else ""
    return f"{n} file{'s' if n != 1 else ''}: {', '.join(names)}{more}"


def _render_header(snapshot: Snapshot, label: str) -> str:
    t = snapshot.totals
    return f"""
  <div class="header">
    <div>
      <h1>Activity Report</h1>
      <div class="subtitle">{escape(label)} &bull; {t.commits} commits &bull; {t.prs} PRs</div>
    </div>
    <div class="stats-row mono">
      <div class="stat"><div class="stat-val">{t.commits}</div><div class="stat-label">Commits</div></div>
      <div class="stat"><div class="stat-val added">+{thousands(t.additions)}</div><div class="stat-label">Lines</div></div>
      <div class="stat"><div class="stat-val deleted">-{thousands(t.deletions)}</div><div class="stat-label">Lines</div></div>
      <div class="stat"><div class="stat-val">{t.prs}</div><div class="stat-label">PRs</div></div>
    </div>
  </div>"""


def _render_repo_chips(snapshot: Snapshot, colors: dict[str, str]) -> str:
    chips = []
    for name in repos_by_activity(snapshot):
        r = snapshot.repositories[name]
        href = escape(r.remote_url or "#", quote=True)
        chips.append(
            f'<a href="{href}" target="_blank" class="repo-chip mono">'
            f'<span class="repo-dot" style="background:{colors[name]}"></span>'
            f'{escape(name)} <span style="color:var(--muted)">{r.commit_count}</span></a>'
        )
    return '\n  <div class="repos">\n    ' + "\n    ".join(chips) + "\n  </div>"


def _render_pr_card(pr: PullRequest) -> str:
    meta = [
        f"<span>{escape(pr.repo_name)}</span>",
        f"<code>{escape(pr.head_branch)} &rarr; {escape(pr.base_branch)}</code>",
        f"<span>{pr.commit_count} commits</span>",
    ]
    if pr.mergeable == "MERGEABLE":
        meta.append('<span class="badge mergeable">Mergeable</span>')
    if pr.reviews:
        meta.append(f'<span class="badge">{len(pr.reviews)} review{"s" if len(pr.reviews) != 1 else ""}</span>')
    for lb in sorted(pr.labels):
        meta.append(f'<span class="badge">{escape(lb)}</span>')
    return f"""
    <div class="pr-card">
      <div class="pr-state {escape(pr.state)}" title="{escape(pr.state)}"></div>
      <div>
        <a href="{escape(pr.url, quote=True)}" target="_blank" class="pr-title">{escape(pr.title)}</a>
        <div class="pr-meta">{' '.join(meta)}</div>
      </div>
      <div class="pr-stats mono">
        <div class="added">+{pr.stats.added:,}</div>
        <div class="deleted">-{pr.stats.deleted:,}</div>
        <div style="color:var(--muted)">{pr.stats.changed_files} files</div>
      </div>
    </div>"""


def _render_files(commit: Commit) -> str:
    if not commit.files:
        return ""
    rows = []
    for f in commit.files:
        stats = ""
        if f.added > 0:
            stats += f'<span class="added">+{f.added}</span>'
        if f.deleted > 0:
            stats += f'<span class="deleted">-{f.deleted}</span>'
        rows.append(f'<div class="file-line"><span class="file-name">{escape(f.path)}</span><div class="file-stats">{stats}</div></div>')
    return (
        f'\n          <div class="event-summary mono">{escape(file_summary(commit))}</div>'
        f'\n          <div class="event-files mono">{"".join(rows)}</div>'
    )


def _render_timeline(commits: tuple[Commit, ...], colors: dict[str, str], tz: dt.tzinfo | None) -> str:
    parts: list[str] = []
    last_day = None
    for c in commits:
        when = _local(c.timestamp, tz)
        day = day_label(when) if when is not None else "Unknown date"
        time_s = f"{when:%H:%M}" if when is not None else ""
        if day != last_day:
            parts.append(f'<div class="day-header">{escape(day)}</div>')
            last_day = day

        color = colors.get(c.repo_name, FALLBACK_COLOR)
        url = escape(c.commit_url or "#", quote=True)
        pr_ref = f" #{c.pr_number}" if c.pr_number is not None else ""
        parts.append(
            f"""<div class="time mono">{time_s}</div>
      <div class="event" style="border-left-color:{color}40">
        <div class="event-dot" style="color:{color}"></div>
        <div class="event-card">
          <div class="event-header">
            <span class="event-repo mono" style="color:{color}">{escape(c.repo_name)}{pr_ref}</span>
            <div class="event-stats mono"><span class="added">+{c.stats.added}</span><span class="deleted">-{c.stats.deleted}</span></div>
          </div>
          <div class="event-msg">
            <a href="{url}" target="_blank">{escape(c.headline)}</a><a href="{url}" target="_blank" class="event-hash mono">{escape(c.short_hash)}</a>
          </div>{_render_files(c)}
        </div>
      </div>"""
        )
    return "\n      ".join(parts)


def render_report(
    snapshot: Snapshot,
    label: str,
    *,
    palette: tuple[str, ...] = DEFAULT_PALETTE,
    tz: dt.tzinfo | None = None,
) -> str:
    """
    Static, self-contained HTML report for one snapshot.

    Output only depends on the snapshot, label, palette and timezone used to bucket
    commits by day (local time when `tz` is None).
    """
    colors = repo_colors(snapshot, palette)
    prs = ""
    if snapshot.pull_requests:
        cards = "".join(_render_pr_card(pr) for pr in snapshot.pull_requests)
        prs = f'\n  <div class="section-title">Pull Requests</div>\n  <div class="prs">{cards}\n  </div>'

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Activity Report</title>
  <style>
{STYLE}
  </style>
</head>
<body>
<div class="container">{_render_header(snapshot, label)}{_render_repo_chips(snapshot, colors)}{prs}
  <div class="section-title">Commit Timeline</div>
  <div class="timeline">
      {_render_timeline(snapshot.commits, colors, tz)}
  </div>
</div>
</body>
</html>
"""


def write_report(path: Path, html: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(html, encoding="utf-8")
