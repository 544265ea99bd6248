from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .cache import DataError
from .categories import category_table_from_config
from .config import DEFAULT_CACHE_FILE, DEFAULT_OUTPUT_FILE, load_config
from .run import run_report


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate a personal activity report from local git repos and GitHub PRs.")
    parser.add_argument("--paths", type=str, default="", help="Comma-separated roots to scan (default: ~/Projects,~/Local Sites).")
    parser.add_argument("--hours", type=float, default=None, help="Lookback window in hours (default: 168).")
    parser.add_argument("--max-depth", type=int, default=None, help="Max directory depth below each root (default: 4).")
    parser.add_argument("--author", type=str, default=None, help="Commit author filter (default: $ACTIVITY_REPORT_AUTHOR_EMAIL or git user.email).")
    parser.add_argument("--gh-author", type=str, default=None, help="GitHub author for PR search (default: $ACTIVITY_REPORT_GH_AUTHOR or @me).")
    parser.add_argument("--cache-file", type=Path, default=Path(DEFAULT_CACHE_FILE), help="Snapshot cache file.")
    parser.add_argument("--output-file", type=Path, default=Path(DEFAULT_OUTPUT_FILE), help="HTML report to write.")
    parser.add_argument("--config", type=Path, default=Path("config.json"), help="Path to config.json (optional).")
    prs = parser.add_mutually_exclusive_group()
    prs.add_argument("--prs", dest="prs", action="store_true", default=None, help="Fetch pull requests with gh (default).")
    prs.add_argument("--no-prs", dest="prs", action="store_false", help="Skip pull request fetching.")
    parser.add_argument("--cached", action="store_true", help="Render from the cache file when it exists.")
    parser.add_argument("--no-cache-write", dest="cache_write", action="store_false", help="Do not write the cache file.")
    return parser


def _load_config_or_exit(path: Path) -> dict:
    try:
        return load_config(path)
    except ValueError as e:
        print(f"Invalid config {path}: {e}", file=sys.stderr)
        raise SystemExit(2)


def _dashboard_main(argv: list[str]) -> int:
    from .dashboard import build_dashboard_view, fetch_activity_data, render_dashboard
    from .render import write_report

    p = argparse.ArgumentParser(prog="activity-report dashboard", description="Render the dashboard from a published activity-data.json.")
    p.add_argument("--data-url", type=str, required=True, help="URL of activity-data.json.")
    p.add_argument("--output-file", type=Path, default=Path("dashboard.html"), help="HTML file to write.")
    p.add_argument("--config", type=Path, default=Path("config.json"), help="Path to config.json (categories).")
    args = p.parse_args(argv)

    config = _load_config_or_exit(args.config)
    try:
        table = category_table_from_config(config)
        data = fetch_activity_data(args.data_url)
    except (ValueError, DataError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    write_report(args.output_file, render_dashboard(build_dashboard_view(data, table=table)))
    print(f"Generated {args.output_file}")
    return 0


def _serve_main(argv: list[str]) -> int:
    from .dashboard import serve_dashboard

    p = argparse.ArgumentParser(prog="activity-report serve", description="Serve activity-data.json and a dashboard over HTTP (read-only).")
    p.add_argument("--cache-file", type=Path, default=Path(DEFAULT_CACHE_FILE), help="Snapshot to serve.")
    p.add_argument("--host", type=str, default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    p.add_argument("--config", type=Path, default=Path("config.json"), help="Path to config.json (categories).")
    args = p.parse_args(argv)

    config = _load_config_or_exit(args.config)
    try:
        table = category_table_from_config(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    serve_dashboard(args.cache_file, host=args.host, port=args.port, table=table)
    return 0


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    if argv and argv[0] in ("-h", "--help"):
        p = _build_parser()
        p.prog = "activity-report"
        p.print_help()
        print("")
        print("commands:")
        print("  report      Generate the HTML report (default).")
        print("  dashboard   Render the dashboard from an activity-data.json URL.")
        print("  serve       Serve the cached snapshot and dashboard over HTTP.")
        print("")
        print("Run `activity-report <command> --help` for command-specific options.")
        return 0
    if argv and argv[0] == "dashboard":
        return _dashboard_main(argv[1:])
    if argv and argv[0] == "serve":
        return _serve_main(argv[1:])
    if argv and argv[0] == "report":
        argv = argv[1:]

    args = _build_parser().parse_args(argv)
    config = _load_config_or_exit(args.config)
    return run_report(args=args, config=config)


if __name__ == "__main__":
    raise SystemExit(main())
