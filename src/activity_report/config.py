from __future__ import annotations

import json
import os
from pathlib import Path

from .git import DEFAULT_EXCLUDE_DIRNAMES, read_git_config_value

DEFAULT_HOURS = 168
DEFAULT_MAX_DEPTH = 4
DEFAULT_GH_AUTHOR = "@me"
DEFAULT_CACHE_FILE = "activity-data.json"
DEFAULT_OUTPUT_FILE = "index.html"

AUTHOR_ENV = "ACTIVITY_REPORT_AUTHOR_EMAIL"
GH_AUTHOR_ENV = "ACTIVITY_REPORT_GH_AUTHOR"

BOOL_KEYS = ("include_prs",)


def default_roots() -> list[str]:
    home = Path.home()
    return [str(home / "Projects"), str(home / "Local Sites")]


def load_config(config_path: Path) -> dict:
    if not config_path.exists():
        return {}
    data = json.loads(config_path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{config_path}: expected a JSON object")
    for key in BOOL_KEYS:
        if key in data and not isinstance(data[key], bool):
            raise ValueError(f"{config_path}: `{key}` must be true or false, got {data[key]!r}")
    return data


def split_csv(value: str) -> list[str]:
    return [part.strip() for part in str(value or "").split(",") if part.strip()]


def expand_home(path: str) -> str:
    if path == "~":
        return str(Path.home())
    if path.startswith("~/"):
        return str(Path.home() / path[2:])
    return path


def resolve_roots(paths: list[str], cwd: Path | None = None) -> tuple[list[Path], list[Path]]:
    """Returns (existing roots, missing roots), both resolved against `cwd`."""
    base = cwd or Path.cwd()
    existing: list[Path] = []
    missing: list[Path] = []
    for p in paths:
        root = (base / expand_home(p)).resolve()
        if root.is_dir():
            existing.append(root)
        else:
            missing.append(root)
    return existing, missing


def resolve_author(cli_value: str | None, config: dict) -> str | None:
    for candidate in (cli_value, os.environ.get(AUTHOR_ENV), config.get("author")):
        if candidate and str(candidate).strip():
            return str(candidate).strip()
    return read_git_config_value("user.email")


def resolve_gh_author(cli_value: str | None, config: dict) -> str:
    for candidate in (cli_value, os.environ.get(GH_AUTHOR_ENV), config.get("gh_author")):
        if candidate and str(candidate).strip():
            return str(candidate).strip()
    return DEFAULT_GH_AUTHOR


def exclude_dirnames_from_config(config: dict) -> frozenset[str]:
    names = config.get("exclude_dirnames")
    if not names:
        return DEFAULT_EXCLUDE_DIRNAMES
    return frozenset({str(n) for n in names} | {".git"})
