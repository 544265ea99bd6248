from __future__ import annotations

import os
import re
import subprocess
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

DEFAULT_EXCLUDE_DIRNAMES = frozenset({"node_modules", ".git", ".next", "dist", "build", ".cache"})

_GITHUB_OWNER_REPO = re.compile(r"github\.com[:/]([^/]+)/([^/.]+)")


def run_git(args: list[str], cwd: Path, timeout_s: int = 300) -> tuple[int, str, str]:
    try:
        proc = subprocess.run(
            ["git", *args],
            cwd=str(cwd),
            capture_output=True,
            text=True,
            timeout=timeout_s,
        )
    except FileNotFoundError as e:
        return 127, "", f"git not available: {e}"
    except subprocess.TimeoutExpired:
        return 124, "", f"git {' '.join(args[:1])} timed out after {timeout_s}s"
    except OSError as e:
        return 126, "", str(e)
    return proc.returncode, proc.stdout, proc.stderr


def discover_git_repos(root: Path, max_depth: int, exclude_dirnames: frozenset[str] | set[str] = DEFAULT_EXCLUDE_DIRNAMES) -> list[Path]:
    """
    Bounded walk below `root` collecting every directory that holds a `.git` directory.

    A matched working tree is not descended into, excluded names are never entered and
    unreadable directories are skipped. Depth 0 only considers `root` itself.
    """
    repos: list[Path] = []
    stack: list[tuple[Path, int]] = [(root, 0)]

    while stack:
        current, depth = stack.pop()
        if depth > max_depth:
            continue
        try:
            with os.scandir(current) as it:
                entries = list(it)
        except OSError:
            continue

        subdirs: list[str] = []
        has_git_dir = False
        for entry in entries:
            try:
                is_dir = entry.is_dir()
            except OSError:
                continue
            if not is_dir:
                continue
            if entry.name == ".git":
                has_git_dir = True
                break
            subdirs.append(entry.name)

        if has_git_dir:
            repos.append(current)
            continue

        for name in subdirs:
            if name in exclude_dirnames:
                continue
            stack.append((current / name, depth + 1))

    return repos


def read_git_config_value(key: str, cwd: Path | None = None) -> Optional[str]:
    code, out, _ = run_git(["config", "--get", key], cwd=cwd or Path.cwd())
    if code != 0:
        return None
    value = out.strip()
    return value or None


def get_remote_origin(repo: Path) -> str:
    code, out, _ = run_git(["config", "--get", "remote.origin.url"], cwd=repo)
    if code == 0:
        return out.strip()
    return ""


def web_url_for_remote(remote: str) -> str:
    r = (remote or "").strip()
    if not r:
        return ""

    if "://" not in r and ":" in r and "@" in r.split(":", 1)[0]:
        left, path = r.split(":", 1)
        host = left.split("@", 1)[1]
        url = f"https://{host}/{path.lstrip('/')}"
    else:
        parsed = urlparse(r)
        if parsed.scheme in ("http", "https") and parsed.netloc:
            host = parsed.netloc
            if "@" in host:
                host = host.split("@", 1)[1]
            url = f"https://{host}/{parsed.path.lstrip('/')}"
        elif parsed.scheme == "ssh" and parsed.netloc:
            host = parsed.netloc.split("@", 1)[-1].split(":", 1)[0]
            url = f"https://{host}/{parsed.path.lstrip('/')}"
        else:
            url = r

    url = url.rstrip("/")
    if url.endswith(".git"):
        url = url[:-4]
    return url


def parse_remote(remote: str) -> tuple[str, str, str]:
    """Returns (web_url, owner, repo_slug); owner/slug are only known for github.com remotes."""
    url = web_url_for_remote(remote)
    owner = ""
    slug = ""
    m = _GITHUB_OWNER_REPO.search(remote or "")
    if m:
        owner, slug = m.group(1), m.group(2)
    return url, owner, slug
