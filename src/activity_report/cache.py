from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

from .models import Snapshot


class DataError(Exception):
    """A snapshot could not be read: missing, unreadable or not snapshot-shaped."""


def _current_umask() -> int:
    old = os.umask(0)
    os.umask(old)
    return old


def save_snapshot(snapshot: Snapshot, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False) + "\n"
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        # mkstemp creates 0600; match what a plain open() would give.
        os.chmod(tmp_name, 0o666 & ~_current_umask())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def snapshot_from_json_text(text: str, *, source: str) -> Snapshot:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DataError(f"{source}: invalid JSON ({e})") from e
    try:
        return Snapshot.from_dict(data)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise DataError(f"{source}: not a snapshot ({e!r})") from e


def load_snapshot(path: Path) -> Snapshot:
    if not path.exists():
        raise DataError(f"{path}: no such cache file")
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise DataError(f"{path}: unreadable ({e})") from e
    return snapshot_from_json_text(text, source=str(path))
