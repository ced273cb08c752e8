"""
Tolerant Reads, Atomic Writes
=============================

Scanning must be total over any input tree, so reads never raise: a file that
is missing or cannot be read degrades to ``default``. Writes (BLOCKERS.md,
saved plans, stage JSON) go to a temp file in the target directory and are
moved into place with ``os.replace``, so a crash never leaves a half-written
file behind.

Usage:
    from feature_advisor.core.safe_io import safe_read_text, safe_write_json

    text = safe_read_text(path)          # "" when missing/unreadable
    data = safe_read_json(path)          # None when missing/invalid
    safe_write_json(path, plan.to_dict())
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any

from .logging import get_logger

logger = get_logger(__name__)


def safe_read_text(path: Path | str, encoding: str = "utf-8", default: str = "") -> str:
    """File contents with undecodable bytes replaced, or ``default`` on any OSError."""
    try:
        return Path(path).read_text(encoding=encoding, errors="replace")
    except FileNotFoundError:
        return default
    except OSError as e:
        logger.debug(f"Unreadable file {path}: {e}")
        return default


def safe_read_json(path: Path | str, encoding: str = "utf-8", default: Any = None) -> Any:
    """
    Parsed JSON, or ``default``.

    A missing file is silent. An empty or malformed file logs a warning,
    because it usually means an optional input the user meant to supply is
    being ignored.
    """
    path = Path(path)
    if not path.is_file():
        return default

    text = safe_read_text(path, encoding=encoding)
    if not text.strip():
        logger.warning(f"Ignoring empty JSON file: {path}")
        return default
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning(f"Ignoring invalid JSON in {path}: {e}")
        return default


@contextmanager
def _atomic_target(path: Path, encoding: str) -> Iterator[IO[str]]:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding=encoding) as handle:
            yield handle
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def safe_write_text(path: Path | str, content: str, encoding: str = "utf-8") -> None:
    """
    Replace ``path`` with ``content`` atomically, creating parent directories.

    Raises:
        OSError: The directory is not writable or the replace failed
    """
    with _atomic_target(Path(path), encoding) as handle:
        handle.write(content)


def safe_write_json(
    path: Path | str, data: Any, indent: int = 2, encoding: str = "utf-8"
) -> None:
    """
    Atomic JSON write with a trailing newline.

    Values json cannot encode (paths, enums, datetimes) are written as ``str()``.
    """
    content = json.dumps(data, indent=indent, ensure_ascii=False, default=str)
    safe_write_text(path, f"{content}\n", encoding=encoding)
