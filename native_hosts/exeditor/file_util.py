"""Filesystem primitives shared by the temp-file manager and the process bridge.

Everything here is synchronous; callers on the event loop go through
`asyncio.to_thread`. The only delete path is `remove_dir`, which refuses to
touch anything that is not strictly below its base directory.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from collections.abc import Iterable
from pathlib import Path
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

from .errors import PathOutsideRootError

_LOGGER = logging.getLogger("exeditor.host.file_util")

IS_WIN = os.name == "nt"
PERM_DIR = 0o777
CHARSET = "utf-8"
SUBST_NAME = "index"

_NAME_RE = re.compile(r"^([^.]+)(?:\..+)?$")


def is_file(path: str | os.PathLike[str] | None) -> bool:
    if not isinstance(path, (str, os.PathLike)) or not str(path):
        return False
    return Path(path).is_file()


def is_dir(path: str | os.PathLike[str] | None) -> bool:
    if not isinstance(path, (str, os.PathLike)) or not str(path):
        return False
    return Path(path).is_dir()


def is_executable(path: str | os.PathLike[str] | None) -> bool:
    if not is_file(path):
        return False
    if IS_WIN and str(path).lower().endswith(".exe"):
        return True
    return os.access(str(path), os.X_OK)


def get_file_timestamp(path: str | os.PathLike[str] | None) -> int:
    """Modification time in epoch milliseconds, 0 when the file is missing."""
    if not is_file(path):
        return 0
    return int(Path(path).stat().st_mtime * 1000)


def get_file_name_from_file_path(path: object, subst: str = SUBST_NAME) -> str:
    if not isinstance(path, str) or not path:
        return subst
    m = _NAME_RE.match(os.path.basename(path))
    return m.group(1) if m else subst


def conv_uri_to_file_path(uri: object) -> str | None:
    if not isinstance(uri, str):
        raise TypeError(f"Expected string but got {type(uri).__name__}.")
    parsed = urlparse(uri)
    if parsed.scheme != "file" or not parsed.path:
        return None
    # Remote hosts (UNC-style file URIs) are not local files.
    if parsed.netloc not in ("", "localhost"):
        return None
    if IS_WIN:
        return url2pathname(parsed.path)
    return unquote(parsed.path)


def _segment(value: object) -> str:
    if isinstance(value, bool):
        raise ValueError(f"Invalid path segment: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Invalid path segment: {value!r}")
        return str(value)
    if not isinstance(value, str) or not value:
        raise ValueError(f"Invalid path segment: {value!r}")
    return value


def is_path_component(name: object) -> bool:
    """True for a single relative path component (no separators, not `.`/`..`)."""
    if not isinstance(name, str) or not name or name in (".", ".."):
        return False
    if "/" in name or "\\" in name or "\x00" in name:
        return False
    return not (IS_WIN and ":" in name)


def create_dir(segments: Iterable[object], mode: int = PERM_DIR) -> Path:
    """Join `segments` and create every level that does not exist yet.

    The first segment is taken as-is (usually an absolute base); every
    following segment must be a single path component. Raises `ValueError`
    for a bad segment and `OSError` when a level cannot be created.
    """
    parts = [_segment(s) for s in segments]
    if not parts:
        raise ValueError("No path segments given.")
    for part in parts[1:]:
        if not is_path_component(part):
            raise ValueError(f"Invalid path segment: {part!r}")
    current = Path(parts[0])
    if not current.is_dir():
        current.mkdir(mode=mode, parents=True, exist_ok=True)
    for part in parts[1:]:
        current = current / part
        if not current.is_dir():
            current.mkdir(mode=mode, exist_ok=True)
    return current


def create_file(path: str | os.PathLike[str], value: str = "") -> Path | None:
    p = Path(path)
    with open(p, "w", encoding=CHARSET, newline="") as fp:
        fp.write(value)
    return p if p.is_file() else None


def read_file(path: str | os.PathLike[str]) -> str:
    if not is_file(path):
        raise FileNotFoundError(f"{path} is not a file.")
    with open(path, encoding=CHARSET, errors="replace", newline="") as fp:
        return fp.read()


def is_subdir(path: str | os.PathLike[str], base: str | os.PathLike[str]) -> bool:
    """True when `path` lies strictly below `base` (after resolving both)."""
    try:
        target = Path(path).resolve()
        root = Path(base).resolve()
    except (OSError, RuntimeError):
        return False
    return target != root and target.is_relative_to(root)


def remove_dir(path: str | os.PathLike[str], base: str | os.PathLike[str] | None = None) -> None:
    """Recursively delete `path`, refusing anything outside `base`.

    `base` defaults to the system temp directory. The containment check
    runs before any filesystem mutation.
    """
    base = tempfile.gettempdir() if base is None else base
    if not is_subdir(path, base):
        raise PathOutsideRootError(path, base)
    if not is_dir(path):
        return
    _LOGGER.debug("removing %s", path)
    shutil.rmtree(path)
