from __future__ import annotations

import json
import logging
import os
import shlex
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import EDITOR_CONFIG_FILE

EDITOR_PATH = "editorPath"
CMD_ARGS = "cmdArgs"
FILE_AFTER_ARGS = "fileAfterCmdArgs"


def expand_path(raw: str) -> str:
    return str(Path(raw).expanduser())


def _env_flag(name: str, default: bool) -> bool:
    raw = (os.environ.get(name) or "").strip().lower()
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    return default


@dataclass(frozen=True)
class HostSettings:
    """Process settings read once at startup."""

    tmp_dir: str
    editor_config_path: str
    escape_backslash: bool = False
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> HostSettings:
        tmp_raw = os.environ.get("EXEDITOR_HOST_TMPDIR", "").strip()
        cfg_raw = os.environ.get("EXEDITOR_HOST_CONFIG", "").strip()
        return cls(
            tmp_dir=expand_path(tmp_raw) if tmp_raw else tempfile.gettempdir(),
            editor_config_path=expand_path(cfg_raw) if cfg_raw else default_editor_config_path(),
            escape_backslash=_env_flag("EXEDITOR_HOST_ESCAPE_BACKSLASH", os.sep == "\\"),
            log_level=(os.environ.get("EXEDITOR_HOST_LOG_LEVEL") or "WARNING").strip().upper(),
        )


def default_editor_config_path() -> str:
    return str(Path(".", EDITOR_CONFIG_FILE).resolve())


def normalize_cmd_args(raw: Any) -> tuple[str, ...]:
    if raw is None or raw == "":
        return ()
    if isinstance(raw, str):
        return tuple(shlex.split(raw, posix=os.name != "nt"))
    if isinstance(raw, (list, tuple)):
        return tuple(str(a) for a in raw)
    raise TypeError(f"{CMD_ARGS} must be a list or a string, got {type(raw).__name__}.")


@dataclass(frozen=True)
class EditorConfig:
    """Active editor settings. Replaced as a whole, never mutated."""

    editor_path: str = ""
    cmd_args: tuple[str, ...] = ()
    file_after_cmd_args: bool = False
    extras: Mapping[str, Any] = field(default_factory=dict)

    def merged(self, data: Mapping[str, Any]) -> EditorConfig:
        """Overlay the keys present in `data` onto a copy of this record."""
        changes: dict[str, Any] = {}
        extras = dict(self.extras)
        for key, value in data.items():
            if key == EDITOR_PATH:
                changes["editor_path"] = value if isinstance(value, str) else ""
            elif key == CMD_ARGS:
                changes["cmd_args"] = normalize_cmd_args(value)
            elif key == FILE_AFTER_ARGS:
                changes["file_after_cmd_args"] = bool(value)
            else:
                extras[key] = value
        changes["extras"] = extras
        return replace(self, **changes)


def parse_editor_config(text: str, path: str) -> dict[str, Any]:
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object but got {type(data).__name__}: {path}")
    return data


def parse_log_level(raw: str | None, default: int = logging.WARNING) -> int:
    """Numeric level for a name like `DEBUG`; unknown names fall back to `default`."""
    name = (raw or "").strip().upper()
    if name.isdigit():
        return int(name)
    level = logging.getLevelName(name) if name else default
    return level if isinstance(level, int) else default
