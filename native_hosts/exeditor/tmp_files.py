"""Private cache of staged files under `<tmp>/<label>/<pid>/`.

Layout: `<root>/<category>/<windowId>/<tabId>/<host>/<fileName>`. Every delete
goes through `file_util.remove_dir` with an explicit base, so nothing outside
the root can be removed whatever the extension sends.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from . import file_util
from .constants import LABEL, TMP_FILES, TMP_FILES_PB
from .errors import HostWarning, PathOutsideRootError

_LOGGER = logging.getLogger("exeditor.host.tmp_files")


@dataclass(slots=True)
class StagedFile:
    data: dict[str, Any]
    file_path: str
    timestamp: int = 0
    value: str = ""

    def port_payload(self) -> dict[str, Any]:
        data = dict(self.data)
        data["filePath"] = self.file_path
        return {"data": data, "filePath": self.file_path}

    def res_payload(self) -> dict[str, Any]:
        data = dict(self.data)
        if self.file_path:
            data["filePath"] = self.file_path
        data["timestamp"] = int(self.timestamp)
        return {"data": data, "value": self.value}


class TmpFileManager:
    def __init__(self, tmp_dir: str | os.PathLike[str], app_id: str | None = None) -> None:
        self.tmp_dir = Path(tmp_dir)
        self.app_id = str(app_id or os.getpid())
        self.root = self.tmp_dir / LABEL / self.app_id
        self.files_dir = self.root / TMP_FILES
        self.private_dir = self.root / TMP_FILES_PB

    def _segments(self, *tail: object) -> list[object]:
        return [str(self.tmp_dir), LABEL, self.app_id, *tail]

    async def init_dirs(self) -> tuple[Path | None, Path | None]:
        """Create both category roots; a failed one comes back as `None`."""
        normal, private = await asyncio.gather(
            self._ensure(self._segments(TMP_FILES)),
            self._ensure(self._segments(TMP_FILES_PB)),
        )
        return normal, private

    async def _ensure(self, segments: list[object]) -> Path | None:
        try:
            return await asyncio.to_thread(file_util.create_dir, segments)
        except (OSError, ValueError) as exc:
            _LOGGER.warning("failed to create %s: %s", segments, exc)
            return None

    async def create_staged(
        self,
        category: object,
        window_id: object,
        tab_id: object,
        host: object,
        file_name: object,
        value: str = "",
        data: dict[str, Any] | None = None,
    ) -> StagedFile | None:
        """Write `value` to the staged path; `None` if any step fails."""
        if not file_util.is_path_component(file_name):
            _LOGGER.debug("rejecting file name %r", file_name)
            return None
        try:
            dir_path = await asyncio.to_thread(
                file_util.create_dir, self._segments(category, window_id, tab_id, host)
            )
        except (OSError, ValueError) as exc:
            _LOGGER.debug("failed to create staged dir: %s", exc)
            return None
        if not file_util.is_subdir(dir_path, self.root):
            return None
        try:
            file_path = await asyncio.to_thread(file_util.create_file, dir_path / str(file_name), value or "")
        except OSError as exc:
            _LOGGER.warning("failed to write staged file: %s", exc)
            return None
        if file_path is None:
            return None
        return StagedFile(data=dict(data or {}), file_path=str(file_path))

    async def create_from_message(self, obj: Any) -> StagedFile | None:
        if not isinstance(obj, dict) or not isinstance(obj.get("data"), dict):
            return None
        data = obj["data"]
        value = obj.get("value")
        return await self.create_staged(
            data.get("dir"),
            data.get("windowId"),
            data.get("tabId"),
            data.get("host"),
            data.get("fileName"),
            value if isinstance(value, str) else "",
            data=data,
        )

    async def read_staged(self, data: Any) -> StagedFile:
        data = dict(data) if isinstance(data, dict) else {}
        file_path = data.get("filePath")
        if not file_path:
            return StagedFile(data=data, file_path="", timestamp=0, value="")
        if not isinstance(file_path, str) or not file_util.is_subdir(file_path, self.root):
            raise PathOutsideRootError(file_path, self.root)
        timestamp = await asyncio.to_thread(file_util.get_file_timestamp, file_path)
        value = await asyncio.to_thread(file_util.read_file, file_path)
        return StagedFile(data=data, file_path=file_path, timestamp=timestamp, value=value)

    async def purge_private_tree(self) -> None:
        """Delete and recreate the private subtree; raises `HostWarning` on failure."""
        target = self.private_dir
        try:
            await asyncio.to_thread(file_util.remove_dir, target, self.root)
        except OSError as exc:
            _LOGGER.warning("failed to remove %s: %s", target, exc)
        if file_util.is_dir(target):
            raise HostWarning(f"Failed to remove {target}.")
        created = await self._ensure(self._segments(TMP_FILES_PB))
        if created != target:
            raise HostWarning(f"Failed to create {target}.")

    def purge_root(self) -> None:
        """Best-effort removal of the whole root; used while exiting."""
        try:
            file_util.remove_dir(self.root, self.tmp_dir)
        except (OSError, PathOutsideRootError) as exc:
            _LOGGER.debug("failed to remove %s: %s", self.root, exc)
