"""
Message dispatch for the editor host.

Every top-level key of an inbound message is mapped to a `Command` and the
resulting handlers run concurrently. Unknown keys are answered with a
warning instead of being dropped.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from . import file_util
from .child_process import ProcessBridge
from .config import EDITOR_PATH, EditorConfig, parse_editor_config
from .constants import (
    EDITOR_CONFIG_GET,
    EDITOR_CONFIG_RES,
    LOCAL_FILE_VIEW,
    STATUS_ERROR,
    STATUS_WARN,
    TMP_FILE_CREATE,
    TMP_FILE_DATA_PORT,
    TMP_FILE_GET,
    TMP_FILE_RES,
    TMP_FILES_PB_REMOVE,
)
from .errors import HostWarning
from .native_message import FrameWriter, host_message
from .tmp_files import TmpFileManager

logger = logging.getLogger("exeditor.host.dispatch")


class Command(enum.Enum):
    GET_EDITOR_CONFIG = EDITOR_CONFIG_GET
    VIEW_LOCAL_FILE = LOCAL_FILE_VIEW
    CREATE_TMP_FILE = TMP_FILE_CREATE
    GET_TMP_FILE = TMP_FILE_GET
    REMOVE_PRIVATE_TMP_FILES = TMP_FILES_PB_REMOVE
    UNKNOWN = None

    @classmethod
    def from_key(cls, key: str) -> Command:
        if not isinstance(key, str):
            return cls.UNKNOWN
        try:
            return cls(key)
        except ValueError:
            return cls.UNKNOWN


def _describe(msg: Any) -> str:
    try:
        return json.dumps(msg, ensure_ascii=False)
    except (TypeError, ValueError):
        return repr(msg)


class Dispatcher:
    """Routes decoded messages to the temp-file manager, the bridge and the config loader.

    The active `EditorConfig` is owned by the caller and reached through
    `get_config`/`set_config`; a loaded config file replaces it in one call.
    """

    def __init__(
        self,
        out: FrameWriter,
        tmp_files: TmpFileManager,
        bridge: ProcessBridge,
        *,
        get_config: Callable[[], EditorConfig],
        set_config: Callable[[EditorConfig], None],
        default_config_path: str,
    ) -> None:
        self._out = out
        self._tmp_files = tmp_files
        self._bridge = bridge
        self._get_config = get_config
        self._set_config = set_config
        self._default_config_path = default_config_path
        self._handlers: dict[Command, Callable[[Any], Awaitable[Any]]] = {
            Command.GET_EDITOR_CONFIG: self.get_editor_config,
            Command.VIEW_LOCAL_FILE: self.view_local_file,
            Command.CREATE_TMP_FILE: self.create_tmp_file,
            Command.GET_TMP_FILE: self.get_tmp_file,
            Command.REMOVE_PRIVATE_TMP_FILES: self.remove_private_tmp_files,
        }

    async def handle_message(self, msg: Any) -> list[Any]:
        """Run one handler per key; failures become `warn`/`error` frames."""
        if not isinstance(msg, dict) or not msg:
            await self._out.write(host_message(f"No handler found for {_describe(msg)}.", STATUS_WARN))
            return []

        keys = list(msg.keys())
        tasks = []
        for key in keys:
            cmd = Command.from_key(key)
            logger.debug("dispatch %s -> %s", key, cmd.name)
            if cmd is Command.UNKNOWN:
                tasks.append(self._out.write(host_message(f"No handler found for {key}.", STATUS_WARN)))
            else:
                tasks.append(self._handlers[cmd](msg[key]))

        results = await asyncio.gather(*tasks, return_exceptions=True)
        for key, res in zip(keys, results):
            if isinstance(res, HostWarning):
                await self._out.write(host_message(f"{res}", STATUS_WARN))
            elif isinstance(res, Exception):
                logger.warning("handler for %s failed: %s", key, res)
                await self._out.write(host_message(f"{res}", STATUS_ERROR))
            elif isinstance(res, BaseException):
                raise res
        return results

    async def get_editor_config(self, file_path: Any) -> None:
        path = file_path if isinstance(file_path, str) and file_path else self._default_config_path
        if not await asyncio.to_thread(file_util.is_file, path):
            await asyncio.gather(
                self._out.write(host_message(f"{path} is not a file.", STATUS_WARN)),
                self._out.write({EDITOR_CONFIG_RES: None}),
            )
            return
        try:
            text = await asyncio.to_thread(file_util.read_file, path)
            data = parse_editor_config(text, path)
            config = self._get_config().merged(data)
        except (OSError, ValueError, TypeError) as exc:
            await self._out.write(host_message(f"{exc}: {path}", STATUS_ERROR))
            return
        self._set_config(config)
        editor_path = data.get(EDITOR_PATH)
        executable = await asyncio.to_thread(file_util.is_executable, editor_path)
        await self._out.write(
            {
                EDITOR_CONFIG_RES: {
                    "editorConfig": path,
                    "editorName": file_util.get_file_name_from_file_path(editor_path),
                    "editorPath": editor_path,
                    "executable": executable,
                }
            }
        )

    async def view_local_file(self, uri: Any) -> None:
        file_path = file_util.conv_uri_to_file_path(uri)
        if not file_path:
            return
        await self._bridge.spawn(file_path, self._get_config())

    async def create_tmp_file(self, obj: Any) -> None:
        staged = await self._tmp_files.create_from_message(obj)
        if staged is None:
            raise HostWarning("Failed to create temporary file.")
        config = self._get_config()
        await asyncio.gather(
            self._bridge.spawn(staged.file_path, config),
            self._out.write({TMP_FILE_DATA_PORT: staged.port_payload()}),
        )

    async def get_tmp_file(self, data: Any) -> None:
        staged = await self._tmp_files.read_staged(data)
        await self._out.write({TMP_FILE_RES: staged.res_payload()})

    async def remove_private_tmp_files(self, flag: Any) -> None:
        if not flag:
            return
        await self._tmp_files.purge_private_tree()
