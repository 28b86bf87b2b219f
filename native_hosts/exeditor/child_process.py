"""Launch the configured editor on a file and relay its output as frames."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Sequence

from . import file_util
from .config import EditorConfig
from .constants import STATUS_CHILD_STDERR, STATUS_CHILD_STDOUT, STATUS_ERROR, STATUS_WARN
from .native_message import FrameWriter, host_message

_LOGGER = logging.getLogger("exeditor.host.child_process")

CHARSET = "utf-8"


def build_args(
    file_path: str,
    args: Sequence[str] = (),
    append_after: bool = False,
    *,
    escape_backslash: bool = False,
) -> list[str]:
    """Editor argv (without the executable): `args + [file]` or `[file] + args`."""
    if escape_backslash:
        file_path = file_path.replace("\\", "\\\\")
    extra = [str(a) for a in (args or ())]
    if append_after:
        return [*extra, file_path]
    return [file_path, *extra]


class ProcessBridge:
    """Spawns editors without blocking the caller.

    Each launched child gets its own relay task that waits for exit and
    forwards stdout/stderr; `drain()` waits for all of them.
    """

    def __init__(self, out: FrameWriter, err: FrameWriter, *, escape_backslash: bool = False) -> None:
        self._out = out
        self._err = err
        self._escape_backslash = bool(escape_backslash)
        self._relays: set[asyncio.Task[None]] = set()

    @property
    def outstanding(self) -> int:
        return len(self._relays)

    @property
    def relays(self) -> list[asyncio.Task[None]]:
        return list(self._relays)

    async def spawn(self, file_path: str, config: EditorConfig) -> asyncio.subprocess.Process | None:
        app = config.editor_path
        if not await asyncio.to_thread(file_util.is_file, file_path):
            await self._out.write(host_message(f"{file_path} is not a file.", STATUS_WARN))
            return None
        if not await asyncio.to_thread(file_util.is_executable, app):
            await self._out.write(host_message(f"{app} is not executable.", STATUS_WARN))
            return None

        args = build_args(
            file_path,
            config.cmd_args,
            config.file_after_cmd_args,
            escape_backslash=self._escape_backslash,
        )
        _LOGGER.debug("spawn %s %s", app, args)
        try:
            proc = await asyncio.create_subprocess_exec(
                app,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=os.environ.copy(),
                cwd=None,
            )
        except OSError as exc:
            _LOGGER.warning("failed to launch %s: %s", app, exc)
            await self._err.write(host_message(f"{exc}", STATUS_ERROR))
            return None

        task = asyncio.create_task(self._relay(proc, app))
        self._relays.add(task)
        task.add_done_callback(self._relays.discard)
        return proc

    async def _relay(self, proc: asyncio.subprocess.Process, app: str) -> None:
        try:
            stdout, stderr = await proc.communicate()
            if proc.returncode:
                await self._err.write(host_message(f"{app} exited with code {proc.returncode}.", STATUS_ERROR))
            if stderr:
                text = stderr.decode(CHARSET, errors="replace")
                await self._out.write(host_message(f"{text}: {app}", STATUS_CHILD_STDERR))
            if stdout:
                text = stdout.decode(CHARSET, errors="replace")
                await self._out.write(host_message(f"{text}: {app}", STATUS_CHILD_STDOUT))
        except Exception:
            _LOGGER.exception("output relay failed for %s", app)

    async def drain(self) -> None:
        while self._relays:
            await asyncio.gather(*list(self._relays), return_exceptions=True)
