from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
import sys
import threading
from typing import Any, BinaryIO

from .child_process import ProcessBridge
from .config import EditorConfig, HostSettings
from .constants import EDITOR_CONFIG_GET, STATUS_ERROR, STATUS_EXIT, STATUS_READY, STATUS_WARN
from .dispatch import Dispatcher
from .errors import FrameError
from .native_message import FrameWriter, NativeMessageDecoder, host_message
from .tmp_files import TmpFileManager

_LOGGER = logging.getLogger("exeditor.host")

_READ_CHUNK = 64 * 1024


class EditorHost:
    """Native messaging host: stdin frames in, stdout frames out.

    - Startup creates the two cache roots and reports `ready` (or per-dir warnings).
    - Each decoded message is handled in its own task; output order follows completion.
    - `shutdown()` removes the cache root and writes the exit frame, at most once.
    """

    def __init__(
        self,
        settings: HostSettings,
        *,
        stdin: BinaryIO | None = None,
        stdout: BinaryIO | None = None,
        stderr: BinaryIO | None = None,
        app_id: str | None = None,
    ) -> None:
        self.settings = settings
        self._stdin = stdin
        self.out = FrameWriter(stdout if stdout is not None else sys.stdout.buffer)
        self.err = FrameWriter(stderr if stderr is not None else sys.stderr.buffer)
        self.tmp_files = TmpFileManager(settings.tmp_dir, app_id)
        self.editor_config = EditorConfig()
        self.bridge = ProcessBridge(self.out, self.err, escape_backslash=settings.escape_backslash)
        self.dispatcher = Dispatcher(
            self.out,
            self.tmp_files,
            self.bridge,
            get_config=self._current_config,
            set_config=self._replace_config,
            default_config_path=settings.editor_config_path,
        )
        self._decoder = NativeMessageDecoder()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._exit_code = 0
        self._shutdown_lock = threading.Lock()
        self._shut_down = False

    def _current_config(self) -> EditorConfig:
        return self.editor_config

    def _replace_config(self, config: EditorConfig) -> None:
        self.editor_config = config

    async def _report(self, exc: BaseException) -> None:
        _LOGGER.warning("unhandled error: %s", exc, exc_info=exc)
        with contextlib.suppress(Exception):
            await self.out.write(host_message(f"{exc}", STATUS_ERROR))

    async def startup(self) -> bool:
        normal, private = await self.tmp_files.init_dirs()
        if normal is not None and private is not None:
            await self.out.write(host_message(EDITOR_CONFIG_GET, STATUS_READY))
            return True
        if normal is None:
            await self.out.write(host_message(f"Failed to create {self.tmp_files.files_dir}.", STATUS_WARN))
        if private is None:
            await self.out.write(host_message(f"Failed to create {self.tmp_files.private_dir}.", STATUS_WARN))
        return False

    async def _handle(self, item: Any) -> None:
        try:
            if isinstance(item, FrameError):
                await self.out.write(host_message(f"{item}", STATUS_ERROR))
                return
            await self.dispatcher.handle_message(item)
        except Exception as exc:
            await self._report(exc)

    def feed(self, chunk: bytes) -> list[asyncio.Task[Any]]:
        """Decode `chunk` and schedule one handler task per complete frame."""
        scheduled = []
        for item in self._decoder.decode(chunk):
            task = asyncio.create_task(self._handle(item))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            scheduled.append(task)
        return scheduled

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self.bridge.drain()

    async def _open_stdin(self) -> asyncio.StreamReader:
        """Feed stdin into a StreamReader from a daemon thread using blocking `os.read`."""
        # connect_read_pipe cannot attach anonymous stdin pipes on Windows proactor loops.
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader()
        fd = (self._stdin if self._stdin is not None else sys.stdin.buffer).fileno()

        def _pump() -> None:
            while True:
                try:
                    chunk = os.read(fd, _READ_CHUNK)
                except OSError as exc:
                    _LOGGER.debug("stdin read failed: %s", exc)
                    chunk = b""
                try:
                    if chunk:
                        loop.call_soon_threadsafe(reader.feed_data, chunk)
                    else:
                        loop.call_soon_threadsafe(reader.feed_eof)
                except RuntimeError:
                    # Loop already closed.
                    return
                if not chunk:
                    return

        threading.Thread(target=_pump, name="exeditor-stdin", daemon=True).start()
        return reader

    async def _cancel_pending(self) -> None:
        pending = [*self._tasks, *self.bridge.relays]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    def _install_signal_handlers(self, task: asyncio.Task[Any]) -> None:
        loop = asyncio.get_running_loop()

        def _on_signal(signum: int) -> None:
            _LOGGER.debug("received signal %s", signum)
            self._exit_code = 128 + int(signum)
            task.cancel()

        for sig in (signal.SIGINT, signal.SIGTERM):
            # Not available on Windows event loops.
            with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
                loop.add_signal_handler(sig, _on_signal, int(sig))

    async def run(self, reader: asyncio.StreamReader | None = None) -> int:
        current = asyncio.current_task()
        if current is not None:
            self._install_signal_handlers(current)
        try:
            try:
                await self.startup()
            except Exception as exc:
                await self._report(exc)
            if reader is None:
                reader = await self._open_stdin()
            while True:
                chunk = await reader.read(_READ_CHUNK)
                if not chunk:
                    break
                self.feed(chunk)
            await self.drain()
        except asyncio.CancelledError:
            _LOGGER.debug("host loop cancelled")
            await self._cancel_pending()
        finally:
            self.shutdown(self._exit_code)
        return self._exit_code

    def shutdown(self, code: int | None = 0) -> bool:
        """Remove the cache root and report the exit code; no-op after the first call."""
        with self._shutdown_lock:
            if self._shut_down:
                return False
            self._shut_down = True
        code = int(code or 0)
        self.tmp_files.purge_root()
        # The extension may already be gone.
        with contextlib.suppress(OSError, ValueError):
            self.out.write_final(host_message(f"exit {code}", STATUS_EXIT))
        return True
