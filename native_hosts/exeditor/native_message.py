"""Native Messaging framing: 4-byte little-endian length prefix + UTF-8 JSON."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import struct
import threading
from typing import Any, BinaryIO

from .constants import HOST
from .errors import FrameError

_LOGGER = logging.getLogger("exeditor.host.native_message")

_HEADER = struct.Struct("<I")
MAX_FRAME_BYTES = 64 * 1024 * 1024


def host_message(message: Any, status: str, pid: str | None = None) -> dict[str, Any]:
    """Status message addressed to the extension: `{HOST: {message, status, pid}}`."""
    return {HOST: {"message": message, "status": status, "pid": pid or str(os.getpid())}}


def encode_message(msg: Any) -> bytes:
    """Encode one frame. Returns `b""` for `None` so callers can skip the write."""
    if msg is None:
        return b""
    raw = json.dumps(msg, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    return _HEADER.pack(len(raw)) + raw


class NativeMessageDecoder:
    """Incremental decoder for the inbound byte stream.

    `decode()` may be fed arbitrary chunks; complete frames are returned in
    arrival order and a trailing partial frame stays buffered. A frame that
    cannot be parsed shows up as a `FrameError` in the result instead of
    ending the stream.
    """

    def __init__(self, max_frame_bytes: int = MAX_FRAME_BYTES) -> None:
        self._buf = bytearray()
        self._skip = 0
        self._max_frame_bytes = int(max_frame_bytes)

    @property
    def pending(self) -> int:
        return len(self._buf)

    def decode(self, chunk: bytes | bytearray | None) -> list[Any]:
        if chunk:
            self._buf.extend(chunk)
        out: list[Any] = []
        while True:
            if self._skip:
                n = min(self._skip, len(self._buf))
                del self._buf[:n]
                self._skip -= n
                if self._skip:
                    break
            if len(self._buf) < _HEADER.size:
                break
            (length,) = _HEADER.unpack_from(self._buf)
            if length > self._max_frame_bytes:
                _LOGGER.warning("oversized frame: %d bytes", length)
                del self._buf[: _HEADER.size]
                self._skip = length
                out.append(FrameError(f"Frame length {length} exceeds {self._max_frame_bytes} bytes."))
                continue
            end = _HEADER.size + length
            if len(self._buf) < end:
                break
            raw = bytes(self._buf[_HEADER.size : end])
            del self._buf[:end]
            out.append(self._parse(raw))
        return out

    @staticmethod
    def _parse(raw: bytes) -> Any:
        if not raw:
            return {}
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            _LOGGER.debug("failed to decode frame payload: %s", exc)
            return FrameError(f"Failed to parse message: {exc}")


class FrameWriter:
    """Serialized frame writes to a binary stream (stdout/stderr buffer)."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self._lock = threading.Lock()
        self._closed = False

    def write_sync(self, msg: Any) -> bool:
        raw = encode_message(msg)
        if not raw:
            return False
        with self._lock:
            if self._closed:
                return False
            self._stream.write(raw)
            self._stream.flush()
        return True

    async def write(self, msg: Any) -> bool:
        return await asyncio.to_thread(self.write_sync, msg)

    def write_final(self, msg: Any) -> bool:
        """Write `msg` and drop every later write."""
        raw = encode_message(msg)
        with self._lock:
            if self._closed:
                return False
            self._closed = True
            if raw:
                self._stream.write(raw)
                self._stream.flush()
        return bool(raw)
