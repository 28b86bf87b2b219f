from __future__ import annotations

import asyncio
import io
import sys
from pathlib import Path


def _frames(buf: io.BytesIO) -> list:
    from native_hosts.exeditor.native_message import NativeMessageDecoder

    return NativeMessageDecoder().decode(buf.getvalue())


def _bridge(**kwargs):
    from native_hosts.exeditor.child_process import ProcessBridge
    from native_hosts.exeditor.native_message import FrameWriter

    out, err = io.BytesIO(), io.BytesIO()
    return ProcessBridge(FrameWriter(out), FrameWriter(err), **kwargs), out, err


def test_build_args_order() -> None:
    from native_hosts.exeditor.child_process import build_args

    assert build_args("/tmp/a.txt", ["-w"], False) == ["/tmp/a.txt", "-w"]
    assert build_args("/tmp/a.txt", ["-w"], True) == ["-w", "/tmp/a.txt"]
    assert build_args("/tmp/a.txt", [], True) == ["/tmp/a.txt"]
    assert build_args("/tmp/a.txt", (), False) == ["/tmp/a.txt"]


def test_build_args_escapes_backslashes_when_enabled() -> None:
    from native_hosts.exeditor.child_process import build_args

    assert build_args("C:\\tmp\\a.txt", ["/n"], escape_backslash=True) == ["C:\\\\tmp\\\\a.txt", "/n"]
    assert build_args("C:\\tmp\\a.txt", ["/n"], escape_backslash=False) == ["C:\\tmp\\a.txt", "/n"]


def test_spawn_warns_on_missing_file(tmp_path: Path) -> None:
    from native_hosts.exeditor.config import EditorConfig

    bridge, out, err = _bridge()
    cfg = EditorConfig(editor_path=sys.executable)
    assert asyncio.run(bridge.spawn(str(tmp_path / "missing.txt"), cfg)) is None
    (msg,) = _frames(out)
    assert msg["withExEditorHost"]["status"] == "warn"
    assert "is not a file" in msg["withExEditorHost"]["message"]
    assert err.getvalue() == b""


def test_spawn_warns_on_non_executable_editor(tmp_path: Path) -> None:
    from native_hosts.exeditor.config import EditorConfig

    target = tmp_path / "a.txt"
    target.write_text("x", encoding="utf-8")
    bridge, out, _err = _bridge()
    cfg = EditorConfig(editor_path=str(tmp_path / "no-editor"))
    assert asyncio.run(bridge.spawn(str(target), cfg)) is None
    (msg,) = _frames(out)
    assert msg["withExEditorHost"]["status"] == "warn"
    assert msg["withExEditorHost"]["message"].endswith("is not executable.")


def test_spawn_relays_child_output(tmp_path: Path) -> None:
    from native_hosts.exeditor.config import EditorConfig

    target = tmp_path / "a.txt"
    target.write_text("x", encoding="utf-8")
    code = "import sys; print('opened ' + sys.argv[1]); sys.stderr.write('careful')"
    cfg = EditorConfig(editor_path=sys.executable, cmd_args=("-c", code), file_after_cmd_args=True)
    bridge, out, err = _bridge()

    async def _main():
        proc = await bridge.spawn(str(target), cfg)
        assert proc is not None
        await bridge.drain()
        assert bridge.outstanding == 0

    asyncio.run(_main())
    by_status = {m["withExEditorHost"]["status"]: m["withExEditorHost"]["message"] for m in _frames(out)}
    assert by_status["childProcess_stdout"].startswith(f"opened {target}")
    assert by_status["childProcess_stdout"].endswith(f": {sys.executable}")
    assert by_status["childProcess_stderr"] == f"careful: {sys.executable}"
    assert err.getvalue() == b""


def test_spawn_reports_nonzero_exit_on_error_stream(tmp_path: Path) -> None:
    from native_hosts.exeditor.config import EditorConfig

    target = tmp_path / "a.txt"
    target.write_text("x", encoding="utf-8")
    cfg = EditorConfig(editor_path=sys.executable, cmd_args=("-c", "raise SystemExit(3)"), file_after_cmd_args=True)
    bridge, _out, err = _bridge()

    async def _main():
        await bridge.spawn(str(target), cfg)
        await bridge.drain()

    asyncio.run(_main())
    (msg,) = _frames(err)
    assert msg["withExEditorHost"]["status"] == "error"
    assert "exited with code 3" in msg["withExEditorHost"]["message"]
