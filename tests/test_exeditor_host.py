from __future__ import annotations

import asyncio
import io
import os
import struct
from pathlib import Path


def _settings(tmp_path: Path):
    from native_hosts.exeditor.config import HostSettings

    return HostSettings(tmp_dir=str(tmp_path), editor_config_path=str(tmp_path / "editorconfig.json"))


def _frames(buf: io.BytesIO) -> list:
    from native_hosts.exeditor.native_message import NativeMessageDecoder

    return NativeMessageDecoder().decode(buf.getvalue())


def _status(msg: dict) -> str:
    return msg["withExEditorHost"]["status"]


def _run_host(host, chunks: list[bytes]) -> int:
    async def _main() -> int:
        reader = asyncio.StreamReader()
        for chunk in chunks:
            reader.feed_data(chunk)
        reader.feed_eof()
        return await host.run(reader)

    return asyncio.run(_main())


def test_host_startup_dispatch_and_shutdown(tmp_path: Path) -> None:
    from native_hosts.exeditor.host import EditorHost
    from native_hosts.exeditor.native_message import encode_message

    out, err = io.BytesIO(), io.BytesIO()
    host = EditorHost(_settings(tmp_path), stdout=out, stderr=err, app_id="555")
    data = {"dir": "tmpFilesPb", "windowId": 1, "tabId": 2, "host": "h", "fileName": "a.txt"}
    raw = encode_message({"createTmpFile": {"data": data, "value": "v"}}) + encode_message({"frobnicate": {}})

    code = _run_host(host, [raw[:3], raw[3:17], raw[17:], struct.pack("<I", 3) + b"{{{"])
    assert code == 0

    frames = _frames(out)
    assert frames[0]["withExEditorHost"] == {"message": "getEditorConfig", "status": "ready", "pid": str(os.getpid())}
    assert frames[-1]["withExEditorHost"]["status"] == "exit"
    assert frames[-1]["withExEditorHost"]["message"] == "exit 0"

    middle = frames[1:-1]
    assert any("portFileData" in m for m in middle)
    statuses = sorted(_status(m) for m in middle if "withExEditorHost" in m)
    # editor not configured, unknown key, malformed frame
    assert statuses == ["error", "warn", "warn"]
    assert not (tmp_path / "withExEditor" / "555").exists()


def test_host_reports_failed_dirs(tmp_path: Path) -> None:
    from native_hosts.exeditor.host import EditorHost

    blocker = tmp_path / "file-not-dir"
    blocker.write_text("x", encoding="utf-8")
    out = io.BytesIO()
    host = EditorHost(_settings(blocker), stdout=out, stderr=io.BytesIO(), app_id="1")

    _run_host(host, [])
    frames = _frames(out)
    warns = [m["withExEditorHost"]["message"] for m in frames if _status(m) == "warn"]
    assert len(warns) == 2
    assert all(w.startswith("Failed to create ") for w in warns)
    assert not any(_status(m) == "ready" for m in frames)
    assert _status(frames[-1]) == "exit"


def test_shutdown_runs_once(tmp_path: Path) -> None:
    from native_hosts.exeditor.host import EditorHost

    out = io.BytesIO()
    host = EditorHost(_settings(tmp_path), stdout=out, stderr=io.BytesIO(), app_id="9")
    asyncio.run(host.startup())
    assert host.tmp_files.root.is_dir()

    assert host.shutdown(143) is True
    assert host.shutdown(0) is False
    assert not host.tmp_files.root.exists()
    exits = [m for m in _frames(out) if _status(m) == "exit"]
    assert [m["withExEditorHost"]["message"] for m in exits] == ["exit 143"]


def test_editor_config_survives_across_messages(tmp_path: Path) -> None:
    import json

    from native_hosts.exeditor.config import EditorConfig
    from native_hosts.exeditor.host import EditorHost
    from native_hosts.exeditor.native_message import encode_message

    cfg_path = tmp_path / "editorconfig.json"
    cfg_path.write_text(json.dumps({"editorPath": "/usr/bin/vim", "cmdArgs": ["-R"]}), encoding="utf-8")
    out = io.BytesIO()
    host = EditorHost(_settings(tmp_path), stdout=out, stderr=io.BytesIO(), app_id="3")
    before = host.editor_config

    _run_host(host, [encode_message({"getEditorConfig": ""})])
    assert before == EditorConfig()
    assert host.editor_config.editor_path == "/usr/bin/vim"
    assert host.editor_config.cmd_args == ("-R",)
    res = [m for m in _frames(out) if "resEditorConfig" in m]
    assert res[0]["resEditorConfig"]["editorConfig"] == str(cfg_path)


def test_host_reads_frames_from_stdin_pipe(tmp_path: Path) -> None:
    from native_hosts.exeditor.host import EditorHost
    from native_hosts.exeditor.native_message import encode_message

    r, w = os.pipe()
    os.write(w, encode_message({"frobnicate": {}}))
    os.close(w)
    out = io.BytesIO()
    with os.fdopen(r, "rb") as stdin:
        host = EditorHost(_settings(tmp_path), stdin=stdin, stdout=out, stderr=io.BytesIO(), app_id="4")
        code = asyncio.run(host.run())

    assert code == 0
    frames = _frames(out)
    assert [_status(m) for m in frames] == ["ready", "warn", "exit"]
    assert "frobnicate" in frames[1]["withExEditorHost"]["message"]


def test_cancelled_host_writes_exit_frame_last(tmp_path: Path, monkeypatch) -> None:
    from native_hosts.exeditor.host import EditorHost
    from native_hosts.exeditor.native_message import encode_message

    out = io.BytesIO()
    host = EditorHost(_settings(tmp_path), stdout=out, stderr=io.BytesIO(), app_id="5")
    handling: list[bool] = []

    async def _slow(msg):
        handling.append(True)
        await asyncio.sleep(0.2)
        await host.out.write({"late": msg})

    monkeypatch.setattr(host.dispatcher, "handle_message", _slow)

    async def _main() -> int:
        reader = asyncio.StreamReader()
        reader.feed_data(encode_message({"frobnicate": {}}))
        task = asyncio.create_task(host.run(reader))
        while not handling:
            await asyncio.sleep(0.01)
        task.cancel()
        code = await task
        await asyncio.sleep(0.3)
        return code

    assert asyncio.run(_main()) == 0
    frames = _frames(out)
    assert [_status(m) for m in frames] == ["ready", "exit"]
    assert not host.tmp_files.root.exists()
