#!/usr/bin/env python3
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

if os.environ.get("EXEDITOR_HOST_LOG_LEVEL", "").upper() == "DEBUG":
    print(
        f"[exeditor] tmpdir={os.environ.get('EXEDITOR_HOST_TMPDIR', 'auto')} | "
        f"config={os.environ.get('EXEDITOR_HOST_CONFIG', './editorconfig.json')}",
        file=sys.stderr,
    )

from native_hosts.exeditor.native_host import main  # noqa: E402

if __name__ == "__main__":
    main()
