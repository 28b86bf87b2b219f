"""Native Messaging host for the external-editor browser extension.

Chrome/Firefox launch this process when the extension calls `connectNative()`.
Messages arrive on stdin and replies leave on stdout, both length-prefixed
JSON. Staged files live under `<tmp>/withExEditor/<pid>/` until exit.
"""

from __future__ import annotations

import asyncio
import atexit
import logging
import sys

from .config import HostSettings, parse_log_level
from .host import EditorHost


def _configure_logging(level: str) -> None:
    # Native messaging requires strict stdout framing. Never write logs to stdout.
    logging.basicConfig(
        stream=sys.stderr,
        level=parse_log_level(level),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def main() -> None:
    settings = HostSettings.from_env()
    _configure_logging(settings.log_level)
    host = EditorHost(settings)
    atexit.register(host.shutdown, 0)
    try:
        code = asyncio.run(host.run())
    except KeyboardInterrupt:
        host.shutdown(130)
        raise SystemExit(130) from None
    except Exception:
        logging.getLogger("exeditor.host").exception("fatal error")
        host.shutdown(1)
        raise SystemExit(1) from None
    raise SystemExit(code)


if __name__ == "__main__":
    main()
