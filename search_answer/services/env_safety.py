from __future__ import annotations

import os
from pathlib import Path
from typing import MutableMapping


def sanitize_ssl_keylogfile() -> None:
    """Unset SSLKEYLOGFILE when it points to an unusable path.

    The model client builds an SSL context on first use and crashes if the
    key log path is inaccessible.
    """
    keylog_path = os.getenv("SSLKEYLOGFILE", "").strip()
    if not keylog_path:
        return

    try:
        path = Path(keylog_path)
        parent = path.parent
        if parent and not parent.exists():
            os.environ.pop("SSLKEYLOGFILE", None)
            return

        # Validate writability without truncating existing files.
        with open(path, "a", encoding="utf-8"):
            pass
    except OSError:
        os.environ.pop("SSLKEYLOGFILE", None)


def take_env(name: str, environ: MutableMapping[str, str] | None = None) -> str | None:
    """Read a variable and remove it so launched browsers do not inherit it."""
    env = os.environ if environ is None else environ
    return env.pop(name, None)
