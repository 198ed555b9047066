"""External editor sessions on a temporary document."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import sys
import tempfile
from pathlib import Path

from bundlecreds.errors import EditorError

logger = logging.getLogger(__name__)


def default_command() -> str:
    """$VISUAL, then $EDITOR, then the platform default."""
    for var in ("VISUAL", "EDITOR"):
        value = os.environ.get(var, "").strip()
        if value:
            return value
    return "notepad" if sys.platform == "win32" else "vi"


class Editor:
    """Open ``contents`` in the user's editor and return the saved result.

    The document is written to ``filename`` inside a private temporary
    directory so editors pick syntax highlighting from the extension.
    Blocks until the editor exits, or until ``timeout`` seconds pass.
    """

    def __init__(
        self,
        filename: str,
        contents: bytes,
        command: str | None = None,
        timeout: float | None = None,
    ):
        self.filename = filename
        self.contents = contents
        self.command = command or default_command()
        self.timeout = timeout

    def run(self) -> bytes:
        with tempfile.TemporaryDirectory(prefix="bundlecreds-") as tmp:
            path = Path(tmp) / (Path(self.filename).name or "document")
            try:
                path.write_bytes(self.contents)
            except OSError as e:
                raise EditorError(f"unable to write temporary file {path}: {e}") from e

            cmd = [*shlex.split(self.command, posix=sys.platform != "win32"), str(path)]
            logger.debug("Launching editor: %s", cmd)
            try:
                proc = subprocess.run(cmd, timeout=self.timeout)
            except FileNotFoundError as e:
                raise EditorError(f"editor {cmd[0]!r} not found") from e
            except subprocess.TimeoutExpired as e:
                raise EditorError(f"editor did not exit within {self.timeout:g}s") from e
            except OSError as e:
                raise EditorError(f"unable to launch editor {cmd[0]!r}: {e}") from e

            if proc.returncode != 0:
                raise EditorError(f"editor {cmd[0]!r} exited with status {proc.returncode}")

            try:
                return path.read_bytes()
            except OSError as e:
                raise EditorError(f"unable to read edited file: {e}") from e
