"""Windows console launcher."""

from __future__ import annotations

import subprocess
from pathlib import Path

from askuser.launchers.base import PopenHandle, ProcessHandle, TerminalLauncher


class WindowsConsoleLauncher(TerminalLauncher):
    name = "windows-console"
    priority = 10
    platforms = ("win32",)

    def start(self, script_path: Path, *, interpreter: str) -> ProcessHandle:
        process = subprocess.Popen(  # noqa: S603
            [interpreter, str(script_path)],
            cwd=str(script_path.parent),
            creationflags=getattr(subprocess, "CREATE_NEW_CONSOLE", 0),
        )
        return PopenHandle(process)
