"""macOS Terminal.app launcher."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

from askuser.launchers.base import PidFileHandle, ProcessHandle, TerminalLauncher, write_posix_shim


class MacTerminalLauncher(TerminalLauncher):
    name = "macos-terminal"
    priority = 20
    platforms = ("darwin",)

    def is_available(self) -> bool:
        return self.supports_platform() and shutil.which("open") is not None

    def start(self, script_path: Path, *, interpreter: str) -> ProcessHandle:
        shim_path, pid_file = write_posix_shim(script_path, interpreter=interpreter, suffix=".command")
        process = subprocess.Popen(  # noqa: S603
            ["open", "-a", "Terminal", str(shim_path)],  # noqa: S607
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        return PidFileHandle(process, pid_file)
