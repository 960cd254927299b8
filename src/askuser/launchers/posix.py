"""Terminal emulators found on Linux and other POSIX desktops."""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path

from askuser.launchers.base import PidFileHandle, ProcessHandle, TerminalLauncher, write_posix_shim


class EmulatorLauncher(TerminalLauncher):
    """Run the shim through ``<executable> <execute flag> <shim>``."""

    platforms = ("linux", "freebsd", "openbsd", "netbsd")

    def __init__(self, name: str, executable: str, execute_args: tuple[str, ...] = ("-e",), priority: int = 50) -> None:
        self.name = name
        self.executable = executable
        self.execute_args = execute_args
        self.priority = priority

    def is_available(self) -> bool:
        if not self.supports_platform():
            return False
        if not (os.environ.get("DISPLAY") or os.environ.get("WAYLAND_DISPLAY")):
            return False
        return shutil.which(self.executable) is not None

    def start(self, script_path: Path, *, interpreter: str) -> ProcessHandle:
        shim_path, pid_file = write_posix_shim(script_path, interpreter=interpreter)
        process = subprocess.Popen(  # noqa: S603
            [self.executable, *self.execute_args, str(shim_path)],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
        return PidFileHandle(process, pid_file)

    def __repr__(self) -> str:
        return f"EmulatorLauncher(name={self.name!r}, priority={self.priority})"


def default_emulators() -> list[EmulatorLauncher]:
    return [
        EmulatorLauncher("x-terminal-emulator", "x-terminal-emulator", priority=50),
        EmulatorLauncher("gnome-terminal", "gnome-terminal", ("--",), priority=51),
        EmulatorLauncher("konsole", "konsole", priority=52),
        EmulatorLauncher("xterm", "xterm", priority=53),
    ]
