"""Launcher strategy and process handle contracts."""

from __future__ import annotations

import asyncio
import contextlib
import os
import shlex
import signal
import subprocess
import sys
import time
from abc import ABC, abstractmethod
from pathlib import Path

from loguru import logger

from askuser.errors import LaunchError

DEFAULT_POLL_INTERVAL_SECONDS = 0.2
SHIM_STARTUP_TIMEOUT_SECONDS = 30.0
KILL_WAIT_SECONDS = 5.0


class ProcessHandle(ABC):
    """A running prompt window owned by one exchange."""

    @abstractmethod
    def poll(self) -> bool:
        """Return True once the prompt process has finished."""

    @abstractmethod
    def kill_tree(self) -> None:
        """Forcibly stop the prompt process and its children. Never raises."""

    async def wait(self, *, poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS) -> None:
        while not self.poll():
            await asyncio.sleep(poll_interval)


class PopenHandle(ProcessHandle):
    """Handle for an interpreter started directly as our child."""

    def __init__(self, process: subprocess.Popen[bytes]) -> None:
        self.process = process

    @property
    def pid(self) -> int:
        return self.process.pid

    def poll(self) -> bool:
        return self.process.poll() is not None

    def kill_tree(self) -> None:
        if self.poll():
            return
        if sys.platform == "win32":
            try:
                subprocess.run(  # noqa: S603
                    ["taskkill", "/T", "/F", "/PID", str(self.process.pid)],  # noqa: S607
                    capture_output=True,
                    check=False,
                )
            except OSError:
                logger.opt(exception=True).debug("launcher.taskkill_failed pid={}", self.process.pid)
        _kill_and_reap(self.process)


class PidFileHandle(ProcessHandle):
    """Handle for a prompt started through a shell shim that records its own PID.

    Terminal emulators often hand the command to a server process and return
    at once, so the terminal's own process says nothing about the prompt. The
    shim writes ``$$`` to ``pid_file`` and then execs the interpreter, which
    lets us follow the prompt itself.
    """

    def __init__(
        self,
        launcher_process: subprocess.Popen[bytes],
        pid_file: Path,
        *,
        startup_timeout: float = SHIM_STARTUP_TIMEOUT_SECONDS,
    ) -> None:
        self.launcher_process = launcher_process
        self.pid_file = pid_file
        self._startup_deadline = time.monotonic() + startup_timeout

    @property
    def pid(self) -> int | None:
        try:
            text = self.pid_file.read_text(encoding="utf-8").strip()
        except OSError:
            return None
        return int(text) if text.isdigit() else None

    def poll(self) -> bool:
        launcher_code = self.launcher_process.poll()
        pid = self.pid
        if pid is not None:
            return not _pid_alive(pid)
        if launcher_code is not None and launcher_code != 0:
            logger.warning("launcher.terminal_exited code={} before the prompt started", launcher_code)
            return True
        return time.monotonic() >= self._startup_deadline

    def kill_tree(self) -> None:
        pid = self.pid
        if pid is not None:
            _kill_process_group(pid)
        if self.launcher_process.poll() is None:
            _kill_and_reap(self.launcher_process)


def _kill_and_reap(process: subprocess.Popen[bytes]) -> None:
    try:
        process.kill()
    except OSError:
        return
    with contextlib.suppress(subprocess.TimeoutExpired):
        process.wait(timeout=KILL_WAIT_SECONDS)


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def _kill_process_group(pid: int) -> None:
    try:
        group = os.getpgid(pid)
    except ProcessLookupError:
        return
    try:
        if group == os.getpgrp():
            os.kill(pid, signal.SIGKILL)
        else:
            os.killpg(group, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        logger.debug("launcher.kill_raced pid={}", pid)


class TerminalLauncher(ABC):
    """One way of opening a visible terminal that runs the prompt script."""

    name: str = ""
    priority: int = 100
    platforms: tuple[str, ...] = ()

    def supports_platform(self, platform: str | None = None) -> bool:
        current = platform or sys.platform
        return any(current.startswith(prefix) for prefix in self.platforms)

    def is_available(self) -> bool:
        return self.supports_platform()

    @abstractmethod
    def start(self, script_path: Path, *, interpreter: str) -> ProcessHandle:
        """Open the terminal and return at once; raise LaunchError or OSError on failure."""


def write_posix_shim(script_path: Path, *, interpreter: str, suffix: str = ".sh") -> tuple[Path, Path]:
    """Write an executable shim next to the script; returns (shim_path, pid_file)."""
    shim_path = script_path.with_suffix(suffix)
    pid_file = script_path.with_suffix(".pid")
    body = (
        "#!/bin/sh\n"
        f"echo $$ > {shlex.quote(str(pid_file))}\n"
        f"exec {shlex.quote(interpreter)} {shlex.quote(str(script_path))}\n"
    )
    try:
        shim_path.write_text(body, encoding="utf-8")
        shim_path.chmod(0o700)
    except OSError as exc:
        raise LaunchError(f"cannot write launcher shim {shim_path}: {exc}") from exc
    return shim_path, pid_file
