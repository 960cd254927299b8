"""Platform launchers for the prompt window."""

from __future__ import annotations

import os
import shutil
import sys
from collections.abc import Iterable
from pathlib import Path

import pluggy
from loguru import logger

from askuser.errors import LaunchError
from askuser.hookspecs import ASKUSER_HOOK_NAMESPACE, AskUserHookSpecs, hookimpl
from askuser.launchers.base import PidFileHandle, PopenHandle, ProcessHandle, TerminalLauncher
from askuser.launchers.macos import MacTerminalLauncher
from askuser.launchers.posix import EmulatorLauncher, default_emulators
from askuser.launchers.windows import WindowsConsoleLauncher


class BuiltinLaunchers:
    @hookimpl
    def askuser_launchers(self) -> list[TerminalLauncher]:
        return [WindowsConsoleLauncher(), MacTerminalLauncher(), *default_emulators()]


def create_plugin_manager(*, load_entrypoints: bool = True) -> pluggy.PluginManager:
    manager = pluggy.PluginManager(ASKUSER_HOOK_NAMESPACE)
    manager.add_hookspecs(AskUserHookSpecs)
    manager.register(BuiltinLaunchers(), name="builtin")
    if load_entrypoints:
        manager.load_setuptools_entrypoints(ASKUSER_HOOK_NAMESPACE)
    return manager


def discover_launchers(
    plugin_manager: pluggy.PluginManager | None = None, *, preferred: str | None = None
) -> list[TerminalLauncher]:
    """Collect launchers from every plugin, the preferred one first, then by priority."""
    manager = plugin_manager or create_plugin_manager()
    launchers: list[TerminalLauncher] = []
    for provided in manager.hook.askuser_launchers():
        launchers.extend(provided or [])
    return sorted(launchers, key=lambda item: (item.name != preferred, item.priority))


def available_launchers(
    plugin_manager: pluggy.PluginManager | None = None, *, preferred: str | None = None
) -> list[tuple[TerminalLauncher, bool]]:
    """Every launcher in trial order, paired with whether it can run on this host."""
    return [(launcher, launcher.is_available()) for launcher in discover_launchers(plugin_manager, preferred=preferred)]


def resolve_interpreter(interpreter: str | None = None) -> str | None:
    candidate = interpreter or sys.executable
    if not candidate:
        return None
    if os.path.sep in candidate or (os.path.altsep and os.path.altsep in candidate):
        return candidate if Path(candidate).exists() else None
    return shutil.which(candidate)


class LauncherChain:
    """Try launchers in order until one starts the prompt window."""

    def __init__(self, launchers: Iterable[TerminalLauncher], *, interpreter: str | None = None) -> None:
        self.launchers = list(launchers)
        self.interpreter = interpreter

    def launch(self, script_path: Path) -> ProcessHandle | None:
        interpreter = resolve_interpreter(self.interpreter)
        if interpreter is None:
            logger.warning("launcher.interpreter_missing interpreter={}", self.interpreter or sys.executable)
            return None

        for launcher in self.launchers:
            if not launcher.is_available():
                logger.debug("launcher.unavailable name={}", launcher.name)
                continue
            try:
                handle = launcher.start(script_path, interpreter=interpreter)
            except (LaunchError, OSError) as exc:
                logger.warning("launcher.candidate_failed name={} error={}", launcher.name, exc)
                continue
            logger.info("launcher.started name={}", launcher.name)
            return handle

        logger.warning("launcher.exhausted tried={}", [launcher.name for launcher in self.launchers])
        return None


def default_launcher(*, preferred: str | None = None, interpreter: str | None = None) -> LauncherChain:
    return LauncherChain(discover_launchers(preferred=preferred), interpreter=interpreter)


__all__ = [
    "EmulatorLauncher",
    "LauncherChain",
    "MacTerminalLauncher",
    "PidFileHandle",
    "PopenHandle",
    "ProcessHandle",
    "TerminalLauncher",
    "WindowsConsoleLauncher",
    "available_launchers",
    "create_plugin_manager",
    "default_launcher",
    "discover_launchers",
    "resolve_interpreter",
]
