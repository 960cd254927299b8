"""Pluggy hook namespace and launcher hook specifications."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from askuser.launchers.base import TerminalLauncher

ASKUSER_HOOK_NAMESPACE = "askuser"
hookspec = pluggy.HookspecMarker(ASKUSER_HOOK_NAMESPACE)
hookimpl = pluggy.HookimplMarker(ASKUSER_HOOK_NAMESPACE)


class AskUserHookSpecs:
    """Hook contract for askuser extensions."""

    @hookspec
    def askuser_launchers(self) -> list[TerminalLauncher]:
        """Provide terminal launchers to try, ordered later by their priority."""
