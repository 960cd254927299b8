"""Per-exchange session directories."""

from __future__ import annotations

import shutil
import tempfile
import uuid
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from askuser.errors import WorkspaceError

WORKSPACE_DIRNAME = "askuser"
REQUEST_FILENAME = "questions.json"
RESPONSE_FILENAME = "response.json"
SCRIPT_FILENAME = "prompt.py"


@dataclass(frozen=True)
class Session:
    """Paths owned by one exchange."""

    session_id: str
    workdir: Path
    request_path: Path = field(init=False)
    response_path: Path = field(init=False)
    script_path: Path = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "request_path", self.workdir / REQUEST_FILENAME)
        object.__setattr__(self, "response_path", self.workdir / RESPONSE_FILENAME)
        object.__setattr__(self, "script_path", self.workdir / SCRIPT_FILENAME)


class Workspace:
    """Creates and removes uniquely named session directories under one root."""

    def __init__(self, temp_root: Path | None = None) -> None:
        base = temp_root if temp_root is not None else Path(tempfile.gettempdir())
        self.root_dir = base / WORKSPACE_DIRNAME

    def acquire(self) -> Session:
        session_id = uuid.uuid4().hex
        workdir = self.root_dir / session_id
        try:
            workdir.mkdir(parents=True, exist_ok=False)
        except OSError as exc:
            raise WorkspaceError(f"cannot create session directory {workdir}: {exc}") from exc
        logger.debug("workspace.acquired session={} path={}", session_id, workdir)
        return Session(session_id=session_id, workdir=workdir)

    def release(self, session: Session) -> None:
        """Remove the session directory. Safe to call more than once; never raises."""
        if not session.workdir.exists():
            return
        try:
            shutil.rmtree(session.workdir)
        except OSError:
            logger.opt(exception=True).warning(
                "workspace.release_failed session={} path={}", session.session_id, session.workdir
            )
            return
        logger.debug("workspace.released session={}", session.session_id)
