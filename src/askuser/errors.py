"""Exception types raised inside the exchange core."""

from __future__ import annotations


class AskUserError(Exception):
    """Base exception for askuser."""


class WorkspaceError(AskUserError):
    """Raised when a session directory cannot be created."""


class RequestValidationError(AskUserError):
    """Raised when a request is rejected before anything touches the filesystem."""


class EncodeError(AskUserError):
    """Raised when the request or front-end script cannot be written."""


class LaunchError(AskUserError):
    """Raised by one launcher candidate; the launcher chain moves on to the next."""
