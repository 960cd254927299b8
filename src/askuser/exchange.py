"""Out-of-process human-response exchange."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Protocol

from loguru import logger
from pydantic import ValidationError

from askuser.codec import (
    MalformedResponse,
    NoResponse,
    Request,
    Response,
    build_request,
    describe_validation_error,
    decode_response,
    encode_request,
    format_malformed,
    format_response,
)
from askuser.config import Settings, get_settings
from askuser.errors import EncodeError, RequestValidationError, WorkspaceError
from askuser.launchers import default_launcher
from askuser.launchers.base import DEFAULT_POLL_INTERVAL_SECONDS, ProcessHandle
from askuser.script import DEFAULT_CLOSE_DELAY_SECONDS, write_prompt_script
from askuser.workspace import Session, Workspace

DEFAULT_TIMEOUT_SECONDS = 10 * 60

NO_QUESTIONS_TEXT = "Error: No questions provided. Please supply at least one question."
LAUNCH_FAILED_TEXT = (
    "Error: Failed to launch a terminal window for user input. "
    "Ensure a terminal emulator and the Python interpreter are available on this system."
)
TIMEOUT_TEXT = (
    "The user did not respond within the 10-minute timeout period. "
    "You may try asking again or proceed with your best judgment."
)
NO_RESPONSE_TEXT = (
    "The user closed the prompt window without providing answers. "
    "You may try asking again or proceed with your best judgment."
)
CANCELLED_TEXT = (
    "The request for user input was cancelled before the user responded. "
    "You may try asking again or proceed with your best judgment."
)


class Outcome(StrEnum):
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    LAUNCH_FAILED = "launch_failed"
    NO_RESPONSE = "no_response"
    DECODE_ERROR = "decode_error"
    VALIDATION_ERROR = "validation_error"
    ENCODE_ERROR = "encode_error"
    WORKSPACE_ERROR = "workspace_error"
    INTERNAL_ERROR = "internal_error"


class ExchangeState(StrEnum):
    CREATED = "created"
    SCRIPT_WRITTEN = "script_written"
    LAUNCHED = "launched"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    LAUNCH_FAILED = "launch_failed"
    CLEANED_UP = "cleaned_up"


class Launcher(Protocol):
    def launch(self, script_path: Path) -> ProcessHandle | None: ...


@dataclass
class ExchangeResult:
    """Final text for the caller plus what happened on the way."""

    outcome: Outcome
    text: str
    response: Response | None = None
    states: list[ExchangeState] = field(default_factory=list)

    def __str__(self) -> str:
        return self.text


class Exchange:
    """Ask a human through a separate terminal window and wait for the answers.

    Each call to :meth:`run` owns its own session directory, so one instance
    can serve concurrent calls.
    """

    def __init__(
        self,
        *,
        workspace: Workspace | None = None,
        launcher: Launcher | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        close_delay_seconds: int = DEFAULT_CLOSE_DELAY_SECONDS,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        self.workspace = workspace or Workspace()
        self.launcher = launcher or default_launcher()
        self.timeout = timeout
        self.close_delay_seconds = close_delay_seconds
        self.poll_interval = poll_interval

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> Exchange:
        settings = settings or get_settings()
        return cls(
            workspace=Workspace(settings.temp_root),
            launcher=default_launcher(preferred=settings.terminal, interpreter=settings.interpreter),
            close_delay_seconds=settings.close_delay_seconds,
        )

    async def run(
        self,
        reason: str,
        questions: list[str],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> ExchangeResult:
        if not questions:
            return ExchangeResult(Outcome.VALIDATION_ERROR, NO_QUESTIONS_TEXT)
        try:
            request = build_request(reason, questions)
        except RequestValidationError as exc:
            return ExchangeResult(Outcome.VALIDATION_ERROR, f"Error: Invalid request: {exc}")

        try:
            session = self.workspace.acquire()
        except WorkspaceError as exc:
            logger.error("exchange.workspace_failed error={}", exc)
            return ExchangeResult(
                Outcome.WORKSPACE_ERROR,
                f"Error: Could not create a working directory for the user prompt: {exc}",
            )

        states = [ExchangeState.CREATED]
        with logger.contextualize(session=session.session_id):
            try:
                result = await self._run_session(session, request, states, cancel_event)
            except Exception as exc:
                logger.exception("exchange.failed")
                result = ExchangeResult(Outcome.INTERNAL_ERROR, f"Error: The user prompt failed unexpectedly: {exc}")
            finally:
                self.workspace.release(session)
                self._transition(session, states, ExchangeState.CLEANED_UP)
        result.states = states
        logger.info("exchange.finished session={} outcome={}", session.session_id, result.outcome)
        return result

    async def _run_session(
        self,
        session: Session,
        request: Request,
        states: list[ExchangeState],
        cancel_event: asyncio.Event | None,
    ) -> ExchangeResult:
        try:
            encode_request(request, session.request_path)
            write_prompt_script(
                session.script_path,
                session.request_path,
                session.response_path,
                close_delay_seconds=self.close_delay_seconds,
            )
        except EncodeError as exc:
            logger.error("exchange.encode_failed error={}", exc)
            return ExchangeResult(Outcome.ENCODE_ERROR, f"Error: Could not prepare the user prompt: {exc}")
        self._transition(session, states, ExchangeState.SCRIPT_WRITTEN)

        if cancel_event is not None and cancel_event.is_set():
            self._transition(session, states, ExchangeState.CANCELLED)
            return ExchangeResult(Outcome.CANCELLED, CANCELLED_TEXT)

        try:
            handle = self.launcher.launch(session.script_path)
        except Exception:
            logger.opt(exception=True).warning("exchange.launcher_raised")
            handle = None
        if handle is None:
            self._transition(session, states, ExchangeState.LAUNCH_FAILED)
            return ExchangeResult(Outcome.LAUNCH_FAILED, LAUNCH_FAILED_TEXT)
        self._transition(session, states, ExchangeState.LAUNCHED)

        winner = await self._race(handle, cancel_event)
        self._transition(session, states, winner)

        if winner is ExchangeState.TIMED_OUT:
            handle.kill_tree()
            if session.response_path.exists():
                logger.info("exchange.timeout_with_partial_response")
            return ExchangeResult(Outcome.TIMED_OUT, TIMEOUT_TEXT)
        if winner is ExchangeState.CANCELLED:
            return ExchangeResult(Outcome.CANCELLED, CANCELLED_TEXT)

        decoded = decode_response(session.response_path, expected_questions=len(request.questions))
        if isinstance(decoded, NoResponse):
            return ExchangeResult(Outcome.NO_RESPONSE, NO_RESPONSE_TEXT)
        if isinstance(decoded, MalformedResponse):
            logger.warning("exchange.decode_failed detail={}", decoded.detail)
            return ExchangeResult(Outcome.DECODE_ERROR, format_malformed(decoded))
        return ExchangeResult(Outcome.COMPLETED, format_response(decoded), response=decoded)

    async def _race(self, handle: ProcessHandle, cancel_event: asyncio.Event | None) -> ExchangeState:
        """Wait for whichever comes first: process exit, cancellation or the timeout."""
        exit_task = asyncio.ensure_future(handle.wait(poll_interval=self.poll_interval))
        waiters: set[asyncio.Future[object]] = {exit_task}
        cancel_task: asyncio.Future[object] | None = None
        if cancel_event is not None:
            cancel_task = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_task)

        try:
            done, _ = await asyncio.wait(waiters, timeout=self.timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in waiters:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*waiters, return_exceptions=True)

        if exit_task in done:
            if exit_task.exception() is not None:
                logger.warning("exchange.wait_failed error={}", exit_task.exception())
            return ExchangeState.COMPLETED
        if cancel_task is not None and cancel_task in done:
            return ExchangeState.CANCELLED
        return ExchangeState.TIMED_OUT

    @staticmethod
    def _transition(session: Session, states: list[ExchangeState], state: ExchangeState) -> None:
        logger.debug("exchange.state session={} state={} previous={}", session.session_id, state, states[-1])
        states.append(state)


def invalid_configuration_text(exc: ValidationError) -> str:
    return f"Error: Invalid configuration: {describe_validation_error(exc)}"


async def ask_user(
    reason: str,
    questions: list[str],
    *,
    cancel_event: asyncio.Event | None = None,
    exchange: Exchange | None = None,
) -> str:
    """Show ``questions`` to the user in a new terminal window and return the answers as text.

    Every failure is reported as descriptive text; this coroutine only raises
    if the surrounding task itself is cancelled.
    """
    if exchange is None:
        try:
            exchange = Exchange.from_settings()
        except ValidationError as exc:
            logger.error("exchange.invalid_settings error={}", exc)
            return invalid_configuration_text(exc)
    result = await exchange.run(reason, questions, cancel_event=cancel_event)
    return result.text
