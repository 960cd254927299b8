from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from pathlib import Path

import pytest
from loguru import logger

from askuser.errors import EncodeError
from askuser.exchange import (
    CANCELLED_TEXT,
    LAUNCH_FAILED_TEXT,
    NO_QUESTIONS_TEXT,
    NO_RESPONSE_TEXT,
    TIMEOUT_TEXT,
    Exchange,
    ExchangeState,
    Outcome,
    ask_user,
)
from askuser.launchers.base import ProcessHandle
from askuser.workspace import RESPONSE_FILENAME, Workspace


class _FakeHandle(ProcessHandle):
    def __init__(self, *, finished: bool = False) -> None:
        self.finished = finished
        self.kills = 0

    def poll(self) -> bool:
        return self.finished

    def kill_tree(self) -> None:
        self.kills += 1
        self.finished = True


class _FakeLauncher:
    """Stands in for a terminal; ``on_launch`` plays the user's part."""

    def __init__(
        self,
        on_launch: Callable[[Path], None] | None = None,
        *,
        finish: bool = True,
        fail: bool = False,
    ) -> None:
        self.on_launch = on_launch
        self.finish = finish
        self.fail = fail
        self.launched: list[Path] = []
        self.handles: list[_FakeHandle] = []

    def launch(self, script_path: Path) -> ProcessHandle | None:
        self.launched.append(script_path)
        if self.fail:
            return None
        if self.on_launch is not None:
            self.on_launch(script_path.parent)
        handle = _FakeHandle(finished=self.finish)
        self.handles.append(handle)
        return handle


def _answer(*answers: str) -> Callable[[Path], None]:
    def _write(workdir: Path) -> None:
        request = json.loads((workdir / "questions.json").read_text(encoding="utf-8"))
        payload = {
            "answers": [
                {"question": question, "answer": answer}
                for question, answer in zip(request["questions"], answers, strict=True)
            ]
        }
        (workdir / RESPONSE_FILENAME).write_text(json.dumps(payload), encoding="utf-8")

    return _write


def _leftover_sessions(workspace: Workspace) -> list[Path]:
    if not workspace.root_dir.exists():
        return []
    return list(workspace.root_dir.iterdir())


def _exchange(tmp_path: Path, launcher: _FakeLauncher, *, timeout: float = 5.0) -> Exchange:
    return Exchange(workspace=Workspace(tmp_path), launcher=launcher, timeout=timeout, poll_interval=0.01)


@pytest.mark.asyncio
async def test_completed_exchange_formats_answers(tmp_path: Path) -> None:
    launcher = _FakeLauncher(_answer("SQLite"))
    exchange = _exchange(tmp_path, launcher)

    result = await exchange.run("need db choice", ["Postgres or SQLite?"])

    assert result.outcome is Outcome.COMPLETED
    assert result.text == "User responded to 1 question(s):\n\n1. Q: Postgres or SQLite?\n   A: SQLite"
    assert result.states == [
        ExchangeState.CREATED,
        ExchangeState.SCRIPT_WRITTEN,
        ExchangeState.LAUNCHED,
        ExchangeState.COMPLETED,
        ExchangeState.CLEANED_UP,
    ]
    assert launcher.launched[0].name == "prompt.py"
    assert _leftover_sessions(exchange.workspace) == []


@pytest.mark.asyncio
async def test_prompt_script_and_request_exist_while_launching(tmp_path: Path) -> None:
    seen: dict[str, object] = {}

    def _inspect(workdir: Path) -> None:
        seen["request"] = json.loads((workdir / "questions.json").read_text(encoding="utf-8"))
        seen["script"] = (workdir / "prompt.py").read_text(encoding="utf-8")
        seen["response_exists"] = (workdir / RESPONSE_FILENAME).exists()

    exchange = _exchange(tmp_path, _FakeLauncher(_inspect))

    await exchange.run("why", ["a?", "b?"])

    assert seen["request"] == {"reason": "why", "questions": ["a?", "b?"]}
    assert str(tmp_path) in str(seen["script"])
    assert seen["response_exists"] is False


@pytest.mark.asyncio
async def test_window_closed_without_answers(tmp_path: Path) -> None:
    exchange = _exchange(tmp_path, _FakeLauncher())

    result = await exchange.run("why", ["q?"])

    assert result.outcome is Outcome.NO_RESPONSE
    assert result.text == NO_RESPONSE_TEXT
    assert _leftover_sessions(exchange.workspace) == []


@pytest.mark.asyncio
async def test_malformed_response_surfaces_raw_content(tmp_path: Path) -> None:
    def _garbage(workdir: Path) -> None:
        (workdir / RESPONSE_FILENAME).write_text("not json at all {", encoding="utf-8")

    exchange = _exchange(tmp_path, _FakeLauncher(_garbage))

    result = await exchange.run("why", ["q?"])

    assert result.outcome is Outcome.DECODE_ERROR
    assert result.text.startswith("Received a response from the user but failed to parse it: ")
    assert result.text.endswith("\n\nRaw response:\nnot json at all {")
    assert _leftover_sessions(exchange.workspace) == []


@pytest.mark.asyncio
async def test_timeout_kills_once_and_ignores_partial_response(tmp_path: Path) -> None:
    launcher = _FakeLauncher(_answer("half", "done"), finish=False)
    exchange = _exchange(tmp_path, launcher, timeout=0.05)

    result = await exchange.run("why", ["one?", "two?"])

    assert result.outcome is Outcome.TIMED_OUT
    assert result.text == TIMEOUT_TEXT
    assert launcher.handles[0].kills == 1
    assert ExchangeState.TIMED_OUT in result.states
    assert result.states[-1] is ExchangeState.CLEANED_UP
    assert _leftover_sessions(exchange.workspace) == []


@pytest.mark.asyncio
async def test_timeout_without_answers(tmp_path: Path) -> None:
    launcher = _FakeLauncher(finish=False)
    exchange = _exchange(tmp_path, launcher, timeout=0.05)

    result = await exchange.run("why", ["one?", "two?"])

    assert result.text == TIMEOUT_TEXT
    assert launcher.handles[0].kills == 1
    assert _leftover_sessions(exchange.workspace) == []


@pytest.mark.asyncio
async def test_cancellation_is_reported_and_does_not_kill(tmp_path: Path) -> None:
    launcher = _FakeLauncher(finish=False)
    exchange = _exchange(tmp_path, launcher, timeout=30)
    cancel_event = asyncio.Event()
    asyncio.get_running_loop().call_later(0.05, cancel_event.set)

    result = await exchange.run("why", ["q?"], cancel_event=cancel_event)

    assert result.outcome is Outcome.CANCELLED
    assert result.text == CANCELLED_TEXT
    assert launcher.handles[0].kills == 0
    assert result.states[-2:] == [ExchangeState.CANCELLED, ExchangeState.CLEANED_UP]
    assert _leftover_sessions(exchange.workspace) == []


@pytest.mark.asyncio
async def test_cancel_event_set_before_launch_opens_no_window(tmp_path: Path) -> None:
    launcher = _FakeLauncher(finish=False)
    exchange = _exchange(tmp_path, launcher, timeout=30)
    cancel_event = asyncio.Event()
    cancel_event.set()

    result = await exchange.run("why", ["q?"], cancel_event=cancel_event)

    assert result.outcome is Outcome.CANCELLED
    assert result.text == CANCELLED_TEXT
    assert launcher.launched == []
    assert result.states == [
        ExchangeState.CREATED,
        ExchangeState.SCRIPT_WRITTEN,
        ExchangeState.CANCELLED,
        ExchangeState.CLEANED_UP,
    ]
    assert _leftover_sessions(exchange.workspace) == []


@pytest.mark.asyncio
async def test_process_exit_wins_over_unset_cancel_event(tmp_path: Path) -> None:
    exchange = _exchange(tmp_path, _FakeLauncher(_answer("yes")))

    result = await exchange.run("why", ["q?"], cancel_event=asyncio.Event())

    assert result.outcome is Outcome.COMPLETED


@pytest.mark.asyncio
async def test_launch_failure(tmp_path: Path) -> None:
    launcher = _FakeLauncher(fail=True)
    exchange = _exchange(tmp_path, launcher)

    result = await exchange.run("why", ["q?"])

    assert result.outcome is Outcome.LAUNCH_FAILED
    assert result.text == LAUNCH_FAILED_TEXT
    assert result.states[-2:] == [ExchangeState.LAUNCH_FAILED, ExchangeState.CLEANED_UP]
    assert _leftover_sessions(exchange.workspace) == []


@pytest.mark.asyncio
async def test_launcher_exception_counts_as_launch_failure(tmp_path: Path) -> None:
    class _Exploding:
        def launch(self, script_path: Path) -> ProcessHandle | None:
            raise RuntimeError("no terminals here")

    exchange = Exchange(workspace=Workspace(tmp_path), launcher=_Exploding(), poll_interval=0.01)

    result = await exchange.run("why", ["q?"])

    assert result.text == LAUNCH_FAILED_TEXT
    assert _leftover_sessions(exchange.workspace) == []


@pytest.mark.asyncio
async def test_empty_questions_touch_nothing(tmp_path: Path) -> None:
    launcher = _FakeLauncher()
    exchange = _exchange(tmp_path, launcher)

    result = await exchange.run("why", [])

    assert result.outcome is Outcome.VALIDATION_ERROR
    assert result.text == NO_QUESTIONS_TEXT
    assert launcher.launched == []
    assert not exchange.workspace.root_dir.exists()


@pytest.mark.asyncio
async def test_blank_question_is_rejected(tmp_path: Path) -> None:
    launcher = _FakeLauncher()
    exchange = _exchange(tmp_path, launcher)

    result = await exchange.run("why", ["fine?", ""])

    assert result.outcome is Outcome.VALIDATION_ERROR
    assert result.text.startswith("Error: Invalid request: ")
    assert launcher.launched == []


@pytest.mark.asyncio
async def test_encode_failure_never_launches(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _broken(_request: object, _path: Path) -> None:
        raise EncodeError("disk full")

    monkeypatch.setattr("askuser.exchange.encode_request", _broken)
    launcher = _FakeLauncher()
    exchange = _exchange(tmp_path, launcher)

    result = await exchange.run("why", ["q?"])

    assert result.outcome is Outcome.ENCODE_ERROR
    assert "disk full" in result.text
    assert launcher.launched == []
    assert result.states == [ExchangeState.CREATED, ExchangeState.CLEANED_UP]
    assert _leftover_sessions(exchange.workspace) == []


@pytest.mark.asyncio
async def test_cleanup_runs_when_decoder_raises(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _explode(_path: Path, **_kwargs: object) -> object:
        raise RuntimeError("decoder crashed")

    monkeypatch.setattr("askuser.exchange.decode_response", _explode)
    exchange = _exchange(tmp_path, _FakeLauncher(_answer("x")))

    result = await exchange.run("why", ["q?"])

    assert result.outcome is Outcome.INTERNAL_ERROR
    assert "decoder crashed" in result.text
    assert _leftover_sessions(exchange.workspace) == []


@pytest.mark.asyncio
async def test_workspace_failure_is_reported(tmp_path: Path) -> None:
    (tmp_path / "askuser").write_text("blocker", encoding="utf-8")
    launcher = _FakeLauncher()
    exchange = _exchange(tmp_path, launcher)

    result = await exchange.run("why", ["q?"])

    assert result.outcome is Outcome.WORKSPACE_ERROR
    assert result.text.startswith("Error: Could not create a working directory")
    assert launcher.launched == []


@pytest.mark.asyncio
async def test_concurrent_exchanges_use_separate_sessions(tmp_path: Path) -> None:
    launcher = _FakeLauncher(_answer("same"))
    exchange = _exchange(tmp_path, launcher)

    first, second = await asyncio.gather(
        exchange.run("why", ["first?"]),
        exchange.run("why", ["second?"]),
    )

    assert "Q: first?" in first.text
    assert "Q: second?" in second.text
    assert launcher.launched[0].parent != launcher.launched[1].parent
    assert _leftover_sessions(exchange.workspace) == []


@pytest.mark.asyncio
async def test_ask_user_returns_plain_text(tmp_path: Path) -> None:
    exchange = _exchange(tmp_path, _FakeLauncher(_answer("SQLite")))

    text = await ask_user("need db choice", ["Postgres or SQLite?"], exchange=exchange)

    assert text == "User responded to 1 question(s):\n\n1. Q: Postgres or SQLite?\n   A: SQLite"


@pytest.mark.asyncio
async def test_ask_user_reports_invalid_settings_as_text(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ASKUSER_CLOSE_DELAY_SECONDS", "soon")

    text = await ask_user("why", ["q?"])

    assert text.startswith("Error: Invalid configuration: close_delay_seconds:")


@pytest.mark.asyncio
async def test_state_changes_are_logged_with_session(tmp_path: Path) -> None:
    messages: list[str] = []
    sink_id = logger.add(lambda message: messages.append(str(message)), level="DEBUG", format="{message}")
    exchange = _exchange(tmp_path, _FakeLauncher(_answer("x")))
    try:
        await exchange.run("why", ["q?"])
    finally:
        logger.remove(sink_id)

    launched = [line for line in messages if "state=launched" in line]
    assert len(launched) == 1
    assert launched[0].startswith("exchange.state session=")
    assert launched[0].rstrip().endswith("previous=script_written")
