"""askuser command line."""

from __future__ import annotations

import asyncio
import contextlib
import json
import signal

import typer
from pydantic import ValidationError

from askuser.config import get_settings
from askuser.exchange import Exchange, ExchangeResult, Outcome, invalid_configuration_text
from askuser.launchers import available_launchers, resolve_interpreter
from askuser.logging_utils import configure_logging
from askuser.tool import tool_schema

app = typer.Typer(name="askuser", help="Ask a human for input in a separate terminal window", add_completion=False)


@app.callback()
def main_callback(
    log_profile: str = typer.Option("default", "--log-profile", help="Log output: default or console"),
) -> None:
    try:
        settings = get_settings()
    except ValidationError as exc:
        typer.echo(invalid_configuration_text(exc), err=True)
        raise typer.Exit(2) from exc
    profile = "console" if log_profile == "console" else "default"
    configure_logging(profile=profile, level=settings.log_level)


async def _run_with_interrupt(exchange: Exchange, reason: str, questions: list[str]) -> ExchangeResult:
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    try:
        return await exchange.run(reason, questions, cancel_event=cancel_event)
    finally:
        with contextlib.suppress(NotImplementedError):
            loop.remove_signal_handler(signal.SIGINT)


@app.command("ask")
def ask(
    reason: str = typer.Option(..., "--reason", "-r", help="Why the input is needed"),
    questions: list[str] = typer.Option(..., "--question", "-q", help="Question to ask; repeat for more"),  # noqa: B008
) -> None:
    """Open a prompt window, wait for the answers and print them."""

    exchange = Exchange.from_settings(get_settings())
    result = asyncio.run(_run_with_interrupt(exchange, reason, list(questions)))
    typer.echo(result.text)
    if result.outcome is not Outcome.COMPLETED:
        raise typer.Exit(1)


@app.command("schema")
def schema() -> None:
    """Print the tool schema as JSON."""

    typer.echo(json.dumps(tool_schema(), indent=2, ensure_ascii=False))


@app.command("launchers")
def launchers() -> None:
    """Show launcher candidates in the order they are tried."""

    settings = get_settings()
    interpreter = resolve_interpreter(settings.interpreter)
    typer.echo(f"interpreter: {interpreter or '(not found)'}")
    for launcher, usable in available_launchers(preferred=settings.terminal):
        status = "available" if usable else "unavailable"
        typer.echo(f"{launcher.priority:>4} {launcher.name} {status}")


if __name__ == "__main__":
    app()
