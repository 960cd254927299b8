"""Agent-facing tool definition for the user prompt exchange."""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from askuser.codec import NonEmptyStr, describe_validation_error
from askuser.exchange import NO_QUESTIONS_TEXT, Exchange, invalid_configuration_text

TOOL_NAME = "user_context_retrieval"
TOOL_DESCRIPTION = (
    "Presents questions to the user in a new terminal window and returns their answers. "
    "Use this tool when you encounter ambiguous requirements, need design decisions clarified, "
    "hit unexpected issues that require user input, or when the initial prompt lacks sufficient detail. "
    "The user will see your stated reason and all questions, and can respond to each one individually. "
    "Each question should be clear, specific, and self-contained."
)


class AskUserInput(BaseModel):
    reason: NonEmptyStr = Field(
        ...,
        description="A clear explanation of why you need the user's input right now. "
        "This is displayed prominently to the user.",
    )
    questions: list[NonEmptyStr] = Field(
        ...,
        min_length=1,
        description="The list of specific questions to ask the user. "
        "Each should be a complete, self-contained question.",
    )


def tool_schema() -> dict[str, Any]:
    """Function-calling schema for the tool."""
    return {
        "type": "function",
        "function": {
            "name": TOOL_NAME,
            "description": TOOL_DESCRIPTION,
            "parameters": AskUserInput.model_json_schema(),
        },
    }


def _shorten_text(text: str, width: int = 30, placeholder: str = "...") -> str:
    if len(text) <= width:
        return text
    available = width - len(placeholder)
    if available <= 0:
        return placeholder
    return text[:available] + placeholder


def _render_params(arguments: dict[str, Any]) -> str:
    params: list[str] = []
    for key, value in arguments.items():
        try:
            rendered = json.dumps(value, ensure_ascii=False)
        except TypeError:
            rendered = repr(value)
        params.append(f"{key}={_shorten_text(rendered)}")
    return ", ".join(params)


async def run_tool(
    arguments: dict[str, Any],
    *,
    cancel_event: asyncio.Event | None = None,
    exchange: Exchange | None = None,
) -> str:
    """Validate tool arguments and run one exchange; always returns text."""
    logger.info("tool.call.start name={} {{ {} }}", TOOL_NAME, _render_params(arguments))
    start = time.monotonic()
    try:
        if not arguments.get("questions"):
            return NO_QUESTIONS_TEXT
        try:
            params = AskUserInput.model_validate(arguments)
        except ValidationError as exc:
            return f"Error: Invalid arguments: {describe_validation_error(exc)}"

        if exchange is None:
            try:
                exchange = Exchange.from_settings()
            except ValidationError as exc:
                logger.error("tool.invalid_settings error={}", exc)
                return invalid_configuration_text(exc)
        result = await exchange.run(params.reason, params.questions, cancel_event=cancel_event)
        return result.text
    finally:
        duration = time.monotonic() - start
        logger.info("tool.call.end name={} duration={:.3f}ms", TOOL_NAME, duration * 1000)
