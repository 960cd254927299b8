"""askuser - hand questions to a human in a separate terminal and wait for the answers."""

from .exchange import Exchange, ExchangeResult, Outcome, ask_user
from .tool import TOOL_NAME, AskUserInput, run_tool, tool_schema

__version__ = "0.1.0"

__all__ = [
    "TOOL_NAME",
    "AskUserInput",
    "Exchange",
    "ExchangeResult",
    "Outcome",
    "ask_user",
    "run_tool",
    "tool_schema",
]
