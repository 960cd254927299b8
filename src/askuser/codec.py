"""Request/response artifacts exchanged with the prompt window."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, Field, ValidationError

from askuser.errors import EncodeError, RequestValidationError

NonEmptyStr = Annotated[str, Field(min_length=1)]


class Request(BaseModel):
    reason: NonEmptyStr = Field(..., description="Why the caller needs input")
    questions: list[NonEmptyStr] = Field(..., min_length=1, description="Questions in display order")


class Answer(BaseModel):
    question: str
    answer: str


class Response(BaseModel):
    answers: list[Answer]


class NoResponse:
    """The prompt window ended without writing a response artifact."""

    def __repr__(self) -> str:
        return "NO_RESPONSE"


NO_RESPONSE = NoResponse()


@dataclass(frozen=True)
class MalformedResponse:
    """A response artifact exists but could not be parsed; ``raw`` is kept verbatim."""

    raw: str
    detail: str


DecodeResult = Response | NoResponse | MalformedResponse


def build_request(reason: str, questions: list[str]) -> Request:
    """Validate caller input into a request; raises RequestValidationError."""
    if not questions:
        raise RequestValidationError("no questions provided")
    try:
        return Request(reason=reason, questions=list(questions))
    except ValidationError as exc:
        raise RequestValidationError(describe_validation_error(exc)) from exc


def encode_request(request: Request, path: Path) -> None:
    try:
        path.write_text(request.model_dump_json(indent=2), encoding="utf-8")
    except OSError as exc:
        raise EncodeError(f"cannot write request artifact {path}: {exc}") from exc


def read_request(path: Path) -> Request:
    return Request.model_validate_json(path.read_text(encoding="utf-8"))


def decode_response(path: Path, *, expected_questions: int | None = None) -> DecodeResult:
    """Read the response artifact written by the prompt window.

    Args:
        path: Response artifact path.
        expected_questions: When given, the answer count must match it.

    Returns:
        The parsed response, ``NO_RESPONSE`` if the file is missing, or a
        ``MalformedResponse`` holding the raw text when parsing fails.
    """
    try:
        raw_bytes = path.read_bytes()
    except FileNotFoundError:
        return NO_RESPONSE
    except OSError as exc:
        return MalformedResponse(raw="", detail=str(exc))

    raw = raw_bytes.decode("utf-8-sig", errors="backslashreplace")
    try:
        response = Response.model_validate_json(raw)
    except ValidationError as exc:
        return MalformedResponse(raw=raw, detail=describe_validation_error(exc))

    if expected_questions is not None and len(response.answers) != expected_questions:
        return MalformedResponse(
            raw=raw,
            detail=f"expected {expected_questions} answer(s), got {len(response.answers)}",
        )
    return response


def format_response(response: Response) -> str:
    lines = [f"User responded to {len(response.answers)} question(s):", ""]
    for idx, item in enumerate(response.answers, start=1):
        lines.append(f"{idx}. Q: {item.question}")
        lines.append(f"   A: {item.answer}")
        lines.append("")
    return "\n".join(lines).rstrip()


def format_malformed(result: MalformedResponse) -> str:
    return (
        f"Received a response from the user but failed to parse it: {result.detail}"
        f"\n\nRaw response:\n{result.raw}"
    )


def describe_validation_error(exc: ValidationError) -> str:
    parts: list[str] = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        message = str(error.get("msg", "invalid value"))
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or str(exc)
