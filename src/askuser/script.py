"""Render the Python script that runs inside the prompt window."""

from __future__ import annotations

from pathlib import Path

from askuser.errors import EncodeError

WRAP_WIDTH = 62
DEFAULT_CLOSE_DELAY_SECONDS = 3

_TEMPLATE = """\
import json
import os
import sys
import textwrap
import time

from rich.console import Console

QUESTIONS_FILE = '%%QUESTIONS_FILE%%'
RESPONSE_FILE = '%%RESPONSE_FILE%%'
WRAP_WIDTH = %%WRAP_WIDTH%%
CLOSE_DELAY = %%CLOSE_DELAY%%
RULE = '  ' + '=' * (WRAP_WIDTH - 2)

console = Console(highlight=False)


def show(text, style='white'):
    console.print(text, style=style, markup=False)


def main():
    console.set_window_title('Agent Request - Awaiting Your Input')
    with open(QUESTIONS_FILE, encoding='utf-8') as handle:
        data = json.load(handle)
    questions = data['questions']

    show('')
    show(RULE, 'cyan')
    show('An AI Agent Needs Your Input'.center(WRAP_WIDTH), 'bold cyan')
    show(RULE, 'cyan')
    show('')
    show('  Reason:', 'yellow')
    show('')
    for paragraph in data['reason'].splitlines() or ['']:
        for line in textwrap.wrap(paragraph, width=WRAP_WIDTH, initial_indent='  ', subsequent_indent='  ') or ['']:
            show(line)
    show('')
    show(RULE, 'cyan')
    show('')

    for number, question in enumerate(questions, start=1):
        show(f'  {number}. {question}')

    show('')
    show('  ' + '-' * (WRAP_WIDTH - 2), 'bright_black')
    show('  Enter your answers below. Press Enter after each response.', 'bright_black')
    show('')

    answers = []
    for number, question in enumerate(questions, start=1):
        try:
            answer = console.input(f'[cyan]  {number}> [/cyan]')
        except (EOFError, KeyboardInterrupt):
            show('')
            show('  Input closed; no answers were recorded.', 'red')
            return 1
        answers.append({'question': question, 'answer': answer})

    partial = RESPONSE_FILE + '.partial'
    with open(partial, 'w', encoding='utf-8') as handle:
        json.dump({'answers': answers}, handle, ensure_ascii=False, indent=2)
    os.replace(partial, RESPONSE_FILE)

    show('')
    show('  Responses recorded successfully!', 'green')
    show('  This window will close in a few seconds...', 'bright_black')
    show('')
    time.sleep(CLOSE_DELAY)
    return 0


if __name__ == '__main__':
    sys.exit(main())
"""


def quote_path(path: Path) -> str:
    """Escape a path for a single-quoted Python string literal."""
    return str(path).replace("\\", "\\\\").replace("'", "\\'")


def render_prompt_script(
    questions_file: Path,
    response_file: Path,
    *,
    close_delay_seconds: int = DEFAULT_CLOSE_DELAY_SECONDS,
) -> str:
    return (
        _TEMPLATE.replace("%%QUESTIONS_FILE%%", quote_path(questions_file))
        .replace("%%RESPONSE_FILE%%", quote_path(response_file))
        .replace("%%WRAP_WIDTH%%", str(WRAP_WIDTH))
        .replace("%%CLOSE_DELAY%%", str(int(close_delay_seconds)))
    )


def write_prompt_script(
    script_file: Path,
    questions_file: Path,
    response_file: Path,
    *,
    close_delay_seconds: int = DEFAULT_CLOSE_DELAY_SECONDS,
) -> None:
    script = render_prompt_script(questions_file, response_file, close_delay_seconds=close_delay_seconds)
    try:
        script_file.write_text(script, encoding="utf-8")
    except OSError as exc:
        raise EncodeError(f"cannot write prompt script {script_file}: {exc}") from exc
