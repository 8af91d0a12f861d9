"""
Interactive prompts.

The orchestrator only needs four kinds of answer from the operator, described
by the Operator protocol. QuestionaryOperator asks them on the terminal.
"""

from typing import Protocol, Sequence

import questionary
from questionary import Style
from rich.console import Console

from .errors import OperationCancelled


# ─────────────────────────────────────────────────────────────────────────────
# STYLING
# ─────────────────────────────────────────────────────────────────────────────

console = Console()

PROMPT_STYLE = Style([
    ('qmark', 'fg:cyan bold'),
    ('question', 'bold'),
    ('answer', 'fg:green'),
    ('pointer', 'fg:cyan bold'),
    ('highlighted', 'fg:cyan'),
    ('selected', 'fg:green'),
])

# A choice is either a plain string or a (label, value) pair.
Choices = Sequence[str | tuple[str, str]]


class Operator(Protocol):
    def text(self, message: str, default: str = "", required: bool = False) -> str: ...

    def confirm(self, message: str, default: bool = False) -> bool: ...

    def select(self, message: str, choices: Choices) -> str: ...

    def checkbox(self, message: str, choices: Choices) -> list[str]: ...


def _choices(choices: Choices) -> list:
    result = []
    for choice in choices:
        if isinstance(choice, tuple):
            label, value = choice
            result.append(questionary.Choice(label, value=value))
        else:
            result.append(choice)
    return result


def _answer(value):
    # questionary returns None when the prompt is interrupted
    if value is None:
        raise OperationCancelled()
    return value


class QuestionaryOperator:
    """Operator backed by questionary prompts."""

    def __init__(self, style: Style = PROMPT_STYLE):
        self.style = style

    def text(self, message: str, default: str = "", required: bool = False) -> str:
        validate = (lambda val: len(val.strip()) > 0 or "Required") if required else None
        return _answer(questionary.text(message, default=default, validate=validate, style=self.style).ask())

    def confirm(self, message: str, default: bool = False) -> bool:
        return _answer(questionary.confirm(message, default=default, style=self.style).ask())

    def select(self, message: str, choices: Choices) -> str:
        return _answer(questionary.select(message, choices=_choices(choices), style=self.style).ask())

    def checkbox(self, message: str, choices: Choices) -> list[str]:
        return _answer(questionary.checkbox(message, choices=_choices(choices), style=self.style).ask())
