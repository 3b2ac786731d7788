"""
Directive extraction.

The coach asks the client to start a typing session by appending a marker
block to its reply:

    [ACTION:typing_session]The text the user should type.[/ACTION]

Blocks are scanned only once the whole response has been accumulated.
"""
import re
from typing import Optional

from src.models.directive import Directive, DirectiveKind

TYPING_SESSION_PATTERN = re.compile(
    r"\[ACTION:typing_session\](.*?)\[/ACTION\]", re.DOTALL
)
ANY_DIRECTIVE_PATTERN = re.compile(r"\[ACTION:\w+\].*?\[/ACTION\]", re.DOTALL)


def extract_directive(text: str) -> Optional[Directive]:
    """
    Return the first typing-session directive in ``text``.

    Other directive kinds, unterminated blocks and blocks whose body is
    only whitespace yield None.
    """
    match = TYPING_SESSION_PATTERN.search(text)
    if not match:
        return None

    body = match.group(1).strip()
    if not body:
        return None

    return Directive(type=DirectiveKind.START_TYPING_SESSION, text=body)


def strip_directives(text: str) -> str:
    """Remove every directive block, of any kind, and trim the result."""
    return ANY_DIRECTIVE_PATTERN.sub("", text).strip()
