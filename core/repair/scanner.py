#!/usr/bin/env python3
"""
Text Scanner - character-level nesting and string state for JSON-like text.

Every repair strategy reads its nesting counts from here instead of
re-counting characters on its own.
"""
from dataclasses import dataclass
from typing import Iterable, Tuple

DOUBLE_QUOTE = '"'
SINGLE_QUOTE = "'"


@dataclass(frozen=True)
class ScanState:
    """Final state after scanning a piece of text.

    Attributes:
        brace_depth: Open '{' minus closed '}' outside strings
        bracket_depth: Open '[' minus closed ']' outside strings
        in_string: Whether the text ends inside a quoted string
        quote_char: Quote character of the open string ('' when not in a string)
        last_top_level_close: Index of the last '}' that brought both depths
            back to zero, or -1 if that never happened
        separators: Indices of ',' found outside strings
        openings: Indices of '{' and '[' found outside strings
    """
    brace_depth: int = 0
    bracket_depth: int = 0
    in_string: bool = False
    quote_char: str = ""
    last_top_level_close: int = -1
    separators: Tuple[int, ...] = ()
    openings: Tuple[int, ...] = ()

    @property
    def balanced(self) -> bool:
        return self.brace_depth == 0 and self.bracket_depth == 0 and not self.in_string

    def closing_suffix(self) -> str:
        """Brackets first, then braces; negative depths contribute nothing."""
        return "]" * max(0, self.bracket_depth) + "}" * max(0, self.brace_depth)


def scan(text: str, quote_chars: Iterable[str] = (DOUBLE_QUOTE,)) -> ScanState:
    """Scan text left to right and return its final nesting state.

    A backslash inside a string suppresses the next character, including
    a closing quote.

    Args:
        text: Text to scan
        quote_chars: Characters that open a string outside of one

    Returns:
        ScanState describing the end of the text
    """
    quotes = tuple(quote_chars)
    brace_depth = 0
    bracket_depth = 0
    in_string = False
    quote_char = ""
    escaped = False
    last_close = -1
    separators = []
    openings = []

    for i, c in enumerate(text):
        if escaped:
            escaped = False
            continue

        if in_string:
            if c == "\\":
                escaped = True
            elif c == quote_char:
                in_string = False
                quote_char = ""
            continue

        if c in quotes:
            in_string = True
            quote_char = c
        elif c == "{":
            brace_depth += 1
            openings.append(i)
        elif c == "}":
            brace_depth -= 1
            if brace_depth == 0 and bracket_depth == 0:
                last_close = i
        elif c == "[":
            bracket_depth += 1
            openings.append(i)
        elif c == "]":
            bracket_depth -= 1
        elif c == ",":
            separators.append(i)

    return ScanState(
        brace_depth=brace_depth,
        bracket_depth=bracket_depth,
        in_string=in_string,
        quote_char=quote_char,
        last_top_level_close=last_close,
        separators=tuple(separators),
        openings=tuple(openings),
    )
