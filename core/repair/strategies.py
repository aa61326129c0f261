#!/usr/bin/env python3
"""
Structural Repair Engine - escalating strategies for malformed JSON objects.

Strategies, in order of aggressiveness:
1. Direct decode
2. Closure repair (append missing brackets/braces)
3. Truncation repair (close an open string, then closure)
4. Aggressive heuristic repair (drop dangling fragments, then truncation repair)

Partial extraction is the fallback after all four. No strategy edits text
inside string values; they only close structure or cut trailing fragments.
"""
import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from core.repair.scanner import DOUBLE_QUOTE, SINGLE_QUOTE, scan

logger = logging.getLogger(__name__)

PARTIAL_STRIDE = 50
PARTIAL_MIN_LENGTH = 100

_DANGLING_KEY = re.compile(r',\s*"[^"]*":\s*$')
_DANGLING_FRAGMENT = re.compile(r',\s*"[^"]*"\s*$')
_UNESCAPED_QUOTE = re.compile(r'(?<!\\)"')
_TRAILING_COLON = re.compile(r':\s*$')
_TRAILING_COMMA = re.compile(r',\s*$')
_VALUE_STARTERS = (":", "[", ",")


class OutcomeKind(str, Enum):
    CONTINUE = "continue"
    SUCCEED = "succeed"


@dataclass(frozen=True)
class StrategyOutcome:
    """Tagged result of one strategy: either a decoded record or 'try the next one'."""
    kind: OutcomeKind
    record: Optional[Dict[str, Any]] = None
    strategy: str = ""

    @property
    def succeeded(self) -> bool:
        return self.kind is OutcomeKind.SUCCEED

    @classmethod
    def success(cls, record: Dict[str, Any], strategy: str) -> "StrategyOutcome":
        return cls(OutcomeKind.SUCCEED, record, strategy)

    @classmethod
    def next(cls) -> "StrategyOutcome":
        return cls(OutcomeKind.CONTINUE)


RepairStrategy = Callable[[str], StrategyOutcome]


def direct_decode(text: str) -> Optional[Dict[str, Any]]:
    """Decode text as a JSON object; None if it is not one."""
    try:
        value = json.loads(text)
    except (ValueError, RecursionError):
        return None
    return value if isinstance(value, dict) else None


def close_unbalanced(text: str) -> str:
    """Append the closing brackets and braces the text is missing.

    Brackets are closed before braces. Balanced text is returned unchanged.
    """
    return text + scan(text).closing_suffix()


def repair_truncated(text: str) -> str:
    """Close an unterminated string, then any open brackets and braces."""
    state = scan(text, (DOUBLE_QUOTE, SINGLE_QUOTE))
    suffix = state.quote_char if state.in_string else ""
    return text + suffix + state.closing_suffix()


def _drop_separators_before_closers(text: str) -> str:
    """Remove commas directly followed by ']' or '}' (ignoring commas in strings)."""
    state = scan(text)
    doomed = []
    for idx in state.separators:
        rest = text[idx + 1:].lstrip()
        if rest[:1] in ("]", "}"):
            doomed.append(idx)
    if not doomed:
        return text
    parts = []
    prev = 0
    for idx in doomed:
        parts.append(text[prev:idx])
        prev = idx + 1
    parts.append(text[prev:])
    return "".join(parts)


def aggressive_repair(text: str) -> str:
    """Fix the fragment shapes left behind by a completion cut mid key/value.

    The quote balancing step is a guess about intent: it only appends a quote
    when the last quote opens a value (after ':', '[' or ',').
    """
    fixed = _DANGLING_KEY.sub("", text)
    fixed = _DANGLING_FRAGMENT.sub("", fixed)

    if len(_UNESCAPED_QUOTE.findall(fixed)) % 2 != 0:
        last_quote = fixed.rfind('"')
        if last_quote > 0:
            before = fixed[:last_quote].strip()
            if before.endswith(_VALUE_STARTERS):
                fixed = fixed + '"'

    fixed = _drop_separators_before_closers(fixed)
    fixed = _TRAILING_COLON.sub(": null", fixed)
    fixed = _TRAILING_COMMA.sub("", fixed)

    return repair_truncated(fixed)


def decode_after(name: str, transform: Callable[[str], str]) -> RepairStrategy:
    """Build a strategy that applies a text transform and then decodes."""
    def strategy(text: str) -> StrategyOutcome:
        record = direct_decode(transform(text))
        if record is None:
            return StrategyOutcome.next()
        return StrategyOutcome.success(record, name)
    return strategy


def _identity(text: str) -> str:
    return text


DEFAULT_STRATEGIES: Tuple[Tuple[str, RepairStrategy], ...] = (
    ("direct", decode_after("direct", _identity)),
    ("closure", decode_after("closure", close_unbalanced)),
    ("truncation", decode_after("truncation", repair_truncated)),
    ("aggressive", decode_after("aggressive", aggressive_repair)),
)


class RepairChain:
    """Runs strategies top-down and stops at the first success."""

    def __init__(self, strategies: Sequence[Tuple[str, RepairStrategy]] = DEFAULT_STRATEGIES):
        self.strategies = list(strategies)

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.strategies]

    def run(self, text: str) -> StrategyOutcome:
        for name, strategy in self.strategies:
            outcome = strategy(text)
            if outcome.succeeded:
                logger.debug(f"JSON recovered with '{name}' strategy")
                return outcome
        return StrategyOutcome.next()


def extract_partial(text: str) -> Optional[Dict[str, Any]]:
    """Recover the largest leading object that still decodes.

    First tries the prefix ending at the last complete top-level object.
    Then shrinks the text from the end in fixed strides, re-running the
    aggressive repair, and accepts the first non-empty object. The length
    strictly decreases so the loop always ends.
    """
    state = scan(text)
    if state.last_top_level_close > 0:
        record = direct_decode(text[:state.last_top_level_close + 1])
        if record is not None:
            return record

    length = len(text)
    while length > PARTIAL_MIN_LENGTH:
        record = direct_decode(aggressive_repair(text[:length]))
        if record:
            logger.warning(f"Recovered partial JSON ({len(record)} keys)")
            return record
        length -= PARTIAL_STRIDE

    return None


def repair_json(text: str) -> Optional[Dict[str, Any]]:
    """Run the four strategies, then partial extraction. None if all fail."""
    outcome = RepairChain().run(text)
    if outcome.succeeded:
        return outcome.record
    return extract_partial(text)
