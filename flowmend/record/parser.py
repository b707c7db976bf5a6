# flowmend/record/parser.py
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional

BOM = "\ufeff"
EMPTY_FILE = "empty file"

# JSONDecodeError is a ValueError; deep nesting and over-long integers raise
# RecursionError / plain ValueError instead
PARSE_ERRORS = (ValueError, RecursionError)


@dataclass
class ParseOutcome:
    value: Any = None
    ok: bool = False
    repaired: bool = False
    error: Optional[str] = None
    dropped: int = 0          # characters cut from the tail by the repair

    @property
    def empty(self) -> bool:
        return self.error == EMPTY_FILE


def strict_parse(text: str) -> Any:
    return json.loads(text)


def _clean(text: str) -> str:
    """Surrounding whitespace and one leading BOM removed."""
    fixed = text.strip()
    if fixed.startswith(BOM):
        fixed = fixed[len(BOM):]
    return fixed


def truncate_to_last_brace(text: str) -> str:
    """
    Strip surrounding whitespace and a leading BOM, then cut everything after
    the last closing brace. Without any brace the cleaned text is returned.
    """
    fixed = _clean(text)
    idx = fixed.rfind("}")
    if idx != -1:
        fixed = fixed[: idx + 1]
    return fixed


def parse_or_repair(text: str, allow_repair: bool = True) -> ParseOutcome:
    """
    Strict parse; on failure apply the truncation heuristic once and re-parse.

    The heuristic only helps with trailing garbage. When it fails too, the
    outcome carries the ORIGINAL parse error, not the one from the retry.
    A repaired document re-parses, but may have lost meaningful tail content;
    callers should surface `dropped`.
    """
    if not _clean(text).strip():
        return ParseOutcome(error=EMPTY_FILE)

    try:
        return ParseOutcome(value=strict_parse(text), ok=True)
    except PARSE_ERRORS as e:
        original = str(e)

    if not allow_repair:
        return ParseOutcome(error=original)

    candidate = truncate_to_last_brace(text)
    try:
        value = strict_parse(candidate)
    except PARSE_ERRORS:
        return ParseOutcome(error=original)

    dropped = len(_clean(text)) - len(candidate)
    return ParseOutcome(value=value, ok=True, repaired=True, dropped=dropped)
