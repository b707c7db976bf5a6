# flowmend/record/shapes.py
"""
The three shapes a parsed record can take on disk.

    FlatRecord  - a workflow mapping, possibly still missing `id` / `nodes`
    Envelope    - {"workflow": {...}}, a wrapping layer around the real record
    Malformed   - valid JSON that is not a mapping at all

`classify` is the only place that inspects raw parsed values; every other
stage dispatches on the returned type.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Union

ENVELOPE_KEY = "workflow"


@dataclass
class FlatRecord:
    data: Dict[str, Any]


@dataclass
class Envelope:
    inner: Dict[str, Any]
    outer: Dict[str, Any]
    key: str = ENVELOPE_KEY


@dataclass
class Malformed:
    value: Any

    @property
    def reason(self) -> str:
        return f"top-level JSON value is {type(self.value).__name__}, expected an object"


RecordShape = Union[FlatRecord, Envelope, Malformed]


def is_enveloped(value: Any) -> bool:
    """
    A mapping whose `workflow` key holds a mapping, and which does not carry a
    `nodes` list of its own (a real record that happens to use the key is left alone).
    """
    if not isinstance(value, dict):
        return False
    if isinstance(value.get("nodes"), list):
        return False
    return isinstance(value.get(ENVELOPE_KEY), dict)


def classify(value: Any) -> RecordShape:
    if not isinstance(value, dict):
        return Malformed(value)
    if is_enveloped(value):
        return Envelope(inner=value[ENVELOPE_KEY], outer=value)
    return FlatRecord(value)
