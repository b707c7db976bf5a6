# flowmend/record/envelope.py
from __future__ import annotations

from flowmend.errors import InnerContentInvalid
from flowmend.record.shapes import Envelope, FlatRecord

INNER_INVALID = "inner content invalid"


def unwrap(envelope: Envelope) -> FlatRecord:
    """
    Discard the wrapping key and promote the inner mapping to the record.
    The inner content is returned as-is (same keys, same order).

    Raises InnerContentInvalid when the inner mapping has no `nodes` list;
    in that case the file must be left untouched.
    """
    inner = envelope.inner
    if not isinstance(inner.get("nodes"), list):
        raise InnerContentInvalid(f"{INNER_INVALID}: '{envelope.key}' has no nodes list")
    return FlatRecord(dict(inner))
