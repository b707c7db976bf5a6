# flowmend/record/normalizer.py
from __future__ import annotations

import re
from pathlib import PurePath
from typing import Any, Dict, List, Tuple

NUMERIC_PREFIX = re.compile(r"^(\d+)_")
NON_ALNUM = re.compile(r"[^A-Za-z0-9]")
MAX_SYNTH_ID = 20


def id_from_filename(filename: str) -> str:
    """
    `42_example.json`   -> "42"
    `My Workflow!!.json` -> "My_Workflow__"
    Only the base name is considered; the `.json` extension is dropped first.
    """
    name = PurePath(filename).name
    m = NUMERIC_PREFIX.match(name)
    if m:
        return m.group(1)
    stem = name[: -len(".json")] if name.lower().endswith(".json") else name
    return NON_ALNUM.sub("_", stem)[:MAX_SYNTH_ID]


def _has_id(record: Dict[str, Any]) -> bool:
    v = record.get("id")
    return v is not None and v != ""


def normalize_fields(record: Dict[str, Any], filename: str) -> Tuple[Dict[str, Any], List[str]]:
    """
    Fill the two required top-level fields. The input is not mutated.

    Returns (record, changes); `changes` is empty when nothing had to be filled.
    Node contents and connections are never touched.
    """
    out = dict(record)
    changes: List[str] = []

    if not _has_id(out):
        out["id"] = id_from_filename(filename)
        changes.append("filled_id")

    if not isinstance(out.get("nodes"), list):
        out["nodes"] = []
        changes.append("filled_nodes")

    return out, changes


def node_warnings(record: Dict[str, Any]) -> List[str]:
    """Per-node gaps the repair pass reports but does not fix."""
    warnings: List[str] = []
    nodes = record.get("nodes")
    if not isinstance(nodes, list):
        return warnings
    for i, node in enumerate(nodes):
        if not isinstance(node, dict):
            warnings.append(f"[NODE] node #{i} is not an object")
            continue
        label = node.get("name") or f"#{i}"
        missing = [k for k in ("name", "type", "position") if not node.get(k)]
        if missing:
            warnings.append(f"[NODE] node {label} missing {', '.join(missing)}")
    return warnings
