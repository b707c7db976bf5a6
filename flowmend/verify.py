# flowmend/verify.py

from __future__ import annotations

import json
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from jsonschema import validate, ValidationError

from flowmend.errors import MissingDirectoryError
from flowmend.record.parser import PARSE_ERRORS
from flowmend.record.schema import (
    CONNECTION_ENTRY_SCHEMA,
    IMPORT_ID_SCHEMA,
    IMPORT_NODES_SCHEMA,
    NODE_FIELDS_SCHEMA,
    NODE_POSITION_SCHEMA,
)
from flowmend.record.shapes import is_enveloped
from flowmend.utils.io import PathLike, list_records, read_text, to_path
from flowmend.utils.logger import get_logger

logger = get_logger("verify")


# ---------- Loose validity (the repair pass invariant) ----------

@dataclass
class RecordVerdict:
    filename: str
    valid: bool
    reasons: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    parse_error: bool = False
    missing_id: bool = False
    missing_nodes: bool = False
    enveloped: bool = False


def verify_record(value: Any, filename: str) -> RecordVerdict:
    """Classify an already-parsed record."""
    v = RecordVerdict(filename, valid=True)

    if is_enveloped(value):
        v.enveloped = True
        v.reasons.append("[ENVELOPE] still wrapped in {\"workflow\": {...}}")

    if not isinstance(value, dict):
        v.missing_id = v.missing_nodes = True
        v.reasons.append(f"[SHAPE] top-level value is {type(value).__name__}, expected an object")
        v.valid = False
        return v

    if value.get("id") is None or value.get("id") == "":
        v.missing_id = True
        v.reasons.append("[FIELD] missing id")

    nodes = value.get("nodes")
    if not isinstance(nodes, list):
        v.missing_nodes = True
        v.reasons.append("[FIELD] missing nodes or nodes is not a list")
    elif not nodes:
        v.warnings.append("[FIELD] nodes list is empty")

    v.valid = not v.reasons
    return v


def verify_text(text: str, filename: str) -> RecordVerdict:
    try:
        value = json.loads(text)
    except PARSE_ERRORS as e:
        return RecordVerdict(filename, valid=False, reasons=[f"[JSON] invalid JSON: {e}"], parse_error=True)
    return verify_record(value, filename)


@dataclass
class VerificationReport:
    total: int = 0
    checked: int = 0
    valid: int = 0
    invalid: int = 0
    missing_id: int = 0
    missing_nodes: int = 0
    still_enveloped: int = 0
    parse_errors: int = 0
    sampled: bool = False
    problems: List[Tuple[str, List[str]]] = field(default_factory=list)
    warnings: List[Tuple[str, List[str]]] = field(default_factory=list)

    @classmethod
    def from_verdicts(cls, verdicts: Sequence[RecordVerdict], total: int, sampled: bool = False) -> "VerificationReport":
        return cls(
            total=total,
            checked=len(verdicts),
            valid=sum(1 for v in verdicts if v.valid),
            invalid=sum(1 for v in verdicts if not v.valid),
            missing_id=sum(1 for v in verdicts if v.missing_id),
            missing_nodes=sum(1 for v in verdicts if v.missing_nodes),
            still_enveloped=sum(1 for v in verdicts if v.enveloped),
            parse_errors=sum(1 for v in verdicts if v.parse_error),
            sampled=sampled,
            problems=[(v.filename, v.reasons) for v in verdicts if not v.valid],
            warnings=[(v.filename, v.warnings) for v in verdicts if v.warnings],
        )

    @property
    def ok(self) -> bool:
        return self.invalid == 0

    @property
    def pass_rate(self) -> float:
        return 100.0 if self.checked == 0 else round(100.0 * self.valid / self.checked, 2)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "checked": self.checked,
            "sampled": self.sampled,
            "valid": self.valid,
            "invalid": self.invalid,
            "missing_id": self.missing_id,
            "missing_nodes": self.missing_nodes,
            "still_enveloped": self.still_enveloped,
            "parse_errors": self.parse_errors,
            "pass_rate": self.pass_rate,
            "problems": [{"file": f, "reasons": r} for f, r in self.problems],
        }


def verify_directory(
    folder: PathLike,
    sample_size: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> VerificationReport:
    """
    Re-scan `folder` and classify each record.
    With `sample_size`, check a random sample (without replacement) of at most that many files.
    """
    if sample_size is not None and sample_size < 1:
        raise ValueError(f"sample_size must be at least 1, got {sample_size}")
    root = to_path(folder)
    if not root.is_dir():
        raise MissingDirectoryError(root)

    files = list_records(root)
    chosen = files
    sampled = sample_size is not None and sample_size < len(files)
    if sampled:
        chosen = sorted((rng or random).sample(files, sample_size))

    verdicts: List[RecordVerdict] = []
    for p in chosen:
        try:
            text = read_text(p)
        except (OSError, UnicodeDecodeError) as e:
            logger.error("read failed for %s: %s", p.name, e)
            verdicts.append(RecordVerdict(p.name, valid=False, reasons=[f"[IO] read failed: {e}"], parse_error=True))
            continue
        verdicts.append(verify_text(text, p.name))

    return VerificationReport.from_verdicts(verdicts, total=len(files), sampled=sampled)


def render_verification(report: VerificationReport, show_warnings: bool = False) -> List[str]:
    scope = f"sample of {report.checked}" if report.sampled else f"{report.checked} file(s)"
    lines = [
        f"=== Verification ({scope}) ===",
        f"Total files:      {report.total}",
        f"Valid:            {report.valid}",
        f"Invalid:          {report.invalid}",
        f"Still enveloped:  {report.still_enveloped}",
        f"Missing id:       {report.missing_id}",
        f"Missing nodes:    {report.missing_nodes}",
        f"Parse errors:     {report.parse_errors}",
        f"Pass rate:        {report.pass_rate:.2f}%",
    ]
    if report.problems:
        lines.append("")
        lines.append("=== Problem files ===")
        for filename, reasons in report.problems:
            lines.append(filename)
            lines.extend(f"  - {r}" for r in reasons)
    if show_warnings and report.warnings:
        lines.append("")
        lines.append("=== Warnings ===")
        for filename, warns in report.warnings:
            lines.append(filename)
            lines.extend(f"  - {w}" for w in warns)
    return lines


# ---------- Import compatibility (strict) ----------

@dataclass
class ImportCheckResult:
    valid: bool
    error: Optional[str] = None


def _first_error(instance: Any, schema: Dict[str, Any], label: str) -> Optional[str]:
    try:
        validate(instance=instance, schema=schema)
    except ValidationError as e:
        return f"{label}: {e.message}"
    return None


def import_check(record: Any) -> ImportCheckResult:
    """
    Stricter check that mirrors what an n8n import needs.
    The first violation wins; its message names the violated category.
    """
    if not isinstance(record, dict):
        return ImportCheckResult(False, f"invalid workflow: top-level value is {type(record).__name__}")

    err = _first_error(record, IMPORT_ID_SCHEMA, "invalid workflow id")
    if err:
        return ImportCheckResult(False, err)

    err = _first_error(record, IMPORT_NODES_SCHEMA, "invalid or empty nodes list")
    if err:
        return ImportCheckResult(False, err)

    for i, node in enumerate(record["nodes"]):
        err = _first_error(node, NODE_FIELDS_SCHEMA, f"node #{i} missing required field (name, type)")
        if err:
            return ImportCheckResult(False, err)
        err = _first_error(node, NODE_POSITION_SCHEMA, f"node #{i} has invalid position")
        if err:
            return ImportCheckResult(False, err)

    connections = record.get("connections")
    if connections:
        if not isinstance(connections, dict):
            return ImportCheckResult(False, "invalid connections: expected an object")
        for source, entry in connections.items():
            err = _first_error(entry, CONNECTION_ENTRY_SCHEMA, f"invalid connections for '{source}'")
            if err:
                return ImportCheckResult(False, err)

    return ImportCheckResult(True)


@dataclass
class ImportFileResult:
    filename: str
    valid: bool
    error: Optional[str] = None
    node_count: int = 0
    has_connections: bool = False


def import_check_files(folder: PathLike, filenames: Sequence[str]) -> List[ImportFileResult]:
    """Run `import_check` over a fixed list of sample files in `folder`."""
    root = to_path(folder)
    if not root.is_dir():
        raise MissingDirectoryError(root)

    out: List[ImportFileResult] = []
    for name in filenames:
        p = root / name
        if not p.is_file():
            out.append(ImportFileResult(name, False, "file does not exist"))
            continue
        try:
            record = json.loads(read_text(p))
        except (OSError, UnicodeDecodeError) as e:
            out.append(ImportFileResult(name, False, f"read failed: {e}"))
            continue
        except PARSE_ERRORS as e:
            out.append(ImportFileResult(name, False, f"invalid JSON: {e}"))
            continue

        res = import_check(record)
        nodes = record.get("nodes") if isinstance(record, dict) else None
        out.append(ImportFileResult(
            name,
            res.valid,
            res.error,
            node_count=len(nodes) if isinstance(nodes, list) else 0,
            has_connections=bool(isinstance(record, dict) and record.get("connections")),
        ))
    return out


def render_import_results(results: Sequence[ImportFileResult]) -> List[str]:
    lines = ["=== Import compatibility ==="]
    for i, r in enumerate(results, 1):
        mark = "ok  " if r.valid else "FAIL"
        lines.append(f"{i}/{len(results)} [{mark}] {r.filename}")
        if r.valid:
            wiring = "with connections" if r.has_connections else "no connections (standalone)"
            lines.append(f"  - {r.node_count} node(s), {wiring}")
        else:
            lines.append(f"  - {r.error}")
    passed = sum(1 for r in results if r.valid)
    rate = 100.0 if not results else 100.0 * passed / len(results)
    lines.append(f"Passed: {passed}/{len(results)} ({rate:.2f}%)")
    return lines
