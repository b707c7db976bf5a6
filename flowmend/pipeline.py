# flowmend/pipeline.py
"""
Repair pass over a workflows directory.

Per record:  read -> parse (or repair) -> unwrap envelope -> fill id/nodes -> write if changed.

`repair_text` is pure and returns a RecordResult; `repair_file` adds the file
I/O; `repair_directory` folds the per-record results into a RepairReport.
Failures stay local to one record; only a missing directory or a failed
backup stops the batch, and both happen before any record is touched.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from flowmend.config import RepairConfig, STAGES
from flowmend.errors import BackupError, InnerContentInvalid, MissingDirectoryError
from flowmend.record.envelope import unwrap
from flowmend.record.normalizer import node_warnings, normalize_fields
from flowmend.record.parser import parse_or_repair
from flowmend.record.shapes import Envelope, Malformed, classify
from flowmend.utils.io import PathLike, backup_tree, list_records, read_text, to_path, write_json
from flowmend.utils.logger import get_logger

logger = get_logger("pipeline")

# terminal statuses
UNCHANGED = "unchanged"
WRITTEN = "written"
UNREPAIRABLE = "unrepairable"
INNER_INVALID = "inner_invalid"
MALFORMED = "malformed"
STILL_ENVELOPED = "still_enveloped"
SKIPPED_EMPTY = "skipped_empty"
IO_ERROR = "io_error"

ERROR_STATUSES = frozenset({UNREPAIRABLE, INNER_INVALID, MALFORMED, STILL_ENVELOPED, IO_ERROR})

# change tags, in the order they can be applied
REPAIRED_JSON = "repaired_json"
UNWRAPPED = "unwrapped"
FILLED_ID = "filled_id"
FILLED_NODES = "filled_nodes"
CHANGE_KINDS = (REPAIRED_JSON, UNWRAPPED, FILLED_ID, FILLED_NODES)


@dataclass
class RecordResult:
    filename: str
    status: str
    record: Optional[Dict[str, Any]] = None     # what to persist when status == written
    changes: List[str] = field(default_factory=list)
    reasons: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def needs_write(self) -> bool:
        return self.record is not None and bool(self.changes)

    @property
    def is_error(self) -> bool:
        return self.status in ERROR_STATUSES


@dataclass
class RepairReport:
    total: int = 0
    written: int = 0
    unchanged: int = 0
    errors: int = 0
    skipped: int = 0
    changes: Dict[str, int] = field(default_factory=dict)
    results: List[RecordResult] = field(default_factory=list)

    @classmethod
    def from_results(cls, results: Iterable[RecordResult]) -> "RepairReport":
        results = list(results)
        status = Counter(r.status for r in results)
        changes = Counter(c for r in results if r.status == WRITTEN for c in r.changes)
        return cls(
            total=len(results),
            written=status[WRITTEN],
            unchanged=status[UNCHANGED],
            errors=sum(status[s] for s in ERROR_STATUSES),
            skipped=status[SKIPPED_EMPTY],
            changes={k: changes[k] for k in CHANGE_KINDS},
            results=results,
        )

    @property
    def failed(self) -> List[RecordResult]:
        return [r for r in self.results if r.is_error]

    @property
    def success_rate(self) -> float:
        """Written records as a percentage of records that needed work."""
        attempted = self.written + self.errors
        return 100.0 if attempted == 0 else round(100.0 * self.written / attempted, 2)


# ---------- Pure per-record pass ----------

def repair_text(text: str, filename: str, stages: Sequence[str] = STAGES) -> RecordResult:
    """Run the enabled stages over one record's text. No I/O."""
    changes: List[str] = []
    warnings: List[str] = []

    parsed = parse_or_repair(text, allow_repair="repair" in stages)
    if parsed.empty:
        return RecordResult(filename, SKIPPED_EMPTY, reasons=[parsed.error])
    if not parsed.ok:
        return RecordResult(filename, UNREPAIRABLE, reasons=[f"[JSON] {parsed.error}"])
    if parsed.repaired:
        changes.append(REPAIRED_JSON)
    if parsed.dropped:
        warnings.append(
            f"[JSON] repaired by truncating {parsed.dropped} trailing character(s); "
            "check that no content was lost"
        )

    shape = classify(parsed.value)
    if isinstance(shape, Malformed):
        return RecordResult(filename, MALFORMED, reasons=[f"[SHAPE] {shape.reason}"])

    if isinstance(shape, Envelope):
        if "unwrap" not in stages:
            return RecordResult(filename, STILL_ENVELOPED,
                                reasons=[f"[ENVELOPE] still wrapped in '{shape.key}'"])
        try:
            shape = unwrap(shape)
        except InnerContentInvalid as e:
            return RecordResult(filename, INNER_INVALID, reasons=[f"[ENVELOPE] {e}"])
        changes.append(UNWRAPPED)

    record = shape.data
    if "normalize" in stages:
        record, filled = normalize_fields(record, filename)
        changes.extend(filled)
    warnings.extend(node_warnings(record))

    status = WRITTEN if changes else UNCHANGED
    return RecordResult(filename, status, record=record, changes=changes, warnings=warnings)


# ---------- File / directory ----------

def repair_file(path: PathLike, stages: Sequence[str] = STAGES) -> RecordResult:
    """Repair one file in place. I/O failures are returned as results, never raised."""
    p = to_path(path)
    try:
        text = read_text(p)
    except (OSError, UnicodeDecodeError) as e:
        logger.error("read failed for %s: %s", p.name, e)
        return RecordResult(p.name, IO_ERROR, reasons=[f"[IO] read failed: {e}"])

    result = repair_text(text, p.name, stages)

    for w in result.warnings:
        logger.warning("%s: %s", p.name, w)

    if result.needs_write:
        try:
            write_json(p, result.record)
        except OSError as e:
            logger.error("write failed for %s: %s", p.name, e)
            return RecordResult(p.name, IO_ERROR, changes=result.changes,
                                reasons=[f"[IO] write failed: {e}"], warnings=result.warnings)
        logger.debug("%s: wrote back (%s)", p.name, ", ".join(result.changes))
    elif result.is_error:
        logger.error("%s: %s", p.name, "; ".join(result.reasons))

    return result


def repair_directory(folder: PathLike, config: Optional[RepairConfig] = None) -> RepairReport:
    """
    Repair every `*.json` record directly inside `folder`, sequentially.
    Raises MissingDirectoryError if `folder` is absent and BackupError if the
    requested backup cannot be taken, in both cases before touching any record.
    """
    cfg = config or RepairConfig(workflows_dir=to_path(folder))
    root = to_path(folder)
    if not root.is_dir():
        raise MissingDirectoryError(root)

    if cfg.create_backup:
        try:
            dst = backup_tree(root, cfg.resolved_backup_dir)
        except OSError as e:
            raise BackupError(root, cfg.resolved_backup_dir, e) from e
        logger.info("backed up %s -> %s", root, dst)

    files = list_records(root)
    logger.info("repairing %d record(s) in %s (stages: %s)", len(files), root, ", ".join(cfg.stages))

    return RepairReport.from_results(repair_file(p, cfg.stages) for p in files)


def render_repair_report(report: RepairReport) -> List[str]:
    lines = [
        "=== Repair summary ===",
        f"Total files:      {report.total}",
        f"Written back:     {report.written}",
        f"Unchanged:        {report.unchanged}",
        f"Skipped (empty):  {report.skipped}",
        f"Errors:           {report.errors}",
    ]
    for kind in CHANGE_KINDS:
        lines.append(f"  {kind:<15} {report.changes.get(kind, 0)}")
    lines.append(f"Success rate:     {report.success_rate:.2f}%")
    failed = report.failed
    if failed:
        lines.append("")
        lines.append("=== Files left unmodified ===")
        for r in failed:
            lines.append(f"{r.filename} [{r.status}]")
            for reason in r.reasons:
                lines.append(f"  - {reason}")
    return lines
