# flowmend/flatten.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from flowmend.errors import ConflictError, MissingDirectoryError
from flowmend.utils.io import PathLike, list_records, move_file, to_path
from flowmend.utils.logger import get_logger

logger = get_logger("flatten")


@dataclass
class Conflict:
    filename: str
    existing_path: Path
    new_path: Path


@dataclass
class FlattenResult:
    moved: int = 0
    errors: int = 0
    removed_dirs: List[Path] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.errors == 0


def walk_nested_records(folder: PathLike) -> List[Path]:
    """Every `*.json` file below the subdirectories of `folder` (root files excluded)."""
    root = to_path(folder)
    out: List[Path] = []
    for sub in sorted(p for p in root.iterdir() if p.is_dir()):
        out.extend(sorted(p for p in sub.rglob("*.json") if p.is_file()))
    return out


def find_conflicts(folder: PathLike) -> List[Conflict]:
    """
    Nested files that cannot be moved to the root without overwriting:
    either a root file of the same name exists, or an earlier nested file
    already claimed that name.
    """
    root = to_path(folder)
    claimed: Dict[str, Path] = {p.name: p for p in list_records(root)}
    conflicts: List[Conflict] = []
    for p in walk_nested_records(root):
        if p.name in claimed:
            conflicts.append(Conflict(p.name, claimed[p.name], p))
        else:
            claimed[p.name] = p
    return conflicts


def _remove_empty_dirs(root: Path) -> List[Path]:
    removed: List[Path] = []
    # deepest first so parents are empty by the time they are checked
    subdirs = sorted((p for p in root.rglob("*") if p.is_dir()), key=lambda p: len(p.parts), reverse=True)
    for d in subdirs:
        try:
            if not any(d.iterdir()):
                d.rmdir()
                removed.append(d)
                logger.info("removed empty directory %s", d)
        except OSError as e:
            logger.error("could not remove %s: %s", d, e)
    return removed


def flatten_directory(folder: PathLike) -> FlattenResult:
    """
    Move every nested record into `folder` and delete directories left empty.
    All-or-nothing with respect to conflicts: ConflictError is raised before any move.
    """
    root = to_path(folder)
    if not root.is_dir():
        raise MissingDirectoryError(root)

    conflicts = find_conflicts(root)
    if conflicts:
        raise ConflictError(conflicts)

    result = FlattenResult()
    for src in walk_nested_records(root):
        dst = root / src.name
        try:
            move_file(src, dst)
            result.moved += 1
            logger.debug("moved %s -> %s", src, dst)
        except OSError as e:
            result.errors += 1
            result.failures.append(f"{src}: {e}")
            logger.error("move failed %s: %s", src, e)

    result.removed_dirs = _remove_empty_dirs(root)
    return result
