# utils/io.py
from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Any, Union

import yaml

# -------- Path helpers --------
PathLike = Union[str, Path]


def to_path(p: PathLike) -> Path:
    """Convert string-like to pathlib.Path."""
    return p if isinstance(p, Path) else Path(p)


def ensure_parent(path: PathLike) -> Path:
    """Ensure parent directory exists for a file path."""
    p = to_path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    return p


def list_records(folder: PathLike, pattern: str = "*.json") -> list[Path]:
    """List record files matching a glob pattern (non-recursive, files only)."""
    return sorted(p for p in to_path(folder).glob(pattern) if p.is_file())


# -------- Text / JSON / YAML --------
def read_text(path: PathLike, encoding: str = "utf-8") -> str:
    """Read a whole text file."""
    return to_path(path).read_text(encoding=encoding)


def dump_json(data: Any, indent: int = 2) -> str:
    """Canonical pretty form used for every record written back."""
    return json.dumps(data, ensure_ascii=False, indent=indent)


def write_json(path: PathLike, data: Any, indent: int = 2) -> Path:
    """Write JSON (full-file replace via temp file), pretty-formatted."""
    p = ensure_parent(path)
    tmp = p.with_suffix(p.suffix + ".tmp")
    try:
        tmp.write_text(dump_json(data, indent=indent), encoding="utf-8")
        tmp.replace(p)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    return p


def read_yaml(path: PathLike) -> Any:
    """Load a YAML file."""
    with to_path(path).open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


# -------- Copies / moves --------
def backup_tree(src: PathLike, dst: PathLike) -> Path:
    """
    Copy a whole directory next to the original.
    An existing backup directory is merged into, never deleted.
    """
    dst_p = to_path(dst)
    shutil.copytree(to_path(src), dst_p, dirs_exist_ok=True)
    return dst_p


def move_file(src: PathLike, dst: PathLike) -> Path:
    """Move a file into place (same filesystem rename when possible)."""
    dst_p = ensure_parent(dst)
    shutil.move(str(to_path(src)), str(dst_p))
    return dst_p
