# flowmend/errors.py
from __future__ import annotations

from pathlib import Path
from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from flowmend.flatten import Conflict


class FlowmendError(Exception):
    """Base class for every error raised by flowmend."""


class ConfigError(FlowmendError):
    """Invalid configuration file or value."""


class MissingDirectoryError(FlowmendError):
    """The workflows directory does not exist. Batch-fatal, checked before any work."""

    def __init__(self, path: Path):
        self.path = Path(path)
        super().__init__(f"Workflows directory does not exist: {self.path}")


class ConflictError(FlowmendError):
    """Flattening would overwrite files. Nothing has been moved when this is raised."""

    def __init__(self, conflicts: List["Conflict"]):
        self.conflicts = list(conflicts)
        names = ", ".join(c.filename for c in self.conflicts)
        super().__init__(f"{len(self.conflicts)} filename conflict(s): {names}")


class InnerContentInvalid(FlowmendError):
    """An envelope was found but its inner record has no usable `nodes` list."""


class BackupError(FlowmendError):
    """Copying the workflows directory before a repair failed. Batch-fatal, nothing was written."""

    def __init__(self, src: Path, dst: Path, cause: Exception):
        self.src = Path(src)
        self.dst = Path(dst)
        super().__init__(f"Backup of {self.src} to {self.dst} failed: {cause}")
