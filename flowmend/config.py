# flowmend/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from flowmend.errors import ConfigError
from flowmend.utils.io import PathLike, read_yaml, to_path
from flowmend.utils.logger import parse_level

STAGES: Tuple[str, ...] = ("repair", "unwrap", "normalize")

DEFAULT_WORKFLOWS_DIR = Path("public") / "workflows"
DEFAULT_SAMPLE_SIZE = 100

# Representative files for the import-compatibility spot check:
# numeric-id prefix, no prefix, large id.
DEFAULT_IMPORT_SAMPLES: List[str] = [
    "599_image_watermark.json",
    "OpenAI-powered tweet generator.json",
    "1399_telegram_profanity_detector.json",
    "Detect toxic language in Telegram messages.json",
    "10001_Download_TikTok_Videos_Without_Watermarks_via_Telegram_Bot.json",
]


@dataclass
class RepairConfig:
    workflows_dir: Path = DEFAULT_WORKFLOWS_DIR
    create_backup: bool = False
    backup_dir: Optional[Path] = None
    stages: Tuple[str, ...] = STAGES
    verify_after_repair: bool = True
    verify_sample_size: Optional[int] = DEFAULT_SAMPLE_SIZE
    import_sample_files: List[str] = field(default_factory=lambda: list(DEFAULT_IMPORT_SAMPLES))
    log_level: str = "INFO"
    log_dir: Optional[Path] = None

    def __post_init__(self):
        self.workflows_dir = to_path(self.workflows_dir)
        if self.backup_dir is not None:
            self.backup_dir = to_path(self.backup_dir)
        self.stages = tuple(self.stages)
        unknown = [s for s in self.stages if s not in STAGES]
        if unknown:
            raise ConfigError(f"Unknown stage(s) {unknown}; choose from {', '.join(STAGES)}")
        if self.verify_sample_size is not None and self.verify_sample_size <= 0:
            raise ConfigError("verify_sample_size must be positive (or null for a full scan)")
        if self.log_dir is not None:
            self.log_dir = to_path(self.log_dir)
        try:
            parse_level(str(self.log_level))
        except ValueError as e:
            raise ConfigError(str(e)) from None

    @property
    def level(self) -> int:
        return parse_level(str(self.log_level))

    @property
    def resolved_backup_dir(self) -> Path:
        """`<workflows_dir>-backup` unless configured explicitly."""
        if self.backup_dir is not None:
            return self.backup_dir
        return self.workflows_dir.with_name(self.workflows_dir.name + "-backup")


_TRUE = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off"}


def _env_bool(name: str, raw: str) -> bool:
    v = raw.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise ConfigError(f"{name}: expected a boolean, got {raw!r}")


def _env_overrides() -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if os.getenv("FLOWMEND_WORKFLOWS_DIR"):
        out["workflows_dir"] = Path(os.environ["FLOWMEND_WORKFLOWS_DIR"])
    if os.getenv("FLOWMEND_CREATE_BACKUP"):
        out["create_backup"] = _env_bool("FLOWMEND_CREATE_BACKUP", os.environ["FLOWMEND_CREATE_BACKUP"])
    if os.getenv("FLOWMEND_SAMPLE_SIZE"):
        raw = os.environ["FLOWMEND_SAMPLE_SIZE"]
        try:
            out["verify_sample_size"] = int(raw)
        except ValueError:
            raise ConfigError(f"FLOWMEND_SAMPLE_SIZE: expected an integer, got {raw!r}") from None
    if os.getenv("FLOWMEND_LOG_LEVEL"):
        out["log_level"] = os.environ["FLOWMEND_LOG_LEVEL"]
    if os.getenv("FLOWMEND_LOG_DIR"):
        out["log_dir"] = Path(os.environ["FLOWMEND_LOG_DIR"])
    return out


def load_config(path: Optional[PathLike] = None, **overrides: Any) -> RepairConfig:
    """
    Build a RepairConfig from, in increasing priority:
      defaults -> YAML file (if given) -> FLOWMEND_* environment -> explicit overrides.
    `None` overrides are ignored so CLI options can be passed straight through.
    """
    values: Dict[str, Any] = {}

    if path is not None:
        data = read_yaml(path) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: expected a mapping at the top level")
        known = {f.name for f in fields(RepairConfig)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"{path}: unknown key(s) {unknown}")
        values.update(data)

    values.update(_env_overrides())
    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return RepairConfig(**values)
    except TypeError as e:
        raise ConfigError(str(e)) from e
