#!/usr/bin/env python3
# flowmend/cli.py

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer

from flowmend.config import load_config, RepairConfig
from flowmend.errors import BackupError, ConfigError, ConflictError, MissingDirectoryError
from flowmend.flatten import flatten_directory
from flowmend.pipeline import repair_directory, render_repair_report
from flowmend.utils.logger import init_logger
from flowmend.verify import (
    VerificationReport,
    import_check_files,
    render_import_results,
    render_verification,
    verify_directory,
)

app = typer.Typer(help="flowmend CLI - repair and verify a directory of exported workflow JSON files")

DirOption = typer.Option(None, "--dir", "-d", help="Workflows directory (default: config / FLOWMEND_WORKFLOWS_DIR / public/workflows)")
ConfigOption = typer.Option(None, "--config", "-c", exists=True, readable=True, help="YAML config file")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Show debug logs and warnings")
LogDirOption = typer.Option(None, "--log-dir", help="Also write logs to <dir>/flowmend.log (default: config / FLOWMEND_LOG_DIR)")


def _setup(config: Optional[Path], verbose: bool, log_dir: Optional[Path], **overrides) -> RepairConfig:
    try:
        cfg = load_config(config, log_dir=log_dir, **overrides)
    except ConfigError as e:
        raise typer.BadParameter(str(e))
    init_logger(level=logging.DEBUG if verbose else cfg.level, log_dir=cfg.log_dir)
    return cfg


def _echo(lines: List[str]) -> None:
    for line in lines:
        print(line)


def _fatal(e: Exception) -> typer.Exit:
    print(f"[error] {e}")
    return typer.Exit(code=1)


def _write_reports(report: VerificationReport, json_path: Optional[Path], csv_path: Optional[Path]) -> None:
    if json_path is not None:
        json_path.parent.mkdir(parents=True, exist_ok=True)
        with open(json_path, "w", encoding="utf-8") as f:
            json.dump(report.as_dict(), f, ensure_ascii=False, indent=2)
        print(f"[ok] wrote report to {json_path}")
    if csv_path is not None:
        import pandas as pd

        rows = [{"file": name, "reasons": "; ".join(reasons)} for name, reasons in report.problems]
        csv_path.parent.mkdir(parents=True, exist_ok=True)
        pd.DataFrame(rows, columns=["file", "reasons"]).to_csv(csv_path, index=False)
        print(f"[ok] wrote {csv_path}")


@app.command()
def repair(
    workflows_dir: Optional[Path] = DirOption,
    config: Optional[Path] = ConfigOption,
    backup: Optional[bool] = typer.Option(None, "--backup/--no-backup", help="Copy the directory to <dir>-backup before writing"),
    stage: Optional[List[str]] = typer.Option(None, "--stage", help="Stage to run (repeatable): repair | unwrap | normalize"),
    verify_after: Optional[bool] = typer.Option(None, "--verify/--no-verify", help="Spot-check the directory after repairing"),
    sample_size: Optional[int] = typer.Option(None, "--sample-size", min=1, help="Files to spot-check after repairing"),
    verbose: bool = VerboseOption,
    log_dir: Optional[Path] = LogDirOption,
):
    """
    Repair every record: fix truncated JSON, unwrap {"workflow": ...}, fill id/nodes, write back.
    Exits 1 if the directory is missing, the backup fails, any record could not be repaired,
    or the post-repair check finds invalid records.
    """
    cfg = _setup(
        config, verbose, log_dir,
        workflows_dir=workflows_dir,
        create_backup=backup,
        stages=tuple(stage) if stage else None,
        verify_after_repair=verify_after,
        verify_sample_size=sample_size,
    )
    try:
        report = repair_directory(cfg.workflows_dir, cfg)
    except (MissingDirectoryError, BackupError) as e:
        raise _fatal(e)

    _echo(render_repair_report(report))

    if not cfg.verify_after_repair:
        raise typer.Exit(code=0 if report.errors == 0 else 1)

    print("")
    check = verify_directory(cfg.workflows_dir, sample_size=cfg.verify_sample_size)
    _echo(render_verification(check))
    if check.ok and report.errors == 0:
        print("[ok] all records repaired")
    else:
        print("[warn] problems remain; see the lists above")
    raise typer.Exit(code=0 if check.ok and report.errors == 0 else 1)


@app.command()
def verify(
    workflows_dir: Optional[Path] = DirOption,
    config: Optional[Path] = ConfigOption,
    sample_size: Optional[int] = typer.Option(None, "--sample-size", min=1, help="Check a random sample instead of every file"),
    report: Optional[Path] = typer.Option(None, "--report", help="Write a JSON report to this path"),
    csv: Optional[Path] = typer.Option(None, "--csv", help="Write problem files as CSV to this path"),
    verbose: bool = VerboseOption,
    log_dir: Optional[Path] = LogDirOption,
):
    """
    Verify every record (or a sample): parses, not enveloped, has id and a nodes list.
    Exits 1 if any record is invalid.
    """
    cfg = _setup(config, verbose, log_dir, workflows_dir=workflows_dir)
    try:
        result = verify_directory(cfg.workflows_dir, sample_size=sample_size)
    except MissingDirectoryError as e:
        raise _fatal(e)

    _echo(render_verification(result, show_warnings=verbose))
    _write_reports(result, report, csv)

    if result.ok:
        print("[ok] every checked record is well-formed")
    else:
        print(f"[warn] {result.invalid} record(s) still need repair")
    raise typer.Exit(code=0 if result.ok else 1)


@app.command()
def flatten(
    workflows_dir: Optional[Path] = DirOption,
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
    log_dir: Optional[Path] = LogDirOption,
):
    """
    Move records out of subdirectories into the workflows directory and drop empty directories.
    Nothing is moved if any filename would collide. Exits 1 on conflicts or move errors.
    """
    cfg = _setup(config, verbose, log_dir, workflows_dir=workflows_dir)
    try:
        result = flatten_directory(cfg.workflows_dir)
    except MissingDirectoryError as e:
        raise _fatal(e)
    except ConflictError as e:
        print("Filename conflicts found, nothing was moved:")
        for c in e.conflicts:
            print(f"- {c.filename}")
            print(f"  existing: {c.existing_path}")
            print(f"  new:      {c.new_path}")
        raise typer.Exit(code=1)

    print("=== Flatten summary ===")
    print(f"Moved files:         {result.moved}")
    print(f"Failed moves:        {result.errors}")
    print(f"Removed directories: {len(result.removed_dirs)}")
    for f in result.failures:
        print(f"- {f}")
    raise typer.Exit(code=0 if result.ok else 1)


@app.command("check-import")
def check_import(
    files: Optional[List[str]] = typer.Argument(None, help="File names inside the workflows directory (default: configured samples)"),
    workflows_dir: Optional[Path] = DirOption,
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
    log_dir: Optional[Path] = LogDirOption,
):
    """
    Strict import-compatibility check on a few sample files.
    Exits 1 if any of them fails.
    """
    cfg = _setup(config, verbose, log_dir, workflows_dir=workflows_dir)
    try:
        results = import_check_files(cfg.workflows_dir, files or cfg.import_sample_files)
    except MissingDirectoryError as e:
        raise _fatal(e)

    _echo(render_import_results(results))
    raise typer.Exit(code=0 if all(r.valid for r in results) else 1)


if __name__ == "__main__":
    app()
