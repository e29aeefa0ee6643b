from __future__ import annotations

import csv
import json
import logging
import math
import os
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from .results import BatchSummary, ProcessResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileReport:
    src_path: str
    out_path: Optional[str]
    src_bytes: int
    out_bytes: int
    ratio: float
    changed: bool
    skipped_reason: Optional[str]
    error: Optional[str]


@dataclass(frozen=True)
class BatchReport:
    created_utc: str
    summary: dict
    files: List[FileReport]


def compressed(results: List[ProcessResult]) -> Dict[str, float]:
    """
    Relative output name -> compression ratio, for processed files only.

    Skipped and failed files are absent, not zero.
    """
    out: Dict[str, float] = {}
    for r in results:
        if r.out_path is None or r.failed:
            continue
        out[r.out_path.relative] = r.ratio
    return out


def format_percent(ratio: float) -> str:
    # round first so 0.29 -> 29, not 28.999...
    return f"{math.floor(round(100 * ratio, 6))}% smaller"


def format_report(results: List[ProcessResult], display_root: str) -> List[str]:
    """
    One aligned line per processed file:

      dist/assets/index.js   60% smaller
    """
    ratios = compressed(results)
    if not ratios:
        return []

    width = max(len(name) for name in ratios)
    prefix = display_root.rstrip("/") + "/" if display_root else ""
    return [
        "  " + prefix + name + " " * (2 + width - len(name)) + format_percent(ratio)
        for name, ratio in ratios.items()
    ]


def log_report(results: List[ProcessResult], display_root: str) -> None:
    logger.info("\nFiles compressed:")
    for line in format_report(results, display_root):
        logger.info(line)
    logger.info("")


def display_path(root: Path) -> str:
    """`root` relative to the working directory when it lives below it."""
    root = Path(root)
    try:
        return root.relative_to(Path.cwd()).as_posix()
    except ValueError:
        return root.as_posix()


def build_report(results: List[ProcessResult], summary: BatchSummary) -> BatchReport:
    created_utc = datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")

    files: List[FileReport] = []
    for r in results:
        files.append(
            FileReport(
                src_path=r.src_path.relative,
                out_path=r.out_path.relative if r.out_path else None,
                src_bytes=r.src_bytes,
                out_bytes=r.out_bytes,
                ratio=round(r.ratio, 4),
                changed=r.changed,
                skipped_reason=r.skipped_reason,
                error=r.error,
            )
        )
    files.sort(key=lambda f: f.src_path)

    summary_dict = {
        "total_files": summary.total_files,
        "processed": summary.processed,
        "skipped": summary.skipped,
        "failed": summary.failed,
        "total_src_bytes": summary.total_src_bytes,
        "total_out_bytes": summary.total_out_bytes,
        "saved_bytes": summary.saved_bytes,
        "saved_percent": round(summary.saved_percent, 2),
    }

    return BatchReport(created_utc=created_utc, summary=summary_dict, files=files)


def save_report_json(report: BatchReport, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open("w", encoding="utf-8") as f:
        json.dump(asdict(report), f, indent=2, ensure_ascii=False)


def save_report_csv(report: BatchReport, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    columns = [f.name for f in fields(FileReport)]
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=columns)
        writer.writeheader()
        for row in report.files:
            writer.writerow(asdict(row))


def save_report(report: BatchReport, path: Path) -> None:
    """Pick the format from the extension (.csv, anything else is JSON)."""
    if os.fspath(path).lower().endswith(".csv"):
        save_report_csv(report, path)
    else:
        save_report_json(report, path)
