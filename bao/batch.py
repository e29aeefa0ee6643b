from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .classify import Classifier
from .engine import process_asset
from .pipelines import Codecs, Pipeline
from .report import display_path, log_report
from .results import AssetPath, BatchSummary, ProcessResult
from .settings import OptimizeSettings
from .tracker import ChangeTracker

logger = logging.getLogger(__name__)

# OS housekeeping files that are never part of a build
SKIP_NAMES = frozenset({".DS_Store", "Thumbs.db", "desktop.ini"})


def iter_assets(root: Path) -> Iterable[AssetPath]:
    """
    Yield every regular file under `root`, relative paths in POSIX form.

    Housekeeping files are left out.
    """
    root = Path(root)
    if not root.is_dir():
        raise FileNotFoundError(f"output root not found: {root}")

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for name in sorted(filenames):
            if name in SKIP_NAMES:
                continue
            full = Path(dirpath) / name
            if not full.is_file():
                continue
            yield AssetPath(absolute=full, relative=full.relative_to(root).as_posix())


class Recompressor:
    """
    Incremental recompression of a build output tree.

    Owns the ChangeTracker and the codec instances, so a host that keeps one
    Recompressor alive across builds (watch mode) only reprocesses files
    written since the previous run. A fresh instance reprocesses everything.
    """

    def __init__(
        self,
        settings: OptimizeSettings,
        tracker: Optional[ChangeTracker] = None,
        pipelines: Optional[Dict[str, Pipeline]] = None,
    ) -> None:
        self.settings = settings
        self.tracker = tracker if tracker is not None else ChangeTracker()
        self.classifier = Classifier(settings)
        self.codecs = Codecs(settings)
        self.pipelines = pipelines
        self._run_lock = threading.Lock()

    def run(
        self,
        out_root: Path,
        build_failed: bool = False,
        display_root: Optional[str] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> Optional[Tuple[List[ProcessResult], BatchSummary]]:
        """
        Process every file under `out_root`.

        Returns None without touching the tree when the build failed.
        With verbose settings the per-file report is logged, prefixed with
        `display_root` (default: out_root relative to the working directory).
        """
        if build_failed:
            logger.debug("Build failed; skipping asset compression")
            return None

        # One run at a time per engine; workers inside a run are concurrent.
        with self._run_lock:
            root = Path(out_root).resolve()
            results, summary = self._run(root, progress_callback)

        if self.settings.verbose:
            log_report(results, display_root if display_root is not None else display_path(root))
        return results, summary

    def _run(
        self,
        root: Path,
        progress_callback: Optional[Callable[[int, int], None]],
    ) -> Tuple[List[ProcessResult], BatchSummary]:
        assets = list(iter_assets(root))
        total = len(assets)
        results: List[ProcessResult] = []

        if not assets:
            return results, _summarize(results)

        workers = min(self.settings.max_workers, total)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="bao") as pool:
            futures = {pool.submit(self._process_one, a): a for a in assets}
            for idx, fut in enumerate(as_completed(futures), start=1):
                results.append(fut.result())
                if progress_callback:
                    progress_callback(idx, total)

        return results, _summarize(results)

    def _process_one(self, asset: AssetPath) -> ProcessResult:
        try:
            return process_asset(
                asset,
                self.settings,
                self.classifier,
                self.tracker,
                self.codecs,
                self.pipelines,
            )
        except Exception as e:
            # One bad file never stops the batch.
            logger.debug("Failed to compress %s", asset.relative, exc_info=True)
            return ProcessResult(
                src_path=asset,
                out_path=None,
                src_bytes=0,
                out_bytes=0,
                changed=False,
                skipped_reason=None,
                error=f"{type(e).__name__}: {e}",
            )


def process_batch(
    out_root: Path,
    settings: OptimizeSettings,
    tracker: Optional[ChangeTracker] = None,
    build_failed: bool = False,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> Optional[Tuple[List[ProcessResult], BatchSummary]]:
    """One-shot run with a fresh engine (a new tracker unless one is passed)."""
    return Recompressor(settings, tracker=tracker).run(
        out_root,
        build_failed=build_failed,
        progress_callback=progress_callback,
    )


def _summarize(results: List[ProcessResult]) -> BatchSummary:
    total_src = 0
    total_out = 0
    processed = 0
    skipped = 0
    failed = 0

    for r in results:
        if r.failed:
            failed += 1
            continue
        if r.out_path is None:
            skipped += 1
            continue
        processed += 1
        total_src += r.src_bytes
        total_out += r.out_bytes

    return BatchSummary(
        total_files=len(results),
        processed=processed,
        skipped=skipped,
        failed=failed,
        total_src_bytes=total_src,
        total_out_bytes=total_out,
    )
