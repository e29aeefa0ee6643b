from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, Optional

from .classify import Classifier, Skip
from .pipelines import Codecs, Pipeline, get_pipeline
from .results import AssetPath, ProcessResult
from .settings import OptimizeSettings
from .tracker import ChangeTracker

logger = logging.getLogger(__name__)


def process_asset(
    asset: AssetPath,
    s: OptimizeSettings,
    classifier: Classifier,
    tracker: ChangeTracker,
    codecs: Codecs,
    pipelines: Optional[Dict[str, Pipeline]] = None,
) -> ProcessResult:
    """
    Run one file through its pipeline and write the result back.

    Codec and I/O errors propagate; the batch turns them into a failed
    result. The original file is only replaced once new content exists.
    """
    skip = classifier.screen(asset)
    if skip:
        return _skipped(asset, 0, skip.reason)

    st = asset.absolute.stat()
    src_bytes = st.st_size

    if not tracker.should_process(asset.absolute, st.st_mtime):
        return _skipped(asset, src_bytes, "unchanged")

    decision = classifier.select(asset, src_bytes)
    if isinstance(decision, Skip):
        return _skipped(asset, src_bytes, decision.reason)

    pipeline = get_pipeline(decision.pipeline, pipelines)
    content = asset.absolute.read_bytes()
    content = pipeline.apply(content, codecs, decision, asset.absolute_posix)

    out_path = asset.with_suffix(decision.new_suffix) if decision.new_suffix else asset

    if not s.dry_run:
        _write_output(content, asset.absolute, out_path.absolute)
        tracker.record_processed(asset.absolute)

    return ProcessResult(
        src_path=asset,
        out_path=out_path,
        src_bytes=src_bytes,
        out_bytes=len(content),
        changed=not s.dry_run,
        skipped_reason=None,
    )


def _skipped(asset: AssetPath, src_bytes: int, reason: str) -> ProcessResult:
    return ProcessResult(
        src_path=asset,
        out_path=None,
        src_bytes=src_bytes,
        out_bytes=src_bytes,
        changed=False,
        skipped_reason=reason,
    )


def _write_output(content: bytes, src_path: Path, out_path: Path) -> None:
    tmp_path = _save_to_temp(content, src_path, out_path.parent)
    try:
        _finalize_output(tmp_path, out_path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    # Format conversion: drop the original only once the new file is in place.
    if out_path != src_path:
        src_path.unlink()
        logger.debug("Replaced %s with %s", src_path, out_path.name)


def _save_to_temp(content: bytes, src_path: Path, directory: Path) -> Path:
    # Temp file next to the target so the final rename stays on one filesystem
    fd, tmp_name = tempfile.mkstemp(prefix=".bao_", suffix=".tmp", dir=str(directory))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        # mkstemp creates 0600; keep the original's permissions.
        shutil.copymode(src_path, tmp_path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    return tmp_path


def _finalize_output(tmp_path: Path, out_path: Path) -> None:
    tmp_path.replace(out_path)
