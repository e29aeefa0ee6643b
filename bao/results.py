from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional


@dataclass(frozen=True)
class AssetPath:
    """
    A file under the output root.

    `absolute` is the identity key for change tracking; `relative` is the
    POSIX path used for glob matching and reporting.
    """
    absolute: Path
    relative: str

    @classmethod
    def under(cls, root: Path, relative: str) -> "AssetPath":
        return cls(absolute=Path(root) / relative, relative=relative)

    @property
    def absolute_posix(self) -> str:
        return self.absolute.as_posix()

    @property
    def suffix(self) -> str:
        return PurePosixPath(self.relative).suffix.lower()

    def with_suffix(self, suffix: str) -> "AssetPath":
        return AssetPath(
            absolute=self.absolute.with_suffix(suffix),
            relative=str(PurePosixPath(self.relative).with_suffix(suffix)),
        )


@dataclass(frozen=True)
class ProcessResult:
    """
    Output of processing a single asset.

    `out_path` is None when nothing was written (skipped or failed).
    When a pipeline renames the file (png -> webp) it holds the new path.
    """
    src_path: AssetPath
    out_path: Optional[AssetPath]
    src_bytes: int
    out_bytes: int
    changed: bool
    skipped_reason: Optional[str] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def ratio(self) -> float:
        """1 - after/before. An empty source reports 0.0."""
        if self.src_bytes <= 0:
            return 0.0
        return 1 - (self.out_bytes / self.src_bytes)


@dataclass(frozen=True)
class BatchSummary:
    total_files: int
    processed: int
    skipped: int
    failed: int
    total_src_bytes: int
    total_out_bytes: int

    @property
    def saved_bytes(self) -> int:
        return max(0, self.total_src_bytes - self.total_out_bytes)

    @property
    def saved_percent(self) -> float:
        if self.total_src_bytes <= 0:
            return 0.0
        return (self.saved_bytes / self.total_src_bytes) * 100.0
