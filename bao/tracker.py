from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional, Union

PathKey = Union[str, Path]


class ChangeTracker:
    """
    Per-path watermark of the last successful write.

    A path is (re)processed only when its current mtime is newer than the
    stored watermark; a missing entry counts as the epoch. Entries are never
    removed. Safe to share between worker threads.

    The tracker lives as long as the Recompressor that owns it. To carry
    watermarks across processes, pass `snapshot()` back in as `initial`.
    """

    def __init__(
        self,
        initial: Optional[Mapping[str, float]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._marks: Dict[str, float] = dict(initial or {})

    def should_process(self, path: PathKey, current_mtime: float) -> bool:
        with self._lock:
            return current_mtime > self._marks.get(_key(path), 0.0)

    def record_processed(self, path: PathKey, when: Optional[float] = None) -> float:
        """Move the watermark to `when` (default: wall clock now)."""
        stamp = self._clock() if when is None else when
        with self._lock:
            self._marks[_key(path)] = stamp
        return stamp

    def watermark(self, path: PathKey) -> Optional[float]:
        with self._lock:
            return self._marks.get(_key(path))

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._marks)

    def __len__(self) -> int:
        with self._lock:
            return len(self._marks)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        with self._lock:
            return _key(path) in self._marks


def _key(path: PathKey) -> str:
    return Path(path).as_posix()
