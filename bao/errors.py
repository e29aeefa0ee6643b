"""Exception hierarchy for bao."""

from __future__ import annotations

from typing import Optional


class BaoError(Exception):
    """Base exception for all bao errors."""

    pass


class ConfigError(BaoError, ValueError):
    """Invalid option values or unknown codec option names."""

    pass


class CodecError(BaoError):
    """A codec pipeline could not transform its input."""

    def __init__(self, pipeline: str, message: str, path: Optional[str] = None) -> None:
        self.pipeline = pipeline
        self.path = path
        where = f" ({path})" if path else ""
        super().__init__(f"{pipeline}{where}: {message}")
