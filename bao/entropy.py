from __future__ import annotations

import brotli

from .errors import CodecError
from .settings import MAX_QUALITY

# Largest window brotli allows (2**24 - 16 bytes).
MAX_LGWIN = 24


class BrotliCompressor:
    """
    Text-mode Brotli at a fixed quality.

    Deterministic for a given input and quality. The window is sized from
    the input length, standing in for a size hint.
    """
    name = "brotli"

    def __init__(self, quality: int = MAX_QUALITY) -> None:
        self.quality = quality

    def __call__(self, data: bytes, path_hint: str = "") -> bytes:
        try:
            return brotli.compress(
                data,
                mode=brotli.MODE_TEXT,
                quality=self.quality,
                lgwin=window_bits(len(data)),
            )
        except brotli.error as e:
            raise CodecError(self.name, str(e), path_hint) from e


def window_bits(size: int) -> int:
    """Smallest lgwin (10..24) whose window covers `size` bytes."""
    bits = 10
    while bits < MAX_LGWIN and (1 << bits) - 16 < size:
        bits += 1
    return bits
