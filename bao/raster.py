from __future__ import annotations

import io
from typing import Any, Mapping

from PIL import Image, UnidentifiedImageError

from .errors import CodecError
from .settings import PNG_DEFAULTS, WEBP_DEFAULTS


class PngQuantizer:
    """
    Lossy PNG recode: reduce to a palette, then save with max zlib effort.

    Same path, same extension.
    """
    name = "pngquant"

    def __init__(self, options: Mapping[str, Any]) -> None:
        opts = {**PNG_DEFAULTS, **options}
        self.colors = max(2, min(256, int(opts["colors"])))
        self.dither = bool(opts["dither"])
        self.compress_level = int(opts["compress_level"])
        self.optimize = bool(opts["optimize"])

    def __call__(self, data: bytes, path_hint: str = "") -> bytes:
        im = _open(data, self.name, path_hint)
        try:
            im = _normalize_mode(im)

            # MEDIANCUT only handles RGB; FASTOCTREE keeps the alpha channel.
            method = Image.Quantize.FASTOCTREE if im.mode == "RGBA" else Image.Quantize.MEDIANCUT
            dither = Image.Dither.FLOYDSTEINBERG if self.dither else Image.Dither.NONE
            quantized = im.quantize(colors=self.colors, method=method, dither=dither)

            buf = io.BytesIO()
            quantized.save(buf, format="PNG", compress_level=self.compress_level, optimize=self.optimize)
            return buf.getvalue()
        except (OSError, ValueError) as e:
            raise CodecError(self.name, str(e), path_hint) from e
        finally:
            im.close()


class WebpEncoder:
    """
    Next-gen conversion: re-encode any raster image as WebP.

    The engine is responsible for the ".png" -> ".webp" rename.
    """
    name = "webp"

    def __init__(self, options: Mapping[str, Any]) -> None:
        opts = {**WEBP_DEFAULTS, **options}
        self.quality = int(opts["quality"])
        self.lossless = bool(opts["lossless"])
        self.method = int(opts["method"])
        self.alpha_quality = int(opts["alpha_quality"])

    def __call__(self, data: bytes, path_hint: str = "") -> bytes:
        im = _open(data, self.name, path_hint)
        try:
            im = _normalize_mode(im)
            buf = io.BytesIO()
            im.save(
                buf,
                format="WEBP",
                quality=self.quality,
                lossless=self.lossless,
                method=self.method,
                alpha_quality=self.alpha_quality,
            )
            return buf.getvalue()
        except (OSError, ValueError) as e:
            raise CodecError(self.name, str(e), path_hint) from e
        finally:
            im.close()


def _open(data: bytes, pipeline: str, path_hint: str) -> Image.Image:
    try:
        im = Image.open(io.BytesIO(data))
        im.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise CodecError(pipeline, f"cannot decode image: {e}", path_hint) from e
    return im


def _normalize_mode(im: Image.Image) -> Image.Image:
    # Palette/greyscale/16-bit sources are widened so both encoders see RGB(A).
    if im.mode in ("RGB", "RGBA"):
        return im
    return im.convert("RGBA" if _has_alpha(im) else "RGB")


def _has_alpha(im: Image.Image) -> bool:
    if im.mode in ("RGBA", "LA", "PA"):
        return True
    if im.mode == "P" and "transparency" in im.info:
        return True
    return False
