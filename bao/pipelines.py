"""
Pipeline registry and the shared codec holder.

A pipeline turns the bytes of one file into new bytes. Pipelines never
touch the filesystem; engine.py does the reading and writing.

Each pipeline carries an error policy:
  "propagate" -> a CodecError fails that one file (original left untouched)
  "fallback"  -> a CodecError is logged and the input is returned as-is
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Literal, Optional, TypeVar

from . import classify
from .classify import Selection
from .entropy import BrotliCompressor
from .errors import CodecError
from .markup import HtmlMinifier
from .raster import PngQuantizer, WebpEncoder
from .settings import (
    HTML_DEFAULTS,
    PNG_DEFAULTS,
    SVG_DEFAULTS,
    WEBP_DEFAULTS,
    OptimizeSettings,
)
from .vector import SvgOptimizer, decode_svg

logger = logging.getLogger(__name__)

ErrorPolicy = Literal["propagate", "fallback"]

T = TypeVar("T")


class Codecs:
    """
    Codec instances for one engine, created on first use and then shared
    read-only by every worker thread.
    """

    def __init__(self, settings: OptimizeSettings) -> None:
        self.settings = settings
        self._lock = threading.Lock()
        self._instances: Dict[str, Any] = {}

    def _get(self, key: str, factory: Callable[[], T]) -> T:
        inst = self._instances.get(key)
        if inst is None:
            with self._lock:
                inst = self._instances.get(key)
                if inst is None:
                    inst = factory()
                    self._instances[key] = inst
        return inst

    @property
    def svg(self) -> SvgOptimizer:
        return self._get("svg", lambda: SvgOptimizer(self.settings.svgo.merged(SVG_DEFAULTS)))

    @property
    def png(self) -> PngQuantizer:
        return self._get("png", lambda: PngQuantizer(self.settings.pngquant.merged(PNG_DEFAULTS)))

    @property
    def webp(self) -> WebpEncoder:
        return self._get("webp", lambda: WebpEncoder(self.settings.webp.merged(WEBP_DEFAULTS)))

    @property
    def html(self) -> HtmlMinifier:
        return self._get("html", lambda: HtmlMinifier(self.settings.minify_html.merged(HTML_DEFAULTS)))

    @property
    def brotli(self) -> BrotliCompressor:
        return self._get("brotli", lambda: BrotliCompressor(self.settings.quality))

    def created(self) -> frozenset:
        with self._lock:
            return frozenset(self._instances)


Runner = Callable[[bytes, Codecs, Selection, str], bytes]


@dataclass(frozen=True)
class Pipeline:
    name: str
    run: Runner
    error_policy: ErrorPolicy = "propagate"

    def apply(self, data: bytes, codecs: Codecs, selection: Selection, path_hint: str = "") -> bytes:
        try:
            return self.run(data, codecs, selection, path_hint)
        except CodecError as e:
            if self.error_policy == "fallback":
                logger.debug('Failed to optimize "%s". %s', path_hint, e)
                return data
            raise


def _run_webp(data: bytes, codecs: Codecs, selection: Selection, path_hint: str) -> bytes:
    return codecs.webp(data, path_hint)


def _run_pngquant(data: bytes, codecs: Codecs, selection: Selection, path_hint: str) -> bytes:
    return codecs.png(data, path_hint)


def _run_svgo(data: bytes, codecs: Codecs, selection: Selection, path_hint: str) -> bytes:
    text = decode_svg(data, path_hint)
    return codecs.svg.optimize(text, path_hint).encode("utf-8")


def _run_minify_html(data: bytes, codecs: Codecs, selection: Selection, path_hint: str) -> bytes:
    out = codecs.html(data, path_hint)
    if selection.brotli_after and len(out) >= codecs.settings.threshold:
        out = codecs.brotli(out, path_hint)
    return out


def _run_brotli(data: bytes, codecs: Codecs, selection: Selection, path_hint: str) -> bytes:
    return codecs.brotli(data, path_hint)


PIPELINES: Dict[str, Pipeline] = {
    classify.WEBP: Pipeline(classify.WEBP, _run_webp),
    classify.PNGQUANT: Pipeline(classify.PNGQUANT, _run_pngquant),
    # Malformed SVG keeps its original content.
    classify.SVGO: Pipeline(classify.SVGO, _run_svgo, error_policy="fallback"),
    classify.MINIFY_HTML: Pipeline(classify.MINIFY_HTML, _run_minify_html),
    classify.BROTLI: Pipeline(classify.BROTLI, _run_brotli),
}


def get_pipeline(name: str, registry: Optional[Dict[str, Pipeline]] = None) -> Pipeline:
    registry = PIPELINES if registry is None else registry
    try:
        return registry[name]
    except KeyError:
        raise KeyError(f"unknown pipeline: {name}") from None
