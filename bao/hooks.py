"""
Build-tool integration points.

optimize_inline / transform_module serve a host that inlines SVG into
module source; public_url_rewriter keeps URLs to public PNGs valid once
they are converted to WebP. None of these touch the output tree.
"""
from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import quote, unquote

from .classify import SVGO, Selection
from .pipelines import PIPELINES, Codecs
from .settings import OptimizeSettings

DATA_URI_PREFIX = "data:image/svg+xml,"

_EXPORT_DEFAULT = re.compile(r'export default (".+?")')
_RAW_QUERY = re.compile(r"[?&]raw(?:&|$)")

# Characters encodeURIComponent leaves alone (besides alphanumerics and -_.~)
_URI_SAFE = "!*'()"


def optimize_inline(content: str, id_hint: str, codecs: Codecs) -> str:
    """Optimize SVG text in memory; malformed input comes back unchanged."""
    pipeline = PIPELINES[SVGO]
    data = pipeline.apply(content.encode("utf-8"), codecs, Selection(SVGO), id_hint)
    return data.decode("utf-8")


def transform_module(code: str, module_id: str, codecs: Codecs) -> Optional[str]:
    """
    Rewrite `export default "<svg>"` modules with optimized SVG.

    `?raw` imports hold the markup itself; other imports hold a
    data:image/svg+xml URI. Returns None when the module is left alone.
    """
    if not codecs.settings.svgo.enabled:
        return None
    if not module_id.split("?", 1)[0].endswith(".svg"):
        return None

    m = _EXPORT_DEFAULT.fullmatch(code)
    if not m:
        return None
    exported = m.group(1)

    try:
        content = json.loads(exported)
    except ValueError:
        return None
    if not isinstance(content, str):
        return None

    is_raw = bool(_RAW_QUERY.search(module_id))
    if is_raw:
        optimized = optimize_inline(content, module_id, codecs)
    else:
        if not content.startswith(DATA_URI_PREFIX):
            return None
        svg = unquote(content[len(DATA_URI_PREFIX):])
        optimized = DATA_URI_PREFIX + quote(optimize_inline(svg, module_id, codecs), safe=_URI_SAFE)

    return code.replace(exported, json.dumps(optimized, ensure_ascii=False))


def public_url_rewriter(
    public_dir: Path,
    settings: OptimizeSettings,
) -> Optional[Callable[[str], Optional[str]]]:
    """
    Map "/<name>.png" to "/<name>.webp" for PNGs shipped from `public_dir`.

    Returns None when WebP conversion is off or the directory is missing.
    """
    public_dir = Path(public_dir)
    if not settings.webp.enabled or not public_dir.is_dir():
        return None

    png_files = frozenset(
        p.relative_to(public_dir).as_posix()
        for p in public_dir.rglob("*")
        if p.is_file() and p.suffix.lower() == ".png"
    )

    def resolve(url: str) -> Optional[str]:
        if url.startswith("/") and url[1:] in png_files:
            return url[:-len(".png")] + ".webp"
        return None

    return resolve
