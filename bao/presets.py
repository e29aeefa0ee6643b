from __future__ import annotations

from dataclasses import replace

from .settings import DISABLED, ENABLED, MAX_QUALITY, OptimizeSettings

PRESETS = ("default", "webp", "minify", "aggressive", "server-compressed")


def apply_preset(name: str, base: OptimizeSettings) -> OptimizeSettings:
    name = name.lower()

    if name == "default":
        return base

    if name == "webp":
        # WebP conversion replaces the PNG recode
        return replace(base, webp=ENABLED, pngquant=DISABLED)

    if name == "minify":
        return replace(base, minify_html=ENABLED)

    if name == "aggressive":
        return replace(
            base,
            webp=ENABLED,
            pngquant=DISABLED,
            minify_html=ENABLED,
            quality=MAX_QUALITY,
            threshold=0,
        )

    if name == "server-compressed":
        # The web server compresses responses itself.
        return replace(base, brotli=DISABLED)

    raise ValueError(f"Unknown preset: {name}")
