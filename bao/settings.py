from __future__ import annotations

import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal, Mapping, Optional, Sequence, Tuple, Union

from .errors import ConfigError


# "disabled" -> feature off
# "default"  -> feature on with the codec defaults
# "custom"   -> feature on, caller options overlaid on the codec defaults
FeatureMode = Literal["disabled", "default", "custom"]

OptionValue = Union[None, bool, Mapping[str, Any]]

DEFAULT_EXTENSIONS: Tuple[str, ...] = ("html", "js", "css", "svg", "json", "png")

# Brotli quality range (0-11). Higher = smaller but slower.
MIN_QUALITY = 0
MAX_QUALITY = 11

DEFAULT_THRESHOLD = 1501


# ----- Codec defaults -----
# Keys are the only option names each codec accepts.

SVG_DEFAULTS: Mapping[str, bool] = MappingProxyType({
    "remove_comments": True,
    "remove_metadata": True,
    "remove_title": True,
    "remove_desc": True,
    "remove_editors_ns_data": True,
    "remove_empty_containers": True,
    "cleanup_attrs": True,
    "remove_view_box": False,
    "remove_dimensions": True,
})

PNG_DEFAULTS: Mapping[str, Any] = MappingProxyType({
    "colors": 256,
    "dither": True,
    "compress_level": 9,
    "optimize": True,
})

WEBP_DEFAULTS: Mapping[str, Any] = MappingProxyType({
    "quality": 75,
    "lossless": False,
    "method": 4,  # 0-6, higher = smaller but slower
    "alpha_quality": 100,
})

HTML_DEFAULTS: Mapping[str, bool] = MappingProxyType({
    "collapse_boolean_attributes": True,
    "collapse_whitespace": True,
    "minify_css": True,
    "minify_js": True,
    "remove_attribute_quotes": True,
    "remove_comments": True,
    "remove_empty_attributes": True,
    "remove_redundant_attributes": True,
    "remove_script_type_attributes": True,
    "remove_style_link_type_attributes": True,
    "use_short_doctype": True,
})

BROTLI_OPTION_NAMES = frozenset({"exclude"})


@dataclass(frozen=True)
class Feature:
    """
    A boolean-or-options config value, resolved once per run.
    """
    mode: FeatureMode
    options: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def enabled(self) -> bool:
        return self.mode != "disabled"

    def merged(self, defaults: Mapping[str, Any]) -> dict:
        return {**defaults, **self.options}


DISABLED = Feature("disabled")
ENABLED = Feature("default")


def default_workers() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


@dataclass(frozen=True)
class OptimizeSettings:
    """
    Immutable snapshot of every knob for one run.

    Pure data: build it with build_settings() so option values get
    validated and resolved into Feature variants.
    """

    # ----- Reporting -----
    verbose: bool = False

    # ----- Entropy compression (Brotli) -----
    brotli: Feature = ENABLED
    quality: int = MAX_QUALITY
    threshold: int = DEFAULT_THRESHOLD

    # ----- File selection -----
    # Globs matched against both the relative and the absolute path.
    exclude: Tuple[str, ...] = ()
    extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS

    # ----- Codecs -----
    svgo: Feature = ENABLED
    pngquant: Feature = ENABLED
    webp: Feature = DISABLED
    minify_html: Feature = DISABLED

    # ----- Execution -----
    max_workers: int = field(default_factory=default_workers)
    dry_run: bool = False

    @property
    def brotli_exclude(self) -> Tuple[str, ...]:
        return tuple(self.brotli.options.get("exclude", ()))


def resolve_feature(
    name: str,
    value: OptionValue,
    default_on: bool,
    allowed: Optional[Sequence[str]] = None,
) -> Feature:
    if value is None:
        return ENABLED if default_on else DISABLED
    if value is False:
        return DISABLED
    if value is True:
        return ENABLED
    if isinstance(value, Mapping):
        if allowed is not None:
            unknown = sorted(set(value) - set(allowed))
            if unknown:
                raise ConfigError(f"unknown {name} option(s): {', '.join(unknown)}")
        return Feature("custom", MappingProxyType(dict(value)))
    raise ConfigError(f"{name} must be a bool or a mapping of options, got {type(value).__name__}")


def build_settings(
    verbose: bool = False,
    brotli: OptionValue = None,
    quality: int = MAX_QUALITY,
    threshold: int = DEFAULT_THRESHOLD,
    exclude: Sequence[str] = (),
    extensions: Sequence[str] = (),
    svgo: OptionValue = None,
    pngquant: OptionValue = None,
    webp: OptionValue = None,
    minify_html: OptionValue = None,
    max_workers: Optional[int] = None,
    dry_run: bool = False,
) -> OptimizeSettings:
    """
    Turn the external option surface into an OptimizeSettings.

    - brotli: True/None = on, False = off, {"exclude": [...]} = on with
      its own exclude globs
    - svgo / pngquant: on unless False; a mapping overrides codec defaults
    - webp / minify_html: off unless True or a mapping
    - extensions are added to the default allowlist
    """
    quality = int(quality)
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise ConfigError(f"quality must be between {MIN_QUALITY} and {MAX_QUALITY}, got {quality}")

    threshold = int(threshold)
    if threshold < 0:
        raise ConfigError(f"threshold cannot be negative, got {threshold}")

    if max_workers is None:
        max_workers = default_workers()
    if int(max_workers) < 1:
        raise ConfigError(f"max_workers must be at least 1, got {max_workers}")

    brotli_feature = resolve_feature("brotli", brotli, True, BROTLI_OPTION_NAMES)
    if isinstance(brotli_feature.options.get("exclude"), str):
        raise ConfigError("brotli exclude must be a list of globs")

    exts = list(DEFAULT_EXTENSIONS)
    for ext in extensions:
        ext = str(ext).lstrip(".").lower()
        if ext and ext not in exts:
            exts.append(ext)

    # Converting to WebP replaces the lossy PNG recode.
    webp_feature = resolve_feature("webp", webp, False, WEBP_DEFAULTS.keys())
    pngquant_feature = resolve_feature("pngquant", pngquant, True, PNG_DEFAULTS.keys())
    if webp_feature.enabled:
        pngquant_feature = DISABLED

    return OptimizeSettings(
        verbose=bool(verbose),
        brotli=brotli_feature,
        quality=quality,
        threshold=threshold,
        exclude=tuple(exclude),
        extensions=tuple(exts),
        svgo=resolve_feature("svgo", svgo, True, SVG_DEFAULTS.keys()),
        pngquant=pngquant_feature,
        webp=webp_feature,
        minify_html=resolve_feature("minify_html", minify_html, False, HTML_DEFAULTS.keys()),
        max_workers=int(max_workers),
        dry_run=bool(dry_run),
    )
