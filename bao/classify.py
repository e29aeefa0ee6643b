from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Pattern, Union

from .results import AssetPath
from .settings import OptimizeSettings


# Pipeline names (keys of pipelines.PIPELINES)
WEBP = "webp"
PNGQUANT = "pngquant"
SVGO = "svgo"
MINIFY_HTML = "minify_html"
BROTLI = "brotli"


@dataclass(frozen=True)
class Selection:
    pipeline: str
    new_suffix: Optional[str] = None  # set when the output changes extension
    brotli_after: bool = False  # minify_html only: chain into brotli if still big enough


@dataclass(frozen=True)
class Skip:
    reason: str


Decision = Union[Selection, Skip]


def glob_to_regex(pattern: str) -> str:
    """
    Translate a path glob into an (unanchored) regex body.

      **/  zero or more directories
      **   anything, including "/"
      *    anything except "/"
      ?    one character except "/"
      {a,b} alternation
    """
    out = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                i += 2
                if i < n and pattern[i] == "/":
                    out.append("(?:.*/)?")
                    i += 1
                else:
                    out.append(".*")
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "{":
            end = pattern.find("}", i)
            if end == -1:
                out.append(re.escape(c))
            else:
                alts = pattern[i + 1:end].split(",")
                out.append("(?:" + "|".join(glob_to_regex(a) for a in alts) + ")")
                i = end + 1
                continue
        else:
            out.append(re.escape(c))
        i += 1
    return "".join(out)


class GlobSet:
    """A set of globs compiled into one anchored regex."""

    def __init__(self, patterns: Iterable[str]) -> None:
        self.patterns = tuple(patterns)
        self._regex: Optional[Pattern[str]] = None
        if self.patterns:
            body = "|".join(f"(?:{glob_to_regex(p)})" for p in self.patterns)
            self._regex = re.compile(f"^(?:{body})$")

    def __bool__(self) -> bool:
        return self._regex is not None

    def matches(self, *candidates: str) -> bool:
        """True if any candidate string matches any pattern."""
        if self._regex is None:
            return False
        return any(self._regex.match(c) for c in candidates)


class Classifier:
    """
    Decides which pipeline (if any) applies to a file.

    Stateless apart from globs compiled from the settings snapshot, so one
    instance is shared by every worker of a run.
    """

    def __init__(self, settings: OptimizeSettings) -> None:
        self.settings = settings
        self.extensions = frozenset("." + e.lstrip(".").lower() for e in settings.extensions)
        self.exclude = GlobSet(settings.exclude)
        self.brotli_exclude = GlobSet(settings.brotli_exclude)

    def screen(self, asset: AssetPath) -> Optional[Skip]:
        """Cheap checks that need no stat: extension allowlist and exclude globs."""
        if asset.suffix not in self.extensions:
            return Skip("unsupported_extension")
        if self.exclude.matches(asset.relative, asset.absolute_posix):
            return Skip("excluded")
        return None

    def select(self, asset: AssetPath, size: int) -> Decision:
        s = self.settings
        suffix = asset.suffix

        if suffix == ".png":
            if s.webp.enabled:
                return Selection(WEBP, new_suffix=".webp")
            if s.pngquant.enabled:
                return Selection(PNGQUANT)
            return Skip("raster_disabled")

        if suffix == ".svg" and s.svgo.enabled:
            return Selection(SVGO)

        use_brotli = (
            s.brotli.enabled
            and size >= s.threshold
            and not self.brotli_exclude.matches(asset.relative, asset.absolute_posix)
        )

        if suffix == ".html" and s.minify_html.enabled:
            return Selection(MINIFY_HTML, brotli_after=use_brotli)

        if use_brotli:
            return Selection(BROTLI)

        if not s.brotli.enabled:
            return Skip("brotli_disabled")
        if size < s.threshold:
            return Skip("below_threshold")
        return Skip("brotli_excluded")

    def classify(self, asset: AssetPath, size: int) -> Decision:
        return self.screen(asset) or self.select(asset, size)


def classify(asset: AssetPath, size: int, settings: OptimizeSettings) -> Decision:
    return Classifier(settings).classify(asset, size)
