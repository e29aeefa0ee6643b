from __future__ import annotations

import re
from typing import AbstractSet, Any, Callable, Mapping

import htmlmin
import rcssmin
import rjsmin

from .errors import CodecError
from .settings import HTML_DEFAULTS

# Content of these tags is passed through htmlmin untouched.
PRE_TAGS = ("pre", "textarea", "script", "style")

JS_TYPES = frozenset({
    "",
    "module",
    "text/javascript",
    "application/javascript",
    "application/ecmascript",
    "text/ecmascript",
})

_DOCTYPE = re.compile(r"<!doctype[^>]*>", re.I)
_TAG = re.compile(r"<[a-zA-Z][^<>]*>")
_STYLE_BLOCK = re.compile(r"(<style\b[^>]*>)(.*?)(</style\s*>)", re.I | re.S)
_SCRIPT_BLOCK = re.compile(r"(<script\b([^>]*)>)(.*?)(</script\s*>)", re.I | re.S)
_STYLE_ATTR = re.compile(r"(\sstyle\s*=\s*)([\"'])(.*?)\2", re.I | re.S)
_TYPE_ATTR = re.compile(r"\stype\s*=\s*([\"']?)([^\"'\s>]*)\1", re.I)
_SCRIPT_TAG = re.compile(r"<script\b[^>]*>", re.I)
_STYLE_LINK_TAG = re.compile(r"<(?:style|link)\b[^>]*>", re.I)
_INLINE_CSS = re.compile(r"^\*\{(.*)\}$", re.S)
_RAW_BLOCK = re.compile(r"(<(script|style|pre|textarea)\b[^>]*>)(.*?)(</\2\s*>)", re.I | re.S)
_OPEN_TAG = re.compile(r"<([a-zA-Z][a-zA-Z0-9]*)(\s[^<>]*)?>")
_ATTR = re.compile(r"\s+([^\s\"'<>/=]+)(?:\s*=\s*(\"[^\"]*\"|'[^']*'|[^\s\"'=<>`]+))?")

# Attributes that restate the HTML default, per tag.
REDUNDANT_ATTRIBUTES = {
    "area": {"shape": "rect"},
    "form": {"method": "get"},
    "input": {"type": "text"},
    "script": {"language": "javascript"},
}


class HtmlMinifier:
    """
    HTML minifier: htmlmin for markup, rcssmin / rjsmin for inline code.

    Options are html-minifier style switches (see settings.HTML_DEFAULTS);
    caller values override individual defaults.
    """
    name = "minify_html"

    def __init__(self, options: Mapping[str, Any]) -> None:
        self.options = {**HTML_DEFAULTS, **options}

    def enabled(self, name: str) -> bool:
        return bool(self.options.get(name))

    def minify(self, html: str, path_hint: str = "") -> str:
        try:
            if self.enabled("use_short_doctype"):
                html = _DOCTYPE.sub("<!doctype html>", html, count=1)
            if self.enabled("remove_script_type_attributes"):
                html = _sub_markup(_SCRIPT_TAG, lambda m: _drop_type(m.group(0), JS_TYPES - {"module"}), html)
            if self.enabled("remove_style_link_type_attributes"):
                html = _sub_markup(_STYLE_LINK_TAG, lambda m: _drop_type(m.group(0), {"text/css"}), html)
            if self.enabled("remove_redundant_attributes"):
                html = _sub_markup(_OPEN_TAG, _drop_redundant, html)
            if self.enabled("minify_css"):
                html = _STYLE_BLOCK.sub(_minify_style_block, html)
                html = _sub_markup(_TAG, _minify_style_attrs, html)
            if self.enabled("minify_js"):
                html = _SCRIPT_BLOCK.sub(_minify_script_block, html)

            return htmlmin.minify(
                html,
                remove_comments=self.enabled("remove_comments"),
                remove_empty_space=self.enabled("collapse_whitespace"),
                reduce_empty_attributes=self.enabled("remove_empty_attributes"),
                reduce_boolean_attributes=self.enabled("collapse_boolean_attributes"),
                remove_optional_attribute_quotes=self.enabled("remove_attribute_quotes"),
                pre_tags=PRE_TAGS,
            )
        except (ValueError, AssertionError) as e:
            raise CodecError(self.name, str(e), path_hint) from e

    def __call__(self, data: bytes, path_hint: str = "") -> bytes:
        try:
            html = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CodecError(self.name, f"not UTF-8: {e}", path_hint) from e
        return self.minify(html, path_hint).encode("utf-8")


def minify_css(css: str, inline: bool = False) -> str:
    """
    Minify a stylesheet, or the body of a style="" attribute when inline.

    Declarations are wrapped in a dummy rule so the minifier accepts them.
    """
    if not inline:
        return rcssmin.cssmin(css)
    out = rcssmin.cssmin("*{" + css + "}")
    m = _INLINE_CSS.match(out)
    return m.group(1) if m else css


def _drop_type(tag: str, removable: AbstractSet[str]) -> str:
    m = _TYPE_ATTR.search(tag)
    if m and m.group(2).lower() in removable:
        return tag[:m.start()] + tag[m.end():]
    return tag


def _sub_markup(pattern: re.Pattern, repl: Callable[[re.Match], str], html: str) -> str:
    """`pattern.sub` over markup, leaving script/style/pre/textarea bodies alone."""
    out = []
    pos = 0
    for m in _RAW_BLOCK.finditer(html):
        out.append(pattern.sub(repl, html[pos:m.start()]))
        out.append(pattern.sub(repl, m.group(1)))
        out.append(m.group(3) + m.group(4))
        pos = m.end()
    out.append(pattern.sub(repl, html[pos:]))
    return "".join(out)


def _drop_redundant(m: re.Match) -> str:
    tag = m.group(1).lower()
    attrs = m.group(2)
    if not attrs or tag not in REDUNDANT_ATTRIBUTES:
        return m.group(0)

    defaults = REDUNDANT_ATTRIBUTES[tag]
    parsed = list(_ATTR.finditer(attrs))
    names = {a.group(1).lower() for a in parsed}

    kept = []
    pos = 0
    for a in parsed:
        name = a.group(1).lower()
        value = (a.group(2) or "").strip("\"'").strip().lower()
        redundant = defaults.get(name) == value
        if tag == "script" and name == "charset" and "src" not in names:
            redundant = True
        if redundant:
            kept.append(attrs[pos:a.start()])
            pos = a.end()
    kept.append(attrs[pos:])
    return "<" + m.group(1) + "".join(kept) + ">"


def _minify_style_block(m: re.Match) -> str:
    return m.group(1) + minify_css(m.group(2)) + m.group(3)


def _minify_style_attrs(m: re.Match) -> str:
    return _STYLE_ATTR.sub(
        lambda a: a.group(1) + a.group(2) + minify_css(a.group(3), inline=True) + a.group(2),
        m.group(0),
    )


def _minify_script_block(m: re.Match) -> str:
    attrs = m.group(2)
    if re.search(r"\ssrc\s*=", attrs, re.I):
        return m.group(0)
    t = _TYPE_ATTR.search(attrs)
    script_type = t.group(2).lower() if t else ""
    if script_type not in JS_TYPES:
        return m.group(0)  # JSON, templates, ...
    return m.group(1) + rjsmin.jsmin(m.group(3)) + m.group(4)
