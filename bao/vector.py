from __future__ import annotations

import re
from typing import Any, Mapping

from lxml import etree

from .errors import CodecError
from .settings import SVG_DEFAULTS

SVG_NS = "http://www.w3.org/2000/svg"

# Namespaces written by vector editors; nothing renders them.
EDITOR_NAMESPACES = frozenset({
    "http://sodipodi.sourceforge.net/DTD/sodipodi-0.dtd",
    "http://inkscape.sourceforge.net/DTD/sodipodi-0.dtd",
    "http://www.inkscape.org/namespaces/inkscape",
    "http://www.bohemiancoding.com/sketch/ns",
    "http://ns.adobe.com/AdobeIllustrator/10.0/",
    "http://ns.adobe.com/Graphs/1.0/",
    "http://ns.adobe.com/AdobeSVGViewerExtensions/3.0/",
    "http://ns.adobe.com/Variables/1.0/",
    "http://ns.adobe.com/SaveForWeb/1.0/",
    "http://ns.adobe.com/Extensibility/1.0/",
    "http://ns.adobe.com/Flows/1.0/",
    "http://ns.adobe.com/ImageReplacement/1.0/",
    "http://ns.adobe.com/GenericCustomNamespace/1.0/",
    "http://ns.adobe.com/XPath/1.0/",
    "http://schemas.microsoft.com/visio/2003/SVGExtensions/",
    "http://taptrix.com/vectorillustrator/svg_extensions",
    "http://www.figma.com/figma/ns",
    "http://purl.org/dc/elements/1.1/",
    "http://creativecommons.org/ns#",
    "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
    "http://www.serif.com/",
    "http://www.vector.evaxdesign.sk",
})

CONTAINERS = frozenset({"g", "defs", "symbol", "marker", "clipPath", "mask", "pattern", "switch", "a"})

_WS = re.compile(r"\s+")
_NUMBER = re.compile(r"^\s*([0-9]*\.?[0-9]+)\s*(px)?\s*$")


class SvgOptimizer:
    """
    Structural SVG cleanup.

    Option names mirror svgo plugins (snake_case). viewBox is preserved and
    explicit width/height are stripped unless overridden. Build once per
    run; optimize() keeps no state between calls.
    """
    name = "svgo"

    def __init__(self, options: Mapping[str, Any]) -> None:
        self.options = {**SVG_DEFAULTS, **options}

    def enabled(self, plugin: str) -> bool:
        return bool(self.options.get(plugin))

    def optimize(self, content: str, path_hint: str = "") -> str:
        """Optimize SVG text. Raises CodecError on malformed input."""
        parser = etree.XMLParser(
            remove_comments=self.enabled("remove_comments"),
            remove_blank_text=True,
            remove_pis=True,
            resolve_entities=False,
            no_network=True,
        )
        try:
            root = etree.fromstring(content.encode("utf-8"), parser=parser)
        except etree.XMLSyntaxError as e:
            raise CodecError(self.name, str(e), path_hint) from e

        if _local(root.tag) != "svg":
            raise CodecError(self.name, f"root element is <{_local(root.tag)}>, not <svg>", path_hint)

        if self.enabled("remove_editors_ns_data"):
            _remove_editor_data(root)
        if self.enabled("remove_metadata"):
            _remove_elements(root, "metadata")
        if self.enabled("remove_title"):
            _remove_elements(root, "title")
        if self.enabled("remove_desc"):
            _remove_elements(root, "desc")
        if self.enabled("cleanup_attrs"):
            _cleanup_attrs(root)
        if self.enabled("remove_dimensions"):
            _remove_dimensions(root)
        if self.enabled("remove_view_box"):
            _remove_view_box(root)
        if self.enabled("remove_empty_containers"):
            _remove_empty_containers(root)

        etree.cleanup_namespaces(root)
        return etree.tostring(root, encoding="unicode")


def _local(tag: Any) -> str:
    # Comments and PIs have a callable .tag
    if not isinstance(tag, str):
        return ""
    return etree.QName(tag).localname


def _namespace(name: str) -> str:
    return etree.QName(name).namespace or ""


def _remove(el: etree._Element) -> None:
    parent = el.getparent()
    if parent is None:
        return
    # Keep the tail text that belonged to the removed element.
    if el.tail and el.tail.strip():
        prev = el.getprevious()
        if prev is not None:
            prev.tail = (prev.tail or "") + el.tail
        else:
            parent.text = (parent.text or "") + el.tail
    parent.remove(el)


def _remove_elements(root: etree._Element, local_name: str) -> None:
    for el in list(root.iter(f"{{{SVG_NS}}}{local_name}", local_name)):
        _remove(el)


def _remove_editor_data(root: etree._Element) -> None:
    for el in list(root.iter()):
        if not isinstance(el.tag, str):
            continue
        if _namespace(el.tag) in EDITOR_NAMESPACES and el is not root:
            _remove(el)
            continue
        for attr in list(el.attrib):
            if _namespace(attr) in EDITOR_NAMESPACES:
                del el.attrib[attr]


def _cleanup_attrs(root: etree._Element) -> None:
    for el in root.iter():
        if not isinstance(el.tag, str):
            continue
        for attr, value in el.attrib.items():
            cleaned = _WS.sub(" ", value).strip()
            if cleaned != value:
                el.set(attr, cleaned)


def _remove_dimensions(root: etree._Element) -> None:
    width = root.get("width")
    height = root.get("height")
    if width is None or height is None:
        return

    if root.get("viewBox") is None:
        # Without a viewBox the size is the only coordinate system; derive one.
        w = _NUMBER.match(width)
        h = _NUMBER.match(height)
        if not (w and h):
            return
        root.set("viewBox", f"0 0 {w.group(1)} {h.group(1)}")

    del root.attrib["width"]
    del root.attrib["height"]


def _remove_view_box(root: etree._Element) -> None:
    # Only safe when explicit dimensions carry the size.
    view_box = root.get("viewBox")
    width = root.get("width")
    height = root.get("height")
    if view_box is None or width is None or height is None:
        return
    w = _NUMBER.match(width)
    h = _NUMBER.match(height)
    if not (w and h):
        return
    parts = view_box.replace(",", " ").split()
    if parts == ["0", "0", w.group(1), h.group(1)]:
        del root.attrib["viewBox"]


def _remove_empty_containers(root: etree._Element) -> None:
    # Deepest first so parents emptied by the pass are removed too.
    for el in reversed(list(root.iter())):
        if el is root or _local(el.tag) not in CONTAINERS:
            continue
        if len(el) == 0 and not (el.text and el.text.strip()) and el.get("id") is None:
            _remove(el)


def decode_svg(data: bytes, path_hint: str = "") -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CodecError(SvgOptimizer.name, f"not UTF-8: {e}", path_hint) from e
