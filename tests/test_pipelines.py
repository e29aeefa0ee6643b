"""Unit tests for the codec pipelines and their error policies."""

import io

import brotli
import pytest
from PIL import Image

from bao.classify import BROTLI, MINIFY_HTML, PNGQUANT, SVGO, WEBP, Selection
from bao.entropy import BrotliCompressor, window_bits
from bao.errors import CodecError
from bao.markup import HtmlMinifier, minify_css
from bao.pipelines import PIPELINES, Codecs
from bao.raster import PngQuantizer, WebpEncoder
from bao.settings import build_settings
from bao.vector import SvgOptimizer

from conftest import SAMPLE_SVG, make_png


SAMPLE_HTML = """<!DOCTYPE html PUBLIC "-//W3C//DTD XHTML 1.0 Transitional//EN">
<html>
  <head>
    <style type="text/css">
      body  {  color: red ;  }
    </style>
    <script type="text/javascript">
      var  answer  =  42 ;
    </script>
  </head>
  <body>
    <!-- remove me -->
    <p   class="intro">Hello     world</p>
  </body>
</html>
"""


class TestErrorPolicy:
    def test_only_vector_falls_back(self):
        policies = {name: p.error_policy for name, p in PIPELINES.items()}
        assert policies == {
            WEBP: "propagate",
            PNGQUANT: "propagate",
            SVGO: "fallback",
            MINIFY_HTML: "propagate",
            BROTLI: "propagate",
        }

    def test_invalid_svg_returns_original_bytes(self):
        codecs = Codecs(build_settings())
        bad = b"<svg><path></svg>"
        assert PIPELINES[SVGO].apply(bad, codecs, Selection(SVGO), "bad.svg") == bad

    def test_non_utf8_svg_returns_original_bytes(self):
        codecs = Codecs(build_settings())
        bad = b"\xff\xfe<svg/>"
        assert PIPELINES[SVGO].apply(bad, codecs, Selection(SVGO), "bad.svg") == bad

    def test_raster_failure_propagates(self):
        codecs = Codecs(build_settings())
        with pytest.raises(CodecError):
            PIPELINES[PNGQUANT].apply(b"not a png", codecs, Selection(PNGQUANT), "bad.png")


class TestVector:
    def test_structural_cleanup(self):
        out = SvgOptimizer({}).optimize(SAMPLE_SVG, "icon.svg")

        assert "<!--" not in out
        assert "metadata" not in out
        assert "<title>" not in out
        assert "inkscape" not in out
        assert "<g" not in out
        assert 'width="24"' not in out
        assert 'viewBox="0 0 24 24"' in out
        assert 'd="M0 0 L10 10"' in out
        assert len(out) < len(SAMPLE_SVG)

    def test_options_override_defaults(self):
        out = SvgOptimizer({"remove_dimensions": False}).optimize(SAMPLE_SVG)
        assert 'width="24"' in out

    def test_view_box_derived_when_dimensions_removed(self):
        svg = '<svg xmlns="http://www.w3.org/2000/svg" width="10" height="20"><rect width="1" height="1"/></svg>'
        out = SvgOptimizer({}).optimize(svg)
        assert 'viewBox="0 0 10 20"' in out
        assert 'rect width="1" height="1"' in out

    def test_non_svg_root_is_an_error(self):
        with pytest.raises(CodecError):
            SvgOptimizer({}).optimize("<html/>")


class TestRaster:
    def test_png_quantized_to_palette(self, tmp_path):
        data = make_png(tmp_path / "a.png").read_bytes()
        out = PngQuantizer({})(data, "a.png")

        with Image.open(io.BytesIO(out)) as im:
            assert im.format == "PNG"
            assert im.mode == "P"
            assert im.size == (64, 64)

    def test_png_with_alpha(self, tmp_path):
        data = make_png(tmp_path / "a.png", alpha=True).read_bytes()
        out = PngQuantizer({"colors": 16})(data)

        with Image.open(io.BytesIO(out)) as im:
            assert im.format == "PNG"

    def test_webp_encode(self, tmp_path):
        data = make_png(tmp_path / "a.png", alpha=True).read_bytes()
        out = WebpEncoder({"quality": 50})(data, "a.png")

        with Image.open(io.BytesIO(out)) as im:
            assert im.format == "WEBP"
            assert im.size == (64, 64)

    def test_garbage_raises(self):
        with pytest.raises(CodecError) as exc:
            WebpEncoder({})(b"garbage", "x.png")
        assert exc.value.pipeline == "webp"


class TestEntropy:
    def test_round_trip(self):
        data = b"body { color: red; }\n" * 200
        out = BrotliCompressor(11)(data)

        assert len(out) < len(data)
        assert brotli.decompress(out) == data

    def test_deterministic(self):
        data = b"console.log(1);\n" * 300
        c = BrotliCompressor(5)
        assert c(data) == c(data)

    @pytest.mark.parametrize("size, bits", [(0, 10), (1008, 10), (1009, 11), (10**9, 24)])
    def test_window_bits(self, size, bits):
        assert window_bits(size) == bits


class TestMarkup:
    def test_minify(self):
        out = HtmlMinifier({}).minify(SAMPLE_HTML, "index.html")

        assert "<!doctype html>" in out
        assert "remove me" not in out
        assert "text/javascript" not in out
        assert "text/css" not in out
        assert "color:red" in out
        assert "var answer=42" in out
        assert "Hello world" in out
        assert len(out) < len(SAMPLE_HTML)

    def test_option_keeps_comments(self):
        out = HtmlMinifier({"remove_comments": False}).minify(SAMPLE_HTML)
        assert "remove me" in out

    def test_json_script_untouched(self):
        html = '<script type="application/ld+json">{ "a" :  1 }</script>'
        out = HtmlMinifier({}).minify(html)
        assert '{ "a" :  1 }' in out

    def test_redundant_attributes_dropped(self):
        html = '<form method="get"><input type="text" name="q"><script language="javascript" src="a.js"></script></form>'
        out = HtmlMinifier({}).minify(html)
        assert out == "<form><input name=q><script src=a.js></script></form>"

    def test_non_default_attribute_values_kept(self):
        out = HtmlMinifier({}).minify('<form method="post"><input type="email" name="q"></form>')
        assert "method=post" in out
        assert "type=email" in out

    def test_script_charset_dropped_only_without_src(self):
        out = HtmlMinifier({}).minify('<script charset="utf-8">var a = 1;</script>')
        assert "charset" not in out
        out = HtmlMinifier({}).minify('<script charset="utf-8" src="a.js"></script>')
        assert "charset" in out

    def test_redundant_attributes_option_off(self):
        out = HtmlMinifier({"remove_redundant_attributes": False}).minify('<form method="get"></form>')
        assert "method=get" in out

    def test_script_bodies_not_rewritten_as_markup(self):
        html = (
            "<p style='color: red'>x</p>"
            "<script>var a = \"<a style='color: red'>\"; var f = \"<form method='get'>\";</script>"
        )
        out = HtmlMinifier({}).minify(html)
        assert "color:red" in out
        assert "<a style='color: red'>" in out
        assert "<form method='get'>" in out

    def test_inline_style_attribute(self):
        assert minify_css(" color: red ; margin:  0 ", inline=True) == "color:red;margin:0"

    def test_chains_into_brotli_when_still_big(self):
        settings = build_settings(minify_html=True, threshold=10)
        codecs = Codecs(settings)
        out = PIPELINES[MINIFY_HTML].apply(
            SAMPLE_HTML.encode(), codecs, Selection(MINIFY_HTML, brotli_after=True), "index.html"
        )
        assert brotli.decompress(out).decode("utf-8").startswith("<!doctype html>")

    def test_no_brotli_when_minified_below_threshold(self):
        settings = build_settings(minify_html=True, threshold=len(SAMPLE_HTML.encode()))
        codecs = Codecs(settings)
        out = PIPELINES[MINIFY_HTML].apply(
            SAMPLE_HTML.encode(), codecs, Selection(MINIFY_HTML, brotli_after=True), "index.html"
        )
        assert out.decode("utf-8").startswith("<!doctype html>")


class TestCodecs:
    def test_lazy_and_shared(self):
        codecs = Codecs(build_settings())
        assert codecs.created() == frozenset()

        first = codecs.svg
        assert codecs.svg is first
        assert codecs.created() == frozenset({"svg"})

    def test_quality_comes_from_settings(self):
        codecs = Codecs(build_settings(quality=4))
        assert codecs.brotli.quality == 4
