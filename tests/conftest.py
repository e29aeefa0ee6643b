from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image

from bao.results import AssetPath


SAMPLE_SVG = """<?xml version="1.0" encoding="UTF-8"?>
<!-- Generator: some editor -->
<svg xmlns="http://www.w3.org/2000/svg"
     xmlns:inkscape="http://www.inkscape.org/namespaces/inkscape"
     width="24" height="24" viewBox="0 0 24 24" inkscape:version="1.0">
  <metadata>generated</metadata>
  <title>icon</title>
  <g></g>
  <path d="M0 0   L10    10" fill="#000"/>
</svg>
"""


def make_png(path: Path, size: tuple[int, int] = (64, 64), alpha: bool = False) -> Path:
    """Gradient PNG: enough colors for quantization to matter."""
    mode = "RGBA" if alpha else "RGB"
    im = Image.new(mode, size)
    w, h = size
    for x in range(w):
        for y in range(h):
            px = (x * 4 % 256, y * 4 % 256, (x + y) * 2 % 256)
            im.putpixel((x, y), px + (200,) if alpha else px)
    path.parent.mkdir(parents=True, exist_ok=True)
    im.save(path, format="PNG")
    return path


def write(path: Path, data: bytes | str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(data, str):
        data = data.encode("utf-8")
    path.write_bytes(data)
    return path


def text_of_size(size: int) -> bytes:
    line = b"console.log('hello world');\n"
    return (line * (size // len(line) + 1))[:size]


@pytest.fixture
def out_root(tmp_path: Path) -> Path:
    root = tmp_path / "dist"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def asset(out_root: Path):
    def _asset(relative: str) -> AssetPath:
        return AssetPath.under(out_root, relative)
    return _asset
