"""Unit tests for report formatting and export."""

import csv
import json

import pytest

from bao.report import (
    build_report,
    compressed,
    format_percent,
    format_report,
    save_report,
)
from bao.results import AssetPath, BatchSummary, ProcessResult


def _result(root, name, before, after, out_name=None, error=None):
    src = AssetPath.under(root, name)
    out = None if error else AssetPath.under(root, out_name or name)
    return ProcessResult(
        src_path=src,
        out_path=out,
        src_bytes=before,
        out_bytes=after,
        changed=out is not None,
        error=error,
    )


def _summary():
    return BatchSummary(
        total_files=3, processed=2, skipped=0, failed=1, total_src_bytes=1100, total_out_bytes=450
    )


class TestFormatting:
    def test_sixty_percent(self):
        assert format_percent(1 - 400 / 1000) == "60% smaller"

    def test_floor(self):
        assert format_percent(0.299) == "29% smaller"
        assert format_percent(1 - 71 / 100) == "29% smaller"

    def test_growth_is_negative(self):
        assert format_percent(1 - 103 / 100) == "-3% smaller"

    def test_lines_aligned(self, tmp_path):
        results = [
            _result(tmp_path, "a.js", 1000, 400),
            _result(tmp_path, "assets/long-name.css", 100, 50),
        ]
        lines = format_report(results, "dist")

        assert lines == [
            "  dist/a.js                  60% smaller",
            "  dist/assets/long-name.css  50% smaller",
        ]

    def test_renamed_file_reported_under_new_name(self, tmp_path):
        results = [_result(tmp_path, "img/a.png", 1000, 300, out_name="img/a.webp")]
        assert compressed(results) == {"img/a.webp": pytest.approx(0.7)}

    def test_failed_and_skipped_are_absent(self, tmp_path):
        skipped = ProcessResult(
            src_path=AssetPath.under(tmp_path, "b.js"),
            out_path=None,
            src_bytes=10,
            out_bytes=10,
            changed=False,
            skipped_reason="below_threshold",
        )
        results = [
            _result(tmp_path, "a.js", 1000, 400),
            _result(tmp_path, "c.js", 1000, 0, error="CodecError: boom"),
            skipped,
        ]
        assert list(compressed(results)) == ["a.js"]

    def test_empty_source_ratio(self, tmp_path):
        assert _result(tmp_path, "empty.js", 0, 0).ratio == 0.0

    def test_nothing_compressed(self):
        assert format_report([], "dist") == []


class TestExport:
    def test_json(self, tmp_path):
        results = [
            _result(tmp_path, "a.js", 1000, 400),
            _result(tmp_path, "c.js", 100, 50),
            _result(tmp_path, "b.js", 1000, 0, error="CodecError: boom"),
        ]
        path = tmp_path / "out" / "report.json"
        save_report(build_report(results, _summary()), path)

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["summary"]["failed"] == 1
        assert data["summary"]["saved_bytes"] == 650
        assert [f["src_path"] for f in data["files"]] == ["a.js", "b.js", "c.js"]
        assert data["files"][0]["ratio"] == 0.6
        assert data["files"][1]["error"] == "CodecError: boom"

    def test_csv(self, tmp_path):
        results = [_result(tmp_path, "a.js", 1000, 400)]
        path = tmp_path / "report.csv"
        save_report(build_report(results, _summary()), path)

        with path.open(encoding="utf-8", newline="") as f:
            rows = list(csv.DictReader(f))
        assert rows[0]["src_path"] == "a.js"
        assert rows[0]["out_bytes"] == "400"
