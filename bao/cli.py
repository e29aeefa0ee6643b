from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .batch import Recompressor
from .errors import ConfigError
from .presets import PRESETS, apply_preset
from .report import build_report, save_report
from .settings import build_settings


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="bao",
        description="Build Asset Optimizer: recompress a build output directory in place",
    )
    sub = p.add_subparsers(dest="command", required=True)

    opt = sub.add_parser("optimize", help="Optimize the files under a build output directory")
    opt.add_argument("out_root", help="Build output directory (processed in place)")

    # Reporting
    opt.add_argument("-v", "--verbose", action="store_true", help="Log every compressed file and its ratio")
    opt.add_argument("--debug", action="store_true", help="Log per-file failures and fallbacks")
    opt.add_argument("--report", default=None, help="Write a JSON (or .csv) report to this path")

    opt.add_argument("--preset", choices=PRESETS, default=None, help="Apply a named preset over the flags")

    # Brotli
    opt.add_argument("--no-brotli", action="store_true", help="Disable Brotli compression")
    opt.add_argument(
        "--brotli-exclude",
        action="append",
        default=[],
        metavar="GLOB",
        help="Never Brotli-compress files matching GLOB (repeatable)",
    )
    opt.add_argument("--quality", type=int, default=11, help="Brotli quality (0-11), default 11")
    opt.add_argument("--threshold", type=int, default=1501, help="Minimum size in bytes for Brotli, default 1501")

    # Selection
    opt.add_argument("--exclude", action="append", default=[], metavar="GLOB", help="Skip files matching GLOB (repeatable)")
    opt.add_argument("--ext", action="append", default=[], metavar="EXT", help="Extra extension for Brotli (repeatable)")

    # Codecs
    opt.add_argument("--no-svgo", action="store_true", help="Disable the SVG optimizer")
    opt.add_argument("--no-pngquant", action="store_true", help="Disable the lossy PNG recode")
    opt.add_argument("--webp", action="store_true", help="Convert PNG images to WebP")
    opt.add_argument("--webp-quality", type=int, default=None, help="WebP quality (1-100), default 75")
    opt.add_argument("--minify-html", action="store_true", help="Minify HTML files")

    # Execution
    opt.add_argument("--workers", type=int, default=None, help="Worker threads (default: cpu count + 4, max 32)")
    opt.add_argument("--dry-run", action="store_true", help="Estimate savings without writing files")
    opt.add_argument(
        "--build-failed",
        action="store_true",
        help="The triggering build failed: do nothing (for build hooks)",
    )

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(message)s",
    )

    if args.command == "optimize":
        out_root = Path(args.out_root)

        webp: object = None
        if args.webp:
            webp = {"quality": args.webp_quality} if args.webp_quality is not None else True

        brotli: object = None
        if args.no_brotli:
            brotli = False
        elif args.brotli_exclude:
            brotli = {"exclude": list(args.brotli_exclude)}

        try:
            settings = build_settings(
                verbose=bool(args.verbose),
                brotli=brotli,
                quality=args.quality,
                threshold=args.threshold,
                exclude=args.exclude,
                extensions=args.ext,
                svgo=False if args.no_svgo else None,
                pngquant=False if args.no_pngquant else None,
                webp=webp,
                minify_html=True if args.minify_html else None,
                max_workers=args.workers,
                dry_run=bool(args.dry_run),
            )
        except ConfigError as e:
            parser.error(str(e))

        if args.preset:
            settings = apply_preset(args.preset, settings)

        if not out_root.is_dir():
            parser.error(f"output directory not found: {out_root}")

        outcome = Recompressor(settings).run(out_root, build_failed=bool(args.build_failed))
        if outcome is None:
            print("Build failed; nothing to do.")
            return 0
        results, summary = outcome

        # Print summary
        print("\n=== Batch Summary ===")
        print("Total found:", summary.total_files)
        print("Processed  :", summary.processed)
        print("Skipped    :", summary.skipped)
        print("Failed     :", summary.failed)
        print(f"Saved      : {summary.saved_bytes} bytes ({summary.saved_percent:.1f}%)")

        # Skip reasons breakdown
        reasons: dict[str, int] = {}
        for r in results:
            if r.out_path is None and r.skipped_reason:
                reasons[r.skipped_reason] = reasons.get(r.skipped_reason, 0) + 1

        if reasons:
            print("\nSkip reasons:")
            for k, v in sorted(reasons.items(), key=lambda x: (-x[1], x[0])):
                print(f"  {k}: {v}")

        if args.report:
            report_path = Path(args.report)
            save_report(build_report(results, summary), report_path)
            print("\nReport written:", report_path)
        return 0

    parser.print_help()
    return 2
