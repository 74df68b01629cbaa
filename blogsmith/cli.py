from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from .config import MODES, load_site_config
from .errors import SiteError
from .site import BuildResult, build_site


def print_summary(result: BuildResult, output: str, elapsed: float) -> None:
    print(f"Wrote {len(result.pages)} pages and {result.assets} assets to {output} in {elapsed:.2f}s.")
    if result.skipped:
        print(f"Skipped {len(result.skipped)} document(s):")
        for error in result.skipped:
            print(f"  {error}")
    if result.warnings:
        print(f"{len(result.warnings)} warning(s):")
        for warning in result.warnings:
            print(f"  {warning}")


def build_command(args: argparse.Namespace) -> int:
    source = Path(args.source)
    output = Path(args.dest)
    config_path = Path(args.config) if args.config else None
    start = time.perf_counter()
    try:
        config = load_site_config(source, output, config_path)
        config = config.with_overrides(
            mode=args.mode,
            workers=args.workers,
            drafts=args.drafts,
            site_url=args.site_url,
            clean=args.clean,
        )
        result = build_site(config)
    except SiteError as exc:
        print(f"Build failed: {exc}", file=sys.stderr)
        return 1
    print_summary(result, args.dest, time.perf_counter() - start)
    return 0


def make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="blogsmith", description="Static Markdown blog generator.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", help="Build the site from a source directory.")
    build.add_argument("source", help="Directory containing documents, layouts and assets.")
    build.add_argument("dest", help="Output directory for the generated site.")
    build.add_argument(
        "--config",
        default=None,
        help="Path to site config file (TOML/YAML/JSON). Defaults to site.* in the source directory.",
    )
    mode = build.add_mutually_exclusive_group()
    mode.add_argument(
        "--strict",
        dest="mode",
        action="store_const",
        const=MODES[0],
        help="Abort the build on the first broken document.",
    )
    mode.add_argument(
        "--lenient",
        dest="mode",
        action="store_const",
        const=MODES[1],
        help="Skip broken documents and list them in the summary.",
    )
    build.add_argument(
        "--workers",
        default=None,
        type=int,
        help="Number of worker threads for loading/rendering (0 = auto).",
    )
    build.add_argument(
        "--drafts",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Include documents marked as drafts.",
    )
    build.add_argument(
        "--site-url",
        default=None,
        help="Public site URL used for the Atom feed and sitemap.",
    )
    build.add_argument(
        "--clean",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Remove the output directory before writing.",
    )
    build.set_defaults(func=build_command, mode=None)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = make_parser()
    args = parser.parse_args(argv)
    return args.func(args)
