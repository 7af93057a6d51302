#!/usr/bin/env python3
"""Compile an editor song JSON into Sequencer Kit assembly source."""

from __future__ import annotations

import argparse
import hashlib
import logging
from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from slocum.assembler import DEFAULT_TEMPLATE, assemblify
from slocum.song import load_song
from slocum.tia import load_tuning_tables


def _sha1(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


def _first_mismatch(built: str, expected: str) -> tuple[int, str, str] | None:
    built_lines = built.splitlines()
    expected_lines = expected.splitlines()
    for idx, (left, right) in enumerate(zip(built_lines, expected_lines)):
        if left != right:
            return (idx + 1, left, right)
    if len(built_lines) != len(expected_lines):
        limit = min(len(built_lines), len(expected_lines))
        left = built_lines[limit] if limit < len(built_lines) else "EOF"
        right = expected_lines[limit] if limit < len(expected_lines) else "EOF"
        return (limit + 1, left, right)
    return None


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Build a Sequencer Kit .asm file from a song JSON",
    )
    parser.add_argument(
        "song",
        type=Path,
        help="Path to song JSON",
    )
    parser.add_argument(
        "--tables",
        type=Path,
        required=True,
        help="Path to tuning/percussion lookup table JSON",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output .asm path",
    )
    parser.add_argument(
        "--template",
        default=DEFAULT_TEMPLATE,
        help=f"Template name (default: {DEFAULT_TEMPLATE})",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate and compile without writing output",
    )
    parser.add_argument(
        "--expect",
        type=Path,
        default=None,
        help="Expected .asm file path for text-match verification",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log compile details",
    )
    return parser


def main() -> int:
    parser = _build_arg_parser()
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    if not args.dry_run and args.output is None:
        parser.error("output path required: pass --output or --dry-run")

    song = load_song(args.song)
    encoder = load_tuning_tables(args.tables)
    asm = assemblify(song, encoder, template=args.template)
    asm_bytes = asm.encode("utf-8")

    match_ok = True
    expect_path = args.expect.expanduser().resolve() if args.expect is not None else None
    if expect_path is not None:
        expected = expect_path.read_text(encoding="utf-8")
        mismatch = _first_mismatch(asm, expected)
        if mismatch is None:
            print(f"expect match: yes  sha1={_sha1(asm_bytes)} file={expect_path}")
        else:
            match_ok = False
            line_no, built_line, expected_line = mismatch
            print("expect match: no")
            print(f"  built:    size={len(asm_bytes)} sha1={_sha1(asm_bytes)}")
            print(f"  expected: file={expect_path}")
            print(f"  first diff @ line {line_no}:")
            print(f"    built:    {built_line!r}")
            print(f"    expected: {expected_line!r}")

    if args.dry_run:
        print(
            f"dry-run OK: patterns={song.pattern_count} "
            f"size={len(asm_bytes)}B template={args.template}"
        )
        return 0 if match_ok else 2

    out_path = args.output.expanduser().resolve()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(asm, encoding="utf-8")

    print(f"Wrote {len(asm_bytes)} bytes -> {out_path}")
    print(f"  patterns={song.pattern_count} tuning={song.meta.tuning}")
    if song.hats.enabled:
        print(f"  hi-hat from measure {song.hats.start}")

    return 0 if match_ok else 2


if __name__ == "__main__":
    raise SystemExit(main())
