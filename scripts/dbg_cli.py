#!/usr/bin/env python3
"""
Convert debug-formatted values to JSON or YAML.

Usage:
    python dbg_cli.py dump.txt [dump2.txt ...]
    some_command | python dbg_cli.py           # read stdin
    python dbg_cli.py --format yaml dump.txt
    python dbg_cli.py --trace dump.txt         # log every matched alternative
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

# Add scripts directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from dbg_converter import FORMATS, ConversionError, convert
from dbg_parser import DEFAULT_MAX_DEPTH, ParseError


logger = logging.getLogger("dbg_cli")

STDIN_NAME = "-"


def trace_to_log(name: str, start: int, end: int):
    logger.debug("%s matched [%d:%d]", name, start, end)


def read_source(name: str) -> str:
    if name == STDIN_NAME:
        return sys.stdin.read()
    return Path(name).read_text(encoding="utf-8")


def convert_one(name: str, args) -> Optional[str]:
    """Convert a single input. Returns the output text, or None after reporting an error."""
    try:
        source = read_source(name)
    except FileNotFoundError:
        print(f"{name}: file not found", file=sys.stderr)
        return None
    except (OSError, UnicodeDecodeError) as e:
        print(f"{name}: cannot read: {e}", file=sys.stderr)
        return None

    try:
        return convert(
            source,
            fmt=args.format,
            indent=args.indent,
            allow_trailing=args.allow_trailing,
            max_depth=args.max_depth,
            trace=trace_to_log if args.trace else None,
        )
    except ParseError as e:
        print(f"{name}: parse error: {e}", file=sys.stderr)
        if e.remaining:
            print(f"  near: {e.remaining!r}", file=sys.stderr)
    except ConversionError as e:
        print(f"{name}: conversion error: {e}", file=sys.stderr)
    return None


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Convert debug-formatted values to JSON or YAML."
    )
    parser.add_argument(
        "files",
        nargs="*",
        help="Files to convert (default: read stdin; '-' also means stdin)"
    )
    parser.add_argument(
        "--format",
        choices=FORMATS,
        default="json",
        help="Output format (default: json)"
    )
    parser.add_argument(
        "--indent",
        type=int,
        default=None,
        help="Indent output by N spaces"
    )
    parser.add_argument(
        "--allow-trailing",
        action="store_true",
        help="Ignore input left over after the first value"
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=DEFAULT_MAX_DEPTH,
        help=f"Maximum nesting depth (default: {DEFAULT_MAX_DEPTH})"
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Log each matched grammar alternative to stderr"
    )
    parser.add_argument(
        "-o", "--output",
        help="Write output to FILE instead of stdout (single input only)"
    )

    args = parser.parse_args(argv)

    if args.max_depth < 1:
        parser.error("--max-depth must be at least 1")

    files = args.files or [STDIN_NAME]
    if args.output and len(files) > 1:
        parser.error("--output takes a single input")

    logging.basicConfig(
        level=logging.DEBUG if args.trace else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    total_errors = 0
    outputs = []
    for name in files:
        result = convert_one(name, args)
        if result is None:
            total_errors += 1
            continue
        outputs.append(result.rstrip("\n"))

    if outputs:
        text = "\n".join(outputs) + "\n"
        if args.output:
            Path(args.output).write_text(text, encoding="utf-8")
        else:
            sys.stdout.write(text)

    if total_errors and len(files) > 1:
        print(f"\n{total_errors} of {len(files)} input(s) failed", file=sys.stderr)

    return 1 if total_errors else 0


if __name__ == "__main__":
    sys.exit(main())
