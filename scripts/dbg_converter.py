"""
Conversion of debug-formatted text to JSON or YAML.

Provides:
- load(): parse text into a value tree, enforcing the trailing-input policy
- dumps(): serialise a value tree as JSON or YAML
- convert(): text in, serialised text out
- convert_file(): same, reading the text from a file
"""

import json
import logging
from pathlib import Path
from typing import Optional

import yaml

from dbg_model import Value
from dbg_parser import DEFAULT_MAX_DEPTH, Trace, parse


logger = logging.getLogger(__name__)

FORMATS = ("json", "yaml")


class ConversionError(Exception):
    """Raised when a parsed tree cannot be written in the requested format."""


# =============================================================================
# Parsing
# =============================================================================

def load(source: str, allow_trailing: bool = False, max_depth: int = DEFAULT_MAX_DEPTH,
         trace: Optional[Trace] = None) -> Value:
    """
    Parse debug-formatted text into a value tree.

    Args:
        source: Text produced by a debug formatter
        allow_trailing: Accept input left over after the first value
        max_depth: Maximum nesting depth before parsing fails
        trace: Optional callback, see dbg_parser.Trace

    Returns:
        The parsed value (None, bool, float, str, list or dict)

    Raises:
        ParseError: The text is not a debug-formatted value
    """
    value = parse(source, allow_trailing=allow_trailing, max_depth=max_depth, trace=trace)
    logger.debug("parsed %d characters", len(source))
    return value


# =============================================================================
# Serialisation
# =============================================================================

def dumps(value: Value, fmt: str = "json", indent: Optional[int] = None) -> str:
    """
    Serialise a value tree.

    JSON has no spelling for infinite numbers, so a tree holding one (from
    input such as ``1e999``) raises ConversionError instead of being
    written with a substitute.
    """
    if fmt == "json":
        try:
            return json.dumps(value, indent=indent, ensure_ascii=False, allow_nan=False)
        except ValueError as exc:
            raise ConversionError(f"cannot write JSON: {exc}") from exc
    if fmt == "yaml":
        try:
            return yaml.safe_dump(value, indent=indent, sort_keys=False,
                                  allow_unicode=True, default_flow_style=False)
        except yaml.YAMLError as exc:
            raise ConversionError(f"cannot write YAML: {exc}") from exc
    raise ConversionError(f"unknown format {fmt!r} (expected one of {', '.join(FORMATS)})")


def convert(source: str, fmt: str = "json", indent: Optional[int] = None, **options) -> str:
    """Parse debug-formatted text and serialise the result.

    Keyword options are passed on to load().
    """
    return dumps(load(source, **options), fmt=fmt, indent=indent)


def convert_file(path, fmt: str = "json", indent: Optional[int] = None, **options) -> str:
    """Like convert(), reading the text from ``path``."""
    source = Path(path).read_text(encoding="utf-8")
    logger.debug("read %s", path)
    return convert(source, fmt=fmt, indent=indent, **options)
