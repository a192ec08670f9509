"""
Value model for parsed debug-formatted text.

A parsed tree is made of plain Python values so it can be handed straight to
``json.dumps`` or ``yaml.safe_dump``:

    None, bool, float, str, list, dict (str keys)

Type and variant names from the input are never part of the tree.
"""

from typing import Any, Dict, List, Union


# =============================================================================
# Value type
# =============================================================================

Value = Union[None, bool, float, str, List['Value'], Dict[str, 'Value']]


# =============================================================================
# Literal spellings
# =============================================================================

NULL_LITERAL = "None"
TRUE_LITERAL = "true"
FALSE_LITERAL = "false"

# Every redacted field collapses to this text, whatever the placeholder said.
MASKED_TEXT = "*** masked ***"
MASK_MARKER = "***"


# =============================================================================
# Helpers
# =============================================================================

def value_kind(value: Any) -> str:
    """Name the variant of a parsed value.

    Returns one of "null", "boolean", "number", "text", "list", "map".
    Raises TypeError for anything the parser cannot produce.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "text"
    if isinstance(value, list):
        return "list"
    if isinstance(value, dict):
        return "map"
    raise TypeError(f"not a parsed value: {type(value).__name__}")
