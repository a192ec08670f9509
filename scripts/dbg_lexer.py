"""
Scanner for debug-formatted text.

There is no token stream: the parser backtracks, so it drives a Scanner
directly and saves/restores ``pos`` around each alternative. Every scan_*
method either consumes input and returns what it matched, or returns None
and leaves ``pos`` where it was.
"""

import re
import string
from typing import Optional, Tuple

from dbg_model import MASK_MARKER


WHITESPACE = " \t\r\n"
IDENTIFIER_CHARS = frozenset(string.ascii_letters + string.digits + "_")
NUMERIC_RUN_CHARS = frozenset(string.digits + ".")
WILDCARD_STOP = frozenset(",})]")

ESCAPE_CHAR = "\\"
ESCAPE_MAP = {'"': '"', 'n': '\n', '\\': '\\'}

_NUMBER_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_MASKED_RE = re.compile(re.escape(MASK_MARKER + " ") + r"[^ ]+" + re.escape(" " + MASK_MARKER))
_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)


def unescape(raw: str) -> str:
    """Resolve \\", \\n and \\\\ escapes in a scanned string body."""
    if ESCAPE_CHAR not in raw:
        return raw
    return _ESCAPE_RE.sub(lambda m: ESCAPE_MAP[m.group(1)], raw)


class Scanner:
    """Cursor over the input text with the lexical primitives of the grammar."""

    def __init__(self, source: str):
        self.source = source
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.source)

    def peek(self, offset: int = 0) -> str:
        pos = self.pos + offset
        if pos >= len(self.source):
            return '\0'
        return self.source[pos]

    def remaining(self, limit: Optional[int] = None) -> str:
        if limit is None:
            return self.source[self.pos:]
        return self.source[self.pos:self.pos + limit]

    def match(self, expected: str) -> bool:
        """Consume ``expected`` if the input continues with it."""
        if self.source.startswith(expected, self.pos):
            self.pos += len(expected)
            return True
        return False

    def match_word(self, word: str) -> bool:
        """Like match(), but ``word`` must not run on into an identifier."""
        end = self.pos + len(word)
        if not self.source.startswith(word, self.pos):
            return False
        if end < len(self.source) and self.source[end] in IDENTIFIER_CHARS:
            return False
        self.pos = end
        return True

    def skip_whitespace(self) -> None:
        while not self.at_end() and self.source[self.pos] in WHITESPACE:
            self.pos += 1

    # =========================================================================
    # Character classes
    # =========================================================================

    def scan_identifier(self) -> Optional[str]:
        """Scan a bare key or type name.

        One or more of [A-Za-z0-9_]. A backslash followed by ", n or \\ is
        accepted as part of the name; any other backslash rejects the whole
        name. The raw text is returned, escapes untouched.
        """
        start = self.pos
        pos = start
        source = self.source
        while pos < len(source):
            char = source[pos]
            if char in IDENTIFIER_CHARS:
                pos += 1
            elif char == ESCAPE_CHAR:
                if pos + 1 >= len(source) or source[pos + 1] not in ESCAPE_MAP:
                    return None
                pos += 2
            else:
                break
        if pos == start:
            return None
        self.pos = pos
        return source[start:pos]

    def scan_numeric_run(self) -> Optional[str]:
        """Scan one or more digits and dots (date and time groups)."""
        start = self.pos
        while not self.at_end() and self.source[self.pos] in NUMERIC_RUN_CHARS:
            self.pos += 1
        if self.pos == start:
            return None
        return self.source[start:self.pos]

    def scan_number(self) -> Optional[str]:
        """Scan a decimal or exponential number literal."""
        m = _NUMBER_RE.match(self.source, self.pos)
        if not m:
            return None
        self.pos = m.end()
        return m.group()

    # =========================================================================
    # String bodies
    # =========================================================================

    def scan_string_body(self) -> Tuple[str, bool]:
        """Scan the inside of a quoted string.

        Stops at the closing quote, at end of input, or at a backslash that
        does not start a valid escape. Returns (raw_text, saw_escape); the
        caller decides whether the stop position is acceptable.
        """
        start = self.pos
        saw_escape = False
        source = self.source
        while self.pos < len(source):
            char = source[self.pos]
            if char == '"':
                break
            if char == ESCAPE_CHAR:
                if self.pos + 1 >= len(source) or source[self.pos + 1] not in ESCAPE_MAP:
                    break
                saw_escape = True
                self.pos += 2
                continue
            self.pos += 1
        return source[start:self.pos], saw_escape

    # =========================================================================
    # Masked values and bare tokens
    # =========================================================================

    def scan_masked(self) -> Optional[str]:
        """Scan a placeholder of the form ``*** <no spaces> ***``."""
        m = _MASKED_RE.match(self.source, self.pos)
        if not m:
            return None
        self.pos = m.end()
        return m.group()

    def scan_wildcard(self) -> Optional[str]:
        """Scan everything up to the next , } ) or ].

        Backslash escapes need no special casing here: none of the escapable
        characters is a stop character.
        """
        start = self.pos
        while not self.at_end() and self.source[self.pos] not in WILDCARD_STOP:
            self.pos += 1
        if self.pos == start:
            return None
        return self.source[start:self.pos]
