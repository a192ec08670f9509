"""
Parser for debug-formatted values.

Recursive descent over the raw text, with ordered alternatives and commit
points. An alternative either returns a value, raises Backtrack (nothing was
committed, the next alternative is tried) or raises ParseError (an opening
delimiter was consumed, so the input can only be that construct).

parse_value() tries the alternatives in this order, first match wins:

     1. null literal          None
     2. boolean literal       true / false
     3. date/time             2023-06-06 12:30:30.351996
     4. number                -12.5, 1e3
     5. quoted string         "text"
     6. tuple                 ( v, ... )
     7. array                 [ v, ... ]
     8. quoted-key map        { "k": v, ... }
     9. named tuple-variant   Name( v )
    10. named struct          Name { k: v, ... }
    11. named array           Name [ v, ... ]
    12. wildcard              anything up to , } ) or ]

Date/time must come before number since both start with digits. Unnamed
composites come before the named forms, and the named forms before the
wildcard, which would otherwise swallow them whole.
"""

from contextlib import contextmanager
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from dbg_lexer import Scanner, unescape
from dbg_model import FALSE_LITERAL, MASKED_TEXT, NULL_LITERAL, TRUE_LITERAL, Value


DEFAULT_MAX_DEPTH = 128
ERROR_EXCERPT_LENGTH = 40

# trace(alternative_name, start_offset, end_offset)
Trace = Callable[[str, int, int], None]


class Context(Enum):
    """Constructs a ParseError can be attributed to."""
    STRING = "string"
    ARRAY = "array"
    TUPLE = "tuple"
    MAP = "map"
    STRUCT_MAP = "struct map"
    STRUCT = "struct"
    DATETIME = "datetime"
    OPTION = "option"


class Backtrack(Exception):
    """An alternative did not match before reaching its commit point."""
    def __init__(self, offset: int):
        self.offset = offset
        super().__init__(offset)


class ParseError(Exception):
    """Raised when parser encounters invalid syntax."""
    def __init__(self, message: str, source: str, offset: int, contexts=()):
        self.message = message
        self.offset = offset
        self.contexts: Tuple[Context, ...] = tuple(contexts)
        self.line = source.count("\n", 0, offset) + 1
        self.column = offset - (source.rfind("\n", 0, offset) + 1) + 1
        self.remaining = source[offset:offset + ERROR_EXCERPT_LENGTH]
        text = f"Line {self.line}, column {self.column}: {message}"
        if self.context is not None:
            text += f" (in {self.context.value})"
        super().__init__(text)

    @property
    def context(self) -> Optional[Context]:
        """Innermost construct being parsed, None if the failure is unlabelled."""
        return self.contexts[-1] if self.contexts else None


class Parser:
    """Recursive descent parser for debug-formatted values."""

    ALTERNATIVES = (
        ("null", "_parse_null"),
        ("boolean", "_parse_bool"),
        ("datetime", "_parse_datetime"),
        ("number", "_parse_number"),
        ("string", "_parse_string"),
        ("tuple", "_parse_tuple"),
        ("array", "_parse_array"),
        ("map", "_parse_map"),
        ("tuple variant", "_parse_tuple_variant"),
        ("named struct", "_parse_named_struct"),
        ("named array", "_parse_named_array"),
        ("wildcard", "_parse_wildcard"),
    )

    def __init__(self, source: str, max_depth: int = DEFAULT_MAX_DEPTH,
                 trace: Optional[Trace] = None):
        if max_depth < 1:
            raise ValueError(f"max_depth must be at least 1, got {max_depth}")
        self.scanner = Scanner(source)
        self.max_depth = max_depth
        self._trace = trace
        self._depth = 0
        self._contexts: List[Context] = []
        self._alternatives = [(name, getattr(self, attr)) for name, attr in self.ALTERNATIVES]

    def parse_root(self) -> Value:
        """Parse one value, allowing whitespace before and after it.

        Input left over after the value is not an error here; callers look
        at ``scanner.pos`` to decide. Running out of interpreter stack is
        reported as a ParseError, like nesting past ``max_depth``.
        """
        self.scanner.skip_whitespace()
        try:
            value = self.parse_value()
        except Backtrack as exc:
            raise ParseError("no value could be parsed", self.scanner.source, exc.offset) from None
        except RecursionError:
            # max_depth set beyond what the interpreter stack can hold
            raise ParseError("nesting too deep for the interpreter stack",
                             self.scanner.source, self.scanner.pos) from None
        self.scanner.skip_whitespace()
        return value

    def parse_value(self) -> Value:
        """Try each alternative at the current position and return the first match."""
        if self._depth >= self.max_depth:
            raise self._error(f"nesting deeper than {self.max_depth} levels")
        self.scanner.skip_whitespace()
        start = self.scanner.pos
        self._depth += 1
        try:
            for name, alternative in self._alternatives:
                try:
                    value = alternative()
                except Backtrack:
                    self.scanner.pos = start
                    continue
                if self._trace is not None:
                    self._trace(name, start, self.scanner.pos)
                return value
        finally:
            self._depth -= 1
        raise Backtrack(start)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _error(self, message: str) -> ParseError:
        return ParseError(message, self.scanner.source, self.scanner.pos, self._contexts)

    def _found(self) -> str:
        if self.scanner.at_end():
            return "end of input"
        return repr(self.scanner.peek())

    def _backtrack(self) -> Backtrack:
        return Backtrack(self.scanner.pos)

    @contextmanager
    def _context(self, context: Context):
        self._contexts.append(context)
        try:
            yield
        finally:
            self._contexts.pop()

    def _expect_value(self) -> Value:
        """Parse a value that is required at this point."""
        try:
            return self.parse_value()
        except Backtrack:
            raise self._error(f"expected a value, found {self._found()}") from None

    def _expect(self, expected: str) -> None:
        if not self.scanner.match(expected):
            raise self._error(f"expected {expected!r}, found {self._found()}")

    def _match_separator(self) -> bool:
        mark = self.scanner.pos
        self.scanner.skip_whitespace()
        if self.scanner.match(","):
            return True
        self.scanner.pos = mark
        return False

    # =========================================================================
    # Scalars
    # =========================================================================

    def _parse_null(self) -> None:
        if not self.scanner.match_word(NULL_LITERAL):
            raise self._backtrack()
        return None

    def _parse_bool(self) -> bool:
        if self.scanner.match_word(TRUE_LITERAL):
            return True
        if self.scanner.match_word(FALSE_LITERAL):
            return False
        raise self._backtrack()

    def _parse_datetime(self) -> str:
        """Date and time such as ``2023-06-06 12:30:30.351996``, kept as text."""
        with self._context(Context.DATETIME):
            date = self._parse_groups("-")
            if not self.scanner.match(" "):
                raise self._backtrack()
            time = self._parse_groups(":")
            return f"{date} {time}"

    def _parse_groups(self, separator: str) -> str:
        """One or more digit/dot runs joined by ``separator``."""
        group = self.scanner.scan_numeric_run()
        if group is None:
            raise self._backtrack()
        groups = [group]
        while True:
            mark = self.scanner.pos
            if not self.scanner.match(separator):
                break
            group = self.scanner.scan_numeric_run()
            if group is None:
                self.scanner.pos = mark
                break
            groups.append(group)
        return separator.join(groups)

    def _parse_number(self) -> float:
        text = self.scanner.scan_number()
        if text is None:
            raise self._backtrack()
        # Digits running into '*' belong to a masked token like 424242******
        if self.scanner.peek() == "*":
            raise self._backtrack()
        return float(text)

    def _parse_string(self) -> str:
        with self._context(Context.STRING):
            if not self.scanner.match('"'):
                raise self._backtrack()
            raw, saw_escape = self.scanner.scan_string_body()
            if not self.scanner.match('"'):
                if self.scanner.at_end():
                    raise self._error("unterminated string")
                raise self._error(f"invalid escape {self.scanner.remaining(2)!r}")
            return unescape(raw) if saw_escape else raw

    # =========================================================================
    # Sequences
    # =========================================================================

    def _parse_tuple(self) -> List[Value]:
        with self._context(Context.TUPLE):
            if not self.scanner.match("("):
                raise self._backtrack()
            return self._parse_sequence(")")

    def _parse_array(self) -> List[Value]:
        with self._context(Context.ARRAY):
            if not self.scanner.match("["):
                raise self._backtrack()
            return self._parse_sequence("]")

    def _parse_sequence(self, close: str) -> List[Value]:
        """Comma-separated values up to ``close``; the opener is already consumed."""
        items: List[Value] = []
        required = False
        while True:
            if required:
                items.append(self._expect_value())
            else:
                try:
                    items.append(self.parse_value())
                except Backtrack:
                    break
            if not self._match_separator():
                break
            required = True
        self.scanner.skip_whitespace()
        self._expect(close)
        return items

    # =========================================================================
    # Maps
    # =========================================================================

    def _parse_map(self) -> Dict[str, Value]:
        """``{ "key": value, ... }`` with quoted keys."""
        with self._context(Context.MAP):
            if not self.scanner.match("{"):
                raise self._backtrack()
            return self._parse_entries(self._parse_string)

    def _parse_struct_map(self) -> Dict[str, Value]:
        """``{ key: value, ... }`` with bare or quoted keys."""
        with self._context(Context.STRUCT_MAP):
            self.scanner.skip_whitespace()
            if not self.scanner.match("{"):
                raise self._backtrack()
            return self._parse_entries(self._parse_bare_key)

    def _parse_bare_key(self) -> str:
        key = self.scanner.scan_identifier()
        if key is not None:
            return key
        return self._parse_string()

    def _parse_entries(self, parse_key: Callable[[], str]) -> Dict[str, Value]:
        entries: Dict[str, Value] = {}
        required = False
        while True:
            self.scanner.skip_whitespace()
            try:
                key = parse_key()
            except Backtrack:
                if required:
                    raise self._error(f"expected a key, found {self._found()}") from None
                break
            self.scanner.skip_whitespace()
            self._expect(":")
            # Duplicate keys: the last one wins
            entries[key] = self._expect_value()
            if not self._match_separator():
                break
            required = True
        self.scanner.skip_whitespace()
        self._expect("}")
        return entries

    # =========================================================================
    # Named forms
    # =========================================================================

    def _parse_tuple_variant(self) -> Value:
        """``Name(value)``: the name is dropped and the wrapped value returned."""
        with self._context(Context.OPTION):
            if self.scanner.scan_identifier() is None or not self.scanner.match("("):
                raise self._backtrack()
            value = self._expect_value()
            self._expect(")")
            return value

    def _parse_named_struct(self) -> Dict[str, Value]:
        with self._context(Context.STRUCT):
            if self.scanner.scan_identifier() is None:
                raise self._backtrack()
            return self._parse_struct_map()

    def _parse_named_array(self) -> List[Value]:
        with self._context(Context.STRUCT):
            if self.scanner.scan_identifier() is None:
                raise self._backtrack()
            self.scanner.skip_whitespace()
            return self._parse_array()

    def _parse_wildcard(self) -> str:
        """Last resort: masked placeholders and bare tokens such as unit variants."""
        if self.scanner.scan_masked() is not None:
            return MASKED_TEXT
        token = self.scanner.scan_wildcard()
        if token is None:
            raise self._backtrack()
        return token


def parse_root(source: str, max_depth: int = DEFAULT_MAX_DEPTH,
               trace: Optional[Trace] = None) -> Tuple[Value, str]:
    """Parse the value at the start of ``source``.

    Returns the value and whatever input was left after it.
    """
    parser = Parser(source, max_depth=max_depth, trace=trace)
    value = parser.parse_root()
    return value, parser.scanner.remaining()


def parse(source: str, allow_trailing: bool = False, max_depth: int = DEFAULT_MAX_DEPTH,
          trace: Optional[Trace] = None) -> Value:
    """Convenience function to parse a whole debug-formatted string."""
    parser = Parser(source, max_depth=max_depth, trace=trace)
    value = parser.parse_root()
    if not allow_trailing and not parser.scanner.at_end():
        raise ParseError("unexpected trailing input", source, parser.scanner.pos)
    return value
