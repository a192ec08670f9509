"""Tests for the debug-format scanner."""

import pytest
import sys
from pathlib import Path

# Add scripts directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dbg_lexer import Scanner, unescape


class TestCursor:
    """Test position handling and literal matching."""

    def test_peek_past_end(self):
        scanner = Scanner("a")
        assert scanner.peek() == "a"
        assert scanner.peek(1) == "\0"

    def test_match_consumes(self):
        scanner = Scanner("{ x")
        assert scanner.match("{")
        assert scanner.pos == 1
        assert not scanner.match("x")
        assert scanner.pos == 1

    def test_match_word_requires_boundary(self):
        scanner = Scanner("Nonexistent")
        assert not scanner.match_word("None")
        assert scanner.pos == 0

    def test_match_word_before_separator(self):
        scanner = Scanner("None, 1")
        assert scanner.match_word("None")
        assert scanner.remaining() == ", 1"

    def test_match_word_at_end(self):
        scanner = Scanner("true")
        assert scanner.match_word("true")
        assert scanner.at_end()

    def test_skip_whitespace(self):
        scanner = Scanner(" \t\r\n x")
        scanner.skip_whitespace()
        assert scanner.peek() == "x"

    def test_remaining_limit(self):
        scanner = Scanner("abcdef")
        scanner.pos = 2
        assert scanner.remaining(2) == "cd"
        assert scanner.remaining() == "cdef"


class TestIdentifiers:
    """Test bare key and type name scanning."""

    def test_simple(self):
        scanner = Scanner("user_id: 1")
        assert scanner.scan_identifier() == "user_id"
        assert scanner.pos == 7

    def test_leading_digit_and_underscore(self):
        assert Scanner("_3ds").scan_identifier() == "_3ds"
        assert Scanner("3ds").scan_identifier() == "3ds"

    def test_escape_kept_raw(self):
        scanner = Scanner('a\\nb: 1')
        assert scanner.scan_identifier() == 'a\\nb'

    def test_bad_escape_rejects_name(self):
        scanner = Scanner("ab\\x")
        assert scanner.scan_identifier() is None
        assert scanner.pos == 0

    def test_no_identifier(self):
        scanner = Scanner(" x")
        assert scanner.scan_identifier() is None
        assert scanner.pos == 0


class TestNumbers:
    """Test number and date group scanning."""

    @pytest.mark.parametrize("text,expected", [
        ("42", "42"),
        ("-12.5e3,", "-12.5e3"),
        ("+7 ", "+7"),
        ("1.", "1."),
        (".5]", ".5"),
        ("2.5E-3", "2.5E-3"),
        ("1e", "1"),
    ])
    def test_scan_number(self, text, expected):
        assert Scanner(text).scan_number() == expected

    @pytest.mark.parametrize("text", ["abc", "-", ".", "inf", "NaN"])
    def test_not_a_number(self, text):
        scanner = Scanner(text)
        assert scanner.scan_number() is None
        assert scanner.pos == 0

    def test_numeric_run(self):
        scanner = Scanner("30.351996:")
        assert scanner.scan_numeric_run() == "30.351996"
        assert scanner.peek() == ":"

    def test_numeric_run_empty(self):
        assert Scanner("-1").scan_numeric_run() is None


class TestStrings:
    """Test quoted string bodies and escapes."""

    def test_plain_body(self):
        scanner = Scanner('hello" rest')
        assert scanner.scan_string_body() == ("hello", False)
        assert scanner.peek() == '"'

    def test_escaped_quote_does_not_close(self):
        scanner = Scanner('ab\\"c" rest')
        assert scanner.scan_string_body() == ('ab\\"c', True)
        assert scanner.remaining() == '" rest'

    def test_stops_at_bad_escape(self):
        scanner = Scanner('a\\qb"')
        assert scanner.scan_string_body() == ("a", False)
        assert scanner.pos == 1

    def test_stops_at_end(self):
        scanner = Scanner("open")
        assert scanner.scan_string_body() == ("open", False)
        assert scanner.at_end()

    def test_empty_body(self):
        assert Scanner('"').scan_string_body() == ("", False)

    def test_unescape(self):
        assert unescape('say \\"hi\\"\\n\\\\') == 'say "hi"\n\\'

    def test_unescape_without_backslash(self):
        text = "plain"
        assert unescape(text) is text


class TestMaskedAndWildcard:
    """Test masked placeholders and bare tokens."""

    def test_masked(self):
        scanner = Scanner("*** alloc::string::String ***, next")
        assert scanner.scan_masked() == "*** alloc::string::String ***"
        assert scanner.remaining() == ", next"

    def test_masked_needs_single_word(self):
        scanner = Scanner("*** Encrypted 41 of bytes ***")
        assert scanner.scan_masked() is None
        assert scanner.pos == 0

    def test_wildcard_keeps_trailing_space(self):
        scanner = Scanner("Visa }")
        assert scanner.scan_wildcard() == "Visa "
        assert scanner.peek() == "}"

    @pytest.mark.parametrize("stop", [",", "}", ")", "]"])
    def test_wildcard_stops(self, stop):
        scanner = Scanner(f"abc{stop}def")
        assert scanner.scan_wildcard() == "abc"

    def test_wildcard_empty(self):
        scanner = Scanner(", x")
        assert scanner.scan_wildcard() is None
        assert scanner.pos == 0
