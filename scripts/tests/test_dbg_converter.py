"""Tests for JSON/YAML conversion."""

import json
import logging
import pytest
import sys
from pathlib import Path

import yaml

# Add scripts directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dbg_converter import ConversionError, FORMATS, convert, convert_file, dumps, load
from dbg_model import MASKED_TEXT, value_kind
from dbg_parser import ParseError


class TestModel:
    """Test value tree helpers."""

    @pytest.mark.parametrize("value,kind", [
        (None, "null"),
        (True, "boolean"),
        (1.5, "number"),
        ("x", "text"),
        ([], "list"),
        ({}, "map"),
    ])
    def test_value_kind(self, value, kind):
        assert value_kind(value) == kind

    def test_value_kind_rejects_other_types(self):
        with pytest.raises(TypeError):
            value_kind(object())


class TestLoad:
    """Test the parsing entry point."""

    def test_load(self):
        assert load('Yager { inner: "data" }') == {"inner": "data"}

    def test_trailing_input(self):
        with pytest.raises(ParseError):
            load("1 x")
        assert load("[1] x", allow_trailing=True) == [1.0]

    def test_logs_at_debug(self, caplog):
        caplog.set_level(logging.DEBUG, logger="dbg_converter")
        load("[1]")
        assert "parsed 3 characters" in caplog.text


class TestDumps:
    """Test serialisation."""

    def test_formats(self):
        assert FORMATS == ("json", "yaml")

    def test_json(self):
        assert convert('Yager { inner: "data", outer: 123 }') == '{"inner": "data", "outer": 123.0}'

    def test_json_indent(self):
        out = convert("[1]", indent=2)
        assert out == "[\n  1.0\n]"

    def test_json_keeps_unicode(self):
        assert convert('"α"') == '"α"'

    def test_json_masked(self):
        data = json.loads(convert("Card { cvc: *** alloc::string::String *** }"))
        assert data == {"cvc": MASKED_TEXT}

    def test_json_rejects_infinity(self):
        with pytest.raises(ConversionError):
            convert("1e999")

    def test_yaml(self):
        out = convert('S { a: [1, "x", None], b: true }', fmt="yaml")
        assert yaml.safe_load(out) == {"a": [1.0, "x", None], "b": True}

    def test_yaml_keeps_key_order(self):
        out = dumps({"z": 1.0, "a": 2.0}, fmt="yaml")
        assert out.index("z:") < out.index("a:")

    def test_yaml_infinity(self):
        assert yaml.safe_load(convert("1e999", fmt="yaml")) == float("inf")

    def test_unknown_format(self):
        with pytest.raises(ConversionError):
            dumps([], fmt="xml")


class TestConvertFile:
    """Test reading from files."""

    def test_convert_file(self, tmp_path):
        path = tmp_path / "dump.txt"
        path.write_text("Some(Array [String(\"credit\")])\n", encoding="utf-8")
        assert convert_file(path) == '["credit"]'

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            convert_file(tmp_path / "missing.txt")
