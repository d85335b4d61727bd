"""Tests for characteristic resolution (binary parse and name heuristics)."""

import asyncio

import pytest

from fontshelf.errors import ParseFailure
from fontshelf.resolver import (
    CharacteristicResolver,
    resolve_characteristics,
    resolve_from_binary,
    resolve_from_name,
)
from fontshelf.schema import FaceKey, FontStyle
from tests.conftest import make_font_bytes, make_record


class TestResolveFromBinary:
    def test_regular_font(self, font_bytes):
        ch = resolve_from_binary(make_record("whatever.ttf"), font_bytes)
        assert ch.family_name == "Test Sans"
        assert ch.weight == 400
        assert ch.style is FontStyle.NORMAL
        assert ch.source == "binary"
        assert not ch.is_monospace
        assert not ch.is_serif

    def test_metrics(self, font_bytes):
        ch = resolve_from_binary(make_record("TestSans.ttf"), font_bytes)
        assert ch.metrics is not None
        assert ch.metrics.ascender == 800
        assert ch.metrics.descender == -200
        assert ch.metrics.units_per_em == 1000

    def test_bold_italic(self):
        data = make_font_bytes(style="Bold Italic", weight=700)
        ch = resolve_from_binary(make_record("x.ttf"), data)
        assert ch.weight == 700
        assert ch.style is FontStyle.ITALIC

    def test_binary_wins_over_filename(self):
        data = make_font_bytes(family="Test Sans", weight=300)
        ch = resolve_from_binary(make_record("Roboto-Bold.ttf"), data)
        assert ch.face_key == FaceKey(family_name="Test Sans", weight=300)

    def test_legacy_weight_scaled(self):
        data = make_font_bytes(weight=7)
        assert resolve_from_binary(make_record("x.ttf"), data).weight == 700

    def test_uniform_advances_are_monospace(self, mono_font_bytes):
        ch = resolve_from_binary(make_record("GridType.ttf"), mono_font_bytes)
        assert ch.family_name == "Grid Type"
        assert ch.is_monospace

    def test_mono_keyword_in_name(self):
        data = make_font_bytes(family="Test Mono")
        assert resolve_from_binary(make_record("x.ttf"), data).is_monospace

    def test_serif_keyword_in_name(self):
        data = make_font_bytes(family="Test Serif")
        ch = resolve_from_binary(make_record("x.ttf"), data)
        assert ch.is_serif
        assert not ch.is_monospace

    def test_invalid_bytes(self):
        with pytest.raises(ParseFailure):
            resolve_from_binary(make_record("x.ttf"), b"not a font")

    def test_no_name_table(self):
        data = b"\x00\x01\x00\x00" + b"\x00" * 200
        with pytest.raises(ParseFailure):
            resolve_from_binary(make_record("x.ttf"), data)


class TestResolveFromName:
    def test_roboto_bold(self):
        ch = resolve_from_name(make_record("Roboto-Bold.ttf"))
        assert ch.face_key == FaceKey(family_name="Roboto", weight=700, style=FontStyle.NORMAL)
        assert ch.source == "heuristic"

    def test_roboto_italic(self):
        ch = resolve_from_name(make_record("Roboto-Italic.ttf"))
        assert ch.face_key == FaceKey(family_name="Roboto", weight=400, style=FontStyle.ITALIC)

    def test_roboto_bold_and_italic_are_distinct(self):
        bold = resolve_from_name(make_record("Roboto-Bold.ttf"))
        italic = resolve_from_name(make_record("Roboto-Italic.ttf"))
        assert bold.face_key != italic.face_key

    def test_light(self):
        assert resolve_from_name(make_record("Lato-Light.ttf")).weight == 300

    def test_firacode_is_monospace(self):
        ch = resolve_from_name(make_record("firacode-regular.ttf"))
        assert ch.is_monospace
        assert ch.family_name == "Fira Code"

    def test_mono_keyword(self):
        assert resolve_from_name(make_record("AcmeMono.ttf")).is_monospace

    def test_serif_keyword(self):
        ch = resolve_from_name(make_record("Garamond-Premier.otf"))
        assert ch.is_serif
        assert not ch.is_monospace

    def test_known_serif_family(self):
        ch = resolve_from_name(make_record("RobotoSlab-Regular.ttf"))
        assert ch.family_name == "Roboto Slab"
        assert ch.is_serif

    def test_display_name_preferred_over_filename(self):
        ch = resolve_from_name(make_record("upload123.ttf", display_name="Open Sans SemiBold"))
        assert ch.family_name == "Open Sans"

    def test_family_never_empty(self):
        ch = resolve_from_name(make_record("123.ttf", display_name=" "))
        assert ch.family_name

    def test_deterministic(self):
        record = make_record("JetBrainsMono-BoldItalic.ttf")
        assert resolve_from_name(record) == resolve_from_name(record)


class TestResolveCharacteristics:
    def test_prefers_binary(self, font_bytes):
        ch = resolve_characteristics(make_record("Roboto-Bold.ttf"), font_bytes)
        assert ch.source == "binary"
        assert ch.family_name == "Test Sans"

    def test_falls_back_on_garbage(self):
        ch = resolve_characteristics(make_record("Roboto-Bold.ttf"), b"garbage")
        assert ch.source == "heuristic"
        assert ch.face_key == FaceKey(family_name="Roboto", weight=700)

    def test_no_bytes_uses_name(self):
        assert resolve_characteristics(make_record("Roboto.ttf")).source == "heuristic"

    def test_deterministic(self, font_bytes):
        record = make_record("TestSans.ttf")
        assert resolve_characteristics(record, font_bytes) == resolve_characteristics(
            record, font_bytes
        )


class TestCharacteristicResolver:
    def test_uses_byte_source(self, font_bytes):
        async def source(record):
            return font_bytes

        ch = asyncio.run(CharacteristicResolver(source).resolve(make_record("x.ttf")))
        assert ch.source == "binary"

    def test_failing_byte_source_falls_back(self):
        async def source(record):
            raise FileNotFoundError(record.filename)

        ch = asyncio.run(CharacteristicResolver(source).resolve(make_record("Roboto-Bold.ttf")))
        assert ch.source == "heuristic"
        assert ch.weight == 700

    def test_without_byte_source(self):
        ch = asyncio.run(CharacteristicResolver().resolve(make_record("Roboto-Italic.ttf")))
        assert ch.style is FontStyle.ITALIC
