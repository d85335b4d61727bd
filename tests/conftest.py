"""Shared fixtures for fontshelf tests."""

import asyncio
import io

import pytest
from fontTools.fontBuilder import FontBuilder
from fontTools.pens.ttGlyphPen import TTGlyphPen

from fontshelf.errors import FaceLoadError
from fontshelf.store import FontStore, GroupStore

# -- Font binaries ----------------------------------------------------------

PROPORTIONAL_WIDTHS = {"i": 280, "m": 820, "W": 940, "one": 560}
MONOSPACE_WIDTHS = {"i": 600, "m": 600, "W": 600, "one": 600}

_CHAR_GLYPHS = {ord("i"): "i", ord("m"): "m", ord("W"): "W", ord("1"): "one"}


def _box_glyph(advance):
    pen = TTGlyphPen(None)
    pen.moveTo((50, 0))
    pen.lineTo((50, 700))
    pen.lineTo((advance - 50, 700))
    pen.lineTo((advance - 50, 0))
    pen.closePath()
    return pen.glyph()


def make_font_bytes(family="Test Sans", style="Regular", weight=400, widths=None):
    """Build a small but complete TrueType font and return its bytes."""
    widths = widths or PROPORTIONAL_WIDTHS
    glyph_order = [".notdef", "space", *widths]

    fb = FontBuilder(1000, isTTF=True)
    fb.setupGlyphOrder(glyph_order)
    fb.setupCharacterMap({32: "space", **_CHAR_GLYPHS})

    glyphs = {".notdef": _box_glyph(500), "space": TTGlyphPen(None).glyph()}
    glyphs.update({name: _box_glyph(advance) for name, advance in widths.items()})
    fb.setupGlyf(glyphs)

    metrics = {".notdef": (500, 50), "space": (250, 0)}
    metrics.update({name: (advance, 50) for name, advance in widths.items()})
    fb.setupHorizontalMetrics(metrics)
    fb.setupHorizontalHeader(ascent=800, descent=-200)
    fb.setupNameTable(
        {
            "familyName": family,
            "styleName": style,
            "uniqueFontIdentifier": f"fontshelf-test:{family}-{style}",
            "fullName": f"{family} {style}",
            "psName": f"{family.replace(' ', '')}-{style}",
            "version": "Version 1.000",
        }
    )
    fb.setupOS2(
        usWeightClass=weight,
        sTypoAscender=800,
        sTypoDescender=-200,
        usWinAscent=800,
        usWinDescent=200,
    )
    fb.setupPost()

    buf = io.BytesIO()
    fb.save(buf)
    return buf.getvalue()


def make_record(filename, display_name=None):
    """A FontRecord the way the store builds it."""
    record = FontStore.record_for(filename)
    if display_name is not None:
        record = record.model_copy(update={"display_name": display_name})
    return record


# -- Fake face loaders ------------------------------------------------------


class FakeLoader:
    """Face loader that records calls, optionally sleeping or failing."""

    def __init__(self, delay=0.0, fail=False):
        self.delay = delay
        self.fail = fail
        self.calls = []

    async def load(self, request):
        self.calls.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            msg = f"cannot load {request.family_name}"
            raise FaceLoadError(msg)
        return object()


# -- Fixtures ---------------------------------------------------------------


@pytest.fixture()
def font_bytes():
    """A valid proportional TrueType font named "Test Sans" Regular."""
    return make_font_bytes()


@pytest.fixture()
def mono_font_bytes():
    return make_font_bytes(family="Grid Type", widths=MONOSPACE_WIDTHS)


@pytest.fixture()
def font_store(tmp_path):
    return FontStore(tmp_path)


@pytest.fixture()
def group_store(tmp_path):
    return GroupStore.in_data_dir(tmp_path)


@pytest.fixture()
def roboto_records():
    return {
        "bold": make_record("Roboto-Bold.ttf"),
        "italic": make_record("Roboto-Italic.ttf"),
        "plain": make_record("Roboto.ttf"),
        "regular": make_record("Roboto-Regular.ttf"),
    }


@pytest.fixture()
def sample_group_data():
    return {
        "title": "Headings",
        "fonts": [
            {"name": "Title", "selectedFont": "Roboto-Bold"},
            {"name": "Body", "selectedFont": "Roboto-Regular"},
        ],
    }
