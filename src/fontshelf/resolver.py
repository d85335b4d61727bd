"""Characteristic resolution: family, weight, style, serif and monospace flags.

Two paths produce a FontCharacteristics for a stored font:

- binary: parse the font with fontTools (name, OS/2, hhea, head, cmap, hmtx)
- heuristic: pattern-match the display name and filename

The binary path is all-or-nothing. Any failure discards it and the heuristic
path runs instead, so resolution never raises.
"""

from __future__ import annotations

import asyncio
import io
import logging
from collections.abc import Awaitable, Callable

from fontTools.ttLib import TTFont

from fontshelf.config import (
    BOLD_WEIGHT,
    DEFAULT_WEIGHT,
    FALLBACK_FAMILY,
    KNOWN_FAMILIES,
    LIGHT_WEIGHT,
    MAX_WEIGHT,
    MIN_WEIGHT,
    MONOSPACE_MIN_SAMPLES,
    MONOSPACE_PATTERN,
    MONOSPACE_TOLERANCE,
    PROBE_CHARS,
    SERIF_PATTERN,
)
from fontshelf.errors import FontShelfError, InvalidFormatError, ParseFailure
from fontshelf.schema import FontCharacteristics, FontMetrics, FontRecord, FontStyle
from fontshelf.utils import clean_family_name, combined_text, normalize_identity
from fontshelf.validator import validate_font_bytes

logger = logging.getLogger(__name__)

ByteSource = Callable[[FontRecord], Awaitable[bytes]]

# name table IDs
NAME_FAMILY = 1
NAME_SUBFAMILY = 2
NAME_FULL = 4
NAME_POSTSCRIPT = 6


def _fallback_family(record: FontRecord) -> str:
    return (
        clean_family_name(record.display_name)
        or clean_family_name(record.filename)
        or record.display_name.strip()
        or FALLBACK_FAMILY
    )


# ---------------------------------------------------------------------------
# Binary path
# ---------------------------------------------------------------------------


def _get_name_entry(font: TTFont, name_id: int) -> str | None:
    """Extract a string from the font's name table by nameID."""
    name_table = font["name"]
    record = name_table.getName(name_id, 3, 1, 0x0409)  # Windows, Unicode BMP, English
    if record is None:
        record = name_table.getName(name_id, 1, 0, 0)  # Mac, Roman, English
    if record is not None:
        value = str(record).strip()
    else:
        value = (name_table.getDebugName(name_id) or "").strip()
    return value or None


def _normalize_weight(value) -> int:
    """Map an OS/2 usWeightClass to 100-900. Legacy 1-9 values are scaled."""
    if not isinstance(value, int) or value <= 0:
        return DEFAULT_WEIGHT
    if value < 10:
        value *= 100
    return max(MIN_WEIGHT, min(MAX_WEIGHT, value))


def _has_uniform_advances(font: TTFont) -> bool:
    """True when the probe glyphs share one advance width (within tolerance)."""
    if "hmtx" not in font:
        return False
    cmap = font.getBestCmap()
    if not cmap:
        return False

    hmtx = font["hmtx"]
    widths: list[int] = []
    for char in PROBE_CHARS:
        glyph_name = cmap.get(ord(char))
        if glyph_name is None or glyph_name not in hmtx.metrics:
            continue
        advance = hmtx[glyph_name][0]
        if advance > 0:
            widths.append(advance)

    if len(widths) < MONOSPACE_MIN_SAMPLES:
        return False
    first = widths[0]
    return all(abs(w - first) < MONOSPACE_TOLERANCE for w in widths)


def _read_metrics(font: TTFont) -> FontMetrics | None:
    if "hhea" not in font or "head" not in font:
        return None
    hhea = font["hhea"]
    return FontMetrics(
        ascender=hhea.ascent,
        descender=hhea.descent,
        line_gap=hhea.lineGap,
        units_per_em=font["head"].unitsPerEm,
    )


def _characteristics_from_font(font: TTFont, record: FontRecord) -> FontCharacteristics:
    if "name" not in font:
        msg = "font has no name table"
        raise ParseFailure(msg)

    family = _get_name_entry(font, NAME_FAMILY)
    full_name = _get_name_entry(font, NAME_FULL)
    subfamily = _get_name_entry(font, NAME_SUBFAMILY) or ""
    postscript = _get_name_entry(font, NAME_POSTSCRIPT) or ""

    os2 = font["OS/2"] if "OS/2" in font else None
    weight = _normalize_weight(getattr(os2, "usWeightClass", None))
    style = FontStyle.ITALIC if "italic" in subfamily.lower() else FontStyle.NORMAL

    names = f"{family or ''} {full_name or ''}"
    is_monospace = bool(MONOSPACE_PATTERN.search(names)) or _has_uniform_advances(font)
    is_serif = bool(SERIF_PATTERN.search(f"{names} {postscript}"))

    return FontCharacteristics(
        family_name=family or full_name or _fallback_family(record),
        weight=weight,
        style=style,
        is_serif=is_serif,
        is_monospace=is_monospace,
        metrics=_read_metrics(font),
        source="binary",
    )


def resolve_from_binary(record: FontRecord, data: bytes) -> FontCharacteristics:
    """Parse font bytes with fontTools. Raises ParseFailure on any problem."""
    try:
        validate_font_bytes(data)
    except InvalidFormatError as e:
        raise ParseFailure(str(e)) from e

    try:
        font = TTFont(io.BytesIO(data), fontNumber=0)
    except Exception as e:
        msg = f"fontTools could not open {record.filename}: {e}"
        raise ParseFailure(msg) from e

    try:
        return _characteristics_from_font(font, record)
    except ParseFailure:
        raise
    except Exception as e:
        msg = f"corrupt tables in {record.filename}: {e}"
        raise ParseFailure(msg) from e
    finally:
        font.close()


# ---------------------------------------------------------------------------
# Heuristic path
# ---------------------------------------------------------------------------


def resolve_from_name(record: FontRecord) -> FontCharacteristics:
    """Derive characteristics from the display name and filename only."""
    text = combined_text(record.display_name, record.filename)
    family = _fallback_family(record)

    if "bold" in text:
        weight = BOLD_WEIGHT
    elif "light" in text:
        weight = LIGHT_WEIGHT
    else:
        weight = DEFAULT_WEIGHT
    style = FontStyle.ITALIC if "italic" in text else FontStyle.NORMAL

    known = KNOWN_FAMILIES.get(normalize_identity(family))
    if known is not None:
        family, is_serif, is_monospace = known
    else:
        is_monospace = bool(MONOSPACE_PATTERN.search(text))
        is_serif = bool(SERIF_PATTERN.search(text))

    return FontCharacteristics(
        family_name=family,
        weight=weight,
        style=style,
        is_serif=is_serif,
        is_monospace=is_monospace,
        source="heuristic",
    )


def resolve_characteristics(record: FontRecord, data: bytes | None = None) -> FontCharacteristics:
    """Resolve characteristics for a record, preferring the font binary when given."""
    if data is not None:
        try:
            return resolve_from_binary(record, data)
        except ParseFailure as e:
            logger.debug("Binary parse failed for %s, using name heuristics: %s", record.filename, e)
    return resolve_from_name(record)


class CharacteristicResolver:
    """Async resolver that fetches font bytes and parses them off the event loop."""

    def __init__(self, byte_source: ByteSource | None = None):
        self._byte_source = byte_source

    async def _fetch(self, record: FontRecord) -> bytes | None:
        if self._byte_source is None:
            return None
        try:
            return await self._byte_source(record)
        except (OSError, ValueError, FontShelfError) as e:
            logger.debug("Could not fetch bytes for %s: %s", record.filename, e)
            return None

    async def resolve(self, record: FontRecord) -> FontCharacteristics:
        data = await self._fetch(record)
        if data is None:
            return resolve_from_name(record)
        return await asyncio.to_thread(resolve_characteristics, record, data)
