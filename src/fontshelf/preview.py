"""PNG sample-text previews rendered with a loaded face."""

from __future__ import annotations

import io
import math

from PIL import Image, ImageDraw, ImageFont

from fontshelf.config import MAX_PREVIEW_TEXT, PREVIEW_TEXT


def render_preview(
    font: ImageFont.FreeTypeFont,
    text: str = PREVIEW_TEXT,
    *,
    padding: int = 8,
) -> bytes:
    """Render one line of text in black on white and return PNG bytes.

    The image is sized to the text's bounding box plus padding on every side.
    Empty text falls back to the default sample; long text is truncated.
    """
    text = text[:MAX_PREVIEW_TEXT] or PREVIEW_TEXT
    left, top, right, bottom = font.getbbox(text)
    width = max(1, math.ceil(right - left)) + 2 * padding
    height = max(1, math.ceil(bottom - top)) + 2 * padding

    img = Image.new("L", (width, height), 255)
    draw = ImageDraw.Draw(img)
    draw.text((padding - left, padding - top), text, font=font, fill=0)

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
