"""Upload validation for raw font binaries."""

from __future__ import annotations

from pathlib import Path

from fontshelf.config import FONT_SIGNATURES, MAX_FONT_BYTES, MIN_FONT_BYTES
from fontshelf.errors import FontTooLargeError, InvalidFormatError


def validate_font_bytes(data: bytes) -> None:
    """Accept a font binary or raise.

    Raises InvalidFormatError for short buffers or an unknown container
    signature, FontTooLargeError when the buffer exceeds MAX_FONT_BYTES.
    """
    size = len(data)
    if size < MIN_FONT_BYTES:
        msg = f"Font file too small ({size} bytes, minimum {MIN_FONT_BYTES})"
        raise InvalidFormatError(msg)
    if size > MAX_FONT_BYTES:
        msg = f"Font file too large ({size} bytes, maximum {MAX_FONT_BYTES})"
        raise FontTooLargeError(msg)

    signature = bytes(data[:4])
    if signature not in FONT_SIGNATURES:
        msg = f"Unrecognized font signature: {signature.hex()}"
        raise InvalidFormatError(msg)


def is_valid_font_bytes(data: bytes) -> bool:
    try:
        validate_font_bytes(data)
    except InvalidFormatError:
        return False
    return True


def container_kind(data: bytes) -> str | None:
    """Name of the container type for a known signature ("truetype", "collection", ...)."""
    return FONT_SIGNATURES.get(bytes(data[:4]))


def check_font_bytes(data: bytes) -> list[str]:
    """Run validation and return a list of issues (empty = valid)."""
    try:
        validate_font_bytes(data)
    except InvalidFormatError as e:
        return [str(e)]
    return []


def validate_file(path: str) -> list[str]:
    """Read a font file from disk, then validate it."""
    filepath = Path(path)

    if not filepath.is_file():
        return [f"File not found: {path}"]

    try:
        data = filepath.read_bytes()
    except OSError as e:
        return [f"Could not read file: {e}"]

    return check_font_bytes(data)
