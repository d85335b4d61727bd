"""Filename sanitizing and name normalization helpers."""

from __future__ import annotations

import os
import re

from fontshelf.config import DEFAULT_EXTENSION, FONT_EXTENSIONS, MAX_STEM_LENGTH, STYLE_TOKENS

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]")
_DOT_RUN_RE = re.compile(r"\.{2,}")
_NON_LETTERS_RE = re.compile(r"[^a-z]")
_SEPARATORS_RE = re.compile(r"[-_.\s]+")
_FONT_SUFFIX_RE = re.compile(r"\.(?:ttf|otf|ttc|woff2?)$", re.IGNORECASE)
_STYLE_TOKEN_RE = re.compile(r"^(?:" + "|".join(STYLE_TOKENS) + r")+$", re.IGNORECASE)


def sanitize_filename(raw_name: str) -> str:
    """Normalize an uploaded filename to a safe font filename.

    "My Font (Bold).TTF" -> "MyFontBold.ttf"
    "../../etc/passwd"   -> "etcpasswd.ttf"
    "roboto.woff"        -> "roboto.ttf"
    """
    name = _UNSAFE_CHARS_RE.sub("", raw_name)
    name = _DOT_RUN_RE.sub(".", name)
    name = name.strip(".")

    stem, ext = os.path.splitext(name)
    ext = ext.lower()
    if ext not in FONT_EXTENSIONS:
        ext = DEFAULT_EXTENSION

    stem = stem.strip(".")[:MAX_STEM_LENGTH].strip(".")
    return f"{stem or 'font'}{ext}"


def file_stem(filename: str) -> str:
    """Return the filename without its extension ("Roboto-Bold.ttf" -> "Roboto-Bold")."""
    return os.path.splitext(os.path.basename(filename))[0]


def normalize_identity(text: str) -> str:
    """Lower-case and drop everything that is not a letter ("Fira_Code 2" -> "firacode")."""
    return _NON_LETTERS_RE.sub("", text.lower())


def clean_family_name(name: str) -> str:
    """Derive a family candidate from a display name or filename.

    Drops the font extension, any "VariableFont..." suffix and trailing
    weight/style words, then joins the rest with spaces.

    "Roboto-BoldItalic.ttf"      -> "Roboto"
    "Inter-VariableFont_wght"    -> "Inter"
    "open_sans_extralight"       -> "open sans"
    """
    stem = _FONT_SUFFIX_RE.sub("", name.strip())
    tokens = [t for t in _SEPARATORS_RE.split(stem) if t]

    for i, token in enumerate(tokens):
        if token.lower().startswith("variablefont"):
            tokens = tokens[:i]
            break

    # Keep at least one token so "Bold.ttf" stays "Bold"
    while len(tokens) > 1 and _STYLE_TOKEN_RE.match(tokens[-1]):
        tokens.pop()

    return " ".join(tokens)


def combined_text(display_name: str, filename: str) -> str:
    """Lower-cased display name + filename, the haystack for keyword heuristics."""
    return f"{display_name} {filename}".lower()
