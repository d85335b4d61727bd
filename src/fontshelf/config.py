"""Constants and configuration for fontshelf."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field

# Upload bounds (bytes)
MIN_FONT_BYTES = 100
MAX_FONT_BYTES = 10 * 1024 * 1024  # 10 MiB

# First four bytes of the font containers we accept
FONT_SIGNATURES: dict[bytes, str] = {
    b"\x00\x01\x00\x00": "truetype",
    b"true": "truetype",
    b"OTTO": "opentype-cff",
    b"ttcf": "collection",
}

FONT_EXTENSIONS = {".ttf", ".otf"}
DEFAULT_EXTENSION = ".ttf"
MAX_STEM_LENGTH = 200

# Storage layout (relative to the data directory)
UPLOADS_SUBDIR = os.path.join("uploads", "fonts")
UPLOADS_URL_PREFIX = "/uploads/fonts/"
GROUPS_FILE = os.path.join("data", "groups.json")

# Name keyword sets. Serif and monospace are independent checks.
MONOSPACE_PATTERN = re.compile(
    r"mono|code|courier|console|terminal|source.?code|fira.?code|jetbrains", re.IGNORECASE
)
SERIF_PATTERN = re.compile(
    r"serif|times|georgia|garamond|baskerville|playfair|crimson|merriweather|caslon|minion",
    re.IGNORECASE,
)

# Weight/style words stripped from the end of a family candidate
STYLE_TOKENS = (
    "extralight",
    "extrabold",
    "semibold",
    "regular",
    "oblique",
    "italic",
    "normal",
    "medium",
    "light",
    "black",
    "book",
    "thin",
    "bold",
)

DEFAULT_WEIGHT = 400
BOLD_WEIGHT = 700
LIGHT_WEIGHT = 300
MIN_WEIGHT = 100
MAX_WEIGHT = 900

# Advance-width probe for monospace detection
PROBE_CHARS = ("i", "m", "W", "1")
MONOSPACE_MIN_SAMPLES = 3
MONOSPACE_TOLERANCE = 10  # font units

# Identity matcher: length of the normalized prefix compared in the fuzzy pass
PREFIX_MATCH_LENGTH = 8

# Face activation
DEFAULT_ACTIVATION_TIMEOUT = 10.0  # seconds
DEFAULT_FETCH_TIMEOUT = 10.0  # seconds

# Preview rendering
PREVIEW_TEXT = "Example Style"
PREVIEW_SIZE = 48  # px
MAX_PREVIEW_TEXT = 120

FALLBACK_FAMILY = "Unknown Font"

# Well-known families keyed by normalized identity (lower-case letters only):
# canonical family name, is_serif, is_monospace
KNOWN_FAMILIES: dict[str, tuple[str, bool, bool]] = {
    "arial": ("Arial", False, False),
    "helvetica": ("Helvetica", False, False),
    "inter": ("Inter", False, False),
    "lato": ("Lato", False, False),
    "montserrat": ("Montserrat", False, False),
    "opensans": ("Open Sans", False, False),
    "poppins": ("Poppins", False, False),
    "roboto": ("Roboto", False, False),
    "notosans": ("Noto Sans", False, False),
    "sourcesanspro": ("Source Sans Pro", False, False),
    "georgia": ("Georgia", True, False),
    "merriweather": ("Merriweather", True, False),
    "notoserif": ("Noto Serif", True, False),
    "playfairdisplay": ("Playfair Display", True, False),
    "ptserif": ("PT Serif", True, False),
    "robotoslab": ("Roboto Slab", True, False),
    "timesnewroman": ("Times New Roman", True, False),
    "couriernew": ("Courier New", False, True),
    "firacode": ("Fira Code", False, True),
    "ibmplexmono": ("IBM Plex Mono", False, True),
    "jetbrainsmono": ("JetBrains Mono", False, True),
    "robotomono": ("Roboto Mono", False, True),
    "sourcecodepro": ("Source Code Pro", False, True),
}

# HTTP server
MAX_JSON_BODY = 1024 * 1024  # 1MB
MULTIPART_OVERHEAD = 64 * 1024


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        msg = f"{name} must be a number, got {raw!r}"
        raise ValueError(msg) from None
    if value <= 0:
        msg = f"{name} must be positive, got {raw!r}"
        raise ValueError(msg)
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        msg = f"{name} must be an integer, got {raw!r}"
        raise ValueError(msg) from None


@dataclass
class ServerSettings:
    """Runtime settings for the HTTP server, read from FONTSHELF_* variables."""

    data_dir: str = "."
    host: str = "127.0.0.1"
    port: int = 5000
    activation_timeout: float = DEFAULT_ACTIVATION_TIMEOUT
    allowed_origins: set[str] = field(
        default_factory=lambda: {"http://localhost:3000", "http://127.0.0.1:3000"}
    )

    @classmethod
    def from_env(cls) -> ServerSettings:
        defaults = cls()
        origins_raw = os.environ.get("FONTSHELF_ALLOWED_ORIGINS", "")
        origins = {o.strip() for o in origins_raw.split(",") if o.strip()}
        return cls(
            data_dir=os.environ.get("FONTSHELF_DATA_DIR", defaults.data_dir),
            host=os.environ.get("FONTSHELF_HOST", defaults.host),
            port=_env_int("FONTSHELF_PORT", defaults.port),
            activation_timeout=_env_float(
                "FONTSHELF_ACTIVATION_TIMEOUT", defaults.activation_timeout
            ),
            allowed_origins=origins or defaults.allowed_origins,
        )
