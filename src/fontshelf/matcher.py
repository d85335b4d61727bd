"""Identity matching of a candidate family against already active faces.

Strategies run in a fixed order and the first hit wins:

1. exact      normalized, cleaned candidate family == normalized active family
2. filename   normalized, cleaned filename stem == normalized active family
3. prefix     the first PREFIX_MATCH_LENGTH normalized characters of either
              name occur inside the other

Changing the order changes which uploads are collapsed into one face.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import NamedTuple

from fontshelf.config import PREFIX_MATCH_LENGTH
from fontshelf.schema import FaceKey
from fontshelf.utils import clean_family_name, file_stem, normalize_identity


class MatchStrategy(str, Enum):
    EXACT = "exact"
    FILENAME = "filename"
    PREFIX = "prefix"


class IdentityMatch(NamedTuple):
    key: FaceKey
    strategy: MatchStrategy


def _prefix_match(a: str, b: str) -> bool:
    if not a or not b:
        return False
    return a[:PREFIX_MATCH_LENGTH] in b or b[:PREFIX_MATCH_LENGTH] in a


def find_match(
    candidate: str,
    active_keys: Iterable[FaceKey],
    *,
    filename: str | None = None,
) -> IdentityMatch | None:
    """Return the first key matching the candidate, with the strategy used."""
    keys = [(key, normalize_identity(key.family_name)) for key in active_keys]
    keys = [(key, norm) for key, norm in keys if norm]
    if not keys:
        return None

    wanted = normalize_identity(clean_family_name(candidate))

    if wanted:
        for key, norm in keys:
            if wanted == norm:
                return IdentityMatch(key, MatchStrategy.EXACT)

    if filename:
        stem = normalize_identity(clean_family_name(file_stem(filename)))
        if stem:
            for key, norm in keys:
                if stem == norm:
                    return IdentityMatch(key, MatchStrategy.FILENAME)

    if wanted:
        for key, norm in keys:
            if _prefix_match(wanted, norm):
                return IdentityMatch(key, MatchStrategy.PREFIX)

    return None


def find_existing(
    candidate: str,
    active_keys: Iterable[FaceKey],
    *,
    filename: str | None = None,
) -> FaceKey | None:
    """Return the active FaceKey the candidate collapses into, or None."""
    match = find_match(candidate, active_keys, filename=filename)
    return match.key if match else None
