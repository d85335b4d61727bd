"""Exception taxonomy for fontshelf.

Nothing here is fatal to the process: upload errors reject a single file,
parse failures are recovered by the heuristic resolver, activation errors
mark a single face as failed and group errors are shown to the user.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fontshelf.schema import FaceKey


class FontShelfError(Exception):
    """Base class for all fontshelf errors."""


class InvalidFormatError(FontShelfError, ValueError):
    """Uploaded bytes are not a recognized font binary."""


class FontTooLargeError(InvalidFormatError):
    """Uploaded bytes exceed the maximum font size."""


class DuplicateIdentityError(FontShelfError):
    """A font with the same sanitized identity is already stored."""

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(f"Font already exists: {filename}")


class ParseFailure(FontShelfError):
    """Binary characteristic parsing failed or returned incomplete data."""


class FaceLoadError(FontShelfError):
    """A face loader could not make a font usable for rendering."""


class ActivationError(FontShelfError):
    """A face could not be activated."""

    def __init__(self, face_key: FaceKey, reason: str):
        self.face_key = face_key
        self.reason = reason
        super().__init__(f"Could not load {face_key}: {reason}")


class ActivationTimeoutError(ActivationError):
    """A face load did not finish within the activation timeout."""


class GroupValidationError(FontShelfError, ValueError):
    """Group payload is missing a title, has too few fonts or repeats a font."""


class GroupNotFoundError(FontShelfError, KeyError):
    """No group exists with the requested id."""

    def __init__(self, group_id: str):
        self.group_id = group_id
        super().__init__(group_id)

    def __str__(self) -> str:
        return f"Group not found: {self.group_id}"
