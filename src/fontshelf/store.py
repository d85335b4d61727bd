"""File-backed storage: font binaries on disk, font groups in one JSON array.

The group store is single-writer. Every mutation rewrites the whole file
(write-to-temp + os.replace, so readers never see a partial file).
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from fontshelf.config import FONT_EXTENSIONS, GROUPS_FILE, UPLOADS_SUBDIR, UPLOADS_URL_PREFIX
from fontshelf.errors import DuplicateIdentityError, GroupNotFoundError
from fontshelf.schema import FontGroup, FontRecord, GroupPayload, parse_group_payload
from fontshelf.utils import file_stem, sanitize_filename
from fontshelf.validator import validate_font_bytes

logger = logging.getLogger(__name__)


def _is_plain_font_name(filename: str) -> bool:
    """Reject anything that could point outside the fonts directory."""
    if not filename or filename.startswith("."):
        return False
    if filename != os.path.basename(filename) or "\\" in filename:
        return False
    return os.path.splitext(filename)[1].lower() in FONT_EXTENSIONS


class FontStore:
    """Font files stored under <root>/uploads/fonts."""

    def __init__(self, root: str | os.PathLike):
        self.root = Path(root)
        self.fonts_dir = self.root / UPLOADS_SUBDIR
        self.fonts_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def record_for(filename: str) -> FontRecord:
        stem = file_stem(filename)
        return FontRecord(
            id=stem,
            filename=filename,
            display_name=stem,
            storage_path=f"{UPLOADS_URL_PREFIX}{filename}",
        )

    def list_fonts(self) -> list[FontRecord]:
        if not self.fonts_dir.is_dir():
            return []
        return [
            self.record_for(entry.name)
            for entry in sorted(self.fonts_dir.iterdir())
            if entry.suffix.lower() in FONT_EXTENSIONS and entry.is_file()
        ]

    def get_font(self, font_id_or_filename: str) -> FontRecord | None:
        for record in self.list_fonts():
            if font_id_or_filename in (record.id, record.filename):
                return record
        return None

    def save_font(self, raw_name: str, data: bytes) -> FontRecord:
        """Validate and store an uploaded font. Never overwrites an existing font."""
        validate_font_bytes(data)

        filename = sanitize_filename(raw_name)
        record = self.record_for(filename)
        if any(existing.id == record.id for existing in self.list_fonts()):
            raise DuplicateIdentityError(filename)

        path = self.fonts_dir / filename
        try:
            with open(path, "xb") as f:
                f.write(data)
        except FileExistsError as e:
            raise DuplicateIdentityError(filename) from e
        except OSError:
            with contextlib.suppress(OSError):
                path.unlink()
            raise

        logger.info("Stored font %s (%d bytes)", filename, len(data))
        return record

    def delete_font(self, filename: str) -> bool:
        if not _is_plain_font_name(filename):
            return False
        path = self.fonts_dir / filename
        if not path.is_file():
            return False
        path.unlink()
        logger.info("Deleted font %s", filename)
        return True

    def read_bytes(self, filename: str) -> bytes:
        if not _is_plain_font_name(filename):
            raise FileNotFoundError(f"Font not found: {filename}")
        return (self.fonts_dir / filename).read_bytes()

    async def fetch_bytes(self, record: FontRecord) -> bytes:
        return await asyncio.to_thread(self.read_bytes, record.filename)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GroupStore:
    """Font groups stored as a JSON array, by default at <root>/data/groups.json."""

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self._write([])

    @classmethod
    def in_data_dir(cls, root: str | os.PathLike) -> GroupStore:
        return cls(Path(root) / GROUPS_FILE)

    def _read(self) -> list[Any]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        except (OSError, json.JSONDecodeError):
            logger.warning("Could not read groups file %s", self.path, exc_info=True)
            return []
        if not isinstance(data, list):
            logger.warning("Groups file %s does not hold a JSON array", self.path)
            return []
        return data

    def _write(self, groups: list[FontGroup]) -> None:
        """Atomically replace the groups file."""
        payload = [group.to_json() for group in groups]
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError:
            with contextlib.suppress(OSError):
                os.unlink(tmp_path)
            raise

    def list_groups(self) -> list[FontGroup]:
        groups: list[FontGroup] = []
        for raw in self._read():
            try:
                groups.append(FontGroup.model_validate(raw))
            except ValidationError:
                group_id = raw.get("id") if isinstance(raw, dict) else None
                logger.warning("Skipping invalid group entry %r in %s", group_id, self.path)
        return groups

    def get_group(self, group_id: str) -> FontGroup | None:
        for group in self.list_groups():
            if group.id == group_id:
                return group
        return None

    @staticmethod
    def _new_id(groups: list[FontGroup]) -> str:
        taken = {group.id for group in groups}
        candidate = time.time_ns() // 1_000_000
        while str(candidate) in taken:
            candidate += 1
        return str(candidate)

    def create_group(self, data: GroupPayload | dict) -> FontGroup:
        payload = data if isinstance(data, GroupPayload) else parse_group_payload(data)
        groups = self.list_groups()
        group = FontGroup(
            id=self._new_id(groups),
            title=payload.title,
            fonts=payload.fonts,
            created_at=_utcnow(),
        )
        groups.append(group)
        self._write(groups)
        logger.info("Created group %s (%d fonts)", group.id, len(group.fonts))
        return group

    def update_group(self, group_id: str, data: GroupPayload | dict) -> FontGroup:
        payload = data if isinstance(data, GroupPayload) else parse_group_payload(data)
        groups = self.list_groups()
        for i, group in enumerate(groups):
            if group.id == group_id:
                updated = group.model_copy(
                    update={"title": payload.title, "fonts": payload.fonts, "updated_at": _utcnow()}
                )
                groups[i] = updated
                self._write(groups)
                logger.info("Updated group %s", group_id)
                return updated
        raise GroupNotFoundError(group_id)

    def delete_group(self, group_id: str) -> bool:
        groups = self.list_groups()
        remaining = [group for group in groups if group.id != group_id]
        if len(remaining) == len(groups):
            return False
        self._write(remaining)
        logger.info("Deleted group %s", group_id)
        return True
