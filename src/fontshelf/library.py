"""Font library: the store plus the activation controller for one session.

All controller calls happen on the event loop that runs these coroutines;
blocking store I/O is pushed to worker threads.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Any

from fontshelf.activation import ActivationController
from fontshelf.config import DEFAULT_ACTIVATION_TIMEOUT, PREVIEW_TEXT
from fontshelf.errors import ActivationError
from fontshelf.loader import FaceLoader, StoreFaceLoader
from fontshelf.preview import render_preview
from fontshelf.schema import FaceKey, FontRecord
from fontshelf.store import FontStore

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    record: FontRecord
    face_key: FaceKey | None = None
    error: str | None = None

    def to_json(self) -> dict[str, Any]:
        data = self.record.to_json()
        data["faceKey"] = str(self.face_key) if self.face_key else None
        data["error"] = self.error
        return data


class FontLibrary:
    def __init__(self, store: FontStore, controller: ActivationController):
        self.store = store
        self.controller = controller

    @classmethod
    def open(
        cls,
        data_dir: str | os.PathLike,
        *,
        timeout: float = DEFAULT_ACTIVATION_TIMEOUT,
        loader: FaceLoader | None = None,
    ) -> FontLibrary:
        store = FontStore(data_dir)
        controller = ActivationController(
            loader or StoreFaceLoader(store),
            byte_source=store.fetch_bytes,
            timeout=timeout,
        )
        return cls(store, controller)

    async def refresh(self) -> list[FontRecord]:
        """List stored fonts, rebuilding the session if the set changed on disk."""
        records = await asyncio.to_thread(self.store.list_fonts)
        self.controller.sync_records(records)
        return records

    async def upload(self, raw_name: str, data: bytes) -> UploadResult:
        """Store a font and try to activate it.

        Storage errors (invalid format, duplicate) propagate; an activation
        failure is reported in the result since the font is stored anyway.
        """
        await self.refresh()
        record = await asyncio.to_thread(self.store.save_font, raw_name, data)
        try:
            key = await self.controller.activate(record)
        except ActivationError as e:
            return UploadResult(record, e.face_key, e.reason)
        return UploadResult(record, key)

    async def remove(self, filename: str) -> bool:
        await self.refresh()
        record = await asyncio.to_thread(self.store.get_font, filename)
        removed = await asyncio.to_thread(self.store.delete_font, filename)
        if removed and record is not None:
            self.controller.on_record_removed(record)
        return removed

    async def describe(self, record: FontRecord) -> dict[str, Any]:
        """Record JSON plus resolved characteristics and activation state."""
        characteristics = await self.controller.resolve_characteristics(record)
        key = self.controller.key_for(record) or characteristics.face_key
        data = record.to_json()
        data["characteristics"] = characteristics.to_json()
        data["faceKey"] = str(key)
        data["state"] = self.controller.current_state(key).value
        data["error"] = self.controller.failure_reason(key)
        return data

    async def list_fonts(self) -> list[dict[str, Any]]:
        records = await self.refresh()
        return list(await asyncio.gather(*(self.describe(r) for r in records)))

    async def activate_all(self) -> int:
        """Activate every stored font without retrying failed faces. Returns the active count."""
        records = await self.refresh()
        results = await asyncio.gather(
            *(self.controller.activate(r, retry_failed=False) for r in records),
            return_exceptions=True,
        )
        active = 0
        for record, result in zip(records, results):
            if isinstance(result, ActivationError):
                logger.warning("Skipping %s: %s", record.filename, result.reason)
            elif isinstance(result, BaseException):
                raise result
            else:
                active += 1
        logger.info("Activated %d/%d fonts", active, len(records))
        return active

    async def preview(self, record: FontRecord, text: str = PREVIEW_TEXT) -> bytes:
        """Render sample text with the record's face, activating it first if needed."""
        key = await self.controller.activate(record, retry_failed=False)
        face = self.controller.face_for(key)
        if face is None:
            raise ActivationError(key, "face is not loaded")
        return await asyncio.to_thread(render_preview, face.font, text)
