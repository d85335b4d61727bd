"""Face loading: turning a stored font into a face the preview renderer can use."""

from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol
from urllib.error import URLError
from urllib.request import Request, urlopen

from PIL import ImageFont

from fontshelf.config import DEFAULT_FETCH_TIMEOUT, MAX_FONT_BYTES, PREVIEW_SIZE, PREVIEW_TEXT
from fontshelf.errors import FaceLoadError, InvalidFormatError
from fontshelf.schema import FontStyle
from fontshelf.validator import validate_font_bytes

if TYPE_CHECKING:
    from fontshelf.store import FontStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FaceLoadRequest:
    """Everything needed to load one face."""

    family_name: str
    source_url: str
    weight: int
    style: FontStyle


@dataclass
class LoadedFace:
    """A face that finished loading."""

    request: FaceLoadRequest
    font: ImageFont.FreeTypeFont
    size_bytes: int


class FaceLoader(Protocol):
    async def load(self, request: FaceLoadRequest) -> Any: ...


class StoreFaceLoader:
    """Load faces from the font store (or an http(s) URL) into Pillow FreeType fonts.

    Network and disk reads plus the FreeType load run in worker threads so the
    event loop stays free while a face is loading.
    """

    def __init__(
        self,
        store: FontStore,
        *,
        size: int = PREVIEW_SIZE,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
    ):
        self.store = store
        self.size = size
        self.fetch_timeout = fetch_timeout

    def _fetch(self, source_url: str) -> bytes:
        if source_url.startswith(("http://", "https://")):
            req = Request(source_url, headers={"Cache-Control": "no-cache"})
            try:
                with urlopen(req, timeout=self.fetch_timeout) as resp:
                    return resp.read(MAX_FONT_BYTES + 1)
            except (URLError, OSError) as e:
                msg = f"Could not fetch {source_url}: {e}"
                raise FaceLoadError(msg) from e

        filename = source_url.rstrip("/").rsplit("/", 1)[-1]
        try:
            return self.store.read_bytes(filename)
        except OSError as e:
            msg = f"Could not read {filename}: {e}"
            raise FaceLoadError(msg) from e

    def _open_face(self, data: bytes, request: FaceLoadRequest) -> ImageFont.FreeTypeFont:
        try:
            return ImageFont.truetype(io.BytesIO(data), size=self.size)
        except OSError as e:
            msg = f"FreeType could not load {request.family_name}: {e}"
            raise FaceLoadError(msg) from e

    @staticmethod
    def _verify(font: ImageFont.FreeTypeFont, request: FaceLoadRequest) -> None:
        """Best-effort check that the face draws something. Never fails the load."""
        try:
            left, _top, right, _bottom = font.getbbox(PREVIEW_TEXT)
        except OSError:
            logger.warning("Could not measure sample text for %s", request.family_name)
            return
        if right <= left:
            logger.warning("Face %s renders empty sample text", request.family_name)

    async def load(self, request: FaceLoadRequest) -> LoadedFace:
        data = await asyncio.to_thread(self._fetch, request.source_url)
        try:
            validate_font_bytes(data)
        except InvalidFormatError as e:
            msg = f"Invalid font data for {request.family_name}: {e}"
            raise FaceLoadError(msg) from e

        font = await asyncio.to_thread(self._open_face, data, request)
        self._verify(font, request)
        return LoadedFace(request=request, font=font, size_bytes=len(data))
