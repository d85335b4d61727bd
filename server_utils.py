"""Shared HTTP helpers for serve.py.

JSON and binary responses with CORS, bounded JSON and font-upload body
reading, and the background event loop the request threads submit
library coroutines to.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import logging
import threading
from collections.abc import Coroutine
from email import policy
from email.parser import BytesParser
from http.server import BaseHTTPRequestHandler
from typing import Any
from urllib.parse import parse_qs, urlsplit

from fontshelf.config import MAX_FONT_BYTES, MAX_JSON_BODY, MULTIPART_OVERHEAD

logger = logging.getLogger("fontshelf.server")

UPLOAD_FIELD = "font"
MAX_UPLOAD_BODY = MAX_FONT_BYTES + MULTIPART_OVERHEAD


# ---------------------------------------------------------------------------
# Responses (work with any BaseHTTPRequestHandler subclass)
# ---------------------------------------------------------------------------


def send_cors_headers(handler: BaseHTTPRequestHandler) -> None:
    """Echo the request Origin back when it is in the handler's allowed set."""
    origin = handler.headers.get("Origin", "")
    if origin and origin in getattr(handler, "allowed_origins", ()):
        handler.send_header("Access-Control-Allow-Origin", origin)
        handler.send_header("Vary", "Origin")


def binary_response(
    handler: BaseHTTPRequestHandler,
    body: bytes,
    content_type: str,
    status: int = 200,
    headers: dict[str, str] | None = None,
) -> None:
    handler.send_response(status)
    handler.send_header("Content-Type", content_type)
    handler.send_header("Content-Length", str(len(body)))
    send_cors_headers(handler)
    if headers:
        for k, v in headers.items():
            handler.send_header(k, v)
    handler.end_headers()
    handler.wfile.write(body)


def json_response(
    handler: BaseHTTPRequestHandler,
    data: Any,
    status: int = 200,
    headers: dict[str, str] | None = None,
) -> None:
    """Send a JSON response with CORS headers and optional extra headers."""
    body = json.dumps(data).encode("utf-8")
    binary_response(handler, body, "application/json", status, headers)


def json_error(handler: BaseHTTPRequestHandler, message: str, status: int = 400) -> None:
    """Send a JSON error response."""
    json_response(handler, {"error": message}, status)


def reject(handler: BaseHTTPRequestHandler, message: str, status: int = 400) -> None:
    """Log a rejected request with the client address, then send the error."""
    logger.warning("Rejected request from %s: %s", handler.client_address[0], message)
    json_error(handler, message, status)


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


def _content_length(handler: BaseHTTPRequestHandler) -> int | None:
    try:
        length = int(handler.headers.get("Content-Length", 0))
    except ValueError:
        reject(handler, "Invalid Content-Length", 400)
        return None
    if length < 0:
        reject(handler, "Invalid Content-Length", 400)
        return None
    return length


def read_json_body(handler: BaseHTTPRequestHandler, max_size: int = MAX_JSON_BODY) -> Any | None:
    """Read and parse a JSON body from an HTTP request handler.

    Returns the parsed value on success, or None if an error response was
    already sent to the client.
    """
    length = _content_length(handler)
    if length is None:
        return None
    if length > max_size:
        reject(handler, f"Payload too large ({length} bytes)", 413)
        return None
    if length == 0:
        reject(handler, "Empty body", 400)
        return None

    try:
        return json.loads(handler.rfile.read(length))
    except (json.JSONDecodeError, UnicodeDecodeError):
        reject(handler, "Invalid JSON", 400)
        return None


def _parse_multipart(content_type: str, body: bytes) -> tuple[str, bytes] | None:
    """Return (filename, data) of the upload field of a multipart/form-data body."""
    head = f"Content-Type: {content_type}\r\n\r\n".encode("latin-1")
    message = BytesParser(policy=policy.HTTP).parsebytes(head + body)
    if not message.is_multipart():
        return None
    for part in message.iter_parts():
        if part.get_param("name", header="content-disposition") != UPLOAD_FIELD:
            continue
        data = part.get_payload(decode=True)
        if data is None:
            return None
        return part.get_filename() or "", data
    return None


def read_upload(
    handler: BaseHTTPRequestHandler, max_size: int = MAX_UPLOAD_BODY
) -> tuple[str, bytes] | None:
    """Read an uploaded font as (original filename, bytes).

    Accepts a multipart/form-data body with a "font" file field, or a raw
    body with the filename in the "filename" query parameter. Returns None
    if an error response was already sent.
    """
    length = _content_length(handler)
    if length is None:
        return None
    if length > max_size:
        reject(handler, f"Payload too large ({length} bytes)", 413)
        return None
    if length == 0:
        reject(handler, "No file uploaded", 400)
        return None

    body = handler.rfile.read(length)
    content_type = handler.headers.get("Content-Type", "")

    if content_type.lower().startswith("multipart/form-data"):
        upload = _parse_multipart(content_type, body)
        if upload is None:
            reject(handler, f"No file uploaded in field '{UPLOAD_FIELD}'", 400)
        return upload

    query = parse_qs(urlsplit(handler.path).query)
    filename = query.get("filename", [""])[0]
    if not filename:
        reject(handler, "Missing filename parameter", 400)
        return None
    return filename, body


# ---------------------------------------------------------------------------
# Background event loop
# ---------------------------------------------------------------------------


class EventLoopThread:
    """An asyncio loop running in a daemon thread.

    Request handler threads hand coroutines to it with submit()/run(), so all
    activation state is only touched from this one loop.
    """

    def __init__(self, name: str = "fontshelf-loop"):
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def start(self) -> EventLoopThread:
        self._thread.start()
        return self

    def submit(self, coro: Coroutine[Any, Any, Any]) -> concurrent.futures.Future:
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def run(self, coro: Coroutine[Any, Any, Any], timeout: float | None = None) -> Any:
        """Run a coroutine on the loop and block until it finishes."""
        return self.submit(coro).result(timeout)

    def stop(self) -> None:
        if self.loop.is_closed():
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=5)
        if not self._thread.is_alive():
            self.loop.close()
