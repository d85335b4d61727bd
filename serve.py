"""HTTP server for fontshelf.

Extends SimpleHTTPRequestHandler to add:
- GET    /api/fonts: List stored fonts with characteristics and activation state
- POST   /api/fonts/upload: Upload a TTF/OTF font (multipart "font" field or raw body)
- DELETE /api/fonts/<filename>: Delete a stored font
- POST   /api/fonts/<id>/activate: Load the font's face
- GET    /api/fonts/<id>/preview.png: Render sample text with the font's face
- GET/POST /api/groups, GET/PUT/DELETE /api/groups/<id>: Font groups

Stored fonts are served statically under /uploads/fonts/. Nothing else in
the data directory is exposed.
"""

from __future__ import annotations

import functools
import logging
import os
import re
import sys
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, unquote, urlsplit

from fontshelf.config import PREVIEW_TEXT, UPLOADS_URL_PREFIX, ServerSettings
from fontshelf.errors import (
    ActivationError,
    ActivationTimeoutError,
    DuplicateIdentityError,
    FontTooLargeError,
    GroupNotFoundError,
    GroupValidationError,
    InvalidFormatError,
)
from fontshelf.library import FontLibrary
from fontshelf.loader import FaceLoader
from fontshelf.store import GroupStore
from server_utils import (
    EventLoopThread,
    binary_response,
    json_error,
    json_response,
    read_json_body,
    read_upload,
    reject,
)

logger = logging.getLogger("fontshelf.server")

FONT_ROUTE_RE = re.compile(r"^/api/fonts/([^/]+)$")
ACTIVATE_ROUTE_RE = re.compile(r"^/api/fonts/([^/]+)/activate$")
PREVIEW_ROUTE_RE = re.compile(r"^/api/fonts/([^/]+)/preview\.png$")
GROUP_ROUTE_RE = re.compile(r"^/api/groups/([^/]+)$")


class FontShelfServer(ThreadingHTTPServer):
    """Threaded HTTP server owning the font library, group store and event loop."""

    daemon_threads = True

    def __init__(self, settings: ServerSettings, *, loader: FaceLoader | None = None):
        self.settings = settings
        self.library = FontLibrary.open(
            settings.data_dir, timeout=settings.activation_timeout, loader=loader
        )
        self.groups = GroupStore.in_data_dir(settings.data_dir)
        handler = functools.partial(FontServerHandler, directory=os.path.abspath(settings.data_dir))
        super().__init__((settings.host, settings.port), handler)
        self.loop_thread = EventLoopThread().start()

    def run_async(self, coro):
        return self.loop_thread.run(coro)

    def server_close(self):
        super().server_close()
        # Not set when binding failed inside TCPServer.__init__
        if getattr(self, "loop_thread", None) is not None:
            self.loop_thread.stop()


class FontServerHandler(SimpleHTTPRequestHandler):
    """HTTP handler with font upload, activation, preview and group APIs."""

    server: FontShelfServer

    extensions_map = {
        **SimpleHTTPRequestHandler.extensions_map,
        ".ttf": "font/ttf",
        ".otf": "font/otf",
    }

    @property
    def allowed_origins(self) -> set[str]:
        return self.server.settings.allowed_origins

    def list_directory(self, path):
        self.send_error(403, "Directory listing not allowed")
        return None

    def end_headers(self):
        self.send_header("X-Content-Type-Options", "nosniff")
        self.send_header("X-Frame-Options", "SAMEORIGIN")
        self.send_header("Referrer-Policy", "strict-origin-when-cross-origin")
        super().end_headers()

    @property
    def route(self) -> str:
        return urlsplit(self.path).path

    # -- dispatch ----------------------------------------------------------------

    def do_GET(self):
        path = self.route
        if path == "/api/fonts":
            self._guarded(self._handle_list_fonts)
        elif m := PREVIEW_ROUTE_RE.match(path):
            self._guarded(self._handle_preview, unquote(m.group(1)))
        elif path == "/api/groups":
            self._guarded(self._handle_list_groups)
        elif m := GROUP_ROUTE_RE.match(path):
            self._guarded(self._handle_get_group, unquote(m.group(1)))
        elif path.startswith(UPLOADS_URL_PREFIX):
            super().do_GET()
        else:
            json_error(self, "Not Found", 404)

    def do_HEAD(self):
        if self.route.startswith(UPLOADS_URL_PREFIX):
            super().do_HEAD()
        else:
            self.send_error(404, "Not Found")

    def do_POST(self):
        path = self.route
        if path == "/api/fonts/upload":
            self._guarded(self._handle_upload)
        elif m := ACTIVATE_ROUTE_RE.match(path):
            self._guarded(self._handle_activate, unquote(m.group(1)))
        elif path == "/api/groups":
            self._guarded(self._handle_create_group)
        else:
            json_error(self, "Not Found", 404)

    def do_PUT(self):
        if m := GROUP_ROUTE_RE.match(self.route):
            self._guarded(self._handle_update_group, unquote(m.group(1)))
        else:
            json_error(self, "Not Found", 404)

    def do_DELETE(self):
        path = self.route
        if m := FONT_ROUTE_RE.match(path):
            self._guarded(self._handle_delete_font, unquote(m.group(1)))
        elif m := GROUP_ROUTE_RE.match(path):
            self._guarded(self._handle_delete_group, unquote(m.group(1)))
        else:
            json_error(self, "Not Found", 404)

    def do_OPTIONS(self):
        """Handle CORS preflight requests."""
        self.send_response(204)
        origin = self.headers.get("Origin", "")
        if origin in self.allowed_origins:
            self.send_header("Access-Control-Allow-Origin", origin)
            self.send_header("Vary", "Origin")
        self.send_header("Access-Control-Allow-Methods", "GET, POST, PUT, DELETE, OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type, Authorization")
        self.end_headers()

    def _guarded(self, handler, *args):
        """Run a route handler, mapping fontshelf errors to HTTP status codes."""
        try:
            handler(*args)
        except FontTooLargeError as e:
            reject(self, str(e), 413)
        except InvalidFormatError as e:
            reject(self, str(e), 400)
        except DuplicateIdentityError as e:
            reject(self, str(e), 409)
        except GroupValidationError as e:
            reject(self, str(e), 400)
        except GroupNotFoundError as e:
            reject(self, str(e), 404)
        except ActivationTimeoutError as e:
            json_error(self, str(e), 504)
        except ActivationError as e:
            json_error(self, str(e), 502)
        except Exception:
            logger.exception("Request failed: %s %s", self.command, self.path)
            json_error(self, "Internal server error", 500)

    def _find_font(self, font_id: str):
        record = self.server.library.store.get_font(font_id)
        if record is None:
            reject(self, f"Font not found: {font_id}", 404)
        return record

    # -- fonts -------------------------------------------------------------------

    def _handle_list_fonts(self):
        fonts = self.server.run_async(self.server.library.list_fonts())
        json_response(self, fonts)

    def _handle_upload(self):
        upload = read_upload(self)
        if upload is None:
            return
        raw_name, data = upload
        result = self.server.run_async(self.server.library.upload(raw_name, data))
        json_response(self, result.to_json())
        self.log_message(
            "Uploaded font: %s (%d bytes, %s)",
            result.record.filename,
            len(data),
            result.error or f"active as {result.face_key}",
        )

    def _handle_delete_font(self, filename: str):
        if not self.server.run_async(self.server.library.remove(filename)):
            reject(self, f"Font not found: {filename}", 404)
            return
        json_response(self, {"ok": True, "filename": filename})

    def _handle_activate(self, font_id: str):
        record = self._find_font(font_id)
        if record is None:
            return
        controller = self.server.library.controller
        key = self.server.run_async(controller.activate(record))
        json_response(self, {"faceKey": str(key), "state": controller.current_state(key).value})

    def _handle_preview(self, font_id: str):
        record = self._find_font(font_id)
        if record is None:
            return
        query = parse_qs(urlsplit(self.path).query)
        text = query.get("text", [PREVIEW_TEXT])[0]
        png = self.server.run_async(self.server.library.preview(record, text))
        binary_response(self, png, "image/png", headers={"Cache-Control": "no-cache"})

    # -- groups ------------------------------------------------------------------

    def _handle_list_groups(self):
        json_response(self, [group.to_json() for group in self.server.groups.list_groups()])

    def _handle_get_group(self, group_id: str):
        group = self.server.groups.get_group(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        json_response(self, group.to_json())

    def _handle_create_group(self):
        body = read_json_body(self)
        if body is None:
            return
        group = self.server.groups.create_group(body)
        json_response(self, group.to_json())

    def _handle_update_group(self, group_id: str):
        body = read_json_body(self)
        if body is None:
            return
        group = self.server.groups.update_group(group_id, body)
        json_response(self, group.to_json())

    def _handle_delete_group(self, group_id: str):
        if not self.server.groups.delete_group(group_id):
            raise GroupNotFoundError(group_id)
        json_response(self, {"ok": True, "id": group_id})

    def log_message(self, fmt, *args):
        sys.stderr.write(f"[serve] {fmt % args}\n")


def create_server(settings: ServerSettings, *, loader: FaceLoader | None = None) -> FontShelfServer:
    return FontShelfServer(settings, loader=loader)


def _log_warmup(future):
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.error("Warm-up failed: %s", error)


def run(settings: ServerSettings):
    server = create_server(settings)
    host, port = server.server_address[:2]
    font_count = len(server.library.store.list_fonts())
    print(f"fontshelf server on http://{host}:{port}")
    print(f"Fonts dir:   {server.library.store.fonts_dir.resolve()}/ ({font_count} fonts)")
    print(f"Groups file: {server.groups.path.resolve()}")
    print("Press Ctrl+C to stop\n")

    # Background warm-up: activate every stored font once
    server.loop_thread.submit(server.library.activate_all()).add_done_callback(_log_warmup)

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nShutting down.")
    finally:
        server.server_close()


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    try:
        settings = ServerSettings.from_env()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    if len(sys.argv) > 1:
        settings.port = int(sys.argv[1])
    run(settings)


if __name__ == "__main__":
    main()
