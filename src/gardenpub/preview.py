"""Local HTTP preview of the build output."""

from __future__ import annotations

import logging
import threading
from functools import partial
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

log = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
CACHE_MAX_AGE = 600  # seconds


class PreviewRequestHandler(SimpleHTTPRequestHandler):
    """Static file handler with a short cache lifetime."""

    def end_headers(self) -> None:
        self.send_header("Cache-Control", f"max-age={CACHE_MAX_AGE}")
        super().end_headers()

    def log_message(self, format: str, *args) -> None:
        log.debug("%s - %s", self.address_string(), format % args)


class PreviewServer:
    """Serve a directory over HTTP from a background thread.

    The directory may be deleted and recreated while serving (every build
    does); requests during that window get 404s.
    """

    def __init__(self, directory: Path, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT):
        self.directory = directory
        self.host = host
        self.port = port
        self._httpd: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def address(self) -> tuple[str, int]:
        """Bound (host, port); the port is real even when 0 was requested."""
        if self._httpd is None:
            return self.host, self.port
        host, port = self._httpd.server_address[:2]
        return str(host), int(port)

    def start(self) -> None:
        if self._httpd is not None:
            return

        self.directory.mkdir(parents=True, exist_ok=True)
        handler = partial(PreviewRequestHandler, directory=str(self.directory))
        self._httpd = ThreadingHTTPServer((self.host, self.port), handler)
        self._thread = threading.Thread(target=self._httpd.serve_forever, daemon=True)
        self._thread.start()

        host, port = self.address
        log.info("Listening %s:%d", host, port)

    def stop(self) -> None:
        if self._httpd is None:
            return

        self._httpd.shutdown()
        self._httpd.server_close()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
        self._httpd = None
        self._thread = None

    def __enter__(self) -> PreviewServer:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
