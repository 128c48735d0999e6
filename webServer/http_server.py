from __future__ import annotations

import errno
import logging
import queue
import socket
import ssl
import threading
from http import HTTPStatus
from http.server import ThreadingHTTPServer, SimpleHTTPRequestHandler
from pathlib import Path
from typing import Any, Optional

from .middleware import Handler

LOG = logging.getLogger(__name__)


class FileRequestHandler(SimpleHTTPRequestHandler):
    """
    Static file handler that routes every request through an application callable.

    The handler doubles as the raw response sink: ``write_header`` writes the
    status line, while ``send_response`` (which the stdlib file-serving code
    calls internally) goes through ``response_writer`` so that wrappers
    installed for the current request observe the status.
    """

    protocol_version = "HTTP/1.1"

    def __init__(self, *args: Any, app: Handler, **kwargs: Any) -> None:
        self.app = app
        self.response_writer: Any = self
        self._in_app = False
        self._rejected: Optional[tuple] = None
        super().__init__(*args, **kwargs)

    def _dispatch(self) -> None:
        self._in_app = True
        try:
            self.app(self, self)
        finally:
            # keep-alive connections reuse this handler for the next request
            self.response_writer = self
            self._in_app = False

    do_GET = do_HEAD = _dispatch

    def __getattr__(self, name: str) -> Any:
        # any other method (POST, PROPFIND, FOO...) still goes through the app
        if name.startswith("do_"):
            return self._dispatch
        raise AttributeError(name)

    def send_error(self, code: int, message: Optional[str] = None, explain: Optional[str] = None) -> None:
        if self._in_app:
            super().send_error(code, message, explain)
            return
        # rejected while parsing the request line or headers (400, 414, 431...)
        self._rejected = (code, message, explain)
        try:
            self._dispatch()
        finally:
            self._rejected = None

    def serve_static(self) -> None:
        if self._rejected is not None:
            self.send_error(*self._rejected)
        elif self.command == "GET":
            super().do_GET()
        elif self.command == "HEAD":
            super().do_HEAD()
        else:
            self.send_error(HTTPStatus.NOT_IMPLEMENTED, "Unsupported method (%r)" % self.command)

    def write_header(self, code: int, message: Optional[str] = None) -> None:
        super().send_response(code, message)

    def send_response(self, code: int, message: Optional[str] = None) -> None:
        self.response_writer.write_header(code, message)

    def log_request(self, code: Any = "-", size: Any = "-") -> None:
        if isinstance(code, HTTPStatus):
            code = code.value
        LOG.debug('%s - - "%s" %s %s', self.client_address[0], self.requestline, code, size)

    def log_error(self, format: str, *args: Any) -> None:
        LOG.warning("%s - - %s", self.client_address[0], format % args)

    def log_message(self, format: str, *args: Any) -> None:
        LOG.info("%s - - %s", self.client_address[0], format % args)


def serve_file(writer: Any, request: FileRequestHandler) -> None:
    """Serve ``request`` from the document root, writing the status through ``writer``."""
    request.response_writer = writer
    request.serve_static()


class _ThreadingHTTPServer(ThreadingHTTPServer):
    handshake_timeout = 10.0

    def finish_request(self, request: Any, client_address: Any) -> None:
        # TLS handshakes run here, on the connection's own thread, not in accept()
        if isinstance(request, ssl.SSLSocket):
            timeout = request.gettimeout()
            request.settimeout(self.handshake_timeout)
            try:
                request.do_handshake()
            except OSError as exc:
                LOG.warning("TLS handshake with %s failed: %s", client_address[0], exc)
                return
            request.settimeout(timeout)
        super().finish_request(request, client_address)

    def handle_error(self, request: Any, client_address: Any) -> None:
        LOG.exception("Error handling request from %s", client_address[0])


class _ThreadingHTTPServerV6(_ThreadingHTTPServer):
    address_family = socket.AF_INET6


class HttpFileServer:
    name = "http"

    def __init__(self, root_dir: str | Path, app: Handler, host: str = "0.0.0.0", port: int = 80, logger: Optional[logging.Logger] = None) -> None:
        self.root_dir = Path(root_dir).resolve()
        self.app = app
        self.host = host
        self.port = port
        self.logger = logger or LOG
        self._server: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None
        self.sock_port: Optional[int] = None
        self.error: Optional[BaseException] = None
        self.ready = threading.Event()

    def _bind(self) -> ThreadingHTTPServer:
        server_cls = _ThreadingHTTPServerV6 if ":" in self.host else _ThreadingHTTPServer
        return server_cls(
            (self.host, self.port),
            lambda *args, **kwargs: FileRequestHandler(*args, app=self.app, directory=str(self.root_dir), **kwargs),
        )

    def serve(self, done: Optional[queue.Queue[str]] = None) -> None:
        """Bind and serve until shut down; always reports ``name`` on ``done`` when finished."""
        try:
            self.logger.info("Starting %s server on %s:%d...", self.name.upper(), self.host, self.port)
            try:
                server = self._bind()
            except OSError as exc:
                self.error = exc
                self.logger.error("%s server on %s:%d failed: %s", self.name.upper(), self.host, self.port, exc)
                return
            self._server = server
            self.sock_port = server.server_address[1]
            self.logger.info("%s server serving %s on %s:%d", self.name.upper(), self.root_dir, self.host, self.sock_port)
            self.ready.set()
            try:
                server.serve_forever()
            except Exception as exc:
                self.error = exc
                self.logger.exception("%s server on %s:%d stopped unexpectedly", self.name.upper(), self.host, self.sock_port)
        finally:
            self.ready.set()
            if done is not None:
                done.put(self.name)

    def start(self, done: Optional[queue.Queue[str]] = None) -> None:
        """Run ``serve`` on a daemon thread and return once the socket is bound (or binding failed)."""
        if self._thread and self._thread.is_alive():
            return
        self.error = None
        self.ready.clear()
        thr = threading.Thread(target=self.serve, args=(done,), name=f"{self.name}-listener", daemon=True)
        self._thread = thr
        thr.start()
        self.ready.wait()

    def stop(self) -> None:
        if self._server:
            try:
                self._server.shutdown()
            except Exception:
                self.logger.exception("Error shutting down %s server", self.name.upper())
            try:
                self._server.server_close()
            except Exception:
                self.logger.exception("Error closing %s server", self.name.upper())
            self._server = None
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2.0)
        self._thread = None
        self.sock_port = None


class HttpsFileServer(HttpFileServer):
    name = "https"

    def __init__(
        self,
        root_dir: str | Path,
        app: Handler,
        host: str = "0.0.0.0",
        port: int = 443,
        certfile: str | None = None,
        keyfile: str | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(root_dir, app, host=host, port=port, logger=logger)
        self.certfile = certfile
        self.keyfile = keyfile

    def _bind(self) -> ThreadingHTTPServer:
        if not self.certfile or not self.keyfile:
            raise FileNotFoundError(errno.ENOENT, "Both certfile and keyfile are required for HTTPS")
        server = super()._bind()
        try:
            # require TLS >= 1.2
            ctx = ssl.create_default_context(purpose=ssl.Purpose.CLIENT_AUTH)
            ctx.minimum_version = ssl.TLSVersion.TLSv1_2
            ctx.load_cert_chain(certfile=self.certfile, keyfile=self.keyfile)
            server.socket = ctx.wrap_socket(server.socket, server_side=True, do_handshake_on_connect=False)
        except Exception:
            server.server_close()
            raise
        return server
