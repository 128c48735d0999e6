from __future__ import annotations

import logging
import queue
from typing import List, Optional

from .config import ServerConfig, format_address
from .http_server import HttpFileServer, HttpsFileServer, serve_file
from .middleware import Handler, log_requests

LOG = logging.getLogger(__name__)


def build_app(config: ServerConfig) -> Handler:
    """The routing table shared by every listener: all paths go to the logged file responder."""
    return log_requests(serve_file, hold_time=config.hold_time)


class webServer:
    """
    Supervises the plain HTTP and TLS listeners described by a ``ServerConfig``.

    Each configured listener binds and serves on its own thread and reports
    its name on a completion queue when it terminates. ``wait`` returns only
    once every started listener has reported.
    """

    def __init__(self, config: ServerConfig, logger: Optional[logging.Logger] = None) -> None:
        self.config = config
        self.logger = logger or LOG
        self.app = build_app(config)
        self._done: queue.Queue[str] = queue.Queue()
        self._http: Optional[HttpFileServer] = None
        self._https: Optional[HttpsFileServer] = None
        self._active = 0

    @property
    def listeners(self) -> List[HttpFileServer]:
        return [srv for srv in (self._http, self._https) if srv is not None]

    @property
    def http_sock_port(self) -> Optional[int]:
        return self._http.sock_port if self._http else None

    @property
    def https_sock_port(self) -> Optional[int]:
        return self._https.sock_port if self._https else None

    @property
    def failed(self) -> bool:
        return any(srv.error is not None for srv in self.listeners)

    def start(self) -> None:
        """Start a listener for each configured address."""
        cfg = self.config
        if cfg.listen is not None:
            host, port = cfg.listen
            self._http = HttpFileServer(cfg.document_root, self.app, host=host, port=port, logger=self.logger)
            self._http.start(self._done)
            self._active += 1
        if cfg.listen_tls is not None:
            host, port = cfg.listen_tls
            self._https = HttpsFileServer(
                cfg.document_root,
                self.app,
                host=host,
                port=port,
                certfile=cfg.certfile,
                keyfile=cfg.keyfile,
                logger=self.logger,
            )
            self._https.start(self._done)
            self._active += 1
        if not self._active:
            self.logger.warning("No listen addresses configured, nothing to serve")

    def wait(self) -> List[str]:
        """Block until every started listener has terminated; returns their names in order of termination."""
        stopped: List[str] = []
        while self._active > 0:
            name = self._done.get()
            self._active -= 1
            stopped.append(name)
            self.logger.info("%s server stopped, %d still running", name.upper(), self._active)
        return stopped

    def run(self) -> List[str]:
        self.start()
        return self.wait()

    def stop(self) -> None:
        """Stop all listeners and release ports."""
        for attr in ("_https", "_http"):
            listener = getattr(self, attr)
            if listener is None:
                continue
            try:
                listener.stop()
            except Exception:
                self.logger.exception("Error stopping %s server", attr.lstrip("_").upper())

    def describe(self) -> str:
        parts = []
        if self.config.listen is not None:
            parts.append(f"http://{format_address(self.config.listen)}")
        if self.config.listen_tls is not None:
            parts.append(f"https://{format_address(self.config.listen_tls)}")
        return ", ".join(parts) or "no listeners"
