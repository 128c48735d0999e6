from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Callable, Optional

LOG = logging.getLogger(__name__)

Handler = Callable[[Any, Any], None]


@dataclass(frozen=True)
class RequestContext:
    method: str
    url: str
    protocol: str

    @classmethod
    def from_request(cls, request: Any) -> "RequestContext":
        # requests rejected while parsing may lack any of these
        return cls(
            getattr(request, "command", None) or "-",
            getattr(request, "path", None) or "-",
            getattr(request, "request_version", None) or "-",
        )


def status_text(code: int) -> str:
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return ""


class StatusResponseWriter:
    """
    Response sink decorator that remembers the status code written through it.

    Only ``write_header`` is intercepted; headers and body writes reach the
    wrapped sink untouched. A handler that never writes a status leaves
    ``status_code`` at 200, which is what the sink itself would report.
    """

    def __init__(self, writer: Any) -> None:
        self.writer = writer
        self.status_code: int = HTTPStatus.OK
        self.wrote_header = False

    def write_header(self, code: int, message: Optional[str] = None) -> None:
        self.status_code = code
        self.wrote_header = True
        self.writer.write_header(code, message)

    def __getattr__(self, name: str) -> Any:
        return getattr(self.writer, name)


def log_requests(handler: Handler, hold_time: int = 0, logger: Optional[logging.Logger] = None) -> Handler:
    """
    Wrap ``handler`` so that every request gets an entry and an exit log line.

    When ``hold_time`` is non-zero the request thread sleeps that many seconds
    before the wrapped handler runs.
    """
    log = logger or LOG

    def logged(writer: Any, request: Any) -> None:
        start = time.perf_counter()
        ctx = RequestContext.from_request(request)
        sw = StatusResponseWriter(writer)
        log.info("%s %s %s", ctx.method, ctx.url, ctx.protocol)
        if hold_time:
            log.info("holding for %d seconds", hold_time)
            time.sleep(hold_time)
        try:
            handler(sw, request)
            log.debug("back from handler")
        except Exception:
            if not sw.wrote_header:
                sw.status_code = HTTPStatus.INTERNAL_SERVER_ERROR
                send_error = getattr(writer, "send_error", None)
                if send_error is not None:
                    send_error(HTTPStatus.INTERNAL_SERVER_ERROR)
            raise
        finally:
            took = (time.perf_counter() - start) * 1000.0
            log.info("    --> %d %s - %0.3fms", sw.status_code, status_text(sw.status_code), took)

    return logged
