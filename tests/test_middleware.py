from __future__ import annotations

import logging
import re
from types import SimpleNamespace

import pytest

from webServer import middleware
from webServer.middleware import RequestContext, StatusResponseWriter, log_requests, status_text


class _FakeSink:
    def __init__(self) -> None:
        self.statuses: list = []
        self.headers: list = []

    def write_header(self, code: int, message=None) -> None:
        self.statuses.append((code, message))

    def send_header(self, keyword: str, value: str) -> None:
        self.headers.append((keyword, value))


class _FakeClock:
    """Stands in for the time module so the hold time costs nothing."""

    def __init__(self) -> None:
        self.now = 100.0
        self.events: list = []

    def perf_counter(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.events.append(("sleep", seconds))
        self.now += seconds


def _request(method: str = "GET", path: str = "/index.html", version: str = "HTTP/1.1"):
    return SimpleNamespace(command=method, path=path, request_version=version)


def _messages(caplog: pytest.LogCaptureFixture) -> list[str]:
    return [r.getMessage() for r in caplog.records if r.name == "webServer.middleware"]


def test_writer_defaults_to_ok() -> None:
    sw = StatusResponseWriter(_FakeSink())
    assert sw.status_code == 200


def test_writer_records_and_forwards_status() -> None:
    sink = _FakeSink()
    sw = StatusResponseWriter(sink)
    sw.write_header(404, "Nope")
    assert sw.status_code == 404
    assert sink.statuses == [(404, "Nope")]


def test_writer_passes_other_calls_through() -> None:
    sink = _FakeSink()
    sw = StatusResponseWriter(sink)
    sw.send_header("Content-Type", "text/plain")
    assert sink.headers == [("Content-Type", "text/plain")]
    assert sw.status_code == 200


def test_request_context_from_handler() -> None:
    ctx = RequestContext.from_request(_request("HEAD", "/a?b=1", "HTTP/1.0"))
    assert ctx == RequestContext("HEAD", "/a?b=1", "HTTP/1.0")


def test_status_text() -> None:
    assert status_text(200) == "OK"
    assert status_text(404) == "Not Found"
    assert status_text(599) == ""


def test_logs_entry_then_exit_with_written_status(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="webServer")

    def handler(w, r) -> None:
        w.write_header(404)

    log_requests(handler)(_FakeSink(), _request(path="/missing"))

    msgs = _messages(caplog)
    assert len(msgs) == 2
    assert msgs[0] == "GET /missing HTTP/1.1"
    assert re.fullmatch(r"    --> 404 Not Found - \d+\.\d{3}ms", msgs[1])


def test_logs_ok_when_handler_writes_no_status(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="webServer")
    sink = _FakeSink()

    log_requests(lambda w, r: None)(sink, _request())

    msgs = _messages(caplog)
    assert msgs[-1].startswith("    --> 200 OK - ")
    assert sink.statuses == []


def test_handler_receives_status_capturing_writer() -> None:
    seen = []
    sink = _FakeSink()
    log_requests(lambda w, r: seen.append(w))(sink, _request())
    assert isinstance(seen[0], StatusResponseWriter)
    assert seen[0].writer is sink


def test_each_request_gets_fresh_status(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="webServer")
    codes = iter([301, None])

    def handler(w, r) -> None:
        code = next(codes)
        if code is not None:
            w.write_header(code)

    app = log_requests(handler)
    app(_FakeSink(), _request())
    app(_FakeSink(), _request())

    exits = [m for m in _messages(caplog) if m.startswith("    -->")]
    assert exits[0].startswith("    --> 301 Moved Permanently")
    assert exits[1].startswith("    --> 200 OK")


def test_hold_time_sleeps_before_handler(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="webServer")
    clock = _FakeClock()
    monkeypatch.setattr(middleware, "time", clock)

    def handler(w, r) -> None:
        clock.events.append(("handler", clock.now))

    log_requests(handler, hold_time=2)(_FakeSink(), _request())

    assert clock.events == [("sleep", 2), ("handler", 102.0)]
    msgs = _messages(caplog)
    assert "holding for 2 seconds" in msgs
    assert msgs[-1] == "    --> 200 OK - 2000.000ms"


def test_zero_hold_time_does_not_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    clock = _FakeClock()
    monkeypatch.setattr(middleware, "time", clock)
    log_requests(lambda w, r: None, hold_time=0)(_FakeSink(), _request())
    assert clock.events == []


def test_handler_exception_still_logs_exit(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="webServer")

    def handler(w, r) -> None:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        log_requests(handler)(_FakeSink(), _request())

    msgs = _messages(caplog)
    assert msgs[0] == "GET /index.html HTTP/1.1"
    assert msgs[-1].startswith("    --> 500 Internal Server Error - ")


def test_custom_logger_is_used(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="custom.access")
    log_requests(lambda w, r: None, logger=logging.getLogger("custom.access"))(_FakeSink(), _request())
    assert [r.name for r in caplog.records if r.name == "custom.access"] == ["custom.access", "custom.access"]


class _ErrorSink(_FakeSink):
    def send_error(self, code: int, message=None) -> None:
        self.write_header(code, message)


def test_handler_exception_sends_500_when_no_status_written(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="webServer")
    sink = _ErrorSink()

    def handler(w, r) -> None:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        log_requests(handler)(sink, _request())

    assert sink.statuses == [(500, None)]
    assert _messages(caplog)[-1].startswith("    --> 500 Internal Server Error - ")


def test_handler_exception_after_status_keeps_written_status(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="webServer")
    sink = _ErrorSink()

    def handler(w, r) -> None:
        w.write_header(200)
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        log_requests(handler)(sink, _request())

    assert sink.statuses == [(200, None)]
    assert _messages(caplog)[-1].startswith("    --> 200 OK - ")
