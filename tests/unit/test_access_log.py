"""Unit tests for access log records."""

import logging

import pytest

from surl.domain.http_types import HttpRequest, RequestOutcome
from surl.pipeline.access_log import access_logged, capture_dump, format_access_line
from surl.pipeline.io import ResponseWriter


def _request(**headers):
    return HttpRequest(
        "POST",
        "/submit?x=1",
        "/submit",
        "HTTP/1.1",
        headers,
        b"body",
        raw_head=b"POST /submit?x=1 HTTP/1.1\r\nContent-Length: 4\r\n\r\n",
        raw_body=b"body",
    )


def test_capture_dump_with_and_without_body():
    """The dump holds the head, and the body only when asked."""
    request = _request()

    assert capture_dump(request, include_body=False) == request.raw_head
    assert capture_dump(request, include_body=True) == request.raw_head + b"body"


def test_format_access_line(fake_socket):
    """The line records client, request line, status, size and timing."""
    request = _request(referer="http://ref", **{"user-agent": "curl/8"})
    writer = ResponseWriter(fake_socket, request)
    writer.headers.add("Content-Length", "2")
    writer.write(b"ok")

    line = format_access_line(request, writer, "10.0.0.1:4000", RequestOutcome(), 1.5)

    assert line == (
        '10.0.0.1:4000 "POST /submit?x=1 HTTP/1.1" 200 2 '
        '"http://ref" "curl/8" 1.500ms'
    )


def test_format_access_line_defaults_and_served_file(fake_socket):
    """Missing fields render as '-' and served files are bracketed."""
    request = _request()
    writer = ResponseWriter(fake_socket, request)

    line = format_access_line(
        request, writer, "c", RequestOutcome(served_file="/srv/a.txt"), 0.0
    )

    assert '"POST /submit?x=1 [/srv/a.txt] HTTP/1.1" - 0 "-" "-"' in line


def test_format_access_line_appends_dump(fake_socket):
    """A dump follows the line as an indented hex block."""
    request = _request()
    line = format_access_line(
        request,
        ResponseWriter(fake_socket, request),
        "c",
        RequestOutcome(dump=b"GET"),
        0.0,
    )

    first, dump = line.split("\n", 1)
    assert first.endswith("ms")
    assert dump.startswith("    00000000  47 45 54")


def test_access_logged_emits_one_record(fake_socket, caplog):
    """The context manager logs a request_served record on exit."""
    caplog.set_level(logging.INFO)
    request = _request()
    writer = ResponseWriter(fake_socket, request)

    with access_logged(request, writer, "c", dump=True) as outcome:
        assert outcome.dump == request.raw_head
        writer.headers.add("Content-Length", "0")
        writer.write_header(202)

    served = [r for r in caplog.records if getattr(r, "event", None) == "request_served"]
    assert len(served) == 1
    record = served[0]
    assert record.status_code == 202
    assert record.bytes_out == 0
    assert record.route == "/submit?x=1"
    assert record.name == "surl.access"
    assert "00000000" in record.getMessage()


def test_access_logged_logs_when_block_raises(fake_socket, caplog):
    """Aborted requests are still logged."""
    caplog.set_level(logging.INFO)
    request = _request()

    with pytest.raises(RuntimeError):
        with access_logged(request, ResponseWriter(fake_socket, request), "c"):
            raise RuntimeError("aborted")

    served = [r for r in caplog.records if getattr(r, "event", None) == "request_served"]
    assert len(served) == 1
    assert served[0].status_code is None
