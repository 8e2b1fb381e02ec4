"""Integration tests for graceful shutdown on signals."""

import signal
import socket

import pytest
import requests

from tests.utils.http import read_http_response, send_signal_to_process

pytestmark = pytest.mark.integration


@pytest.mark.parametrize("signum", [signal.SIGTERM, signal.SIGINT])
def test_signal_stops_server_cleanly(server_process, signum) -> None:
    """SIGTERM and SIGINT both end the process with status 0."""
    requests.get(server_process["base_url"], timeout=5)

    send_signal_to_process(server_process["process"].pid, signum)

    assert server_process["process"].wait(timeout=15) == 0
    log_text = server_process["log_file"].read_text()
    assert "Shutting down after 1 responses" in log_text
    assert "Server shutdown complete" in log_text


def test_idle_keep_alive_connection_is_closed(server_process) -> None:
    """An idle persistent connection does not hold up shutdown."""
    with socket.create_connection(
        (server_process["host"], server_process["port"]), timeout=10
    ) as sock:
        sock.sendall(b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\n")
        assert read_http_response(sock).status_code == 200

        send_signal_to_process(server_process["process"].pid, signal.SIGTERM)

        assert server_process["process"].wait(timeout=15) == 0
        assert sock.recv(4096) == b""


def test_no_new_connections_after_shutdown(server_process) -> None:
    """The listening socket is closed once the process has exited."""
    send_signal_to_process(server_process["process"].pid, signal.SIGTERM)
    assert server_process["process"].wait(timeout=15) == 0

    with pytest.raises(requests.exceptions.ConnectionError):
        requests.get(server_process["base_url"], timeout=2)
