"""Integration tests for exiting after a number of responses."""

import base64
import json
import threading

import pytest
import requests

pytestmark = pytest.mark.integration


def test_exits_after_count_sequential(start_server) -> None:
    """The process exits cleanly once the count is served."""
    server = start_server("-c", "3", "-d", "ok")

    statuses = [requests.get(server["base_url"], timeout=5).status_code for _ in range(3)]

    assert statuses == [200, 200, 200]
    assert server["process"].wait(timeout=15) == 0
    assert "Response count reached" in server["log_file"].read_text()


def test_exits_after_count_concurrent(start_server) -> None:
    """Concurrent clients are all answered before the count shutdown."""
    server = start_server("-c", "5", "-d", "ok", "--log-format", "json")
    results = []
    lock = threading.Lock()

    def fetch():
        response = requests.get(server["base_url"], timeout=5)
        with lock:
            results.append((response.status_code, response.text))

    threads = [threading.Thread(target=fetch) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results == [(200, "ok")] * 5
    assert server["process"].wait(timeout=15) == 0

    records = [
        json.loads(line)
        for line in server["log_file"].read_text().splitlines()
        if line.strip()
    ]
    counts = {
        record["event"]: record["count"]
        for record in records
        if record.get("event") in ("count_reached", "server_stopped")
    }
    assert counts == {"count_reached": 5, "server_stopped": 5}
    served = [record for record in records if record.get("event") == "request_served"]
    assert len(served) == 5


def test_unauthorized_requests_are_not_counted(start_server) -> None:
    """401 replies do not move the process towards its exit count."""
    server = start_server("-c", "1", "-u", "alice:secret")

    denied = requests.get(server["base_url"], timeout=5)
    assert denied.status_code == 401
    assert denied.headers["WWW-Authenticate"] == 'Basic realm="Auth Required"'
    assert server["process"].poll() is None

    allowed = requests.get(server["base_url"], auth=("alice", "secret"), timeout=5)
    assert allowed.status_code == 200
    assert server["process"].wait(timeout=15) == 0


def test_wrong_password_is_rejected(start_server) -> None:
    """Credentials must match exactly."""
    server = start_server("-u", "alice:secret")
    token = base64.b64encode(b"alice:wrong").decode()

    response = requests.get(
        server["base_url"], headers={"Authorization": f"Basic {token}"}, timeout=5
    )

    assert response.status_code == 401
