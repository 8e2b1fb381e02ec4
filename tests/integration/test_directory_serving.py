"""Integration tests for serving a directory tree as the body."""

from pathlib import Path

import pytest
import requests

from tests.utils.http import send_raw_request, wait_for_log_line

pytestmark = pytest.mark.integration


@pytest.fixture(name="site")
def site_fixture(tmp_path: Path) -> Path:
    """Served directory with a secret file placed beside it."""
    root = tmp_path / "site"
    (root / "nested").mkdir(parents=True)
    (root / "index.html").write_text("<p>index</p>")
    (root / "nested" / "data.txt").write_text("nested data")
    (tmp_path / "secret.txt").write_text("top secret")
    return root


@pytest.fixture(name="site_server")
def site_server_fixture(start_server, site: Path):
    """Server answering with files from the site directory."""
    return start_server("-d", f"@{site}")


def test_serves_files_by_path(site_server) -> None:
    """Request paths map onto files below the directory."""
    index = requests.get(f"{site_server['base_url']}/index.html", timeout=5)
    nested = requests.get(f"{site_server['base_url']}/nested/data.txt", timeout=5)

    assert index.text == "<p>index</p>"
    assert index.headers["Content-Type"] == "text/html"
    assert nested.text == "nested data"


def test_access_log_names_served_file(site_server, site: Path) -> None:
    """The access line carries the resolved file in brackets."""
    requests.get(f"{site_server['base_url']}/nested/data.txt", timeout=5)

    served = (site / "nested" / "data.txt").as_posix()
    assert wait_for_log_line(
        site_server["log_file"], f"/nested/data.txt [{served}] HTTP/1.1"
    )


@pytest.mark.parametrize(
    "target",
    [
        "/../secret.txt",
        "/../../etc/passwd",
        "/%2e%2e/%2e%2e/etc/passwd",
        "/%2e%2e/secret.txt",
        "/nested/../../secret.txt",
        "/..%2fsecret.txt",
    ],
)
def test_traversal_never_leaks_outside_files(site_server, target: str) -> None:
    """Parent segments cannot reach files beside the served directory."""
    received = send_raw_request(
        site_server["host"],
        site_server["port"],
        f"GET {target} HTTP/1.1\r\nHost: localhost\r\n\r\n".encode(),
    )

    assert b"top secret" not in received
    assert b"root:" not in received
    assert received == b""


def test_missing_file_drops_connection(site_server) -> None:
    """A missing file closes the connection without a response."""
    received = send_raw_request(
        site_server["host"],
        site_server["port"],
        b"GET /missing.txt HTTP/1.1\r\nHost: localhost\r\n\r\n",
    )

    assert received == b""
    assert wait_for_log_line(site_server["log_file"], "Unable to stat file")


def test_directory_request_drops_connection(site_server) -> None:
    """Requesting a directory itself is not served."""
    received = send_raw_request(
        site_server["host"],
        site_server["port"],
        b"GET /nested HTTP/1.1\r\nHost: localhost\r\n\r\n",
    )

    assert received == b""
