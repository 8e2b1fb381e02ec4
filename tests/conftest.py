"""Shared pytest fixtures for integration and unit tests."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from typing import Callable, Generator, TypedDict

import pytest

from tests.utils.http import reserve_port, wait_for_port

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SERVER_ENTRYPOINT = PROJECT_ROOT / "main.py"
HOST = "127.0.0.1"


class ServerProcessInfo(TypedDict):
    """Metadata describing a running server fixture instance."""

    base_url: str
    host: str
    port: int
    process: subprocess.Popen[str]
    log_file: Path


def server_command(address: str, *extra_args: str) -> list[str]:
    """Build the argument vector used to run the server entrypoint."""
    return [sys.executable, str(SERVER_ENTRYPOINT), address, *extra_args]


def _stop_process(process: subprocess.Popen[str]) -> None:
    if process.poll() is None:
        process.terminate()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait(timeout=5)


def _launch_server(
    log_file: Path, extra_args: list[str], scheme: str = "http"
) -> ServerProcessInfo:
    port = reserve_port(HOST)
    args = server_command(
        f"{HOST}:{port}",
        "--log-destination",
        str(log_file),
        "--log-format",
        "text",
        *extra_args,
    )
    process = subprocess.Popen(  # pylint: disable=consider-using-with
        args,
        cwd=PROJECT_ROOT,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )
    try:
        wait_for_port(HOST, port)
    except Exception:
        _stop_process(process)
        stdout, stderr = process.communicate(timeout=1)
        print(f"\nServer stdout:\n{stdout}")
        print(f"\nServer stderr:\n{stderr}")
        raise

    return {
        "base_url": f"{scheme}://{HOST}:{port}",
        "host": HOST,
        "port": port,
        "process": process,
        "log_file": log_file,
    }


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Expose the repository root path to tests."""

    return PROJECT_ROOT


@pytest.fixture(name="start_server")
def _start_server(
    tmp_path: Path,
) -> Generator[Callable[..., ServerProcessInfo], None, None]:
    """Return a factory that launches the server with extra CLI arguments.

    Every launched process is terminated when the test finishes.
    """
    launched: list[ServerProcessInfo] = []

    def factory(*extra_args: str, scheme: str = "http") -> ServerProcessInfo:
        log_file = tmp_path / f"server-{len(launched)}.log"
        info = _launch_server(log_file, list(extra_args), scheme)
        launched.append(info)
        return info

    yield factory

    for info in launched:
        _stop_process(info["process"])
        info["process"].communicate(timeout=5)


@pytest.fixture(name="server_process")
def _server_process(
    start_server: Callable[..., ServerProcessInfo],
) -> ServerProcessInfo:
    """Launch the stub server with a literal body and a custom header."""

    return start_server("-d", "hello", "-H", "X-Stub: yes")


@pytest.fixture()
def base_url(server_process: ServerProcessInfo) -> str:
    """Expose the running server base URL to integration tests."""

    return server_process["base_url"]
