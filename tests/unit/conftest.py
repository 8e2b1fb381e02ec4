"""Shared fixtures for unit tests."""

import logging

import pytest

from tests.utils.http import FakeSocket


@pytest.fixture(autouse=True)
def enable_log_propagation():
    """Ensure logs propagate to root so caplog can catch them."""
    logger = logging.getLogger("surl")
    old_propagate = logger.propagate
    logger.propagate = True
    yield
    logger.propagate = old_propagate


@pytest.fixture(name="fake_socket")
def _fake_socket():
    """Provide an empty recording socket."""
    return FakeSocket()
