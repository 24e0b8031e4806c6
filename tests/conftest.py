"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Iterator

import pytest

from unisock import SUPPORTS_UNIX, Address, Listener


@pytest.fixture
def socket_dir() -> Iterator[str]:
    """Short-lived directory for socket files.

    pytest's tmp_path can exceed the sun_path limit, so use a short prefix
    under the system temp directory instead.
    """
    with tempfile.TemporaryDirectory(prefix="us-") as path:
        yield path


@pytest.fixture
def socket_path(socket_dir: str) -> str:
    """A fresh, not yet existing socket path."""
    return os.path.join(socket_dir, "test.sock")


@pytest.fixture
def tcp_listener() -> Iterator[Listener]:
    """Listener on an ephemeral loopback port."""
    listener = Listener.bind(Address.parse("127.0.0.1:0"))
    listener.set_timeout(5.0)
    yield listener
    listener.close()


@pytest.fixture
def unix_listener(socket_path: str) -> Iterator[Listener]:
    """Listener on a fresh UNIX socket path."""
    if not SUPPORTS_UNIX:
        pytest.skip("AF_UNIX not available")
    listener = Listener.bind(Address.unix(socket_path))
    listener.set_timeout(5.0)
    yield listener
    listener.close()


@pytest.fixture(params=["network", "path"])
def any_listener(request: pytest.FixtureRequest) -> Listener:
    """Runs a test once against a TCP listener and once against a UNIX one."""
    if request.param == "network":
        return request.getfixturevalue("tcp_listener")
    return request.getfixturevalue("unix_listener")
