"""Socket configuration.

Defaults can be overridden through environment variables:

    UNISOCK_BACKLOG      listen backlog (positive integer)
    UNISOCK_TIMEOUT      connect/accept/read/write deadline in seconds,
                         empty for none
    UNISOCK_UNIX_MODE    octal permission bits for UNIX socket files
    UNISOCK_REUSE_STALE  take over stale UNIX socket files (1/true/yes)
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TypeVar

from .address import Address
from .listener import DEFAULT_BACKLOG, Listener
from .stream import Stream

ENV_BACKLOG = "UNISOCK_BACKLOG"
ENV_TIMEOUT = "UNISOCK_TIMEOUT"
ENV_UNIX_MODE = "UNISOCK_UNIX_MODE"
ENV_REUSE_STALE = "UNISOCK_REUSE_STALE"

T = TypeVar("T")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"", "0", "false", "no", "off"}


@dataclass
class SocketConfig:
    """Options applied when binding listeners and connecting streams."""

    backlog: int = DEFAULT_BACKLOG
    timeout: float | None = None
    unix_mode: int | None = None
    reuse_stale: bool = False

    def __post_init__(self) -> None:
        if self.backlog <= 0:
            raise ValueError(f"backlog must be positive, got {self.backlog}")
        if self.timeout is not None and self.timeout < 0:
            raise ValueError(f"timeout cannot be negative, got {self.timeout}")
        if self.unix_mode is not None and not 0 <= self.unix_mode <= 0o7777:
            raise ValueError(f"unix_mode out of range: {oct(self.unix_mode)}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SocketConfig:
        """Build a config from defaults and ``UNISOCK_*`` variables.

        Args:
            environ: Mapping to read instead of os.environ

        Raises:
            ValueError: If a variable cannot be parsed, naming the variable
        """
        env = os.environ if environ is None else environ
        config = cls()

        if value := env.get(ENV_BACKLOG):
            config.backlog = _parse(ENV_BACKLOG, value, int)
        if ENV_TIMEOUT in env:
            value = env[ENV_TIMEOUT].strip()
            config.timeout = _parse(ENV_TIMEOUT, value, float) if value else None
        if value := env.get(ENV_UNIX_MODE):
            config.unix_mode = _parse(ENV_UNIX_MODE, value, lambda v: int(v, 8))
        if ENV_REUSE_STALE in env:
            config.reuse_stale = _parse_bool(ENV_REUSE_STALE, env[ENV_REUSE_STALE])

        # Re-run range checks on the overridden values
        config.__post_init__()
        return config

    def bind(self, address: Address) -> Listener:
        """Bind a listener using this configuration.

        The timeout applies to accept() and to every accepted Stream.
        """
        if self.reuse_stale:
            listener = Listener.bind_reuse(address, mode=self.unix_mode, backlog=self.backlog)
        else:
            listener = Listener.bind(address, backlog=self.backlog, mode=self.unix_mode)
        if self.timeout is not None:
            listener.set_timeout(self.timeout)
            listener.set_stream_timeout(self.timeout)
        return listener

    def connect(self, address: Address) -> Stream:
        """Connect a stream using this configuration's timeout."""
        return Stream.connect(address, timeout=self.timeout)


def _parse(name: str, value: str, convert: Callable[[str], T]) -> T:
    try:
        return convert(value.strip())
    except ValueError as e:
        raise ValueError(f"Invalid {name}={value!r}: {e}") from e


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid {name}={value!r}: expected one of 1/0, true/false, yes/no")
