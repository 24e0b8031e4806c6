"""Unified TCP and UNIX socket addresses, streams and listeners.

Many applications don't care whether a service lives on a TCP port or a
UNIX socket path. This package lets them treat the two the same way, as a
matter of run-time configuration:
- Address - a TCP host:port or a UNIX socket path, parsed from text
- Stream - a connected byte stream of either kind
- Listener - a bound listening socket of either kind

On platforms without AF_UNIX (Windows), only TCP is available and PATH
operations raise UnsupportedPlatform; check SUPPORTS_UNIX to branch early.
"""

from .address import Address, AddressKind
from .capability import MAX_UNIX_PATH, SUPPORTS_UNIX, supports
from .config import SocketConfig
from .errors import (
    AlreadyInUse,
    ConnectionRefused,
    ErrorKind,
    InvalidFormat,
    NotFound,
    PermissionDenied,
    Timeout,
    TransportError,
    UnisockError,
    UnsupportedPlatform,
)
from .listener import DEFAULT_BACKLOG, Listener
from .stream import ReadHalf, Shutdown, Stream, WriteHalf

__version__ = "0.1.0"

__all__ = [
    # Addresses
    "Address",
    "AddressKind",
    # Connections
    "Stream",
    "ReadHalf",
    "WriteHalf",
    "Shutdown",
    "Listener",
    "DEFAULT_BACKLOG",
    # Configuration
    "SocketConfig",
    # Platform capability
    "SUPPORTS_UNIX",
    "MAX_UNIX_PATH",
    "supports",
    # Errors
    "ErrorKind",
    "UnisockError",
    "InvalidFormat",
    "NotFound",
    "ConnectionRefused",
    "PermissionDenied",
    "AlreadyInUse",
    "Timeout",
    "UnsupportedPlatform",
    "TransportError",
]
