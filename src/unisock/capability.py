"""Platform capability surface.

Path (UNIX domain) sockets need ``AF_UNIX``, which CPython does not expose
on Windows even though the OS has supported it since 2017. Network sockets
are always available.

Callers can branch on ``SUPPORTS_UNIX`` up front; otherwise any Path-variant
bind or connect fails with UnsupportedPlatform.
"""

from __future__ import annotations

import os
import socket
import sys

from .address import Address, AddressKind
from .errors import InvalidFormat, UnsupportedPlatform

SUPPORTS_UNIX = hasattr(socket, "AF_UNIX")
"""Whether Path-variant streams and listeners are supported here."""

# Size of sockaddr_un.sun_path
if sys.platform == "darwin" or "bsd" in sys.platform:
    MAX_UNIX_PATH = 104
else:
    MAX_UNIX_PATH = 108


def supports(kind: AddressKind) -> bool:
    """Check whether streams and listeners of this kind can be created."""
    match kind:
        case AddressKind.NETWORK:
            return True
        case AddressKind.PATH:
            # Read at call time so the flag can be narrowed in tests
            return SUPPORTS_UNIX


def require(kind: AddressKind, operation: str) -> None:
    """Raise UnsupportedPlatform unless ``kind`` is available.

    Args:
        kind: The address kind the operation needs
        operation: Operation name used in the error message

    Raises:
        UnsupportedPlatform: If the platform lacks support for ``kind``
    """
    if not supports(kind):
        raise UnsupportedPlatform(
            f"{kind.value} sockets are not supported on {sys.platform}",
            operation=operation,
        )


def unix_family() -> int:
    """Return ``socket.AF_UNIX``, failing cleanly where it does not exist."""
    require(AddressKind.PATH, "socket")
    return socket.AF_UNIX


def check_unix_path(address: Address, operation: str) -> str:
    """Validate a PATH address before handing it to the platform.

    Returns:
        The socket path

    Raises:
        UnsupportedPlatform: If AF_UNIX is unavailable
        InvalidFormat: For the unnamed address, a path containing NUL, or a
            path longer than ``MAX_UNIX_PATH`` bytes
    """
    require(AddressKind.PATH, operation)
    path = address.path or ""
    if not path:
        raise InvalidFormat(
            "unnamed socket address has no path", address=address, operation=operation
        )
    if "\x00" in path:
        raise InvalidFormat("socket path contains NUL", address=address, operation=operation)
    if len(os.fsencode(path)) > MAX_UNIX_PATH:
        raise InvalidFormat(
            f"socket path longer than {MAX_UNIX_PATH} bytes",
            address=address,
            operation=operation,
        )
    return path
