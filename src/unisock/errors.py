"""Error kinds and exception hierarchy.

Every failing operation raises a subclass of UnisockError. Each subclass
also inherits the builtin exception the platform would have raised, so
existing handlers such as ``except ConnectionRefusedError`` keep working:

    UnisockError (OSError)
    ├── InvalidFormat (ValueError)
    ├── NotFound (FileNotFoundError)
    ├── ConnectionRefused (ConnectionRefusedError)
    ├── PermissionDenied (PermissionError)
    ├── AlreadyInUse
    ├── Timeout (TimeoutError)
    ├── UnsupportedPlatform
    └── TransportError
"""

from __future__ import annotations

import errno as errno_codes
import logging
import socket
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .address import Address

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Classification of a failed socket operation."""

    INVALID_FORMAT = "invalid_format"
    NOT_FOUND = "not_found"
    CONNECTION_REFUSED = "connection_refused"
    PERMISSION_DENIED = "permission_denied"
    ALREADY_IN_USE = "already_in_use"
    TIMEOUT = "timeout"
    UNSUPPORTED_PLATFORM = "unsupported_platform"
    TRANSPORT = "transport"


class UnisockError(OSError):
    """Base class for all unisock failures.

    Attributes:
        kind: The ErrorKind of this failure
        errno: Platform error number, if the failure came from the OS
        strerror: Human readable message
        address: The Address the operation targeted, if any
        operation: Name of the failing operation (e.g. "connect")
    """

    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        *,
        errno: int | None = None,
        address: Address | None = None,
        operation: str | None = None,
    ):
        if errno is not None:
            super().__init__(errno, message)
        else:
            super().__init__(message)
            self.strerror = message
        self.address = address
        self.operation = operation

    def __reduce__(self) -> tuple[Any, ...]:
        # OSError keeps (errno, message) in args, which __init__ does not take
        return (
            _restore_error,
            (type(self), self.strerror, self.errno, self.address, self.operation),
        )

    def __str__(self) -> str:
        target = " ".join(
            part for part in (self.operation, self._address_text()) if part
        )
        text = f"[{self.kind.value}] "
        if target:
            text += f"{target}: "
        text += self.strerror or ""
        if self.errno is not None:
            text += f" (errno {self.errno})"
        return text

    def _address_text(self) -> str:
        return str(self.address) if self.address is not None else ""

    def to_dict(self) -> dict[str, Any]:
        """Structured form, used by the CLI's JSON output."""
        return {
            "kind": self.kind.value,
            "message": self.strerror,
            "errno": self.errno,
            "operation": self.operation,
            "address": str(self.address) if self.address is not None else None,
        }


class InvalidFormat(UnisockError, ValueError):
    """Address text or path is malformed."""

    kind = ErrorKind.INVALID_FORMAT


class NotFound(UnisockError, FileNotFoundError):
    """Socket file or host does not exist."""

    kind = ErrorKind.NOT_FOUND


class ConnectionRefused(UnisockError, ConnectionRefusedError):
    """Nobody is listening at the address."""

    kind = ErrorKind.CONNECTION_REFUSED


class PermissionDenied(UnisockError, PermissionError):
    """The OS refused access to the address."""

    kind = ErrorKind.PERMISSION_DENIED


class AlreadyInUse(UnisockError):
    """The address is already bound."""

    kind = ErrorKind.ALREADY_IN_USE


class Timeout(UnisockError, TimeoutError):
    """A caller-configured deadline expired."""

    kind = ErrorKind.TIMEOUT


class UnsupportedPlatform(UnisockError):
    """The running platform cannot provide the requested socket kind."""

    kind = ErrorKind.UNSUPPORTED_PLATFORM


class TransportError(UnisockError):
    """Any other failure reported by the underlying transport."""

    kind = ErrorKind.TRANSPORT


def _restore_error(
    error_class: type[UnisockError],
    message: str | None,
    errno: int | None,
    address: Address | None,
    operation: str | None,
) -> UnisockError:
    """Unpickle a UnisockError through its keyword constructor."""
    return error_class(message or "", errno=errno, address=address, operation=operation)


_ERRNO_CLASSES: dict[int, type[UnisockError]] = {
    errno_codes.ENOENT: NotFound,
    errno_codes.ECONNREFUSED: ConnectionRefused,
    errno_codes.EACCES: PermissionDenied,
    errno_codes.EPERM: PermissionDenied,
    errno_codes.EADDRINUSE: AlreadyInUse,
    errno_codes.ETIMEDOUT: Timeout,
    errno_codes.EAGAIN: Timeout,
    errno_codes.ENAMETOOLONG: InvalidFormat,
    errno_codes.EAFNOSUPPORT: UnsupportedPlatform,
}
if hasattr(errno_codes, "EWOULDBLOCK"):
    _ERRNO_CLASSES.setdefault(errno_codes.EWOULDBLOCK, Timeout)


def classify(exc: BaseException) -> type[UnisockError]:
    """Pick the UnisockError subclass matching a platform exception.

    Checks the builtin exception type first, then the errno.
    """
    if isinstance(exc, UnisockError):
        return type(exc)
    if isinstance(exc, socket.gaierror):
        # Address resolution failures carry EAI_* codes, not errno values
        return NotFound
    if isinstance(exc, TimeoutError):
        return Timeout
    if isinstance(exc, FileNotFoundError):
        return NotFound
    if isinstance(exc, ConnectionRefusedError):
        return ConnectionRefused
    if isinstance(exc, PermissionError):
        return PermissionDenied
    if isinstance(exc, OSError) and exc.errno is not None:
        return _ERRNO_CLASSES.get(exc.errno, TransportError)
    return TransportError


def wrap(
    exc: OSError,
    operation: str | None = None,
    address: Address | None = None,
) -> UnisockError:
    """Build the classified UnisockError for a platform exception."""
    if isinstance(exc, UnisockError):
        return exc
    error_class = classify(exc)
    message = exc.strerror or str(exc) or type(exc).__name__
    # gaierror codes are EAI_* values, not errno values
    code = None if isinstance(exc, socket.gaierror) else exc.errno
    return error_class(message, errno=code, address=address, operation=operation)


@contextmanager
def translate(operation: str, address: Address | None = None) -> Iterator[None]:
    """Re-raise platform socket errors as classified UnisockErrors.

    The original exception is chained as ``__cause__``.
    """
    try:
        yield
    except UnisockError:
        raise
    except OSError as e:
        error = wrap(e, operation, address)
        logger.debug(f"{operation} failed: {error}")
        raise error from e
