"""Listening sockets over TCP or UNIX sockets.

A Listener owns one bound, listening socket and produces Streams of its own
kind from accept(). Listeners bound to a path remove their socket file when
closed, unless the file has since been replaced by another socket.
"""

from __future__ import annotations

import logging
import os
import socket
import stat
from collections.abc import Iterator
from typing import Any

from .address import Address, AddressKind
from .capability import check_unix_path
from .errors import (
    AlreadyInUse,
    ConnectionRefused,
    InvalidFormat,
    UnisockError,
    translate,
    wrap,
)
from .stream import Stream

logger = logging.getLogger(__name__)

DEFAULT_BACKLOG = 128

# Connect deadline when checking whether a socket file is stale
STALE_CHECK_TIMEOUT = 1.0


def _bind_network(address: Address, backlog: int) -> socket.socket:
    last_error: OSError | None = None
    for family, sockaddr in address.resolve(flags=socket.AI_PASSIVE):
        try:
            # create_server sets SO_REUSEADDR on POSIX, as TCP servers expect
            return socket.create_server(sockaddr, family=family, backlog=backlog)
        except OSError as e:
            last_error = e
    if last_error is None:
        last_error = OSError(f"no addresses resolved for {address}")
    raise wrap(last_error, "bind", address) from last_error


def _bind_unix(address: Address, backlog: int) -> socket.socket:
    path = check_unix_path(address, "bind")
    with translate("bind", address):
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.bind(path)
            sock.listen(backlog)
        except BaseException:
            sock.close()
            raise
    return sock


def _is_stale_socket(address: Address) -> bool:
    """True if ``address`` names a socket file nobody is accepting on."""
    try:
        st = os.lstat(address.path)
    except OSError:
        return False
    if not stat.S_ISSOCK(st.st_mode):
        return False
    try:
        Stream.connect(address, timeout=STALE_CHECK_TIMEOUT).close()
    except ConnectionRefused:
        return True
    except UnisockError:
        return False
    return False


class Listener:
    """A bound, listening TCP or UNIX socket.

    Usage:
        with Listener.bind(Address.parse("/run/app.sock")) as listener:
            stream, peer = listener.accept()
    """

    def __init__(
        self,
        kind: AddressKind,
        sock: socket.socket,
        *,
        socket_file: str | None = None,
    ):
        self._kind = kind
        self._sock = sock
        self._closed = False
        self._stream_timeout: float | None = None

        # Absolute path and (st_dev, st_ino) of the socket file we created
        self._socket_file = socket_file
        self._socket_id: tuple[int, int] | None = None
        if socket_file is not None:
            try:
                st = os.stat(socket_file)
                self._socket_id = (st.st_dev, st.st_ino)
            except OSError as e:
                logger.warning(f"Cannot stat socket file {socket_file}: {e}")

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def bind(
        cls,
        address: Address,
        backlog: int = DEFAULT_BACKLOG,
        mode: int | None = None,
    ) -> Listener:
        """Bind to ``address`` and start listening.

        NETWORK addresses try each resolved address in turn; port 0 picks
        an ephemeral port (see local_address()). PATH addresses create the
        socket file, which must not exist yet. ``mode`` sets the socket
        file's permission bits after binding. It is ignored for NETWORK
        addresses so one configured mode can serve both kinds of address;
        set_mode(), an explicit request for a file, raises instead.

        Raises:
            AlreadyInUse: The port is bound or the path exists
            PermissionDenied: The OS refused the bind
            InvalidFormat: Unnamed or overlong socket path
            NotFound: Hostname does not resolve, or the directory is missing
            UnsupportedPlatform: PATH address without AF_UNIX support
            TransportError: Any other platform failure
        """
        match address.kind:
            case AddressKind.NETWORK:
                sock = _bind_network(address, backlog)
                listener = cls(address.kind, sock)
            case AddressKind.PATH:
                sock = _bind_unix(address, backlog)
                listener = cls(
                    address.kind, sock, socket_file=os.path.abspath(address.path)
                )
                if mode is not None:
                    try:
                        listener.set_mode(mode)
                    except UnisockError:
                        listener.close()
                        raise
        logger.debug(f"Listening on {listener.local_address()}")
        return listener

    @classmethod
    def bind_reuse(
        cls,
        address: Address,
        mode: int | None = None,
        backlog: int = DEFAULT_BACKLOG,
    ) -> Listener:
        """Same as bind(), but take over stale UNIX socket files.

        If the path is a socket file that refuses connections, its previous
        owner is gone: the file is removed and the bind retried. Regular
        files are never removed.

        Two processes racing to take over the same stale path may both
        succeed in unlinking; only one bind wins. Permissions are applied
        after bind(), so a permissive umask leaves a short window where the
        socket is reachable with default permissions.
        """
        try:
            return cls.bind(address, backlog, mode)
        except AlreadyInUse:
            if address.kind is not AddressKind.PATH or not _is_stale_socket(address):
                raise
        logger.warning(f"Removing stale socket file {address.path}")
        with translate("unlink", address):
            os.unlink(address.path)
        return cls.bind(address, backlog, mode)

    # =========================================================================
    # Introspection
    # =========================================================================

    @property
    def kind(self) -> AddressKind:
        return self._kind

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def sock(self) -> socket.socket:
        """The underlying socket, for options this class does not wrap."""
        return self._sock

    def fileno(self) -> int:
        return self._sock.fileno()

    def local_address(self) -> Address:
        """The bound endpoint, with the actual port for ephemeral binds."""
        with translate("getsockname"):
            raw = self._sock.getsockname()
        return Address.from_sockaddr(self._kind, raw)

    @property
    def timeout(self) -> float | None:
        return self._sock.gettimeout()

    def set_timeout(self, timeout: float | None) -> None:
        """Set the accept() deadline in seconds; None blocks forever."""
        with translate("settimeout"):
            self._sock.settimeout(timeout)

    @property
    def stream_timeout(self) -> float | None:
        return self._stream_timeout

    def set_stream_timeout(self, timeout: float | None) -> None:
        """Set the read/write deadline given to each accepted Stream.

        Accepted sockets do not inherit the listener's own timeout; None
        leaves them blocking.
        """
        if timeout is not None and timeout < 0:
            raise ValueError(f"timeout cannot be negative, got {timeout}")
        self._stream_timeout = timeout

    def set_mode(self, mode: int) -> None:
        """Set the permission bits of the socket file (PATH listeners only)."""
        match self._kind:
            case AddressKind.NETWORK:
                raise InvalidFormat(
                    "network listeners have no socket file", operation="chmod"
                )
            case AddressKind.PATH:
                with translate("chmod", Address.unix(self._socket_file)):
                    os.chmod(self._socket_file, mode)

    # =========================================================================
    # Accepting
    # =========================================================================

    def accept(self) -> tuple[Stream, Address]:
        """Wait for the next connection.

        Returns:
            The connected Stream and the peer's Address, both of this
            listener's kind. UNIX peers are usually Address.unnamed().
        """
        with translate("accept"):
            conn, raw = self._sock.accept()
        stream = Stream(self._kind, conn)
        if self._stream_timeout is not None:
            try:
                stream.set_timeout(self._stream_timeout)
            except UnisockError:
                stream.close()
                raise
        peer = Address.from_sockaddr(self._kind, raw)
        logger.debug(f"Accepted connection from {peer}")
        return stream, peer

    def incoming(self) -> Iterator[Stream]:
        """Yield accepted streams until the listener is closed.

        Errors from accept() propagate to the caller.
        """
        while not self._closed:
            stream, _ = self.accept()
            yield stream

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        """Stop listening and remove the socket file, if any.

        Failing to remove the file is logged, not raised. Calling close()
        again does nothing.
        """
        if self._closed:
            return
        self._closed = True
        self._sock.close()
        if self._socket_file is not None:
            self._remove_socket_file()
        logger.debug(f"Closed {self._kind.value} listener")

    def _remove_socket_file(self) -> None:
        path = self._socket_file
        try:
            st = os.lstat(path)
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning(f"Cannot stat socket file {path}: {e}")
            return

        if self._socket_id != (st.st_dev, st.st_ino):
            # Somebody else's socket now lives at this path
            logger.debug(f"Socket file {path} was replaced, leaving it")
            return

        try:
            os.unlink(path)
        except OSError as e:
            logger.warning(f"Failed to remove socket file {path}: {e}")

    def __enter__(self) -> Listener:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else f"fd={self.fileno()}"
        return f"<Listener {self._kind.value} {state}>"
