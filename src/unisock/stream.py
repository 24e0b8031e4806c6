"""Connected byte streams over TCP or UNIX sockets.

A Stream wraps exactly one connected ``socket.socket`` and is tagged with the
AddressKind it was created for. Reads and writes go straight to the socket:
no buffering, no retry loops, partial writes are returned to the caller.

Deadlines are the socket's own timeout (see Stream.set_timeout). Closing the
stream from another thread is the only way to interrupt a blocking call.
"""

from __future__ import annotations

import logging
import socket
from enum import Enum
from typing import Any

from .address import Address, AddressKind
from .capability import check_unix_path
from .errors import translate

logger = logging.getLogger(__name__)

Buffer = bytearray | memoryview


class Shutdown(str, Enum):
    """Direction(s) to shut down on a stream."""

    READ = "read"
    WRITE = "write"
    BOTH = "both"

    @property
    def how(self) -> int:
        """The ``socket.SHUT_*`` constant for this direction."""
        match self:
            case Shutdown.READ:
                return socket.SHUT_RD
            case Shutdown.WRITE:
                return socket.SHUT_WR
            case Shutdown.BOTH:
                return socket.SHUT_RDWR


def _connect_network(address: Address, timeout: float | None) -> socket.socket:
    # create_connection tries every resolved address in order
    with translate("connect", address):
        return socket.create_connection(address.sockaddr(), timeout=timeout)


def _connect_unix(address: Address, timeout: float | None) -> socket.socket:
    path = check_unix_path(address, "connect")
    with translate("connect", address):
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.settimeout(timeout)
            sock.connect(path)
        except BaseException:
            sock.close()
            raise
    return sock


class Stream:
    """A duplex byte stream over one connected TCP or UNIX socket.

    Create with Stream.connect or Listener.accept. The stream owns its
    socket exclusively; close() releases it once and later calls are no-ops.

    Usage:
        with Stream.connect(Address.parse("127.0.0.1:8080")) as stream:
            stream.write(b"ping")
            data = stream.recv(4)
    """

    def __init__(self, kind: AddressKind, sock: socket.socket):
        self._kind = kind
        self._sock = sock
        self._closed = False

    @classmethod
    def connect(cls, address: Address, timeout: float | None = None) -> Stream:
        """Open a connection to ``address``.

        Args:
            address: NETWORK address for TCP, PATH address for a UNIX socket
            timeout: Connect deadline in seconds. As with
                ``socket.create_connection`` it stays set as the stream's
                timeout; None blocks indefinitely.

        Raises:
            ConnectionRefused: Nobody is listening
            NotFound: No such socket file, or the hostname does not resolve
            PermissionDenied: Access to the socket was refused
            Timeout: The deadline expired
            InvalidFormat: Unnamed or overlong socket path
            UnsupportedPlatform: PATH address without AF_UNIX support
            TransportError: Any other platform failure
        """
        match address.kind:
            case AddressKind.NETWORK:
                sock = _connect_network(address, timeout)
            case AddressKind.PATH:
                sock = _connect_unix(address, timeout)
        logger.debug(f"Connected to {address}")
        return cls(address.kind, sock)

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
        """File descriptor of the socket, -1 once closed."""
        return self._sock.fileno()

    def local_address(self) -> Address:
        """The local endpoint; unbound UNIX clients report Address.unnamed()."""
        with translate("getsockname"):
            raw = self._sock.getsockname()
        return Address.from_sockaddr(self._kind, raw)

    def peer_address(self) -> Address:
        """The remote endpoint; unbound UNIX peers report Address.unnamed()."""
        with translate("getpeername"):
            raw = self._sock.getpeername()
        return Address.from_sockaddr(self._kind, raw)

    # =========================================================================
    # I/O
    # =========================================================================

    def read(self, buffer: Buffer) -> int:
        """Read into ``buffer``; returns 0 only at end of stream."""
        with translate("read"):
            return self._sock.recv_into(buffer)

    def recv(self, size: int) -> bytes:
        """Read at most ``size`` bytes; returns b"" only at end of stream."""
        with translate("read"):
            return self._sock.recv(size)

    def write(self, data: bytes | Buffer) -> int:
        """Write some of ``data``; returns how many bytes were sent."""
        with translate("write"):
            return self._sock.send(data)

    def sendall(self, data: bytes | Buffer) -> None:
        """Write all of ``data`` using the socket's own sendall."""
        with translate("write"):
            self._sock.sendall(data)

    # =========================================================================
    # Options
    # =========================================================================

    @property
    def timeout(self) -> float | None:
        return self._sock.gettimeout()

    def set_timeout(self, timeout: float | None) -> None:
        """Set the deadline for blocking reads and writes, in seconds.

        None blocks forever. Expired deadlines raise Timeout.
        """
        with translate("settimeout"):
            self._sock.settimeout(timeout)

    def set_nodelay(self, nodelay: bool) -> None:
        """Toggle TCP_NODELAY. UNIX streams have no Nagle buffering."""
        match self._kind:
            case AddressKind.NETWORK:
                with translate("setsockopt"):
                    self._sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, int(nodelay))
            case AddressKind.PATH:
                pass

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def shutdown(self, direction: Shutdown = Shutdown.BOTH) -> None:
        """Shut down reading, writing, or both, without releasing the socket."""
        with translate("shutdown"):
            self._sock.shutdown(Shutdown(direction).how)

    def close(self) -> None:
        """Release the socket. Calling close() again does nothing."""
        if self._closed:
            return
        self._closed = True
        self._sock.close()
        logger.debug(f"Closed {self._kind.value} stream")

    def try_clone(self) -> Stream:
        """Duplicate the OS handle into a second, independently owned Stream."""
        with translate("dup"):
            return Stream(self._kind, self._sock.dup())

    def split(self) -> tuple[ReadHalf, WriteHalf]:
        """Split into a read view and a write view of this stream.

        The halves share this stream's socket, so one thread may read while
        another writes. Neither half can close the socket: the Stream keeps
        ownership and must be closed once both halves are done.
        """
        return ReadHalf(self), WriteHalf(self)

    def __enter__(self) -> Stream:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else f"fd={self.fileno()}"
        return f"<Stream {self._kind.value} {state}>"


class ReadHalf:
    """Read-only view of a Stream. Does not own the socket."""

    def __init__(self, stream: Stream):
        self._stream = stream

    @property
    def kind(self) -> AddressKind:
        return self._stream.kind

    def read(self, buffer: Buffer) -> int:
        return self._stream.read(buffer)

    def recv(self, size: int) -> bytes:
        return self._stream.recv(size)

    def local_address(self) -> Address:
        return self._stream.local_address()

    def peer_address(self) -> Address:
        return self._stream.peer_address()

    def shutdown(self) -> None:
        """Shut down the read direction."""
        self._stream.shutdown(Shutdown.READ)


class WriteHalf:
    """Write-only view of a Stream. Does not own the socket."""

    def __init__(self, stream: Stream):
        self._stream = stream

    @property
    def kind(self) -> AddressKind:
        return self._stream.kind

    def write(self, data: bytes | Buffer) -> int:
        return self._stream.write(data)

    def sendall(self, data: bytes | Buffer) -> None:
        self._stream.sendall(data)

    def local_address(self) -> Address:
        return self._stream.local_address()

    def peer_address(self) -> Address:
        return self._stream.peer_address()

    def shutdown(self) -> None:
        """Shut down the write direction, signalling end of stream to the peer."""
        self._stream.shutdown(Shutdown.WRITE)
