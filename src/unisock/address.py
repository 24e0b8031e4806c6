"""Socket addresses covering TCP endpoints and UNIX socket paths.

An Address is a tagged union over two kinds:
- NETWORK: host and port, where host is an IP literal or a hostname
- PATH: filesystem path of a UNIX domain socket

Text grammar accepted by Address.parse:
    unix:<path>      explicit path, taken verbatim
    <ipv4>:<port>    e.g. 127.0.0.1:8080
    [<ipv6>]:<port>  e.g. [::1]:8080, [fe80::1%eth0]:80
    <hostname>:<port>
    anything else    a path, e.g. /run/app.sock, ./app.sock, localhost

A bare hostname without a port is a path. Write ``localhost:80`` for a TCP
endpoint, and ``unix:<path>`` for a path that itself looks like host:port.
"""

from __future__ import annotations

import ipaddress
import os
import re
import socket
from enum import Enum
from functools import total_ordering
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import InvalidFormat, translate

UNIX_PREFIX = "unix:"

_NETWORK_RE = re.compile(r"^(?:\[(?P<ipv6>[^\[\]]+)\]|(?P<host>[^\s:/\[\]]+)):(?P<port>[0-9]+)$")
_UNBRACKETED_IPV6_RE = re.compile(r"^(?P<host>[0-9A-Fa-f:.%\w]*:[0-9A-Fa-f:.%\w]*):(?P<port>[0-9]+)$")
_HOSTNAME_LABEL_RE = re.compile(r"^(?!-)[A-Za-z0-9_-]{1,63}(?<!-)$")

PORT_MAX = 65535


class AddressKind(str, Enum):
    """Transport kind selected by an address."""

    NETWORK = "network"
    PATH = "path"


def _is_hostname(host: str) -> bool:
    if len(host) > 253:
        return False
    labels = host[:-1].split(".") if host.endswith(".") else host.split(".")
    return all(_HOSTNAME_LABEL_RE.match(label) for label in labels)


def _normalize_host(host: str) -> str:
    """Canonical text for an IP literal; hostnames are lowercased."""
    try:
        return str(ipaddress.ip_address(host))
    except ValueError:
        return host.lower()


@total_ordering
class Address(BaseModel):
    """Immutable TCP endpoint or UNIX socket path.

    Build with Address.parse, Address.network, Address.unix or
    Address.unnamed rather than the constructor.

    Equality and hashing are structural: two addresses are equal only when
    they have the same kind and the same host/port or path. Ordering puts
    every NETWORK address before every PATH address.
    """

    model_config = ConfigDict(frozen=True)

    kind: AddressKind
    host: str | None = None
    port: int | None = Field(default=None, ge=0, le=PORT_MAX)
    path: str | None = None

    @model_validator(mode="after")
    def validate_variant(self) -> Address:
        match self.kind:
            case AddressKind.NETWORK:
                if not self.host or self.port is None or self.path is not None:
                    raise ValueError("network address needs host and port, and no path")
            case AddressKind.PATH:
                if self.path is None or self.host is not None or self.port is not None:
                    raise ValueError("path address needs a path, and no host or port")
        return self

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def network(cls, host: str, port: int) -> Address:
        """Create a NETWORK address.

        Args:
            host: IPv4/IPv6 literal (unbracketed) or hostname
            port: Port number, 0-65535

        Raises:
            InvalidFormat: If host is empty, neither an IP literal nor a
                valid hostname, or port is out of range
        """
        if not host:
            raise InvalidFormat("host cannot be empty", operation="parse")
        host = host[1:-1] if host.startswith("[") and host.endswith("]") else host
        # Only hosts that parse() reads back keep to_text() reversible
        if not (_is_ip(host, version=4) or _is_ip(host, version=6) or _is_hostname(host)):
            raise InvalidFormat(f"invalid host {host!r}", operation="parse")
        try:
            return cls(kind=AddressKind.NETWORK, host=_normalize_host(host), port=port)
        except ValidationError as e:
            raise InvalidFormat(
                f"invalid network address {host!r}:{port!r}: {e.errors()[0]['msg']}",
                operation="parse",
            ) from e

    @classmethod
    def unix(cls, path: str | os.PathLike[str]) -> Address:
        """Create a PATH address for a UNIX socket file."""
        return cls(kind=AddressKind.PATH, path=os.fspath(path))

    @classmethod
    def unnamed(cls) -> Address:
        """The PATH address of an unbound UNIX socket (empty path)."""
        return cls(kind=AddressKind.PATH, path="")

    @classmethod
    def parse(cls, text: str) -> Address:
        """Parse address text.

        Args:
            text: ``host:port``, ``[ipv6]:port``, ``unix:<path>`` or a path

        Returns:
            The parsed Address

        Raises:
            InvalidFormat: For empty text, text containing NUL, an
                out-of-range port, a malformed bracketed IPv6 literal, or an
                IPv6 literal given without brackets
        """
        if not text:
            raise InvalidFormat("address cannot be empty", operation="parse")
        if "\x00" in text:
            raise InvalidFormat(f"address contains NUL: {text!r}", operation="parse")

        if text.startswith(UNIX_PREFIX):
            return cls.unix(text[len(UNIX_PREFIX) :])

        match = _NETWORK_RE.match(text)
        if match:
            port = cls._parse_port(text, match.group("port"))
            if match.group("ipv6") is not None:
                literal = match.group("ipv6")
                try:
                    ipaddress.IPv6Address(literal)
                except ValueError as e:
                    raise InvalidFormat(
                        f"invalid IPv6 literal in {text!r}: {e}", operation="parse"
                    ) from e
                return cls.network(literal, port)

            host = match.group("host")
            if _is_ip(host, version=4) or _is_hostname(host):
                return cls.network(host, port)
            return cls.unix(text)

        match = _UNBRACKETED_IPV6_RE.match(text)
        if match and _is_ip(match.group("host"), version=6):
            raise InvalidFormat(
                f"IPv6 literal must be bracketed: {text!r}", operation="parse"
            )

        return cls.unix(text)

    @staticmethod
    def _parse_port(text: str, digits: str) -> int:
        port = int(digits)
        if port > PORT_MAX:
            raise InvalidFormat(
                f"port {digits} out of range 0-{PORT_MAX} in {text!r}", operation="parse"
            )
        return port

    @classmethod
    def from_sockaddr(cls, kind: AddressKind, raw: Any) -> Address:
        """Convert a raw value from getsockname/getpeername/accept.

        NETWORK values are ``(host, port)`` or ``(host, port, flowinfo,
        scope_id)`` tuples. PATH values are str or bytes; an empty value
        (unbound peer) becomes Address.unnamed().
        """
        match kind:
            case AddressKind.NETWORK:
                host, port = raw[0], raw[1]
                if len(raw) == 4 and raw[3] and "%" not in host:
                    host = f"{host}%{raw[3]}"
                return cls.network(host, port)
            case AddressKind.PATH:
                if not raw:
                    return cls.unnamed()
                if isinstance(raw, bytes):
                    raw = os.fsdecode(raw)
                return cls.unix(raw)

    # =========================================================================
    # Introspection
    # =========================================================================

    @property
    def variant(self) -> AddressKind:
        """The address kind (alias of ``kind``)."""
        return self.kind

    @property
    def is_unix(self) -> bool:
        return self.kind is AddressKind.PATH

    @property
    def is_network(self) -> bool:
        return self.kind is AddressKind.NETWORK

    @property
    def is_unnamed(self) -> bool:
        """True for the empty PATH address of an unbound socket."""
        return self.kind is AddressKind.PATH and self.path == ""

    @property
    def family(self) -> int:
        """The socket family for this address, without resolving hostnames.

        Hostnames report AF_UNSPEC; use resolve() to get concrete families.
        """
        match self.kind:
            case AddressKind.NETWORK:
                if _is_ip(self.host, version=6):
                    return socket.AF_INET6
                if _is_ip(self.host, version=4):
                    return socket.AF_INET
                return socket.AF_UNSPEC
            case AddressKind.PATH:
                from .capability import unix_family

                return unix_family()

    def sockaddr(self) -> tuple[str, int] | str:
        """The value passed to ``socket.bind``/``socket.connect``."""
        match self.kind:
            case AddressKind.NETWORK:
                return (self.host, self.port)
            case AddressKind.PATH:
                return self.path

    def resolve(self, flags: int = 0) -> list[tuple[int, Any]]:
        """Resolve to concrete ``(family, sockaddr)`` pairs.

        NETWORK addresses go through getaddrinfo, in the order it returns.
        PATH addresses resolve to themselves.

        Raises:
            NotFound: If the hostname cannot be resolved
            UnsupportedPlatform: For PATH addresses without AF_UNIX support
        """
        match self.kind:
            case AddressKind.NETWORK:
                with translate("resolve", self):
                    infos = socket.getaddrinfo(
                        self.host, self.port, type=socket.SOCK_STREAM, flags=flags
                    )
                return [(family, sockaddr) for family, _, _, _, sockaddr in infos]
            case AddressKind.PATH:
                return [(self.family, self.path)]

    # =========================================================================
    # Text form and ordering
    # =========================================================================

    def to_text(self) -> str:
        """Text that Address.parse turns back into an equal address."""
        match self.kind:
            case AddressKind.NETWORK:
                if ":" in self.host:
                    return f"[{self.host}]:{self.port}"
                return f"{self.host}:{self.port}"
            case AddressKind.PATH:
                if (
                    not self.path
                    or self.path.startswith(UNIX_PREFIX)
                    or _NETWORK_RE.match(self.path)
                    or _UNBRACKETED_IPV6_RE.match(self.path)
                ):
                    return f"{UNIX_PREFIX}{self.path}"
                return self.path

    def __str__(self) -> str:
        return self.to_text()

    def __repr__(self) -> str:
        return f"Address({self.kind.value}, {self.to_text()!r})"

    def _sort_key(self) -> tuple:
        match self.kind:
            case AddressKind.NETWORK:
                return (0, self.host, self.port)
            case AddressKind.PATH:
                return (1, self.path)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Address):
            return NotImplemented
        return self._sort_key() < other._sort_key()


def _is_ip(host: str | None, version: int) -> bool:
    if not host:
        return False
    try:
        return ipaddress.ip_address(host).version == version
    except ValueError:
        return False
