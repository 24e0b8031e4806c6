"""Unit tests for Address parsing, formatting, equality and ordering."""

from __future__ import annotations

import socket

import pytest
from pydantic import ValidationError

from unisock import Address, AddressKind, InvalidFormat

# =============================================================================
# Parsing: network addresses
# =============================================================================


class TestParseNetwork:
    """Tests for host:port text."""

    def test_ipv4(self) -> None:
        """IPv4 literal with port is a network address."""
        addr = Address.parse("127.0.0.1:8080")

        assert addr.kind == AddressKind.NETWORK
        assert addr.host == "127.0.0.1"
        assert addr.port == 8080
        assert addr.path is None

    def test_ipv6_bracketed(self) -> None:
        """Bracketed IPv6 literal is a network address."""
        addr = Address.parse("[::20]:10")

        assert addr.kind == AddressKind.NETWORK
        assert addr.host == "::20"
        assert addr.port == 10

    def test_ipv6_is_normalized(self) -> None:
        """IPv6 literals are stored in compressed form."""
        assert Address.parse("[0:0:0:0:0:0:0:1]:80").to_text() == "[::1]:80"

    def test_ipv6_with_scope(self) -> None:
        """Scoped link-local literals keep their zone."""
        addr = Address.parse("[fe80::1%eth0]:80")

        assert addr.host == "fe80::1%eth0"
        assert addr.to_text() == "[fe80::1%eth0]:80"

    def test_hostname(self) -> None:
        """Hostnames are kept, lowercased."""
        addr = Address.parse("Example.COM:443")

        assert addr.kind == AddressKind.NETWORK
        assert addr.host == "example.com"
        assert addr.port == 443

    def test_port_bounds(self) -> None:
        """Ports 0 and 65535 are both accepted."""
        assert Address.parse("127.0.0.1:0").port == 0
        assert Address.parse("127.0.0.1:65535").port == 65535

    @pytest.mark.parametrize(
        "text",
        ["127.0.0.1:10", "[::20]:10", "localhost:80", "db.internal:5432", "10.0.0.1:0"],
    )
    def test_round_trip(self, text: str) -> None:
        """Normalized network text parses back to an equal address."""
        addr = Address.parse(text)

        assert Address.parse(addr.to_text()) == addr
        assert addr.to_text() == text


# =============================================================================
# Parsing: path addresses
# =============================================================================


class TestParsePath:
    """Tests for path text."""

    def test_absolute_path(self) -> None:
        """Absolute paths are path addresses."""
        addr = Address.parse("/tmp/sock")

        assert addr.kind == AddressKind.PATH
        assert addr.path == "/tmp/sock"
        assert addr.host is None
        assert addr.port is None

    def test_relative_path(self) -> None:
        """Relative paths are path addresses."""
        assert Address.parse("./app.sock").path == "./app.sock"

    def test_bare_hostname_is_path(self) -> None:
        """A hostname without a port is treated as a path."""
        addr = Address.parse("localhost")

        assert addr.kind == AddressKind.PATH
        assert addr.path == "localhost"

    def test_non_numeric_port_is_path(self) -> None:
        """host:word does not match the network grammar."""
        assert Address.parse("name:socket").kind == AddressKind.PATH

    def test_unix_prefix(self) -> None:
        """unix: prefix selects a path explicitly."""
        addr = Address.parse("unix:/tmp/sock")

        assert addr.kind == AddressKind.PATH
        assert addr.path == "/tmp/sock"

    def test_unix_prefix_forces_path(self) -> None:
        """A host:port-looking path can be written with the prefix."""
        addr = Address.parse("unix:127.0.0.1:80")

        assert addr.kind == AddressKind.PATH
        assert addr.path == "127.0.0.1:80"

    def test_unix_prefix_alone_is_unnamed(self) -> None:
        """unix: with nothing after it is the unnamed address."""
        assert Address.parse("unix:") == Address.unnamed()

    @pytest.mark.parametrize(
        "text",
        ["/tmp/sock", "./app.sock", "relative/dir/s.sock", "/var/run/a b.sock", "localhost"],
    )
    def test_round_trip_is_exact(self, text: str) -> None:
        """Path text round-trips character for character."""
        addr = Address.parse(text)

        assert addr.to_text() == text
        assert Address.parse(addr.to_text()) == addr


# =============================================================================
# Parsing: invalid text
# =============================================================================


class TestParseInvalid:
    """Tests for text that is neither a valid address nor a path."""

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "127.0.0.1:99999",
            "localhost:65536",
            "[::1]:99999",
            "[zz::1]:80",
            "::1:80",
            "bad\x00path",
        ],
    )
    def test_invalid_format(self, text: str) -> None:
        """Malformed text raises InvalidFormat."""
        with pytest.raises(InvalidFormat):
            Address.parse(text)

    def test_invalid_format_is_value_error(self) -> None:
        """InvalidFormat can be caught as ValueError."""
        with pytest.raises(ValueError):
            Address.parse("")

    def test_error_mentions_port(self) -> None:
        """Out-of-range port errors name the port."""
        with pytest.raises(InvalidFormat) as exc_info:
            Address.parse("127.0.0.1:99999")

        assert "99999" in str(exc_info.value)
        assert exc_info.value.operation == "parse"


# =============================================================================
# Explicit construction
# =============================================================================


class TestConstruction:
    """Tests for the explicit constructors."""

    def test_network(self) -> None:
        """network() builds a network address."""
        addr = Address.network("127.0.0.1", 80)

        assert addr == Address.parse("127.0.0.1:80")

    def test_network_strips_brackets(self) -> None:
        """Bracketed IPv6 hosts are accepted."""
        assert Address.network("[::1]", 80) == Address.network("::1", 80)

    def test_network_rejects_bad_port(self) -> None:
        """Out-of-range ports raise InvalidFormat, not a pydantic error."""
        with pytest.raises(InvalidFormat):
            Address.network("127.0.0.1", 70000)
        with pytest.raises(InvalidFormat):
            Address.network("127.0.0.1", -1)

    def test_network_rejects_empty_host(self) -> None:
        """An empty host raises InvalidFormat."""
        with pytest.raises(InvalidFormat):
            Address.network("", 80)

    @pytest.mark.parametrize("host", ["a:b", "foo bar", "bad/host", "-leading.example"])
    def test_network_rejects_bad_host(self, host: str) -> None:
        """Hosts that parse() could not read back are rejected."""
        with pytest.raises(InvalidFormat):
            Address.network(host, 80)

    @pytest.mark.parametrize(
        "host", ["127.0.0.1", "::1", "fe80::1%eth0", "localhost", "db-1.example.com"]
    )
    def test_network_text_round_trips(self, host: str) -> None:
        """Every accepted host survives to_text() and parse()."""
        addr = Address.network(host, 80)

        assert Address.parse(addr.to_text()) == addr

    def test_unix_accepts_pathlike(self, tmp_path) -> None:
        """unix() accepts os.PathLike values."""
        addr = Address.unix(tmp_path / "s.sock")

        assert addr.path == str(tmp_path / "s.sock")

    def test_unnamed(self) -> None:
        """unnamed() is the empty path."""
        addr = Address.unnamed()

        assert addr.kind == AddressKind.PATH
        assert addr.path == ""
        assert addr.is_unnamed

    def test_variant_fields_are_checked(self) -> None:
        """The constructor rejects fields from the other variant."""
        with pytest.raises(ValidationError):
            Address(kind=AddressKind.NETWORK, host="127.0.0.1", port=80, path="/tmp/x")
        with pytest.raises(ValidationError):
            Address(kind=AddressKind.PATH, host="127.0.0.1")

    def test_immutable(self) -> None:
        """Addresses cannot be modified."""
        addr = Address.parse("127.0.0.1:80")

        with pytest.raises(ValidationError):
            addr.port = 81  # type: ignore[misc]


# =============================================================================
# Raw socket addresses
# =============================================================================


class TestFromSockaddr:
    """Tests for converting getsockname()/getpeername() values."""

    def test_ipv4_tuple(self) -> None:
        addr = Address.from_sockaddr(AddressKind.NETWORK, ("127.0.0.1", 5000))
        assert addr == Address.network("127.0.0.1", 5000)

    def test_ipv6_tuple(self) -> None:
        """Four-element IPv6 tuples drop flowinfo and a zero scope."""
        addr = Address.from_sockaddr(AddressKind.NETWORK, ("::1", 5000, 0, 0))
        assert addr == Address.parse("[::1]:5000")

    def test_empty_path_is_unnamed(self) -> None:
        """Unbound UNIX peers report an empty name."""
        assert Address.from_sockaddr(AddressKind.PATH, "") == Address.unnamed()
        assert Address.from_sockaddr(AddressKind.PATH, None) == Address.unnamed()

    def test_bytes_path(self) -> None:
        assert Address.from_sockaddr(AddressKind.PATH, b"/tmp/s") == Address.unix("/tmp/s")


# =============================================================================
# Text form
# =============================================================================


class TestToText:
    """Tests for to_text() and str()."""

    def test_str_matches_to_text(self) -> None:
        addr = Address.parse("[::1]:80")
        assert str(addr) == addr.to_text() == "[::1]:80"

    def test_ambiguous_path_gets_prefix(self) -> None:
        """Paths that look like host:port are written with unix:."""
        addr = Address.unix("localhost:80")

        assert addr.to_text() == "unix:localhost:80"
        assert Address.parse(addr.to_text()) == addr

    def test_prefixed_path_gets_prefix(self) -> None:
        """Paths starting with unix: keep round-tripping."""
        addr = Address.unix("unix:odd")

        assert addr.to_text() == "unix:unix:odd"
        assert Address.parse(addr.to_text()) == addr

    def test_unnamed_text(self) -> None:
        assert Address.unnamed().to_text() == "unix:"
        assert Address.parse(Address.unnamed().to_text()) == Address.unnamed()

    def test_repr_names_kind(self) -> None:
        assert repr(Address.parse("/tmp/s")) == "Address(path, '/tmp/s')"


# =============================================================================
# Equality, hashing, ordering
# =============================================================================


class TestComparison:
    """Tests for structural equality and ordering."""

    def test_equal_same_variant(self) -> None:
        assert Address.parse("127.0.0.1:80") == Address.network("127.0.0.1", 80)
        assert Address.parse("/tmp/a") == Address.unix("/tmp/a")

    def test_never_equal_across_variants(self) -> None:
        """A path spelled like an address is not that address."""
        assert Address.unix("127.0.0.1:80") != Address.parse("127.0.0.1:80")

    def test_hashable(self) -> None:
        """Equal addresses hash the same and work as dict keys."""
        table = {Address.parse("127.0.0.1:80"): "tcp", Address.parse("/tmp/a"): "unix"}

        assert table[Address.network("127.0.0.1", 80)] == "tcp"
        assert table[Address.unix("/tmp/a")] == "unix"

    def test_ordering(self) -> None:
        """Network addresses sort before paths, then by value."""
        addrs = [
            Address.parse("/b"),
            Address.parse("10.0.0.1:2"),
            Address.parse("/a"),
            Address.parse("10.0.0.1:1"),
        ]

        assert sorted(addrs) == [
            Address.parse("10.0.0.1:1"),
            Address.parse("10.0.0.1:2"),
            Address.parse("/a"),
            Address.parse("/b"),
        ]
        assert Address.parse("10.0.0.1:1") <= Address.parse("10.0.0.1:1")
        assert Address.parse("/a") > Address.parse("10.0.0.1:1")


# =============================================================================
# Introspection
# =============================================================================


class TestIntrospection:
    """Tests for variant helpers and socket-level views."""

    def test_variant_alias(self) -> None:
        assert Address.parse("/tmp/a").variant == AddressKind.PATH
        assert Address.parse("1.2.3.4:5").variant == AddressKind.NETWORK

    def test_is_unix_is_network(self) -> None:
        assert Address.parse("/tmp/a").is_unix
        assert not Address.parse("/tmp/a").is_network
        assert Address.parse("1.2.3.4:5").is_network

    def test_sockaddr(self) -> None:
        assert Address.parse("1.2.3.4:5").sockaddr() == ("1.2.3.4", 5)
        assert Address.parse("/tmp/a").sockaddr() == "/tmp/a"

    def test_family(self) -> None:
        assert Address.parse("1.2.3.4:5").family == socket.AF_INET
        assert Address.parse("[::1]:5").family == socket.AF_INET6
        assert Address.parse("example.com:5").family == socket.AF_UNSPEC

    def test_resolve_ip_literal(self) -> None:
        """IP literals resolve without DNS."""
        resolved = Address.parse("127.0.0.1:8080").resolve()

        assert (socket.AF_INET, ("127.0.0.1", 8080)) in resolved

    def test_resolve_path(self) -> None:
        """Paths resolve to themselves."""
        if not hasattr(socket, "AF_UNIX"):
            pytest.skip("AF_UNIX not available")
        assert Address.parse("/tmp/a").resolve() == [(socket.AF_UNIX, "/tmp/a")]
