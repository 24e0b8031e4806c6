"""unisock CLI.

Small netcat-style tool over TCP and UNIX sockets, using the same address
syntax as the library.

Usage:
    unisock parse 127.0.0.1:8080          # Show how an address is parsed
    unisock parse /run/app.sock -f json   # ... as JSON
    unisock check                         # Show platform support
    unisock listen /tmp/app.sock          # Print bytes from each client
    unisock listen 127.0.0.1:0 --once     # Serve a single client, then exit
    unisock connect /tmp/app.sock < req   # Send stdin, print the reply

Environment (see unisock.config): UNISOCK_BACKLOG, UNISOCK_TIMEOUT,
UNISOCK_UNIX_MODE, UNISOCK_REUSE_STALE. Command line options win.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, BinaryIO

import click

from . import capability
from .address import Address
from .config import SocketConfig
from .errors import UnisockError
from .stream import ReadHalf, Stream

logger = logging.getLogger(__name__)

# Output format options
FORMAT_TABLE = "table"
FORMAT_JSON = "json"

CHUNK_SIZE = 65536


class AddressParam(click.ParamType):
    """Click parameter type parsing address text into an Address."""

    name = "address"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> Address:
        if isinstance(value, Address):
            return value
        try:
            return Address.parse(value)
        except UnisockError as e:
            self.fail(e.strerror or str(e), param, ctx)


ADDRESS = AddressParam()


def _configure_logging(verbose: bool) -> None:
    """Send unisock log records to stderr so stdout carries only stream data."""
    package_logger = logging.getLogger("unisock")

    # Replace handlers from a previous invocation in the same process
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    package_logger.addHandler(stderr_handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def _load_config(**overrides: Any) -> SocketConfig:
    """Environment config with command line overrides applied."""
    try:
        config = SocketConfig.from_env()
        for key, value in overrides.items():
            if value is not None:
                setattr(config, key, value)
        config.__post_init__()
    except ValueError as e:
        raise click.UsageError(str(e)) from e
    return config


def _address_info(address: Address) -> dict[str, Any]:
    info: dict[str, Any] = {"kind": address.kind.value, "text": address.to_text()}
    if address.is_network:
        info["host"] = address.host
        info["port"] = address.port
    else:
        info["path"] = address.path
        info["supported"] = capability.supports(address.kind)
    return info


def _pump(source: Stream | ReadHalf, out: BinaryIO) -> int:
    """Copy everything the peer sends to ``out``; returns the byte count."""
    buffer = bytearray(CHUNK_SIZE)
    view = memoryview(buffer)
    total = 0
    while True:
        n = source.read(buffer)
        if n == 0:
            return total
        out.write(view[:n])
        out.flush()
        total += n


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log socket activity to stderr")
@click.version_option(package_name="unisock")
def main(verbose: bool) -> None:
    """unisock - one address syntax for TCP ports and UNIX socket paths.

    Addresses are host:port ([v6]:port for IPv6) for TCP; anything else,
    or unix:<path>, is a UNIX socket path.
    """
    _configure_logging(verbose)


@main.command("parse")
@click.argument("address", type=ADDRESS)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice([FORMAT_TABLE, FORMAT_JSON]),
    default=FORMAT_TABLE,
    help="Output format",
)
def parse_cmd(address: Address, output_format: str) -> None:
    """Show how ADDRESS is parsed.

    Examples:

        unisock parse 127.0.0.1:8080

        unisock parse ./app.sock --format json
    """
    info = _address_info(address)
    if output_format == FORMAT_JSON:
        click.echo(json.dumps(info))
        return
    for key, value in info.items():
        click.echo(f"{key:<10} {value}")


@main.command("check")
def check_cmd() -> None:
    """Show which socket kinds this platform supports."""
    click.echo("network    supported")
    if capability.SUPPORTS_UNIX:
        click.echo(f"path       supported (max {capability.MAX_UNIX_PATH} bytes)")
    else:
        click.echo(f"path       unsupported on {sys.platform}")


@main.command("listen")
@click.argument("address", type=ADDRESS)
@click.option("--once", is_flag=True, help="Exit after the first client disconnects")
@click.option("--reuse", is_flag=True, help="Take over a stale socket file")
@click.option("--mode", type=str, default=None, help="Octal permissions for the socket file")
@click.option("--backlog", type=int, default=None, help="Listen backlog")
@click.option("--timeout", type=float, default=None, help="Accept/read deadline in seconds")
def listen_cmd(
    address: Address,
    once: bool,
    reuse: bool,
    mode: str | None,
    backlog: int | None,
    timeout: float | None,
) -> None:
    """Listen on ADDRESS and copy what each client sends to stdout."""
    unix_mode = None
    if mode is not None:
        try:
            unix_mode = int(mode, 8)
        except ValueError as e:
            raise click.BadParameter(f"not an octal mode: {mode}", param_hint="--mode") from e

    config = _load_config(
        backlog=backlog, timeout=timeout, unix_mode=unix_mode, reuse_stale=reuse or None
    )
    out = click.get_binary_stream("stdout")

    try:
        with config.bind(address) as listener:
            click.echo(f"Listening on {listener.local_address()}", err=True)
            while True:
                stream, peer = listener.accept()
                with stream:
                    click.echo(f"Connection from {peer}", err=True)
                    total = _pump(stream, out)
                    logger.debug(f"Received {total} bytes from {peer}")
                if once:
                    break
    except UnisockError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nShutting down", err=True)


@main.command("connect")
@click.argument("address", type=ADDRESS)
@click.option("--timeout", type=float, default=None, help="Connect/read deadline in seconds")
def connect_cmd(address: Address, timeout: float | None) -> None:
    """Connect to ADDRESS, send stdin, then copy the reply to stdout."""
    config = _load_config(timeout=timeout)
    stdin = click.get_binary_stream("stdin")
    out = click.get_binary_stream("stdout")

    try:
        with config.connect(address) as stream:
            reader, writer = stream.split()
            while chunk := stdin.read(CHUNK_SIZE):
                writer.sendall(chunk)
            writer.shutdown()
            _pump(reader, out)
    except UnisockError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
