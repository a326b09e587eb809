# python
"""
doorway/relay.py
Bidirectional byte relay between the inbound client and a destination.

Each direction runs as its own pump task. The first pump to stop decides the
outcome, classified by the side it was reading from:
  local  -> remote: local read or remote write failed  => Side.LOCAL
  remote -> local:  remote read or local write failed  => Side.REMOTE
"""
import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Tuple

from .linereader import ConnectionClosed

logger = logging.getLogger(__name__)

RELAY_BUFFER_SIZE = 1024
DEFAULT_TELNET_PORT = 23
CONNECT_TIMEOUT = 10.0


class Side(enum.Enum):
    LOCAL = "local"
    REMOTE = "remote"


@dataclass(frozen=True)
class RelayOutcome:
    side: Side
    error: BaseException
    bytes_in: int = 0  # client -> destination
    bytes_out: int = 0  # destination -> client

    @property
    def local_failed(self) -> bool:
        return self.side is Side.LOCAL

    @property
    def remote_failed(self) -> bool:
        return self.side is Side.REMOTE


def parse_address(address: str) -> Tuple[str, int]:
    """
    Split ``host:port`` (or ``[v6addr]:port``). A missing port means telnet's 23.
    """
    address = address.strip()
    if address.startswith("["):
        host, sep, rest = address[1:].partition("]")
        if not sep or (rest and not rest.startswith(":")):
            raise ValueError(f"invalid address {address!r}")
        port_text = rest[1:]
    else:
        host, sep, port_text = address.rpartition(":")
        if not sep:
            host, port_text = address, ""
    if not host:
        raise ValueError(f"invalid address {address!r}: missing host")
    if not port_text:
        return host, DEFAULT_TELNET_PORT
    if not port_text.isdigit() or not 0 < int(port_text) < 65536:
        raise ValueError(f"invalid address {address!r}: bad port {port_text!r}")
    return host, int(port_text)


async def open_remote(
    address: str, timeout: float = CONNECT_TIMEOUT
) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Connect to a destination. Failures (OSError, TimeoutError, ValueError) propagate."""
    host, port = parse_address(address)
    return await asyncio.wait_for(asyncio.open_connection(host, port), timeout=timeout)


async def _pump(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    side: Side,
    counts: Dict[Side, int],
) -> BaseException:
    try:
        while True:
            data = await reader.read(RELAY_BUFFER_SIZE)
            if not data:
                return ConnectionClosed()
            writer.write(data)
            await writer.drain()
            counts[side] += len(data)
    except OSError as exc:
        return exc


async def relay_streams(
    local_reader: asyncio.StreamReader,
    local_writer: asyncio.StreamWriter,
    remote_reader: asyncio.StreamReader,
    remote_writer: asyncio.StreamWriter,
) -> RelayOutcome:
    """Copy bytes both ways until one side fails; never returns without a side."""
    counts = {Side.LOCAL: 0, Side.REMOTE: 0}
    local = asyncio.create_task(_pump(local_reader, remote_writer, Side.LOCAL, counts))
    remote = asyncio.create_task(_pump(remote_reader, local_writer, Side.REMOTE, counts))
    try:
        done, _ = await asyncio.wait({local, remote}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (local, remote):
            if not task.done():
                task.cancel()
        await asyncio.gather(local, remote, return_exceptions=True)

    # local wins a tie
    side, task = (Side.LOCAL, local) if local in done else (Side.REMOTE, remote)
    return RelayOutcome(
        side=side,
        error=task.result(),
        bytes_in=counts[Side.LOCAL],
        bytes_out=counts[Side.REMOTE],
    )


async def relay(
    local_reader: asyncio.StreamReader,
    local_writer: asyncio.StreamWriter,
    address: str,
    timeout: float = CONNECT_TIMEOUT,
    on_connected: Optional[Callable[[], Awaitable[None]]] = None,
) -> RelayOutcome:
    """
    Connect to ``address`` and relay until one side fails.

    A failed connect raises instead of returning an outcome, so callers can
    tell "never connected" apart from "connected, then dropped".
    """
    remote_reader, remote_writer = await open_remote(address, timeout)
    logger.info("relay connected to %s", address)
    try:
        if on_connected is not None:
            try:
                await on_connected()
            except OSError as exc:
                return RelayOutcome(side=Side.LOCAL, error=exc)
        return await relay_streams(local_reader, local_writer, remote_reader, remote_writer)
    finally:
        remote_writer.close()
        try:
            await remote_writer.wait_closed()
        except OSError as exc:
            logger.debug("closing %s: %s", address, exc)
