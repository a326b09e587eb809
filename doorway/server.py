# python
"""
doorway/server.py
Asyncio telnet gateway: accept clients, run the menu, relay to destinations.
"""
import argparse
import asyncio
import functools
import logging
import sys
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from .addressbook import AddressBook, AddressBookError, FileAddressBookSource
from .config import ConfigError, load_config
from .linereader import MAX_LINE_LENGTH, ConnectionClosed
from .menu import Logoff, run_menu
from .relay import CONNECT_TIMEOUT, relay
from .session import Session

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def _describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


async def _write(writer: asyncio.StreamWriter, text: str) -> None:
    writer.write(text.encode("utf-8"))
    await writer.drain()


async def _serve_session(
    session: Session,
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    book_source: Callable[[], AddressBook],
    connect_timeout: float,
    max_line_length: int = MAX_LINE_LENGTH,
) -> None:
    """Alternate menu and relay until logoff or the client goes away."""
    while True:
        try:
            book = book_source()
        except AddressBookError as exc:
            session.log("addressbook.error", logging.ERROR, error=str(exc))
            await _write(writer, "\r\nAddress book unavailable, please try again later.\r\n")
            return

        outcome = await run_menu(reader, writer, book, max_line_length)
        if isinstance(outcome, Logoff):
            session.log("session.logoff")
            return

        entry = outcome.entry
        target = f"{entry.label} - {entry.address}"
        session.log("relay.connecting", label=entry.label, address=entry.address)
        await _write(writer, f"\r\nConnecting to {target}\r\n")

        async def announce_connected() -> None:
            await _write(writer, f"Connected to {target}\r\n\r\n")

        try:
            result = await relay(
                reader,
                writer,
                entry.address,
                timeout=connect_timeout,
                on_connected=announce_connected,
            )
        except (OSError, ValueError) as exc:
            session.log(
                "relay.connect_failed", logging.WARNING, address=entry.address, error=_describe(exc)
            )
            await _write(writer, f"\r\nUnable to connect to {target} ({_describe(exc)})\r\n")
            continue

        session.record_relay(result.bytes_in, result.bytes_out)
        level = logging.INFO if isinstance(result.error, ConnectionClosed) else logging.ERROR
        if result.local_failed:
            # the client is gone; nothing left to show a menu to
            session.log("relay.local_closed", level, address=entry.address, error=_describe(result.error))
            return

        session.log("relay.remote_closed", level, address=entry.address, error=_describe(result.error))
        await _write(writer, f"\r\nDisconnected from {target}\r\n")


async def handle_connection(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    *,
    book_source: Callable[[], AddressBook],
    connect_timeout: float = CONNECT_TIMEOUT,
    max_line_length: int = MAX_LINE_LENGTH,
) -> None:
    """Own one inbound connection from greeting to close."""
    session = Session.from_peer(writer.get_extra_info("peername"))
    session.log("session.connect")
    try:
        await _write(writer, f"Hello, {session.peer}\r\n")
        await _serve_session(
            session, reader, writer, book_source, connect_timeout, max_line_length
        )
    except ConnectionClosed:
        session.log("session.eof")
    except OSError as exc:
        session.log("session.error", logging.ERROR, error=_describe(exc))
    finally:
        session.log(
            "session.close",
            duration_ms=session.duration_ms(),
            relays=session.relays,
            bytes_in=session.bytes_in,
            bytes_out=session.bytes_out,
        )
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as exc:
            logger.debug("closing %s: %s", session.peer, exc)


async def create_server(config: Dict[str, Any]) -> asyncio.AbstractServer:
    handler = functools.partial(
        handle_connection,
        book_source=FileAddressBookSource(config["addresses_filename"]),
        connect_timeout=config["relay"]["connect_timeout"],
        max_line_length=config.get("limits", {}).get("max_line_length", MAX_LINE_LENGTH),
    )
    return await asyncio.start_server(
        handler, config["server"]["host"], config["server"]["port"]
    )


def bound_address(server: asyncio.AbstractServer, config: Dict[str, Any]) -> Tuple[str, int]:
    """
    Report where clients can reach the server, resolving port 0 and wildcard hosts.
    """
    host = config["server"]["host"]
    port = config["server"]["port"]
    socks = getattr(server, "sockets", None)
    if socks:
        # sockname can be (host, port) or (host, port, flowinfo, scopeid)
        sockname = socks[0].getsockname()
        host, port = sockname[0], sockname[1]
    if host in ("0.0.0.0", "", None, "::"):
        host = "127.0.0.1"
    return host, port


async def start_server(config: Optional[Dict[str, Any]] = None) -> None:
    config = config or load_config()
    server = await create_server(config)
    host, port = bound_address(server, config)
    print(f"Listening on {host}:{port}", flush=True)
    logger.info("address book %s", config["addresses_filename"])
    async with server:
        await server.serve_forever()


def add_serve_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--host", help="interface to listen on")
    parser.add_argument("--port", type=int, help="TCP port to listen on (0 picks a free port)")
    parser.add_argument("--addresses", help="address book TOML file")
    parser.add_argument("--settings", help="settings TOML file")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ...")


def serve(args: argparse.Namespace) -> int:
    overrides: Dict[str, Any] = {}
    if args.host is not None:
        overrides.setdefault("server", {})["host"] = args.host
    if args.port is not None:
        overrides.setdefault("server", {})["port"] = args.port
    if args.addresses is not None:
        overrides["addresses_filename"] = args.addresses
    if args.log_level is not None:
        overrides["log_level"] = args.log_level

    try:
        config = load_config(args.settings, overrides)
    except ConfigError as exc:
        print(f"doorway: {exc}", file=sys.stderr)
        return 1

    logging.basicConfig(level=config["log_level"], format=LOG_FORMAT)
    try:
        asyncio.run(start_server(config))
    except KeyboardInterrupt:
        print("shutting down")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="doorway.server")
    add_serve_arguments(parser)
    return serve(parser.parse_args(argv))


if __name__ == "__main__":
    sys.exit(main())
