# python
"""
tests/test_basic.py
End-to-end tests that start the doorway gateway as a subprocess, connect with
a raw TCP client, pick a destination and come back to the menu.

Run with:
    pytest -q
"""
import asyncio
import re
import sys
import time
from pathlib import Path

import pytest

PY = sys.executable


def server_cmd(addresses: Path):
    return [
        PY, "-u", "-m", "doorway.server",
        "--host", "127.0.0.1",
        "--port", "0",
        "--addresses", str(addresses),
    ]


async def start_server_proc(addresses: Path):
    proc = await asyncio.create_subprocess_exec(
        *server_cmd(addresses),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=str(Path(__file__).resolve().parents[1]),
    )
    # read lines until we see "Listening on"
    port = None
    host = None
    start = time.time()
    while True:
        if proc.stdout.at_eof():
            raise RuntimeError("Server exited prematurely")
        try:
            line = await asyncio.wait_for(proc.stdout.readline(), timeout=5.0)
        except asyncio.TimeoutError:
            break
        if not line:
            await asyncio.sleep(0.05)
            if time.time() - start > 5:
                break
            continue
        s = line.decode("utf-8", errors="replace").strip()
        # Example: "Listening on 127.0.0.1:12345"
        m = re.search(r"Listening on ([0-9\.]+):([0-9]+)", s)
        if m:
            host = m.group(1)
            port = int(m.group(2))
            break
        if time.time() - start > 5:
            break
    if port is None:
        proc.kill()
        err = await proc.stderr.read()
        raise RuntimeError(
            "Failed to start server; stderr=" + err.decode("utf-8", errors="replace")
        )
    return proc, host, port


async def stop_server_proc(proc):
    proc.terminate()
    try:
        await asyncio.wait_for(proc.wait(), timeout=3.0)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()


async def _read_until(reader, delimiter, timeout=5.0):
    data = await asyncio.wait_for(reader.readuntil(delimiter.encode("utf-8")), timeout=timeout)
    return data.decode("utf-8", errors="replace")


@pytest.mark.asyncio
async def test_menu_and_logoff(tmp_path):
    addresses = tmp_path / "addresses.toml"
    addresses.write_text(
        '[[addresses]]\nlabel = "A"\naddress = "h1:1"\n'
        '[[addresses]]\nlabel = "B"\naddress = "h2:2"\n',
        encoding="utf-8",
    )
    proc, host, port = await start_server_proc(addresses)
    try:
        reader, writer = await asyncio.open_connection(host, port)
        menu = await _read_until(reader, "> ")
        assert menu.startswith("Hello, 127.0.0.1:")
        assert "  0: Logoff\r\n  1: A - h1:1\r\n  2: B - h2:2\r\n" in menu

        writer.write(b"0\r")
        await writer.drain()
        tail = await asyncio.wait_for(reader.read(), timeout=5.0)
        assert b"Goodbye!" in tail
        writer.close()
        await writer.wait_closed()
    finally:
        await stop_server_proc(proc)


@pytest.mark.asyncio
async def test_relay_round_trip_and_return_to_menu(tmp_path):
    async def board(reader, writer):
        writer.write(b"welcome to the board\r\n")
        await writer.drain()
        line = await reader.readuntil(b"\r")
        writer.write(b"you typed " + line + b"\n")
        await writer.drain()
        writer.close()

    remote = await asyncio.start_server(board, "127.0.0.1", 0)
    remote_port = remote.sockets[0].getsockname()[1]
    addresses = tmp_path / "addresses.toml"
    addresses.write_text(
        f'[[addresses]]\nlabel = "Board"\naddress = "127.0.0.1:{remote_port}"\n',
        encoding="utf-8",
    )
    proc, host, port = await start_server_proc(addresses)
    try:
        reader, writer = await asyncio.open_connection(host, port)
        await _read_until(reader, "> ")
        writer.write(b"1\r")
        await writer.drain()
        await _read_until(reader, "welcome to the board\r\n")

        writer.write(b"hello\r")
        await writer.drain()
        await _read_until(reader, "you typed hello\r\n")

        after = await _read_until(reader, "> ")
        assert f"Disconnected from Board - 127.0.0.1:{remote_port}" in after
        assert "Address book:" in after

        writer.write(b"0\r")
        await writer.drain()
        tail = await asyncio.wait_for(reader.read(), timeout=5.0)
        assert b"Goodbye!" in tail
        writer.close()
        await writer.wait_closed()
    finally:
        await stop_server_proc(proc)
        remote.close()
        await remote.wait_closed()
