# python
"""
doorway/linereader.py
Read one line of menu input from a telnet client.
"""
import asyncio
import logging
from typing import Optional

from .telnet import EventKind, TelnetDecoder

logger = logging.getLogger(__name__)

READ_SIZE = 1024
MAX_LINE_LENGTH = 4096


class ConnectionClosed(ConnectionError):
    """The peer closed its side of the connection (read returned zero bytes)."""

    def __init__(self, message: str = "read zero (disconnected)"):
        super().__init__(message)


async def read_line(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    prompt: str = "> ",
    decoder: Optional[TelnetDecoder] = None,
    max_line_length: int = MAX_LINE_LENGTH,
) -> str:
    """
    Prompt, then collect client data until a carriage return arrives.

    Received data bytes are echoed back as they arrive and protocol replies
    from the decoder are written out. There is no line editing: erase and
    other control characters are kept literally. Anything after the CR in
    the same chunk is dropped. A line that reaches ``max_line_length``
    without a CR is returned cut to that length.
    """
    decoder = decoder or TelnetDecoder()
    buffer = bytearray()

    writer.write(prompt.encode("utf-8"))
    await writer.drain()

    while True:
        chunk = await reader.read(READ_SIZE)
        if not chunk:
            raise ConnectionClosed()

        for event in decoder.feed(chunk):
            if event.kind is EventKind.DATA_RECEIVE:
                buffer.extend(event.data)
                writer.write(event.data)
            elif event.kind is EventKind.DATA_SEND:
                writer.write(event.data)
            else:
                logger.debug("telnet %s", event.describe())
        await writer.drain()

        pos = buffer.find(b"\r")
        if pos < 0 and len(buffer) >= max_line_length:
            logger.debug("line exceeded %d bytes, cutting it short", max_line_length)
            pos = max_line_length
        if pos >= 0:
            end = min(pos, max_line_length)
            return bytes(buffer[:end]).decode("utf-8", errors="replace")
