# Add project root to sys.path so pytest can import the doorway package
import asyncio
import sys
from pathlib import Path

# Insert project root (parent of this tests/ directory) at front of sys.path
# This makes `import doorway` work when running `pytest` from the repo root.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))


class FakeWriter:
    """
    In-memory stand-in for asyncio.StreamWriter that records everything written.
    """

    def __init__(self, peer=("127.0.0.1", 40000), broken=False):
        self.peer = peer
        self.broken = broken
        self.buffer = bytearray()
        self.closed = False

    def write(self, data):
        if self.broken:
            raise BrokenPipeError("fake writer is broken")
        self.buffer.extend(data)

    async def drain(self):
        await asyncio.sleep(0)

    def close(self):
        self.closed = True

    def is_closing(self):
        return self.closed

    async def wait_closed(self):
        return None

    def get_extra_info(self, name, default=None):
        if name == "peername":
            return self.peer
        return default

    @property
    def text(self):
        return self.buffer.decode("utf-8", errors="replace")


def make_reader(*chunks, eof=False):
    """Build a StreamReader preloaded with ``chunks``; call from inside a running loop."""
    reader = asyncio.StreamReader()
    for chunk in chunks:
        reader.feed_data(chunk)
    if eof:
        reader.feed_eof()
    return reader


async def wait_for_output(writer, needle, count=1, timeout=3.0):
    """Wait until ``needle`` has been written ``count`` times."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while writer.text.count(needle) < count:
        if loop.time() > deadline:
            raise AssertionError(f"timed out waiting for {needle!r}; got {writer.text!r}")
        await asyncio.sleep(0.01)
