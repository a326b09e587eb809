# python
"""
doorway/menu.py
Address book menu: render the choices, read a selection, resolve it.
"""
import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Optional, Union

from .addressbook import AddressBook, AddressBookEntry
from .linereader import MAX_LINE_LENGTH, read_line

logger = logging.getLogger(__name__)

PROMPT = "> "

_DIGITS = re.compile(r"\+?[0-9]+")


@dataclass(frozen=True)
class Selection:
    entry: AddressBookEntry


@dataclass(frozen=True)
class Logoff:
    pass


MenuOutcome = Union[Selection, Logoff]


def render_menu(book: AddressBook) -> str:
    lines = ["\r\nAddress book:\r\n", f"{0:>3}: Logoff\r\n"]
    for idx, entry in enumerate(book, start=1):
        lines.append(f"{idx:>3}: {entry.label} - {entry.address}\r\n")
    return "".join(lines)


def parse_choice(text: str, count: int) -> Optional[int]:
    """
    Return the menu number typed by the user, or None when it is not a
    whole number between 0 and ``count``. A leading ``+`` is allowed.
    """
    text = text.strip()
    if not _DIGITS.fullmatch(text):
        return None
    digits = text.lstrip("+").lstrip("0") or "0"
    # anything longer than count's digits is out of range, and int() caps length
    if len(digits) > len(str(count)):
        return None
    choice = int(digits)
    if choice > count:
        return None
    return choice


async def run_menu(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    book: AddressBook,
    max_line_length: int = MAX_LINE_LENGTH,
) -> MenuOutcome:
    """
    Show the menu until the user picks a destination or logs off.

    Waits for input indefinitely; a client disconnect surfaces as
    ConnectionClosed from the line reader.
    """
    while True:
        writer.write(render_menu(book).encode("utf-8"))
        await writer.drain()

        line = await read_line(reader, writer, PROMPT, max_line_length=max_line_length)
        choice = parse_choice(line, len(book))

        if choice == 0:
            writer.write(b"\r\nGoodbye!\r\n")
            await writer.drain()
            return Logoff()
        if choice is not None:
            return Selection(book[choice - 1])

        logger.debug("invalid menu choice %r", line)
        writer.write(f"\r\nInvalid choice - {line!r} - please try again.\r\n".encode("utf-8"))
        await writer.drain()
