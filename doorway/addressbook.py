"""
doorway/addressbook.py
Address book entries and the sources that supply them.

File layout (TOML):

    [[addresses]]
    label = "Level29"
    address = "bbs.fozztexx.com:23"

    [addresses.meta]
    sysop = "fozztexx"
"""
import logging
import pathlib
import tomllib
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)


class AddressBookError(Exception):
    """The address book could not be read or is malformed."""


@dataclass(frozen=True)
class AddressBookEntry:
    label: str
    address: str
    meta: Optional[Mapping[str, str]] = field(default=None, compare=False)

    def __post_init__(self):
        if self.meta is not None and not isinstance(self.meta, MappingProxyType):
            object.__setattr__(self, "meta", MappingProxyType(dict(self.meta)))


@dataclass(frozen=True)
class AddressBook:
    entries: Tuple[AddressBookEntry, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "entries", tuple(self.entries))

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[AddressBookEntry]:
        return iter(self.entries)

    def __getitem__(self, index: int) -> AddressBookEntry:
        return self.entries[index]


def _entry_from_dict(raw: Any, position: int) -> AddressBookEntry:
    if not isinstance(raw, dict):
        raise AddressBookError(f"entry {position} is not a table")
    label = raw.get("label")
    address = raw.get("address")
    if not isinstance(label, str) or not label:
        raise AddressBookError(f"entry {position} has no label")
    if not isinstance(address, str) or not address:
        raise AddressBookError(f"entry {position} ({label}) has no address")
    meta = raw.get("meta")
    if meta is not None:
        if not isinstance(meta, dict):
            raise AddressBookError(f"entry {position} ({label}) meta is not a table")
        meta = {str(k): str(v) for k, v in meta.items()}
    return AddressBookEntry(label=label, address=address, meta=meta)


def parse_address_book(text: str) -> AddressBook:
    try:
        document = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise AddressBookError(f"invalid address book: {exc}") from exc
    addresses = document.get("addresses", [])
    if not isinstance(addresses, list):
        raise AddressBookError("'addresses' must be an array of tables")
    return AddressBook(
        tuple(_entry_from_dict(raw, i + 1) for i, raw in enumerate(addresses))
    )


def load_address_book(path: Union[str, pathlib.Path]) -> AddressBook:
    path = pathlib.Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise AddressBookError(f"cannot read address book {path}: {exc}") from exc
    book = parse_address_book(text)
    logger.debug("loaded %d address book entries from %s", len(book), path)
    return book


class FileAddressBookSource:
    """Reads the address book file fresh on every call."""

    def __init__(self, path: Union[str, pathlib.Path]):
        self.path = pathlib.Path(path)

    def __call__(self) -> AddressBook:
        return load_address_book(self.path)


class StaticAddressBookSource:
    """Serves one fixed book, built once."""

    def __init__(self, entries: Iterable[AddressBookEntry]):
        self.book = AddressBook(tuple(entries))

    def __call__(self) -> AddressBook:
        return self.book
