# python
"""
doorway/telnet.py
Telnet byte-stream decoder: turns raw inbound octets into typed events.

The decoder only observes negotiation. The one reply it produces is the
refusal RFC 854 requires for an option the peer asks us to enable
(WILL -> DONT, DO -> WONT), surfaced as a DATA_SEND event for the caller
to write back.
"""
import enum
import logging
from dataclasses import dataclass, field
from typing import List, Tuple

from telnetlib3.telopt import DO, DONT, IAC, SB, SE, WILL, WONT, name_commands

logger = logging.getLogger(__name__)

_IAC = ord(IAC)
_SB = ord(SB)
_SE = ord(SE)
_WILL = ord(WILL)
_WONT = ord(WONT)
_DO = ord(DO)
_DONT = ord(DONT)
_VERBS = (_WILL, _WONT, _DO, _DONT)

# MCCP2, not part of telnetlib3's option table.
COMPRESS2 = 86

# Upper bound on a buffered, unfinished control sequence (mostly subnegotiation).
MAX_PENDING = 4096


class EventKind(enum.Enum):
    IAC = "iac"
    NEGOTIATION = "negotiation"
    SUBNEGOTIATION = "subnegotiation"
    DATA_RECEIVE = "data_receive"
    DATA_SEND = "data_send"
    DECOMPRESS_IMMEDIATE = "decompress_immediate"


@dataclass(frozen=True)
class TelnetEvent:
    kind: EventKind
    data: bytes

    def describe(self) -> str:
        if self.kind in (EventKind.DATA_RECEIVE, EventKind.DECOMPRESS_IMMEDIATE):
            return f"{self.kind.value} {self.data!r}"
        return f"{self.kind.value} {name_commands(self.data)}"


class Mode(enum.Enum):
    DATA = enum.auto()
    IAC = enum.auto()  # seen IAC
    OPTION = enum.auto()  # seen IAC + WILL/WONT/DO/DONT
    SUBNEG = enum.auto()  # inside IAC SB ...
    SUBNEG_IAC = enum.auto()  # IAC inside a subnegotiation


@dataclass(frozen=True)
class DecoderState:
    mode: Mode = Mode.DATA
    pending: bytes = field(default=b"", repr=False)


def _refusal(verb: int, option: int) -> bytes:
    reply = _DONT if verb == _WILL else _WONT
    return bytes((_IAC, reply, option))


def feed(
    state: DecoderState, chunk: bytes, refuse_options: bool = True
) -> Tuple[DecoderState, List[TelnetEvent]]:
    """
    Decode one chunk starting from ``state``.

    Returns the state to pass to the next call together with the events found
    in this chunk, in byte order. Never raises on malformed input: incomplete
    sequences wait in the returned state for more bytes.
    """
    events: List[TelnetEvent] = []
    mode = state.mode
    pending = bytearray(state.pending)
    data = bytearray()

    def flush_data() -> None:
        if data:
            events.append(TelnetEvent(EventKind.DATA_RECEIVE, bytes(data)))
            data.clear()

    def emit(kind: EventKind, payload: bytes) -> None:
        flush_data()
        events.append(TelnetEvent(kind, payload))

    for index, byte in enumerate(chunk):
        if mode is Mode.DATA:
            if byte == _IAC:
                mode = Mode.IAC
                pending = bytearray((byte,))
            else:
                data.append(byte)

        elif mode is Mode.IAC:
            if byte == _IAC:
                # escaped 0xFF
                data.append(byte)
                mode = Mode.DATA
                pending.clear()
            elif byte in _VERBS:
                pending.append(byte)
                mode = Mode.OPTION
            elif byte == _SB:
                pending.append(byte)
                mode = Mode.SUBNEG
            else:
                pending.append(byte)
                emit(EventKind.IAC, bytes(pending))
                mode = Mode.DATA
                pending.clear()

        elif mode is Mode.OPTION:
            pending.append(byte)
            emit(EventKind.NEGOTIATION, bytes(pending))
            verb = pending[1]
            if refuse_options and verb in (_WILL, _DO):
                events.append(TelnetEvent(EventKind.DATA_SEND, _refusal(verb, byte)))
            mode = Mode.DATA
            pending.clear()

        elif mode is Mode.SUBNEG:
            pending.append(byte)
            if byte == _IAC:
                mode = Mode.SUBNEG_IAC

        elif mode is Mode.SUBNEG_IAC:
            pending.append(byte)
            if byte == _SE:
                block = bytes(pending)
                emit(EventKind.SUBNEGOTIATION, block)
                mode = Mode.DATA
                pending.clear()
                if len(block) > 2 and block[2] == COMPRESS2:
                    # everything after the compression start is deflated
                    rest = bytes(chunk[index + 1:])
                    if rest:
                        events.append(TelnetEvent(EventKind.DECOMPRESS_IMMEDIATE, rest))
                    return DecoderState(), events
            else:
                mode = Mode.SUBNEG

        if len(pending) > MAX_PENDING:
            logger.debug("dropping %d byte unfinished telnet sequence", len(pending))
            pending.clear()
            mode = Mode.DATA

    flush_data()
    return DecoderState(mode, bytes(pending)), events


class TelnetDecoder:
    """Owns the decoder state across successive chunks of one stream."""

    def __init__(self, refuse_options: bool = True):
        self.state = DecoderState()
        self.refuse_options = refuse_options

    def feed(self, chunk: bytes) -> List[TelnetEvent]:
        self.state, events = feed(self.state, chunk, self.refuse_options)
        return events
