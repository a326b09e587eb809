# python
"""
doorway/session.py
Per-connection session record and structured event logging.
"""
from dataclasses import dataclass
import datetime
import logging
import uuid
from typing import Any, Optional, Tuple

logger = logging.getLogger(__name__)


def iso_ts():
    """
    Return a timezone-aware UTC ISO timestamp (Z suffix) for logging.
    """
    dt = datetime.datetime.now(datetime.timezone.utc).replace(microsecond=0)
    return dt.isoformat().replace("+00:00", "Z")


@dataclass
class Session:
    session_id: str
    remote_ip: str
    remote_port: int
    started_ts: str
    bytes_in: int = 0
    bytes_out: int = 0
    relays: int = 0

    @classmethod
    def from_peer(cls, peer: Optional[Tuple[Any, ...]]) -> "Session":
        # peername can be (host, port) or (host, port, flowinfo, scopeid)
        peer = peer or ("0.0.0.0", 0)
        return cls(
            session_id=str(uuid.uuid4()),
            remote_ip=str(peer[0]),
            remote_port=int(peer[1]),
            started_ts=iso_ts(),
        )

    @property
    def peer(self) -> str:
        return f"{self.remote_ip}:{self.remote_port}"

    def log(self, event: str, level: int = logging.INFO, **fields: Any) -> None:
        payload = " ".join(f"{key}={value!r}" for key, value in fields.items())
        logger.log(level, "[%s] %s %s %s", self.session_id, self.peer, event, payload)

    def record_relay(self, bytes_in: int, bytes_out: int) -> None:
        self.relays += 1
        self.bytes_in += bytes_in
        self.bytes_out += bytes_out

    def duration_ms(self) -> int:
        started = datetime.datetime.fromisoformat(self.started_ts.replace("Z", "+00:00"))
        now = datetime.datetime.now(datetime.timezone.utc)
        return int((now - started).total_seconds() * 1000)
