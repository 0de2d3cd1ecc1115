"""Core data models used across the store, connection manager, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ConnectionState(str, Enum):
    IDLE = "idle"
    PROBING = "probing"
    WAKING = "waking"
    CONNECTING = "connecting"
    REGISTERING = "registering"
    READY = "ready"
    CLOSED = "closed"


@dataclass(frozen=True)
class DeviceRecord:
    address: str
    mac: str | None = None
    client_key: str | None = None


@dataclass(frozen=True)
class SessionTimings:
    """Fixed pacing used by the connection lifecycle, in seconds."""

    control_port: int = 3000
    probe_timeout_s: float = 2.0
    wake_settle_s: float = 30.0
    connect_attempts: int = 5
    connect_retry_delay_s: float = 3.0
    connect_timeout_s: float = 5.0
    registration_grace_s: float = 2.0
    command_pacing_s: float = 0.5
    response_timeout_s: float = 5.0
    queue_size: int = 10


@dataclass(frozen=True)
class Frame:
    type: str
    id: str | None = None
    uri: str | None = None
    payload: dict[str, Any] | None = None
    error: str | None = None


@dataclass
class DeviceSession:
    """Mutable state of one TV connection.

    The pairing credential is only ever replaced by a non-empty value; the
    connection manager never clears it while the session is alive.
    """

    address: str
    mac: str | None = None
    client_key: str | None = None
    state: ConnectionState = ConnectionState.IDLE
    last_request_id: int = 0
    failure: Exception | None = field(default=None, repr=False)

    @classmethod
    def from_record(cls, record: DeviceRecord) -> DeviceSession:
        return cls(address=record.address, mac=record.mac, client_key=record.client_key)

    @property
    def paired(self) -> bool:
        return bool(self.client_key)
