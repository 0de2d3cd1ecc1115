"""Stable public API for building tooling on top of webosctl.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from types import TracebackType

from webosctl.core.commands import TVCommands
from webosctl.core.connection import ConnectionManager, Prober, Reporter, Waker
from webosctl.core.errors import (
    CommandArgumentError,
    ConnectionFailedError,
    CredentialStoreError,
    InvalidAddressError,
    InvalidURLError,
    ListenerFailureError,
    MissingArgumentError,
    NotConnectedError,
    OutOfRangeError,
    ProtocolError,
    ResponseTimeoutError,
    TransportConnectError,
    TransportError,
    TransportSendError,
    WebosctlError,
)
from webosctl.core.model import ConnectionState, DeviceRecord, DeviceSession, Frame, SessionTimings
from webosctl.core.store import CredentialStore, YAMLCredentialStore
from webosctl.transports.base import Connector
from webosctl.transports.probe import is_reachable
from webosctl.transports.wol import build_magic_packet, canonical_mac, send_magic_packet

__all__ = [
    "WebosctlError",
    "CommandArgumentError",
    "ConnectionFailedError",
    "CredentialStoreError",
    "InvalidAddressError",
    "InvalidURLError",
    "ListenerFailureError",
    "MissingArgumentError",
    "NotConnectedError",
    "OutOfRangeError",
    "ProtocolError",
    "ResponseTimeoutError",
    "TransportError",
    "TransportConnectError",
    "TransportSendError",
    "ConnectionState",
    "DeviceRecord",
    "DeviceSession",
    "Frame",
    "SessionTimings",
    "TVCommands",
    "YAMLCredentialStore",
    "build_magic_packet",
    "canonical_mac",
    "is_reachable",
    "send_magic_packet",
    "Client",
]


class Client:
    """Public client for one TV.

    A `Client` loads the persisted record for ``address``, remembers a MAC
    address when one is given, and wires a `ConnectionManager` and
    `TVCommands` together. Collaborators can be replaced for tests or for
    embedding in other tools.
    """

    def __init__(
        self,
        address: str,
        *,
        mac: str | None = None,
        store: CredentialStore | None = None,
        connector: Connector | None = None,
        timings: SessionTimings | None = None,
        prober: Prober | None = None,
        waker: Waker | None = None,
        sleep: Callable[[float], None] = time.sleep,
        reporter: Reporter | None = None,
        on_closed: Callable[[Exception | None], None] | None = None,
        wait_for_response: bool = False,
    ) -> None:
        self.store = store if store is not None else YAMLCredentialStore()
        record = self.store.load(address)
        if mac:
            mac = canonical_mac(mac)
            self.store.save_mac(address, mac)
            record = DeviceRecord(address=address, mac=mac, client_key=record.client_key)

        self.session = DeviceSession.from_record(record)
        self.timings = timings or SessionTimings()
        self.sleep = sleep
        self.manager = ConnectionManager(
            self.session,
            store=self.store,
            connector=connector,
            timings=self.timings,
            prober=prober,
            waker=waker,
            sleep=sleep,
            reporter=reporter,
            on_closed=on_closed,
        )
        self.commands = TVCommands(self.manager, wait_for_response=wait_for_response)

    @property
    def closed(self) -> bool:
        return self.manager.closed

    def connect(self) -> None:
        self.manager.connect()

    def close(self) -> None:
        self.manager.close()

    def __enter__(self) -> Client:
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
