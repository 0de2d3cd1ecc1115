"""Transport interfaces."""

from __future__ import annotations

from typing import Protocol


class Connection(Protocol):
    def send_text(self, text: str) -> None:
        """Write one text message."""

    def recv_text(self) -> str:
        """Block until one text message arrives; raise on transport failure."""

    def close(self) -> None:
        """Release the underlying socket."""


class Connector(Protocol):
    def connect(self, host: str, port: int, *, timeout_s: float = 5.0) -> Connection:
        """Open a message transport to the TV control port."""
