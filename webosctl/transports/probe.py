"""TCP reachability probe for the TV control port."""

from __future__ import annotations

import socket


def is_reachable(host: str, port: int = 3000, *, timeout_s: float = 2.0) -> bool:
    try:
        with socket.create_connection((host, port), timeout=timeout_s):
            return True
    except OSError:
        return False
