"""Wake-on-LAN magic packet sender."""

from __future__ import annotations

import logging
import re
import socket

from webosctl.core.errors import InvalidAddressError, TransportError

WOL_PORT = 9
BROADCAST_ADDRESS = "255.255.255.255"
LOGGER = logging.getLogger(__name__)
_HEX_RE = re.compile(r"^(?:[0-9A-Fa-f]{2})*\Z")


def parse_mac(mac: str) -> bytes:
    normalized = mac.replace(":", "").replace("-", "")
    if not _HEX_RE.match(normalized):
        raise InvalidAddressError(f"Invalid MAC address '{mac}': expected hex byte pairs separated by ':' or '-'")
    hw = bytes.fromhex(normalized)
    if len(hw) != 6:
        raise InvalidAddressError(f"Invalid MAC address '{mac}': expected 6 bytes, got {len(hw)}")
    return hw


def canonical_mac(mac: str) -> str:
    """Return `mac` as upper-case, colon-separated pairs."""
    return ":".join(f"{octet:02X}" for octet in parse_mac(mac))


def build_magic_packet(mac: str) -> bytes:
    """Return the 102-byte packet: 6x 0xFF then the MAC repeated 16 times."""
    return b"\xff" * 6 + parse_mac(mac) * 16


def send_magic_packet(mac: str, *, broadcast: str = BROADCAST_ADDRESS, port: int = WOL_PORT) -> None:
    packet = build_magic_packet(mac)
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    except OSError as exc:
        raise TransportError(f"Could not create broadcast socket: {exc}") from exc
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
        sock.sendto(packet, (broadcast, port))
    except OSError as exc:
        raise TransportError(f"Wake-on-LAN send to {broadcast}:{port} failed: {exc}") from exc
    finally:
        sock.close()
    LOGGER.debug("Sent magic packet for %s to %s:%d", mac, broadcast, port)
