"""Plain websocket transport built on websocket-client."""

from __future__ import annotations

import websocket

from webosctl.core.errors import TransportConnectError, TransportError, TransportSendError


class WebSocketConnection:
    def __init__(self, ws: websocket.WebSocket) -> None:
        self._ws = ws

    def send_text(self, text: str) -> None:
        try:
            self._ws.send(text)
        except (websocket.WebSocketException, OSError) as exc:
            raise TransportSendError(f"Websocket send failed: {exc}") from exc

    def recv_text(self) -> str:
        try:
            data = self._ws.recv()
        except (websocket.WebSocketException, OSError) as exc:
            raise TransportError(f"Websocket receive failed: {exc}") from exc
        if isinstance(data, bytes):
            return data.decode("utf-8", errors="replace")
        if not data:
            raise TransportError("Websocket closed by peer")
        return data

    def close(self) -> None:
        self._ws.close()


class WebSocketConnector:
    def connect(self, host: str, port: int, *, timeout_s: float = 5.0) -> WebSocketConnection:
        url = f"ws://{host}:{port}/"
        try:
            ws = websocket.create_connection(url, timeout=timeout_s)
        except (websocket.WebSocketException, OSError) as exc:
            raise TransportConnectError(f"Websocket connect to {url} failed: {exc}") from exc
        # Reads block until a frame arrives; only the handshake is bounded.
        ws.settimeout(None)
        return WebSocketConnection(ws)
