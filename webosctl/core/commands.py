"""Typed TV commands layered over the connection manager's send primitive."""

from __future__ import annotations

from typing import Any, Protocol

from webosctl.core import protocol
from webosctl.core.errors import InvalidURLError, MissingArgumentError, OutOfRangeError
from webosctl.core.model import Frame


class RequestSender(Protocol):
    def send_request(self, uri: str, payload: dict[str, Any] | None = None) -> str: ...

    def request(
        self,
        uri: str,
        payload: dict[str, Any] | None = None,
        *,
        timeout_s: float | None = None,
    ) -> Frame: ...


def _require(value: str | None, name: str) -> str:
    if value is None or not value.strip():
        raise MissingArgumentError(f"{name} must not be empty")
    return value.strip()


def validate_volume(volume: int) -> int:
    if isinstance(volume, bool) or not isinstance(volume, int) or not 0 <= volume <= 100:
        raise OutOfRangeError(f"Volume must be between 0 and 100, got {volume!r}")
    return volume


def validate_video_url(url: str) -> str:
    if not isinstance(url, str) or not url.startswith(("http://", "https://")):
        raise InvalidURLError("URL must start with http:// or https://")
    return url


class TVCommands:
    """Remote-control operations for a connected TV.

    By default every operation is fire-and-forget and returns the request ID.
    With ``wait_for_response=True`` each call blocks on the TV's answer, so a
    device-reported failure raises `ProtocolError` at the call site.
    """

    def __init__(self, sender: RequestSender, *, wait_for_response: bool = False) -> None:
        self.sender = sender
        self.wait_for_response = wait_for_response

    def _send(self, uri: str, payload: dict[str, Any] | None = None) -> str:
        if self.wait_for_response:
            response = self.sender.request(uri, payload)
            return response.id or ""
        return self.sender.send_request(uri, payload)

    def play(self) -> str:
        return self._send(protocol.URI_PLAY)

    def pause(self) -> str:
        return self._send(protocol.URI_PAUSE)

    def stop(self) -> str:
        return self._send(protocol.URI_STOP)

    def rewind(self) -> str:
        return self._send(protocol.URI_REWIND)

    def fast_forward(self) -> str:
        return self._send(protocol.URI_FAST_FORWARD)

    def volume_up(self) -> str:
        return self._send(protocol.URI_VOLUME_UP)

    def volume_down(self) -> str:
        return self._send(protocol.URI_VOLUME_DOWN)

    def set_volume(self, volume: int) -> str:
        return self._send(protocol.URI_SET_VOLUME, {"volume": validate_volume(volume)})

    def mute(self) -> str:
        return self._send(protocol.URI_SET_MUTE, {"mute": True})

    def unmute(self) -> str:
        return self._send(protocol.URI_SET_MUTE, {"mute": False})

    def channel_up(self) -> str:
        return self._send(protocol.URI_CHANNEL_UP)

    def channel_down(self) -> str:
        return self._send(protocol.URI_CHANNEL_DOWN)

    def power_off(self) -> str:
        return self._send(protocol.URI_TURN_OFF)

    def toast(self, message: str) -> str:
        return self._send(protocol.URI_CREATE_TOAST, {"message": _require(message, "Toast message")})

    def launch_app(self, app_id: str, params: dict[str, Any] | None = None) -> str:
        payload: dict[str, Any] = {"id": _require(app_id, "App ID")}
        if params is not None:
            payload["params"] = params
        return self._send(protocol.URI_LAUNCH, payload)

    def launch_netflix(self) -> str:
        return self.launch_app(protocol.APP_NETFLIX)

    def launch_youtube(self, video_id: str | None = None) -> str:
        params: dict[str, Any] = {}
        if video_id and video_id.strip():
            params["contentId"] = video_id.strip()
        return self.launch_app(protocol.APP_YOUTUBE, params)

    def open_url(self, url: str) -> str:
        return self._send(protocol.URI_OPEN, {"target": _require(url, "URL")})

    def play_video_url(self, url: str) -> str:
        return self._send(
            protocol.URI_OPEN,
            {"target": validate_video_url(url), "mimeType": "video/mp4"},
        )
