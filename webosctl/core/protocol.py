"""SSAP wire format: frame encoding, registration manifest, capability URIs."""

from __future__ import annotations

import json
from typing import Any

from webosctl.core.errors import ProtocolError
from webosctl.core.model import Frame

REGISTER_ID = "reg_0"
REQUEST_ID_PREFIX = "req_"

URI_PLAY = "ssap://media.controls/play"
URI_PAUSE = "ssap://media.controls/pause"
URI_STOP = "ssap://media.controls/stop"
URI_REWIND = "ssap://media.controls/rewind"
URI_FAST_FORWARD = "ssap://media.controls/fastForward"
URI_VOLUME_UP = "ssap://audio/volumeUp"
URI_VOLUME_DOWN = "ssap://audio/volumeDown"
URI_SET_VOLUME = "ssap://audio/setVolume"
URI_SET_MUTE = "ssap://audio/setMute"
URI_CHANNEL_UP = "ssap://tv/channelUp"
URI_CHANNEL_DOWN = "ssap://tv/channelDown"
URI_TURN_OFF = "ssap://system/turnOff"
URI_CREATE_TOAST = "ssap://system.notifications/createToast"
URI_LAUNCH = "ssap://system.launcher/launch"
URI_OPEN = "ssap://system.launcher/open"

APP_NETFLIX = "netflix"
APP_YOUTUBE = "youtube.leanback.v4"

PERMISSIONS: tuple[str, ...] = (
    "LAUNCH",
    "LAUNCH_WEBAPP",
    "APP_TO_APP",
    "CONTROL_AUDIO",
    "CONTROL_DISPLAY",
    "CONTROL_INPUT_JOYSTICK",
    "CONTROL_INPUT_MEDIA_RECORDING",
    "CONTROL_INPUT_MEDIA_PLAYBACK",
    "CONTROL_INPUT_TV",
    "CONTROL_POWER",
    "READ_APP_STATUS",
    "READ_CURRENT_CHANNEL",
    "READ_INPUT_DEVICE_LIST",
    "READ_NETWORK_STATE",
    "READ_RUNNING_APPS",
    "READ_TV_CHANNEL_LIST",
    "WRITE_NOTIFICATION_TOAST",
    "READ_POWER_STATE",
    "READ_COUNTRY_INFO",
)


def request_id(counter: int) -> str:
    return f"{REQUEST_ID_PREFIX}{counter}"


def register_frame(client_key: str | None = None) -> Frame:
    payload: dict[str, Any] = {
        "pairingType": "PROMPT",
        "manifest": {
            "appVersion": "1.0",
            "manifestVersion": 1,
            "permissions": list(PERMISSIONS),
        },
    }
    if client_key:
        payload["client-key"] = client_key
    return Frame(type="register", id=REGISTER_ID, payload=payload)


def request_frame(counter: int, uri: str, payload: dict[str, Any] | None = None) -> Frame:
    return Frame(type="request", id=request_id(counter), uri=uri, payload=payload)


def encode_frame(frame: Frame) -> str:
    doc: dict[str, Any] = {"type": frame.type}
    if frame.id:
        doc["id"] = frame.id
    if frame.uri:
        doc["uri"] = frame.uri
    if frame.payload:
        doc["payload"] = frame.payload
    if frame.error:
        doc["error"] = frame.error
    return json.dumps(doc)


def decode_frame(text: str | bytes) -> Frame:
    """Parse one inbound message into a `Frame`.

    Raises `ProtocolError` when the message is not a JSON object with a
    string ``type``.
    """
    try:
        doc = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise ProtocolError(f"Inbound message is not valid JSON: {exc}") from exc

    if not isinstance(doc, dict) or not isinstance(doc.get("type"), str):
        raise ProtocolError("Inbound message must be a JSON object with a 'type' field")

    payload = doc.get("payload")
    error = doc.get("error")
    frame_id = doc.get("id")
    return Frame(
        type=doc["type"],
        id=str(frame_id) if frame_id is not None else None,
        uri=doc.get("uri"),
        payload=payload if isinstance(payload, dict) else None,
        error=str(error) if error else None,
    )


def client_key_from(frame: Frame) -> str | None:
    if frame.type != "registered" or not frame.payload:
        return None
    key = frame.payload.get("client-key")
    return key if isinstance(key, str) and key else None
