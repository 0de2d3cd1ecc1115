from __future__ import annotations

import json
import queue
import threading
from collections.abc import Callable
from pathlib import Path

import pytest

from webosctl.core.connection import ConnectionManager
from webosctl.core.errors import (
    ConnectionFailedError,
    InvalidAddressError,
    ListenerFailureError,
    NotConnectedError,
    ProtocolError,
    ResponseTimeoutError,
    TransportConnectError,
    TransportError,
)
from webosctl.core.model import ConnectionState, DeviceSession, Frame
from webosctl.core.store import YAMLCredentialStore


class FakeConnection:
    def __init__(self, responder: Callable[[dict], dict | None] | None = None) -> None:
        self.sent: list[dict] = []
        self.closed = False
        self._inbound: queue.Queue[str | Exception] = queue.Queue()
        self._responder = responder

    def send_text(self, text: str) -> None:
        doc = json.loads(text)
        self.sent.append(doc)
        if self._responder is not None and doc["type"] == "request":
            reply = self._responder(doc)
            if reply is not None:
                self.push(reply)

    def recv_text(self) -> str:
        item = self._inbound.get()
        if isinstance(item, Exception):
            raise item
        return item

    def push(self, doc: dict | str) -> None:
        self._inbound.put(doc if isinstance(doc, str) else json.dumps(doc))

    def drop(self) -> None:
        self._inbound.put(TransportError("connection reset by peer"))

    def close(self) -> None:
        self.closed = True
        self._inbound.put(TransportError("closed locally"))


class FakeConnector:
    def __init__(self, failures: int = 0, connection: FakeConnection | None = None) -> None:
        self.failures = failures
        self.attempts = 0
        self.connection = connection or FakeConnection()

    def connect(self, host: str, port: int, *, timeout_s: float = 5.0) -> FakeConnection:
        self.attempts += 1
        if self.attempts <= self.failures:
            raise TransportConnectError(f"refused ({self.attempts})")
        return self.connection


class Harness:
    def __init__(
        self,
        connector: FakeConnector,
        *,
        store: YAMLCredentialStore | None = None,
        reachable: bool = True,
        mac: str | None = None,
        client_key: str | None = None,
        waker: Callable[[str], None] | None = None,
    ) -> None:
        self.connector = connector
        self.sleeps: list[float] = []
        self.wakes: list[str] = []
        self.reports: list[str] = []
        self.closed_with: list[Exception | None] = []
        self.session = DeviceSession(address="192.168.1.50", mac=mac, client_key=client_key)
        self.manager = ConnectionManager(
            self.session,
            store=store,
            connector=connector,
            prober=lambda host, port, timeout_s: reachable,
            waker=waker or self.wakes.append,
            sleep=self.sleeps.append,
            reporter=self.reports.append,
            on_closed=self.closed_with.append,
        )

    @property
    def connection(self) -> FakeConnection:
        return self.connector.connection


@pytest.fixture
def store(tmp_path: Path) -> YAMLCredentialStore:
    return YAMLCredentialStore(tmp_path / "devices.yaml")


def test_connect_succeeds_on_fifth_attempt() -> None:
    harness = Harness(FakeConnector(failures=4))

    harness.manager.connect()

    assert harness.connector.attempts == 5
    assert harness.sleeps == [3.0, 3.0, 3.0, 3.0, 2.0]
    assert harness.manager.state == ConnectionState.READY
    harness.manager.close()


def test_connect_gives_up_after_five_attempts() -> None:
    harness = Harness(FakeConnector(failures=10))

    with pytest.raises(ConnectionFailedError):
        harness.manager.connect()

    assert harness.connector.attempts == 5
    assert harness.sleeps == [3.0, 3.0, 3.0, 3.0]
    assert harness.manager.state == ConnectionState.CLOSED
    assert harness.connection.sent == []


def test_register_frame_carries_manifest_and_stored_key() -> None:
    harness = Harness(FakeConnector(), client_key="saved-key")
    harness.manager.connect()

    register = harness.connection.sent[0]
    assert register["type"] == "register"
    assert register["id"] == "reg_0"
    assert register["payload"]["pairingType"] == "PROMPT"
    assert register["payload"]["client-key"] == "saved-key"
    manifest = register["payload"]["manifest"]
    assert manifest["manifestVersion"] == 1
    assert "CONTROL_AUDIO" in manifest["permissions"]
    assert "WRITE_NOTIFICATION_TOAST" in manifest["permissions"]
    harness.manager.close()


def test_unreachable_without_mac_still_connects() -> None:
    harness = Harness(FakeConnector(), reachable=False)

    harness.manager.connect()

    assert harness.wakes == []
    assert any("no MAC address" in line for line in harness.reports)
    assert harness.sleeps == [2.0]
    assert harness.manager.state == ConnectionState.READY
    harness.manager.close()


def test_wake_failure_is_returned_to_caller() -> None:
    def bad_waker(mac: str) -> None:
        raise InvalidAddressError(f"Invalid MAC address '{mac}'")

    harness = Harness(FakeConnector(), reachable=False, mac="nope", waker=bad_waker)

    with pytest.raises(InvalidAddressError):
        harness.manager.connect()
    assert harness.connector.attempts == 0
    assert harness.manager.state == ConnectionState.CLOSED


def test_wake_pair_and_reuse_key(store: YAMLCredentialStore) -> None:
    harness = Harness(FakeConnector(), store=store, reachable=False, mac="AA:BB:CC:DD:EE:FF")

    harness.manager.connect()

    assert harness.wakes == ["AA:BB:CC:DD:EE:FF"]
    assert harness.sleeps[0] == 30.0
    assert harness.connector.attempts == 1
    assert "client-key" not in harness.connection.sent[0]["payload"]

    harness.connection.push({"type": "registered", "id": "reg_0", "payload": {"client-key": "abc123"}})
    frame = harness.manager.next_frame(timeout_s=2.0)
    assert frame is not None and frame.type == "registered"
    assert harness.session.client_key == "abc123"
    assert "Paired successfully & key saved" in harness.reports
    harness.manager.close()

    record = YAMLCredentialStore(store.path).load("192.168.1.50")
    assert record.client_key == "abc123"

    again = Harness(FakeConnector(), store=store, client_key=record.client_key)
    again.manager.connect()
    assert again.connection.sent[0]["payload"]["client-key"] == "abc123"
    again.manager.close()


def test_replayed_registration_is_idempotent(store: YAMLCredentialStore) -> None:
    harness = Harness(FakeConnector(), store=store)
    harness.manager.connect()

    for _ in range(2):
        harness.connection.push({"type": "registered", "payload": {"client-key": "abc123"}})
        assert harness.manager.next_frame(timeout_s=2.0) is not None

    assert harness.session.client_key == "abc123"
    assert store.load("192.168.1.50").client_key == "abc123"
    assert harness.reports.count("Paired successfully & key saved") == 1
    assert not harness.manager.closed
    harness.manager.close()


def test_request_ids_strictly_increase() -> None:
    harness = Harness(FakeConnector())
    harness.manager.connect()

    ids = [harness.manager.send_request("ssap://media.controls/play") for _ in range(20)]

    counters = [int(request_id.removeprefix("req_")) for request_id in ids]
    assert counters == sorted(counters)
    assert len(set(counters)) == 20
    assert counters[0] == 1
    assert [doc["id"] for doc in harness.connection.sent[1:]] == ids
    assert harness.reports.count("Command sent") == 20
    harness.manager.close()


def test_send_request_requires_connection() -> None:
    harness = Harness(FakeConnector())
    with pytest.raises(NotConnectedError):
        harness.manager.send_request("ssap://media.controls/play")


def test_error_response_is_reported_but_not_fatal() -> None:
    harness = Harness(FakeConnector())
    harness.manager.connect()

    harness.connection.push({"type": "response", "id": "req_1", "error": "404 no such service"})
    assert harness.manager.next_frame(timeout_s=2.0) is not None

    assert "Error: 404 no such service" in harness.reports
    assert not harness.manager.closed
    harness.manager.send_request("ssap://media.controls/pause")
    harness.manager.close()


def test_malformed_frame_is_skipped() -> None:
    harness = Harness(FakeConnector())
    harness.manager.connect()

    harness.connection.push("not json at all")
    harness.connection.push({"type": "response", "id": "req_9"})

    frame = harness.manager.next_frame(timeout_s=2.0)
    assert frame is not None and frame.id == "req_9"
    assert not harness.manager.closed
    harness.manager.close()


def test_full_queue_drops_frames_without_blocking_listener() -> None:
    harness = Harness(FakeConnector())
    harness.manager.connect()

    for index in range(15):
        harness.connection.push({"type": "response", "id": f"req_{index}"})
    harness.connection.drop()
    assert harness.manager.wait_closed(2.0)

    drained = []
    while (frame := harness.manager.next_frame(timeout_s=0)) is not None:
        drained.append(frame.id)
    assert drained == [f"req_{index}" for index in range(10)]


def test_listener_failure_closes_session_and_notifies() -> None:
    harness = Harness(FakeConnector())
    harness.manager.connect()

    harness.connection.drop()

    assert harness.manager.wait_closed(2.0)
    assert harness.manager.state == ConnectionState.CLOSED
    assert isinstance(harness.session.failure, ListenerFailureError)
    assert len(harness.closed_with) == 1
    assert any("Connection closed" in line for line in harness.reports)
    with pytest.raises(NotConnectedError):
        harness.manager.send_request("ssap://media.controls/play")


def test_close_is_orderly() -> None:
    harness = Harness(FakeConnector())
    harness.manager.connect()

    harness.manager.close()

    assert harness.connection.closed
    assert harness.manager.closed
    assert harness.session.failure is None
    assert harness.closed_with == []
    assert not any(t.name.startswith("webosctl-listener") for t in threading.enumerate())


def test_request_returns_matching_response() -> None:
    def responder(doc: dict) -> dict:
        return {"type": "response", "id": doc["id"], "payload": {"returnValue": True}}

    harness = Harness(FakeConnector(connection=FakeConnection(responder)))
    harness.manager.connect()

    response = harness.manager.request("ssap://audio/setVolume", {"volume": 10})

    assert isinstance(response, Frame)
    assert response.id == "req_1"
    assert response.payload == {"returnValue": True}
    harness.manager.close()


def test_request_raises_protocol_error() -> None:
    def responder(doc: dict) -> dict:
        return {"type": "error", "id": doc["id"], "error": "401 insufficient permissions"}

    harness = Harness(FakeConnector(connection=FakeConnection(responder)))
    harness.manager.connect()

    with pytest.raises(ProtocolError, match="401 insufficient permissions"):
        harness.manager.request("ssap://system/turnOff")
    assert not harness.manager.closed
    harness.manager.close()


def test_request_times_out_without_response() -> None:
    harness = Harness(FakeConnector())
    harness.manager.connect()

    with pytest.raises(ResponseTimeoutError):
        harness.manager.request("ssap://media.controls/play", timeout_s=0.05)
    harness.manager.close()
