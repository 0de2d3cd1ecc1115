"""Connection lifecycle for one TV: wake, connect, pair, listen, send."""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable
from typing import Any

from webosctl.core.errors import (
    ConnectionFailedError,
    CredentialStoreError,
    ListenerFailureError,
    NotConnectedError,
    ProtocolError,
    ResponseTimeoutError,
    TransportError,
    TransportSendError,
    WebosctlError,
)
from webosctl.core.model import ConnectionState, DeviceSession, Frame, SessionTimings
from webosctl.core.protocol import client_key_from, decode_frame, encode_frame, register_frame, request_frame
from webosctl.core.store import CredentialStore
from webosctl.transports.base import Connection, Connector
from webosctl.transports.probe import is_reachable
from webosctl.transports.wol import send_magic_packet
from webosctl.transports.wsclient import WebSocketConnector

LOGGER = logging.getLogger(__name__)

Prober = Callable[..., bool]
Waker = Callable[[str], None]
Reporter = Callable[[str], None]


class _Waiter:
    __slots__ = ("event", "frame")

    def __init__(self) -> None:
        self.event = threading.Event()
        self.frame: Frame | None = None


class ConnectionManager:
    """Owns the transport for a `DeviceSession`.

    `connect()` walks the session through probing, optional wake, a bounded
    number of connect attempts and registration. After that a daemon thread
    reads every inbound frame: it persists pairing keys, reports device
    errors, resolves `request()` waiters and offers each frame to a small
    bounded queue without ever blocking. Writes are serialized by a lock.

    A read failure on the listener closes the session and calls `on_closed`;
    it is up to the owner of the command loop to shut down.
    """

    def __init__(
        self,
        session: DeviceSession,
        *,
        store: CredentialStore | None = None,
        connector: Connector | None = None,
        timings: SessionTimings | None = None,
        prober: Prober | None = None,
        waker: Waker | None = None,
        sleep: Callable[[float], None] = time.sleep,
        reporter: Reporter | None = None,
        on_closed: Callable[[Exception | None], None] | None = None,
    ) -> None:
        self.session = session
        self.store = store
        self.connector = connector or WebSocketConnector()
        self.timings = timings or SessionTimings()
        self.prober = prober or is_reachable
        self.waker = waker or send_magic_packet
        self.sleep = sleep
        self.report = reporter or LOGGER.info
        self.on_closed = on_closed

        self._connection: Connection | None = None
        self._listener: threading.Thread | None = None
        self._frames: queue.Queue[Frame] = queue.Queue(maxsize=self.timings.queue_size)
        self._write_lock = threading.Lock()
        self._pending: dict[str, _Waiter] = {}
        self._pending_lock = threading.Lock()
        self._closing = threading.Event()
        self._closed = threading.Event()

    @property
    def state(self) -> ConnectionState:
        return self.session.state

    @property
    def connected(self) -> bool:
        return self._connection is not None and not self._closed.is_set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def wait_closed(self, timeout_s: float | None = None) -> bool:
        return self._closed.wait(timeout_s)

    def connect(self) -> None:
        if self.session.state == ConnectionState.READY:
            return
        if self.session.state != ConnectionState.IDLE:
            raise NotConnectedError(
                f"Session for {self.session.address} is {self.session.state.value}; create a new session"
            )

        self.session.state = ConnectionState.PROBING
        reachable = self.prober(
            self.session.address,
            self.timings.control_port,
            timeout_s=self.timings.probe_timeout_s,
        )
        if not reachable:
            self._wake()

        self.session.state = ConnectionState.CONNECTING
        connection = self._connect_with_retries()
        self.report(f"Connected to TV at {self.session.address}")

        self.session.state = ConnectionState.REGISTERING
        self._connection = connection
        self._listener = threading.Thread(
            target=self._listen,
            args=(connection,),
            name=f"webosctl-listener-{self.session.address}",
            daemon=True,
        )
        self._listener.start()

        try:
            with self._write_lock:
                self._write(connection, register_frame(self.session.client_key))
        except TransportError:
            self.close()
            raise

        if not self.session.client_key:
            self.report("Accept the pairing prompt on the TV if one appears")
        self.sleep(self.timings.registration_grace_s)

        if self._closed.is_set():
            failure = self.session.failure
            raise ConnectionFailedError(
                f"Connection to {self.session.address} closed during registration: {failure}"
            ) from failure
        self.session.state = ConnectionState.READY

    def _wake(self) -> None:
        if not self.session.mac:
            self.report("TV appears to be off, but no MAC address is known for Wake-on-LAN.")
            self.report("Provide a MAC address once to enable remote wake.")
            return

        self.session.state = ConnectionState.WAKING
        self.report("TV appears to be off; sending Wake-on-LAN signal...")
        try:
            self.waker(self.session.mac)
        except WebosctlError:
            self.session.state = ConnectionState.CLOSED
            self._closed.set()
            raise
        self.report(f"Waiting {self.timings.wake_settle_s:g} seconds for the TV to wake up...")
        self.sleep(self.timings.wake_settle_s)

    def _connect_with_retries(self) -> Connection:
        attempts = self.timings.connect_attempts
        last_error: TransportError | None = None
        for attempt in range(1, attempts + 1):
            try:
                return self.connector.connect(
                    self.session.address,
                    self.timings.control_port,
                    timeout_s=self.timings.connect_timeout_s,
                )
            except TransportError as exc:
                last_error = exc
                LOGGER.debug("Connect attempt %d/%d failed: %s", attempt, attempts, exc)
            if attempt < attempts:
                self.report(f"Retry {attempt + 1}/{attempts}...")
                self.sleep(self.timings.connect_retry_delay_s)

        self.session.state = ConnectionState.CLOSED
        self._closed.set()
        raise ConnectionFailedError(
            f"Failed to connect to {self.session.address} after {attempts} attempts: {last_error}"
        ) from last_error

    def send_request(self, uri: str, payload: dict[str, Any] | None = None) -> str:
        """Write a request frame and return its correlation ID without waiting."""
        frame = self._send(uri, payload)
        self.report("Command sent")
        return frame.id or ""

    def request(
        self,
        uri: str,
        payload: dict[str, Any] | None = None,
        *,
        timeout_s: float | None = None,
    ) -> Frame:
        """Send a request and block until the TV answers it.

        Raises `ProtocolError` if the TV reports an error,
        `ResponseTimeoutError` if no answer arrives in time and
        `ListenerFailureError` if the connection drops while waiting.
        """
        waiter = _Waiter()
        frame = self._send(uri, payload, waiter=waiter)
        timeout = self.timings.response_timeout_s if timeout_s is None else timeout_s

        if not waiter.event.wait(timeout):
            with self._pending_lock:
                self._pending.pop(frame.id or "", None)
            raise ResponseTimeoutError(f"No response to {frame.id} ({uri}) within {timeout:g}s")

        response = waiter.frame
        if response is None:
            raise self.session.failure or ListenerFailureError("Connection closed while waiting for response")
        if response.error or response.type == "error":
            raise ProtocolError(f"{uri}: {response.error or 'request failed'}")
        return response

    def next_frame(self, timeout_s: float | None = None) -> Frame | None:
        try:
            return self._frames.get(timeout=timeout_s)
        except queue.Empty:
            return None

    def close(self) -> None:
        self._closing.set()
        with self._write_lock:
            connection, self._connection = self._connection, None
        if connection is not None:
            try:
                connection.close()
            except (TransportError, OSError) as exc:
                LOGGER.debug("Error while closing transport: %s", exc)
        self.session.state = ConnectionState.CLOSED
        self._closed.set()
        self._release_waiters()

        listener = self._listener
        if listener is not None and listener is not threading.current_thread():
            listener.join(timeout=1.0)

    def _send(self, uri: str, payload: dict[str, Any] | None, *, waiter: _Waiter | None = None) -> Frame:
        with self._write_lock:
            connection = self._connection
            if connection is None or self._closed.is_set():
                raise NotConnectedError("Not connected to a TV")

            self.session.last_request_id += 1
            frame = request_frame(self.session.last_request_id, uri, payload)
            if waiter is not None:
                with self._pending_lock:
                    self._pending[frame.id or ""] = waiter
            try:
                self._write(connection, frame)
            except TransportError:
                if waiter is not None:
                    with self._pending_lock:
                        self._pending.pop(frame.id or "", None)
                raise
        LOGGER.debug("Sent %s %s", frame.id, uri)
        return frame

    def _write(self, connection: Connection, frame: Frame) -> None:
        try:
            connection.send_text(encode_frame(frame))
        except OSError as exc:
            raise TransportSendError(f"Failed to send {frame.type} frame: {exc}") from exc

    def _listen(self, connection: Connection) -> None:
        while True:
            try:
                text = connection.recv_text()
            except Exception as exc:
                if self._closing.is_set():
                    LOGGER.debug("Listener stopped after close: %s", exc)
                    return
                self._fail(ListenerFailureError(f"Connection closed: {exc}"))
                return

            try:
                frame = decode_frame(text)
            except ProtocolError as exc:
                LOGGER.warning("Skipping malformed frame: %s", exc)
                continue
            self._handle(frame)

    def _handle(self, frame: Frame) -> None:
        if frame.type == "registered":
            self._store_client_key(frame)
        elif frame.type in ("response", "error") and frame.error:
            self.report(f"Error: {frame.error}")

        if frame.id is not None:
            with self._pending_lock:
                waiter = self._pending.pop(frame.id, None)
            if waiter is not None:
                waiter.frame = frame
                waiter.event.set()

        try:
            self._frames.put_nowait(frame)
        except queue.Full:
            LOGGER.debug("Frame queue full; dropping %s frame %s", frame.type, frame.id)

    def _store_client_key(self, frame: Frame) -> None:
        key = client_key_from(frame)
        if key is None:
            LOGGER.warning("Registered frame carried no client-key")
            return

        changed = key != self.session.client_key
        self.session.client_key = key
        if self.store is not None:
            try:
                self.store.save_client_key(self.session.address, key)
            except CredentialStoreError as exc:
                self.report(f"Paired, but the key could not be saved: {exc}")
                return
        if changed:
            self.report("Paired successfully & key saved")

    def _fail(self, failure: ListenerFailureError) -> None:
        self.session.failure = failure
        self.session.state = ConnectionState.CLOSED
        self._closed.set()
        self._release_waiters()
        self.report(str(failure))
        if self.on_closed is not None:
            self.on_closed(failure)

    def _release_waiters(self) -> None:
        with self._pending_lock:
            waiters = list(self._pending.values())
            self._pending.clear()
        for waiter in waiters:
            waiter.event.set()
