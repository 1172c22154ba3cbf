"""Receive relayed fixes over UDP and publish them to a mock provider."""
from __future__ import annotations

import logging
import socket
import threading
import time
from typing import Callable, List, Optional, Tuple

from .config import DEFAULT_MOCK_PROVIDER
from .logging_utils import LogSink, StatusLog
from .protocol.codec import LocationCodec, ParseError
from .protocol.messages import LocationFix
from .sinks.base import MockSink, ProviderProperties
from .state import ReceiverState, RelayStats

LOGGER = logging.getLogger(__name__)

BUFFER_SIZE = 1024

SocketFactory = Callable[[int, int], socket.socket]


class ValidationError(ValueError):
    """Raised for a well-formed fix whose coordinates are out of range."""


def validate_fix(fix: LocationFix) -> LocationFix:
    if not fix.is_valid():
        raise ValidationError(
            f"coordinates out of range: lat={fix.latitude}, lon={fix.longitude}"
        )
    return fix


class _ListenSession:
    """Socket and run flag owned by one listening period."""

    def __init__(self, sock: socket.socket, port: int) -> None:
        self.socket = sock
        self.port = port
        self.running = threading.Event()
        self.running.set()
        self.thread: Optional[threading.Thread] = None

    def interrupt(self) -> None:
        # shutdown() wakes a thread blocked in recvfrom(); close() alone may not.
        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.socket.close()


class LocationReceiver:
    """Listen for ``"<lat>,<lon>"`` datagrams and feed a :class:`MockSink`.

    States: ``IDLE -> LISTENING -> IDLE``. Exactly one worker thread runs
    the receive loop while listening. A socket failure ends the session
    and returns the receiver to ``IDLE``; :meth:`start` may be called again.
    Status lines are written to the log sink outside of the internal lock.
    """

    def __init__(
        self,
        sink: MockSink,
        *,
        provider_name: str = DEFAULT_MOCK_PROVIDER,
        listen_host: str = "0.0.0.0",
        properties: ProviderProperties | None = None,
        log_sink: LogSink | None = None,
        clock: Callable[[], float] | None = None,
        monotonic_clock: Callable[[], int] | None = None,
        buffer_size: int = BUFFER_SIZE,
        socket_factory: SocketFactory | None = None,
    ) -> None:
        if buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        self.provider_name = provider_name
        self.listen_host = listen_host
        self._sink = sink
        self._properties = properties or ProviderProperties()
        self._log: LogSink = log_sink or StatusLog()
        self._clock: Callable[[], float] = clock or time.time
        self._monotonic_clock: Callable[[], int] = monotonic_clock or time.monotonic_ns
        self._buffer_size = buffer_size
        self._socket_factory: SocketFactory = socket_factory or socket.socket
        self._lock = threading.Lock()
        self._session: Optional[_ListenSession] = None
        self._registered = False
        self.stats = RelayStats()

    # Lifecycle ------------------------------------------------------
    @property
    def state(self) -> ReceiverState:
        return ReceiverState.LISTENING if self._session is not None else ReceiverState.IDLE

    @property
    def bound_port(self) -> Optional[int]:
        session = self._session
        return session.port if session is not None else None

    def start(self, port: int) -> bool:
        """Register the mock provider and start listening on ``port``.

        Returns ``True`` when listening (including when already listening)
        and ``False`` when the provider or the socket could not be set up.
        Port ``0`` binds an ephemeral port, see :attr:`bound_port`.
        """

        if not 0 <= port <= 65535:
            raise ValueError(f"port out of range: {port}")
        errors: List[str] = []
        session: Optional[_ListenSession] = None
        with self._lock:
            if self._session is not None:
                return True
            if self._register_locked(errors):
                try:
                    sock, bound_port = self._bind(port)
                except OSError as exc:
                    LOGGER.error("cannot listen on %s:%s: %s", self.listen_host, port, exc)
                    errors.append(f"Error receiving UDP packet: {exc}")
                    self._unregister_locked(errors)
                else:
                    session = _ListenSession(sock, bound_port)
                    session.thread = threading.Thread(
                        target=self._receive_loop,
                        args=(session,),
                        name=f"udp-receiver-{bound_port}",
                        daemon=True,
                    )
                    self._session = session
        self._report(errors)
        if session is None:
            return False
        self._log.append(f"UDP Receiver started on port: {session.port}")
        session.thread.start()
        return True

    def stop(self) -> None:
        """Stop listening and remove the mock provider. Safe from any thread."""

        errors: List[str] = []
        with self._lock:
            session, self._session = self._session, None
            if session is None:
                return
            session.running.clear()
            session.interrupt()
            self._unregister_locked(errors)
        thread = session.thread
        if thread is not None and thread is not threading.current_thread() and thread.is_alive():
            thread.join(timeout=2.0)
        self._report(errors)
        self._log.append("UDP Receiver stopped")

    # Receive loop ---------------------------------------------------
    def _bind(self, port: int) -> Tuple[socket.socket, int]:
        family, type_, _, _, address = socket.getaddrinfo(
            self.listen_host, port, type=socket.SOCK_DGRAM, flags=socket.AI_PASSIVE
        )[0]
        sock = self._socket_factory(family, type_)
        try:
            sock.bind(address)
        except OSError:
            sock.close()
            raise
        return sock, sock.getsockname()[1]

    def _receive_loop(self, session: _ListenSession) -> None:
        self.stats.increment("loops_started")
        LOGGER.info("receive loop running on port %s", session.port)
        try:
            while session.running.is_set():
                try:
                    data, address = session.socket.recvfrom(self._buffer_size)
                except OSError as exc:
                    if session.running.is_set():
                        self.stats.increment("receive_errors")
                        LOGGER.error("error receiving UDP packet: %s", exc)
                        self._log.append(f"Error receiving UDP packet: {exc}")
                    break
                if not session.running.is_set():
                    break
                self._handle_datagram(session, data, address)
        except Exception as exc:
            LOGGER.exception("receive loop on port %s failed", session.port)
            self._log.append(f"Error receiving UDP packet: {exc}")
        finally:
            self._finish(session)

    def _handle_datagram(self, session: _ListenSession, data: bytes, address) -> None:
        self.stats.increment("datagrams")
        message = data.decode("utf-8", errors="replace")
        LOGGER.debug("received %r from %s", message, address)
        self._log.append(f"Received: {message}")

        try:
            fix = validate_fix(LocationCodec.decode(data))
        except ParseError as exc:
            self.stats.increment("parse_errors")
            LOGGER.warning("error parsing location message %r: %s", message, exc)
            self._log.append(f"Error parsing location message: {exc}")
            return
        except ValidationError as exc:
            self.stats.increment("rejected")
            LOGGER.warning("discarding location message %r: %s", message, exc)
            self._log.append(f"Discarded location: {exc}")
            return

        now = self._clock()
        fix = fix.with_timestamp(now)
        if not session.running.is_set():
            return
        try:
            self._sink.push(self.provider_name, fix, int(now * 1000), self._monotonic_clock())
        except Exception as exc:
            if not session.running.is_set():
                # stop() removed the provider while this push was in flight.
                LOGGER.debug("dropping fix received during shutdown: %s", exc)
                return
            self.stats.increment("push_errors")
            LOGGER.warning("error updating mock location: %s", exc)
            self._log.append(f"Error updating mock location: {exc}")
            return
        self.stats.increment("pushed")
        stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(now))
        self._log.append(
            f"Received Location: Lat={fix.latitude}, Lon={fix.longitude}, Time={stamp}"
        )

    def _finish(self, session: _ListenSession) -> None:
        errors: List[str] = []
        with self._lock:
            # Still current means the loop ended on its own, not through stop().
            abnormal = self._session is session
            if abnormal:
                self._session = None
                self._unregister_locked(errors)
        try:
            session.socket.close()
        except OSError:
            pass
        LOGGER.info("receive loop on port %s finished", session.port)
        if abnormal:
            self._report(errors)
            self._log.append("UDP Receiver stopped")

    # Mock provider --------------------------------------------------
    def _register_locked(self, errors: List[str]) -> bool:
        if self._registered:
            return True
        try:
            self._sink.register_provider(self.provider_name, self._properties)
        except Exception as exc:
            LOGGER.error("error setting up mock provider %s: %s", self.provider_name, exc)
            errors.append(f"Error setting up mock location provider: {exc}")
            return False
        self._registered = True
        return True

    def _unregister_locked(self, errors: List[str]) -> None:
        if not self._registered:
            return
        self._registered = False
        try:
            self._sink.unregister_provider(self.provider_name)
        except Exception as exc:
            LOGGER.error("error removing mock provider %s: %s", self.provider_name, exc)
            errors.append(f"Error removing mock location provider: {exc}")

    def _report(self, errors: List[str]) -> None:
        for error in errors:
            self._log.append(error)


__all__ = ["BUFFER_SIZE", "LocationReceiver", "ValidationError", "validate_fix"]
