"""Relay fixes from a location source to a remote UDP endpoint."""
from __future__ import annotations

from enum import Enum
import logging
import socket
import threading
from typing import Callable, Optional, Set

from .config import RelayConfig
from .logging_utils import LogSink, StatusLog
from .protocol.codec import LocationCodec
from .protocol.messages import LocationFix
from .sources.base import LocationSource, Subscription
from .state import RelayStats, SenderState

LOGGER = logging.getLogger(__name__)

SocketFactory = Callable[[int, int], socket.socket]


class StartResult(str, Enum):
    STARTED = "started"
    ALREADY_RUNNING = "already_running"
    PERMISSION_DENIED = "permission_denied"
    FAILED = "failed"


class LocationSender:
    """Subscribe to a :class:`LocationSource` and send every fix over UDP.

    Each fix is sent from its own short-lived thread so a slow network never
    stalls the source's callback thread. As a consequence datagrams may
    leave in a different order than the fixes were produced.
    """

    def __init__(
        self,
        source: LocationSource,
        *,
        log_sink: LogSink | None = None,
        socket_factory: SocketFactory | None = None,
    ) -> None:
        self._source = source
        self._log: LogSink = log_sink or StatusLog()
        self._socket_factory: SocketFactory = socket_factory or socket.socket
        self._lock = threading.Lock()
        self._state = SenderState.IDLE
        self._generation = 0
        self._config: Optional[RelayConfig] = None
        self._subscription: Optional[Subscription] = None
        self._socket: Optional[socket.socket] = None
        self._workers: Set[threading.Thread] = set()
        self.stats = RelayStats()

    # Lifecycle ------------------------------------------------------
    @property
    def state(self) -> SenderState:
        return self._state

    @property
    def config(self) -> Optional[RelayConfig]:
        return self._config

    def start(self, config: RelayConfig) -> StartResult:
        if not self._source.has_permission():
            LOGGER.warning("location permission not granted, sender not started")
            self._log.append("Location permission not granted")
            return StartResult.PERMISSION_DENIED
        with self._lock:
            if self._state is SenderState.SENDING:
                return StartResult.ALREADY_RUNNING
            self._generation += 1
            generation = self._generation
            self._config = config
            self._state = SenderState.SENDING

        self._log.append(
            f"Location sender started: provider={config.provider_name}, "
            f"destination={config.destination_host}:{config.destination_port}, "
            f"interval={config.poll_interval_ms} ms"
        )

        try:
            last_known = self._source.last_known(config.provider_name)
        except Exception:
            LOGGER.exception("failed to read last known fix from %s", config.provider_name)
            last_known = None
        if last_known is not None:
            self._dispatch(last_known)

        try:
            subscription = self._source.subscribe(
                config.provider_name,
                config.poll_interval_ms,
                config.min_distance_m,
                self._on_fix,
            )
        except Exception as exc:
            LOGGER.exception("failed to subscribe to %s", config.provider_name)
            self._log.append(f"Error requesting location updates: {exc}")
            self.stop()
            return StartResult.FAILED

        with self._lock:
            if self._state is SenderState.SENDING and self._generation == generation:
                self._subscription = subscription
                subscription = None
        if subscription is not None:
            # stop() ran while we were subscribing.
            self._source.unsubscribe(subscription)
        return StartResult.STARTED

    def stop(self) -> None:
        """Unsubscribe and close the socket. Safe to call from any thread."""

        with self._lock:
            if self._state is SenderState.IDLE:
                return
            self._state = SenderState.IDLE
            subscription, self._subscription = self._subscription, None
            sock, self._socket = self._socket, None
        try:
            if subscription is not None:
                self._source.unsubscribe(subscription)
        except Exception:
            LOGGER.exception("failed to remove location updates")
        finally:
            if sock is not None:
                sock.close()
        self._log.append("Location sender stopped")

    def join(self, timeout: float | None = None) -> bool:
        """Wait for already dispatched relays; ``True`` when none is left."""

        with self._lock:
            workers = list(self._workers)
        for worker in workers:
            worker.join(timeout)
        with self._lock:
            return not any(worker.is_alive() for worker in self._workers)

    # Relaying -------------------------------------------------------
    def relay_fix(self, fix: LocationFix) -> bool:
        """Encode ``fix`` and send it to the configured destination.

        Network errors are logged and reported as ``False``; the socket is
        kept for the next fix.
        """

        with self._lock:
            if self._state is not SenderState.SENDING or self._config is None:
                LOGGER.debug("sender idle, dropping %s", fix)
                return False
            config = self._config
            sock = self._socket
        destination = (config.destination_host, config.destination_port)
        payload = LocationCodec.encode(fix)
        try:
            if sock is None:
                sock = self._ensure_socket(config)
                if sock is None:
                    return False
            sock.sendto(payload, destination)
        except OSError as exc:
            self.stats.increment("send_errors")
            LOGGER.warning("error sending UDP packet to %s:%s: %s", destination[0], destination[1], exc)
            self._log.append(f"Error sending UDP packet: {exc}")
            return False
        self.stats.increment("relayed")
        LOGGER.debug("sent %r to %s:%s", payload, destination[0], destination[1])
        self._log.append(f"Sent: {payload.decode('utf-8')}")
        return True

    def _ensure_socket(self, config: RelayConfig) -> Optional[socket.socket]:
        family = socket.getaddrinfo(
            config.destination_host, config.destination_port, type=socket.SOCK_DGRAM
        )[0][0]
        sock = self._socket_factory(family, socket.SOCK_DGRAM)
        with self._lock:
            if self._state is not SenderState.SENDING:
                sock.close()
                return None
            if self._socket is not None:
                # Another relay thread won the race.
                sock.close()
                return self._socket
            self._socket = sock
            return sock

    def _on_fix(self, fix: LocationFix) -> None:
        self._dispatch(fix)

    def _dispatch(self, fix: LocationFix) -> None:
        with self._lock:
            if self._state is not SenderState.SENDING:
                return
            worker = threading.Thread(
                target=self._relay_worker,
                args=(fix,),
                name="location-relay-send",
                daemon=True,
            )
            self._workers.add(worker)
        worker.start()

    def _relay_worker(self, fix: LocationFix) -> None:
        try:
            self.relay_fix(fix)
        except Exception:
            LOGGER.exception("unexpected error relaying %s", fix)
        finally:
            with self._lock:
                self._workers.discard(threading.current_thread())


__all__ = ["LocationSender", "StartResult"]
