"""High level orchestration for the location relay."""
from __future__ import annotations

import logging
from typing import Optional

from .config import RelayConfig
from .logging_utils import LogSink, StatusLog
from .receiver import LocationReceiver
from .sender import LocationSender, StartResult
from .sinks.base import MockSink
from .sinks.memory import MemoryMockSink
from .sources.base import LocationSource
from .sources.simulated import SimulatedLocationSource
from .state import ReceiverState, SenderState

LOGGER = logging.getLogger(__name__)


class RelayService:
    """Build the sender and/or receiver described by a :class:`RelayConfig`.

    Both components share one status log. A configuration change requires
    :meth:`stop` followed by a new start with the replaced config.
    """

    def __init__(
        self,
        config: RelayConfig | None = None,
        *,
        source: LocationSource | None = None,
        sink: MockSink | None = None,
        log_sink: LogSink | None = None,
    ) -> None:
        self.config = config or RelayConfig.from_env()
        self.log_sink: LogSink = log_sink or StatusLog()
        self.source: LocationSource = source or SimulatedLocationSource()
        self.sink: MockSink = sink or MemoryMockSink()
        self._sender: Optional[LocationSender] = None
        self._receiver: Optional[LocationReceiver] = None

    @property
    def sender(self) -> LocationSender:
        if self._sender is None:
            self._sender = LocationSender(self.source, log_sink=self.log_sink)
        return self._sender

    @property
    def receiver(self) -> LocationReceiver:
        if self._receiver is None:
            self._receiver = LocationReceiver(
                self.sink,
                provider_name=self.config.mock_provider_name,
                listen_host=self.config.listen_host,
                log_sink=self.log_sink,
            )
        return self._receiver

    def start_sender(self) -> StartResult:
        LOGGER.info(
            "starting sender towards %s:%s",
            self.config.destination_host,
            self.config.destination_port,
        )
        return self.sender.start(self.config)

    def start_receiver(self) -> bool:
        LOGGER.info("starting receiver on %s:%s", self.config.listen_host, self.config.destination_port)
        return self.receiver.start(self.config.destination_port)

    def reconfigure(self, config: RelayConfig) -> None:
        """Replace the config, restarting whichever component was running."""

        sender_running = self._sender is not None and self._sender.state is SenderState.SENDING
        receiver_running = self._receiver is not None and self._receiver.state is ReceiverState.LISTENING
        self.stop()
        self.config = config
        self._sender = None
        self._receiver = None
        if sender_running:
            self.start_sender()
        if receiver_running:
            self.start_receiver()

    def stop(self) -> None:
        if self._sender is not None:
            self._sender.stop()
        if self._receiver is not None:
            self._receiver.stop()
        LOGGER.info("relay service stopped")


__all__ = ["RelayService"]
