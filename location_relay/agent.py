#!/usr/bin/env python3
"""Command-line entry point for the location relay."""
from __future__ import annotations

import argparse
import dataclasses
import logging
import signal
import sys
import threading
from typing import List, Optional

from .config import RelayConfig
from .logging_utils import setup_logging
from .paths import SINK_DIR
from .sender import StartResult
from .service import RelayService
from .sinks.file import JsonFileMockSink
from .sinks.memory import MemoryMockSink
from .sources.simulated import SimulatedLocationSource
from .sources.termux import PROVIDERS, TermuxLocationSource
from .versioning import read_version

LOGGER = logging.getLogger(__name__)

EXIT_START_FAILED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="location-relay",
        description="Relay device location fixes over UDP to a mock location provider.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {read_version()}")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    subparsers = parser.add_subparsers(dest="role", required=True)

    send = subparsers.add_parser("send", help="poll a location source and send fixes")
    send.add_argument("--host", dest="destination_host", help="receiver address")
    send.add_argument("--port", dest="destination_port", type=int, help="receiver UDP port")
    send.add_argument("--interval-ms", dest="poll_interval_ms", type=int, help="update cadence")
    send.add_argument("--provider", dest="provider_name", help=f"location provider ({', '.join(PROVIDERS)})")
    send.add_argument("--min-distance", dest="min_distance_m", type=float, help="update distance threshold (m)")
    send.add_argument("--source", choices=("simulated", "termux"), default="simulated")

    receive = subparsers.add_parser("receive", help="listen for fixes and publish them")
    receive.add_argument("--listen", dest="listen_host", help="address to bind")
    receive.add_argument("--port", dest="destination_port", type=int, help="UDP port to listen on")
    receive.add_argument("--mock-provider", dest="mock_provider_name", help="mock provider name")
    receive.add_argument("--sink", choices=("memory", "file"), default="file")
    receive.add_argument("--sink-dir", default=None, help=f"directory for the file sink (default {SINK_DIR})")
    return parser


def config_from_args(args: argparse.Namespace, base: RelayConfig) -> RelayConfig:
    overrides = {
        field.name: getattr(args, field.name)
        for field in dataclasses.fields(RelayConfig)
        if getattr(args, field.name, None) is not None
    }
    return dataclasses.replace(base, **overrides)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)
    try:
        config = config_from_args(args, RelayConfig.from_env())
    except ValueError as exc:
        LOGGER.error("invalid configuration: %s", exc)
        return EXIT_START_FAILED

    if args.role == "send":
        source = TermuxLocationSource() if args.source == "termux" else SimulatedLocationSource()
        service = RelayService(config, source=source)
        result = service.start_sender()
        if result is not StartResult.STARTED:
            LOGGER.error("sender not started: %s", result.value)
            return EXIT_START_FAILED
    else:
        sink = MemoryMockSink() if args.sink == "memory" else JsonFileMockSink(args.sink_dir)
        service = RelayService(config, sink=sink)
        if not service.start_receiver():
            return EXIT_START_FAILED

    # Keep the main thread alive while the workers run in background.
    stop_event = threading.Event()

    def _handle_signal(signum, frame):  # pragma: no cover - signal handling
        stop_event.set()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    try:
        while not stop_event.wait(1.0):
            pass
    except KeyboardInterrupt:  # pragma: no cover
        pass
    finally:
        service.stop()
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
