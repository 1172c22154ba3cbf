import logging
import threading

import pytest

from location_relay.logging_utils import StatusLog, setup_logging
from location_relay.state import RelayStats


def test_status_log_prefixes_time_and_bounds_history():
    log = StatusLog(max_lines=2, clock=lambda: 0.0)

    for message in ("one", "two", "three"):
        log.append(message)

    lines = log.lines()
    assert len(lines) == 2
    assert lines[0].endswith("] two")
    assert lines[1].startswith("[") and lines[1].endswith("] three")


def test_status_log_forwards_to_logging(caplog):
    log = StatusLog()

    with caplog.at_level(logging.INFO, logger="location_relay.status"):
        log.append("UDP Receiver started on port: 2004")

    assert "UDP Receiver started on port: 2004" in caplog.text


def test_status_log_listener_failures_are_swallowed():
    log = StatusLog()
    seen = []

    def explode(line):
        raise RuntimeError("boom")

    log.add_listener(explode)
    log.add_listener(seen.append)
    log.append("hello")
    log.remove_listener(explode)
    log.remove_listener(explode)

    assert len(seen) == 1 and seen[0].endswith("hello")


def test_status_log_is_safe_under_concurrent_appends():
    log = StatusLog(max_lines=10_000)

    def writer(index):
        for n in range(200):
            log.append(f"{index}-{n}")

    threads = [threading.Thread(target=writer, args=(i,)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(log.lines()) == 1600
    log.clear()
    assert log.last() is None


def test_status_log_rejects_empty_capacity():
    with pytest.raises(ValueError):
        StatusLog(max_lines=0)


def test_setup_logging_is_a_noop_when_configured(tmp_path):
    root = logging.getLogger()
    sentinel = logging.NullHandler()
    saved = root.handlers[:]
    root.handlers = [sentinel]
    try:
        setup_logging(log_file=tmp_path / "relay.log")
        assert root.handlers == [sentinel]
    finally:
        root.handlers = saved


def test_setup_logging_installs_stream_and_file_handlers(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    root.handlers = []
    try:
        setup_logging(log_file=tmp_path / "logs" / "relay.log")
        kinds = {type(handler).__name__ for handler in root.handlers}
        assert kinds == {"StreamHandler", "RotatingFileHandler"}
        assert (tmp_path / "logs" / "relay.log").exists()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers = saved_handlers
        root.setLevel(saved_level)


def test_relay_stats_counters():
    stats = RelayStats()

    stats.increment("pushed")
    stats.increment("pushed", 2)

    assert stats.get("pushed") == 3
    assert stats.get("missing") == 0
    snapshot = stats.snapshot()
    assert snapshot["pushed"] == 3
    assert "uptime_s" in snapshot
