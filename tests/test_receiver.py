import socket
import threading
import time

import pytest

from location_relay.logging_utils import StatusLog
from location_relay.protocol.messages import LocationFix
from location_relay.receiver import LocationReceiver, ValidationError, validate_fix
from location_relay.sinks.base import SinkError
from location_relay.sinks.memory import MemoryMockSink
from location_relay.state import ReceiverState


class RecordingSink:
    def __init__(self, *, fail_register=False, fail_push=False):
        self.fail_register = fail_register
        self.fail_push = fail_push
        self.registered = []
        self.unregistered = []
        self.pushes = []
        self.pushed = threading.Event()

    def register_provider(self, name, properties=None):
        if self.fail_register:
            raise SinkError("mock locations not allowed")
        self.registered.append(name)

    def unregister_provider(self, name):
        self.unregistered.append(name)

    def push(self, name, fix, wall_clock_ms, monotonic_ns):
        if self.fail_push:
            self.fail_push = False
            raise SinkError("permission revoked")
        self.pushes.append((name, fix, wall_clock_ms, monotonic_ns))
        self.pushed.set()


def wait_for(predicate, timeout=1.0):
    deadline = time.time() + timeout
    while not predicate():
        if time.time() > deadline:
            raise AssertionError("condition not met in time")
        time.sleep(0.01)


@pytest.fixture
def sender_socket():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    yield sock
    sock.close()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def receiver(sink):
    receiver = LocationReceiver(
        sink,
        provider_name="TestMock",
        listen_host="127.0.0.1",
        clock=lambda: 1_700_000_000.5,
        monotonic_clock=lambda: 42,
    )
    yield receiver
    receiver.stop()


def send(sock, receiver, payload):
    sock.sendto(payload, ("127.0.0.1", receiver.bound_port))


def test_datagram_is_pushed_to_mock_provider(receiver, sink, sender_socket):
    assert receiver.start(0) is True
    assert receiver.state is ReceiverState.LISTENING

    send(sender_socket, receiver, b"10.0,20.0")

    assert sink.pushed.wait(1.0)
    [(name, fix, wall_clock_ms, monotonic_ns)] = sink.pushes
    assert name == "TestMock"
    assert (fix.latitude, fix.longitude) == (10.0, 20.0)
    assert fix.timestamp == 1_700_000_000.5
    assert wall_clock_ms == 1_700_000_000_500
    assert monotonic_ns == 42


def test_malformed_and_out_of_range_datagrams_are_discarded(receiver, sink, sender_socket):
    receiver.start(0)

    for payload in (b"37.4,", b"abc,123", b"1,2,3", b"", b"91.0,0.0", b"0.0,-180.5"):
        send(sender_socket, receiver, payload)
    send(sender_socket, receiver, b"1.5,2.5")

    assert sink.pushed.wait(1.0)
    wait_for(lambda: receiver.stats.get("datagrams") == 7)
    assert [(fix.latitude, fix.longitude) for _, fix, _, _ in sink.pushes] == [(1.5, 2.5)]
    assert receiver.stats.get("parse_errors") == 4
    assert receiver.stats.get("rejected") == 2
    assert receiver.state is ReceiverState.LISTENING


def test_push_failure_does_not_stop_the_loop(sink, receiver, sender_socket):
    sink.fail_push = True
    receiver.start(0)

    send(sender_socket, receiver, b"1.0,1.0")
    wait_for(lambda: receiver.stats.get("push_errors") == 1)
    send(sender_socket, receiver, b"2.0,2.0")

    assert sink.pushed.wait(1.0)
    assert sink.pushes[0][1].latitude == 2.0


def test_push_racing_stop_is_not_reported_as_failure(sender_socket):
    log = StatusLog()
    sink = RecordingSink()
    receiver = LocationReceiver(sink, provider_name="TestMock", listen_host="127.0.0.1", log_sink=log)
    stopped = threading.Event()
    workers = []

    def push_after_stop(name, fix, wall_clock_ms, monotonic_ns):
        workers.append(threading.current_thread())
        receiver.stop()
        stopped.set()
        raise SinkError(f"mock provider {name!r} is not registered")

    sink.push = push_after_stop
    assert receiver.start(0) is True
    send(sender_socket, receiver, b"5.0,6.0")

    assert stopped.wait(1.0)
    workers[0].join(1.0)
    assert not workers[0].is_alive()
    assert receiver.stats.get("push_errors") == 0
    assert not any("Error updating mock location" in line for line in log.lines())
    assert log.last().endswith("UDP Receiver stopped")
    assert receiver.state is ReceiverState.IDLE


def test_start_twice_runs_a_single_loop(receiver, sink):
    assert receiver.start(0) is True
    port = receiver.bound_port

    assert receiver.start(0) is True

    wait_for(lambda: receiver.stats.get("loops_started") == 1)
    time.sleep(0.05)
    assert receiver.stats.get("loops_started") == 1
    assert receiver.bound_port == port
    assert sink.registered == ["TestMock"]


def test_stop_interrupts_blocked_read_and_unregisters(sink):
    log = StatusLog()
    receiver = LocationReceiver(sink, provider_name="TestMock", listen_host="127.0.0.1", log_sink=log)
    receiver.start(0)
    wait_for(lambda: receiver.stats.get("loops_started") == 1)

    started = time.monotonic()
    receiver.stop()

    assert time.monotonic() - started < 1.5
    assert receiver.state is ReceiverState.IDLE
    assert receiver.bound_port is None
    assert sink.unregistered == ["TestMock"]
    assert log.last().endswith("UDP Receiver stopped")


def test_stop_without_start_is_a_noop(sink):
    receiver = LocationReceiver(sink)

    receiver.stop()
    receiver.stop()

    assert receiver.state is ReceiverState.IDLE
    assert sink.unregistered == []


def test_restart_after_stop(receiver, sink, sender_socket):
    receiver.start(0)
    receiver.stop()

    assert receiver.start(0) is True
    send(sender_socket, receiver, b"3.0,4.0")

    assert sink.pushed.wait(1.0)
    assert sink.registered == ["TestMock", "TestMock"]
    assert receiver.stats.get("loops_started") == 2


def test_registration_failure_keeps_receiver_idle():
    sink = RecordingSink(fail_register=True)
    log = StatusLog()
    receiver = LocationReceiver(sink, listen_host="127.0.0.1", log_sink=log)

    assert receiver.start(0) is False
    assert receiver.state is ReceiverState.IDLE
    assert "Error setting up mock location provider" in log.last()


def test_bind_failure_releases_provider(sender_socket):
    sender_socket.bind(("127.0.0.1", 0))
    busy_port = sender_socket.getsockname()[1]
    sink = MemoryMockSink()
    receiver = LocationReceiver(sink, provider_name="Busy", listen_host="127.0.0.1")

    assert receiver.start(busy_port) is False
    assert receiver.state is ReceiverState.IDLE
    assert not sink.is_registered("Busy")


def test_socket_error_returns_to_idle(sink):
    class BrokenSocket:
        def __init__(self, family, type_):
            self.closed = False

        def bind(self, address):
            pass

        def getsockname(self):
            return ("127.0.0.1", 4242)

        def recvfrom(self, size):
            raise OSError("network down")

        def shutdown(self, how):
            pass

        def close(self):
            self.closed = True

    receiver = LocationReceiver(sink, provider_name="TestMock", listen_host="127.0.0.1", socket_factory=BrokenSocket)

    assert receiver.start(4242) is True
    wait_for(lambda: receiver.state is ReceiverState.IDLE and sink.unregistered)
    assert receiver.stats.get("receive_errors") == 1
    assert sink.unregistered == ["TestMock"]

    receiver.stop()
    assert sink.unregistered == ["TestMock"]


def test_memory_sink_end_to_end(sender_socket):
    sink = MemoryMockSink()
    receiver = LocationReceiver(sink, provider_name="LocationProviderMock", listen_host="127.0.0.1")
    receiver.start(0)
    try:
        send(sender_socket, receiver, b"37.422,-122.084")
        wait_for(lambda: sink.last_location("LocationProviderMock") is not None)
    finally:
        receiver.stop()

    assert not sink.is_registered("LocationProviderMock")


def test_validate_fix():
    assert validate_fix(LocationFix(90.0, -180.0)).latitude == 90.0
    with pytest.raises(ValidationError):
        validate_fix(LocationFix(91.0, 0.0))


def test_invalid_port_is_rejected(sink):
    with pytest.raises(ValueError):
        LocationReceiver(sink).start(70000)
