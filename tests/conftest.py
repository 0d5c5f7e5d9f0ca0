"""
Pytest fixtures shared across all test modules.

The guard's collaborators are replaced by in-memory fakes so the tests need neither root
privileges, a real network interface nor a real authentication log.
"""

import threading

import pytest

from sshguard.events.event_bus import EventBus
from sshguard.sources.packet_source import IPv4Header, PacketRecord, TCPHeader
from sshguard.system.device_identity import DeviceIdentity
from sshguard.trackers.session_store import SessionStore

LOCAL_IP = "10.0.0.9"
SSH_PORT = 22


class RecordingSink:
    """Event bus subscriber that keeps every NormalizedEvent it receives."""

    def __init__(self):
        self.events = []
        self._lock = threading.Lock()

    def receive(self, event):
        with self._lock:
            self.events.append(event)

    def of_type(self, event_type):
        with self._lock:
            return [e for e in self.events if e.event_type == event_type]


class FakeLogReader:
    """Hands out queued lines one at a time, None once the queue is empty."""

    def __init__(self, lines=()):
        self._lines = list(lines)
        self._lock = threading.Lock()
        self.closed = False

    def append(self, line):
        with self._lock:
            self._lines.append(line)

    def readline(self):
        with self._lock:
            if self._lines:
                return self._lines.pop(0)
        return None

    def close(self):
        self.closed = True


class ListPacketSource:
    """Packet source replaying a fixed list of records, then idling until stopped."""

    def __init__(self, records=()):
        self._records = list(records)
        self._stop_event = threading.Event()
        self.closed = False

    def records(self):
        for record in self._records:
            yield record
        self._stop_event.wait()

    def stop(self):
        self._stop_event.set()

    def close(self):
        self._stop_event.set()
        self.closed = True


def make_record(src, sport, dst, dport, length):
    return PacketRecord(ip=IPv4Header(src, dst), tcp=TCPHeader(sport, dport), length=length)


@pytest.fixture()
def device_identity(tmp_path):
    host_id_file = tmp_path / "machine-id"
    host_id_file.write_text("4c4c4544-0031-3410\n")
    return DeviceIdentity(host_id_paths=[str(host_id_file)])


@pytest.fixture()
def session_store():
    return SessionStore()


@pytest.fixture()
def sink():
    return RecordingSink()


@pytest.fixture()
def event_bus(device_identity, sink):
    bus = EventBus(device_identity)
    bus.subscribe(sink.receive)
    return bus


@pytest.fixture()
def log_reader():
    return FakeLogReader()


@pytest.fixture()
def packet_source_factory():
    return ListPacketSource


@pytest.fixture()
def record_factory():
    return make_record
