"""
Tests for event normalization, delivery and the device identity attached to every event.
"""

import pytest

from sshguard.comms.event_types import *
from sshguard.events.event_bus import EventBus
from sshguard.events.ssh_event import LogEvent, split_session_key
from sshguard.system.device_identity import DeviceIdentity


class TestNormalization:

    def test_auth_event_shape(self):
        event = LogEvent(SSH_EVENT_LOGIN, "alice", "10.0.0.5", "51000", 1717236002000)
        normalized = event.normalize("DEVICE1")
        assert normalized.fields == {'authevent': 1}
        assert normalized.tags == {
            'ip': "10.0.0.5",
            'port': "51000",
            'group': SSH_EVENT_GROUP,
            'eventType': SSH_EVENT_LOGIN,
            'user': "alice",
        }
        assert normalized.device_id == "DEVICE1"
        assert normalized.timestamp_ms == 1717236002000
        assert normalized.event_type == SSH_EVENT_LOGIN

    def test_traffic_event_shape(self):
        event = LogEvent(SSH_EVENT_SESSION_RX_BYTES, "", "10.0.0.5", "51000", 1, byte_count=52)
        normalized = event.normalize("DEVICE1")
        assert normalized.fields == {'connbytes': 52}
        assert normalized.tags['user'] == UNKNOWN_USER

    def test_unknown_event_type_rejected(self):
        with pytest.raises(ValueError):
            LogEvent("reboot", "alice", "10.0.0.5", "51000", 1)

    def test_normalized_event_serializes(self):
        normalized = LogEvent(SSH_EVENT_LOGOUT, "alice", "10.0.0.5", "51000", 5).normalize("D")
        assert normalized.to_dict()['tags']['eventType'] == SSH_EVENT_LOGOUT

    def test_split_session_key(self):
        assert split_session_key("10.0.0.5:51000") == ("10.0.0.5", "51000")


class TestDeviceIdentity:

    def test_strips_dashes_and_uppercases(self, device_identity):
        assert device_identity.device_id == "4C4C454400313410"

    def test_falls_back_to_next_path(self, tmp_path):
        empty = tmp_path / "empty"
        empty.write_text("")
        machine_id = tmp_path / "machine-id"
        machine_id.write_text("abcdef\n")
        identity = DeviceIdentity(host_id_paths=[str(tmp_path / "missing"), str(empty), str(machine_id)])
        assert identity.device_id == "ABCDEF"

    def test_unreadable_host_id_is_empty(self, tmp_path):
        assert DeviceIdentity(host_id_paths=[str(tmp_path / "missing")]).device_id == ""


class TestEventBus:

    def test_push_attaches_device_id(self, event_bus, sink):
        event_bus.push(LogEvent(SSH_EVENT_NEW_CONNECTION, "", "10.0.0.5", "51000", 1))
        assert sink.events[0].device_id == "4C4C454400313410"

    def test_subscription_by_event_type(self, device_identity):
        bus = EventBus(device_identity)
        received = []
        bus.subscribe(received.append, [SSH_EVENT_LOGIN])
        bus.push(LogEvent(SSH_EVENT_NEW_CONNECTION, "", "10.0.0.5", "51000", 1))
        bus.push(LogEvent(SSH_EVENT_LOGIN, "alice", "10.0.0.5", "51000", 2))
        assert [e.event_type for e in received] == [SSH_EVENT_LOGIN]

    def test_unsubscribe(self, device_identity):
        bus = EventBus(device_identity)
        received = []

        def receiver(event):
            received.append(event)

        bus.subscribe(receiver)
        bus.unsubscribe(receiver)
        bus.push(LogEvent(SSH_EVENT_LOGIN, "alice", "10.0.0.5", "51000", 2))
        assert received == []

    def test_failing_sink_isolated(self, event_bus, sink):
        def broken_sink(event):
            raise RuntimeError("boom")

        event_bus.subscribe(broken_sink)
        event_bus.push(LogEvent(SSH_EVENT_LOGIN, "alice", "10.0.0.5", "51000", 2))
        event_bus.push(LogEvent(SSH_EVENT_LOGOUT, "alice", "10.0.0.5", "51000", 3))
        assert [e.event_type for e in sink.events] == [SSH_EVENT_LOGIN, SSH_EVENT_LOGOUT]

    def test_buses_do_not_share_receivers(self, device_identity):
        first, second = EventBus(device_identity), EventBus(device_identity)
        received = []
        first.subscribe(received.append)
        second.push(LogEvent(SSH_EVENT_LOGIN, "alice", "10.0.0.5", "51000", 2))
        assert received == []
