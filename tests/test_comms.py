"""
Tests for the local request/response messages and the CLI output.
"""

import logging
import queue
import time

from sshguard.cli.formatter import print_event_structured, print_sessions
from sshguard.comms.active_streams import ActiveStreams
from sshguard.comms.dtos import (EventWatchRequestDto, EventWatchResponseDto, RequestMessage, ResponseMessage,
                                 SessionListRequestDto, SessionListResponseDto, deserialize_message)
from sshguard.comms.event_types import *
from sshguard.comms.mq_server import MQLocalServer
from sshguard.comms.request_handlers import ListSessionHandler, WatchHandler
from sshguard.events.log_formatter import LogFormatter
from sshguard.events.ssh_event import LogEvent


def _alive():
    return True


class TestMessages:

    def test_request_survives_the_wire(self):
        request = RequestMessage(EventWatchRequestDto(event_types=[SSH_EVENT_LOGIN]), "client-1")
        decoded = deserialize_message(request.to_json())
        assert isinstance(decoded, RequestMessage)
        assert decoded.correlation_id == request.correlation_id
        assert decoded.dto_payload.event_types == [SSH_EVENT_LOGIN]

    def test_watch_response_carries_normalized_event(self):
        event = LogEvent(SSH_EVENT_LOGIN, "alice", "10.0.0.5", "51000", 1717236002000).normalize("DEVICE1")
        response = ResponseMessage(EventWatchResponseDto(event=event), "client-1", "corr-1")
        decoded = deserialize_message(response.to_json())
        assert decoded.dto_payload.event == event

    def test_watch_defaults_to_all_events(self):
        assert EventWatchRequestDto().event_types == SSH_ALL_EVENTS

    def test_unknown_payload_type(self):
        assert deserialize_message('{"payload_type": 99, "dto_payload": "{}", "client_id": "c", '
                                   '"correlation_id": "x"}') is None


class TestRequestHandlers:

    def test_list_sessions(self, session_store):
        session_store.get_or_create("10.0.0.5:51000", "alice")
        session_store.accumulate_bytes("10.0.0.5:51000", True, 60)
        session_store.mark_pending_delete("10.0.0.5:51000")

        responses = queue.Queue()
        request = RequestMessage(SessionListRequestDto(), "client-1")
        ListSessionHandler(request, session_store, responses, _alive).run()

        response = responses.get_nowait()
        assert response.correlation_id == request.correlation_id
        session = response.dto_payload.sessions[0]
        assert (session.user, session.client_ip, session.client_port) == ("alice", "10.0.0.5", "51000")
        assert session.bytes_received == 60
        assert session.pending_delete

    def test_watch_streams_events_until_inactive(self, event_bus):
        streams = ActiveStreams(max_seconds=0.3)
        responses = queue.Queue()
        request = RequestMessage(EventWatchRequestDto(event_types=[SSH_EVENT_LOGOUT]), "client-1")
        streams.refresh(request.correlation_id)

        handler = WatchHandler(request, event_bus, streams, responses, _alive)
        handler.start()
        time.sleep(0.05)
        event_bus.push(LogEvent(SSH_EVENT_LOGIN, "alice", "10.0.0.5", "51000", 1))
        event_bus.push(LogEvent(SSH_EVENT_LOGOUT, "alice", "10.0.0.5", "51000", 2))

        handler.join(timeout=5)
        assert not handler.is_alive()
        assert responses.qsize() == 1
        assert responses.get_nowait().dto_payload.event.event_type == SSH_EVENT_LOGOUT

        # Unsubscribed once the stream expired
        event_bus.push(LogEvent(SSH_EVENT_LOGOUT, "alice", "10.0.0.5", "51000", 3))
        assert responses.empty()

    def test_watch_request_with_unknown_types_ignored(self, session_store, event_bus):
        server = MQLocalServer(session_store, event_bus)
        request = RequestMessage(EventWatchRequestDto(event_types=["reboot"]), "client-1")
        server._launch_task(request)
        assert not server.active_streams.is_active(request.correlation_id)


def test_active_streams_expire():
    streams = ActiveStreams(max_seconds=0.05)
    assert not streams.is_active("a")
    streams.refresh("a")
    assert streams.is_active("a")
    time.sleep(0.1)
    assert not streams.is_active("a")


class TestOutput:

    def test_log_formatter_lines(self):
        formatter = LogFormatter()
        login = LogEvent(SSH_EVENT_LOGIN, "alice", "10.0.0.5", "51000", 1).normalize("D")
        rx = LogEvent(SSH_EVENT_SESSION_RX_BYTES, "", "10.0.0.5", "51000", 1, byte_count=52).normalize("D")
        assert formatter.format(login).endswith("alice logged in from ip 10.0.0.5:51000")
        assert formatter.format(rx).endswith(" from ip 10.0.0.5:51000 received 52 bytes")
        assert "unknown" not in formatter.format(rx)

    def test_print_sessions_table(self, caplog):
        caplog.set_level(logging.INFO, logger='sshguard_client')
        sessions = SessionListResponseDto.from_dict({'sessions': [{
            'user': '', 'client_ip': '10.0.0.5', 'client_port': '51000', 'bytes_received': 1536,
            'bytes_sent': 0, 'last_event_time': int(time.time() * 1000), 'pending_delete': True}]})
        print_sessions(sessions)
        output = caplog.text
        assert "10.0.0.5:51000" in output
        assert "1.50KiB" in output
        assert "closing" in output
        assert UNKNOWN_USER in output

    def test_print_event_json(self, caplog):
        caplog.set_level(logging.INFO, logger='sshguard_client')
        event = LogEvent(SSH_EVENT_LOGOUT, "alice", "10.0.0.5", "51000", 1).normalize("D")
        print_event_structured(event, output_json=True)
        assert '"eventType": "logout"' in caplog.text
