# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

import threading
from sshguard.trackers.session_store import SessionStore
from sshguard.events.event_bus import EventBus
import queue
from .dtos import SessionListResponseDto, SessionDto, EventWatchResponseDto, ResponseMessage, RequestMessage
import time
import logging

logger = logging.getLogger('sshguard_daemon')

class RequestHandler(threading.Thread):
    '''
    Parent class for handling incoming CLI requests off the MQ.  Spawns a separate thread,
    does the work, then pushes response data (with correct correlation ID) back to the client
    '''
    def __init__(self, client_id: str, correlation_id: str, response_queue: queue.Queue,
                 stay_alive_func, name=None):
        super(RequestHandler, self).__init__(name=name, daemon=True)
        self.client_id = client_id
        self.correlation_id = correlation_id
        self.response_queue = response_queue
        self.stay_alive_func = stay_alive_func

    def return_data(self, response_dto):
        response_message = ResponseMessage(response_dto, self.client_id, self.correlation_id)
        if self.stay_alive_func():
            self.response_queue.put(response_message)


class ListSessionHandler(RequestHandler):

    def __init__(self, request_message: RequestMessage, session_store: SessionStore, response_queue: queue.Queue,
                 stay_alive_func):
        super(ListSessionHandler, self).__init__(request_message.client_id, request_message.correlation_id,
                                                 response_queue, stay_alive_func)
        self.session_store = session_store

    def run(self):
        all_sessions = []
        for session in self.session_store.get_sessions():
            all_sessions.append(SessionDto(
                user=session.user,
                client_ip=session.ip,
                client_port=session.port,
                bytes_received=session.bytes_received,
                bytes_sent=session.bytes_sent,
                last_event_time=session.last_event_time,
                pending_delete=session.pending_delete
            ))
        resp_dto = SessionListResponseDto(sessions=all_sessions)

        self.return_data(resp_dto)


class WatchHandler(RequestHandler):

    def __init__(self, request_message: RequestMessage, event_bus: EventBus,
                 active_streams, response_queue: queue.Queue, stay_alive_func):
        super(WatchHandler, self).__init__(request_message.client_id, request_message.correlation_id,
                                           response_queue, stay_alive_func)
        self.event_bus = event_bus
        self.active_streams = active_streams
        self.event_types = request_message.dto_payload.event_types

    def event_received(self, event):
        self.return_data(EventWatchResponseDto(event=event))

    def run(self):

        logger.debug("Event watch subscribing")
        self.event_bus.subscribe(self.event_received, self.event_types)

        try:
            while self.active_streams.is_active(self.correlation_id) and self.stay_alive_func():
                time.sleep(0.1)
        finally:
            logger.debug("Event watch unsubscribing")
            self.event_bus.unsubscribe(self.event_received, self.event_types)
