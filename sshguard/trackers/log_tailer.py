# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

import dataclasses
import logging
import math
import threading
from sshguard.comms.event_types import *
from sshguard.events import classifier
from sshguard.events.event_bus import EventBus
from sshguard.events.ssh_event import LogEvent
from .session_store import SessionStore

logger = logging.getLogger('sshguard_daemon')

LOG_TAIL_BASE_DELAY_SEC = 0.020
LOG_TAIL_MAX_DELAY_SEC = 5.0
LOG_TAIL_GROWTH_FACTOR = 5.0


def compute_backoff_delay(idle_count, base_delay=LOG_TAIL_BASE_DELAY_SEC, max_delay=LOG_TAIL_MAX_DELAY_SEC,
                          growth_factor=LOG_TAIL_GROWTH_FACTOR):
    '''
    Logarithmic backoff used while the log is quiet.  Grows quickly at first, then flattens out,
    and always stays within [base_delay, max_delay]
    '''
    delay = base_delay * math.log1p(idle_count * growth_factor)
    return min(max(delay, base_delay), max_delay)


class LogTailer(threading.Thread):
    '''
    Reads the authentication log line by line, keeps the session store in sync with the
    lifecycle of each connection and pushes lifecycle events as soon as they are read
    '''

    def __init__(self, log_reader, session_store: SessionStore, event_bus: EventBus,
                 base_delay=LOG_TAIL_BASE_DELAY_SEC, max_delay=LOG_TAIL_MAX_DELAY_SEC,
                 growth_factor=LOG_TAIL_GROWTH_FACTOR, name='ssh-log-tailer'):
        super(LogTailer, self).__init__(name=name, daemon=True)
        self.log_reader = log_reader
        self.session_store = session_store
        self.event_bus = event_bus
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.growth_factor = growth_factor
        self.idle_count = 0
        self._stop_event = threading.Event()

    def stop(self):
        self._stop_event.set()

    def stay_alive(self):
        return not self._stop_event.is_set()

    def _apply_to_store(self, classified: classifier.ClassifiedLine) -> LogEvent:
        event = classified.event
        key = event.session_key

        if classified.store_action == classifier.STORE_SET_OR_CREATE_USER:
            self.session_store.set_or_create_user(key, event.user, event.timestamp_ms)
        elif classified.store_action == classifier.STORE_SET_USER:
            self.session_store.set_user(key, event.user, event.timestamp_ms)
        elif classified.store_action == classifier.STORE_MARK_DELETE:
            self.session_store.mark_pending_delete(key, event.timestamp_ms)
        elif classified.store_action == classifier.STORE_MARK_DELETE_RESOLVE_USER:
            # The line has no user, take whatever the session knew.  Unknown sessions still log out
            stored_user = self.session_store.mark_pending_delete(key, event.timestamp_ms)
            event = dataclasses.replace(event, user=stored_user or '')

        return event

    def _log_event(self, event: LogEvent):
        if event.event_type == SSH_EVENT_NEW_CONNECTION:
            logger.info(f"New SSH connection: client='{event.ip}:{event.port}'")
        elif event.event_type == SSH_EVENT_FAILED_LOGIN_ATTEMPT:
            logger.info(f"Failed login attempt: user='{event.user}' ip='{event.ip}' port='{event.port}'")
        elif event.event_type == SSH_EVENT_FINAL_LOGIN_FAILED:
            logger.info(f"Login failed, connection closed: user='{event.user}' ip='{event.ip}' port='{event.port}'")
        elif event.event_type == SSH_EVENT_LOGIN:
            logger.info(f"[+] SSH login succeeded: user='{event.user}' ip='{event.ip}' port='{event.port}'")
        elif event.event_type == SSH_EVENT_LOGOUT:
            logger.info(f"[-] SSH user disconnected: user='{event.user}' ip='{event.ip}' port='{event.port}'")

    def process_line(self, line):
        '''
        Classifies one log line, applies it to the session store and emits the resulting event.
        :return: the emitted LogEvent, or None if the line is not an SSH lifecycle line
        '''
        classified = classifier.classify_line(line)
        if classified is None:
            return None

        event = self._apply_to_store(classified)
        self._log_event(event)
        self.event_bus.push(event)
        return event

    def next_delay(self, line_read: bool):
        if line_read:
            self.idle_count = 0
            return self.base_delay

        self.idle_count += 1
        return compute_backoff_delay(self.idle_count, self.base_delay, self.max_delay, self.growth_factor)

    def run(self):
        logger.info("Monitoring SSH authentication events")

        while self.stay_alive():
            line = self.log_reader.readline()
            if line is not None:
                try:
                    self.process_line(line)
                except Exception:
                    logger.exception(f"Error processing log line: {line}")

            # Waiting on the stop event lets stop() cut a long backoff short
            self._stop_event.wait(self.next_delay(line is not None))

        logger.info("SSH log tailer stopped")
