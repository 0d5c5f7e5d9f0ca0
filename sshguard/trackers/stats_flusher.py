# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

import logging
import threading
import time
from sshguard.comms.event_types import *
from sshguard.events.event_bus import EventBus
from sshguard.events.ssh_event import LogEvent
from .session_store import SessionStore

logger = logging.getLogger('sshguard_daemon')

BYTE_UNITS = ['B', 'KiB', 'MiB', 'GiB', 'TiB', 'PiB', 'EiB']


def format_bytes(byte_count):
    value = float(byte_count)
    unit_index = 0
    while value >= 1024 and unit_index < len(BYTE_UNITS) - 1:
        value /= 1024
        unit_index += 1
    return f"{value:.2f}{BYTE_UNITS[unit_index]}"


class StatsFlusher(threading.Thread):
    '''
    Every interval, drains the traffic counters of the session store and emits one rx and one tx
    event per session that had traffic.  Events are stamped with the flush time
    '''

    def __init__(self, session_store: SessionStore, event_bus: EventBus, interval_seconds=10,
                 flush_on_stop=True, name='ssh-stats-flusher'):
        super(StatsFlusher, self).__init__(name=name, daemon=True)
        self.session_store = session_store
        self.event_bus = event_bus
        self.interval_seconds = interval_seconds
        self.flush_on_stop = flush_on_stop
        self._stop_event = threading.Event()

    def stop(self):
        self._stop_event.set()

    def stay_alive(self):
        return not self._stop_event.is_set()

    def flush(self):
        '''
        :return: list of the traffic events emitted by this flush
        '''
        now_ms = round(time.time() * 1000.0)
        emitted = []

        # The store lock is released before anything is handed to the sinks
        snapshots = self.session_store.drain_due()
        if len(snapshots) == 0:
            return emitted

        logger.info("---- SSH session statistics ----")
        for snapshot in snapshots:
            if snapshot.bytes_received > 0:
                emitted.append(LogEvent(SSH_EVENT_SESSION_RX_BYTES, snapshot.user, snapshot.ip, snapshot.port,
                                        now_ms, byte_count=snapshot.bytes_received))
            if snapshot.bytes_sent > 0:
                emitted.append(LogEvent(SSH_EVENT_SESSION_TX_BYTES, snapshot.user, snapshot.ip, snapshot.port,
                                        now_ms, byte_count=snapshot.bytes_sent))

            logger.info(f"Session {snapshot.key} -> Bytes received: {format_bytes(snapshot.bytes_received)} | "
                        f"Bytes sent: {format_bytes(snapshot.bytes_sent)}")

        # EventBus.push isolates sink failures, so every drained snapshot still reaches the remaining sinks
        for event in emitted:
            self.event_bus.push(event)
        logger.info("--------------------------------")

        return emitted

    def run(self):
        logger.info(f"Flushing SSH traffic statistics every {self.interval_seconds} seconds")

        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.flush()
            except Exception:
                logger.exception("Error flushing SSH traffic statistics.  Continuing.")

        if self.flush_on_stop:
            try:
                self.flush()
            except Exception:
                logger.exception("Error in the final SSH traffic statistics flush")

        logger.info("SSH stats flusher stopped")
