# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

import logging
from sshguard.config import GuardConfig
from sshguard.events.event_bus import EventBus
from sshguard.sources.auth_log import AuthLogReader
from sshguard.sources.netinfo import get_active_ssh_sessions, get_ipv4_from_interface
from sshguard.sources.packet_source import ScapyPacketSource
from sshguard.trackers.log_tailer import LogTailer
from sshguard.trackers.session_store import SessionStore
from sshguard.trackers.stats_flusher import StatsFlusher
from sshguard.trackers.traffic_sniffer import TrafficSniffer

logger = logging.getLogger('sshguard_daemon')

THREAD_JOIN_TIMEOUT_SEC = 10.0


class SSHGuard:
    '''
    Wires the log tailer, the traffic sniffer and the stats flusher around one session store.
    The collaborators can be swapped (e.g., for tests), otherwise they are built from the config
    '''

    def __init__(self, config: GuardConfig, session_store: SessionStore, event_bus: EventBus,
                 log_reader=None, packet_source=None, local_ip=None, initial_sessions=None):
        self.config = config
        self.session_store = session_store
        self.event_bus = event_bus
        self.log_reader = log_reader
        self.packet_source = packet_source
        self.local_ip = local_ip
        self.initial_sessions = initial_sessions

        self.log_tailer = None
        self.traffic_sniffer = None
        self.stats_flusher = None

    def _open_collaborators(self):
        # Each of these raises its own GuardStartupError subclass so the operator knows what is missing
        if self.local_ip is None:
            self.local_ip = get_ipv4_from_interface(self.config.interface_tracked)
        logger.info(f"Tracking SSH traffic for {self.local_ip} on {self.config.interface_tracked}")

        if self.log_reader is None:
            self.log_reader = AuthLogReader(self.config.auth_log_path)
            self.log_reader.open()

        if self.packet_source is None:
            packet_source = ScapyPacketSource(self.config.interface_tracked, self.config.ssh_listen_port)
            try:
                packet_source.open()
            except Exception:
                self.log_reader.close()
                raise
            self.packet_source = packet_source

    def _seed_sessions(self):
        if self.initial_sessions is None:
            self.initial_sessions = get_active_ssh_sessions(self.config.ssh_listen_port)

        self.session_store.seed(self.initial_sessions)
        for session in self.session_store.get_sessions():
            logger.info(f"sessionId: {session.key} | ip: {session.ip} | port: {session.port} | user: {session.user}")

    def _close_collaborators(self):
        if self.packet_source is not None:
            self.packet_source.close()
        if self.log_reader is not None:
            self.log_reader.close()

    def start(self):
        self._open_collaborators()
        try:
            self._seed_sessions()
        except Exception:
            self._close_collaborators()
            raise

        self.log_tailer = LogTailer(self.log_reader, self.session_store, self.event_bus)
        self.traffic_sniffer = TrafficSniffer(self.packet_source, self.session_store, self.local_ip,
                                              self.config.ssh_listen_port)
        self.stats_flusher = StatsFlusher(self.session_store, self.event_bus, self.config.interval_rate_seconds)

        self.stats_flusher.start()
        self.log_tailer.start()
        self.traffic_sniffer.start()
        logger.info("SSH guard started")

    def is_running(self):
        threads = [self.log_tailer, self.traffic_sniffer, self.stats_flusher]
        return all(thread is not None and thread.is_alive() for thread in threads)

    def stop(self):
        logger.info("Stopping SSH guard")

        # Stop the producers first so the final flush sees all of the captured traffic
        if self.traffic_sniffer is not None:
            self.traffic_sniffer.stop()
            self.traffic_sniffer.join(timeout=THREAD_JOIN_TIMEOUT_SEC)

        if self.log_tailer is not None:
            self.log_tailer.stop()
            self.log_tailer.join(timeout=THREAD_JOIN_TIMEOUT_SEC)

        if self.stats_flusher is not None:
            self.stats_flusher.stop()
            self.stats_flusher.join(timeout=THREAD_JOIN_TIMEOUT_SEC)

        if self.log_reader is not None:
            self.log_reader.close()
