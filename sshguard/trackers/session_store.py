# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

from dataclasses import dataclass
from typing import Dict, List, Optional
import threading
import time
from sshguard.events.ssh_event import split_session_key


def _now_ms():
    return round(time.time() * 1000.0)


@dataclass
class Session:
    user: str
    ip: str
    port: str
    bytes_received: int = 0
    bytes_sent: int = 0
    last_event_time: int = 0
    # Set once the connection has ended.  The residual traffic is flushed once more before removal
    pending_delete: bool = False


@dataclass(frozen=True)
class SessionSnapshot:
    key: str
    user: str
    ip: str
    port: str
    bytes_received: int
    bytes_sent: int
    last_event_time: int
    pending_delete: bool


def _snapshot(key, session: Session) -> SessionSnapshot:
    return SessionSnapshot(key=key, user=session.user, ip=session.ip, port=session.port,
                           bytes_received=session.bytes_received, bytes_sent=session.bytes_sent,
                           last_event_time=session.last_event_time, pending_delete=session.pending_delete)


class SessionStore:
    '''
    Keyed table of SSH sessions shared by the log tailer, the traffic sniffer and the stats flusher.
    Every operation takes the lock for a single read-modify-write and hands out copies,
    so no caller ever holds a reference to a live record
    '''

    def __init__(self):
        self._sessions = {}  # type: Dict[str, Session]
        self._lock = threading.Lock()

    def _create(self, key, user='', timestamp_ms=None):
        ip, port = split_session_key(key)
        session = Session(user=user, ip=ip, port=port,
                          last_event_time=timestamp_ms if timestamp_ms is not None else _now_ms())
        self._sessions[key] = session
        return session

    def seed(self, initial_sessions: Dict[str, dict]):
        ''' Loads the sessions that were already established before the guard started '''
        with self._lock:
            for key, session_info in initial_sessions.items():
                if key not in self._sessions:
                    self._create(key, session_info.get('user', ''))

    def get_or_create(self, key, user='') -> SessionSnapshot:
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                session = self._create(key, user)
            return _snapshot(key, session)

    def set_user(self, key, user, timestamp_ms=None) -> bool:
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                return False
            session.user = user
            if timestamp_ms is not None:
                session.last_event_time = timestamp_ms
            return True

    def set_or_create_user(self, key, user, timestamp_ms=None):
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                self._create(key, user, timestamp_ms)
                return
            session.user = user
            if timestamp_ms is not None:
                session.last_event_time = timestamp_ms

    def mark_pending_delete(self, key, timestamp_ms=None) -> Optional[str]:
        '''
        Flags the session as closed.  Idempotent, and a no-op for unknown keys.
        :return: the user stored for the session, or None if there is no such session
        '''
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                return None
            session.pending_delete = True
            if timestamp_ms is not None:
                session.last_event_time = timestamp_ms
            return session.user

    def accumulate_bytes(self, key, is_receive: bool, byte_count: int):
        # Traffic can show up before any log line, e.g. a connection opened before the guard started
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                session = self._create(key)
            if is_receive:
                session.bytes_received += byte_count
            else:
                session.bytes_sent += byte_count

    def drain_due(self) -> List[SessionSnapshot]:
        '''
        Reads and resets the traffic counters of every session with traffic since the last drain.
        A pending-delete session is only removed by a drain that finds both of its counters at zero,
        so its final traffic is always reported by an earlier (or never needed) snapshot
        '''
        drained = []
        with self._lock:
            for key in list(self._sessions.keys()):
                session = self._sessions[key]
                if session.bytes_received == 0 and session.bytes_sent == 0:
                    if session.pending_delete:
                        del self._sessions[key]
                    continue

                drained.append(_snapshot(key, session))
                session.bytes_received = 0
                session.bytes_sent = 0

        return drained

    def get_session(self, key) -> Optional[SessionSnapshot]:
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                return None
            return _snapshot(key, session)

    def get_sessions(self) -> List[SessionSnapshot]:
        with self._lock:
            return [_snapshot(key, session) for key, session in self._sessions.items()]

    def __len__(self):
        with self._lock:
            return len(self._sessions)

    def __contains__(self, key):
        with self._lock:
            return key in self._sessions
