# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

from dataclasses import dataclass, field
from dataclasses_json import dataclass_json
from typing import Any, Dict
import datetime
from sshguard.comms.event_types import *


@dataclass_json
@dataclass(frozen=True)
class NormalizedEvent:
    '''
    The only shape that leaves the guard.  Sinks receive a flat set of fields and string tags,
    the opaque device identifier and a timestamp in epoch milliseconds
    '''
    fields: Dict[str, Any]
    tags: Dict[str, str]
    device_id: str
    timestamp_ms: int

    @property
    def event_type(self):
        return self.tags.get('eventType', '')

    @property
    def time(self):
        return datetime.datetime.fromtimestamp(self.timestamp_ms / 1000.0)


@dataclass(frozen=True)
class LogEvent:
    '''
    A single SSH lifecycle or traffic event.  The event type is restricted to SSH_ALL_EVENTS,
    byte_count is only meaningful for the rx/tx traffic events
    '''
    event_type: str
    user: str
    ip: str
    port: str
    timestamp_ms: int
    byte_count: int = field(default=0)

    def __post_init__(self):
        if self.event_type not in SSH_ALL_EVENTS:
            raise ValueError(f"Invalid event type {self.event_type}.  Possible event types are {SSH_ALL_EVENTS}")

    @property
    def session_key(self):
        return session_key(self.ip, self.port)

    def is_traffic(self):
        return self.event_type in SSH_TRAFFIC_EVENTS

    def normalize(self, device_id: str) -> NormalizedEvent:
        tags = {
            'ip': self.ip,
            'port': self.port,
            'group': SSH_EVENT_GROUP,
            'eventType': self.event_type,
            'user': self.user if self.user else UNKNOWN_USER,
        }

        if self.is_traffic():
            fields = {'connbytes': self.byte_count}
        else:
            fields = {'authevent': 1}

        return NormalizedEvent(fields=fields, tags=tags, device_id=device_id, timestamp_ms=self.timestamp_ms)


def session_key(ip, port):
    return f"{ip}:{port}"


def split_session_key(key):
    # IPv4 only, so the last colon always separates the port
    ip, _, port = key.rpartition(':')
    return ip, port
