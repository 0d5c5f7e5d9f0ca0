# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

from dataclasses import dataclass, field
from dataclasses_json import dataclass_json
from typing import List
import json
from uuid import uuid4
from .event_types import SSH_ALL_EVENTS
from sshguard.events.ssh_event import NormalizedEvent

SESSION_LIST_REQUEST = 1
SESSION_LIST_RESPONSE = 2
EVENT_WATCH_REQUEST = 3
EVENT_WATCH_RESPONSE = 4

class SerializableMessage:
    def __init__(self, dto_payload, client_id, correlation_id):
        self.payload_type = dto_payload.payload_type
        self.dto_payload = dto_payload
        self.client_id = client_id
        self.correlation_id = correlation_id

    def __str__(self):
        return self.correlation_id + " - " + self.dto_payload.__repr__()

    def to_json(self):
        json_obj = json.dumps({
            'correlation_id': self.correlation_id,
            'client_id': self.client_id,
            'payload_type': self.payload_type,
            'dto_payload': self.dto_payload.to_json()
        })
        return json_obj


class RequestMessage(SerializableMessage):
    def __init__(self, dto_payload, client_id, correlation_id=None):
        if not correlation_id:
            correlation_id = uuid4().__str__()
        super(RequestMessage, self).__init__(dto_payload, client_id, correlation_id)

class ResponseMessage(SerializableMessage):
    def __init__(self, dto_payload, client_id, correlation_id):
        super(ResponseMessage, self).__init__(dto_payload, client_id, correlation_id)



@dataclass_json
@dataclass(frozen=True)
class SessionListRequestDto:
    payload_type: int = SESSION_LIST_REQUEST

@dataclass_json
@dataclass(frozen=True)
class SessionDto:
    user: str
    client_ip: str
    client_port: str
    bytes_received: int
    bytes_sent: int
    last_event_time: int
    pending_delete: bool


@dataclass_json
@dataclass(frozen=True)
class SessionListResponseDto:
    sessions: List[SessionDto]
    payload_type: int = SESSION_LIST_RESPONSE

@dataclass_json
@dataclass(frozen=True)
class EventWatchRequestDto:
    event_types: List[str] = field(default_factory=lambda: list(SSH_ALL_EVENTS))
    payload_type: int = EVENT_WATCH_REQUEST

@dataclass_json
@dataclass(frozen=True)
class EventWatchResponseDto:
    event: NormalizedEvent
    payload_type: int = EVENT_WATCH_RESPONSE


_REQUEST_DTOS = {
    SESSION_LIST_REQUEST: SessionListRequestDto,
    EVENT_WATCH_REQUEST: EventWatchRequestDto,
}

_RESPONSE_DTOS = {
    SESSION_LIST_RESPONSE: SessionListResponseDto,
    EVENT_WATCH_RESPONSE: EventWatchResponseDto,
}


def deserialize_message(json_data):
    raw_dict = json.loads(json_data)
    payload_type = raw_dict['payload_type']
    if payload_type in _REQUEST_DTOS:
        return RequestMessage(_REQUEST_DTOS[payload_type].from_json(raw_dict['dto_payload']),
                              raw_dict['client_id'], correlation_id=raw_dict['correlation_id'])
    elif payload_type in _RESPONSE_DTOS:
        return ResponseMessage(_RESPONSE_DTOS[payload_type].from_json(raw_dict['dto_payload']),
                               raw_dict['client_id'], correlation_id=raw_dict['correlation_id'])

    return None
