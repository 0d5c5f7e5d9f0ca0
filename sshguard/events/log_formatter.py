# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)


from sshguard.comms.event_types import *
from .ssh_event import NormalizedEvent

class LogFormatter:
    def __init__(self):
        self.event_type_padding = self._max_string_length(SSH_ALL_EVENTS)


    def _max_string_length(self, arr):
        max_length = 0
        for element in arr:
            if len(element) > max_length:
                max_length = len(element)
        return max_length

    def _client_ip_str(self, event: NormalizedEvent):
        return f"{event.tags.get('ip', '')}:{event.tags.get('port', '')}"

    def format(self, event: NormalizedEvent):

        event_type = event.event_type
        str_format = f"{event_type:{self.event_type_padding}} "

        # Sessions without a resolved user are tagged "unknown", no need to repeat that in every line
        user = event.tags.get('user', UNKNOWN_USER)
        if user == UNKNOWN_USER:
            username_padded = ''
        else:
            username_padded = user + ' '

        if event_type == SSH_EVENT_NEW_CONNECTION:
            str_format += f"from ip {self._client_ip_str(event)}"
        elif event_type == SSH_EVENT_LOGIN:
            str_format += f"{username_padded}logged in from ip {self._client_ip_str(event)}"
        elif event_type == SSH_EVENT_FAILED_LOGIN_ATTEMPT:
            str_format += f"{username_padded}failed login attempt from ip {self._client_ip_str(event)}"
        elif event_type == SSH_EVENT_FINAL_LOGIN_FAILED:
            str_format += f"{username_padded}login failed from ip {self._client_ip_str(event)}"
        elif event_type == SSH_EVENT_LOGOUT:
            str_format += f"{username_padded}logged out from ip {self._client_ip_str(event)}"
        elif event_type == SSH_EVENT_SESSION_RX_BYTES:
            str_format += f"{username_padded}from ip {self._client_ip_str(event)} received {event.fields.get('connbytes', 0)} bytes"
        elif event_type == SSH_EVENT_SESSION_TX_BYTES:
            str_format += f"{username_padded}from ip {self._client_ip_str(event)} sent {event.fields.get('connbytes', 0)} bytes"

        return str_format
