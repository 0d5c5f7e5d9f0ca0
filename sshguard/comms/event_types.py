# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

# These strings are emitted as the "eventType" tag of every normalized event
SSH_EVENT_NEW_CONNECTION = 'conn'
SSH_EVENT_LOGIN = 'login'
SSH_EVENT_FAILED_LOGIN_ATTEMPT = 'login_attempt_fail'
SSH_EVENT_FINAL_LOGIN_FAILED = 'login_fail'
SSH_EVENT_LOGOUT = 'logout'

# Traffic events are only produced by the periodic flush, never by the log tailer
SSH_EVENT_SESSION_RX_BYTES = 'ssh_session_rx_bytes'
SSH_EVENT_SESSION_TX_BYTES = 'ssh_session_tx_bytes'

SSH_AUTH_EVENTS = [
    SSH_EVENT_NEW_CONNECTION,
    SSH_EVENT_LOGIN,
    SSH_EVENT_FAILED_LOGIN_ATTEMPT,
    SSH_EVENT_FINAL_LOGIN_FAILED,
    SSH_EVENT_LOGOUT
]

SSH_TRAFFIC_EVENTS = [
    SSH_EVENT_SESSION_RX_BYTES,
    SSH_EVENT_SESSION_TX_BYTES
]

SSH_ALL_EVENTS = SSH_AUTH_EVENTS + SSH_TRAFFIC_EVENTS

# Constant tag attached to every event produced by the guard
SSH_EVENT_GROUP = 'SSH'
UNKNOWN_USER = 'unknown'


# For reference, these are sample normalized payloads for the various events.

# {'fields': {'authevent': 1}, 'tags': {'ip': '10.0.0.5', 'port': '51000', 'group': 'SSH', 'eventType': 'conn', 'user': 'unknown'}, 'device_id': '4C4C4544003...', 'timestamp_ms': 1685613600000}
# {'fields': {'authevent': 1}, 'tags': {'ip': '10.0.0.5', 'port': '51000', 'group': 'SSH', 'eventType': 'login', 'user': 'alice'}, 'device_id': '4C4C4544003...', 'timestamp_ms': 1685613602000}
# {'fields': {'connbytes': 120}, 'tags': {'ip': '10.0.0.5', 'port': '51000', 'group': 'SSH', 'eventType': 'ssh_session_rx_bytes', 'user': 'alice'}, 'device_id': '4C4C4544003...', 'timestamp_ms': 1685613610000}
# {'fields': {'authevent': 1}, 'tags': {'ip': '10.0.0.5', 'port': '51000', 'group': 'SSH', 'eventType': 'logout', 'user': 'alice'}, 'device_id': '4C4C4544003...', 'timestamp_ms': 1685613900000}
