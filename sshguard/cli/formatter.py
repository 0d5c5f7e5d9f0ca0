# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

from sshguard.comms.dtos import SessionListResponseDto
from sshguard.comms.event_types import UNKNOWN_USER
from sshguard.events.log_formatter import LogFormatter
from sshguard.events.ssh_event import NormalizedEvent
from sshguard.trackers.stats_flusher import format_bytes
from prettytable import PrettyTable
from prettytable import PLAIN_COLUMNS
import logging
import datetime
import timeago
import timeago.locales.en # Import this explicitly so that pyinstaller finds it

logger = logging.getLogger('sshguard_client')

def _convert_epoch_ms_to_time(epoch_ms):
    return datetime.datetime.fromtimestamp(epoch_ms/1000).strftime('%Y-%m-%d %H:%M:%S')

def _convert_epoch_ms_to_time_ago(epoch_ms):
    dt = datetime.datetime.fromtimestamp(epoch_ms/1000)
    return timeago.format(dt, datetime.datetime.now(), 'en')


def print_sessions(sessions_list: SessionListResponseDto, output_json=False):

    if output_json:
        logger.info(sessions_list.to_json())
    else:
        out_table = PrettyTable()
        out_table.set_style(PLAIN_COLUMNS)
        fields = ['User', 'Client IP', 'Last Event', 'Unflushed Rx', 'Unflushed Tx', 'State']

        out_table.field_names = fields
        for session in sessions_list.sessions:
            state = 'closing' if session.pending_delete else 'open'
            row = [session.user or UNKNOWN_USER, f'{session.client_ip}:{session.client_port}',
                   _convert_epoch_ms_to_time_ago(session.last_event_time),
                   format_bytes(session.bytes_received), format_bytes(session.bytes_sent), state]
            out_table.add_row(row)

        # If there's no rows, add a dummy row so that the headers will still print
        if len(sessions_list.sessions) == 0:
            out_table.add_row([''] * len(fields))

        logger.info(out_table.get_string(sortby='User'))


def print_event_structured(event: NormalizedEvent, output_json=False):
    if output_json:
        logger.info(event.to_json())
    else:
        event_formatter = LogFormatter()

        event_str = event_formatter.format(event)

        logger.info(_convert_epoch_ms_to_time(event.timestamp_ms) + " " + event_str)
