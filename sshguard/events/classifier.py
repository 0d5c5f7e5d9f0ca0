# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

from dataclasses import dataclass
from typing import Optional
import datetime
import re
from sshguard.comms.event_types import *
from .ssh_event import LogEvent

IPV4 = r'\d+\.\d+\.\d+\.\d+'

# Ordered from most to least specific.  The first match wins
RE_CONNECTION = re.compile(rf'Connection from ({IPV4}) port (\d+) on ({IPV4}) port (\d+)')
RE_FAILED_LOGIN = re.compile(rf'Failed (?:password|none) for (?:invalid user )?(\S+) from ({IPV4}) port (\d+)')
RE_MAX_AUTH_EXCEEDED = re.compile(rf'error: maximum authentication attempts exceeded for (?:invalid user )?(\S+) '
                                  rf'from ({IPV4}) port (\d+)(?:\s+ssh2)? \[preauth\]')
RE_CLOSED_AUTHENTICATING = re.compile(rf'Connection closed by (?:authenticating|invalid) user (\S+) '
                                      rf'({IPV4}) port (\d+) \[preauth\]')
RE_SUCCESSFUL_LOGIN = re.compile(rf'Accepted (?:password|publickey|keyboard-interactive/pam) for (\S+) '
                                 rf'from ({IPV4}) port (\d+)')
RE_DISCONNECTED = re.compile(rf'Disconnected from (?:invalid |authenticating )?user (\S+) ({IPV4}) port (\d+)')
RE_CLOSED = re.compile(rf'Connection closed by ({IPV4}) port (\d+)')

RE_TIMESTAMP = re.compile(r'^((?:[A-Z][a-z]{2}\s+\d{1,2}\s+\d{2}:\d{2}:\d{2})|'
                          r'(?:\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})?))')
RE_FRACTION = re.compile(r'\.(\d+)')

ISO_FORMATS = [
    '%Y-%m-%dT%H:%M:%S.%f%z',
    '%Y-%m-%dT%H:%M:%S%z',
    '%Y-%m-%dT%H:%M:%S.%f',
    '%Y-%m-%dT%H:%M:%S',
]

# What the log tailer must do to the session store after classifying a line
STORE_NOOP = 'noop'
STORE_SET_OR_CREATE_USER = 'set_or_create_user'
STORE_SET_USER = 'set_user'
STORE_MARK_DELETE = 'mark_delete'
# Mark for deletion and take the user from the stored session, since the line does not carry one
STORE_MARK_DELETE_RESOLVE_USER = 'mark_delete_resolve_user'


@dataclass(frozen=True)
class ClassifiedLine:
    event: LogEvent
    store_action: str = STORE_NOOP


def parse_log_timestamp(stamp: str, now: Optional[datetime.datetime] = None) -> int:
    '''
    Converts a log line timestamp into epoch milliseconds.
    Classic syslog stamps ("Jun  1 10:00:00") have no year and are assumed to be in the current year,
    ISO-8601 stamps may carry fractional seconds and a UTC offset.
    Never raises: a missing or malformed stamp falls back to the current wall-clock time
    '''
    if now is None:
        now = datetime.datetime.now()

    if not stamp:
        return int(now.timestamp() * 1000)

    if stamp[0].isalpha():
        try:
            # Collapse the double space syslog uses to pad single digit days
            parsed = datetime.datetime.strptime(f"{' '.join(stamp.split())} {now.year}", '%b %d %H:%M:%S %Y')
            return int(parsed.timestamp() * 1000)
        except ValueError:
            return int(now.timestamp() * 1000)

    # strptime only understands up to microsecond precision
    iso_stamp = RE_FRACTION.sub(lambda m: '.' + m.group(1)[:6], stamp, count=1)
    for iso_format in ISO_FORMATS:
        try:
            parsed = datetime.datetime.strptime(iso_stamp, iso_format)
            return int(parsed.timestamp() * 1000)
        except ValueError:
            continue

    return int(now.timestamp() * 1000)


def extract_timestamp(line: str, now: Optional[datetime.datetime] = None) -> int:
    match = RE_TIMESTAMP.match(line)
    if match is None:
        return parse_log_timestamp('', now)
    return parse_log_timestamp(match.group(1), now)


def classify_line(line: str, timestamp_ms: Optional[int] = None) -> Optional[ClassifiedLine]:
    '''
    Maps one authentication log line onto at most one SSH lifecycle event.
    Returns None for lines that do not describe an SSH lifecycle change
    '''
    if timestamp_ms is None:
        timestamp_ms = extract_timestamp(line)

    match = RE_CONNECTION.search(line)
    if match:
        ip, port = match.group(1), match.group(2)
        return ClassifiedLine(LogEvent(SSH_EVENT_NEW_CONNECTION, '', ip, port, timestamp_ms))

    match = RE_FAILED_LOGIN.search(line)
    if match:
        user, ip, port = match.groups()
        return ClassifiedLine(LogEvent(SSH_EVENT_FAILED_LOGIN_ATTEMPT, user, ip, port, timestamp_ms),
                              STORE_SET_OR_CREATE_USER)

    match = RE_MAX_AUTH_EXCEEDED.search(line) or RE_CLOSED_AUTHENTICATING.search(line)
    if match:
        user, ip, port = match.groups()
        return ClassifiedLine(LogEvent(SSH_EVENT_FINAL_LOGIN_FAILED, user, ip, port, timestamp_ms),
                              STORE_MARK_DELETE)

    match = RE_SUCCESSFUL_LOGIN.search(line)
    if match:
        user, ip, port = match.groups()
        return ClassifiedLine(LogEvent(SSH_EVENT_LOGIN, user, ip, port, timestamp_ms), STORE_SET_USER)

    match = RE_DISCONNECTED.search(line)
    if match:
        user, ip, port = match.groups()
        return ClassifiedLine(LogEvent(SSH_EVENT_LOGOUT, user, ip, port, timestamp_ms), STORE_MARK_DELETE)

    match = RE_CLOSED.search(line)
    if match:
        ip, port = match.groups()
        return ClassifiedLine(LogEvent(SSH_EVENT_LOGOUT, '', ip, port, timestamp_ms),
                              STORE_MARK_DELETE_RESOLVE_USER)

    return None
