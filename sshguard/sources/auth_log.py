# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

import os
import logging
from sshguard.errors import LogSourceError

logger = logging.getLogger('sshguard_daemon')

DEFAULT_AUTH_LOG_PATH = '/var/log/auth.log'


class AuthLogReader(object):
    '''
    Follows the authentication log from its current end.  Historical lines are never replayed.
    readline() returns one complete line, or None when nothing new has been appended yet
    '''

    def __init__(self, log_path=DEFAULT_AUTH_LOG_PATH):
        self.log_path = log_path
        self._file = None
        self._partial_line = ''

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *args):
        self.close()

    def open(self):
        try:
            self._file = open(self.log_path, 'r', encoding='utf-8', errors='replace')
            self._file.seek(0, os.SEEK_END)
        except OSError as e:
            raise LogSourceError(f"Unable to open authentication log {self.log_path}: {e}") from e

        logger.info(f"Following authentication log {self.log_path}")

    def is_ok(self):
        return self._file is not None and not self._file.closed

    def readline(self):
        if not self.is_ok():
            return None

        chunk = self._file.readline()
        if chunk == '':
            return None

        # The writer may not have finished the line yet, keep it until the newline shows up
        if not chunk.endswith('\n'):
            self._partial_line += chunk
            return None

        line = self._partial_line + chunk
        self._partial_line = ''
        return line.rstrip('\r\n')

    def close(self):
        if self._file is not None:
            self._file.close()
