# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

import threading
import time

# A watch stream stays open for this long after the client's last refresh
STREAM_TIMEOUT_SEC = 1.0


class ActiveStreams:
    ''' Liveness of the client watch streams, keyed by request correlation ID '''

    def __init__(self, max_seconds=STREAM_TIMEOUT_SEC):
        self.max_seconds = max_seconds
        self._last_refresh = {}
        self._lock = threading.Lock()

    def refresh(self, correlation_id):
        now = time.monotonic()
        with self._lock:
            self._last_refresh[correlation_id] = now

            # Forget streams whose client went away
            for stale_id in [k for k, v in self._last_refresh.items() if now - v > self.max_seconds * 10]:
                del self._last_refresh[stale_id]

    def is_active(self, correlation_id):
        with self._lock:
            last_refresh = self._last_refresh.get(correlation_id)

        if last_refresh is None:
            return False
        return time.monotonic() - last_refresh <= self.max_seconds
