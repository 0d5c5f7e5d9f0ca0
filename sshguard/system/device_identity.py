# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

import logging

logger = logging.getLogger('sshguard_daemon')

# Checked in order, the first readable non-empty file wins
HOST_ID_PATHS = [
    '/sys/class/dmi/id/product_uuid',
    '/etc/machine-id',
    '/proc/sys/kernel/random/boot_id',
]


class DeviceIdentity:
    '''
    Opaque identifier of this host, attached to every event as the device id.
    Created once at startup and shared by reference
    '''

    def __init__(self, host_id_paths=None):
        self.host_id_paths = host_id_paths if host_id_paths is not None else HOST_ID_PATHS
        self._device_id = None

    def _read_host_id(self):
        for path in self.host_id_paths:
            try:
                with open(path, 'r') as in_file:
                    host_id = in_file.read().strip()
            except OSError:
                continue
            if host_id:
                logger.debug(f"Host ID read from {path}")
                return host_id

        logger.warning(f"Unable to read a host ID from any of {self.host_id_paths}")
        return ''

    @property
    def device_id(self):
        if self._device_id is None:
            self._device_id = self._read_host_id().replace('-', '').upper()
        return self._device_id
