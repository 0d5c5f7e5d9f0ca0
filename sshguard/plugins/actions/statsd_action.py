# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

from sshguard.plugins.common.plugin import ActionPlugin
import socket
import datadog

class statsd_action(ActionPlugin):

    def init_action(self, server_address, port=8125, statsd_prefix='sshguard'):

        self.client = datadog.DogStatsd(
            host=server_address, port=port,
            disable_telemetry=True,
            namespace=statsd_prefix,
            constant_tags=[f"hostname:{socket.gethostname()}"]
        )

        self.logger.info(f"Initialized action {self.name} with server {server_address}:{port}")

    def shutdown_action(self):
        self.client.close_socket()


    def execute(self, event):

        tags = [f"{name}:{value}" for name, value in sorted(event.tags.items()) if name != 'eventType']
        tags.append(f"device_id:{event.device_id}")

        self.logger.debug(f"Statsd action triggered")

        if 'connbytes' in event.fields:
            # Traffic flushes report the bytes seen since the previous flush
            self.client.increment(event.event_type, event.fields['connbytes'], tags=tags)
        else:
            self.client.increment(event.event_type, 1, tags=tags)  # Increment the counter.
