# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

from sshguard.plugins.common.plugin import ActionPlugin
import requests

class webhook_action(ActionPlugin):

    def init_action(self, webhook_url, do_get_request=False, timeout_sec=5.0):
        self.webhook_url = webhook_url
        self.do_get_request = do_get_request
        self.timeout_sec = timeout_sec
        self.logger.info(f"Initialized action {self.name} with url {webhook_url}")

    def shutdown_action(self):
        pass

    def execute(self, event):
        if self.do_get_request:
            # Flatten tags and fields into the query string
            query_args = dict(event.tags)
            query_args.update(event.fields)
            query_args['device_id'] = event.device_id
            query_args['timestamp_ms'] = event.timestamp_ms
            response = requests.get(self.webhook_url, params=query_args, timeout=self.timeout_sec)

        else:
            response = requests.post(self.webhook_url, json=event.to_dict(), timeout=self.timeout_sec)

        self.logger.info(f"{self.name} webhook action triggered on {event.event_type}")

        if response.status_code != 200:
            self.logger.info(f"Received {response.status_code} response for webhook action {self.name}")
