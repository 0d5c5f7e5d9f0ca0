# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

from sshguard.plugins.common.plugin import ActionPlugin
import os
import pysyslogclient
from sshguard.events.log_formatter import LogFormatter


class syslog_action(ActionPlugin):

    def init_action(self, server_address, port=514, program_name='sshguard', udp=True, output_json=False,
                    facility=pysyslogclient.FAC_SYSTEM, severity=pysyslogclient.SEV_INFO):

        self.output_json = output_json
        self.facility = facility
        self.severity = severity
        self.program_name = program_name
        self.event_formatter = LogFormatter()

        if udp:
            proto = "UDP"
        else:
            proto = "TCP"

        self.client = pysyslogclient.SyslogClientRFC5424(server_address, port, proto=proto)

        self.logger.info(f"Initialized action {self.name} with server {server_address}:{port}")

    def shutdown_action(self):
        self.client.close()

    def execute(self, event):

        if self.output_json:
            message_content = event.to_json()
        else:
            # Reformat each item into a log-friendly format
            message_content = self.event_formatter.format(event)


        self.client.log(message_content,
                   facility=self.facility,
                   severity=self.severity,
                   program=self.program_name,
                   pid=os.getpid())

        self.logger.debug(f"Syslog action triggered")
