# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

from sshguard.plugins.common.plugin import ActionPlugin
import logging
from logging.handlers import RotatingFileHandler
import os
from sshguard.events.log_formatter import LogFormatter

class eventlogfile_action(ActionPlugin):

    def init_action(self, log_file_path, output_json=False, max_size_mb=20, number_of_log_files=2):
        self.log_file_path = log_file_path
        self.output_json = output_json
        self.max_size_mb = max_size_mb
        self.number_of_log_files = number_of_log_files
        self.logger.info(f"Initialized action {self.name} with log file path {log_file_path}")

        self.event_formatter = LogFormatter()

        # Ensure directory exists for log file
        dirpath = os.path.dirname(log_file_path)
        if dirpath and not os.path.isdir(dirpath):
            os.makedirs(dirpath)

        # Own logger per action, kept out of the daemon log
        self.file_logger = logging.getLogger(f'sshguard_events.{self.name}')
        self.file_logger.propagate = False
        self.handler = RotatingFileHandler(self.log_file_path, maxBytes=self.max_size_mb*1024*1024, backupCount=self.number_of_log_files)
        formatter = logging.Formatter('%(asctime)s %(message)s', datefmt='%Y-%m-%d %H:%M:%S')
        self.handler.setFormatter(formatter)
        self.file_logger.addHandler(self.handler)
        self.file_logger.setLevel(logging.DEBUG)


    def shutdown_action(self):
        self.file_logger.removeHandler(self.handler)
        self.handler.close()


    def execute(self, event):

        self.logger.debug(f"{self.name} processing event {event.event_type}")
        if self.output_json:
            self.file_logger.info(event.to_json())
        else:
            self.file_logger.info(self.event_formatter.format(event))
