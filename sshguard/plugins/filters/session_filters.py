# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

from sshguard.plugins.common.plugin import FilterPlugin
from sshguard.comms.event_types import *


class username_filter(FilterPlugin):

    def filter(self, event):
        user = self.filter_arg

        if isinstance(user, list):
            return event.tags.get('user') in user
        elif user != '*' and user != '' and user is not None:
            if user != event.tags.get('user'):
                return False

        return True

class username_regex_filter(username_filter):
    def filter(self, event):
        user_regex = self.filter_arg
        return self._compare_regex_strings(user_regex, event.tags.get('user', ''))

class ip_filter(FilterPlugin):

    def filter(self, event):
        ip = self.filter_arg

        if isinstance(ip, list):
            return event.tags.get('ip') in ip
        elif ip != '*' and ip != '' and ip is not None:
            if ip != event.tags.get('ip'):
                return False

        return True

class connbytes_filter(FilterPlugin):

    def triggers(self):
        return SSH_TRAFFIC_EVENTS

    def filter(self, event):
        # e.g., '>= 1048576' only lets through flushes of at least 1MiB
        return self._compare_numbers(self.filter_arg, event.fields.get('connbytes', 0))
