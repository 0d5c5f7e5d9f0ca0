# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

from blinker import Namespace
from sshguard.comms.event_types import *
from sshguard.system.device_identity import DeviceIdentity
from .ssh_event import LogEvent, NormalizedEvent
import logging

logger = logging.getLogger('sshguard_daemon')


class EventBus:
    '''
    Hands every SSH event to the subscribed sinks as a NormalizedEvent.
    One signal per event type, kept in a private namespace so several buses never share receivers
    '''

    def __init__(self, device_identity: DeviceIdentity):
        self.device_identity = device_identity
        self._namespace = Namespace()
        self._signals = {}
        for event_type in SSH_ALL_EVENTS:
            self._signals[event_type] = self._namespace.signal(f'ssh_event-{event_type}')

    def _event_types(self, event_types):
        if event_types is None:
            return SSH_ALL_EVENTS
        elif type(event_types) != list:
            return [event_types]
        return event_types

    def subscribe(self, callback, event_types=None):
        for event_type in self._event_types(event_types):
            self._signals[event_type].connect(callback, weak=False)

    def unsubscribe(self, callback, event_types=None):
        for event_type in self._event_types(event_types):
            self._signals[event_type].disconnect(callback)

    def push(self, log_event: LogEvent) -> NormalizedEvent:
        normalized_event = log_event.normalize(self.device_identity.device_id)
        logger.debug(normalized_event)

        # Deliver to each sink separately, a failing sink must not starve the others
        for receiver in self._signals[log_event.event_type].receivers_for(normalized_event):
            try:
                receiver(normalized_event)
            except Exception:
                logger.exception(f"Error delivering {log_event.event_type} event to {receiver}")

        return normalized_event
