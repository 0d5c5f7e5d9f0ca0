# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

import logging
from sshguard.trackers.session_store import SessionStore
from sshguard.events.event_bus import EventBus
from sshguard.events.ssh_event import NormalizedEvent
from sshguard.comms.event_types import SSH_ALL_EVENTS
import operator
import re


class EventPlugin:
    def __init__(self, name, triggers: list, filters: list, actions: list, event_bus: EventBus, action_executor,
                 **kwargs):
        self.name = name
        self.triggers = triggers
        self.filters = filters
        self.actions = actions
        self.event_bus = event_bus
        self.action_executor = action_executor
        self.logger = logging.getLogger('sshguard_daemon')

        for trigger in self.triggers:
            if trigger not in SSH_ALL_EVENTS:
                raise RuntimeError(f"Trigger {trigger} in invalid.  Possible triggers are {SSH_ALL_EVENTS}")

        for filter in self.filters:
            # Make sure that the configured "filter" could possibly fire on the list of triggers for the events
            # e.g., it doesn't make sense to have a connbytes filter running when only login events are being watched
            common_elements = set(filter.triggers()).intersection(self.triggers)
            if len(common_elements) <= 0:
                raise RuntimeError(f"Filter {filter} for event {self.name} is invalid.  The filter can only execute on "
                                   f"triggers {filter.triggers()}, and the event is only configured for triggers {self.triggers}")

        self.event_bus.subscribe(self._event_callback, self.triggers)

    def unsubscribe(self):
        self.event_bus.unsubscribe(self._event_callback, self.triggers)

    def shutdown(self):
        self.logger.info(f"Shutting down event plugin {self.name}")
        self.unsubscribe()
        for action in self.actions:
            action.shutdown()

    def _event_callback(self, event: NormalizedEvent):
        for filter in self.filters:

            try:
                # Only pass to filters that are configured to handle this event type
                if event.event_type not in filter.triggers():
                    continue

                passes_filter = filter.filter(event)
                if not isinstance(passes_filter, bool):
                    self.logger.warning(f"Invalid response ({passes_filter}) from plugin {self.name} filter function.  Response must be boolean")
                    return

                if passes_filter == False:
                    self.logger.debug(f"Skipping event for {self.name} due to filter {filter}")
                    return

            except Exception:
                self.logger.exception(f"Error handling filter for plugin {self.name} on filter {filter}")

        # Event has passed all filters, trigger actions.  Sinks run on the pool, never on the guard's threads
        for action in self.actions:
            try:
                self.action_executor.submit(action._execute, event)
            except Exception:
                self.logger.exception(f"Error handling event for event plugin {self.name} action {action.name}")



class FilterPlugin:
    def __init__(self, filter_arg, session_store: SessionStore, **kwargs):
        self.logger = logging.getLogger('sshguard_daemon')
        self.filter_arg = filter_arg
        self.session_store = session_store

        self._number_eval_dict = {
            '<': operator.lt,
            '<=': operator.le,
            '>': operator.gt,
            '>=': operator.ge,
            '=': operator.eq,
            '!=': operator.ne,
        }

    def __str__(self):
        return self.__class__.__name__

    def _compare_numbers(self, comparison_str: str, value):
        '''
        Allow customers to provide a comparison operator (e.g., '>= 5', '!= 0', etc) for number comparison
        :param comparison_str: The comparison value (e.g., '>= 5').  If it's just a number, assume it's an equality operation
        :param value: The actual value to compare against
        :return: True if it matches, False otherwise
        '''
        components = str(comparison_str).split()
        if len(components) == 1:
            # This is an equality test
            components = ['=', components[0]]
        elif len(components) > 2:
            # This is an invalid comparison
            self.logger.warning(f"Invalid comparison operation.  Cannot parse {comparison_str}")
            return False

        inequality_operator = components[0] # e.g., <, >=, etc.
        if inequality_operator not in self._number_eval_dict:
            self.logger.warning(f"Invalid comparison operation {inequality_operator} valid operations are {self._number_eval_dict.keys()}")
            return False

        if '.' in components[1]:
            user_eval_number = float(components[1])
        else:
            user_eval_number = int(components[1])

        # The event value goes on the left: '>= 1024' reads "value >= 1024"
        return self._number_eval_dict[inequality_operator](value, user_eval_number)

    def _compare_regex_strings(self, string_match: str, value):
        '''
        Performs a regex string match against the value
        :param string_match: regex to search
        :param value: to search against using regex
        :return: True if it matches, false otherwise
        '''

        match = re.search(string_match, value)
        if match:
            return True
        else:
            return False


    def triggers(self):
        return SSH_ALL_EVENTS

    def filter(self, event: NormalizedEvent):
        ''' Given a configured argument, check the event to see if the event should be allowed to proceed
        returns True if the filter is passed (i.e., it matches the configured argument) and
                False if it does not match and the event should not propogate
        '''
        raise RuntimeError("The filter function must be implemented in the subclass for the filter plugin to function")


class ActionPlugin:
    def __init__(self, name, session_store: SessionStore, **kwargs):
        self.name = name
        self.session_store = session_store
        self.logger = logging.getLogger('sshguard_daemon')
        self.init_action(**kwargs)

    def shutdown(self):
        self.logger.info(f"Shutting down action plugin {self.name}")
        self.shutdown_action()

    def init_action(self):
        ''' Init action to be overridden by child plugin '''
        pass

    def shutdown_action(self):
        ''' Shutdown action to be overridden by child plugin '''
        pass

    def _execute(self, event: NormalizedEvent):
        # Wrapper to log exceptions
        try:
            self.execute(event)
        except Exception:
            self.logger.exception(f"Error triggering action plugin {self.name}")

    def execute(self, event: NormalizedEvent):
        ''' Execute action to be overridden by child plugin '''
        raise RuntimeError("The execute function must be implemented for the action to function")
