# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

import importlib
import importlib.util
import inspect
import os
import logging
from .plugin import FilterPlugin, ActionPlugin

logger = logging.getLogger('sshguard_daemon')

BUILTIN_PLUGIN_MODULES = [
    'sshguard.plugins.filters.session_filters',
    'sshguard.plugins.actions.eventlogfile_action',
    'sshguard.plugins.actions.statsd_action',
    'sshguard.plugins.actions.syslog_action',
    'sshguard.plugins.actions.webhook_action',
]


def _plugin_fields(obj):
    '''
    The configurable parameters (i.e., what is put into the yaml) are discovered from the init_action
    signature.  A parameter with a default value is optional
    :return: (plugin type, list of fields), or (None, None) if the class is not a plugin
    '''
    if issubclass(obj, FilterPlugin) and obj is not FilterPlugin:
        return 'filter_plugin', [{'name': 'filter_arg', 'required': True}]

    if issubclass(obj, ActionPlugin) and obj is not ActionPlugin:
        param_list = []
        for param in inspect.signature(obj.init_action).parameters.values():
            if param.name == 'self':
                continue
            param_list.append({
                'name': param.name,
                'required': param.default is inspect.Parameter.empty
            })
        return 'action_plugin', param_list

    return None, None


def _collect_plugins(module, plugins):
    for name, obj in inspect.getmembers(module, inspect.isclass):
        # Skip classes the module only imported
        if obj.__module__ != module.__name__:
            continue

        plugin_type, param_list = _plugin_fields(obj)
        if plugin_type is None:
            continue

        plugins[name] = {'name': name,
                         'type': plugin_type,
                         'fields': param_list,
                         'class_obj': obj}


def _load_module_from_file(module_path):
    module_name = 'sshguard_user_plugin_' + os.path.splitext(os.path.basename(module_path))[0]
    spec = importlib.util.spec_from_file_location(module_name, module_path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def search_plugins(user_plugin_dirs=()):
    '''
    Collects the bundled plugins plus any plugin python file found in the user plugin directories.
    Any class that subclasses FilterPlugin or ActionPlugin is a plugin
    :return: Dictionary of plugin name -> plugin info, with class objects that are ready to be instantiated
    '''
    plugins = {}

    for module_name in BUILTIN_PLUGIN_MODULES:
        _collect_plugins(importlib.import_module(module_name), plugins)

    for directory in user_plugin_dirs:
        if not os.path.isdir(directory):
            logger.warning(f"Plugin directory {directory} does not exist.  Skipping.")
            continue

        for filename in sorted(os.listdir(directory)):
            if filename.endswith('.py') and not filename.startswith('_'):
                _collect_plugins(_load_module_from_file(os.path.join(directory, filename)), plugins)

    return plugins
