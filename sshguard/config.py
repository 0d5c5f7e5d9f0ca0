# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

from dataclasses import dataclass, replace
import logging
import os
import yaml
from sshguard.sources.auth_log import DEFAULT_AUTH_LOG_PATH

logger = logging.getLogger('sshguard_daemon')

CONF_FILE = '/etc/sshguard/sshguard.yaml'
CONF_D_DIR = '/etc/sshguard/conf.d/'

DEFAULT_SSH_LISTEN_PORT = 22
DEFAULT_INTERVAL_RATE_SECONDS = 10


@dataclass(frozen=True)
class GuardConfig:
    interface_tracked: str = ''
    ssh_listen_port: int = DEFAULT_SSH_LISTEN_PORT
    interval_rate_seconds: int = DEFAULT_INTERVAL_RATE_SECONDS
    auth_log_path: str = DEFAULT_AUTH_LOG_PATH


GUARD_CONFIG_KEYS = ['interface_tracked', 'ssh_listen_port', 'interval_rate_seconds', 'auth_log_path']


def list_config_files(main_conf_file=CONF_FILE, conf_d_dir=CONF_D_DIR):
    ''' The main config file followed by any yaml file in the conf.d directory '''
    conf_files = [main_conf_file]
    if os.path.isdir(conf_d_dir):
        for conf_file in sorted(os.listdir(conf_d_dir)):
            if conf_file.endswith('.yaml') or conf_file.endswith('.yml'):
                conf_files.append(os.path.join(conf_d_dir, conf_file))
    return conf_files


def validate_guard_config(config: GuardConfig):
    validation_errors = []

    if not config.interface_tracked:
        validation_errors.append("guard.interface_tracked is required (the network interface SSH traffic arrives on)")

    if not isinstance(config.ssh_listen_port, int) or not 0 < config.ssh_listen_port < 65536:
        validation_errors.append(f"guard.ssh_listen_port must be a TCP port number, got {config.ssh_listen_port}")

    if not isinstance(config.interval_rate_seconds, int) or config.interval_rate_seconds < 1:
        validation_errors.append(f"guard.interval_rate_seconds must be a whole number of seconds >= 1, "
                                 f"got {config.interval_rate_seconds}")

    if not config.auth_log_path:
        validation_errors.append("guard.auth_log_path cannot be empty")

    return validation_errors


def load_guard_config(yaml_configs, overrides=None):
    '''
    Merges the "guard" section of every config file (later files win), then applies the command line overrides
    :param yaml_configs: list of yaml file paths.  Missing files are skipped
    :param overrides: dictionary of GuardConfig field -> value.  None values are ignored
    :return: (GuardConfig, list of validation errors)
    '''
    settings = {}
    validation_errors = []

    for cfg in yaml_configs:
        if not os.path.exists(cfg):
            logger.warning(f"Configuration file {cfg} does not exist.  Skipping")
            continue

        with open(cfg, 'r') as in_file:
            try:
                yaml_dict = yaml.load(in_file.read(), Loader=yaml.FullLoader) or {}
            except yaml.YAMLError as e:
                validation_errors.append(f"YAML error in config file {cfg} {e}")
                continue

        guard_section = yaml_dict.get('guard', {}) or {}
        for key, value in guard_section.items():
            if key not in GUARD_CONFIG_KEYS:
                validation_errors.append(f"Unknown guard option {key} in config file {cfg}.  "
                                         f"Valid options are {GUARD_CONFIG_KEYS}")
                continue
            settings[key] = value

    config = GuardConfig(**settings)
    if overrides:
        config = replace(config, **{k: v for k, v in overrides.items() if v is not None})

    validation_errors.extend(validate_guard_config(config))
    return config, validation_errors
