# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

import argparse
import logging
from logging.handlers import RotatingFileHandler
import os
import signal
import sys
import threading
from sshguard.comms.mq_server import MQLocalServer
from sshguard.config import CONF_FILE, CONF_D_DIR, list_config_files, load_guard_config
from sshguard.errors import LogSourceError, PacketCaptureError, LocalAddressError
from sshguard.events.event_bus import EventBus
from sshguard.guard import SSHGuard
from sshguard.plugins.common.plugin_manager import PluginManager
from sshguard.system.device_identity import DeviceIdentity
from sshguard.trackers.session_store import SessionStore

USER_PLUGIN_DIR = '/etc/sshguard/plugins/'

EXIT_CONFIG_ERROR = 1
EXIT_LOG_SOURCE_ERROR = 2
EXIT_PACKET_CAPTURE_ERROR = 3
EXIT_LOCAL_ADDRESS_ERROR = 4


def run_main():

    parser = argparse.ArgumentParser(description="SSHGuard Daemon")

    parser.add_argument("-l", "--logfile", default=None, help='Path to log file')
    parser.add_argument("-c", "--config", default=CONF_FILE, help='Path to the main yaml config file')
    parser.add_argument("-i", "--interface", default=None, help='Network interface SSH traffic arrives on')
    parser.add_argument("-p", "--port", type=int, default=None, help='SSH listening port (default 22)')
    parser.add_argument("--interval", type=int, default=None, help='Traffic statistics interval in seconds')
    parser.add_argument("--auth-log", default=None, help='Path to the authentication log')

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Print debug info'
    )

    args = parser.parse_args()

    # create logger
    logger = logging.getLogger('sshguard_daemon')

    if args.logfile is not None:
        dirpath = os.path.dirname(args.logfile)
        if dirpath and not os.path.isdir(dirpath):
            os.makedirs(dirpath)
        if dirpath and not os.path.isdir(dirpath):
            print(f"Unable to create log directory {dirpath}\nexiting.")
            return EXIT_CONFIG_ERROR
        # add a rotating handler
        handler = RotatingFileHandler(args.logfile, maxBytes=5000000,
                                      backupCount=5)
        formatter = logging.Formatter('%(asctime)s - %(filename)s:%(lineno)d - %(levelname)s - %(message)s')
    else:
        handler = logging.StreamHandler(stream=sys.stdout)
        formatter = logging.Formatter('%(message)s')

    if args.debug:
        logger.setLevel(logging.DEBUG)
        handler.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)
        handler.setLevel(logging.INFO)


    handler.setFormatter(formatter)

    # add ch to logger
    logger.addHandler(handler)

    if os.geteuid() != 0:
        logger.warning("You must have root privileges to run the daemon.\nPlease try again as root or use 'sudo'.")
        return EXIT_CONFIG_ERROR

    # Load config files from /etc/sshguard/sshguard.yaml as well as any files in /etc/sshguard/conf.d/
    conf_files = list_config_files(args.config, CONF_D_DIR)

    guard_config, config_errors = load_guard_config(conf_files, overrides={
        'interface_tracked': args.interface,
        'ssh_listen_port': args.port,
        'interval_rate_seconds': args.interval,
        'auth_log_path': args.auth_log,
    })
    if len(config_errors) > 0:
        for config_error in config_errors:
            logger.warning(config_error)
        logger.error("Invalid guard configuration.  Exiting")
        return EXIT_CONFIG_ERROR

    device_identity = DeviceIdentity()
    session_store = SessionStore()
    event_bus = EventBus(device_identity)
    logger.info(f"SSH events monitor started on device {device_identity.device_id}")

    # Initialize the plugins
    plugin_manager = PluginManager(conf_files,
                                   session_store,
                                   event_bus,
                                   user_plugin_dirs=[USER_PLUGIN_DIR])
    if not plugin_manager.plugins_ok():
        for validation_error in plugin_manager.validation_errors:
            logger.warning(validation_error)
        logger.error("Unable to load plugins due to configuration issues. Exiting")
        return EXIT_CONFIG_ERROR
    plugin_manager.initialize_plugins()

    guard = SSHGuard(guard_config, session_store, event_bus)
    try:
        guard.start()
    except LocalAddressError as e:
        logger.error(f"Cannot resolve the local address to track: {e}")
        plugin_manager.shutdown()
        return EXIT_LOCAL_ADDRESS_ERROR
    except LogSourceError as e:
        logger.error(f"Cannot read the authentication log (is the path right and readable?): {e}")
        plugin_manager.shutdown()
        return EXIT_LOG_SOURCE_ERROR
    except PacketCaptureError as e:
        logger.error(f"Cannot capture SSH traffic (capture privileges and libpcap are required): {e}")
        plugin_manager.shutdown()
        return EXIT_PACKET_CAPTURE_ERROR

    # Spin up local MQ server to start listening
    server = MQLocalServer(session_store, event_bus)
    server.start()

    shutdown_requested = threading.Event()

    def _request_shutdown(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        shutdown_requested.set()

    signal.signal(signal.SIGTERM, _request_shutdown)
    signal.signal(signal.SIGINT, _request_shutdown)

    while not shutdown_requested.wait(timeout=1.0):
        if not guard.is_running():
            logger.error("An SSH guard thread exited unexpectedly.  Shutting down")
            break

    guard.stop()
    server.shutdown()
    plugin_manager.shutdown()
    return 0


if __name__ == "__main__":

    sys.exit(run_main())
