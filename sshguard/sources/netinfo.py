# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

import ipaddress
import logging
import re
import socket
import psutil
from sshguard.errors import LocalAddressError
from sshguard.events.ssh_event import session_key

logger = logging.getLogger('sshguard_daemon')

# sshd renames its per-connection processes, e.g. "sshd: alice@pts/0" or "sshd: alice [priv]"
RE_SSHD_PROCESS = re.compile(r'^sshd(?:-session)?: ([^\s@\[]+)(@\S+)?(?:\s+\[(\w+)\])?')
# Helper processes that do not belong to an authenticated user
SSHD_HELPER_TAGS = ['priv', 'preauth', 'listener', 'accepted', 'net']


def get_ipv4_from_interface(interface_name):
    '''
    Resolves the first non-loopback IPv4 address of the interface.
    Resolved once at startup, a later address change on the interface is not picked up
    '''
    interfaces = psutil.net_if_addrs()
    if interface_name not in interfaces:
        raise LocalAddressError(f"Interface {interface_name} does not exist.  "
                                f"Available interfaces are {list(interfaces.keys())}")

    for address in interfaces[interface_name]:
        if address.family != socket.AF_INET:
            continue
        if ipaddress.ip_address(address.address).is_loopback:
            continue
        return address.address

    raise LocalAddressError(f"No valid IPv4 address found on interface {interface_name}")


def _sshd_user(pid):
    '''
    :return: (user, is_helper) parsed from the sshd process title, or (None, False) for non sshd processes
    '''
    try:
        cmdline = ' '.join(psutil.Process(pid).cmdline())
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return None, False

    match = RE_SSHD_PROCESS.match(cmdline)
    if match is None:
        return None, False

    user, _, tag = match.groups()
    return user, tag in SSHD_HELPER_TAGS


def get_active_ssh_sessions(ssh_listen_port=22):
    '''
    Lists the SSH connections that are already established, so their traffic is attributed
    even though no log line announced them.
    :return: dictionary of "ip:port" -> {'user': user}
    '''
    sessions = {}

    try:
        connections = psutil.net_connections(kind='tcp')
    except psutil.AccessDenied:
        logger.error("Permission denied listing TCP connections.  Starting without existing SSH sessions")
        return sessions

    for conn in connections:
        if conn.status != psutil.CONN_ESTABLISHED or not conn.raddr or conn.pid is None:
            continue
        if conn.laddr.port != ssh_listen_port:
            continue

        user, is_helper = _sshd_user(conn.pid)
        if user is None:
            continue

        key = session_key(conn.raddr.ip, conn.raddr.port)
        # Prefer the user session process over the privileged helper for the same connection
        if key in sessions and is_helper:
            continue
        sessions[key] = {'user': user}

    return sessions
