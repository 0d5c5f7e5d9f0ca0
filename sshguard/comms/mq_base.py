# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

import os
import pwd
import grp
import logging

NAMED_PIPE_REQ_PATH = '/var/run/sshguardd_req.sock'
OS_GROUP_NAME = "sshguard"

logger = logging.getLogger('sshguard_daemon')

def _ensure_sock_file_permissions(named_pipe_path):
    '''
    Ensures that the socket file owner is root:sshguard, so group members can list sessions without sudo
    :return: True if the group ownership was applied
    '''
    uid = pwd.getpwnam("root").pw_uid
    try:
        gid = grp.getgrnam(OS_GROUP_NAME).gr_gid
    except KeyError:
        logger.warning(f"MQ Server binding could not find the {OS_GROUP_NAME} group.  Only root can use the client")
        return False

    os.chown(named_pipe_path, uid, gid)
    return True


def _bind_zmq_socket(zmq_socket, named_pipe_path):

    # Socket file mode 660
    original_umask = os.umask(0o117)
    try:
        zmq_socket.bind(f"ipc://{named_pipe_path}")
    finally:
        os.umask(original_umask)

    return _ensure_sock_file_permissions(named_pipe_path)
