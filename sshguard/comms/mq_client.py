# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

import zmq
from .dtos import RequestMessage, deserialize_message
import time
import logging
from uuid import uuid4
from .mq_base import NAMED_PIPE_REQ_PATH
import os

logger = logging.getLogger('sshguard_client')

class MQClient:
    def __init__(self, named_pipe_path=NAMED_PIPE_REQ_PATH):
        # Generate a pseudo-random "client id" for each MQClient
        self.client_id = uuid4().__str__()
        self.named_pipe_path = named_pipe_path
        self.initialized = False


        if not os.path.exists(named_pipe_path) or not os.access(named_pipe_path, os.R_OK):
            logger.warning(f"Permission denied accessing SSHGuard daemon socket: unix://{named_pipe_path}\n"
                           f"To use sshguard, you must either be a member of the 'sshguard' group, or the root user")
            return

        self.context = zmq.Context()
        self.zmq_socket = self.context.socket(zmq.DEALER)
        self.zmq_socket.setsockopt(zmq.RCVTIMEO, 100)
        self.zmq_socket.setsockopt(zmq.LINGER, 0)
        self.zmq_socket.identity = self.client_id.encode('ascii')
        self.zmq_socket.connect(f"ipc://{named_pipe_path}")


        self.initialized = True

    def make_request(self, dto_payload, correlation_id=None):
        msg = RequestMessage(dto_payload, self.client_id, correlation_id)
        raw_data = msg.to_json()
        logger.debug(f"Request: {raw_data}")
        self.zmq_socket.send(raw_data.encode('utf-8'))
        return msg.correlation_id



    def listen_for_response(self, correlation_id, timeout_sec=1.0):
        start_time = time.time()

        while time.time() - start_time < timeout_sec:
            try:
                payload = self.zmq_socket.recv()

                message = deserialize_message(payload.decode('utf-8'))
                if message is not None and message.correlation_id == correlation_id:
                    return message

                # Message received, but it's not for this request (wrong correlation ID)
            except zmq.error.Again:
                # Timeout expired
                pass

        return None

    def disconnect(self):
        self.zmq_socket.disconnect(f"ipc://{self.named_pipe_path}")
        self.zmq_socket.close()
        self.context.term()
