# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

import threading
import queue
import zmq
from .dtos import RequestMessage, ResponseMessage, deserialize_message
from .dtos import SESSION_LIST_REQUEST, EVENT_WATCH_REQUEST
from .event_types import SSH_ALL_EVENTS
from .request_handlers import ListSessionHandler, WatchHandler
from sshguard.trackers.session_store import SessionStore
from sshguard.events.event_bus import EventBus
from .active_streams import ActiveStreams
import logging
from .mq_base import _bind_zmq_socket, NAMED_PIPE_REQ_PATH

logger = logging.getLogger('sshguard_daemon')

BACKEND_PROC_ID = 'inproc://backend'
CONTROL_PROC_ID = 'inproc://proxy_control'
class MQRequestHandlerThread(threading.Thread):
    def __init__(self, message_callback, response_queue, zmq_context, is_alive_function, name='sshguard-mq-handler'):

        super(MQRequestHandlerThread,self).__init__(name=name, daemon=True)

        self.message_callback = message_callback
        self.response_queue = response_queue
        self.zmq_context = zmq_context
        self.zmq_socket = self.zmq_context.socket(zmq.DEALER)
        self.zmq_socket.setsockopt(zmq.RCVTIMEO, 100)
        self.zmq_socket.connect(BACKEND_PROC_ID)
        self.is_alive_function = is_alive_function


    def run(self):

        while self.is_alive_function():
            try:

                # Check for request messages
                try:

                    ident, message = self.zmq_socket.recv_multipart()
                    request_message = deserialize_message(message.decode('utf-8'))

                    if request_message is not None:
                        logger.debug("Request message: " + str(request_message))
                        self.message_callback(request_message)

                except zmq.error.Again:
                    # Timeout expired
                    pass

                # Push all ready responses on the queue before checking for more requests
                try:
                    while self.is_alive_function() and not self.response_queue.empty():
                        response_message = self.response_queue.get(timeout=0.1)  # type: ResponseMessage
                        self.zmq_socket.send_multipart([response_message.client_id.encode('ascii'), response_message.to_json().encode('utf-8')])
                        self.response_queue.task_done()
                except queue.Empty:
                    pass

            except Exception:
                logger.exception("Error encountered processing request.  Continuing.")

        self.zmq_socket.close()



class MQLocalServer(threading.Thread):
    '''
    Acts as a server to receive requests from client process (sshguard)
    responds with data that client can display to CLI
    '''
    def __init__(self, session_store: SessionStore, event_bus: EventBus, name='sshguard-mq-server'):

        super(MQLocalServer,self).__init__(name=name, daemon=True)

        self.session_store = session_store
        self.event_bus = event_bus
        self.response_queue = queue.Queue()
        self.active_streams = ActiveStreams()
        self._stay_alive = True
        self._ready = threading.Event()



    def run(self):

        # Setup the sockets, one server, multiple clients
        # Pattern documented here: https://zguide.zeromq.org/docs/chapter3/#The-Asynchronous-Client-Server-Pattern
        self.context = zmq.Context()

        self.zmq_router = self.context.socket(zmq.ROUTER)
        _bind_zmq_socket(self.zmq_router, NAMED_PIPE_REQ_PATH)

        self.zmq_dealer = self.context.socket(zmq.DEALER)
        self.zmq_dealer.setsockopt(zmq.RCVTIMEO, 100)
        self.zmq_dealer.bind(BACKEND_PROC_ID)

        # The ZMQ Proxy cannot be stopped without a special Control socket
        # sending a "TERMINATE" signal on the socket allows the proxy to exit gracefully
        self.zmq_proxy_control_pull = self.context.socket(zmq.PULL)
        self.zmq_proxy_control_pull.bind(CONTROL_PROC_ID)

        self.zmq_proxy_control_push = self.context.socket(zmq.PUSH)
        self.zmq_proxy_control_push.connect(CONTROL_PROC_ID)

        # Kick off the threads
        self.request_handler_thread = MQRequestHandlerThread(self._launch_task, self.response_queue, self.context, self.stay_alive)
        self.request_handler_thread.start()
        self._ready.set()

        # Thread hangs here until terminate
        zmq.proxy_steerable(self.zmq_router, self.zmq_dealer, None, self.zmq_proxy_control_pull)


        self.zmq_router.close()
        self.zmq_dealer.close()
        self.zmq_proxy_control_push.close()
        self.zmq_proxy_control_pull.close()

    def _launch_task(self, request_message: RequestMessage):
        if request_message.payload_type == SESSION_LIST_REQUEST:
            logger.debug("Launching List Session task")
            lsh = ListSessionHandler(request_message, self.session_store,
                                     self.response_queue, self.stay_alive)
            lsh.start()

        elif request_message.payload_type == EVENT_WATCH_REQUEST:
            invalid_types = set(request_message.dto_payload.event_types).difference(SSH_ALL_EVENTS)
            if len(invalid_types) > 0:
                logger.warning(f"Ignoring watch request for unknown event types {invalid_types}")
                return

            if self.active_streams.is_active(request_message.correlation_id):
                # Treat this as a "refresh" no need to launch a new thread
                self.active_streams.refresh(request_message.correlation_id)
            else:
                logger.debug("Launching Watch Handler task")
                self.active_streams.refresh(request_message.correlation_id)
                wh = WatchHandler(request_message, self.event_bus, self.active_streams,
                                  self.response_queue, self.stay_alive)
                wh.start()



    def shutdown(self):
        self._stay_alive = False
        if not self._ready.wait(timeout=1.0):
            return
        self.request_handler_thread.join(timeout=1.0)
        self.zmq_proxy_control_push.send_string('TERMINATE')

    def stay_alive(self):
        return self._stay_alive
