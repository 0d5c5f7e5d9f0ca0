# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

import logging
import threading
from sshguard.events.ssh_event import session_key
from .session_store import SessionStore

logger = logging.getLogger('sshguard_daemon')


def resolve_session_key(record, local_ip, ssh_listen_port):
    '''
    Works out which remote endpoint a captured packet belongs to, and in which direction it travels.
    e.g., local 192.168.1.96:22 -> 192.168.1.202:40866 is sent traffic for session "192.168.1.202:40866"
    :return: (session key, is_receive), or (None, False) when the packet is not for the local address
    '''
    if record.ip.src == local_ip and record.tcp.sport == ssh_listen_port:
        return session_key(record.ip.dst, record.tcp.dport), False
    elif record.ip.dst == local_ip:
        return session_key(record.ip.src, record.tcp.sport), True

    # SSH traffic seen on the interface but addressed to another local IP
    return None, False


class TrafficSniffer(threading.Thread):
    '''
    Attributes the bytes of every captured SSH packet to its session in the session store
    '''

    def __init__(self, packet_source, session_store: SessionStore, local_ip, ssh_listen_port=22,
                 name='ssh-traffic-sniffer'):
        super(TrafficSniffer, self).__init__(name=name, daemon=True)
        self.packet_source = packet_source
        self.session_store = session_store
        self.local_ip = local_ip
        self.ssh_listen_port = ssh_listen_port
        self._stop_event = threading.Event()

    def stop(self):
        self._stop_event.set()
        self.packet_source.stop()

    def stay_alive(self):
        return not self._stop_event.is_set()

    def process_record(self, record):
        '''
        :return: the session key the bytes were added to, or None if the record was skipped
        '''
        if record.ip is None or record.tcp is None:
            if record.ip is None:
                logger.debug("Skipping packet without an IPv4 layer")
            if record.tcp is None:
                logger.debug("Skipping packet without a TCP layer")
            return None

        key, is_receive = resolve_session_key(record, self.local_ip, self.ssh_listen_port)
        if key is None:
            return None

        self.session_store.accumulate_bytes(key, is_receive, record.length)
        return key

    def run(self):
        logger.info(f"Sniffing SSH traffic for local address {self.local_ip} port {self.ssh_listen_port}")

        try:
            for record in self.packet_source.records():
                if not self.stay_alive():
                    break
                self.process_record(record)
        except Exception:
            logger.exception("Packet capture failed.  SSH traffic is no longer being counted")
        finally:
            self.packet_source.close()

        logger.info("SSH traffic sniffer stopped")
