# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

from typing import NamedTuple, Optional
import threading
import logging
from scapy.all import conf, sniff
from scapy.error import Scapy_Exception
from scapy.layers.inet import IP, TCP
from sshguard.errors import PacketCaptureError

logger = logging.getLogger('sshguard_daemon')


class IPv4Header(NamedTuple):
    src: str
    dst: str


class TCPHeader(NamedTuple):
    sport: int
    dport: int


class PacketRecord(NamedTuple):
    ''' Transport-level view of one captured frame.  ip/tcp are None when the layer is missing '''
    ip: Optional[IPv4Header]
    tcp: Optional[TCPHeader]
    length: int


def decode_packet(packet) -> PacketRecord:
    ip = packet.getlayer(IP)
    tcp = packet.getlayer(TCP)
    return PacketRecord(
        ip=IPv4Header(str(ip.src), str(ip.dst)) if ip is not None else None,
        tcp=TCPHeader(int(tcp.sport), int(tcp.dport)) if tcp is not None else None,
        length=len(packet)
    )


class ScapyPacketSource(object):
    '''
    Live capture of the SSH traffic on one interface.  The capture runs as a timed sniff loop
    so stop() takes effect within poll_timeout seconds even when the link is idle
    '''

    def __init__(self, interface, ssh_listen_port=22, poll_timeout=1.0):
        self.interface = interface
        self.bpf_filter = f"tcp port {ssh_listen_port}"
        self.poll_timeout = poll_timeout
        self._socket = None
        self._stop_event = threading.Event()

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *args):
        self.close()

    def open(self):
        try:
            self._socket = conf.L2listen(iface=self.interface, filter=self.bpf_filter)
        except (OSError, Scapy_Exception) as e:
            raise PacketCaptureError(f"Unable to capture on interface {self.interface} "
                                     f"with filter '{self.bpf_filter}': {e}") from e

        logger.info(f"Capturing SSH traffic on {self.interface} ({self.bpf_filter})")

    def records(self):
        while self._socket is not None and not self._stop_event.is_set():
            packets = sniff(opened_socket=self._socket, store=True, timeout=self.poll_timeout,
                            stop_filter=lambda _: self._stop_event.is_set())
            for packet in packets:
                yield decode_packet(packet)

    def stop(self):
        self._stop_event.set()

    def close(self):
        self._stop_event.set()
        if self._socket is not None:
            self._socket.close()
            self._socket = None
