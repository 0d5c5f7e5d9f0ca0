"""
Tests for the authentication log reader, the packet source and the network helpers.
"""

import socket
from types import SimpleNamespace

import psutil
import pytest
from scapy.layers.inet import IP, TCP, UDP
from scapy.layers.l2 import Ether
from scapy.packet import Raw

from sshguard.errors import LocalAddressError, LogSourceError, PacketCaptureError
from sshguard.sources import netinfo, packet_source
from sshguard.sources.auth_log import AuthLogReader
from sshguard.sources.packet_source import ScapyPacketSource, decode_packet

MAC_A = "02:00:00:00:00:01"
MAC_B = "02:00:00:00:00:02"


class TestAuthLogReader:

    def test_only_new_lines_are_read(self, tmp_path):
        log_path = tmp_path / "auth.log"
        log_path.write_text("old line\n")

        with AuthLogReader(str(log_path)) as reader:
            assert reader.readline() is None
            with open(log_path, 'a') as out:
                out.write("first\nsecond\n")
            assert reader.readline() == "first"
            assert reader.readline() == "second"
            assert reader.readline() is None

    def test_partial_line_is_held_back(self, tmp_path):
        log_path = tmp_path / "auth.log"
        log_path.write_text("")

        with AuthLogReader(str(log_path)) as reader:
            with open(log_path, 'a') as out:
                out.write("Connection closed by 10.0.0.5 ")
            assert reader.readline() is None
            with open(log_path, 'a') as out:
                out.write("port 51000\n")
            assert reader.readline() == "Connection closed by 10.0.0.5 port 51000"

    def test_missing_log_raises(self, tmp_path):
        with pytest.raises(LogSourceError):
            AuthLogReader(str(tmp_path / "missing.log")).open()

    def test_closed_reader_returns_none(self, tmp_path):
        log_path = tmp_path / "auth.log"
        log_path.write_text("")
        reader = AuthLogReader(str(log_path))
        reader.open()
        reader.close()
        assert not reader.is_ok()
        assert reader.readline() is None


class TestDecodePacket:

    def test_tcp_over_ipv4(self):
        frame = Ether(src=MAC_A, dst=MAC_B) / IP(src="10.0.0.5", dst="10.0.0.9") / TCP(sport=51000, dport=22)
        record = decode_packet(frame)
        assert record.ip == ("10.0.0.5", "10.0.0.9")
        assert record.tcp == (51000, 22)
        assert record.length == 54

    def test_missing_tcp_layer(self):
        frame = Ether(src=MAC_A, dst=MAC_B) / IP(src="10.0.0.5", dst="10.0.0.9") / UDP(sport=5353, dport=5353)
        record = decode_packet(frame)
        assert record.ip is not None
        assert record.tcp is None

    def test_missing_ip_layer(self):
        record = decode_packet(Ether(src=MAC_A, dst=MAC_B, type=0x88b5) / Raw(b"x" * 10))
        assert record.ip is None
        assert record.tcp is None
        assert record.length == 24


class TestScapyPacketSource:

    def test_open_failure_raises_capture_error(self, monkeypatch):
        def refuse(**kwargs):
            raise PermissionError("Operation not permitted")

        monkeypatch.setattr(packet_source, "conf", SimpleNamespace(L2listen=refuse))
        with pytest.raises(PacketCaptureError):
            ScapyPacketSource("eth0", 22).open()

    def test_bpf_filter_uses_listen_port(self):
        assert ScapyPacketSource("eth0", 2222).bpf_filter == "tcp port 2222"

    def test_records_until_stopped(self, monkeypatch):
        source = ScapyPacketSource("eth0", 22, poll_timeout=0.01)
        source._socket = SimpleNamespace(close=lambda: None)
        frame = Ether(src=MAC_A, dst=MAC_B) / IP(src="10.0.0.9", dst="10.0.0.5") / TCP(sport=22, dport=51000)

        def fake_sniff(**kwargs):
            assert kwargs['opened_socket'] is source._socket
            source.stop()
            return [frame]

        monkeypatch.setattr(packet_source, "sniff", fake_sniff)
        records = list(source.records())
        assert len(records) == 1
        assert records[0].tcp.sport == 22
        source.close()


class TestNetInfo:

    def test_ipv4_from_interface(self, monkeypatch):
        monkeypatch.setattr(netinfo.psutil, "net_if_addrs", lambda: {
            'lo': [SimpleNamespace(family=socket.AF_INET, address='127.0.0.1')],
            'eth0': [SimpleNamespace(family=socket.AF_INET6, address='fe80::1'),
                     SimpleNamespace(family=socket.AF_INET, address='10.0.0.9')],
        })
        assert netinfo.get_ipv4_from_interface('eth0') == '10.0.0.9'

        with pytest.raises(LocalAddressError):
            netinfo.get_ipv4_from_interface('lo')
        with pytest.raises(LocalAddressError):
            netinfo.get_ipv4_from_interface('wlan0')

    def test_sshd_process_titles(self):
        assert netinfo.RE_SSHD_PROCESS.match("sshd: alice@pts/0").group(1) == "alice"
        assert netinfo.RE_SSHD_PROCESS.match("sshd: alice [priv]").group(3) == "priv"
        assert netinfo.RE_SSHD_PROCESS.match("sshd-session: bob@notty").group(1) == "bob"
        assert netinfo.RE_SSHD_PROCESS.match("/usr/sbin/cron -f") is None

    def test_active_ssh_sessions(self, monkeypatch):
        def conn(rip, rport, lport, pid, status=psutil.CONN_ESTABLISHED):
            return SimpleNamespace(status=status, raddr=SimpleNamespace(ip=rip, port=rport),
                                   laddr=SimpleNamespace(ip='10.0.0.9', port=lport), pid=pid)

        connections = [
            conn('10.0.0.5', 51000, 22, 100),
            conn('10.0.0.6', 40000, 22, 101, status=psutil.CONN_TIME_WAIT),
            conn('10.0.0.7', 443, 50000, 102),
            conn('10.0.0.8', 41000, 22, 103),
        ]
        titles = {100: ["sshd: alice@pts/0"], 103: ["/usr/bin/python3"]}

        class FakeProcess:
            def __init__(self, pid):
                self.pid = pid

            def cmdline(self):
                return titles[self.pid]

        monkeypatch.setattr(netinfo.psutil, "net_connections", lambda kind: connections)
        monkeypatch.setattr(netinfo.psutil, "Process", FakeProcess)
        assert netinfo.get_active_ssh_sessions(22) == {"10.0.0.5:51000": {'user': 'alice'}}

    def test_active_ssh_sessions_without_permission(self, monkeypatch):
        def denied(kind):
            raise psutil.AccessDenied()

        monkeypatch.setattr(netinfo.psutil, "net_connections", denied)
        assert netinfo.get_active_ssh_sessions(22) == {}
