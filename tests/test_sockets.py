import logging
import socket
import struct

import pytest

from mdns_relay import sockets
from mdns_relay.errors import BindFailure
from mdns_relay.interfaces import InterfaceInfo
from mdns_relay.sockets import InterfaceBinding, RelayGroup, open_socket_set

from conftest import FakeSocket


def test_membership_by_address():
    iface = InterfaceInfo("eth0", 2, address="192.168.1.2")
    group = socket.inet_aton("224.0.0.251")

    assert sockets._interface_request(iface, group) == group + socket.inet_aton("192.168.1.2")
    assert sockets._interface_request(iface) == socket.inet_aton("192.168.1.2")


def test_membership_by_index_without_ipv4():
    iface = InterfaceInfo("tun0", 7)
    group = socket.inet_aton("224.0.0.251")

    mreqn = sockets._interface_request(iface, group)
    assert struct.unpack("4s4si", mreqn) == (group, socket.inet_aton("0.0.0.0"), 7)


def test_open_socket_set_builds_group(monkeypatch):
    monkeypatch.setattr(sockets, "create_socket", lambda iface: FakeSocket(iface.name))

    group = open_socket_set([InterfaceInfo("eth0", 2, "aa:bb"), InterfaceInfo("eth1", 3)])

    assert list(group) == ["eth0", "eth1"]
    assert group["eth0"].hardware_address == "aa:bb"
    assert [b.name for b in group.destinations("eth0")] == ["eth1"]


def test_bind_failure_closes_opened_sockets(monkeypatch):
    opened = []

    def create(iface):
        if iface.name == "eth2":
            raise OSError(99, "Cannot assign requested address")
        sock = FakeSocket(iface.name)
        opened.append(sock)
        return sock

    monkeypatch.setattr(sockets, "create_socket", create)

    with pytest.raises(BindFailure) as exc_info:
        open_socket_set([InterfaceInfo("eth0", 2), InterfaceInfo("eth1", 3), InterfaceInfo("eth2", 4)])

    assert exc_info.value.name == "eth2"
    assert isinstance(exc_info.value.cause, OSError)
    assert len(opened) == 2
    assert all(sock.closed for sock in opened)


def test_group_is_read_only():
    group = RelayGroup([InterfaceBinding("eth0", FakeSocket("eth0"))])

    with pytest.raises(TypeError):
        group["eth1"] = InterfaceBinding("eth1", FakeSocket("eth1"))
    with pytest.raises(ValueError):
        RelayGroup([InterfaceBinding("eth0", FakeSocket("a")), InterfaceBinding("eth0", FakeSocket("b"))])


def test_binding_close_is_idempotent():
    sock = FakeSocket("eth0")
    binding = InterfaceBinding("eth0", sock)

    binding.close()
    binding.close()

    assert sock.shutdown_called
    assert sock.closed


class RecordingSocket:
    """Records socket options; raises for the options or calls listed in fail."""

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.options = {}
        self.bound = None
        self.timeout = None
        self.closed = False

    def setsockopt(self, level, option, value):
        if (level, option) in self.fail:
            raise OSError(1, "Operation not permitted")
        self.options[(level, option)] = value

    def bind(self, addr):
        if "bind" in self.fail:
            raise OSError(98, "Address already in use")
        self.bound = addr

    def settimeout(self, timeout):
        self.timeout = timeout

    def close(self):
        self.closed = True


@pytest.fixture
def recording_socket(monkeypatch):
    def install(fail=()):
        created = []

        def factory(family, kind, proto=0):
            assert (family, kind) == (socket.AF_INET, socket.SOCK_DGRAM)
            created.append(RecordingSocket(fail))
            return created[-1]

        monkeypatch.setattr(socket, "socket", factory)
        return created
    return install


def test_create_socket_sets_multicast_options(recording_socket):
    created = recording_socket()
    iface = InterfaceInfo("eth0", 2, address="192.168.1.2")

    sock = sockets.create_socket(iface)

    assert sock is created[0]
    assert sock.bound == ("", 5353)
    assert sock.timeout == sockets.SOCKET_TIMEOUT
    assert not sock.closed
    opts = sock.options
    assert opts[(socket.SOL_SOCKET, socket.SO_REUSEADDR)] == 1
    assert opts[(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP)] == (
        socket.inet_aton("224.0.0.251") + socket.inet_aton("192.168.1.2"))
    assert opts[(socket.IPPROTO_IP, socket.IP_MULTICAST_IF)] == socket.inet_aton("192.168.1.2")
    assert opts[(socket.IPPROTO_IP, socket.IP_MULTICAST_LOOP)] == 0
    assert opts[(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL)] == sockets.MULTICAST_TTL
    assert opts[(socket.SOL_SOCKET, socket.SO_RCVBUF)] == sockets.RECEIVE_BUFFER_SIZE


def test_receive_buffer_failure_only_warns(recording_socket, caplog):
    caplog.set_level(logging.WARNING, logger="mdns_relay")
    recording_socket(fail={(socket.SOL_SOCKET, socket.SO_RCVBUF)})

    sock = sockets.create_socket(InterfaceInfo("eth0", 2, address="192.168.1.2"))

    assert not sock.closed
    assert sock.bound == ("", 5353)
    assert "Cannot set receive buffer on eth0" in caplog.text


@pytest.mark.skipif(not hasattr(socket, "SO_BINDTODEVICE"), reason="SO_BINDTODEVICE not available")
def test_bind_to_device_failure_only_warns(recording_socket, caplog):
    caplog.set_level(logging.WARNING, logger="mdns_relay")
    recording_socket(fail={(socket.SOL_SOCKET, socket.SO_BINDTODEVICE)})

    sock = sockets.create_socket(InterfaceInfo("eth1", 3, address="10.0.0.2"))

    assert not sock.closed
    assert "SO_BINDTODEVICE failed for eth1" in caplog.text


def test_bind_error_closes_socket(recording_socket):
    created = recording_socket(fail={"bind"})

    with pytest.raises(OSError):
        sockets.create_socket(InterfaceInfo("eth0", 2, address="192.168.1.2"))

    assert created[0].closed


def test_membership_error_closes_socket_and_fails_bind(recording_socket):
    created = recording_socket(fail={(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP)})

    with pytest.raises(BindFailure) as exc_info:
        open_socket_set([InterfaceInfo("eth0", 2, address="192.168.1.2")])

    assert exc_info.value.name == "eth0"
    assert created[0].closed
