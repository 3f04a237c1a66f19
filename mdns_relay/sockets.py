import logging
import socket
import struct
import sys
from collections.abc import Mapping
from types import MappingProxyType
from typing import Iterable, List

from . import MDNS_MULTICAST_IPV4, MDNS_PORT
from .errors import BindFailure
from .interfaces import InterfaceInfo

logger = logging.getLogger(__name__)

RECEIVE_BUFFER_SIZE = 256 * 1024
MULTICAST_TTL = 255
# Bounds every sendto() and lets readers re-check for cancellation
SOCKET_TIMEOUT = 0.5

# Not exported by the socket module; value from <linux/in.h>
IP_MULTICAST_ALL = 49

MDNS_GROUP = (MDNS_MULTICAST_IPV4, MDNS_PORT)


def _interface_request(iface: InterfaceInfo, group: bytes = None) -> bytes:
    """Build an ip_mreq (by address) or ip_mreqn (by index) for the interface."""
    if iface.address:
        local = socket.inet_aton(iface.address)
        return local if group is None else struct.pack("4s4s", group, local)
    if group is None:
        group = socket.inet_aton("0.0.0.0")
    return struct.pack("4s4si", group, socket.inet_aton("0.0.0.0"), iface.index)


def create_socket(iface: InterfaceInfo) -> socket.socket:
    """Open a UDP socket joined to the mDNS group on exactly one interface."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
    try:
        # Allow one socket per interface on the same port
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        if hasattr(socket, "SO_REUSEPORT"):
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)

        if hasattr(socket, "SO_BINDTODEVICE"):
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_BINDTODEVICE, iface.name.encode())
            except OSError as err:
                logger.warning("SO_BINDTODEVICE failed for %s: %s (needs CAP_NET_RAW)", iface.name, err)

        if sys.platform.startswith("linux"):
            # Only deliver groups this socket joined, on its own interface
            sock.setsockopt(socket.IPPROTO_IP, IP_MULTICAST_ALL, 0)

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, RECEIVE_BUFFER_SIZE)
        except OSError as err:
            logger.warning("Cannot set receive buffer on %s: %s", iface.name, err)

        sock.bind(("", MDNS_PORT))

        # Join the mDNS group on this interface only
        mreq = _interface_request(iface, socket.inet_aton(MDNS_MULTICAST_IPV4))
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, mreq)

        # Outgoing multicast leaves through the same interface, never loops back to us
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_IF, _interface_request(iface))
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, MULTICAST_TTL)
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_LOOP, 0)

        sock.settimeout(SOCKET_TIMEOUT)
    except Exception:
        sock.close()
        raise
    return sock


class InterfaceBinding:
    """One configured interface and the multicast socket bound to it."""

    def __init__(self, name: str, sock, hardware_address: str = ""):
        self.name = name
        self.sock = sock
        self.hardware_address = hardware_address
        self.closed = False

    def send(self, payload: bytes) -> int:
        return self.sock.sendto(payload, MDNS_GROUP)

    def receive(self):
        return self.sock.recvfrom(65535)

    def close(self):
        if self.closed:
            return
        self.closed = True
        try:
            # Wakes a reader blocked in recvfrom() on Linux
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # ENOTCONN on unconnected UDP sockets; the wakeup still happens
            pass
        self.sock.close()

    def __repr__(self):
        return f"InterfaceBinding({self.name!r}, {self.hardware_address!r})"


class RelayGroup(Mapping):
    """Read-only name -> InterfaceBinding mapping, fixed once built."""

    def __init__(self, bindings: Iterable[InterfaceBinding]):
        table = {}
        for binding in bindings:
            if binding.name in table:
                raise ValueError(f"duplicate interface binding: {binding.name}")
            table[binding.name] = binding
        self._bindings = MappingProxyType(table)

    def __getitem__(self, name):
        return self._bindings[name]

    def __iter__(self):
        return iter(self._bindings)

    def __len__(self):
        return len(self._bindings)

    def destinations(self, source_name: str) -> List[InterfaceBinding]:
        return [b for name, b in self._bindings.items() if name != source_name]

    def close(self):
        for binding in self._bindings.values():
            binding.close()


def open_socket_set(interfaces: Iterable[InterfaceInfo]) -> RelayGroup:
    """Bind one socket per interface; on any failure close what was opened."""
    bindings = []
    for iface in interfaces:
        try:
            sock = create_socket(iface)
        except OSError as err:
            logger.error("Cannot bind mDNS socket on %s: %s", iface.name, err)
            for binding in bindings:
                binding.close()
            raise BindFailure(iface.name, err) from err
        logger.debug("Configured interface %s (%s)", iface.name, iface.hardware_address or "no MAC")
        bindings.append(InterfaceBinding(iface.name, sock, iface.hardware_address))
        logger.info("Interface %s ready", iface.name)
    return RelayGroup(bindings)
