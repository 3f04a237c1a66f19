import errno
import queue
import socket
import time

import pytest

from mdns_relay.sockets import InterfaceBinding, RelayGroup


class FakeSocket:
    """In-memory stand-in for a bound multicast socket."""

    def __init__(self, name, fail_with=None):
        self.name = name
        self.fail_with = fail_with
        self.sent = []
        self.inbox = queue.Queue()
        self.closed = False
        self.shutdown_called = False

    def sendto(self, data, addr):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((bytes(data), addr))
        return len(data)

    def recvfrom(self, size):
        if self.closed:
            raise OSError(errno.EBADF, "Bad file descriptor")
        try:
            item = self.inbox.get(timeout=0.02)
        except queue.Empty:
            raise socket.timeout("timed out")
        if isinstance(item, Exception):
            raise item
        return item

    def deliver(self, data, sender=("192.168.1.20", 5353)):
        self.inbox.put((data, sender))

    def shutdown(self, how):
        self.shutdown_called = True

    def close(self):
        self.closed = True


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def make_group():
    def _make(names, failing=None):
        failing = failing or {}
        socks = {name: FakeSocket(name, failing.get(name)) for name in names}
        group = RelayGroup(InterfaceBinding(name, sock) for name, sock in socks.items())
        return group, socks
    return _make
