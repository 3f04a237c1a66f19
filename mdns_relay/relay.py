import logging
import socket
import threading
from dataclasses import dataclass, field
from typing import List

from .describe import describe_message
from .errors import ForwardError, ReceiveError
from .sockets import InterfaceBinding, RelayGroup

logger = logging.getLogger(__name__)

RECEIVE_ERROR_BACKOFF = 0.1


@dataclass
class ForwardRecord:
    """Outcome of relaying one inbound datagram."""

    source: str
    payload: bytes
    succeeded: List[str] = field(default_factory=list)
    failed: List[ForwardError] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.payload)

    @property
    def failed_names(self) -> List[str]:
        return [err.dest_name for err in self.failed]


def _report(record: ForwardRecord):
    summary = describe_message(record.payload)
    extra = {
        "source": record.source,
        "destinations": list(record.succeeded),
        "failed": record.failed_names,
        "size": record.size,
    }

    if not record.succeeded and not record.failed:
        logger.debug("mDNS from %s has no other interface to go to (%d bytes, %s)",
                     record.source, record.size, summary, extra=extra)
        return

    if not record.failed:
        logger.info("mDNS forward: %s -> [%s] (%d bytes, %s)",
                    record.source, ",".join(record.succeeded), record.size, summary, extra=extra)
    elif record.succeeded:
        logger.info("mDNS forward: %s -> [%s] (%d bytes, %s), failed on %d interface(s)",
                    record.source, ",".join(record.succeeded), record.size, summary,
                    len(record.failed), extra=extra)
    else:
        logger.warning("mDNS forward failed: %s -> all destinations (%d bytes, %s)",
                       record.source, record.size, summary, extra=extra)

    if record.failed:
        logger.debug("Forward failure details: %s", "; ".join(str(err) for err in record.failed))


def forward(group: RelayGroup, source_name: str, payload: bytes) -> ForwardRecord:
    """Send payload out of every interface in the group except source_name."""
    record = ForwardRecord(source_name, payload)

    for binding in group.destinations(source_name):
        try:
            sent = binding.send(payload)
            if sent != len(payload):
                raise OSError(f"short send: {sent} of {len(payload)} bytes")
        except OSError as err:
            # socket.timeout is an OSError too: the destination is congested
            record.failed.append(ForwardError(source_name, binding.name, err))
        else:
            record.succeeded.append(binding.name)

    _report(record)
    return record


def read_loop(binding: InterfaceBinding, group: RelayGroup, cancelled: threading.Event):
    """Receive datagrams on one interface and relay them until cancelled."""
    logger.debug("Listening on interface %s", binding.name)

    while not cancelled.is_set():
        try:
            data, addr = binding.receive()
        except socket.timeout:
            continue
        except OSError as err:
            if cancelled.is_set():
                break
            logger.error("%s", ReceiveError(binding.name, err))
            cancelled.wait(RECEIVE_ERROR_BACKOFF)
            continue

        # A shut-down socket also returns b"", but only after cancellation is set
        if cancelled.is_set():
            break

        logger.debug("Received %d bytes from %s on %s", len(data), addr, binding.name)
        forward(group, binding.name, data)

    logger.debug("Stopped listening on interface %s", binding.name)
