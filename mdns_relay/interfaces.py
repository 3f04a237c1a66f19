import logging
import socket
from dataclasses import dataclass
from typing import Iterable, List, Optional

import psutil

from .errors import NoInterfacesConfigured, UnknownInterface

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InterfaceInfo:
    name: str
    index: int
    hardware_address: str = ""
    address: Optional[str] = None


def normalize_names(names: Iterable[str]) -> List[str]:
    """Trim names, drop empty entries and duplicates, keep first-seen order."""
    seen = []
    for name in names:
        name = name.strip()
        if name and name not in seen:
            seen.append(name)
    return seen


def split_names(value: str) -> List[str]:
    # "eth0, eth1,," -> ["eth0", "eth1"]
    return normalize_names(value.split(","))


def resolve_interfaces(names: Iterable[str]) -> List[InterfaceInfo]:
    """Map interface names to live system interfaces.

    Raises NoInterfacesConfigured if nothing is left after normalization and
    UnknownInterface for the first name the host does not have.
    """
    wanted = normalize_names(names)
    if not wanted:
        raise NoInterfacesConfigured()

    present = psutil.net_if_addrs()
    resolved = []
    for name in wanted:
        if name not in present:
            raise UnknownInterface(name)
        try:
            index = socket.if_nametoindex(name)
        except OSError:
            # Interface vanished between enumeration and lookup
            raise UnknownInterface(name) from None

        hardware_address = ""
        address = None
        for addr in present[name]:
            if addr.family == psutil.AF_LINK and not hardware_address:
                hardware_address = addr.address
            elif addr.family == socket.AF_INET and address is None:
                address = addr.address

        info = InterfaceInfo(name, index, hardware_address, address)
        logger.debug("Resolved interface %s (index %d, %s, %s)",
                     name, index, hardware_address or "no MAC", address or "no IPv4")
        resolved.append(info)

    return resolved
