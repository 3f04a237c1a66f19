"""mDNS relay: forwards multicast DNS datagrams between isolated interfaces."""

__version__ = "0.1.0"

MDNS_MULTICAST_IPV4 = "224.0.0.251"
MDNS_PORT = 5353
BUFFER_SIZE = 65535
