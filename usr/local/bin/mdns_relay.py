#!/usr/local/bin/python3

# Relay mDNS queries and responses between network interfaces.
# Usage: mdns_relay.py --ifaces eth0,eth1 [--log-level debug]

import sys

from mdns_relay.cli import main

if __name__ == "__main__":
    sys.exit(main())
