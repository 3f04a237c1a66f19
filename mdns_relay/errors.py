class RelayError(Exception):
    """Base class for every error raised by the relay."""


class ConfigError(RelayError):
    pass


class NoInterfacesConfigured(RelayError):
    def __init__(self):
        super().__init__("no network interfaces configured")


class UnknownInterface(RelayError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"unknown network interface: {name}")


class BindFailure(RelayError):
    def __init__(self, name: str, cause: Exception):
        self.name = name
        self.cause = cause
        super().__init__(f"cannot bind mDNS socket on {name}: {cause}")


class ReceiveError(RelayError):
    def __init__(self, interface_name: str, cause: Exception):
        self.interface_name = interface_name
        self.cause = cause
        super().__init__(f"receive failed on {interface_name}: {cause}")


class ForwardError(RelayError):
    def __init__(self, source_name: str, dest_name: str, cause: Exception):
        self.source_name = source_name
        self.dest_name = dest_name
        self.cause = cause
        super().__init__(f"forward {source_name} -> {dest_name} failed: {cause}")
