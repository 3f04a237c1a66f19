import argparse
import logging
import sys

from . import __version__
from .config import (load_config, load_optional_config, parse_log_level,
                     resolve_config_path, save_config)
from .errors import ConfigError, RelayError
from .interfaces import split_names
from .log import setup_logging
from .reflector import Reflector

logger = logging.getLogger(__name__)

MISSING_INTERFACES_HELP = """no interfaces to relay between ({reason})

Specify the network interfaces in one of these ways:
  1. on the command line:        --ifaces=eth0,eth1
  2. save them to the config:    --config-ifaces=eth0,eth1
  3. point at a config file:     --config=/path/to/config.yml

See --help for details."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mdns-relay",
        description="Relay mDNS (224.0.0.251:5353) datagrams between network interfaces",
    )
    parser.add_argument('--ifaces', help='Comma separated interfaces to relay between, e.g. eth0,eth1')
    parser.add_argument('--config-ifaces', help='Save the comma separated interfaces to the config file and exit')
    parser.add_argument('--config-log-level', help='Save the log level (debug, info, warn, error) to the config file and exit')
    parser.add_argument('--log-level', help='Log level (debug, info, warn, error), default info')
    parser.add_argument('--config', help='Configuration file path, default ~/.config/mdns-relay/config.yml')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def _interface_names(args, paths):
    if args.ifaces:
        logger.info("Using interfaces from the command line")
        return split_names(args.ifaces)

    try:
        config = load_config(paths.path)
    except ConfigError as err:
        raise ConfigError(MISSING_INTERFACES_HELP.format(reason=err)) from err
    if not config.ifaces:
        raise ConfigError(MISSING_INTERFACES_HELP.format(reason=f"{paths.path} lists no interfaces"))
    logger.info("Using interfaces from %s: %s", paths.path, ", ".join(config.ifaces))
    return config.ifaces


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    paths = resolve_config_path(args.config)

    log_level = args.log_level
    if not log_level:
        try:
            log_level = load_optional_config(paths.path).log_level
        except ConfigError:
            # Reported properly once the interfaces are loaded
            log_level = None
    setup_logging(parse_log_level(log_level))

    try:
        if args.config_ifaces or args.config_log_level:
            ifaces = split_names(args.config_ifaces) if args.config_ifaces else None
            level = parse_log_level(args.config_log_level) if args.config_log_level else None
            save_config(paths, ifaces=ifaces, log_level=level)
            return 0

        Reflector(_interface_names(args, paths)).run()
    except RelayError as err:
        print(f"mdns-relay: {err}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
