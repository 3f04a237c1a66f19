import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

import yaml

from .errors import ConfigError
from .interfaces import normalize_names

logger = logging.getLogger(__name__)

APP_DIR = "mdns-relay"
CONFIG_NAME = "config.yml"
SYSTEM_CONFIG_PATH = Path("/etc") / APP_DIR / CONFIG_NAME

LOG_LEVELS = ("debug", "info", "warn", "error")
DEFAULT_LOG_LEVEL = "info"


@dataclass
class Config:
    ifaces: List[str] = field(default_factory=list)
    log_level: str = ""

    @classmethod
    def from_dict(cls, data) -> "Config":
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError("configuration must be a mapping")
        ifaces = data.get("ifaces") or []
        if isinstance(ifaces, str):
            ifaces = ifaces.split(",")
        if not isinstance(ifaces, list):
            raise ConfigError("'ifaces' must be a list of interface names")
        log_level = data.get("log_level") or ""
        return cls(normalize_names(str(i) for i in ifaces), str(log_level))

    def to_dict(self) -> dict:
        data = {"ifaces": list(self.ifaces)}
        if self.log_level:
            data["log_level"] = self.log_level
        return data


@dataclass(frozen=True)
class ConfigPaths:
    """Where the configuration is read from and where it would be saved."""

    path: Path
    user_path: Path
    system_path: Path = SYSTEM_CONFIG_PATH


def user_config_path() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(base) / APP_DIR / CONFIG_NAME


def resolve_config_path(explicit: Optional[str] = None,
                        system_path: Path = SYSTEM_CONFIG_PATH) -> ConfigPaths:
    user_path = user_config_path()
    if explicit:
        return ConfigPaths(Path(explicit).expanduser(), user_path, system_path)
    if user_path.exists():
        return ConfigPaths(user_path, user_path, system_path)
    if system_path.exists():
        return ConfigPaths(system_path, user_path, system_path)
    # Nothing yet; new configuration goes to the user directory
    return ConfigPaths(user_path, user_path, system_path)


def parse_log_level(value: Optional[str]) -> str:
    level = (value or "").strip().lower()
    return level if level in LOG_LEVELS else DEFAULT_LOG_LEVEL


def load_config(path: Path) -> Config:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"configuration file {path} does not exist")
    try:
        with open(path) as fh:
            data = yaml.safe_load(fh)
    except OSError as err:
        raise ConfigError(f"cannot read configuration file {path}: {err}") from err
    except yaml.YAMLError as err:
        raise ConfigError(f"cannot parse configuration file {path}: {err}") from err
    return Config.from_dict(data)


def load_optional_config(path: Path) -> Config:
    """Like load_config, but a missing file is an empty configuration."""
    if not Path(path).exists():
        return Config()
    return load_config(path)


def _write(path: Path, config: Config) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as fh:
        yaml.safe_dump(config.to_dict(), fh, default_flow_style=False, sort_keys=False)
    return path


def save_config(paths: ConfigPaths, ifaces: Optional[Iterable[str]] = None,
                log_level: Optional[str] = None) -> Path:
    """Merge the given settings into the configuration file and write it back."""
    try:
        config = load_optional_config(paths.path)
    except ConfigError as err:
        logger.warning("Existing configuration unreadable, starting a new one: %s", err)
        config = Config()

    if ifaces is not None:
        config.ifaces = normalize_names(ifaces)
    if log_level:
        config.log_level = log_level

    logger.debug("Saving configuration: ifaces=%s log_level=%s", config.ifaces, config.log_level)

    try:
        written = _write(paths.path, config)
    except PermissionError as err:
        if paths.path != paths.system_path:
            raise ConfigError(f"cannot write configuration file {paths.path}: {err}") from err
        logger.warning("No permission to write %s, using %s instead", paths.path, paths.user_path)
        try:
            written = _write(paths.user_path, config)
        except OSError as user_err:
            raise ConfigError(f"cannot write configuration file {paths.user_path}: {user_err}") from user_err
    except OSError as err:
        raise ConfigError(f"cannot write configuration file {paths.path}: {err}") from err

    logger.info("Configuration saved to %s", written)
    return written
