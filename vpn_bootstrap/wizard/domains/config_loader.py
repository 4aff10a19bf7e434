"""Configuration loader for vpn-bootstrap."""
import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
import yaml

from .documents import write_private
from .models import BootstrapError

logger = logging.getLogger(__name__)

REPO_DIR_ENV = "VPN_BOOTSTRAP_REPO_DIR"

DEFAULT_REPOSITORY = "https://github.com/notthebee/ansible-easy-vpn"
DEFAULT_PLAYBOOK_COMMAND = ["ansible-playbook", "run.yml", "--ask-vault-pass"]


class ConfigError(BootstrapError):
    """Configuration error exception."""
    pass


def config_dir() -> Path:
    return Path.home() / ".config" / "vpn-bootstrap"


def default_config_path() -> Path:
    return config_dir() / "config.yml"


def pointer_path() -> Path:
    """Where `config set-path` records the chosen config file."""
    return config_dir() / "config-path.yml"


@dataclass
class BootstrapSettings:
    """Tool settings. Every field has a default so a fresh host needs no file."""
    repo_dir: Path = field(default_factory=lambda: Path.home() / "ansible-easy-vpn")
    settings_file: str = "custom.yml"
    secrets_file: str = "secret.yml"
    ip_echo_url: str = "https://api.ipify.org"
    resolver: str = "1.1.1.1"
    timeout: float = 5.0
    retries: int = 3
    repository: str = DEFAULT_REPOSITORY
    playbook_command: List[str] = field(default_factory=lambda: list(DEFAULT_PLAYBOOK_COMMAND))
    encrypt_settings: bool = True
    source: Optional[str] = None

    @property
    def settings_path(self) -> Path:
        return self.repo_dir / self.settings_file

    @property
    def secrets_path(self) -> Path:
        return self.repo_dir / self.secrets_file


def get_config_path() -> Optional[Path]:
    """
    Get the config file path using the XDG Base Directory standard.

    Priority order:
    1. Path recorded by `config set-path` (~/.config/vpn-bootstrap/config-path.yml)
    2. Default location: ~/.config/vpn-bootstrap/config.yml

    Returns:
        Path to an existing config file, or None when the defaults apply

    Raises:
        ConfigError: If the recorded path file is damaged
    """
    stored = stored_config_path()
    if stored is not None:
        if stored.is_file():
            logger.info(f"Using stored config path: {stored}")
            return stored
        logger.warning(f"Stored config path no longer exists: {stored}")

    default_config = default_config_path()
    if default_config.exists():
        logger.info(f"Using default config location: {default_config}")
        return default_config

    logger.info("No config file found, using built-in defaults")
    return None


def stored_config_path() -> Optional[Path]:
    """
    Read the config path recorded by `config set-path`.

    Returns:
        The recorded absolute path, or None when nothing is recorded

    Raises:
        ConfigError: If the record cannot be read or is not a single absolute path
    """
    pointer = pointer_path()
    try:
        with open(pointer, 'r') as f:
            record = yaml.safe_load(f)
    except FileNotFoundError:
        return None
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse {pointer}: {e}. Run 'vpn-bootstrap config clear'.")
    except OSError as e:
        raise ConfigError(f"Failed to read {pointer}: {e}")

    value = record.get("config_path") if isinstance(record, dict) else None
    if not isinstance(value, str) or not Path(value).is_absolute():
        raise ConfigError(
            f"{pointer} must hold an absolute 'config_path'. Run 'vpn-bootstrap config clear'."
        )
    return Path(value)


def remember_config_path(path) -> BootstrapSettings:
    """
    Validate a config file and record it for later runs.

    The record is written owner-only, like the documents the wizard produces.

    Returns:
        The settings the file yields

    Raises:
        ConfigError: If the path is not a file or the file is not a valid config
    """
    config_path = Path(path).expanduser().resolve()
    if not config_path.is_file():
        raise ConfigError(f"Config file does not exist: {config_path}")

    # nothing is recorded unless the file loads
    settings = load_config(config_path)
    write_private(pointer_path(), yaml.safe_dump({"config_path": str(config_path)}))
    logger.info(f"Config path recorded: {config_path}")
    return settings


def forget_config_path() -> bool:
    """Drop the recorded config path. Returns False when none was recorded."""
    try:
        pointer_path().unlink()
    except FileNotFoundError:
        logger.debug("No config path recorded, nothing to clear")
        return False
    logger.info("Recorded config path cleared")
    return True


def _section(config: Dict[str, Any], name: str, config_path: Path) -> Dict[str, Any]:
    section = config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' in {config_path} must be a mapping")
    return section


def _typed(section: Dict[str, Any], key: str, kind, default, config_path: Path):
    value = section.get(key, default)
    kinds = kind if isinstance(kind, tuple) else (kind,)
    expected = " or ".join(k.__name__ for k in kinds)
    # bool is a subclass of int; keep "timeout: true" from slipping through
    if isinstance(value, bool) and bool not in kinds:
        raise ConfigError(f"'{key}' in {config_path} must be {expected}, got bool")
    if not isinstance(value, kinds):
        raise ConfigError(
            f"'{key}' in {config_path} must be {expected}, got {type(value).__name__}"
        )
    return value


def load_config(config_path: Optional[Path] = None) -> BootstrapSettings:
    """
    Load and validate tool settings.

    Args:
        config_path: Explicit path; resolved via get_config_path() when omitted

    Returns:
        BootstrapSettings with file values layered over the defaults and the
        VPN_BOOTSTRAP_REPO_DIR environment variable applied last

    Raises:
        ConfigError: If the file cannot be read, is not valid YAML, or holds
            values of the wrong type
    """
    settings = BootstrapSettings()

    if config_path is None:
        config_path = get_config_path()

    if config_path is not None:
        try:
            with open(config_path, 'r') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML config at {config_path}: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to read config file at {config_path}: {e}")

        config = config or {}
        if not isinstance(config, dict):
            raise ConfigError(f"Config file at {config_path} must contain a mapping")

        paths = _section(config, "paths", config_path)
        network = _section(config, "network", config_path)
        playbook = _section(config, "playbook", config_path)
        finalize = _section(config, "finalize", config_path)

        settings.repo_dir = Path(
            _typed(paths, "repo_dir", str, str(settings.repo_dir), config_path)
        ).expanduser()
        settings.settings_file = _typed(paths, "settings_file", str, settings.settings_file, config_path)
        settings.secrets_file = _typed(paths, "secrets_file", str, settings.secrets_file, config_path)

        settings.ip_echo_url = _typed(network, "ip_echo_url", str, settings.ip_echo_url, config_path)
        settings.resolver = _typed(network, "resolver", str, settings.resolver, config_path)
        settings.timeout = float(_typed(network, "timeout", (int, float), settings.timeout, config_path))
        settings.retries = _typed(network, "retries", int, settings.retries, config_path)
        if settings.timeout <= 0:
            raise ConfigError(f"'timeout' in {config_path} must be positive")
        if settings.retries < 1:
            raise ConfigError(f"'retries' in {config_path} must be at least 1")

        settings.repository = _typed(playbook, "repository", str, settings.repository, config_path)
        command = playbook.get("command", settings.playbook_command)
        if isinstance(command, str):
            command = command.split()
        if not isinstance(command, list) or not command or not all(isinstance(c, str) for c in command):
            raise ConfigError(f"'playbook.command' in {config_path} must be a non-empty list of strings")
        settings.playbook_command = command

        settings.encrypt_settings = _typed(
            finalize, "encrypt_settings", bool, settings.encrypt_settings, config_path
        )
        settings.source = str(config_path)
        logger.info(f"Configuration loaded successfully from {config_path}")

    repo_dir_env = os.getenv(REPO_DIR_ENV)
    if repo_dir_env:
        logger.debug(f"Using {REPO_DIR_ENV} from environment: {repo_dir_env}")
        settings.repo_dir = Path(repo_dir_env).expanduser()

    logger.debug(f"Using repo dir: {settings.repo_dir}")
    return settings
