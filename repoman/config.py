#!/usr/bin/env python3
"""
Configuration and logging setup for repoman.

Configuration is layered: built-in defaults, then a config file, then
``REPOMAN_*`` environment variables. The merged dict is frozen into a
``Settings`` bundle which every service receives.
"""

import os
import json
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import logging
import sys

import yaml

from .exit_codes import ConfigError

logger = logging.getLogger("repoman")

CONFIG_FILENAMES = ['config.yaml', 'config.yml', 'config.toml', 'config.json']
LOG_FORMAT = "%(levelname)s: %(message)s"
FILE_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_config_path() -> Optional[Path]:
    """Get the path to the configuration file.

    Checks in order:
    1. REPOMAN_CONFIG environment variable
    2. ~/.config/repoman/ directory
    3. ~/.repoman/ directory

    Returns None when no config file exists; defaults apply.
    """
    if 'REPOMAN_CONFIG' in os.environ:
        path = Path(os.environ['REPOMAN_CONFIG']).expanduser()
        if path.exists():
            return path
        logger.warning(f"REPOMAN_CONFIG points to missing file {path}")

    for directory in (Path.home() / '.config' / 'repoman', Path.home() / '.repoman'):
        for filename in CONFIG_FILENAMES:
            path = directory / filename
            if path.exists():
                return path

    return None


def get_default_config() -> Dict[str, Any]:
    """Built-in defaults. All directories live under ~/.repoman."""
    base = Path.home() / '.repoman'
    return {
        'vault_dir': str(base / 'vault'),
        'pristines_dir': str(base / 'pristines'),
        'clones_dir': str(base / 'clones'),
        'plugins_dir': str(base / 'plugins'),
        'logs_dir': str(base / 'logs'),
        'default_sync_interval': 3600,
        'lock_timeout': 600,
        'git_timeout': 900,
        'max_auth_attempts': 3,
        'logging': {
            'level': 'INFO',
        },
    }


def _read_config_file(config_path: Path) -> Dict[str, Any]:
    suffix = config_path.suffix.lower()
    try:
        if suffix == '.toml':
            with open(config_path, 'rb') as f:
                data = tomllib.load(f)
        elif suffix in ('.yaml', '.yml'):
            with open(config_path, 'r') as f:
                data = yaml.safe_load(f)
        else:
            with open(config_path, 'r') as f:
                data = json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"Error loading config from {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")
    return data


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from defaults, file and environment."""
    config = get_default_config()

    path = Path(config_path) if config_path else get_config_path()
    if path is not None:
        logger.debug(f"Loading config from {path}")
        config = merge_configs(config, _read_config_file(path))

    return apply_env_overrides(config)


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value

    return merged


def _coerce(value: str):
    if value.lower() in ('true', 'yes', 'on'):
        return True
    if value.lower() in ('false', 'no', 'off'):
        return False
    if value.isdigit():
        return int(value)
    return value


def apply_env_overrides(config):
    """
    Apply environment variable overrides to configuration.

    Environment variables follow the pattern REPOMAN_KEY or
    REPOMAN_SECTION_KEY, e.g. REPOMAN_CLONES_DIR=/tmp/clones or
    REPOMAN_LOGGING_LEVEL=DEBUG. Keys that match nothing are ignored.
    """
    env_prefix = "REPOMAN_"

    for env_key, value in os.environ.items():
        if not env_key.startswith(env_prefix) or env_key == 'REPOMAN_CONFIG':
            continue

        key_parts = env_key[len(env_prefix):].lower().split('_')
        current_level = config
        i = 0
        while i < len(key_parts):
            # Longest config key that is a prefix of the remaining parts
            matched_key = None
            best_match_len = 0
            for config_key in current_level.keys():
                parts = config_key.split('_')
                if key_parts[i:i + len(parts)] == parts and len(parts) > best_match_len:
                    best_match_len = len(parts)
                    matched_key = config_key

            if matched_key is None:
                logger.debug(f"Ignoring unknown override {env_key}")
                break

            if i + best_match_len == len(key_parts):
                current_level[matched_key] = _coerce(value)
                break

            if not isinstance(current_level[matched_key], dict):
                break
            current_level = current_level[matched_key]
            i += best_match_len

    return config


@dataclass(frozen=True)
class Settings:
    """
    Immutable, fully resolved configuration passed to every service.

    Example:
        settings = Settings.from_config(load_config())
        settings.pristine_path("ripgrep")
    """
    vault_dir: Path
    pristines_dir: Path
    clones_dir: Path
    plugins_dir: Path
    logs_dir: Path
    default_sync_interval: int = 3600
    lock_timeout: float = 600
    git_timeout: int = 900
    max_auth_attempts: int = 3
    log_level: str = 'INFO'

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'Settings':
        try:
            return cls(
                vault_dir=Path(config['vault_dir']).expanduser(),
                pristines_dir=Path(config['pristines_dir']).expanduser(),
                clones_dir=Path(config['clones_dir']).expanduser(),
                plugins_dir=Path(config['plugins_dir']).expanduser(),
                logs_dir=Path(config['logs_dir']).expanduser(),
                default_sync_interval=int(config['default_sync_interval']),
                lock_timeout=float(config['lock_timeout']),
                git_timeout=int(config['git_timeout']),
                max_auth_attempts=int(config['max_auth_attempts']),
                log_level=str(config.get('logging', {}).get('level', 'INFO')).upper(),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    @classmethod
    def under(cls, base: Path, **overrides) -> 'Settings':
        """All directories below one base directory."""
        base = Path(base)
        return cls(
            vault_dir=base / 'vault',
            pristines_dir=base / 'pristines',
            clones_dir=base / 'clones',
            plugins_dir=base / 'plugins',
            logs_dir=base / 'logs',
            **overrides,
        )

    def ensure_dirs(self) -> None:
        for directory in (self.vault_dir, self.pristines_dir, self.clones_dir,
                          self.plugins_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    @property
    def vault_file(self) -> Path:
        return self.vault_dir / 'vault.json'

    @property
    def aliases_file(self) -> Path:
        return self.vault_dir / 'aliases.json'

    def metadata_file(self, name: str) -> Path:
        return self.vault_dir / name / 'metadata.json'

    def pristine_path(self, name: str) -> Path:
        return self.pristines_dir / name

    def clone_path(self, repo: str, clone_name: str) -> Path:
        return self.clones_dir / f"{repo}-{clone_name}"

    @property
    def pid_file(self) -> Path:
        return self.logs_dir / 'agent.pid'

    @property
    def agent_log(self) -> Path:
        return self.logs_dir / 'agent.log'

    @property
    def log_file(self) -> Path:
        return self.logs_dir / 'repoman.log'


def setup_logging(settings: Settings, debug: bool = False,
                  log_file: Optional[Path] = None, console: bool = True) -> None:
    """
    Configure the ``repoman`` logger.

    Console output goes to stderr (INFO, or DEBUG with ``debug``); a file
    handler records DEBUG detail under the logs directory.
    """
    root = logging.getLogger("repoman")
    root.setLevel(logging.DEBUG)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = False

    if console:
        stream = logging.StreamHandler(sys.stderr)
        stream.setLevel(logging.DEBUG if debug else getattr(logging, settings.log_level, logging.INFO))
        stream.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(stream)

    target = log_file or settings.log_file
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(target)
    except OSError as e:
        logger.warning(f"Cannot write log file {target}: {e}")
        return
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
    root.addHandler(file_handler)
