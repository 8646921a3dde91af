"""Configuration settings and models for the backup application."""

import ipaddress
import os
import posixpath
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, validator

from ..errors import ConfigurationError

TOKEN_ENV_VAR = "CLOUDMOUNT_BACKUP_TOKEN"
DEFAULT_CONFIG_PATH = Path('config/config.yaml')
DEFAULT_BACKUP_DIR_NAME = "CloudMountBackup"
DEFAULT_TRIGGER_PORT = 7022


def is_loopback_host(host: str) -> bool:
    """Return True if host names a loopback interface."""
    if host == "localhost":
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def _check_folder_name(value: str, field_name: str) -> str:
    if value in ('.', '..') or '/' in value or '\0' in value:
        raise ValueError(f'{field_name} must be a single folder name')
    return value


class DestinationConfig(BaseModel):
    """Where backups land: <mount_root>/<backup_dir_name>[/<machine_name>]."""
    mount_root: str
    backup_dir_name: str = DEFAULT_BACKUP_DIR_NAME
    machine_name: Optional[str] = None  # Per-device subfolder for multi-machine backup

    @validator('mount_root')
    def validate_mount_root(cls, v):
        if not v or not os.path.isabs(v):
            raise ValueError('mount_root must be an absolute path')
        return v

    @validator('backup_dir_name')
    def validate_backup_dir_name(cls, v):
        if not v:
            raise ValueError('backup_dir_name must not be empty')
        return _check_folder_name(v, 'backup_dir_name')

    @validator('machine_name')
    def validate_machine_name(cls, v):
        if v is None or not v.strip():
            return None
        return _check_folder_name(v.strip(), 'machine_name')

    def destination_path(self) -> str:
        """Resolve the absolute destination directory."""
        parts = [self.mount_root.rstrip('/') or '/', self.backup_dir_name]
        if self.machine_name:
            parts.append(self.machine_name)
        return posixpath.join(*parts)


class TriggerConfig(BaseModel):
    """Local HTTP trigger service settings."""
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = DEFAULT_TRIGGER_PORT
    token: Optional[str] = None  # Created by `init` or `token`, never on load

    @validator('host')
    def validate_loopback_host(cls, v):
        if not is_loopback_host(v):
            raise ValueError('trigger service may only bind to a loopback address')
        return v

    @validator('port')
    def validate_port(cls, v):
        if not 0 < v < 65536:
            raise ValueError('port must be between 1 and 65535')
        return v

    @validator('token')
    def validate_token(cls, v):
        if v is None:
            return None
        if not v.strip():
            raise ValueError('token must not be empty')
        return v.strip()

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


class SyncOptions(BaseModel):
    """Synchronization options."""
    rsync_binary: str = "rsync"
    timeout_seconds: Optional[float] = None  # None waits for rsync indefinitely

    @validator('timeout_seconds')
    def validate_timeout(cls, v):
        if v is not None and v <= 0:
            raise ValueError('timeout_seconds must be positive')
        return v


class LoggingConfig(BaseModel):
    """Logging options."""
    level: str = "INFO"
    file: Optional[str] = 'logs/backup.log'

    @validator('level')
    def validate_level(cls, v):
        if v.upper() not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f'unknown log level: {v}')
        return v.upper()


class BackupConfig(BaseModel):
    """Main configuration class."""
    destination: DestinationConfig
    trigger: TriggerConfig = Field(default_factory=TriggerConfig)
    sync_options: SyncOptions = Field(default_factory=SyncOptions)
    entries_file: str = 'data/entries.json'
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, config_path: Union[str, Path]) -> "BackupConfig":
        """Load configuration from YAML file.

        The trigger token may be overridden with the CLOUDMOUNT_BACKUP_TOKEN
        environment variable.
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            try:
                config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        env_token = os.getenv(TOKEN_ENV_VAR)
        if env_token:
            config_data['trigger'] = dict(config_data.get('trigger') or {})
            config_data['trigger']['token'] = env_token

        try:
            return cls(**config_data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e

    def to_yaml(self, config_path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self.dict(), f, default_flow_style=False, indent=2,
                           allow_unicode=True, sort_keys=False)

    def destination_path(self) -> str:
        return self.destination.destination_path()

    @property
    def entries_path(self) -> Path:
        return Path(self.entries_file)

    @property
    def lock_path(self) -> Path:
        """Lock file held while a sync runs, shared by every process."""
        return self.entries_path.with_name('sync.lock')

    @property
    def log_path(self) -> Optional[Path]:
        return Path(self.logging.file) if self.logging.file else None
