"""Configuration management for the backup application."""

from .settings import BackupConfig, DestinationConfig, LoggingConfig, SyncOptions, TriggerConfig

__all__ = ["BackupConfig", "DestinationConfig", "TriggerConfig", "SyncOptions", "LoggingConfig"]
