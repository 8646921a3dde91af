"""
CloudMount Backup

Back up local files and folders to a cloud-mounted directory with rsync,
triggered from the command line or a local authenticated HTTP endpoint.
"""

__version__ = "1.0.0"
__author__ = "CloudMount Backup"
__description__ = "Back up files to a cloud-mounted folder with rsync"

from .config.settings import BackupConfig
from .sync.backup_manager import BackupManager

__all__ = ["BackupConfig", "BackupManager"]
