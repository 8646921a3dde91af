"""File utility functions."""

import os
from pathlib import Path

from ..models import ItemType


class FileHelper:
    """Helper class for file operations."""

    @staticmethod
    def detect_item_type(file_path: Path) -> ItemType:
        """Classify an existing path as file or directory.

        Symlinks are classified by their target.

        Args:
            file_path: Path to an existing file or directory

        Returns:
            ItemType of the path
        """
        if not os.path.lexists(file_path):
            raise FileNotFoundError(f"File not found: {file_path}")

        resolved = Path(os.path.realpath(file_path))
        if resolved.is_dir():
            return ItemType.DIRECTORY
        return ItemType.FILE

    @staticmethod
    def format_file_size(size_bytes: int) -> str:
        """Format file size in human readable format.

        Args:
            size_bytes: Size in bytes

        Returns:
            Formatted size string
        """
        if size_bytes == 0:
            return "0 B"

        size_names = ["B", "KB", "MB", "GB", "TB", "PB"]
        i = 0
        size = float(size_bytes)

        while size >= 1024 and i < len(size_names) - 1:
            size /= 1024.0
            i += 1

        return f"{size:.1f} {size_names[i]}"
