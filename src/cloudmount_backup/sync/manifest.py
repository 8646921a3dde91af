"""Path manifest generation for rsync's ``--files-from`` mode.

A manifest is a UTF-8 text file holding one absolute path per line. It lives
for exactly one sync attempt and is removed when the attempt ends.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from ..errors import ManifestError
from ..models import BackupEntry

logger = logging.getLogger(__name__)

MANIFEST_ENCODING = "utf-8"


class Manifest:
    """Temporary manifest file owned by a single sync attempt.

    Use as a context manager; the file is deleted on exit, whatever the
    outcome of the block.
    """

    def __init__(self, path: Path, paths: Sequence[str]):
        self.path = path
        self.paths = list(paths)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self):
        """Delete the manifest file. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        try:
            self.path.unlink()
            logger.debug(f"Removed manifest {self.path}")
        except FileNotFoundError:
            pass

    def __enter__(self) -> "Manifest":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __len__(self) -> int:
        return len(self.paths)

    def __repr__(self) -> str:
        return f"Manifest(path={str(self.path)!r}, entries={len(self.paths)})"


class ManifestCodec:
    """Encode backup entries into a manifest file and decode it back."""

    def __init__(self, temp_dir: Optional[Path] = None, prefix: str = "cloudmount-manifest-"):
        """Initialize codec.

        Args:
            temp_dir: Directory for manifest files (system temp dir if None)
            prefix: File name prefix for manifest files
        """
        self.temp_dir = temp_dir
        self.prefix = prefix

    def encode(self, entries: Iterable[Union[BackupEntry, str]]) -> Manifest:
        """Write entry paths to a new temporary manifest, preserving order.

        Args:
            entries: Backup entries (or plain path strings)

        Returns:
            Manifest owning the written file
        """
        paths = [entry.path if isinstance(entry, BackupEntry) else str(entry) for entry in entries]

        for path in paths:
            if '\n' in path or '\r' in path:
                raise ManifestError(f"path contains a line break and cannot be listed: {path!r}")
            try:
                path.encode(MANIFEST_ENCODING)
            except UnicodeEncodeError as e:
                raise ManifestError(f"path is not valid UTF-8 and cannot be listed: {path!r}") from e

        fd, name = tempfile.mkstemp(
            prefix=self.prefix,
            suffix=".txt",
            dir=str(self.temp_dir) if self.temp_dir else None,
        )
        manifest = Manifest(Path(name), paths)
        try:
            with os.fdopen(fd, 'w', encoding=MANIFEST_ENCODING, newline='\n') as f:
                for path in paths:
                    f.write(f"{path}\n")
        except (OSError, UnicodeError) as e:
            manifest.close()
            raise ManifestError(f"could not write manifest {name}: {e}") from e

        logger.debug(f"Wrote manifest {name} with {len(paths)} paths")
        return manifest

    @staticmethod
    def decode(manifest: Union[Manifest, Path, str]) -> List[str]:
        """Read paths back from a manifest, skipping blank lines.

        Args:
            manifest: Manifest object or path to a manifest file

        Returns:
            Paths in file order
        """
        path = manifest.path if isinstance(manifest, Manifest) else Path(manifest)
        try:
            content = path.read_text(encoding=MANIFEST_ENCODING)
        except OSError as e:
            raise ManifestError(f"could not read manifest {path}: {e}") from e

        return [line for line in content.split('\n') if line.strip()]
