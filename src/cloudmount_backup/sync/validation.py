"""Pre-sync validation of manifest paths and the destination directory."""

import logging
import os
from pathlib import Path
from typing import List, Sequence

from ..errors import DestinationError, DestinationNotDirectoryError, NoEntriesError, NoValidPathsError
from ..models import PathValidation, PathValidationKind, ValidationReport

logger = logging.getLogger(__name__)


class PathValidator:
    """Check paths and the destination for sync-readiness."""

    def validate_path(self, path: str) -> PathValidation:
        """Validate a single path: must be absolute, must exist, must be readable.

        Args:
            path: Path string as written to the manifest

        Returns:
            PathValidation carrying the outcome and the path
        """
        if not os.path.isabs(path):
            return PathValidation(PathValidationKind.NOT_ABSOLUTE, path)

        try:
            os.stat(path)
        except (FileNotFoundError, NotADirectoryError):
            if os.path.lexists(path):
                # Dangling symlink: the link exists but its target cannot be read
                return PathValidation(PathValidationKind.NOT_READABLE, path)
            return PathValidation(PathValidationKind.NOT_FOUND, path)
        except OSError:
            return PathValidation(PathValidationKind.NOT_READABLE, path)

        return PathValidation(PathValidationKind.VALID, path)

    def validate_batch(self, paths: Sequence[str]) -> ValidationReport:
        """Validate every path and detect exact duplicates.

        Each path is checked on its own, duplicates included. A path repeated
        any number of times appears once in ``duplicates``.

        Args:
            paths: Paths in manifest order

        Returns:
            ValidationReport for the batch
        """
        seen = set()
        duplicates: List[str] = []
        failures: List[PathValidation] = []
        valid_count = 0

        for path in paths:
            if path in seen:
                if path not in duplicates:
                    duplicates.append(path)
            else:
                seen.add(path)

            validation = self.validate_path(path)
            if validation.is_valid:
                valid_count += 1
            else:
                failures.append(validation)

        return ValidationReport(
            total=len(paths),
            valid_count=valid_count,
            failures=failures,
            duplicates=duplicates,
        )

    def validate_destination(self, destination: str) -> Path:
        """Ensure the destination is a directory, creating it if absent.

        Args:
            destination: Resolved destination directory

        Returns:
            Destination as a Path
        """
        path = Path(destination)

        if path.exists():
            if not path.is_dir():
                raise DestinationNotDirectoryError(destination)
            return path

        try:
            path.mkdir(parents=True, exist_ok=True)
        except FileExistsError as e:
            raise DestinationNotDirectoryError(destination) from e
        except OSError as e:
            raise DestinationError(destination, f"could not create destination {destination}: {e}") from e

        logger.info(f"Created destination directory {destination}")
        return path

    def pre_sync_check(self, paths: Sequence[str], destination: str) -> ValidationReport:
        """Run the batch check, then the destination check.

        Partial failures are logged as warnings and returned on the report;
        only an empty batch or a batch with no valid path is fatal.

        Args:
            paths: Paths read back from the manifest
            destination: Resolved destination directory

        Returns:
            ValidationReport for the batch
        """
        if not paths:
            raise NoEntriesError()

        report = self.validate_batch(paths)

        if report.valid_count == 0:
            raise NoValidPathsError(report)

        self.validate_destination(destination)

        if report.has_issues:
            logger.warning(f"⚠️ Validation issues: {report.summary()}")
            for failure in report.failures:
                logger.warning(f"   • {failure.describe()}")
            for duplicate in report.duplicates:
                logger.warning(f"   • duplicate: {duplicate}")
        else:
            logger.debug(report.summary())

        return report
