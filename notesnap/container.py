"""Locate the Notes database and take private snapshots of it."""

import logging
import shutil
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path

from .db import DatabaseNotFoundError, NotesDBError

logger = logging.getLogger(__name__)

# Apple Notes database location
CONTAINER_NAME = "group.com.apple.notes"
DEFAULT_ROOT = Path("~/Library/Group Containers").expanduser() / CONTAINER_NAME
DB_NAME = "NoteStore.sqlite"

# Write-ahead log and shared-memory files that travel with the database
SIDE_FILE_SUFFIXES = ("-wal", "-shm")

ACCESS_HINT = (
    "Grant access to the Notes container (group.com.apple.notes) and try again:\n"
    "System Settings > Privacy & Security > Full Disk Access > Enable Terminal"
)


class NotesAccessError(NotesDBError):
    """The Notes container could not be reached or read."""
    pass


class NotFoundOrDeniedError(NotesAccessError):
    """Database missing at the default location, or access was denied."""

    def __init__(self, message: str | None = None):
        super().__init__(message or f"Notes database not found or access denied. {ACCESS_HINT}")


class ReadDeniedError(NotesAccessError):
    """Database exists but copying it into a snapshot failed."""

    def __init__(self, message: str | None = None):
        super().__init__(message or f"Failed to read Notes database. {ACCESS_HINT}")


def _log_removal_failure(function, path, exc) -> None:
    # onerror passes an exc_info tuple, onexc the exception itself
    error = exc[1] if isinstance(exc, tuple) else exc
    logger.warning("Could not remove %s: %s", path, error)


def _remove_tree(directory: Path) -> None:
    if sys.version_info >= (3, 12):
        shutil.rmtree(directory, onexc=_log_removal_failure)
    else:
        shutil.rmtree(directory, onerror=_log_removal_failure)


@dataclass
class Snapshot:
    """A private copy of the database living in its own temp directory."""

    directory: Path
    db_path: Path

    def release(self) -> None:
        """Delete the temp directory and everything copied into it."""
        if self.directory.exists():
            _remove_tree(self.directory)
            logger.debug("Removed snapshot directory %s", self.directory)


@dataclass(frozen=True)
class NotesContainer:
    """Resolved container root and database file."""

    root: Path
    db_path: Path

    @classmethod
    def resolve(cls, notes_path: str | Path | None = None) -> "NotesContainer":
        """Resolve an optional override into a container.

        Args:
            notes_path: The container directory, the database file itself,
                or None for the default location

        Raises:
            NotFoundOrDeniedError: If the database is missing at the default
                (sandboxed) location, where "missing" may mean "denied"
            DatabaseNotFoundError: If the database is missing at an explicit path
        """
        if notes_path is not None:
            path = Path(notes_path).expanduser()
            if path.suffix == ".sqlite":
                root, db_path = path.parent, path
            else:
                root, db_path = path, path / DB_NAME
        else:
            root = DEFAULT_ROOT
            db_path = root / DB_NAME

        if not db_path.exists():
            if notes_path is None or CONTAINER_NAME in str(root):
                raise NotFoundOrDeniedError()
            raise DatabaseNotFoundError(f"Notes database not found at {db_path}")

        return cls(root=root, db_path=db_path)

    def snapshot(self) -> Snapshot:
        """Copy the database and its side files into a fresh temp directory.

        Raises:
            ReadDeniedError: If the snapshot directory cannot be created or
                the database file itself could not be copied
        """
        try:
            directory = Path(tempfile.mkdtemp(prefix="notesnap-"))
        except OSError as e:
            raise ReadDeniedError(f"Failed to create snapshot directory: {e}") from e
        target = directory / DB_NAME
        try:
            shutil.copyfile(self.db_path, target)
        except OSError as e:
            _remove_tree(directory)
            raise ReadDeniedError() from e

        for suffix in SIDE_FILE_SUFFIXES:
            side = Path(f"{self.db_path}{suffix}")
            if not side.exists():
                continue
            try:
                shutil.copyfile(side, Path(f"{target}{suffix}"))
            except OSError as e:
                logger.warning("Could not copy %s: %s", side, e)

        logger.debug("Snapshot of %s taken at %s", self.db_path, directory)
        return Snapshot(directory=directory, db_path=target)
