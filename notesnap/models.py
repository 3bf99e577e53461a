"""Data models for the Notes database."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

# Core Data timestamps are seconds since 2001-01-01 00:00:00 UTC
CORE_DATA_EPOCH_OFFSET = 978307200


def decode_core_time(value: float) -> datetime:
    """Convert a Core Data timestamp to an aware UTC datetime.

    Some records carry 0 (or junk below 1) instead of a real date; those
    are reported as the current time rather than as 2001-01-01.
    """
    if value < 1:
        return datetime.now(timezone.utc)
    return datetime.fromtimestamp(value + CORE_DATA_EPOCH_OFFSET, tz=timezone.utc)


def select_creation_timestamp(created1: float, created2: float, created3: float) -> float:
    """Pick the most specific non-zero creation timestamp (v3 > v2 > v1)."""
    if created3 > 0:
        return created3
    if created2 > 0:
        return created2
    return created1


@dataclass(frozen=True)
class Account:
    """Represents a Notes account (iCloud, On My Mac, ...)."""

    id: int
    name: str
    identifier: str | None = None


@dataclass(frozen=True)
class Folder:
    """Represents a Notes folder."""

    id: int
    name: str
    parent_id: int | None = None
    owner_id: int | None = None
    folder_type: int = 0


@dataclass(frozen=True)
class FolderSummary:
    id: int
    name: str
    account_name: str | None = None
    path: str | None = None


@dataclass
class Note:
    """Represents a note row."""

    id: int
    title: str
    folder_id: int | None = None
    creation_date1: float = 0
    creation_date2: float = 0
    creation_date3: float = 0
    modification_date: float = 0
    account_id: int | None = None
    shared: bool | None = None
    is_password_protected: bool = False
    has_checklist: bool = False

    @property
    def created(self) -> datetime:
        return decode_core_time(
            select_creation_timestamp(self.creation_date1, self.creation_date2, self.creation_date3)
        )

    @property
    def modified(self) -> datetime:
        return decode_core_time(self.modification_date)


@dataclass
class Attachment:
    """An attachment row linked to a note."""

    id: int
    name: str
    created: datetime | None = None
    modified: datetime | None = None
    url: str | None = None
    shared: bool | None = None
    type_uti: str | None = None
    identifier: str | None = None
    media_id: int | None = None
    generation: str | None = None


@dataclass
class NoteDetail:
    """A note with its resolved context and decoded body."""

    id: int
    title: str
    created: datetime
    modified: datetime
    account: str | None = None
    folder: str | None = None
    folder_path: str | None = None
    shared: bool | None = None
    folder_shared: bool | None = None
    attachments: list[Attachment] = field(default_factory=list)
    body: str = ""
