"""Read-only view over a snapshot of the Apple Notes database."""

import logging
import sqlite3
from typing import Callable

from . import container as notes_container, db
from .container import NotesAccessError, NotesContainer, Snapshot
from .formatting import render_checklist_plain_text
from .models import (
    Account,
    Attachment,
    Folder,
    FolderSummary,
    Note,
    NoteDetail,
    decode_core_time,
)
from .proto import DecodeError, decode_note_text
from .schema import OBJECT_TABLE, EntityKind, SchemaCatalog

logger = logging.getLogger(__name__)

TRASH_FOLDER_NAME = "Recently Deleted"
TRASH_FOLDER_TYPE = 1
SYSTEM_FOLDER_TYPE = 3

NOTE_OPTIONAL_COLUMNS = (
    "zcreationdate2",
    "zcreationdate3",
    "zaccount",
    "zshared",
    "zispasswordprotected",
    "zhaschecklist",
    "zhaschecklistinprogress",
)

ATTACHMENT_COLUMNS = (
    "z_pk",
    "zidentifier",
    "zfilename",
    "zcreationdate",
    "zmodificationdate",
    "zurl",
    "zshared",
    "ztypeuti",
    "zmedia",
    "zgeneration1",
)


class NoteNotFoundError(db.NotesDBError):
    """No note row matches the requested id."""

    def __init__(self, note_id: int):
        super().__init__(f"Note not found: {note_id}")
        self.note_id = note_id


class TitleNotFoundError(db.NotesDBError):
    """No note carries the requested title."""

    def __init__(self, title: str):
        super().__init__(f"No note found with title: {title}")
        self.title = title


class TitleAmbiguousError(db.NotesDBError):
    """More than one note carries the requested title."""

    def __init__(self, title: str, count: int, scoped: bool):
        message = f"Multiple notes found with title: {title}. Use --id to disambiguate"
        if not scoped:
            message += " or add --account/--folder"
        super().__init__(message)
        self.title = title
        self.count = count


class PasswordProtectedError(db.NotesDBError):
    """The note is locked; its body is never decoded."""

    def __init__(self, note_id: int):
        super().__init__("Note is password protected")
        self.note_id = note_id


def _bool_or_none(value) -> bool | None:
    return None if value is None else bool(value)


def build_folder_paths(folders: dict[int, Folder]) -> dict[int, str]:
    """Map every folder id to its "Root/Child/Leaf" path.

    Walks parent links up to a folder without a (known) parent. An ancestor
    whose path ended at a root is reused as a prefix. Revisiting a folder
    ends the walk, so malformed parent cycles terminate and no folder
    appears twice in a path.
    """
    paths: dict[int, str] = {}
    # Folders whose path ends at a root; their paths never contain a cycle
    rooted: set[int] = set()
    for folder_id in folders:
        names = []
        seen = set()
        prefix = None
        current = folder_id
        while current is not None and current in folders and current not in seen:
            if current in rooted:
                prefix = paths[current]
                break
            seen.add(current)
            folder = folders[current]
            names.append(folder.name)
            current = folder.parent_id
        names.reverse()
        if prefix is not None:
            names.insert(0, prefix)
        paths[folder_id] = "/".join(names)
        if current is None or current not in seen:
            rooted.add(folder_id)
    return paths


def load_accounts(conn: sqlite3.Connection, catalog: SchemaCatalog) -> list[Account]:
    account_ent = catalog.entity_id(EntityKind.ACCOUNT)
    if account_ent is None:
        return []
    sql = (
        f"SELECT z_pk, {catalog.select_list(('zname', 'zidentifier'))} "
        f"FROM {OBJECT_TABLE} WHERE z_ent = ?"
    )
    accounts = []
    for row in db.query(conn, sql, (account_ent,)):
        if row["zname"] is None:
            continue
        accounts.append(Account(id=row["z_pk"], name=row["zname"], identifier=row["zidentifier"]))
    return accounts


def load_folders(conn: sqlite3.Connection, catalog: SchemaCatalog) -> list[Folder]:
    folder_ent = catalog.entity_id(EntityKind.FOLDER)
    if folder_ent is None:
        return []
    columns = catalog.select_list(("ztitle2", "zparent", "zowner", "zfoldertype"))
    sql = f"SELECT z_pk, {columns} FROM {OBJECT_TABLE} WHERE z_ent = ?"
    folders = []
    for row in db.query(conn, sql, (folder_ent,)):
        if row["ztitle2"] is None:
            continue
        folders.append(Folder(
            id=row["z_pk"],
            name=row["ztitle2"],
            parent_id=row["zparent"],
            owner_id=row["zowner"],
            folder_type=int(row["zfoldertype"] or 0),
        ))
    return folders


class NotesStore:
    """Accounts, folders and notes of one database snapshot.

    Accounts and folders are loaded once when the store opens; notes are
    queried on demand. The snapshot is deleted by close(), which also runs
    when the store is used as a context manager.
    """

    def __init__(
        self,
        container: NotesContainer,
        snapshot: Snapshot,
        conn: sqlite3.Connection,
        catalog: SchemaCatalog,
        accounts: list[Account],
        folders: list[Folder],
    ):
        self.container = container
        self.snapshot = snapshot
        self.catalog = catalog
        self._conn = conn

        self.accounts_by_id = {account.id: account for account in accounts}
        self.folders_by_id = {folder.id: folder for folder in folders}
        self.trashed_folder_ids = {
            folder.id for folder in folders if folder.folder_type == TRASH_FOLDER_TYPE
        }
        self.folder_paths = build_folder_paths(self.folders_by_id)

    @classmethod
    def open(cls, notes_path: str | None = None) -> "NotesStore":
        """Snapshot the database and load accounts and folders.

        Raises:
            NotesAccessError: If the container cannot be reached or copied
            DatabaseNotFoundError: If an explicit path has no database
            NotesDBError: If the snapshot cannot be read as a Notes database
        """
        container = NotesContainer.resolve(notes_path)
        snapshot = container.snapshot()
        conn = None
        try:
            conn = db.get_connection(snapshot.db_path)
            catalog = SchemaCatalog.load(conn)
            accounts = load_accounts(conn, catalog)
            folders = load_folders(conn, catalog)
        except BaseException:
            if conn is not None:
                conn.close()
            snapshot.release()
            raise
        logger.debug("Loaded %d accounts and %d folders", len(accounts), len(folders))
        return cls(container, snapshot, conn, catalog, accounts, folders)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        self.snapshot.release()

    def __enter__(self) -> "NotesStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # Accounts and folders

    def list_accounts(self) -> list[Account]:
        return sorted(self.accounts_by_id.values(), key=lambda a: a.name)

    def list_folders(self, account_name: str | None = None) -> list[FolderSummary]:
        folders = [f for f in self.folders_by_id.values() if f.folder_type != SYSTEM_FOLDER_TYPE]
        if account_name:
            account_ids = set(self._account_ids(account_name))
            folders = [f for f in folders if f.owner_id in account_ids]
        summaries = [
            FolderSummary(
                id=folder.id,
                name=folder.name,
                account_name=self._account_name(folder.owner_id),
                path=self.folder_paths.get(folder.id),
            )
            for folder in folders
        ]
        return sorted(summaries, key=lambda f: f.name)

    # Notes

    def list_notes(
        self,
        limit: int | None = None,
        account_name: str | None = None,
        folder_name: str | None = None,
        include_trashed: bool = False,
    ) -> list[Note]:
        return self._fetch_notes(limit, account_name, folder_name, include_trashed)

    def search_notes(
        self,
        query: str,
        limit: int | None = None,
        account_name: str | None = None,
        folder_name: str | None = None,
        include_trashed: bool = False,
    ) -> list[Note]:
        """Case-insensitive substring search over titles, then bodies.

        The body is only decoded when the title does not match.
        """
        needle = query.lower()
        results = []
        for note in self._fetch_notes(None, account_name, folder_name, include_trashed):
            if limit is not None and len(results) >= limit:
                break
            if needle in note.title.lower():
                results.append(note)
            elif needle in self._note_body(note.id).lower():
                results.append(note)
        return results

    def resolve_note_id_by_title(
        self,
        title: str,
        account_name: str | None = None,
        folder_name: str | None = None,
    ) -> int:
        """Resolve an exact title within an optional scope to a note id.

        Raises:
            TitleNotFoundError: If no note has this title
            TitleAmbiguousError: If several notes have this title
        """
        include_trashed = folder_name == TRASH_FOLDER_NAME
        notes = self._fetch_notes(None, account_name, folder_name, include_trashed)
        matches = [note for note in notes if note.title == title]
        if not matches:
            raise TitleNotFoundError(title)
        if len(matches) > 1:
            raise TitleAmbiguousError(title, len(matches), scoped=bool(account_name or folder_name))
        return matches[0].id

    def get_note(self, note_id: int) -> Note | None:
        notes = self._fetch_notes(1, None, None, True, specific_id=note_id)
        return notes[0] if notes else None

    def note_detail(self, note_id: int) -> NoteDetail:
        """Load a note with account, folder, attachments and body text.

        Raises:
            NoteNotFoundError: If no note has this id
            PasswordProtectedError: If the note is locked
        """
        note = self.get_note(note_id)
        if note is None:
            raise NoteNotFoundError(note_id)
        if note.is_password_protected:
            raise PasswordProtectedError(note_id)

        body = self._note_body(note_id)
        if note.has_checklist:
            body = render_checklist_plain_text(body, title=note.title)

        folder = self.folders_by_id.get(note.folder_id)
        return NoteDetail(
            id=note.id,
            title=note.title,
            created=note.created,
            modified=note.modified,
            account=self._account_name(note.account_id),
            folder=folder.name if folder else None,
            folder_path=self.folder_paths.get(note.folder_id),
            shared=note.shared,
            folder_shared=self._folder_shared(note.folder_id),
            attachments=self._fetch_attachments(note_id),
            body=body,
        )

    def core_data_id(self, note_id: int) -> str | None:
        """Return the x-coredata:// URI the Notes app uses for this note."""
        if not self.catalog.store_uuid:
            return None
        return f"x-coredata://{self.catalog.store_uuid}/ICNote/p{note_id}"

    # Internals

    def _query(self, sql: str, params: tuple | list = ()) -> list[sqlite3.Row]:
        if self._conn is None:
            raise db.NotesDBError("Notes store is closed")
        return db.query(self._conn, sql, params)

    def _account_ids(self, name: str) -> list[int]:
        return [a.id for a in self.accounts_by_id.values() if a.name == name]

    def _account_name(self, account_id: int | None) -> str | None:
        account = self.accounts_by_id.get(account_id)
        return account.name if account else None

    def _folder_ids_for_name(self, name: str, account_name: str | None) -> list[int]:
        candidates = [f for f in self.folders_by_id.values() if f.name == name]
        if account_name:
            account_ids = set(self._account_ids(account_name))
            candidates = [f for f in candidates if f.owner_id in account_ids]
        return [f.id for f in candidates]

    def _folder_ids_for_accounts(self, account_ids: list[int]) -> list[int]:
        wanted = set(account_ids)
        return [f.id for f in self.folders_by_id.values() if f.owner_id in wanted]

    def _note_query(
        self,
        limit: int | None,
        account_name: str | None,
        folder_name: str | None,
        include_trashed: bool,
        specific_id: int | None = None,
    ) -> tuple[str, list]:
        """Build the note SELECT for the current schema and filters.

        Optional columns missing from this schema version are selected as
        NULL so every row has the same shape.
        """
        catalog = self.catalog
        sql = (
            "SELECT z_pk, ztitle1, zfolder, zcreationdate1, zmodificationdate1, "
            f"{catalog.select_list(NOTE_OPTIONAL_COLUMNS)} "
            f"FROM {OBJECT_TABLE} WHERE z_ent = ? AND ztitle1 IS NOT NULL"
        )
        params: list = [catalog.entity_id(EntityKind.NOTE)]

        if catalog.has_column("zmarkedfordeletion"):
            sql += " AND (zmarkedfordeletion IS NULL OR zmarkedfordeletion != 1)"

        if specific_id is not None:
            sql += " AND z_pk = ?"
            params.append(specific_id)

        if account_name:
            account_ids = self._account_ids(account_name)
            if catalog.has_column("zaccount"):
                column, ids = "zaccount", account_ids
            else:
                column, ids = "zfolder", self._folder_ids_for_accounts(account_ids)
            if ids:
                sql += f" AND {column} IN ({db.placeholders(len(ids))})"
                params.extend(ids)
            else:
                sql += " AND 1 = 0"

        if folder_name:
            folder_ids = self._folder_ids_for_name(folder_name, account_name)
            if folder_ids:
                sql += f" AND zfolder IN ({db.placeholders(len(folder_ids))})"
                params.extend(folder_ids)
            else:
                sql += " AND 1 = 0"
        elif not include_trashed and self.trashed_folder_ids:
            trashed = sorted(self.trashed_folder_ids)
            sql += f" AND (zfolder IS NULL OR zfolder NOT IN ({db.placeholders(len(trashed))}))"
            params.extend(trashed)

        sql += " ORDER BY zmodificationdate1 DESC, z_pk"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return sql, params

    def _fetch_notes(
        self,
        limit: int | None,
        account_name: str | None,
        folder_name: str | None,
        include_trashed: bool,
        specific_id: int | None = None,
    ) -> list[Note]:
        if self.catalog.entity_id(EntityKind.NOTE) is None:
            return []
        sql, params = self._note_query(limit, account_name, folder_name, include_trashed, specific_id)
        rows = self._query(sql, params)
        logger.debug("Note query returned %d rows", len(rows))
        return [self._make_note(row) for row in rows]

    @staticmethod
    def _make_note(row: sqlite3.Row) -> Note:
        return Note(
            id=row["z_pk"],
            title=row["ztitle1"],
            folder_id=row["zfolder"],
            creation_date1=row["zcreationdate1"] or 0,
            creation_date2=row["zcreationdate2"] or 0,
            creation_date3=row["zcreationdate3"] or 0,
            modification_date=row["zmodificationdate1"] or 0,
            account_id=row["zaccount"],
            shared=_bool_or_none(row["zshared"]),
            is_password_protected=bool(row["zispasswordprotected"]),
            has_checklist=bool(row["zhaschecklist"]) or bool(row["zhaschecklistinprogress"]),
        )

    def _note_body(self, note_id: int) -> str:
        """Decoded body text; any decode failure yields ""."""
        row = self._query_one("SELECT zdata FROM zicnotedata WHERE znote = ?", (note_id,))
        if row is None or row["zdata"] is None:
            return ""
        try:
            text = decode_note_text(bytes(row["zdata"]))
        except DecodeError as e:
            logger.warning("Could not decode body of note %s: %s", note_id, e)
            return ""
        return text or ""

    def _query_one(self, sql: str, params: tuple | list = ()) -> sqlite3.Row | None:
        rows = self._query(sql, params)
        return rows[0] if rows else None

    def _folder_shared(self, folder_id: int | None) -> bool | None:
        if folder_id is None or not self.catalog.has_column("zshared"):
            return None
        row = self._query_one(f"SELECT zshared FROM {OBJECT_TABLE} WHERE z_pk = ?", (folder_id,))
        if row is None:
            return None
        return _bool_or_none(row["zshared"])

    def _fetch_attachments(self, note_id: int) -> list[Attachment]:
        if not self.catalog.has_column("znote"):
            return []
        sql = (
            f"SELECT {self.catalog.select_list(ATTACHMENT_COLUMNS)} "
            f"FROM {OBJECT_TABLE} WHERE znote = ? AND z_ent != ?"
        )
        note_ent = self.catalog.entity_id(EntityKind.NOTE)
        attachments = []
        for row in self._query(sql, (note_id, note_ent)):
            created = row["zcreationdate"]
            modified = row["zmodificationdate"]
            attachments.append(Attachment(
                id=row["z_pk"],
                name=row["zfilename"] or row["zidentifier"] or row["ztypeuti"] or "Attachment",
                created=decode_core_time(created) if created is not None else None,
                modified=decode_core_time(modified) if modified is not None else None,
                url=row["zurl"],
                shared=_bool_or_none(row["zshared"]),
                type_uti=row["ztypeuti"],
                identifier=row["zidentifier"],
                media_id=row["zmedia"],
                generation=row["zgeneration1"],
            ))
        return attachments


def open_store(
    notes_path: str | None = None,
    prompt: Callable | None = None,
) -> NotesStore:
    """Open a store, asking for the container location if access fails.

    The prompt is only consulted when no explicit path was given. A path it
    returns is opened like an explicit override; None keeps the original
    access error.
    """
    try:
        return NotesStore.open(notes_path)
    except NotesAccessError:
        if notes_path is not None or prompt is None:
            raise
        selected = prompt(notes_container.DEFAULT_ROOT)
        if not selected:
            raise
    return NotesStore.open(selected)
