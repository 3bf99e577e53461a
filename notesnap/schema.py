"""Runtime schema facts for a Notes database.

ZICCLOUDSYNCINGOBJECT is a single table holding accounts, folders, notes,
attachments and more. Rows are told apart by Z_ENT, whose values come from
Z_PRIMARYKEY and are assigned when the database is created, so they have
to be looked up per database. The column set also changes between macOS
releases, so it is probed rather than assumed.
"""

import logging
import sqlite3
from dataclasses import dataclass, field

from . import db

logger = logging.getLogger(__name__)

OBJECT_TABLE = "ziccloudsyncingobject"


class EntityKind:
    """Logical record names as stored in Z_PRIMARYKEY.Z_NAME."""

    ACCOUNT = "ICAccount"
    FOLDER = "ICFolder"
    NOTE = "ICNote"
    ATTACHMENT = "ICAttachment"


@dataclass(frozen=True)
class SchemaCatalog:
    """Entity ids, available columns and store UUID of one database."""

    entity_ids: dict[str, int] = field(default_factory=dict)
    columns: frozenset[str] = frozenset()
    store_uuid: str | None = None

    @classmethod
    def load(cls, conn: sqlite3.Connection) -> "SchemaCatalog":
        entity_ids = {}
        for row in db.query(conn, "SELECT z_ent, z_name FROM z_primarykey"):
            if row["z_name"] is not None and row["z_ent"] is not None:
                entity_ids[row["z_name"]] = int(row["z_ent"])

        columns = db.table_columns(conn, OBJECT_TABLE)
        store_uuid = _load_store_uuid(conn)
        logger.debug(
            "Schema: %d entity kinds, %d columns, store uuid %s",
            len(entity_ids), len(columns), store_uuid,
        )
        return cls(entity_ids=entity_ids, columns=columns, store_uuid=store_uuid)

    def entity_id(self, name: str) -> int | None:
        return self.entity_ids.get(name)

    def has_column(self, name: str) -> bool:
        return name.upper() in self.columns

    def column_or_null(self, name: str) -> str:
        """Column reference for a SELECT list, or a NULL stand-in when absent."""
        column = name.lower()
        if self.has_column(column):
            return column
        return f"NULL AS {column}"

    def select_list(self, names: list[str] | tuple[str, ...]) -> str:
        return ", ".join(self.column_or_null(name) for name in names)


def _load_store_uuid(conn: sqlite3.Connection) -> str | None:
    if "Z_UUID" not in db.table_columns(conn, "z_metadata"):
        return None
    row = db.query_one(conn, "SELECT z_uuid FROM z_metadata LIMIT 1")
    if row is None:
        return None
    return row["z_uuid"]
