"""Tests for the runtime schema catalog."""

import sqlite3

import pytest

from notesnap import db
from notesnap.schema import EntityKind, SchemaCatalog
from tests.fakes import ENTITY_IDS, STORE_UUID, NotesDBBuilder


def _load(builder: NotesDBBuilder) -> SchemaCatalog:
    conn = db.get_connection(builder.db_path)
    try:
        return SchemaCatalog.load(conn)
    finally:
        conn.close()


class TestSchemaCatalog:
    def test_entity_ids_come_from_database(self, notes_db):
        catalog = _load(notes_db)
        assert catalog.entity_id(EntityKind.NOTE) == ENTITY_IDS["ICNote"]
        assert catalog.entity_id(EntityKind.FOLDER) == ENTITY_IDS["ICFolder"]
        assert catalog.entity_id(EntityKind.ACCOUNT) == ENTITY_IDS["ICAccount"]
        assert catalog.entity_id("ICNoSuchThing") is None

    def test_columns_are_probed(self, tmp_path):
        builder = NotesDBBuilder(tmp_path / "old", omit_columns=("ZCREATIONDATE3", "ZACCOUNT"))
        try:
            catalog = _load(builder)
        finally:
            builder.close()
        assert catalog.has_column("ZTITLE1")
        assert catalog.has_column("ztitle1")
        assert not catalog.has_column("ZCREATIONDATE3")
        assert not catalog.has_column("zaccount")

    def test_column_or_null(self, tmp_path):
        builder = NotesDBBuilder(tmp_path / "old", omit_columns=("ZSHARED",))
        try:
            catalog = _load(builder)
        finally:
            builder.close()
        assert catalog.column_or_null("ZTITLE1") == "ztitle1"
        assert catalog.column_or_null("zshared") == "NULL AS zshared"
        assert catalog.select_list(("ztitle1", "zshared")) == "ztitle1, NULL AS zshared"

    def test_store_uuid(self, notes_db):
        assert _load(notes_db).store_uuid == STORE_UUID

    def test_missing_metadata_table(self, tmp_path):
        builder = NotesDBBuilder(tmp_path / "bare", with_metadata=False)
        try:
            assert _load(builder).store_uuid is None
        finally:
            builder.close()

    def test_missing_key_table_is_an_error(self, tmp_path):
        path = tmp_path / "empty.sqlite"
        sqlite3.connect(path).close()
        conn = db.get_connection(path)
        try:
            with pytest.raises(db.NotesDBError):
                SchemaCatalog.load(conn)
        finally:
            conn.close()

    def test_select_list_keeps_row_shape(self, tmp_path):
        """A NULL stand-in still yields a column of the requested name."""
        builder = NotesDBBuilder(tmp_path / "old", omit_columns=("ZSHARED",))
        note = builder.add_note("Hello")
        conn = db.get_connection(builder.db_path)
        try:
            catalog = SchemaCatalog.load(conn)
            row = db.query_one(
                conn,
                f"SELECT z_pk, {catalog.select_list(('zshared',))} FROM ziccloudsyncingobject WHERE z_pk = ?",
                (note,),
            )
        finally:
            conn.close()
            builder.close()
        assert row["zshared"] is None
