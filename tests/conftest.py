"""Common test fixtures for notesnap."""

import tempfile

import pytest

from notesnap.store import NotesStore, TRASH_FOLDER_NAME
from tests.fakes import NotesDBBuilder


@pytest.fixture
def isolated_tempdir(tmp_path, monkeypatch):
    """Point tempfile at an empty directory so leftover snapshots are visible."""
    directory = tmp_path / "tmp"
    directory.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(directory))
    yield directory


@pytest.fixture
def notes_db(tmp_path):
    """An empty Notes database with every known column."""
    builder = NotesDBBuilder(tmp_path / "notes")
    yield builder
    builder.close()


@pytest.fixture
def open_notes():
    """Open stores for a builder; every store is closed after the test."""
    stores = []

    def _open(builder: NotesDBBuilder) -> NotesStore:
        store = NotesStore.open(str(builder.root))
        stores.append(store)
        return store

    yield _open
    for store in stores:
        store.close()


@pytest.fixture
def scenario(notes_db):
    """One account, an Inbox and a trash folder, one note in each."""
    personal = notes_db.add_account("Personal", identifier="LocalAccount")
    inbox = notes_db.add_folder("Inbox", account=personal)
    trash = notes_db.add_folder(TRASH_FOLDER_NAME, account=personal, folder_type=1)
    groceries = notes_db.add_note("Groceries", folder=inbox, account=personal, body="Groceries\nMilk\nEggs")
    old = notes_db.add_note("Old", folder=trash, account=personal, body="Old\nForgotten text")
    return {
        "builder": notes_db,
        "personal": personal,
        "inbox": inbox,
        "trash": trash,
        "groceries": groceries,
        "old": old,
    }
