"""Turn user-supplied note references into note ids."""

import re

from .store import NotesStore

CORE_DATA_PREFIX = "x-coredata://"

_PK_SUFFIX = re.compile(r"/p(\d+)")


def is_core_data_id(value: str) -> bool:
    return value.startswith(CORE_DATA_PREFIX)


def parse_core_data_id(value: str) -> int | None:
    """Extract the primary key from an x-coredata://<uuid>/ICNote/p<pk> id."""
    index = value.rfind("/p")
    if index == -1:
        return None
    match = _PK_SUFFIX.match(value, index)
    if match is None:
        return None
    return int(match.group(1))


def resolve_note_pk(
    store: NotesStore,
    reference: str,
    account_name: str | None = None,
    folder_name: str | None = None,
) -> int:
    """Resolve a Core Data id, numeric id or exact title to a note id.

    Raises:
        TitleNotFoundError: If the reference is a title no note has
        TitleAmbiguousError: If the reference is a title several notes share
    """
    if is_core_data_id(reference):
        pk = parse_core_data_id(reference)
        if pk is not None:
            return pk
    try:
        return int(reference)
    except ValueError:
        pass
    return store.resolve_note_id_by_title(reference, account_name, folder_name)
