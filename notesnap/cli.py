"""CLI entry point for notesnap."""

import json
import logging
import sys

import click

from . import __version__
from . import applescript
from . import converters
from . import db
from .formatting import extract_tags, format_date, format_show_text, markdown_from
from .models import NoteDetail
from .prompt import prompt_for_notes_container
from .resolver import is_core_data_id, parse_core_data_id, resolve_note_pk
from .store import (
    TRASH_FOLDER_NAME,
    NotesStore,
    PasswordProtectedError,
    TitleAmbiguousError,
    TitleNotFoundError,
    open_store,
)

logger = logging.getLogger(__name__)


def _drop_none(value):
    if isinstance(value, dict):
        return {k: _drop_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_drop_none(v) for v in value]
    return value


def echo_json(value) -> None:
    """Print JSON with sorted keys, leaving out fields that are None."""
    click.echo(json.dumps(_drop_none(value), sort_keys=True, ensure_ascii=False))


def _read_stdin() -> str | None:
    """Piped stdin content, or None for a terminal or empty input."""
    if sys.stdin.isatty():
        return None
    content = sys.stdin.read()
    return content or None


def _open_store(ctx: click.Context) -> NotesStore:
    return open_store(ctx.obj["notes_path"], prompt=prompt_for_notes_container)


def _attachments_json(detail: NoteDetail) -> list[dict] | None:
    if not detail.attachments:
        return None
    return [
        {
            "name": a.name,
            "created": format_date(a.created) if a.created else None,
            "modified": format_date(a.modified) if a.modified else None,
            "url": a.url,
            "shared": a.shared,
        }
        for a in detail.attachments
    ]


def _detail_json(detail: NoteDetail) -> dict:
    tags = extract_tags(detail.body)
    return {
        "title": detail.title,
        "created": format_date(detail.created),
        "modified": format_date(detail.modified),
        "account": detail.account,
        "folder": detail.folder,
        "folderPath": detail.folder_path,
        "shared": detail.shared,
        "folderShared": detail.folder_shared,
        "tags": tags or None,
        "attachments": _attachments_json(detail),
    }


def _read_note_id(
    store: NotesStore,
    command: str,
    note: str | None,
    note_id: str | None,
    account: str | None,
    folder: str | None,
) -> int:
    if note_id:
        if is_core_data_id(note_id):
            pk = parse_core_data_id(note_id)
            if pk is not None:
                return pk
        try:
            return int(note_id)
        except ValueError:
            raise click.UsageError(
                f"{command} requires a CoreData id (x-coredata://...) or numeric id for --id"
            )
    if note:
        return resolve_note_pk(store, note, account, folder)
    raise click.UsageError(f"{command} requires a note id or title")


def _resolve_title_for_write(title: str, account: str | None, folder: str | None) -> str:
    output = applescript.run_applescript(
        applescript.find_notes_by_title(title, folder=folder, account=account)
    )
    matches = applescript.unique_notes_by_id(applescript.parse_note_summaries(output))
    logger.debug("Title lookup for %r found %d notes", title, len(matches))
    if not matches:
        raise TitleNotFoundError(title)
    if len(matches) > 1:
        raise TitleAmbiguousError(title, len(matches), scoped=bool(account or folder))
    return matches[0].id


def _write_note_id(
    command: str,
    note: str | None,
    note_id: str | None,
    account: str | None,
    folder: str | None,
) -> str:
    if note_id:
        return note_id
    if note:
        if is_core_data_id(note):
            return note
        return _resolve_title_for_write(note, account, folder)
    raise click.UsageError(f"{command} requires a note id or title")


# Options shared by commands that select a single note
def note_selector(f):
    f = click.option("--folder", "-f", help="Folder scope for title lookup")(f)
    f = click.option("--account", "-a", help="Account scope for title lookup")(f)
    f = click.option("--id", "note_id", help="Note id (x-coredata://... or numeric)")(f)
    return f


def json_flag(f):
    return click.option("--json", "-j", "as_json", is_flag=True, help="Structured output")(f)


@click.group()
@click.version_option(version=__version__, prog_name="notesnap")
@click.option(
    "--notes-path",
    envvar="NOTESNAP_NOTES_PATH",
    type=click.Path(),
    help="group.com.apple.notes folder or NoteStore.sqlite to read",
)
@click.option("--debug", envvar="NOTESNAP_DEBUG", is_flag=True, help="Log debug output to stderr")
@click.pass_context
def cli(ctx: click.Context, notes_path: str | None, debug: bool):
    """notesnap - read and edit Apple Notes from the terminal.

    Reads go through a private snapshot of the Notes database; writes go
    through the Notes app.
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.ensure_object(dict)
    ctx.obj["notes_path"] = notes_path


@cli.command(name="list")
@click.option("--account", "-a", help="Filter by account name")
@click.option("--folder", "-f", help="Filter by folder name")
@click.option("--limit", "-n", type=click.IntRange(min=0), help="Maximum number of results")
@click.option("--accounts", "show_accounts", is_flag=True, help="List accounts instead of notes")
@click.option("--folders", "show_folders", is_flag=True, help="List folders instead of notes")
@json_flag
@click.pass_context
def list_(ctx, account, folder, limit, show_accounts, show_folders, as_json):
    """List note titles, accounts or folders.

    Notes in "Recently Deleted" only show up with --folder "Recently Deleted".
    """
    if show_accounts and show_folders:
        raise click.UsageError("list cannot use --accounts and --folders together")

    try:
        with _open_store(ctx) as store:
            if show_accounts:
                accounts = store.list_accounts()[:limit]
                if as_json:
                    echo_json([{"name": a.name} for a in accounts])
                    return
                for entry in accounts:
                    click.echo(entry.name)
                return

            if show_folders:
                folders = store.list_folders(account)[:limit]
                if as_json:
                    echo_json([{"account": f.account_name or "", "name": f.name} for f in folders])
                    return
                for info in folders:
                    if account:
                        click.echo(info.name)
                    else:
                        click.echo(f"{info.account_name or ''}\t{info.name}")
                return

            notes = store.list_notes(
                limit=limit,
                account_name=account,
                folder_name=folder,
                include_trashed=folder == TRASH_FOLDER_NAME,
            )
            if as_json:
                echo_json([{"title": n.title} for n in notes])
                return
            for note in notes:
                click.echo(note.title)
    except db.NotesDBError as e:
        raise click.ClickException(str(e))


@cli.command()
@click.argument("query", nargs=-1, required=True)
@click.option("--account", "-a", help="Filter by account name")
@click.option("--folder", "-f", help="Filter by folder name")
@click.option("--limit", "-n", type=click.IntRange(min=0), help="Maximum number of results")
@json_flag
@click.pass_context
def search(ctx, query, account, folder, limit, as_json):
    """Search notes by title and content."""
    text = " ".join(query)
    try:
        with _open_store(ctx) as store:
            notes = store.search_notes(
                text,
                limit=limit,
                account_name=account,
                folder_name=folder,
                include_trashed=folder == TRASH_FOLDER_NAME,
            )
            if not as_json:
                for note in notes:
                    click.echo(note.title)
                return

            results = []
            for note in notes:
                try:
                    results.append(_detail_json(store.note_detail(note.id)))
                except PasswordProtectedError:
                    results.append({
                        "title": note.title,
                        "created": format_date(note.created),
                        "modified": format_date(note.modified),
                        "shared": note.shared,
                    })
            echo_json(results)
    except db.NotesDBError as e:
        raise click.ClickException(str(e))


@cli.command()
@click.argument("note", required=False)
@note_selector
@click.option("--markdown", "-m", "as_markdown", is_flag=True, help="Render the body as Markdown")
@json_flag
@click.pass_context
def show(ctx, note, note_id, account, folder, as_markdown, as_json):
    """Show a note by id or exact title."""
    try:
        with _open_store(ctx) as store:
            pk = _read_note_id(store, "show", note, note_id, account, folder)
            detail = store.note_detail(pk)
    except db.NotesDBError as e:
        raise click.ClickException(str(e))

    body = markdown_from(detail.title, detail.body) if as_markdown else detail.body
    if as_json:
        result = _detail_json(detail)
        result["body"] = body
        result["format"] = "markdown" if as_markdown else "text"
        echo_json(result)
        return

    if as_markdown:
        click.echo(body)
        return

    click.echo(format_show_text(
        title=detail.title,
        created=format_date(detail.created),
        modified=format_date(detail.modified),
        body=body,
        account=detail.account,
        folder=detail.folder,
        folder_path=detail.folder_path,
        shared=detail.shared,
        folder_shared=detail.folder_shared,
        tags=extract_tags(detail.body),
        attachment_count=len(detail.attachments),
    ))


@cli.command()
@click.argument("note", required=False)
@note_selector
@click.option("--markdown", "-m", "as_markdown", is_flag=True, help="Export as Markdown")
@json_flag
@click.pass_context
def export(ctx, note, note_id, account, folder, as_markdown, as_json):
    """Print a note's body as text or Markdown."""
    try:
        with _open_store(ctx) as store:
            pk = _read_note_id(store, "export", note, note_id, account, folder)
            detail = store.note_detail(pk)
    except db.NotesDBError as e:
        raise click.ClickException(str(e))

    content = markdown_from(detail.title, detail.body) if as_markdown else detail.body
    if as_json:
        echo_json({
            "title": detail.title,
            "format": "markdown" if as_markdown else "text",
            "content": content,
        })
        return
    click.echo(content)


@cli.command()
@click.argument("title")
@click.argument("text", nargs=-1)
@click.option("--body", "-b", help="Note body (Markdown format)")
@click.option("--folder", "-f", help="Folder to create note in")
@click.option("--account", "-a", help="Account name (default: first account)")
@json_flag
def add(title, text, body, folder, account, as_json):
    """Create a new note.

    Body can be given with --body, as trailing arguments, or piped from stdin.
    Markdown formatting is converted to HTML.
    """
    if body is None:
        body = " ".join(text) if text else (_read_stdin() or "")

    try:
        output = applescript.run_applescript(applescript.add_note(
            title=title,
            body=converters.markdown_to_html(body),
            folder=folder,
            account=account,
        ))
    except applescript.AppleScriptError as e:
        raise click.ClickException(str(e))

    if not output:
        raise click.ClickException("Failed to create note")
    if as_json:
        echo_json({"ok": True, "action": "add", "title": title, "id": output})
        return
    click.echo(title)


@cli.command()
@click.argument("note", required=False)
@note_selector
@click.option("--title", "-t", "new_title", help="New title")
@click.option("--body", "-b", help="New body (Markdown format)")
@json_flag
def update(note, note_id, account, folder, new_title, body, as_json):
    """Change a note's title and/or body.

    NOTE selects the note; --title sets the new title. The body can also be
    piped from stdin.
    """
    if body is None:
        body = _read_stdin()
    if new_title is None and body is None:
        raise click.UsageError("update requires --title and/or --body")

    try:
        target = _write_note_id("update", note, note_id, account, folder)
        output = applescript.run_applescript(applescript.update_note(
            target,
            title=new_title,
            body=converters.markdown_to_html(body) if body is not None else None,
        ))
    except (db.NotesDBError, applescript.AppleScriptError) as e:
        raise click.ClickException(str(e))

    if not output:
        raise click.ClickException("Failed to update note")
    if as_json:
        echo_json({"ok": True, "action": "update", "title": new_title, "id": output})
        return
    click.echo(new_title if new_title is not None else "updated")


@cli.command()
@click.argument("note", required=False)
@click.argument("text", nargs=-1)
@note_selector
@click.option("--body", "-b", help="Text to append")
@json_flag
def append(note, text, note_id, account, folder, body, as_json):
    """Append text to a note.

    Checklist notes get a new list item; other notes get a new paragraph.
    """
    if body is None:
        body = " ".join(text) if text else _read_stdin()
    if body is None:
        raise click.UsageError("append requires text (use --body, trailing args, or stdin)")

    try:
        target = _write_note_id("append", note, note_id, account, folder)
        current = applescript.run_applescript(applescript.get_note_body(target))
        new_body = None
        if converters.html_looks_like_checklist(current):
            new_body = converters.append_checklist_item_html(current, body)
        if new_body is None:
            new_body = current + converters.html_fragment_from_plain_text(body)
        output = applescript.run_applescript(applescript.set_note_body(target, new_body))
    except (db.NotesDBError, applescript.AppleScriptError) as e:
        raise click.ClickException(str(e))

    if not output:
        raise click.ClickException("Failed to append to note")
    if as_json:
        echo_json({"ok": True, "action": "append", "title": output, "id": target})
        return
    click.echo(output)


@cli.command()
@click.argument("note", required=False)
@note_selector
@json_flag
def delete(note, note_id, account, folder, as_json):
    """Delete a note (it moves to Recently Deleted)."""
    try:
        target = _write_note_id("delete", note, note_id, account, folder)
        output = applescript.run_applescript(applescript.delete_note(target))
    except (db.NotesDBError, applescript.AppleScriptError) as e:
        raise click.ClickException(str(e))

    if not output:
        raise click.ClickException("Failed to delete note")
    if as_json:
        echo_json({"ok": True, "action": "delete", "id": target})
        return
    click.echo("deleted")


if __name__ == "__main__":
    cli()
