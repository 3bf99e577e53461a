"""Ask the user where the Notes container is when it cannot be reached."""

import sys
from pathlib import Path

import click


def prompt_for_notes_container(default_root: Path) -> str | None:
    """Prompt for the group.com.apple.notes folder or NoteStore.sqlite.

    Returns None without asking when stdin is not a terminal, and None when
    the user enters nothing.
    """
    if not sys.stdin.isatty():
        return None

    click.echo(
        f"Cannot read the Notes database at {default_root}.\n"
        "Enter the path to the group.com.apple.notes folder or NoteStore.sqlite "
        "(leave empty to cancel).",
        err=True,
    )
    answer = click.prompt("Notes path", default="", show_default=False, err=True)
    answer = answer.strip()
    return answer or None
