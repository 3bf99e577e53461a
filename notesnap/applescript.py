"""AppleScript write layer for Apple Notes operations.

All changes go through the Notes app; the database is never written.
"""

import logging
import subprocess
from dataclasses import dataclass

logger = logging.getLogger(__name__)

TRASH_FOLDER_NAME = "Recently Deleted"


class AppleScriptError(Exception):
    """Base exception for AppleScript errors."""
    pass


class AppleScriptPermissionError(AppleScriptError):
    """TCC permission denied error."""
    pass


class AppleScriptExecutionError(AppleScriptError):
    """AppleScript execution failed."""
    pass


@dataclass(frozen=True)
class NoteMatch:
    """A note id and title as reported by the Notes app."""

    id: str
    title: str


def escape_for_applescript(text: str) -> str:
    """Escape a string for safe use in AppleScript.

    Handles backslashes and double quotes which have special meaning.
    """
    # Escape backslashes first, then quotes
    text = text.replace("\\", "\\\\")
    text = text.replace('"', '\\"')
    return text


def as_applescript_string_expr(value: str) -> str:
    """Build an AppleScript string expression, joining lines with linefeed."""
    normalized = value.replace("\r\n", "\n").replace("\r", "\n")
    parts = normalized.split("\n")
    return " & linefeed & ".join(f'"{escape_for_applescript(part)}"' for part in parts)


def run_applescript(script: str) -> str:
    """Execute AppleScript and return the result.

    Args:
        script: The AppleScript code to execute

    Returns:
        The stdout from the script execution, stripped of whitespace

    Raises:
        AppleScriptPermissionError: If TCC permissions are denied
        AppleScriptExecutionError: If the script fails to execute
    """
    try:
        result = subprocess.run(
            ["osascript", "-e", script],
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()
    except FileNotFoundError as e:
        raise AppleScriptExecutionError("osascript not found; writing notes requires macOS") from e
    except subprocess.CalledProcessError as e:
        stderr = (e.stderr or "").strip()
        logger.debug("osascript failed: %s", stderr)

        # Check for TCC permission errors
        if "not allowed" in stderr.lower() or "permission" in stderr.lower():
            raise AppleScriptPermissionError(
                "AppleScript access denied. Please grant automation permission:\n"
                "System Settings > Privacy & Security > Automation > Enable Terminal"
            ) from e

        # Check for Notes-specific errors
        if "notes" in stderr.lower() and "doesn't understand" in stderr.lower():
            raise AppleScriptExecutionError(
                f"Notes app error: {stderr}"
            ) from e

        # Generic error
        raise AppleScriptExecutionError(
            f"AppleScript failed: {stderr}"
        ) from e


def add_note(title: str, body: str, folder: str | None = None, account: str | None = None) -> str:
    """Script that creates a note and returns its id."""
    return f'''
    set titleText to {as_applescript_string_expr(title)}
    set bodyText to {as_applescript_string_expr(body)}
    set folderName to {as_applescript_string_expr(folder or "")}
    set accountName to {as_applescript_string_expr(account or "")}
    tell application "Notes"
        if accountName is not "" then
            set acc to account accountName
        else
            set acc to first account
        end if
        if folderName is not "" then
            set newNote to make new note at folder folderName of acc with properties {{name:titleText, body:bodyText}}
        else
            set newNote to make new note at acc with properties {{name:titleText, body:bodyText}}
        end if
        return id of newNote
    end tell
    '''


def update_note(note_id: str, title: str | None = None, body: str | None = None) -> str:
    """Script that renames a note and/or replaces its body, returning its id."""
    update_title = "true" if title is not None else "false"
    update_body = "true" if body is not None else "false"
    return f'''
    set noteID to {as_applescript_string_expr(note_id)}
    set titleText to {as_applescript_string_expr(title or "")}
    set bodyText to {as_applescript_string_expr(body or "")}
    set shouldUpdateTitle to {update_title}
    set shouldUpdateBody to {update_body}
    tell application "Notes"
        set theNote to first note whose id is noteID
        if shouldUpdateTitle then
            set name of theNote to titleText
        end if
        if shouldUpdateBody then
            set body of theNote to bodyText
        end if
        return id of theNote
    end tell
    '''


def delete_note(note_id: str) -> str:
    """Script that deletes a note by id."""
    return f'''
    set noteID to {as_applescript_string_expr(note_id)}
    tell application "Notes"
        set theNote to first note whose id is noteID
        delete theNote
        return noteID
    end tell
    '''


def get_note_body(note_id: str) -> str:
    """Script that returns the HTML body of a note."""
    return f'''
    set noteID to {as_applescript_string_expr(note_id)}
    tell application "Notes"
        set theNote to first note whose id is noteID
        return (body of theNote) as text
    end tell
    '''


def set_note_body(note_id: str, html: str) -> str:
    """Script that replaces the HTML body of a note and returns its title."""
    return f'''
    set noteID to {as_applescript_string_expr(note_id)}
    set htmlFragment to {as_applescript_string_expr(html)}
    tell application "Notes"
        set theNote to first note whose id is noteID
        set body of theNote to htmlFragment
        return name of theNote
    end tell
    '''


def find_notes_by_title(title: str, folder: str | None = None, account: str | None = None) -> str:
    """Script that prints "id<TAB>title" for each note with this exact title.

    Notes in Recently Deleted are skipped unless that folder is requested.
    """
    return f'''
    set titleText to {as_applescript_string_expr(title)}
    set folderName to {as_applescript_string_expr(folder or "")}
    set accountName to {as_applescript_string_expr(account or "")}
    set trashName to "{TRASH_FOLDER_NAME}"
    set includeDeleted to (folderName is trashName)
    tell application "Notes"
        set deletedIDs to {{}}
        if not includeDeleted then
            if accountName is not "" then
                set candidateAccounts to {{account accountName}}
            else
                set candidateAccounts to accounts
            end if
            repeat with acc in candidateAccounts
                try
                    set deletedFolder to first folder of acc whose name is trashName
                    repeat with dn in notes of deletedFolder
                        set end of deletedIDs to (id of dn)
                    end repeat
                end try
            end repeat
        end if
        set targetNotes to notes
        if accountName is not "" then
            set targetNotes to notes of account accountName
        end if
        if folderName is not "" then
            if accountName is not "" then
                set targetNotes to notes of folder folderName of account accountName
            else
                set matched to {{}}
                repeat with acc in accounts
                    repeat with f in folders of acc
                        if name of f is folderName then
                            set matched to matched & (notes of f)
                        end if
                    end repeat
                end repeat
                set targetNotes to matched
            end if
        end if
        set outputLines to {{}}
        repeat with n in targetNotes
            if (name of n) is titleText then
                set noteID to id of n
                if includeDeleted or (noteID is not in deletedIDs) then
                    set end of outputLines to ((noteID) & tab & (name of n))
                end if
            end if
        end repeat
        set AppleScript's text item delimiters to linefeed
        return outputLines as text
    end tell
    '''


def parse_note_summaries(output: str) -> list[NoteMatch]:
    """Parse "id<TAB>title" lines, skipping lines without a tab."""
    results = []
    for line in output.splitlines():
        note_id, sep, title = line.partition("\t")
        if not sep:
            continue
        results.append(NoteMatch(id=note_id, title=title))
    return results


def unique_notes_by_id(notes: list[NoteMatch]) -> list[NoteMatch]:
    seen = set()
    unique = []
    for note in notes:
        if note.id not in seen:
            seen.add(note.id)
            unique.append(note)
    return unique
