"""Plain-text rendering helpers for note output."""

import re
from datetime import datetime, timezone

TAG_PATTERN = re.compile(r"(?:^|\s)#([A-Za-z0-9_-]+)", re.MULTILINE)

BULLET_SYMBOLS = ("•", "◦", "‣", "∙", "·")

CHECKLIST_PREFIXES = (
    "[ ]", "[x]",
    "- [ ]", "- [x]",
    "* [ ]", "* [x]",
    "+ [ ]", "+ [x]",
)


def format_date(value: datetime) -> str:
    """Format a datetime as ISO 8601 UTC with milliseconds, e.g. 2024-01-02T03:04:05.000Z."""
    utc = value.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def extract_tags(text: str) -> list[str]:
    """Find #tags in note text.

    A tag starts a line or follows whitespace. Duplicates are dropped
    case-insensitively, keeping the first spelling seen.
    """
    seen = set()
    tags = []
    for match in TAG_PATTERN.finditer(text):
        raw = match.group(1)
        key = raw.lower()
        if key not in seen:
            seen.add(key)
            tags.append(raw)
    return tags


def _normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def normalize_bullet_line(line: str) -> str | None:
    """Turn a "• item" line into "[ ] item", or return None if it is not a bullet.

    Each leading tab becomes two spaces of indentation.
    """
    trimmed = line.strip()
    if not trimmed or trimmed[0] not in BULLET_SYMBOLS:
        return None

    leading = line[:len(line) - len(line.lstrip(" \t"))]
    indent = "  " * leading.count("\t")

    after_bullet = trimmed[1:].strip()
    if not after_bullet:
        return f"{indent}[ ]"
    return f"{indent}[ ] {after_bullet}"


def normalize_plain_text_lists(text: str) -> str:
    lines = text.split("\n")
    return "\n".join(normalize_bullet_line(line) or line for line in lines)


def _has_checklist_prefix(trimmed: str) -> bool:
    return trimmed.lower().startswith(CHECKLIST_PREFIXES)


def render_checklist_plain_text(text: str, title: str | None = None) -> str:
    """Render a checklist note's body with "[ ]" markers.

    The note text does not record which lines are checklist items, so every
    non-empty line after the title line is shown as one.
    """
    title_trimmed = title.strip() if title is not None else None
    skipped_title = False
    output = []

    for line in _normalize_newlines(text).split("\n"):
        trimmed = line.strip()
        if not trimmed:
            output.append(line)
            continue
        if not skipped_title and title_trimmed is not None and trimmed == title_trimmed:
            output.append(line)
            skipped_title = True
            continue
        if _has_checklist_prefix(trimmed):
            output.append(line)
            continue
        bullet = normalize_bullet_line(line)
        if bullet is not None:
            output.append(bullet)
            continue
        indent = line[:len(line) - len(line.lstrip(" \t"))]
        output.append(f"{indent}[ ] {trimmed}")

    return "\n".join(output)


def markdown_from(title: str, body: str) -> str:
    """Build a Markdown document with the title as a heading."""
    trimmed_body = body.strip()
    title_text = title or "Untitled"
    if not trimmed_body:
        return f"# {title_text}\n"
    return f"# {title_text}\n\n{trimmed_body}"


def format_show_text(
    title: str,
    created: str,
    modified: str,
    body: str,
    account: str | None = None,
    folder: str | None = None,
    folder_path: str | None = None,
    shared: bool | None = None,
    folder_shared: bool | None = None,
    tags: list[str] | None = None,
    attachment_count: int = 0,
) -> str:
    """Lay out a note as tab-separated header lines, a blank line, then the body."""
    lines = [
        f"name:\t{title}",
        f"created:\t{created}",
        f"modified:\t{modified}",
    ]
    if account:
        lines.append(f"account:\t{account}")
    folder_display = folder_path or folder
    if folder_display:
        lines.append(f"folder:\t{folder_display}")
    if shared is not None:
        lines.append(f"shared:\t{str(shared).lower()}")
    if folder_shared is not None:
        lines.append(f"folder_shared:\t{str(folder_shared).lower()}")
    if tags:
        lines.append("tags:\t" + ", ".join(tags))
    if attachment_count > 0:
        lines.append(f"attachments:\t{attachment_count}")
    lines.append("")
    lines.append(body)
    return "\n".join(lines)
