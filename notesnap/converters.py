"""HTML helpers for note bodies sent to the Notes app."""

import html

import markdown
from bs4 import BeautifulSoup, NavigableString, Tag

LIST_TAGS = ("ul", "ol", "li")
HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")


def markdown_to_html(md_content: str) -> str:
    """Convert Markdown to Apple Notes compatible HTML.

    Apple Notes uses a restricted HTML subset:
    - div for paragraphs
    - br for line breaks
    - Inline styles only (no classes)
    - Limited elements: b, i, u, strike, a, ul, ol, li
    """
    if not md_content:
        return ""

    # Convert Markdown to HTML
    rendered = markdown.markdown(
        md_content,
        extensions=["extra", "nl2br"],
    )

    # Parse and clean for Apple Notes compatibility
    soup = BeautifulSoup(rendered, "html.parser")

    # Convert <p> tags to <div> (Apple Notes preference)
    for p in soup.find_all("p"):
        p.name = "div"

    # Convert <strong> to <b> and <em> to <i>
    for strong in soup.find_all("strong"):
        strong.name = "b"
    for em in soup.find_all("em"):
        em.name = "i"

    return str(soup)


def html_fragment_from_plain_text(text: str) -> str:
    """Wrap plain text in a <div>, escaping it and keeping line breaks."""
    escaped = html.escape(text, quote=True)
    return "<div>" + escaped.replace("\n", "<br>") + "</div>"


def _normalize(content: str) -> str:
    return content.replace("\r\n", "\n").replace("\r", "\n")


def _count_text(node, in_list: bool, ignore_text: bool, counts: dict) -> None:
    for child in node.children:
        if isinstance(child, NavigableString):
            if ignore_text or not child.strip():
                continue
            counts["list" if in_list else "other"] += 1
            continue
        if not isinstance(child, Tag):
            continue
        tag = child.name.lower()
        _count_text(
            child,
            in_list or tag in LIST_TAGS,
            ignore_text or tag in HEADING_TAGS,
            counts,
        )


def html_looks_like_checklist(content: str) -> bool:
    """Guess whether a note body is mostly a list.

    Text inside headings is ignored. The body counts as a checklist when it
    has list text and at least twice as many list text nodes as other text
    nodes.
    """
    soup = BeautifulSoup(_normalize(content), "html.parser")
    counts = {"list": 0, "other": 0}
    _count_text(soup.body or soup, False, False, counts)
    if counts["list"] == 0:
        return False
    if counts["other"] == 0:
        return True
    return counts["list"] >= counts["other"] * 2


def append_checklist_item_html(content: str, item: str) -> str | None:
    """Add an <li> to the last list in the body, or return None if there is no list."""
    soup = BeautifulSoup(_normalize(content), "html.parser")
    root = soup.body or soup
    lists = root.find_all("ul")
    if not lists:
        return None
    li = soup.new_tag("li")
    li.string = item
    lists[-1].append(li)
    return root.decode_contents()
