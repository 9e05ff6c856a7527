"""Markdown helpers: headings, section anchors, content blocks."""

import re
from dataclasses import dataclass
from typing import Iterable, Optional

HEADING_RE = re.compile(r'^(#{1,6})\s+(.*?)\s*#*\s*$')
LIST_ITEM_RE = re.compile(r'^\s*(?:[-*+]|\d+[.)])\s+')
FENCE_RE = re.compile(r'^\s*(```|~~~)')


@dataclass
class Section:
    """A heading and the text under it (up to the next heading of equal or higher level)."""
    anchor: Optional[str]
    title: str
    level: int
    body: str


@dataclass
class Block:
    """A paragraph, list item or code block, with the sub-heading it sits under."""
    text: str
    heading: str = ""


def slugify(title: str) -> str:
    """Heading text -> anchor: 'Player Controller (v2)' -> 'player-controller-v2'."""
    slug = re.sub(r'[^a-z0-9]+', '-', title.lower())
    return slug.strip('-')


def split_sections(text: str, level: int = 2) -> list[Section]:
    """Split a document into sections at headings of the given level.

    Deeper headings stay inside their parent section. Text before the first
    heading at that level (the preamble under the document title) is a
    section with anchor None, kept only when it has content or when the
    document has no other sections. A higher-level heading after the first
    section starts a section of its own. Repeated anchors get -1, -2, ...
    suffixes the way GitHub numbers them.
    """
    sections: list[Section] = []
    preamble = Section(anchor=None, title="", level=level, body="")
    current = preamble
    buf: list[str] = []
    seen: dict[str, int] = {}
    in_fence = False

    def flush():
        current.body = "\n".join(buf).strip()
        if current is not preamble or current.body:
            sections.append(current)

    def unique(anchor: str) -> str:
        count = seen.get(anchor, 0)
        seen[anchor] = count + 1
        return f"{anchor}-{count}" if count else anchor

    for line in text.splitlines():
        if FENCE_RE.match(line):
            in_fence = not in_fence
        match = None if in_fence else HEADING_RE.match(line)
        if match and len(match.group(1)) <= level:
            heading_level = len(match.group(1))
            if heading_level < level and current is preamble:
                # Document title
                continue
            flush()
            title = match.group(2).strip()
            current = Section(anchor=unique(slugify(title)), title=title, level=heading_level, body="")
            buf = []
            continue
        buf.append(line)
    flush()

    if not sections:
        return [preamble]
    return sections


def document_title(text: str) -> str:
    """Return the first level-1 heading, or '' if there is none."""
    for line in text.splitlines():
        match = HEADING_RE.match(line)
        if match and len(match.group(1)) == 1:
            return match.group(2).strip()
    return ""


def split_blocks(text: str) -> list[Block]:
    """Split section text into blocks.

    Paragraphs are separated by blank lines, every list item is its own
    block (continuation lines stay attached), fenced code is one block.
    Heading lines are not blocks; they become the `heading` of the blocks
    below them.
    """
    blocks: list[Block] = []
    heading = ""
    buf: list[str] = []
    in_fence = False

    def flush():
        content = "\n".join(buf).strip()
        if content:
            blocks.append(Block(text=content, heading=heading))
        buf.clear()

    for line in text.splitlines():
        if in_fence:
            buf.append(line)
            if FENCE_RE.match(line):
                in_fence = False
                flush()
            continue
        if FENCE_RE.match(line):
            flush()
            buf.append(line)
            in_fence = True
            continue
        match = HEADING_RE.match(line)
        if match:
            flush()
            heading = match.group(2).strip()
            continue
        if not line.strip():
            flush()
            continue
        if LIST_ITEM_RE.match(line) and buf:
            flush()
        buf.append(line.rstrip())
    flush()
    return blocks


def list_items(text: str) -> list[str]:
    """Return top-level list item texts (markers stripped, continuations joined)."""
    items: list[str] = []
    for line in text.splitlines():
        if not line.strip():
            continue
        if LIST_ITEM_RE.match(line) and not line.startswith(("  ", "\t")):
            items.append(LIST_ITEM_RE.sub("", line, count=1).strip())
        elif items and line.startswith((" ", "\t")):
            items[-1] = f"{items[-1]} {line.strip()}"
    return items


def term_pattern(terms: Iterable[str]) -> Optional[re.Pattern]:
    """Case-insensitive, word-bounded alternation of terms (longest first)."""
    unique = sorted({t.strip() for t in terms if t.strip()}, key=lambda t: (-len(t), t.lower()))
    if not unique:
        return None
    alternation = "|".join(re.escape(t) for t in unique)
    return re.compile(r'(?<![\w.])(?:' + alternation + r')(?!\w)', re.IGNORECASE)
