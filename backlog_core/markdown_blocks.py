"""Line scanner that splits a task body into owned blocks and free text.

A block starts at a ``## <title>`` heading whose title belongs to a
structured section or a checklist (see ``section_titles``) and is one of:

* ``SENTINEL``: the heading, optional blank lines, the owner's BEGIN marker,
  any lines, then the owner's END marker on its own line. Headings between
  the markers are content, not structure.
* ``LEGACY``: the heading followed by everything up to the next known
  heading or the end of the document, trailing newlines excluded.

Everything that is not inside a block is free text and is never touched.
Offsets refer to the LF-normalized text passed in.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from .section_titles import HeadingOwner, owner_for_title

_HEADING_PATTERN = re.compile(r"^##[ \t]+(?P<title>.*?)[ \t]*$")


class BlockKind(Enum):
    SENTINEL = "sentinel"
    LEGACY = "legacy"


@dataclass(frozen=True, slots=True)
class MarkdownBlock:
    """One owned region of a task body."""

    owner: HeadingOwner
    kind: BlockKind
    start: int
    end: int
    body: str

    @property
    def is_sentinel(self) -> bool:
        return self.kind is BlockKind.SENTINEL


def normalize_line_endings(content: str) -> Tuple[str, bool]:
    """Return LF-only text and whether the input used CRLF."""
    use_crlf = "\r\n" in content
    return content.replace("\r\n", "\n"), use_crlf


def restore_line_endings(text: str, use_crlf: bool) -> str:
    return text.replace("\n", "\r\n") if use_crlf else text


def heading_owner(line: str) -> Optional[HeadingOwner]:
    match = _HEADING_PATTERN.match(line)
    if not match:
        return None
    return owner_for_title(match.group("title"))


def _line_spans(text: str) -> List[Tuple[int, str]]:
    spans = []
    offset = 0
    for line in text.split("\n"):
        spans.append((offset, line))
        offset += len(line) + 1
    return spans


def scan_blocks(text: str) -> List[MarkdownBlock]:
    """Tokenize LF-normalized ``text`` into owned blocks, in document order."""
    spans = _line_spans(text)
    total = len(spans)
    blocks: List[MarkdownBlock] = []
    i = 0

    while i < total:
        start, line = spans[i]
        owner = heading_owner(line)
        if owner is None:
            i += 1
            continue

        sentinel = _match_sentinel(spans, i, owner)
        if sentinel is not None:
            begin_line, end_line = sentinel
            body_start = spans[begin_line + 1][0]
            end_offset, end_text = spans[end_line]
            blocks.append(MarkdownBlock(
                owner=owner,
                kind=BlockKind.SENTINEL,
                start=start,
                end=end_offset + len(end_text),
                body=text[body_start:end_offset],
            ))
            i = end_line + 1
            continue

        j = i + 1
        while j < total and heading_owner(spans[j][1]) is None:
            j += 1
        body_start = min(start + len(line) + 1, len(text))
        region_end = spans[j][0] if j < total else len(text)
        body = text[body_start:region_end].rstrip("\n")
        blocks.append(MarkdownBlock(
            owner=owner,
            kind=BlockKind.LEGACY,
            start=start,
            end=body_start + len(body) if body else start + len(line),
            body=body,
        ))
        i = j

    return blocks


def _match_sentinel(spans: List[Tuple[int, str]], heading_line: int, owner: HeadingOwner) -> Optional[Tuple[int, int]]:
    """Line numbers of the BEGIN and END markers following a heading, if both exist."""
    total = len(spans)
    begin_line = heading_line + 1
    while begin_line < total and not spans[begin_line][1].strip():
        begin_line += 1
    if begin_line >= total or spans[begin_line][1].strip() != owner.begin_marker:
        return None

    end_line = begin_line + 1
    while end_line < total and spans[end_line][1].strip() != owner.end_marker:
        end_line += 1
    if end_line >= total:
        return None
    return begin_line, end_line


def blocks_for(blocks: List[MarkdownBlock], owner: HeadingOwner) -> List[MarkdownBlock]:
    return [block for block in blocks if block.owner is owner]


def find_block(text: str, owner: HeadingOwner) -> Optional[MarkdownBlock]:
    """First sentinel block for ``owner``, else its first legacy block."""
    owned = blocks_for(scan_blocks(text), owner)
    for block in owned:
        if block.is_sentinel:
            return block
    return owned[0] if owned else None


def remove_spans(text: str, spans: List[Tuple[int, int]]) -> str:
    """Cut the given ``(start, end)`` ranges out of ``text``; ranges must not overlap."""
    pieces = []
    cursor = 0
    for start, end in sorted(spans):
        pieces.append(text[cursor:start])
        cursor = max(cursor, end)
    pieces.append(text[cursor:])
    return "".join(pieces)
