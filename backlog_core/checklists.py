"""Ordered checklists (Acceptance Criteria, Definition of Done) inside a task body.

Stable format::

    ## Acceptance Criteria
    <!-- AC:BEGIN -->
    - [ ] #1 First criterion
    - [x] #2 Second criterion
    <!-- AC:END -->

Legacy checklists have no markers and no ``#N`` indices; they are read in
document order and upgraded to the stable format on the first write.
Indices are positions: every mutation renumbers the list to ``1..N``.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Sequence, Tuple

from .markdown_blocks import (
    BlockKind,
    blocks_for,
    find_block,
    normalize_line_endings,
    remove_spans,
    restore_line_endings,
    scan_blocks,
)
from .models import ChecklistItem
from .section_titles import ChecklistKind

logger = logging.getLogger("backlog.checklists")

_ITEM_PATTERN = re.compile(r"^- \[(?P<mark>[ x])\] (?:#(?P<index>\d+) )?(?P<text>.*)$")
_STABLE_ITEM_PATTERN = re.compile(r"^- \[(?P<mark>[ x])\] #(?P<index>\d+) (?P<text>.+)$")


class ChecklistItemNotFoundError(LookupError):
    """Raised when removing or checking an index the checklist does not have."""


def _match_row(line: str) -> Optional[re.Match[str]]:
    return _ITEM_PATTERN.match(line.strip())


def _parse_rows(body: str) -> List[Tuple[bool, str]]:
    """``(checked, text)`` for every non-empty checklist row in ``body``."""
    rows = []
    for line in body.split("\n"):
        match = _match_row(line)
        if match and match.group("text"):
            rows.append((match.group("mark") == "x", match.group("text")))
    return rows


def _format_row(item: ChecklistItem, number: int) -> str:
    return f"- [{'x' if item.checked else ' '}] #{number} {item.text}"


def _trim_blank_edges(lines: List[str]) -> List[str]:
    start = 0
    end = len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]


def compose_checklist_body(items: Sequence[ChecklistItem], existing_body: Optional[str] = None) -> str:
    """Rewrite the rows of ``existing_body`` in place from ``items``.

    Each existing checklist row takes the next item (renumbered); other lines
    pass through untouched. Leftover items are appended, leftover rows are
    dropped.
    """
    queue = sorted(items, key=lambda item: item.index)
    if not queue:
        return ""

    source_lines: List[str] = []
    if existing_body:
        source_lines = _trim_blank_edges(existing_body.replace("\r\n", "\n").split("\n"))

    lines: List[str] = []
    number = 1
    for line in source_lines:
        if _match_row(line) is None:
            lines.append(line)
            continue
        if not queue:
            continue
        lines.append(_format_row(queue.pop(0), number))
        number += 1

    for item in queue:
        if lines and lines[-1].strip() and _match_row(lines[-1]) is None:
            lines.append("")
        lines.append(_format_row(item, number))
        number += 1

    return "\n".join(_trim_blank_edges(lines))


class ChecklistEditor:
    """Parse and rewrite one kind of checklist within task bodies."""

    def __init__(self, kind: ChecklistKind):
        self.kind = kind

    def __repr__(self) -> str:
        return f"ChecklistEditor({self.kind.name})"

    @property
    def begin_marker(self) -> str:
        return self.kind.begin_marker

    @property
    def end_marker(self) -> str:
        return self.kind.end_marker

    @property
    def section_header(self) -> str:
        return self.kind.heading

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def parse_checklist(self, content: str) -> List[ChecklistItem]:
        """Items of the first block: stable indices from a sentinel block, else 1..N."""
        text, _ = normalize_line_endings(content)
        block = find_block(text, self.kind)
        if block is None:
            return []

        if block.is_sentinel:
            items = []
            for line in block.body.split("\n"):
                match = _STABLE_ITEM_PATTERN.match(line.strip())
                if match:
                    items.append(ChecklistItem(
                        index=int(match.group("index")),
                        text=match.group("text"),
                        checked=match.group("mark") == "x",
                    ))
            return items

        return [
            ChecklistItem(index=position, text=item_text, checked=checked)
            for position, (checked, item_text) in enumerate(_parse_rows(block.body), start=1)
        ]

    def parse_all_criteria(self, content: str) -> List[ChecklistItem]:
        """Items from every block of this kind, in document order, numbered 1..N."""
        text, _ = normalize_line_endings(content)
        rows: List[Tuple[bool, str]] = []
        for block in blocks_for(scan_blocks(text), self.kind):
            body = block.body
            if block.kind is BlockKind.LEGACY and self.begin_marker in body and self.end_marker in body:
                # markers separated from the heading by prose: only the marked rows count
                body = "\n".join(self._marked_regions(body))
            rows.extend(_parse_rows(body))
        return [
            ChecklistItem(index=position, text=item_text, checked=checked)
            for position, (checked, item_text) in enumerate(rows, start=1)
        ]

    def has_markers(self, content: str) -> bool:
        return self.begin_marker in content and self.end_marker in content

    def _marked_regions(self, body: str) -> List[str]:
        pattern = re.compile(
            f"{re.escape(self.begin_marker)}(.*?){re.escape(self.end_marker)}",
            re.DOTALL,
        )
        return [match.group(1) for match in pattern.finditer(body)]

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def format_section(self, items: Sequence[ChecklistItem], existing_body: Optional[str] = None) -> str:
        """Full heading + markers + rows block, or "" for an empty list."""
        if not items:
            return ""
        body = compose_checklist_body(items, existing_body)
        lines = [self.section_header, self.begin_marker]
        if body.strip():
            lines.extend(body.split("\n"))
        lines.append(self.end_marker)
        return "\n".join(lines)

    def update_content(self, content: str, items: Sequence[ChecklistItem]) -> str:
        """Replace every block of this kind with one block holding ``items``.

        The new block goes where the first old block was, or at the end when
        there was none. An empty ``items`` removes the checklist entirely.
        """
        text, use_crlf = normalize_line_endings(content)
        owned = blocks_for(scan_blocks(text), self.kind)

        existing = next((block for block in owned if block.is_sentinel), owned[0] if owned else None)
        new_section = self.format_section(items, existing.body if existing else None)

        spans = [(block.start, block.end) for block in owned]
        spans.extend(self._stray_marker_spans(text, spans))
        insertion_index: Optional[int] = None
        if owned:
            first_start = owned[0].start
            insertion_index = first_start - sum(end - start for start, end in spans if end <= first_start)
        stripped = remove_spans(text, spans)

        if not new_section:
            return restore_line_endings(stripped.rstrip(), use_crlf)

        if insertion_index is not None:
            before = stripped[:insertion_index].rstrip()
            after = stripped[insertion_index:].strip()
        else:
            before = stripped.rstrip()
            after = ""

        output = "\n\n".join(part for part in (before, new_section, after) if part)
        return restore_line_endings(output, use_crlf)

    def _stray_marker_spans(self, text: str, block_spans: List[Tuple[int, int]]) -> List[Tuple[int, int]]:
        """BEGIN..END marker pairs that sit outside any headed block."""
        pattern = re.compile(
            f"{re.escape(self.begin_marker)}.*?{re.escape(self.end_marker)}",
            re.DOTALL,
        )
        stray = []
        for match in pattern.finditer(text):
            start, end = match.span()
            if any(start < block_end and block_start < end for block_start, block_end in block_spans):
                continue
            stray.append((start, end))
        return stray

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_criteria(self, content: str, texts: Iterable[str]) -> str:
        """Append unchecked items; blank texts are ignored."""
        items = self.parse_all_criteria(content)
        for text in texts:
            cleaned = (text or "").strip()
            if not cleaned:
                continue
            items.append(ChecklistItem(index=len(items) + 1, text=cleaned, checked=False))
        return self.update_content(content, items)

    def remove_criterion_by_index(self, content: str, index: int) -> str:
        items = self.parse_all_criteria(content)
        remaining = [item for item in items if item.index != index]
        if len(remaining) == len(items):
            raise ChecklistItemNotFoundError(f"{self.kind.item_label} #{index} not found")
        renumbered = [
            ChecklistItem(index=position, text=item.text, checked=item.checked)
            for position, item in enumerate(remaining, start=1)
        ]
        logger.debug(f"Removed {self.kind.item_label} #{index}")
        return self.update_content(content, renumbered)

    def check_criterion_by_index(self, content: str, index: int, checked: bool = True) -> str:
        items = self.parse_all_criteria(content)
        for item in items:
            if item.index == index:
                item.checked = checked
                break
        else:
            raise ChecklistItemNotFoundError(f"{self.kind.item_label} #{index} not found")
        return self.update_content(content, items)

    def migrate_to_stable_format(self, content: str) -> str:
        """Install markers and indices on a legacy-only checklist; no-op otherwise."""
        items = self.parse_all_criteria(content)
        if not items or self.has_markers(content):
            return content
        logger.debug(f"Migrating legacy {self.kind.title} to stable format")
        return self.update_content(content, items)


acceptance_criteria = ChecklistEditor(ChecklistKind.ACCEPTANCE_CRITERIA)
definition_of_done = ChecklistEditor(ChecklistKind.DEFINITION_OF_DONE)


def editor_for(kind: ChecklistKind) -> ChecklistEditor:
    if kind is ChecklistKind.ACCEPTANCE_CRITERIA:
        return acceptance_criteria
    return definition_of_done
