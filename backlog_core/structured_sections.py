"""Read and rewrite the free-text sections of a task body.

Managed sections are written as::

    ## Implementation Plan

    <!-- SECTION:PLAN:BEGIN -->
    1. Do the thing
    <!-- SECTION:PLAN:END -->

Unmarked (legacy) sections are still read: their body runs to the next
known heading. Text outside the four sections is preserved on update.
"""

from __future__ import annotations

import re
from typing import Dict, Mapping, Optional, Union

from .markdown_blocks import (
    find_block,
    normalize_line_endings,
    remove_spans,
    restore_line_endings,
    scan_blocks,
)
from .section_titles import ChecklistKind, HeadingOwner, StructuredSection

SectionValues = Mapping[Union[StructuredSection, str], Optional[str]]

_EXCESS_NEWLINES = re.compile(r"\n{3,}")

# anchors tried in order when placing each section; None means "no anchor"
_INSERTION_ANCHORS = {
    StructuredSection.IMPLEMENTATION_PLAN: (
        ChecklistKind.ACCEPTANCE_CRITERIA,
        StructuredSection.DESCRIPTION,
    ),
    StructuredSection.IMPLEMENTATION_NOTES: (
        StructuredSection.IMPLEMENTATION_PLAN,
        ChecklistKind.ACCEPTANCE_CRITERIA,
    ),
    StructuredSection.FINAL_SUMMARY: (
        StructuredSection.IMPLEMENTATION_NOTES,
        StructuredSection.IMPLEMENTATION_PLAN,
        ChecklistKind.ACCEPTANCE_CRITERIA,
    ),
}


def _coerce_section(key: Union[StructuredSection, str]) -> StructuredSection:
    if isinstance(key, StructuredSection):
        return key
    return StructuredSection.from_key(key)


def build_section_block(section: StructuredSection, body: str) -> str:
    """Render ``body`` wrapped in the section's heading and sentinel markers."""
    normalized = body.replace("\r\n", "\n").rstrip()
    content = f"{normalized}\n" if normalized else ""
    return f"{section.heading}\n\n{section.begin_marker}\n{content}{section.end_marker}"


def extract_structured_section(content: str, section: Union[StructuredSection, str]) -> Optional[str]:
    """Trimmed body of ``section``, or None when absent or empty.

    A sentinel-wrapped block wins over a legacy one wherever it appears.
    """
    text, _ = normalize_line_endings(content)
    block = find_block(text, _coerce_section(section))
    if block is None:
        return None
    return block.body.strip() or None


def get_structured_sections(content: str) -> Dict[str, Optional[str]]:
    """All four section values keyed by their snake_case key."""
    return {section.key: extract_structured_section(content, section) for section in StructuredSection}


def strip_structured_sections(text: str) -> str:
    """Remove every sentinel and legacy instance of the four sections from LF text."""
    spans = [
        (block.start, block.end)
        for block in scan_blocks(text)
        if isinstance(block.owner, StructuredSection)
    ]
    stripped = remove_spans(text, spans)
    return _EXCESS_NEWLINES.sub("\n\n", stripped).strip()


def _insert_after(content: str, anchor: HeadingOwner, block: str) -> Optional[str]:
    found = find_block(content, anchor)
    if found is None:
        return None
    before = content[:found.end].rstrip()
    after = content[found.end:].lstrip()
    separator = "\n\n" if before else ""
    tail = f"\n\n{after}" if after else ""
    return f"{before}{separator}{block}{tail}"


def _insert_at_start(content: str, block: str) -> str:
    trimmed = content.strip()
    if not trimmed:
        return block.strip()
    return f"{block.strip()}\n\n{trimmed}"


def _append_block(content: str, block: str) -> str:
    trimmed = content.strip()
    if not trimmed:
        return block.strip()
    return f"{trimmed}\n\n{block.strip()}"


def update_structured_sections(content: str, values: SectionValues) -> str:
    """Rewrite all four sections of ``content`` from ``values``.

    Every existing instance of every section is removed first; only non-blank
    values are written back, so a missing or blank value deletes its section.
    Placement: description first; plan after Acceptance Criteria, else after
    Description, else at the start; notes after plan, else after Acceptance
    Criteria, else at the end; final summary after notes, else plan, else
    Acceptance Criteria, else at the end.
    """
    text, use_crlf = normalize_line_endings(content)
    working = strip_structured_sections(text)

    resolved = {section: "" for section in StructuredSection}
    for key, value in values.items():
        resolved[_coerce_section(key)] = (value or "").strip()

    description = resolved[StructuredSection.DESCRIPTION]
    if description:
        working = _insert_at_start(working, build_section_block(StructuredSection.DESCRIPTION, description))

    for section, anchors in _INSERTION_ANCHORS.items():
        value = resolved[section]
        if not value:
            continue
        block = build_section_block(section, value)
        for anchor in anchors:
            inserted = _insert_after(working, anchor, block)
            if inserted is not None:
                working = inserted
                break
        else:
            if section is StructuredSection.IMPLEMENTATION_PLAN:
                working = _insert_at_start(working, block)
            else:
                working = _append_block(working, block)

    output = _EXCESS_NEWLINES.sub("\n\n", working).strip()
    return restore_line_endings(output, use_crlf)


def update_structured_section(content: str, section: Union[StructuredSection, str], value: Optional[str]) -> str:
    """Set one section, keeping the other three as currently written."""
    values: Dict[Union[StructuredSection, str], Optional[str]] = dict(get_structured_sections(content))
    values[_coerce_section(section).key] = value
    return update_structured_sections(content, values)


def append_structured_section(content: str, section: Union[StructuredSection, str], text: str) -> str:
    """Append a paragraph to a section, separated from existing text by a blank line."""
    addition = (text or "").strip()
    if not addition:
        return content
    current = extract_structured_section(content, section)
    combined = f"{current}\n\n{addition}" if current else addition
    return update_structured_section(content, section, combined)
