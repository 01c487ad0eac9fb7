"""Headings the engine owns inside a task body.

Both sets are closed: a task body has exactly four free-text sections and two
checklists. Legacy title variants are accepted when reading and are replaced
by the canonical title on the next write.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional, Tuple, Union


class StructuredSection(Enum):
    """Free-text sections wrapped in ``<!-- SECTION:<ID>:BEGIN/END -->`` markers."""

    DESCRIPTION = ("description", "Description", "DESCRIPTION", ())
    IMPLEMENTATION_PLAN = (
        "implementation_plan",
        "Implementation Plan",
        "PLAN",
        ("Implementation Plan (Optional)",),
    )
    IMPLEMENTATION_NOTES = (
        "implementation_notes",
        "Implementation Notes",
        "NOTES",
        ("Implementation Notes (Optional)", "Notes", "Notes & Comments (Optional)"),
    )
    FINAL_SUMMARY = ("final_summary", "Final Summary", "FINAL_SUMMARY", ())

    def __init__(self, key: str, title: str, marker_id: str, aliases: Tuple[str, ...]):
        self.key = key
        self.title = title
        self.marker_id = marker_id
        self.aliases = aliases

    @property
    def heading(self) -> str:
        return f"## {self.title}"

    @property
    def begin_marker(self) -> str:
        return f"<!-- SECTION:{self.marker_id}:BEGIN -->"

    @property
    def end_marker(self) -> str:
        return f"<!-- SECTION:{self.marker_id}:END -->"

    @classmethod
    def from_key(cls, key: str) -> "StructuredSection":
        for section in cls:
            if section.key == key:
                return section
        raise ValueError(f"Unknown structured section: {key!r}")


class ChecklistKind(Enum):
    """Ordered checklists wrapped in ``<!-- AC:BEGIN/END -->`` style markers."""

    ACCEPTANCE_CRITERIA = (
        "acceptance_criteria",
        "Acceptance Criteria",
        "AC",
        ("Acceptance Criteria (Optional)",),
        "Acceptance criterion",
    )
    DEFINITION_OF_DONE = (
        "definition_of_done",
        "Definition of Done",
        "DOD",
        (),
        "Definition of Done item",
    )

    def __init__(self, key: str, title: str, marker_id: str, aliases: Tuple[str, ...], item_label: str):
        self.key = key
        self.title = title
        self.marker_id = marker_id
        self.aliases = aliases
        self.item_label = item_label

    @property
    def heading(self) -> str:
        return f"## {self.title}"

    @property
    def begin_marker(self) -> str:
        return f"<!-- {self.marker_id}:BEGIN -->"

    @property
    def end_marker(self) -> str:
        return f"<!-- {self.marker_id}:END -->"

    @classmethod
    def from_key(cls, key: str) -> "ChecklistKind":
        for kind in cls:
            if kind.key == key:
                return kind
        raise ValueError(f"Unknown checklist: {key!r}")


HeadingOwner = Union[StructuredSection, ChecklistKind]


def _build_heading_index() -> Dict[str, HeadingOwner]:
    index: Dict[str, HeadingOwner] = {}
    for owner in (*StructuredSection, *ChecklistKind):
        for title in (owner.title, *owner.aliases):
            index[title.lower()] = owner
    return index


_HEADING_INDEX = _build_heading_index()


def owner_for_title(title: str) -> Optional[HeadingOwner]:
    """Section or checklist owning a ``## <title>`` heading, matched case-insensitively."""
    return _HEADING_INDEX.get(title.strip().lower())


def structured_section_titles() -> Tuple[str, ...]:
    """Canonical and legacy titles of the free-text sections."""
    titles = []
    for section in StructuredSection:
        titles.append(section.title)
        titles.extend(section.aliases)
    return tuple(titles)
