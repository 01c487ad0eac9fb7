"""Data models for backlog task files.

This module contains the task entity parsed from a markdown file, its
checklist items, the backlog configuration, and one edit struct per kind of
body mutation.
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .section_titles import ChecklistKind, StructuredSection

_FRONTMATTER_PATTERN = re.compile(r"\A---[ \t]*\r?\n(?P<block>.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)


@dataclass(slots=True)
class ChecklistItem:
    """One row of an Acceptance Criteria or Definition of Done checklist."""

    index: int
    text: str
    checked: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "text": self.text, "checked": self.checked}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChecklistItem":
        return cls(index=int(data["index"]), text=data["text"], checked=bool(data.get("checked", False)))


@dataclass(slots=True)
class BacklogConfig:
    """Where tasks live and how their IDs look."""

    backlog_dir: str = "backlog"
    task_prefix: str = "task"
    draft_prefix: str = "draft"
    zero_padding: Optional[int] = None

    BACKLOG_DIR_ENV = "BACKLOG_DIR"
    TASK_PREFIX_ENV = "BACKLOG_TASK_PREFIX"
    ZERO_PADDING_ENV = "BACKLOG_ZERO_PADDING"

    @classmethod
    def from_env(cls, **overrides: Any) -> "BacklogConfig":
        """Build a config from ``BACKLOG_*`` environment variables; explicit overrides win."""
        values: Dict[str, Any] = {}
        backlog_dir = os.getenv(cls.BACKLOG_DIR_ENV)
        if backlog_dir:
            values["backlog_dir"] = backlog_dir
        task_prefix = os.getenv(cls.TASK_PREFIX_ENV)
        if task_prefix:
            values["task_prefix"] = task_prefix
        zero_padding = os.getenv(cls.ZERO_PADDING_ENV)
        if zero_padding:
            try:
                values["zero_padding"] = int(zero_padding)
            except ValueError:
                raise ValueError(
                    f"Environment variable {cls.ZERO_PADDING_ENV} must be an integer, got '{zero_padding}'."
                )
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    def validate(self) -> List[str]:
        """Validate the configuration and return any issues."""
        issues = []
        if not re.fullmatch(r"[A-Za-z]+", self.task_prefix or ""):
            issues.append(f"Task prefix must be letters only, got: {self.task_prefix!r}")
        if not re.fullmatch(r"[A-Za-z]+", self.draft_prefix or ""):
            issues.append(f"Draft prefix must be letters only, got: {self.draft_prefix!r}")
        if self.zero_padding is not None and self.zero_padding < 0:
            issues.append("Zero padding must not be negative")
        if not self.backlog_dir:
            issues.append("Backlog directory name is required")
        return issues


def split_frontmatter(text: str) -> Tuple[str, str]:
    """Return ``(frontmatter, body)``; frontmatter excludes the ``---`` fences."""
    match = _FRONTMATTER_PATTERN.match(text)
    if not match:
        return "", text
    return match.group("block"), text[match.end():].lstrip("\r\n")


def read_frontmatter_scalar(frontmatter: str, key: str) -> Optional[str]:
    """Value of a top-level ``key: value`` line, unquoted; None when absent."""
    match = re.search(rf"^{re.escape(key)}:[ \t]*(?P<value>.*?)[ \t]*\r?$", frontmatter, re.MULTILINE)
    if not match:
        return None
    value = match.group("value")
    if len(value) >= 2 and value[0] == value[-1] == '"':
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value[1:-1]
    if len(value) >= 2 and value[0] == value[-1] == "'":
        return value[1:-1].replace("''", "'")
    return value


@dataclass(slots=True)
class Task:
    """A task file: opaque frontmatter plus a body with derived structured fields."""

    id: str
    title: str
    raw_content: str
    frontmatter: str = ""
    path: Optional[Path] = None
    description: Optional[str] = None
    implementation_plan: Optional[str] = None
    implementation_notes: Optional[str] = None
    final_summary: Optional[str] = None
    acceptance_criteria_items: List[ChecklistItem] = field(default_factory=list)
    definition_of_done_items: List[ChecklistItem] = field(default_factory=list)

    @classmethod
    def from_content(
        cls,
        task_id: str,
        raw_content: str,
        *,
        title: str = "",
        frontmatter: str = "",
        path: Optional[Path] = None,
    ) -> "Task":
        """Build a task and derive its structured fields from ``raw_content``."""
        from .checklists import acceptance_criteria, definition_of_done
        from .structured_sections import get_structured_sections

        sections = get_structured_sections(raw_content)
        return cls(
            id=task_id,
            title=title,
            raw_content=raw_content,
            frontmatter=frontmatter,
            path=path,
            description=sections["description"],
            implementation_plan=sections["implementation_plan"],
            implementation_notes=sections["implementation_notes"],
            final_summary=sections["final_summary"],
            acceptance_criteria_items=acceptance_criteria.parse_all_criteria(raw_content),
            definition_of_done_items=definition_of_done.parse_all_criteria(raw_content),
        )

    @classmethod
    def from_markdown(cls, text: str, path: Optional[Path] = None) -> "Task":
        """Parse a full task file (frontmatter + body)."""
        frontmatter, body = split_frontmatter(text)
        task_id = read_frontmatter_scalar(frontmatter, "id") or ""
        title = read_frontmatter_scalar(frontmatter, "title") or ""
        return cls.from_content(task_id, body, title=title, frontmatter=frontmatter, path=path)

    def with_content(self, raw_content: str) -> "Task":
        """Same task with a new body and freshly derived fields."""
        return Task.from_content(
            self.id,
            raw_content,
            title=self.title,
            frontmatter=self.frontmatter,
            path=self.path,
        )

    def to_markdown(self) -> str:
        body = self.raw_content.strip()
        if not self.frontmatter:
            return f"{body}\n" if body else ""
        if not body:
            return f"---\n{self.frontmatter}\n---\n"
        return f"---\n{self.frontmatter}\n---\n\n{body}\n"

    def checklist_items(self, kind: ChecklistKind) -> List[ChecklistItem]:
        if kind is ChecklistKind.ACCEPTANCE_CRITERIA:
            return self.acceptance_criteria_items
        return self.definition_of_done_items

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "title": self.title,
            "path": str(self.path) if self.path else None,
            "description": self.description,
            "implementation_plan": self.implementation_plan,
            "implementation_notes": self.implementation_notes,
            "final_summary": self.final_summary,
            "acceptance_criteria": [item.to_dict() for item in self.acceptance_criteria_items],
            "definition_of_done": [item.to_dict() for item in self.definition_of_done_items],
            "raw_content": self.raw_content,
        }


# ----------------------------------------------------------------------
# Edit structs: one per kind of body mutation
# ----------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SetSections:
    """Replace structured sections. ``None`` leaves a section alone, ``""`` clears it."""

    description: Optional[str] = None
    implementation_plan: Optional[str] = None
    implementation_notes: Optional[str] = None
    final_summary: Optional[str] = None

    def changes(self) -> Dict[StructuredSection, str]:
        values = {
            StructuredSection.DESCRIPTION: self.description,
            StructuredSection.IMPLEMENTATION_PLAN: self.implementation_plan,
            StructuredSection.IMPLEMENTATION_NOTES: self.implementation_notes,
            StructuredSection.FINAL_SUMMARY: self.final_summary,
        }
        return {section: value for section, value in values.items() if value is not None}


@dataclass(frozen=True, slots=True)
class AppendSection:
    """Append a paragraph to one structured section."""

    section: StructuredSection
    text: str


@dataclass(frozen=True, slots=True)
class AddChecklistItems:
    checklist: ChecklistKind
    texts: Tuple[str, ...]


@dataclass(frozen=True, slots=True)
class RemoveChecklistItem:
    checklist: ChecklistKind
    index: int


@dataclass(frozen=True, slots=True)
class CheckChecklistItem:
    checklist: ChecklistKind
    index: int
    checked: bool = True


TaskEdit = Union[SetSections, AppendSection, AddChecklistItems, RemoveChecklistItem, CheckChecklistItem]
