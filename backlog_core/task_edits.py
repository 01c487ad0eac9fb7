"""Apply edit structs to a task body."""

from __future__ import annotations

from typing import Iterable

from .checklists import editor_for
from .models import (
    AddChecklistItems,
    AppendSection,
    CheckChecklistItem,
    RemoveChecklistItem,
    SetSections,
    TaskEdit,
)
from .section_titles import ChecklistKind
from .structured_sections import get_structured_sections, update_structured_sections, append_structured_section


def migrate_checklists(content: str) -> str:
    """Upgrade any legacy checklist in ``content`` to the stable marker format."""
    for kind in ChecklistKind:
        content = editor_for(kind).migrate_to_stable_format(content)
    return content


def apply_edit(content: str, edit: TaskEdit) -> str:
    """Return ``content`` with a single edit applied."""
    if isinstance(edit, SetSections):
        changes = edit.changes()
        if not changes:
            return content
        values = dict(get_structured_sections(content))
        for section, value in changes.items():
            values[section.key] = value
        return update_structured_sections(content, values)

    if isinstance(edit, AppendSection):
        return append_structured_section(content, edit.section, edit.text)

    if isinstance(edit, AddChecklistItems):
        return editor_for(edit.checklist).add_criteria(content, edit.texts)

    if isinstance(edit, RemoveChecklistItem):
        return editor_for(edit.checklist).remove_criterion_by_index(content, edit.index)

    if isinstance(edit, CheckChecklistItem):
        return editor_for(edit.checklist).check_criterion_by_index(content, edit.index, edit.checked)

    raise TypeError(f"Unsupported task edit: {type(edit).__name__}")


def apply_edits(content: str, edits: Iterable[TaskEdit]) -> str:
    """Migrate legacy checklists, then apply ``edits`` in order.

    Indices in later checklist edits refer to the numbering left by earlier ones.
    """
    content = migrate_checklists(content)
    for edit in edits:
        content = apply_edit(content, edit)
    return content
