"""Backlog core: task IDs, task file lookup, and structured task bodies."""

from .checklists import (
    ChecklistEditor,
    ChecklistItemNotFoundError,
    acceptance_criteria,
    compose_checklist_body,
    definition_of_done,
)
from .ids import (
    compare_task_ids,
    extract_id_body,
    extract_id_numbers,
    generate_next_id,
    generate_next_subtask_id,
    has_any_prefix,
    has_prefix,
    ids_equal,
    normalize_id,
    strip_any_prefix,
    task_ids_equal,
)
from .models import (
    AddChecklistItems,
    AppendSection,
    BacklogConfig,
    CheckChecklistItem,
    ChecklistItem,
    RemoveChecklistItem,
    SetSections,
    Task,
)
from .section_titles import ChecklistKind, StructuredSection
from .structured_sections import (
    extract_structured_section,
    get_structured_sections,
    update_structured_sections,
)
from .task_edits import apply_edits
from .task_path import get_draft_path, get_task_filename, get_task_path, task_file_exists
from .workspace import Workspace

__all__ = [
    "AddChecklistItems",
    "AppendSection",
    "BacklogConfig",
    "CheckChecklistItem",
    "ChecklistEditor",
    "ChecklistItem",
    "ChecklistItemNotFoundError",
    "ChecklistKind",
    "RemoveChecklistItem",
    "SetSections",
    "StructuredSection",
    "Task",
    "Workspace",
    "acceptance_criteria",
    "apply_edits",
    "compare_task_ids",
    "compose_checklist_body",
    "definition_of_done",
    "extract_id_body",
    "extract_id_numbers",
    "extract_structured_section",
    "generate_next_id",
    "generate_next_subtask_id",
    "get_draft_path",
    "get_structured_sections",
    "get_task_filename",
    "get_task_path",
    "has_any_prefix",
    "has_prefix",
    "ids_equal",
    "normalize_id",
    "strip_any_prefix",
    "task_file_exists",
    "task_ids_equal",
    "update_structured_sections",
]
