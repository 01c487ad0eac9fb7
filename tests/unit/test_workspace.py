"""Unit tests for backlog workspace management.

This module tests directory setup, ID allocation, task creation, lookup,
and edit-and-save against a temporary project root.
"""

import pytest
from pathlib import Path

from backlog_core.checklists import ChecklistItemNotFoundError
from backlog_core.models import (
    AddChecklistItems,
    AppendSection,
    BacklogConfig,
    CheckChecklistItem,
    RemoveChecklistItem,
    SetSections,
)
from backlog_core.section_titles import ChecklistKind, StructuredSection
from backlog_core.workspace import Workspace, sanitize_title


@pytest.fixture
def workspace(tmp_path):
    """Initialized workspace with default configuration."""
    ws = Workspace(tmp_path, BacklogConfig())
    ws.initialize()
    return ws


def _write_task(directory: Path, task_id: str, title: str = "Existing") -> Path:
    path = directory / f"{task_id.lower()} - {title}.md"
    path.write_text(f"---\nid: {task_id}\ntitle: {title}\n---\n\nBody\n", encoding="utf-8")
    return path


class TestWorkspaceSetup:
    """Test cases for workspace directories and configuration."""

    def test_workspace_creation(self, tmp_path):
        """Test directory layout without touching the disk."""
        workspace = Workspace(tmp_path, BacklogConfig())

        assert workspace.root == tmp_path.resolve()
        assert workspace.base_dir == tmp_path.resolve() / "backlog"
        assert workspace.tasks_dir == workspace.base_dir / "tasks"
        assert workspace.archive_dir == workspace.base_dir / "archive" / "tasks"
        assert not workspace.base_dir.exists()

    def test_initialize(self, workspace):
        """Test initialize creates every directory."""
        for directory in (workspace.tasks_dir, workspace.drafts_dir, workspace.completed_dir, workspace.archive_dir):
            assert directory.is_dir()

    def test_custom_backlog_dir_from_env(self, tmp_path, monkeypatch):
        """Test the backlog directory name comes from the environment."""
        monkeypatch.setenv("BACKLOG_DIR", ".backlog")
        workspace = Workspace(tmp_path)
        assert workspace.base_dir == tmp_path.resolve() / ".backlog"

    def test_invalid_config(self, tmp_path):
        """Test invalid configuration is rejected up front."""
        with pytest.raises(ValueError, match="Invalid backlog configuration"):
            Workspace(tmp_path, BacklogConfig(task_prefix="task1"))

    def test_missing_backlog(self, tmp_path):
        """Test operations on an uninitialized workspace fail clearly."""
        workspace = Workspace(tmp_path, BacklogConfig())
        with pytest.raises(FileNotFoundError, match="No backlog found"):
            workspace.list_tasks()
        with pytest.raises(FileNotFoundError):
            workspace.create_task("Anything")


class TestTaskIds:
    """Test cases for ID allocation."""

    def test_first_id(self, workspace):
        """Test an empty backlog starts at 1."""
        assert workspace.next_task_id() == "TASK-1"

    def test_active_and_completed_ids_are_taken(self, workspace):
        """Test completed tasks keep their IDs and archived ones do not."""
        _write_task(workspace.tasks_dir, "task-2")
        _write_task(workspace.completed_dir, "task-5")
        _write_task(workspace.archive_dir, "task-9")

        assert workspace.task_ids() == ["TASK-2", "TASK-5"]
        assert workspace.task_ids(include_completed=False) == ["TASK-2"]
        assert workspace.next_task_id() == "TASK-6"

    def test_malformed_filenames_reserve_no_ids(self, workspace):
        """Test a file like 'task-12a' does not take ID 12."""
        _write_task(workspace.tasks_dir, "task-12a")

        assert workspace.task_ids() == []
        assert workspace.next_task_id() == "TASK-1"

    def test_subtask_ids(self, workspace):
        """Test the next child ID under a parent."""
        _write_task(workspace.tasks_dir, "task-3")
        _write_task(workspace.tasks_dir, "task-3.1")

        assert workspace.next_task_id() == "TASK-4"
        assert workspace.next_subtask_id("3") == "TASK-3.2"

    def test_zero_padding(self, tmp_path):
        """Test padded IDs when configured."""
        workspace = Workspace(tmp_path, BacklogConfig(zero_padding=3))
        workspace.initialize()
        assert workspace.next_task_id() == "TASK-001"


class TestCreateTask:
    """Test cases for create_task."""

    def test_create_writes_file(self, workspace):
        """Test the file name, frontmatter, and body of a new task."""
        task = workspace.create_task(
            "First task",
            description="Describe it",
            acceptance_criteria_texts=["Works", " ", "Tested"],
            implementation_plan="1. Build",
        )

        assert task.id == "TASK-1"
        assert task.path == workspace.tasks_dir / "task-1 - First task.md"
        text = task.path.read_text(encoding="utf-8")
        assert text.startswith('---\nid: TASK-1\ntitle: "First task"\nstatus: "To Do"\n')
        assert "<!-- SECTION:DESCRIPTION:BEGIN -->\nDescribe it\n<!-- SECTION:DESCRIPTION:END -->" in text
        assert "- [ ] #1 Works\n- [ ] #2 Tested" in text
        assert text.index("## Acceptance Criteria") < text.index("## Implementation Plan")
        assert [item.text for item in task.acceptance_criteria_items] == ["Works", "Tested"]

    def test_ids_increment(self, workspace):
        """Test each new task takes the next ID."""
        workspace.create_task("One")
        second = workspace.create_task("Two")
        assert second.id == "TASK-2"

    def test_subtask(self, workspace):
        """Test creating a subtask under a loosely typed parent ID."""
        workspace.create_task("Parent")
        child = workspace.create_task("Child", parent_id="01")

        assert child.id == "TASK-1.1"
        assert "parent_task_id: TASK-1" in child.frontmatter
        assert child.path.name == "task-1.1 - Child.md"

    def test_missing_parent(self, workspace):
        """Test a subtask of an unknown parent is rejected."""
        with pytest.raises(ValueError, match="not found"):
            workspace.create_task("Orphan", parent_id="42")

    def test_empty_title(self, workspace):
        """Test blank titles are rejected."""
        with pytest.raises(ValueError, match="cannot be empty"):
            workspace.create_task("   ")

    def test_custom_prefix(self, tmp_path, monkeypatch):
        """Test tasks use the configured prefix."""
        monkeypatch.setenv("BACKLOG_TASK_PREFIX", "proj")
        workspace = Workspace(tmp_path)
        workspace.initialize()
        task = workspace.create_task("Custom")

        assert task.id == "PROJ-1"
        assert task.path.name == "proj-1 - Custom.md"
        assert workspace.load_task("1").id == "PROJ-1"

    def test_sanitize_title(self):
        """Test unsafe filename characters are dropped."""
        assert sanitize_title('Fix: "login" / logout?  now') == "Fix login logout now"


class TestLoadAndList:
    """Test cases for load_task and list_tasks."""

    def test_load_by_loose_id(self, workspace):
        """Test every accepted spelling loads the same task."""
        workspace.create_task("Lookup")
        for typed in ("1", "task-1", "TASK-01", "0001"):
            assert workspace.load_task(typed).title == "Lookup"

    def test_load_missing(self, workspace):
        """Test unknown IDs raise."""
        with pytest.raises(ValueError, match="Task '7' not found"):
            workspace.load_task("7")

    def test_list_sorted_numerically(self, workspace):
        """Test tasks are ordered by ID, not filename."""
        for task_id in ("task-10", "task-2", "task-2.1"):
            _write_task(workspace.tasks_dir, task_id)
        (workspace.tasks_dir / "task-x - Broken.md").write_text("---\nid: broken\n---\n", encoding="utf-8")

        assert [task.id for task in workspace.list_tasks()] == ["task-2", "task-2.1", "task-10"]


class TestEditTask:
    """Test cases for edit_task."""

    def test_edit_sections_and_checklist(self, workspace):
        """Test a combined edit is written to disk."""
        workspace.create_task("Edit me", acceptance_criteria_texts=["First", "Second", "Third"])
        updated = workspace.edit_task("1", [
            SetSections(implementation_notes="Started"),
            AppendSection(StructuredSection.IMPLEMENTATION_NOTES, "Continued"),
            CheckChecklistItem(ChecklistKind.ACCEPTANCE_CRITERIA, 1),
            RemoveChecklistItem(ChecklistKind.ACCEPTANCE_CRITERIA, 2),
            AddChecklistItems(ChecklistKind.DEFINITION_OF_DONE, ("Reviewed",)),
        ])

        reloaded = workspace.load_task("TASK-1")
        assert reloaded.implementation_notes == "Started\n\nContinued"
        assert [(item.index, item.text, item.checked) for item in reloaded.acceptance_criteria_items] == [
            (1, "First", True),
            (2, "Third", False),
        ]
        assert [item.text for item in reloaded.definition_of_done_items] == ["Reviewed"]
        assert updated.raw_content.strip() == reloaded.raw_content.strip()

    def test_failed_edit_leaves_file_untouched(self, workspace):
        """Test nothing is written when an edit fails."""
        task = workspace.create_task("Stable", acceptance_criteria_texts=["Only"])
        before = task.path.read_text(encoding="utf-8")

        with pytest.raises(ChecklistItemNotFoundError, match="Acceptance criterion #3 not found"):
            workspace.edit_task("1", [SetSections(description="Changed"), RemoveChecklistItem(ChecklistKind.ACCEPTANCE_CRITERIA, 3)])

        assert task.path.read_text(encoding="utf-8") == before

    def test_legacy_file_migrated_on_edit(self, workspace):
        """Test a hand-written legacy task is upgraded by any edit."""
        path = workspace.tasks_dir / "task-4 - Legacy.md"
        path.write_text(
            "---\nid: task-4\ntitle: Legacy\n---\n\n## Description\nOld text\n\n"
            "## Acceptance Criteria\n- [ ] Old one\n- [x] Old two\n",
            encoding="utf-8",
        )

        workspace.edit_task("4", [CheckChecklistItem(ChecklistKind.ACCEPTANCE_CRITERIA, 1)])

        text = path.read_text(encoding="utf-8")
        assert "<!-- AC:BEGIN -->\n- [x] #1 Old one\n- [x] #2 Old two\n<!-- AC:END -->" in text
        assert "## Description\nOld text" in text

    def test_task_summary(self, workspace):
        """Test the summary view used by the tools."""
        task = workspace.create_task("Summary")
        summary = workspace.task_summary(task)

        assert summary["id"] == "TASK-1"
        assert summary["id_body"] == "1"
        assert summary["relative_path"] == str(Path("backlog") / "tasks" / "task-1 - Summary.md")
