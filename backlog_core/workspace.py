"""Workspace management for backlog task files.

This module provides the file-backed layer around the pure engines: backlog
directories, ID allocation, task creation, and edit-and-save.
"""

from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .backlog_logging import (
    log_error_with_context,
    log_operation,
    log_performance,
    log_task_created,
    log_task_edited,
)
from .checklists import acceptance_criteria, definition_of_done
from .ids import (
    build_filename_id_regex,
    extract_id_body,
    generate_next_id,
    generate_next_subtask_id,
    has_any_prefix,
    id_for_filename,
    normalize_id,
    sort_by_task_id,
)
from .models import BacklogConfig, ChecklistItem, Task, TaskEdit
from .structured_sections import update_structured_sections
from .task_edits import apply_edits
from .task_path import get_draft_path, get_task_path

logger = logging.getLogger("backlog.workspace")

_UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f#]')
_WHITESPACE_RUN = re.compile(r"\s+")


def sanitize_title(title: str) -> str:
    """Title text safe to embed in a filename."""
    cleaned = _UNSAFE_FILENAME_CHARS.sub("", title)
    return _WHITESPACE_RUN.sub(" ", cleaned).strip()


class Workspace:
    """Manage task files under ``<root>/<backlog_dir>``."""

    def __init__(self, root: Path | str, config: Optional[BacklogConfig] = None):
        """Initialize workspace with given root directory."""
        self.root = Path(root).resolve()
        self.config = config or BacklogConfig.from_env()

        issues = self.config.validate()
        if issues:
            raise ValueError(f"Invalid backlog configuration: {'; '.join(issues)}")

        self.base_dir = self.root / self.config.backlog_dir
        self.tasks_dir = self.base_dir / "tasks"
        self.drafts_dir = self.base_dir / "drafts"
        self.completed_dir = self.base_dir / "completed"
        self.archive_dir = self.base_dir / "archive" / "tasks"

    @property
    def task_prefix(self) -> str:
        return self.config.task_prefix

    def initialize(self) -> None:
        """Create the backlog directory tree."""
        try:
            for directory in (self.tasks_dir, self.drafts_dir, self.completed_dir, self.archive_dir):
                directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create backlog directories: {e}")
            raise RuntimeError(f"Could not initialize backlog at {self.base_dir}: {e}")
        logger.info(f"Backlog initialized at {self.base_dir}")

    def _require_tasks_dir(self) -> None:
        if not self.tasks_dir.is_dir():
            raise FileNotFoundError(
                f"No backlog found at {self.base_dir}. Initialize the workspace before using it."
            )

    # ------------------------------------------------------------------
    # IDs
    # ------------------------------------------------------------------

    def _ids_in(self, directory: Path) -> List[str]:
        if not directory.is_dir():
            return []
        regex = build_filename_id_regex(self.task_prefix)
        ids = []
        for path in directory.glob("*.md"):
            match = regex.match(path.name)
            if match:
                ids.append(normalize_id(match.group(1), self.task_prefix))
        return ids

    def task_ids(self, *, include_completed: bool = True) -> List[str]:
        """IDs taken by active (and completed) tasks; archived IDs are free for reuse."""
        ids = self._ids_in(self.tasks_dir)
        if include_completed:
            ids.extend(self._ids_in(self.completed_dir))
        return sort_by_task_id(ids, key=lambda value: value)

    def next_task_id(self) -> str:
        return generate_next_id(self.task_ids(), self.task_prefix, self.config.zero_padding)

    def next_subtask_id(self, parent_id: str) -> str:
        return generate_next_subtask_id(
            self.task_ids(),
            parent_id,
            self.task_prefix,
            self.config.zero_padding,
        )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_task_path(self, task_id: str) -> Optional[Path]:
        return get_task_path(task_id, self, self.task_prefix)

    def get_draft_path(self, draft_id: str) -> Optional[Path]:
        return get_draft_path(draft_id, self)

    def load_task(self, task_id: str) -> Task:
        """Load a task by any accepted spelling of its ID."""
        path = self.get_task_path(task_id)
        if path is None:
            raise ValueError(f"Task '{task_id}' not found.")
        task = Task.from_markdown(path.read_text(encoding="utf-8"), path)
        if not task.id:
            task.id = normalize_id(task_id, self.task_prefix)
        return task

    def list_tasks(self) -> List[Task]:
        """Active tasks ordered by ID; files with malformed IDs are skipped."""
        self._require_tasks_dir()
        tasks = []
        for path in self.tasks_dir.glob("*.md"):
            task = Task.from_markdown(path.read_text(encoding="utf-8"), path)
            if not has_any_prefix(task.id):
                logger.debug(f"Skipping {path.name}: malformed task id {task.id!r}")
                continue
            tasks.append(task)
        return sort_by_task_id(tasks)

    # ------------------------------------------------------------------
    # Create / edit
    # ------------------------------------------------------------------

    def _task_filename(self, task_id: str, title: str) -> str:
        return f"{id_for_filename(task_id)} - {sanitize_title(title)}.md"

    def _render_frontmatter(self, task_id: str, title: str, status: str, parent_id: Optional[str]) -> str:
        lines = [
            f"id: {task_id}",
            f"title: {json.dumps(title, ensure_ascii=False)}",
            f"status: {json.dumps(status, ensure_ascii=False)}",
            f"created_date: '{datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M')}'",
        ]
        if parent_id:
            lines.append(f"parent_task_id: {parent_id}")
        return "\n".join(lines)

    @log_performance("create_task")
    def create_task(
        self,
        title: str,
        *,
        description: Optional[str] = None,
        acceptance_criteria_texts: Sequence[str] = (),
        definition_of_done_texts: Sequence[str] = (),
        implementation_plan: Optional[str] = None,
        parent_id: Optional[str] = None,
        status: str = "To Do",
    ) -> Task:
        """Create a new task file and return the parsed task."""
        try:
            if not title or not title.strip():
                raise ValueError("Task title cannot be empty")
            if not sanitize_title(title):
                raise ValueError(f"Task title '{title}' has no characters usable in a filename")
            self._require_tasks_dir()

            with log_operation("create_task", title=title, parent_id=parent_id):
                if parent_id:
                    parent = self.load_task(parent_id)
                    parent_id = parent.id
                    task_id = self.next_subtask_id(parent_id)
                else:
                    task_id = self.next_task_id()

                # checklists first so the plan lands after Acceptance Criteria
                body = self._with_checklist("", acceptance_criteria_texts, definition_of_done_texts)
                body = update_structured_sections(body, {
                    "description": description,
                    "implementation_plan": implementation_plan,
                })

                task = Task.from_content(
                    task_id,
                    body,
                    title=title.strip(),
                    frontmatter=self._render_frontmatter(task_id, title.strip(), status, parent_id),
                    path=self.tasks_dir / self._task_filename(task_id, title),
                )
                task.path.write_text(task.to_markdown(), encoding="utf-8")

                log_task_created(task_id, task.path, parent_id=parent_id)
                logger.info(f"Created task '{task_id}' at {task.path.name}")
                return task

        except Exception as e:
            log_error_with_context(e, {
                "operation": "create_task",
                "title": title,
                "parent_id": parent_id,
            })
            raise

    def _with_checklist(self, body: str, ac_texts: Iterable[str], dod_texts: Iterable[str]) -> str:
        ac_items = [text.strip() for text in ac_texts if text and text.strip()]
        dod_items = [text.strip() for text in dod_texts if text and text.strip()]
        if ac_items:
            body = acceptance_criteria.update_content(body, [
                ChecklistItem(index=position, text=text) for position, text in enumerate(ac_items, start=1)
            ])
        if dod_items:
            body = definition_of_done.update_content(body, [
                ChecklistItem(index=position, text=text) for position, text in enumerate(dod_items, start=1)
            ])
        return body

    @log_performance("edit_task")
    def edit_task(self, task_id: str, edits: Sequence[TaskEdit]) -> Task:
        """Apply ``edits`` in order to the task body and save it.

        The file is only rewritten when every edit succeeds.
        """
        try:
            with log_operation("edit_task", task_id=task_id, edit_count=len(edits)):
                task = self.load_task(task_id)
                new_content = apply_edits(task.raw_content, edits)
                updated = task.with_content(new_content)

                if updated.to_markdown() != task.to_markdown():
                    updated.path.write_text(updated.to_markdown(), encoding="utf-8")
                    logger.info(f"Updated task '{updated.id}'")
                else:
                    logger.debug(f"Task '{updated.id}' unchanged")

                log_task_edited(updated.id, updated.path, [type(edit).__name__ for edit in edits])
                return updated

        except Exception as e:
            log_error_with_context(e, {
                "operation": "edit_task",
                "task_id": task_id,
                "edits": [type(edit).__name__ for edit in edits],
            })
            raise

    def task_summary(self, task: Task) -> Dict[str, Any]:
        """Dictionary view used by the MCP tools."""
        data = task.to_dict()
        data["id_body"] = extract_id_body(task.id, self.task_prefix)
        data["relative_path"] = os.path.relpath(task.path, self.root) if task.path else None
        return data
