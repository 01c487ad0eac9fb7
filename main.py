"""MCP server exposing backlog task tools."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from backlog_core import (
    AddChecklistItems,
    AppendSection,
    BacklogConfig,
    CheckChecklistItem,
    ChecklistKind,
    RemoveChecklistItem,
    SetSections,
    StructuredSection,
    Workspace,
)
from backlog_core.backlog_logging import setup_logging

mcp = FastMCP("backlog")

PROJECT_ROOT_ENV = "BACKLOG_PROJECT_ROOT"


def _candidate_bases() -> List[Path]:
    cwd = Path.cwd().resolve()
    bases: List[Path] = [cwd]
    bases.extend(cwd.parents)
    seen: set[Path] = set()
    ordered: List[Path] = []
    for base in bases:
        if base not in seen:
            seen.add(base)
            ordered.append(base)
    return ordered


def _locate_workspace_root(backlog_dir: str) -> Optional[Path]:
    for base in _candidate_bases():
        if (base / backlog_dir / "tasks").is_dir():
            return base
    return None


def _resolve_root(root: Optional[str], config: BacklogConfig) -> Path:
    if root:
        resolved = Path(root).expanduser().resolve()
        if not resolved.exists():
            raise ValueError(f"Provided root '{root}' does not exist.")
        return resolved

    env_root = os.getenv(PROJECT_ROOT_ENV)
    if env_root:
        env_path = Path(env_root).expanduser().resolve()
        if not env_path.exists():
            raise ValueError(
                f"Environment variable {PROJECT_ROOT_ENV} points to '{env_root}', which does not exist."
            )
        return env_path

    detected_root = _locate_workspace_root(config.backlog_dir)
    if detected_root:
        return detected_root

    raise ValueError(
        "Unable to determine project root automatically. Provide the 'root' argument when calling the tool "
        f"or set the {PROJECT_ROOT_ENV} environment variable."
    )


def _workspace(root: Optional[str]) -> Workspace:
    config = BacklogConfig.from_env()
    return Workspace(_resolve_root(root, config), config)


@mcp.tool()
def task_create(
    title: str,
    description: Optional[str] = None,
    acceptance_criteria: Optional[List[str]] = None,
    definition_of_done: Optional[List[str]] = None,
    implementation_plan: Optional[str] = None,
    parent_task_id: Optional[str] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Create a task file. Pass parent_task_id to create a subtask (e.g. TASK-5.1)."""

    workspace = _workspace(root)
    task = workspace.create_task(
        title,
        description=description,
        acceptance_criteria_texts=acceptance_criteria or [],
        definition_of_done_texts=definition_of_done or [],
        implementation_plan=implementation_plan,
        parent_id=parent_task_id,
    )
    return workspace.task_summary(task)


@mcp.tool()
def task_view(task_id: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Return a task's structured sections and checklists. Accepts 5, task-5, TASK-005."""

    workspace = _workspace(root)
    return workspace.task_summary(workspace.load_task(task_id))


@mcp.tool()
def task_list(root: Optional[str] = None) -> Dict[str, Any]:
    """List active tasks ordered by ID."""

    workspace = _workspace(root)
    tasks = workspace.list_tasks()
    return {
        "tasks": [
            {
                "id": task.id,
                "title": task.title,
                "acceptance_criteria_done": sum(1 for item in task.acceptance_criteria_items if item.checked),
                "acceptance_criteria_total": len(task.acceptance_criteria_items),
            }
            for task in tasks
        ],
    }


@mcp.tool()
def task_edit(
    task_id: str,
    description: Optional[str] = None,
    implementation_plan: Optional[str] = None,
    implementation_notes: Optional[str] = None,
    final_summary: Optional[str] = None,
    append_implementation_notes: Optional[List[str]] = None,
    append_final_summary: Optional[List[str]] = None,
    add_acceptance_criteria: Optional[List[str]] = None,
    remove_acceptance_criteria: Optional[List[int]] = None,
    check_acceptance_criteria: Optional[List[int]] = None,
    uncheck_acceptance_criteria: Optional[List[int]] = None,
    add_definition_of_done: Optional[List[str]] = None,
    remove_definition_of_done: Optional[List[int]] = None,
    check_definition_of_done: Optional[List[int]] = None,
    uncheck_definition_of_done: Optional[List[int]] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Edit a task body. Sections set to "" are removed.

    Checklist indices refer to the current numbering: checks and unchecks run
    first, then removals (highest index first), then additions.
    """

    edits: List[Any] = []
    sections = SetSections(
        description=description,
        implementation_plan=implementation_plan,
        implementation_notes=implementation_notes,
        final_summary=final_summary,
    )
    if sections.changes():
        edits.append(sections)
    for text in append_implementation_notes or []:
        edits.append(AppendSection(StructuredSection.IMPLEMENTATION_NOTES, text))
    for text in append_final_summary or []:
        edits.append(AppendSection(StructuredSection.FINAL_SUMMARY, text))

    checklist_args = (
        (ChecklistKind.ACCEPTANCE_CRITERIA, add_acceptance_criteria, remove_acceptance_criteria,
         check_acceptance_criteria, uncheck_acceptance_criteria),
        (ChecklistKind.DEFINITION_OF_DONE, add_definition_of_done, remove_definition_of_done,
         check_definition_of_done, uncheck_definition_of_done),
    )
    for kind, additions, removals, checks, unchecks in checklist_args:
        for index in checks or []:
            edits.append(CheckChecklistItem(kind, index, True))
        for index in unchecks or []:
            edits.append(CheckChecklistItem(kind, index, False))
        for index in sorted(set(removals or []), reverse=True):
            edits.append(RemoveChecklistItem(kind, index))
        if additions:
            edits.append(AddChecklistItems(kind, tuple(additions)))

    workspace = _workspace(root)
    task = workspace.edit_task(task_id, edits)
    return workspace.task_summary(task)


@mcp.tool()
def next_task_id(parent_task_id: Optional[str] = None, root: Optional[str] = None) -> Dict[str, str]:
    """Preview the ID the next task_create call would assign."""

    workspace = _workspace(root)
    if parent_task_id:
        return {"id": workspace.next_subtask_id(parent_task_id)}
    return {"id": workspace.next_task_id()}


if __name__ == "__main__":
    setup_logging(os.getenv("BACKLOG_LOG_LEVEL", "INFO"))
    mcp.run(transport="stdio")
