"""Resolve a user-typed task or draft ID to its markdown file.

Lookup lists ``<prefix>-*.md`` once, tries an exact filename prefix match,
then a loose numeric match that ignores leading zeros per segment
(``0123`` finds ``task-123 - X.md``; ``123a`` finds nothing). Filesystem
errors are reported as "not found".
"""

from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path
from typing import Optional, Protocol, Union

from .ids import (
    DEFAULT_DRAFT_PREFIX,
    DEFAULT_TASK_PREFIX,
    build_filename_id_regex,
    build_glob_pattern,
    extract_any_prefix,
    id_for_filename,
    normalize_id,
    task_ids_equal,
)

logger = logging.getLogger("backlog.task_path")


class TasksDirectory(Protocol):
    tasks_dir: Path


class DraftsDirectory(Protocol):
    drafts_dir: Path


DirectoryContext = Union[TasksDirectory, Path, str]


def _tasks_dir(context: DirectoryContext) -> Path:
    if isinstance(context, (str, os.PathLike)):
        return Path(context)
    return Path(context.tasks_dir)


def extract_id_from_filename(filename: str, prefix: str) -> Optional[str]:
    """Canonical ID embedded at the start of ``filename``, or None."""
    match = build_filename_id_regex(prefix).match(filename)
    if not match:
        return None
    return normalize_id(f"{prefix}-{match.group(1)}", prefix)


def ids_match_loosely(input_id: str, filename: str, prefix: str) -> bool:
    candidate = extract_id_from_filename(filename, prefix)
    if candidate is None:
        return False
    return task_ids_equal(input_id, candidate, prefix)


def find_matching_filename(directory: Path, entity_id: str, prefix: str) -> Optional[str]:
    """Filename in ``directory`` for ``entity_id``; raises OSError when unreadable."""
    pattern = build_glob_pattern(prefix.lower())
    files = sorted(name for name in os.listdir(directory) if fnmatch.fnmatchcase(name, pattern))

    filename_id = id_for_filename(normalize_id(entity_id, prefix))
    for name in files:
        if name.startswith(f"{filename_id} -") or name.startswith(f"{filename_id}-"):
            return name

    for name in files:
        if ids_match_loosely(entity_id, name, prefix):
            return name
    return None


def get_task_filename(task_id: str, context: DirectoryContext, prefix: Optional[str] = None) -> Optional[str]:
    """Filename (no directory) of the task, or None.

    A prefix typed in ``task_id`` wins; bare numbers use ``prefix`` (default ``task``).
    """
    prefix = extract_any_prefix(task_id) or (prefix or DEFAULT_TASK_PREFIX).lower()
    try:
        return find_matching_filename(_tasks_dir(context), task_id, prefix)
    except (OSError, AttributeError, TypeError) as e:
        logger.debug(f"Task lookup for '{task_id}' failed: {e}")
        return None


def get_task_path(task_id: str, context: DirectoryContext, prefix: Optional[str] = None) -> Optional[Path]:
    """Full path of the task file for ``task_id``, or None when absent or unreadable."""
    filename = get_task_filename(task_id, context, prefix)
    if filename is None:
        return None
    return _tasks_dir(context) / filename


def task_file_exists(task_id: str, context: DirectoryContext, prefix: Optional[str] = None) -> bool:
    return get_task_path(task_id, context, prefix) is not None


def get_draft_path(draft_id: str, context: Union[DraftsDirectory, Path, str]) -> Optional[Path]:
    """Same lookup as ``get_task_path`` against the drafts directory and ``draft`` prefix."""
    try:
        if isinstance(context, (str, os.PathLike)):
            drafts_dir = Path(context)
        else:
            drafts_dir = Path(context.drafts_dir)
        filename = find_matching_filename(drafts_dir, draft_id, DEFAULT_DRAFT_PREFIX)
    except (OSError, AttributeError, TypeError) as e:
        logger.debug(f"Draft lookup for '{draft_id}' failed: {e}")
        return None
    if filename is None:
        return None
    return drafts_dir / filename
