"""Task identifier normalization, comparison, and generation.

Canonical IDs look like ``TASK-12`` or ``TASK-12.3`` (uppercase prefix, dot
separated numeric segments for subtasks). Filenames carry the lowercase form
(``task-12 - Title.md``). Everything here is pure string work.
"""

from __future__ import annotations

import re
from functools import cmp_to_key
from typing import Iterable, List, Optional, Sequence, TypeVar

DEFAULT_TASK_PREFIX = "task"
DEFAULT_DRAFT_PREFIX = "draft"

_ANY_PREFIX_PATTERN = re.compile(r"^([a-zA-Z]+)-")
_HAS_ANY_PREFIX_PATTERN = re.compile(r"^[a-zA-Z]+-\S")
_INTEGER_PREFIX_PATTERN = re.compile(r"^\s*[+-]?\d+")


def _prefix_pattern(prefix: str) -> re.Pattern[str]:
    return re.compile(rf"^{re.escape(prefix)}-(.+)$", re.IGNORECASE | re.DOTALL)


def _parse_int(segment: str) -> Optional[int]:
    """Leading-integer parse: ``"12a"`` gives 12, ``"abc"`` gives None."""
    match = _INTEGER_PREFIX_PATTERN.match(segment)
    if not match:
        return None
    return int(match.group(0))


def normalize_id(id: str, prefix: str) -> str:
    """Return the canonical ``PREFIX-BODY`` form of ``id``.

    >>> normalize_id("123", "task")
    'TASK-123'
    >>> normalize_id("Task-007", "task")
    'TASK-007'

    An empty input yields ``"PREFIX-"``; callers that care must check for an
    empty body themselves.
    """
    trimmed = id.strip()
    match = _prefix_pattern(prefix).match(trimmed)
    body = match.group(1) if match else trimmed
    return f"{prefix.upper()}-{body.upper()}"


def extract_id_body(id: str, prefix: str) -> str:
    """Return the part after ``prefix-``, or the trimmed input when it has no such prefix."""
    trimmed = id.strip()
    match = _prefix_pattern(prefix).match(trimmed)
    return match.group(1) if match else trimmed


def extract_id_numbers(id: str, prefix: str) -> List[int]:
    """Split the body on dots into integers; unparseable segments become 0."""
    body = extract_id_body(id, prefix)
    numbers = []
    for segment in body.split("."):
        value = _parse_int(segment)
        numbers.append(0 if value is None else value)
    return numbers or [0]


def has_prefix(id: str, prefix: str) -> bool:
    return re.match(rf"^{re.escape(prefix)}-", id.strip(), re.IGNORECASE) is not None


def has_any_prefix(id: Optional[str]) -> bool:
    """True for ``letters-dash-something`` IDs such as ``task-1`` or ``JIRA-9``."""
    if not id or not isinstance(id, str):
        return False
    return _HAS_ANY_PREFIX_PATTERN.match(id.strip()) is not None


def strip_any_prefix(id: str) -> str:
    if not id or not isinstance(id, str):
        return id
    return _ANY_PREFIX_PATTERN.sub("", id.strip(), count=1)


def extract_any_prefix(id: str) -> Optional[str]:
    """Return the letters before the first dash, lowercased, or None."""
    if not id or not isinstance(id, str):
        return None
    match = _ANY_PREFIX_PATTERN.match(id.strip())
    return match.group(1).lower() if match else None


def ids_equal(id1: str, id2: str, prefix: str) -> bool:
    """Case-insensitive equality of normalized forms (``task-1`` != ``task-01``)."""
    return normalize_id(id1, prefix).lower() == normalize_id(id2, prefix).lower()


def id_for_filename(id: str) -> str:
    return id.lower()


def build_glob_pattern(prefix: str) -> str:
    return f"{prefix}-*.md"


def build_id_regex(prefix: str) -> re.Pattern[str]:
    """Regex matching a whole ID with ``prefix`` and capturing its dotted numeric body."""
    return re.compile(rf"^{re.escape(prefix)}-(\d+(?:\.\d+)*)$", re.IGNORECASE)


def build_filename_id_regex(prefix: str) -> re.Pattern[str]:
    """Regex capturing the ID body at the start of a task filename.

    The body must be followed by whitespace, a dash, or ``.md``, so
    ``task-123a - X.md`` carries no ID.
    """
    return re.compile(rf"^{re.escape(prefix)}-(\d+(?:\.\d+)*)(?=\s|-|\.md$)", re.IGNORECASE)


def _strict_id_body(value: str, prefix: str) -> Optional[str]:
    """Body of a purely numeric ID (``5``, ``task-5.02``); None for anything else."""
    trimmed = value.strip()
    if trimmed == "":
        return ""
    match = re.match(rf"^(?:{re.escape(prefix)}-)?([0-9]+(?:\.[0-9]+)*)$", trimmed, re.IGNORECASE)
    return match.group(1) if match else None


def task_ids_equal(left: str, right: str, prefix: str = DEFAULT_TASK_PREFIX) -> bool:
    """Loose equality: numeric segments compare by value, so ``task-1 == task-01``.

    Inputs that are not purely numeric (``123a``) fall back to a normalized
    string comparison and therefore never match a numeric ID.
    """
    left_body = _strict_id_body(left, prefix)
    right_body = _strict_id_body(right, prefix)

    if left_body and right_body:
        left_segments = [int(seg) for seg in left_body.split(".")]
        right_segments = [int(seg) for seg in right_body.split(".")]
        return left_segments == right_segments

    return normalize_id(left, prefix).lower() == normalize_id(right, prefix).lower()


def parse_task_id(task_id: str) -> List[int]:
    """Numeric segments of an ID regardless of its prefix, for sorting."""
    numbers = []
    for part in strip_any_prefix(task_id).split("."):
        value = _parse_int(part)
        numbers.append(0 if value is None else value)
    return numbers


def compare_task_ids(a: str, b: str) -> int:
    """Negative, zero or positive as ``a`` sorts before, with or after ``b``.

    ``task-2 < task-2.1 < task-2.2 < task-2.10 < task-10``
    """
    a_parts = parse_task_id(a)
    b_parts = parse_task_id(b)
    for index in range(max(len(a_parts), len(b_parts))):
        a_num = a_parts[index] if index < len(a_parts) else 0
        b_num = b_parts[index] if index < len(b_parts) else 0
        if a_num != b_num:
            return a_num - b_num
    return 0


T = TypeVar("T")


def sort_by_task_id(items: Iterable[T], key=lambda item: item.id) -> List[T]:
    """Return a new list ordered by ``compare_task_ids`` on ``key(item)``."""
    return sorted(items, key=cmp_to_key(lambda a, b: compare_task_ids(key(a), key(b))))


def generate_next_id(existing_ids: Sequence[str], prefix: str, zero_padding: Optional[int] = None) -> str:
    """Next unused top-level ID; subtask IDs are ignored.

    >>> generate_next_id(["task-1", "task-1.1", "task-1.2", "task-2"], "task")
    'TASK-3'
    """
    regex = build_id_regex(prefix)
    highest = 0

    for existing in existing_ids:
        match = regex.match(existing.strip())
        if not match:
            continue
        body = match.group(1)
        if "." in body:
            continue
        highest = max(highest, int(body))

    next_number = highest + 1
    if zero_padding and zero_padding > 0:
        return f"{prefix.upper()}-{str(next_number).zfill(zero_padding)}"
    return f"{prefix.upper()}-{next_number}"


def generate_next_subtask_id(
    existing_ids: Sequence[str],
    parent_id: str,
    prefix: str,
    zero_padding: Optional[int] = None,
) -> str:
    """Next child ID under ``parent_id``, looking only at the first segment after the parent."""
    normalized_parent = normalize_id(parent_id, prefix)
    parent_body = extract_id_body(normalized_parent, prefix)
    highest = 0

    for existing in existing_ids:
        body = extract_id_body(existing, prefix)
        if not body.upper().startswith(f"{parent_body}."):
            continue
        first_segment = body[len(parent_body) + 1:].split(".")[0]
        if not first_segment:
            continue
        value = _parse_int(first_segment)
        if value is not None:
            highest = max(highest, value)

    next_number = highest + 1
    if zero_padding and zero_padding > 0:
        # subtask segments are always padded to two digits
        return f"{normalized_parent}.{str(next_number).zfill(2)}"
    return f"{normalized_parent}.{next_number}"
