# src/checklist_sync/tasks/task_views.py

"""
Derived views over stored tasks.

Pure functions, recomputed on every read; nothing here is cached or persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from .task_models import Task

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


class StatusTag(StrEnum):
    COMPLETED = "Completed"
    IN_PROGRESS = "In Progress"


class ProgressColor(StrEnum):
    SUCCESS = "success"
    NORMAL = "normal"
    EXCEPTION = "exception"


@dataclass(frozen=True, slots=True)
class Progress:
    completed_count: int
    total_count: int
    percent: int


def round_half_up(value: float) -> int:
    # Python's round() is banker's rounding; 12.5% must show as 13%.
    return int(value + 0.5)


def progress(task: Task) -> Progress:
    total = len(task.checklist)
    done = sum(1 for item in task.checklist if item.completed)
    percent = round_half_up(done * 100 / total) if total > 0 else 0
    return Progress(completed_count=done, total_count=total, percent=percent)


def status_tag(percent: int) -> StatusTag:
    return StatusTag.COMPLETED if percent == 100 else StatusTag.IN_PROGRESS


def progress_color(percent: int) -> ProgressColor:
    if percent == 100:
        return ProgressColor.SUCCESS
    if percent >= 50:
        return ProgressColor.NORMAL
    return ProgressColor.EXCEPTION


def progress_label(task: Task) -> str:
    p = progress(task)
    return f"{p.completed_count}/{p.total_count}"


def format_date(ts: datetime) -> str:
    """'Jan 5, 2024' in the local timezone."""
    local = ts.astimezone() if ts.tzinfo is not None else ts
    return f"{_MONTHS[local.month - 1]} {local.day}, {local.year}"
