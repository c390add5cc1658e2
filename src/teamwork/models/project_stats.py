"""
Project statistics model for teamwork.
"""

from collections.abc import Iterable

from pydantic import BaseModel

from .enums import TaskStatus
from .task_record import TaskRecord


class ProjectStats(BaseModel):
    """Task counts by status."""

    total: int = 0
    open: int = 0
    in_progress: int = 0
    resolved: int = 0

    @classmethod
    def from_tasks(cls, tasks: Iterable[TaskRecord]) -> "ProjectStats":
        stats = cls()
        for task in tasks:
            stats.total += 1
            if task.status == TaskStatus.OPEN:
                stats.open += 1
            elif task.status == TaskStatus.IN_PROGRESS:
                stats.in_progress += 1
            elif task.status == TaskStatus.RESOLVED:
                stats.resolved += 1
        return stats
