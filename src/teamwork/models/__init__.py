"""
Data models for teamwork.

TaskStore lives in ``teamwork.models.task_store`` and is not imported here,
because the lock manager depends on these models.
"""

from .enums import Complexity, EvidenceType, Role, TaskStatus, WaveStatus, choices, parse_enum
from .lock_holder import LockHolder
from .project_stats import ProjectStats
from .task_evidence import TaskEvidence
from .task_record import TASK_ID_PATTERN, TaskRecord
from .wave import WAVES_STATE_VERSION, Wave, WavesState

__all__ = [
    "Complexity",
    "EvidenceType",
    "Role",
    "TaskStatus",
    "WaveStatus",
    "choices",
    "parse_enum",
    "LockHolder",
    "ProjectStats",
    "TaskEvidence",
    "TASK_ID_PATTERN",
    "TaskRecord",
    "WAVES_STATE_VERSION",
    "Wave",
    "WavesState",
]
