"""
Task lifecycle transitions.

Allowed transitions are keyed by (current_status, target_status). Anything
not in the table is illegal.
"""

from .errors import InvalidTransitionError
from .models.enums import TaskStatus, WaveStatus

TASK_TRANSITIONS: frozenset[tuple[TaskStatus, TaskStatus]] = frozenset(
    {
        (TaskStatus.OPEN, TaskStatus.IN_PROGRESS),
        (TaskStatus.IN_PROGRESS, TaskStatus.OPEN),
        (TaskStatus.IN_PROGRESS, TaskStatus.RESOLVED),
    }
)

WAVE_TRANSITIONS: frozenset[tuple[WaveStatus, WaveStatus]] = frozenset(
    {
        (WaveStatus.PLANNING, WaveStatus.IN_PROGRESS),
        (WaveStatus.IN_PROGRESS, WaveStatus.COMPLETED),
        (WaveStatus.IN_PROGRESS, WaveStatus.FAILED),
        (WaveStatus.COMPLETED, WaveStatus.VERIFIED),
        (WaveStatus.COMPLETED, WaveStatus.FAILED),
    }
)


def ensure_task_transition(task_id: str, current: TaskStatus, target: TaskStatus) -> None:
    if (current, target) not in TASK_TRANSITIONS:
        raise InvalidTransitionError(f"task {task_id}", current.value, target.value)


def ensure_wave_transition(wave_id: int, current: WaveStatus, target: WaveStatus) -> None:
    """Repeating the current status is allowed and treated as a no-op by callers."""
    if current == target:
        return
    if (current, target) not in WAVE_TRANSITIONS:
        raise InvalidTransitionError(f"wave {wave_id}", current.value, target.value)
