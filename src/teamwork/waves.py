"""
Wave scheduling for teamwork.

Tasks are partitioned into ordered waves with Kahn's algorithm: wave 1 holds
every task with no prerequisites, wave N holds the tasks whose prerequisites
all sit in earlier waves. Tasks inside a wave may run in parallel.

``compute_waves``, ``append_wave`` and ``update_wave_status`` are pure
functions over ``WavesState``; ``WavePlanStore`` persists the plan in
``waves.json`` under its own lock.
"""

import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from .errors import CorruptRecordError, CycleDetectedError, NotFoundError, ValidationError
from .lifecycle import ensure_wave_transition
from .locking.lock_manager import LockManager
from .models.enums import TaskStatus, WaveStatus, parse_enum
from .models.task_record import TaskRecord
from .models.task_store import TaskStore
from .models.wave import Wave, WavesState
from .utils.atomic_io import atomic_write_json, read_json_file
from .utils.timestamps import utc_now

logger = logging.getLogger(__name__)

Snapshot = Union[Mapping[str, Iterable[str]], Iterable[Any]]


def _dependency_map(snapshot: Snapshot) -> dict[str, list[str]]:
    """Normalize a snapshot to ``{task_id: blocked_by}``, rejecting duplicate ids."""
    if isinstance(snapshot, Mapping):
        return {str(task_id): list(deps or []) for task_id, deps in snapshot.items()}

    graph: dict[str, list[str]] = {}
    for task in snapshot:
        if isinstance(task, Mapping):
            task_id, deps = task.get("id"), task.get("blocked_by")
        else:
            task_id, deps = getattr(task, "id", None), getattr(task, "blocked_by", None)
        if not isinstance(task_id, str) or not task_id:
            raise ValidationError(f"Task without a valid id in snapshot: {task!r}")
        if task_id in graph:
            raise ValidationError(f"Duplicate task id {task_id} in snapshot", task_id=task_id)
        graph[task_id] = list(deps or [])
    return graph


def compute_waves(snapshot: Snapshot, now: Optional[str] = None) -> WavesState:
    """
    Partition tasks into dependency-ordered waves.

    Args:
        snapshot: Task records (anything with ``id`` and ``blocked_by``) or a
            mapping of task id to prerequisite ids
        now: Timestamp for created_at/updated_at (current time when None)

    Returns:
        A new WavesState; every wave is ``planning`` and lists its task ids
        sorted

    Raises:
        ValidationError: If the snapshot has duplicate or missing ids
        CycleDetectedError: If the remaining tasks form a cycle
    """
    graph = _dependency_map(snapshot)

    in_degree = {task_id: 0 for task_id in graph}
    dependents: dict[str, list[str]] = {task_id: [] for task_id in graph}
    for task_id, deps in graph.items():
        for dep in dict.fromkeys(deps):
            if dep not in graph:
                logger.warning(
                    f"Task {task_id} is blocked by unknown task {dep}; ignoring",
                    extra={"json_data": {"task_id": task_id, "missing": dep}},
                )
                continue
            in_degree[task_id] += 1
            dependents[dep].append(task_id)

    layers: list[list[str]] = []
    ready = sorted(task_id for task_id, degree in in_degree.items() if degree == 0)
    placed = 0
    while ready:
        layers.append(ready)
        placed += len(ready)
        next_ready = []
        for task_id in ready:
            for dependent in dependents[task_id]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    next_ready.append(dependent)
        ready = sorted(next_ready)

    if placed < len(graph):
        raise CycleDetectedError(task_id for task_id, degree in in_degree.items() if degree > 0)

    timestamp = now or utc_now()
    waves = [Wave(id=index, tasks=layer) for index, layer in enumerate(layers, start=1)]
    state = WavesState(
        total_waves=len(waves),
        current_wave=1 if waves else 0,
        waves=waves,
        created_at=timestamp,
        updated_at=timestamp,
    )
    logger.info(
        f"Calculated {len(waves)} waves for {len(graph)} tasks",
        extra={"json_data": {"total_waves": len(waves), "tasks": len(graph)}},
    )
    return state


def append_wave(
    state: WavesState, task_ids: Iterable[str], now: Optional[str] = None
) -> WavesState:
    """
    Return a new state with one more ``planning`` wave holding task_ids.

    Raises:
        ValidationError: If task_ids is empty or any id is already planned
    """
    new_ids = sorted(dict.fromkeys(task_ids))
    if not new_ids:
        raise ValidationError("Cannot append an empty wave")
    already = sorted(state.planned_task_ids().intersection(new_ids))
    if already:
        raise ValidationError(
            f"Tasks already planned: {', '.join(already)}", task_ids=already
        )

    waves = [wave.model_copy(deep=True) for wave in state.waves]
    waves.append(Wave(id=len(waves) + 1, tasks=new_ids))
    return WavesState(
        version=state.version,
        total_waves=len(waves),
        current_wave=state.current_wave or 1,
        waves=waves,
        created_at=state.created_at,
        updated_at=now or utc_now(),
    )


def update_wave_status(
    state: WavesState,
    wave_id: int,
    status: Union[WaveStatus, str],
    now: Optional[str] = None,
) -> WavesState:
    """
    Return a new state with the wave moved to status.

    Repeating the current status returns the state unchanged. started_at,
    completed_at and verified_at are each set once; ``in_progress`` makes
    the wave current.

    Raises:
        NotFoundError: If the wave does not exist
        InvalidTransitionError: If the transition is not allowed
    """
    target = parse_enum(WaveStatus, status, "status")
    wave = state.get_wave(wave_id)
    if wave is None:
        raise NotFoundError(
            f"Wave {wave_id} not found. Available waves: 1-{state.total_waves}",
            wave_id=wave_id,
        )
    ensure_wave_transition(wave_id, wave.status, target)
    if wave.status == target:
        return state

    timestamp = now or utc_now()
    updated = wave.model_copy(update={"status": target})
    current_wave = state.current_wave
    if target == WaveStatus.IN_PROGRESS:
        updated.started_at = updated.started_at or timestamp
        current_wave = wave_id
    elif target in (WaveStatus.COMPLETED, WaveStatus.FAILED):
        updated.completed_at = updated.completed_at or timestamp
    elif target == WaveStatus.VERIFIED:
        updated.verified_at = updated.verified_at or timestamp

    waves = [updated if w.id == wave_id else w.model_copy(deep=True) for w in state.waves]
    return state.model_copy(
        update={"waves": waves, "current_wave": current_wave, "updated_at": timestamp}
    )


def wave_progress(state: WavesState, tasks: Iterable[TaskRecord]) -> list[dict[str, Any]]:
    """Per-wave task counts by status; planned ids with no record count as missing."""
    by_id = {task.id: task for task in tasks}
    progress = []
    for wave in state.waves:
        counts = {status.value: 0 for status in TaskStatus}
        missing = 0
        for task_id in wave.tasks:
            task = by_id.get(task_id)
            if task is None:
                missing += 1
            else:
                counts[task.status.value] += 1
        progress.append(
            {
                "wave": wave.id,
                "status": wave.status.value,
                "total": len(wave.tasks),
                **counts,
                "missing": missing,
            }
        )
    return progress


class WavePlanStore:
    """Persisted wave plan (``waves.json``) guarded by its own lock."""

    def __init__(
        self,
        project_dir: Union[str, Path],
        lock_manager: Optional[LockManager] = None,
        waves_filename: str = "waves.json",
    ):
        self.project_dir = Path(project_dir)
        self.project_dir.mkdir(parents=True, exist_ok=True)
        self.path = self.project_dir / waves_filename
        self.locks = lock_manager or LockManager()

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> WavesState:
        """
        Load the wave plan.

        Raises:
            NotFoundError: If no plan has been written yet
            CorruptRecordError: If the file is not a valid plan
        """
        try:
            data = read_json_file(self.path)
        except FileNotFoundError:
            raise NotFoundError(
                f"{self.path.name} not found in {self.project_dir}; calculate waves first",
                path=str(self.path),
            ) from None
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptRecordError(str(self.path), str(e)) from e
        try:
            return WavesState.model_validate(data)
        except PydanticValidationError as e:
            raise CorruptRecordError(str(self.path), f"{e.error_count()} validation error(s)") from e

    def write(self, state: WavesState, owner: str, timeout: Optional[float] = None) -> WavesState:
        """Write the plan atomically under the plan lock."""
        with self.locks.lock(self.path, owner, timeout):
            return self._write(state)

    def plan(
        self, task_store: TaskStore, owner: str, timeout: Optional[float] = None
    ) -> WavesState:
        """Compute waves from the current task records and persist them."""
        state = compute_waves(task_store.list())
        return self.write(state, owner, timeout)

    def update_wave_status(
        self,
        wave_id: int,
        status: Union[WaveStatus, str],
        owner: str,
        timeout: Optional[float] = None,
    ) -> WavesState:
        def change(state: WavesState) -> WavesState:
            return update_wave_status(state, wave_id, status)

        updated = self._modify(change, owner, timeout)
        logger.info(
            f"Wave {wave_id} status is {parse_enum(WaveStatus, status, 'status').value}",
            extra={"json_data": {"wave": wave_id, "owner": owner}},
        )
        return updated

    def append_wave(
        self, task_ids: Iterable[str], owner: str, timeout: Optional[float] = None
    ) -> WavesState:
        ids = list(task_ids)

        def change(state: WavesState) -> WavesState:
            return append_wave(state, ids)

        return self._modify(change, owner, timeout)

    def _modify(
        self,
        change: Callable[[WavesState], WavesState],
        owner: str,
        timeout: Optional[float],
    ) -> WavesState:
        with self.locks.lock(self.path, owner, timeout):
            state = self.read()
            updated = change(state)
            if updated is state:
                return state
            return self._write(updated)

    def _write(self, state: WavesState) -> WavesState:
        stamped = state.model_copy(update={"updated_at": utc_now()})
        try:
            WavesState.model_validate(stamped.model_dump())
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid wave plan: {e.error_count()} validation error(s)") from e
        atomic_write_json(self.path, stamped.to_json_dict())
        return stamped
