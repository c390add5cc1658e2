"""
Task store for teamwork.

This module provides the TaskStore class, which persists one JSON file per
task under a tasks directory and serializes read-modify-write cycles on a
task through that task's directory lock.
"""

import json
import logging
import re
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Optional, Union

from jsonschema import Draft202012Validator
from pydantic import ValidationError as PydanticValidationError

from ..config.settings import LockSettings
from ..errors import (
    AlreadyExistsError,
    ConflictError,
    CorruptRecordError,
    DependentsExistError,
    NotFoundError,
    ValidationError,
)
from ..locking.lock_manager import LockManager
from ..utils.atomic_io import atomic_create_json, atomic_write_json, is_temp_file, read_json_file
from ..utils.timestamps import utc_now
from .enums import Role, TaskStatus, parse_enum
from .project_stats import ProjectStats
from .task_record import TASK_ID_PATTERN, TaskRecord

_TASK_ID_RE = re.compile(TASK_ID_PATTERN)

Mutator = Callable[[TaskRecord], Optional[TaskRecord]]


@dataclass
class TaskValidationResult:
    path: str
    valid: bool
    errors: List[str]


def validation_error_from(exc: PydanticValidationError, subject: str) -> ValidationError:
    """Wrap a pydantic failure in the teamwork error taxonomy."""
    problems = [
        f"{'.'.join(str(loc) for loc in err['loc']) or '<root>'}: {err['msg']}"
        for err in exc.errors()
    ]
    return ValidationError(f"Invalid {subject}: {'; '.join(problems)}", errors=problems)


class TaskStore:
    """Per-task JSON records with atomic writes and locked updates."""

    def __init__(
        self,
        tasks_dir: Union[str, Path],
        lock_manager: Optional[LockManager] = None,
        lock_settings: Optional[LockSettings] = None,
    ):
        self.tasks_dir = Path(tasks_dir)
        self.tasks_dir.mkdir(parents=True, exist_ok=True)
        self.locks = lock_manager or LockManager(lock_settings)
        self.logger = logging.getLogger(__name__)

    def task_path(self, task_id: str) -> Path:
        """Path of the record file for a task id."""
        if not isinstance(task_id, str) or not _TASK_ID_RE.match(task_id):
            raise ValidationError(f"Invalid task id {task_id!r}", task_id=task_id)
        return self.tasks_dir / f"{task_id}.json"

    def exists(self, task_id: str) -> bool:
        return self.task_path(task_id).is_file()

    # --- Create / read / write ---

    def create(self, task: Union[TaskRecord, Mapping[str, Any]]) -> TaskRecord:
        """
        Create a new task record.

        Args:
            task: A TaskRecord or a mapping of its fields

        Returns:
            The record as written

        Raises:
            ValidationError: If the fields are invalid or the task is not new
            AlreadyExistsError: If a task with the same id exists
        """
        record = self._coerce(task)
        if record.status != TaskStatus.OPEN or record.claimed_by is not None:
            raise ValidationError(
                f"New task {record.id} must be open and unclaimed",
                task_id=record.id,
                status=record.status.value,
            )
        now = utc_now()
        record = record.model_copy(update={"created_at": now, "updated_at": now, "version": 0})

        path = self.task_path(record.id)
        try:
            atomic_create_json(path, record.to_json_dict())
        except FileExistsError:
            raise AlreadyExistsError(record.id) from None

        self.logger.info(
            f"Created task {record.id}",
            extra={"json_data": {"task_id": record.id, "role": record.role.value}},
        )
        return record

    def read(self, task_id: str) -> TaskRecord:
        """
        Read a task record.

        Raises:
            NotFoundError: If the task does not exist
            CorruptRecordError: If the file is not a valid task record
        """
        return self._load(self.task_path(task_id))

    def write(self, record: TaskRecord) -> TaskRecord:
        """
        Replace a task record atomically.

        The caller must hold the task lock. The record is re-validated and
        stamped with a fresh ``updated_at`` and the next ``version``.
        """
        validated = self._coerce(record)
        stamped = validated.model_copy(
            update={"updated_at": utc_now(), "version": validated.version + 1}
        )
        atomic_write_json(self.task_path(stamped.id), stamped.to_json_dict())
        return stamped

    # --- Locked updates ---

    @contextmanager
    def locked(
        self, task_id: str, owner: str, timeout: Optional[float] = None
    ) -> Iterator[Path]:
        """Hold the task lock; yields the record path."""
        path = self.task_path(task_id)
        with self.locks.lock(path, owner, timeout):
            yield path

    def update(
        self,
        task_id: str,
        owner: str,
        mutator: Mutator,
        timeout: Optional[float] = None,
    ) -> TaskRecord:
        """
        Read-modify-write a task under its lock.

        The mutator receives the latest record and either changes it in place
        or returns a replacement. Anything it raises propagates and nothing
        is written.

        Raises:
            LockTimeoutError: If the task lock cannot be acquired in time
            NotFoundError: If the task does not exist
        """
        with self.locked(task_id, owner, timeout):
            current = self.read(task_id)
            result = mutator(current)
            record = current if result is None else result
            if record.id != task_id:
                raise ValidationError(
                    f"Task id cannot change ({task_id} -> {record.id})", task_id=task_id
                )
            return self.write(record)

    # --- Listing ---

    def list_task_paths(self) -> List[Path]:
        """Record files sorted by name; skips ``_``-prefixed and temp files."""
        return sorted(
            path
            for path in self.tasks_dir.glob("*.json")
            if path.is_file() and not path.name.startswith("_") and not is_temp_file(path)
        )

    def list_task_ids(self) -> List[str]:
        return [path.stem for path in self.list_task_paths()]

    def list(self, predicate: Optional[Callable[[TaskRecord], bool]] = None) -> List[TaskRecord]:
        """
        All readable task records sorted by id.

        Unreadable record files are skipped with a warning.
        """
        tasks: List[TaskRecord] = []
        for path in self.list_task_paths():
            try:
                task = self._load(path)
            except NotFoundError:
                # Deleted between listing and reading.
                continue
            except CorruptRecordError as e:
                self.logger.warning(
                    f"Skipping unreadable task file {path.name}: {e.reason}",
                    extra={"json_data": {"path": str(path)}},
                )
                continue
            if predicate is None or predicate(task):
                tasks.append(task)
        return tasks

    def available(self, role: Optional[Union[Role, str]] = None) -> List[TaskRecord]:
        """Open, unclaimed tasks whose known prerequisites are all resolved."""
        wanted = parse_enum(Role, role, "role") if role is not None else None
        tasks = self.list()
        known = {task.id for task in tasks}
        resolved = {task.id for task in tasks if task.status == TaskStatus.RESOLVED}

        def ready(task: TaskRecord) -> bool:
            return all(dep in resolved or dep not in known for dep in task.blocked_by)

        return [
            task
            for task in tasks
            if task.is_available and (wanted is None or task.role == wanted) and ready(task)
        ]

    def stats(self) -> ProjectStats:
        return ProjectStats.from_tasks(self.list())

    # --- Delete ---

    def delete(
        self,
        task_id: str,
        owner: str,
        force: bool = False,
        timeout: Optional[float] = None,
    ) -> List[str]:
        """
        Delete an open, unclaimed task.

        Args:
            task_id: Task to delete
            owner: Owner id used for the task lock
            force: Delete even if other tasks are blocked by this one

        Returns:
            Sorted ids of tasks that listed the deleted task in blocked_by

        Raises:
            ConflictError: If the task has been claimed or resolved
            DependentsExistError: If dependents exist and force is False
        """
        dependents = sorted(
            task.id for task in self.list(lambda t: task_id in t.blocked_by)
        )
        with self.locked(task_id, owner, timeout) as path:
            task = self.read(task_id)
            if task.status != TaskStatus.OPEN or task.claimed_by is not None:
                raise ConflictError(
                    f"Cannot delete task {task_id} with status {task.status.value}",
                    task_id=task_id,
                    status=task.status.value,
                    current_owner=task.claimed_by,
                )
            if dependents and not force:
                raise DependentsExistError(task_id, dependents)
            path.unlink()

        self.logger.info(
            f"Deleted task {task_id}",
            extra={"json_data": {"task_id": task_id, "orphaned": dependents}},
        )
        return dependents

    # --- Schema validation ---

    @staticmethod
    def task_schema() -> dict[str, Any]:
        """JSON schema of a task record file."""
        return TaskRecord.model_json_schema()

    def validate_tasks(self) -> List[TaskValidationResult]:
        """Validate every record file against the task JSON schema."""
        validator = Draft202012Validator(self.task_schema())
        results: List[TaskValidationResult] = []
        for path in self.list_task_paths():
            try:
                data = read_json_file(path)
            except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
                results.append(TaskValidationResult(path=str(path), valid=False, errors=[str(e)]))
                continue
            errors = [self._format_error(e) for e in validator.iter_errors(data)]
            if isinstance(data, dict) and data.get("id") not in (None, path.stem):
                errors.append(f"id: {data['id']!r} does not match file name {path.name}")
            results.append(TaskValidationResult(path=str(path), valid=not errors, errors=errors))
        return results

    @staticmethod
    def _format_error(e: Any) -> str:
        loc = "/".join(str(x) for x in e.path) or "<root>"
        return f"{loc}: {e.message}"

    # --- Internals ---

    def _coerce(self, task: Union[TaskRecord, Mapping[str, Any]]) -> TaskRecord:
        if isinstance(task, TaskRecord):
            # Evidence may have been appended as raw dicts or strings.
            data = task.model_dump(warnings=False, exclude={"evidence"})
            data["evidence"] = list(task.evidence)
        else:
            data = dict(task)
        try:
            return TaskRecord.model_validate(data)
        except PydanticValidationError as e:
            raise validation_error_from(e, "task") from e

    def _load(self, path: Path) -> TaskRecord:
        try:
            data = read_json_file(path)
        except FileNotFoundError:
            raise NotFoundError(f"Task {path.stem} not found", task_id=path.stem) from None
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptRecordError(str(path), str(e)) from e
        try:
            record = TaskRecord.model_validate(data)
        except PydanticValidationError as e:
            raise CorruptRecordError(str(path), f"{e.error_count()} validation error(s)") from e
        if record.id != path.stem:
            raise CorruptRecordError(str(path), f"id {record.id!r} does not match file name")
        return record
