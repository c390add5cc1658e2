"""
Claim protocol for teamwork tasks.

Workers take ownership of an open task with ``claim``, hand it back with
``release`` and finish it with ``resolve``. Every step runs under the task
lock, so two workers racing for the same task serialize and exactly one of
them wins.
"""

import logging
from collections.abc import Iterable
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from .errors import (
    ClaimVerificationError,
    NotClaimableError,
    NotOwnerError,
    RoleMismatchError,
    ValidationError,
)
from .lifecycle import ensure_task_transition
from .models.enums import Role, TaskStatus, parse_enum
from .models.task_evidence import TaskEvidence
from .models.task_record import TaskRecord
from .models.task_store import TaskStore, validation_error_from
from .utils.timestamps import utc_now

EvidenceInput = Union[TaskEvidence, dict[str, Any], str]
ResolvedListener = Callable[[TaskRecord], None]

logger = logging.getLogger(__name__)


def parse_evidence(evidence: Optional[Iterable[EvidenceInput]]) -> list[TaskEvidence]:
    """
    Validate evidence items; plain strings become manual evidence.

    Raises:
        ValidationError: If an item is not valid evidence
    """
    if evidence is None:
        return []
    if isinstance(evidence, (str, dict, TaskEvidence)):
        evidence = [evidence]
    parsed = []
    for item in evidence:
        if isinstance(item, TaskEvidence):
            parsed.append(item)
            continue
        try:
            parsed.append(TaskEvidence.model_validate(item))
        except PydanticValidationError as e:
            raise validation_error_from(e, "evidence") from e
    return parsed


class ClaimProtocol:
    """Claim, release and resolve tasks held in a TaskStore."""

    def __init__(self, store: TaskStore):
        self.store = store
        self._listeners: list[ResolvedListener] = []

    def on_resolved(self, callback: ResolvedListener) -> ResolvedListener:
        """Register a callback run with the record after each resolve."""
        self._listeners.append(callback)
        return callback

    def claim(
        self,
        task_id: str,
        owner: str,
        role: Optional[Union[Role, str]] = None,
        timeout: Optional[float] = None,
    ) -> TaskRecord:
        """
        Claim an open task for owner.

        Args:
            task_id: Task to claim
            owner: Claiming worker id
            role: Worker role; must match the task role when given
            timeout: Lock acquisition timeout

        Returns:
            The claimed record

        Raises:
            NotClaimableError: If the task is not open or already claimed
            RoleMismatchError: If role differs from the task role
            ClaimVerificationError: If the re-read does not show owner
        """
        worker_role = parse_enum(Role, role, "role") if role is not None else None
        if not owner:
            raise ValidationError("owner must be a non-empty string")

        with self.store.locked(task_id, owner, timeout):
            task = self.store.read(task_id)
            if task.status != TaskStatus.OPEN or task.claimed_by is not None:
                raise NotClaimableError(task_id, task.status.value, task.claimed_by)
            if worker_role is not None and task.role != worker_role:
                raise RoleMismatchError(task_id, task.role.value, worker_role.value)

            ensure_task_transition(task_id, task.status, TaskStatus.IN_PROGRESS)
            task.claimed_by = owner
            task.claimed_at = utc_now()
            task.status = TaskStatus.IN_PROGRESS
            self.store.write(task)

            claimed = self.store.read(task_id)
            if claimed.claimed_by != owner:
                raise ClaimVerificationError(task_id, owner, claimed.claimed_by)

        logger.info(
            f"Task {task_id} claimed by {owner}",
            extra={"json_data": {"task_id": task_id, "owner": owner, "event": "claimed"}},
        )
        return claimed

    def release(
        self, task_id: str, owner: str, timeout: Optional[float] = None
    ) -> TaskRecord:
        """
        Hand a claimed task back to the open pool.

        Raises:
            NotOwnerError: If owner does not hold the claim
            InvalidTransitionError: If the task is not in progress
        """

        def mutate(task: TaskRecord) -> None:
            if task.claimed_by != owner:
                raise NotOwnerError(task_id, owner, task.claimed_by)
            ensure_task_transition(task_id, task.status, TaskStatus.OPEN)
            task.claimed_by = None
            task.claimed_at = None
            task.status = TaskStatus.OPEN

        released = self.store.update(task_id, owner, mutate, timeout)
        logger.info(
            f"Task {task_id} released by {owner}",
            extra={"json_data": {"task_id": task_id, "owner": owner, "event": "released"}},
        )
        return released

    def resolve(
        self,
        task_id: str,
        owner: str,
        evidence: Optional[Iterable[EvidenceInput]] = None,
        timeout: Optional[float] = None,
    ) -> TaskRecord:
        """
        Mark a claimed task resolved and append its evidence.

        Listeners registered with on_resolved run after the lock is released.
        A listener that raises is logged and the remaining listeners still run;
        the resolve itself stands.

        Raises:
            NotOwnerError: If owner does not hold the claim
            InvalidTransitionError: If the task is not in progress
            ValidationError: If the evidence is invalid
        """
        items = parse_evidence(evidence)

        def mutate(task: TaskRecord) -> None:
            if task.claimed_by != owner:
                raise NotOwnerError(task_id, owner, task.claimed_by)
            ensure_task_transition(task_id, task.status, TaskStatus.RESOLVED)
            task.evidence.extend(items)
            task.status = TaskStatus.RESOLVED
            task.completed_at = utc_now()

        resolved = self.store.update(task_id, owner, mutate, timeout)
        logger.info(
            f"Task {task_id} resolved by {owner}",
            extra={
                "json_data": {
                    "task_id": task_id,
                    "owner": owner,
                    "event": "resolved",
                    "evidence": len(items),
                }
            },
        )
        for listener in list(self._listeners):
            try:
                listener(resolved)
            except Exception:
                logger.exception(
                    f"Resolve listener failed for task {task_id}",
                    extra={
                        "json_data": {
                            "task_id": task_id,
                            "listener": getattr(listener, "__qualname__", repr(listener)),
                        }
                    },
                )
        return resolved

    def attach_evidence(
        self,
        task_id: str,
        owner: str,
        evidence: Iterable[EvidenceInput],
        timeout: Optional[float] = None,
    ) -> TaskRecord:
        """Append evidence to a task owner's in-progress task without changing status."""
        items = parse_evidence(evidence)
        if not items:
            raise ValidationError("No evidence given", task_id=task_id)

        def mutate(task: TaskRecord) -> None:
            if task.claimed_by != owner:
                raise NotOwnerError(task_id, owner, task.claimed_by)
            task.evidence.extend(items)

        return self.store.update(task_id, owner, mutate, timeout)
