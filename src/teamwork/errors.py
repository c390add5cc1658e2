"""
Error taxonomy for teamwork.

Every failure raised by the store, the lock manager, the claim protocol and
the wave scheduler derives from TeamworkError. Errors carry the structured
fields needed to report them (task id, status, owner, ...) and can be
rendered as a problem-details style dictionary.
"""

from typing import Any, Iterable, Optional


class ErrorTypes:
    """Stable machine-readable error type identifiers."""

    VALIDATION_ERROR = "validation-error"
    NOT_FOUND = "not-found"
    CONFLICT = "conflict"
    ALREADY_EXISTS = "already-exists"
    NOT_CLAIMABLE = "not-claimable"
    NOT_OWNER = "not-owner"
    CLAIM_VERIFICATION_FAILED = "claim-verification-failed"
    ROLE_MISMATCH = "role-mismatch"
    INVALID_TRANSITION = "invalid-transition"
    DEPENDENTS_EXIST = "dependents-exist"
    CONCURRENCY = "concurrency"
    LOCK_TIMEOUT = "lock-timeout"
    INTEGRITY = "integrity"
    CYCLE_DETECTED = "cycle-detected"
    CORRUPT_RECORD = "corrupt-record"


class TeamworkError(Exception):
    """Base class for all teamwork errors."""

    error_type = "error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Render the error as a problem-details style dictionary."""
        detail: dict[str, Any] = {
            "type": self.error_type,
            "title": type(self).__name__,
            "detail": self.message,
        }
        if self.context:
            detail["context"] = self.context
        return detail


class ValidationError(TeamworkError, ValueError):
    """Unknown enum value or otherwise malformed input."""

    error_type = ErrorTypes.VALIDATION_ERROR


class NotFoundError(TeamworkError, LookupError):
    """Task or wave does not exist."""

    error_type = ErrorTypes.NOT_FOUND


class ConflictError(TeamworkError):
    """The requested change conflicts with the current state."""

    error_type = ErrorTypes.CONFLICT


class AlreadyExistsError(ConflictError):
    error_type = ErrorTypes.ALREADY_EXISTS

    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} already exists", task_id=task_id)
        self.task_id = task_id


class NotClaimableError(ConflictError):
    """Task is not open or is already claimed by someone."""

    error_type = ErrorTypes.NOT_CLAIMABLE

    def __init__(self, task_id: str, status: str, current_owner: Optional[str]):
        if current_owner:
            message = f"Task {task_id} already claimed by {current_owner} (status: {status})"
        else:
            message = f"Task {task_id} is not in a claimable status (status: {status})"
        super().__init__(
            message, task_id=task_id, status=status, current_owner=current_owner
        )
        self.task_id = task_id
        self.status = status
        self.current_owner = current_owner


class NotOwnerError(ConflictError):
    error_type = ErrorTypes.NOT_OWNER

    def __init__(self, task_id: str, owner: str, current_owner: Optional[str]):
        super().__init__(
            f"Task {task_id} is not claimed by {owner} (claimed by: {current_owner})",
            task_id=task_id,
            owner=owner,
            current_owner=current_owner,
        )
        self.task_id = task_id
        self.owner = owner
        self.current_owner = current_owner


class ClaimVerificationError(ConflictError):
    """Re-read after a locked claim write did not show the expected owner."""

    error_type = ErrorTypes.CLAIM_VERIFICATION_FAILED

    def __init__(self, task_id: str, owner: str, observed_owner: Optional[str]):
        super().__init__(
            f"Claim verification failed for task {task_id}: expected {owner}, found {observed_owner}",
            task_id=task_id,
            owner=owner,
            observed_owner=observed_owner,
        )
        self.task_id = task_id
        self.owner = owner
        self.observed_owner = observed_owner


class RoleMismatchError(ConflictError):
    error_type = ErrorTypes.ROLE_MISMATCH

    def __init__(self, task_id: str, task_role: str, worker_role: str):
        super().__init__(
            f"Task {task_id} role mismatch - task role: {task_role}, worker role: {worker_role}",
            task_id=task_id,
            task_role=task_role,
            worker_role=worker_role,
        )
        self.task_role = task_role
        self.worker_role = worker_role


class InvalidTransitionError(ConflictError):
    error_type = ErrorTypes.INVALID_TRANSITION

    def __init__(self, subject: str, current: str, target: str):
        super().__init__(
            f"Illegal transition for {subject}: {current} -> {target}",
            subject=subject,
            current=current,
            target=target,
        )
        self.current = current
        self.target = target


class DependentsExistError(ConflictError):
    error_type = ErrorTypes.DEPENDENTS_EXIST

    def __init__(self, task_id: str, dependents: Iterable[str]):
        self.dependents = sorted(dependents)
        super().__init__(
            f"Tasks {', '.join(self.dependents)} depend on task {task_id}",
            task_id=task_id,
            dependents=self.dependents,
        )
        self.task_id = task_id


class ConcurrencyError(TeamworkError):
    error_type = ErrorTypes.CONCURRENCY


class LockTimeoutError(ConcurrencyError, TimeoutError):
    """Lock could not be acquired before the timeout elapsed."""

    error_type = ErrorTypes.LOCK_TIMEOUT

    def __init__(self, resource: str, owner: str, timeout: float):
        super().__init__(
            f"Failed to acquire lock for {resource} within {timeout:g}s",
            resource=resource,
            owner=owner,
            timeout=timeout,
        )
        self.resource = resource
        self.owner = owner
        self.timeout = timeout


class IntegrityError(TeamworkError):
    error_type = ErrorTypes.INTEGRITY


class CycleDetectedError(IntegrityError):
    error_type = ErrorTypes.CYCLE_DETECTED

    def __init__(self, remaining: Iterable[str]):
        self.remaining = frozenset(remaining)
        ordered = sorted(self.remaining)
        super().__init__(
            f"Circular dependency detected in tasks: {', '.join(ordered)}",
            remaining=ordered,
        )


class CorruptRecordError(IntegrityError):
    error_type = ErrorTypes.CORRUPT_RECORD

    def __init__(self, path: str, reason: str):
        super().__init__(f"Unreadable record {path}: {reason}", path=path, reason=reason)
        self.path = path
        self.reason = reason
