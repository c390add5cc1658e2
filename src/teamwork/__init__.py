"""
teamwork - filesystem task coordination for parallel workers.

Tasks live as one JSON file each under a project directory. Workers claim,
release and resolve them under per-task directory locks, and a planner
orders them into dependency waves.
"""

from .claims import ClaimProtocol
from .config import ConfigManager, LockSettings, LoggingSettings, Settings, get_config
from .errors import (
    AlreadyExistsError,
    ClaimVerificationError,
    ConcurrencyError,
    ConflictError,
    CorruptRecordError,
    CycleDetectedError,
    DependentsExistError,
    IntegrityError,
    InvalidTransitionError,
    LockTimeoutError,
    NotClaimableError,
    NotFoundError,
    NotOwnerError,
    RoleMismatchError,
    TeamworkError,
    ValidationError,
)
from .locking import LockManager
from .models import (
    Complexity,
    EvidenceType,
    ProjectStats,
    Role,
    TaskEvidence,
    TaskRecord,
    TaskStatus,
    Wave,
    WavesState,
    WaveStatus,
)
from .models.task_store import TaskStore, TaskValidationResult
from .waves import WavePlanStore, append_wave, compute_waves, update_wave_status, wave_progress

__version__ = "0.1.0"

__all__ = [
    "ClaimProtocol",
    "ConfigManager",
    "LockSettings",
    "LoggingSettings",
    "Settings",
    "get_config",
    "AlreadyExistsError",
    "ClaimVerificationError",
    "ConcurrencyError",
    "ConflictError",
    "CorruptRecordError",
    "CycleDetectedError",
    "DependentsExistError",
    "IntegrityError",
    "InvalidTransitionError",
    "LockTimeoutError",
    "NotClaimableError",
    "NotFoundError",
    "NotOwnerError",
    "RoleMismatchError",
    "TeamworkError",
    "ValidationError",
    "LockManager",
    "Complexity",
    "EvidenceType",
    "ProjectStats",
    "Role",
    "TaskEvidence",
    "TaskRecord",
    "TaskStatus",
    "Wave",
    "WavesState",
    "WaveStatus",
    "TaskStore",
    "TaskValidationResult",
    "WavePlanStore",
    "append_wave",
    "compute_waves",
    "update_wave_status",
    "wave_progress",
]
