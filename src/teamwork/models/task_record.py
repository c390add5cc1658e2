"""
Task record model for teamwork.

This module provides the TaskRecord model, the on-disk shape of one task
file (``tasks/<id>.json``).
"""

from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from ..utils.timestamps import parse_timestamp, utc_now
from .enums import Complexity, Role, TaskStatus
from .task_evidence import TaskEvidence

TASK_ID_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9._-]*$"


class TaskRecord(BaseModel):
    """Complete task record."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., pattern=TASK_ID_PATTERN, max_length=200)
    subject: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("subject", "title")
    )
    description: str = ""
    role: Role = Role.WORKER
    complexity: Complexity = Complexity.STANDARD
    status: TaskStatus = TaskStatus.OPEN
    blocked_by: list[str] = []
    claimed_by: Optional[str] = None
    claimed_at: Optional[str] = None
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)
    completed_at: Optional[str] = None
    evidence: list[TaskEvidence] = []
    criteria: list[str] = []
    version: int = Field(default=0, ge=0)
    wave: Optional[int] = Field(default=None, ge=1)
    metadata: dict[str, Any] = {}

    @field_validator("blocked_by")
    @classmethod
    def dedupe_blocked_by(cls, v: list[str]) -> list[str]:
        """Keep first occurrence order, drop duplicates and blanks."""
        seen: dict[str, None] = {}
        for item in v:
            item = item.strip()
            if item:
                seen.setdefault(item, None)
        return list(seen)

    @field_validator("claimed_by")
    @classmethod
    def blank_owner_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    @model_validator(mode="before")
    @classmethod
    def default_description(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("description"):
            subject = data.get("subject") or data.get("title")
            if subject:
                data = {**data, "description": subject}
        return data

    @model_validator(mode="after")
    def validate_timestamps(self) -> "TaskRecord":
        """Validate timestamp formats."""
        for field in ["created_at", "updated_at", "claimed_at", "completed_at"]:
            value = getattr(self, field)
            if value:
                try:
                    parse_timestamp(value)
                except ValueError:
                    raise ValueError(f"Invalid timestamp format for {field}")
        return self

    @model_validator(mode="after")
    def validate_claim(self) -> "TaskRecord":
        if self.status == TaskStatus.IN_PROGRESS and not self.claimed_by:
            raise ValueError("in_progress task must have claimed_by")
        return self

    @field_serializer("evidence")
    def serialize_evidence(self, evidence: list[TaskEvidence]) -> list[dict[str, Any]]:
        return [item.model_dump(mode="json", exclude_none=True) for item in evidence]

    @property
    def is_available(self) -> bool:
        """Open and unclaimed."""
        return self.status == TaskStatus.OPEN and self.claimed_by is None

    def to_json_dict(self) -> dict[str, Any]:
        """JSON-ready dictionary in the on-disk field order."""
        return self.model_dump(mode="json")

