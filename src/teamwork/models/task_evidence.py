"""
Task evidence model for teamwork.

This module provides the TaskEvidence model for proof-of-completion records
attached to a task on resolution.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..utils.timestamps import utc_now
from .enums import EvidenceType


class TaskEvidence(BaseModel):
    """Structured evidence record (command, file, test or manual)."""

    model_config = ConfigDict(extra="forbid", use_enum_values=False)

    type: EvidenceType
    timestamp: str = Field(default_factory=utc_now)
    command: Optional[str] = None
    output: Optional[str] = None
    exit_code: Optional[int] = None
    path: Optional[str] = None
    action: Optional[Literal["created", "modified", "deleted"]] = None
    test_file: Optional[str] = None
    passed: Optional[int] = Field(default=None, ge=0)
    failed: Optional[int] = Field(default=None, ge=0)
    total: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = None
    verified_by: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def coerce_plain_text(cls, data: Any) -> Any:
        """A bare string is recorded as manual evidence."""
        if isinstance(data, str):
            return {"type": EvidenceType.MANUAL, "description": data}
        return data

    @model_validator(mode="after")
    def check_required_fields(self) -> "TaskEvidence":
        if self.type == EvidenceType.COMMAND and not self.command:
            raise ValueError("command evidence requires 'command'")
        if self.type == EvidenceType.FILE and not self.path:
            raise ValueError("file evidence requires 'path'")
        if self.type == EvidenceType.MANUAL and not self.description:
            raise ValueError("manual evidence requires 'description'")
        return self
