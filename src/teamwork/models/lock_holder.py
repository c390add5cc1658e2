"""
Lock holder model for teamwork.

This module provides the LockHolder model, the metadata written inside a
lock directory by the process that created it.
"""

import os
import socket
from typing import Optional

from pydantic import BaseModel, Field

from ..utils.timestamps import age_seconds, utc_now


class LockHolder(BaseModel):
    """Identity of the current holder of a lock."""

    owner: str = Field(..., min_length=1)
    pid: int
    host: Optional[str] = None
    acquired_at: str = Field(default_factory=utc_now)

    @classmethod
    def for_current_process(cls, owner: str) -> "LockHolder":
        return cls(owner=owner, pid=os.getpid(), host=socket.gethostname())

    def age(self) -> float:
        """Seconds since the lock was acquired."""
        return age_seconds(self.acquired_at)

    def is_local(self) -> bool:
        """True when the holder ran on this host, so its pid can be probed."""
        return self.host is None or self.host == socket.gethostname()
