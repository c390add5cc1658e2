"""
Wave models for teamwork.

This module provides the Wave and WavesState models persisted in
``waves.json``.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..utils.timestamps import utc_now
from .enums import WaveStatus

WAVES_STATE_VERSION = "1"


class Wave(BaseModel):
    """One group of tasks that may run in parallel."""

    model_config = ConfigDict(extra="forbid")

    id: int = Field(..., ge=1)
    status: WaveStatus = WaveStatus.PLANNING
    tasks: list[str] = []
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    verified_at: Optional[str] = None


class WavesState(BaseModel):
    """Ordered wave plan for a task set."""

    model_config = ConfigDict(extra="forbid")

    version: str = WAVES_STATE_VERSION
    total_waves: int = Field(default=0, ge=0)
    current_wave: int = Field(default=0, ge=0)
    waves: list[Wave] = []
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def check_consistency(self) -> "WavesState":
        if self.total_waves != len(self.waves):
            raise ValueError(
                f"total_waves={self.total_waves} but {len(self.waves)} waves present"
            )
        if self.current_wave > self.total_waves:
            raise ValueError(
                f"current_wave={self.current_wave} exceeds total_waves={self.total_waves}"
            )
        for index, wave in enumerate(self.waves, start=1):
            if wave.id != index:
                raise ValueError(f"wave ids must be sequential, found {wave.id} at {index}")
        return self

    def get_wave(self, wave_id: int) -> Optional[Wave]:
        for wave in self.waves:
            if wave.id == wave_id:
                return wave
        return None

    def wave_of(self, task_id: str) -> Optional[int]:
        """Wave id containing the task, if planned."""
        for wave in self.waves:
            if task_id in wave.tasks:
                return wave.id
        return None

    def planned_task_ids(self) -> set[str]:
        return {task_id for wave in self.waves for task_id in wave.tasks}

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
