"""Job record data model for background processing."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JobRecord(_CamelModel):
    """Tracks the lifecycle of one background unit of work."""
    id: int
    title: str
    status: JobStatus = JobStatus.PENDING
    total_items: int = Field(default=1, ge=1)
    completed_items: int = Field(default=0, ge=0)
    started_at: datetime
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    @field_validator("started_at", "completed_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Records written by older clients carry naive timestamps
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def _repair_lifecycle_fields(self) -> "JobRecord":
        """Bring hand-edited or stale records back in line with the state machine.

        completed_items is capped at total_items, completed_at is set exactly
        when the job is terminal, and only failed jobs carry an error.
        """
        if self.completed_items > self.total_items:
            self.completed_items = self.total_items
        if self.status.is_terminal:
            if self.completed_at is None:
                self.completed_at = self.started_at
        else:
            self.completed_at = None
        if self.status == JobStatus.FAILED:
            self.error = self.error or "Failed"
        else:
            self.error = None
        return self

    @property
    def is_active(self) -> bool:
        return not self.status.is_terminal


class JobStoreSnapshot(_CamelModel):
    """The single persisted record: job list (most recent first) plus id counter."""
    jobs: List[JobRecord] = Field(default_factory=list)
    counter: int = 0


class JobView(_CamelModel):
    """List-row projection of a job for display."""
    id: int
    title: str
    status: JobStatus
    status_text: str
    progress_percent: int
    show_progress_bar: bool
    time_ago: str


class JobSummary(_CamelModel):
    """Badge/counter data for the jobs indicator."""
    active_count: int
    has_active_jobs: bool
    total: int
