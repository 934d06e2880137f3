"""Domain models for Eden generation tasks."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    """Task status enumeration."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class MediaType(str, Enum):
    """Kind of media a create task should produce."""
    IMAGE = "image"
    VIDEO = "video"


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED.value, TaskStatus.FAILED.value})


class Task(BaseModel):
    """Task domain model.

    ``status`` is kept as the raw upstream string so unexpected values
    (which the poller treats as non-terminal) survive round trips.
    """

    task_id: str = Field(..., min_length=1, description="Upstream task identifier")
    status: str = Field(default=TaskStatus.PENDING.value, description="Task status")
    creation_uri: Optional[str] = Field(None, description="URI of the produced creation")

    @property
    def is_terminal(self) -> bool:
        """Whether the upstream service will no longer change this task."""
        return self.status in TERMINAL_STATUSES

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status == TaskStatus.FAILED
