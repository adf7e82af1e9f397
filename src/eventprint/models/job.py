"""Print job models."""

from datetime import datetime
from enum import StrEnum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class JobStatus(StrEnum):
    """Status of a print job."""

    QUEUED = "queued"
    PRINTING = "printing"
    COMPLETED = "completed"
    FAILED = "failed"


class PrintJob(BaseModel):
    """One tracked attempt to print a single photo."""

    id: UUID = Field(default_factory=uuid4)
    photo_id: str
    event_id: str
    status: JobStatus = JobStatus.QUEUED
    attempts: int = 0
    created_at: datetime = Field(default_factory=datetime.now)
    completed_at: datetime | None = None
    error: str | None = None
