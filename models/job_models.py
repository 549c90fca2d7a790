"""Job models for post-call pipeline runs.

Every call termination that gets handed off becomes one PipelineJob in the
pipeline queue. Jobs live in process memory only; they make the background
run observable (status, timing, result or error) without persisting minutes.

Job Lifecycle:
    queued -> processing -> succeeded | failed
"""
import enum
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from models.minutes_models import MinutesDocument


class JobStatus(str, enum.Enum):
    """Job processing status.

    Lifecycle: queued -> processing -> succeeded | failed
    """
    queued = "queued"
    processing = "processing"
    succeeded = "succeeded"
    failed = "failed"


class PipelineJob(BaseModel):
    """One post-call pipeline run for a (meeting, user, call) triple."""
    job_id: str = Field(default_factory=lambda: str(uuid4()))
    meeting_id: str
    user_id: str
    call_id: str
    status: JobStatus = JobStatus.queued

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # Result (only when succeeded)
    result: Optional[MinutesDocument] = None

    # Error (only when failed)
    error_code: Optional[str] = None
    error_message: Optional[str] = None


class JobStatusResponse(BaseModel):
    """Response model for job status polling.

    Returned by GET /api/jobs/{job_id}
    """
    job_id: str
    status: JobStatus
    meeting_id: str
    call_id: str

    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    result: Optional[MinutesDocument] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
