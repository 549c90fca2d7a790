"""
API Request/Response Models

Pydantic models for the administrative endpoints. Request and response
bodies use camelCase keys on the wire (meetingJoinUrl, callId, ...) and
snake_case attributes in code.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from models.minutes_models import MinutesDocument, MinutesGenerationOptions


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JoinMeetingRequest(_ApiModel):
    """
    Request body for POST /api/join-meeting.

    Attributes:
        meeting_join_url: Teams meeting join URL (required)
        user_id: Meeting organizer id, used to track the call for post-call processing
        meeting_id: Online meeting id, used to track the call for post-call processing
    """
    meeting_join_url: str = Field(..., description="Teams meeting join URL")
    user_id: Optional[str] = Field(default=None, description="Meeting organizer id")
    meeting_id: Optional[str] = Field(default=None, description="Online meeting id")

    @field_validator("meeting_join_url")
    @classmethod
    def url_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("meetingJoinUrl is required")
        return v.strip()


class JoinMeetingResponse(_ApiModel):
    success: bool = True
    call_id: str
    state: Optional[str] = None
    tracked: bool = Field(
        default=False,
        description="Whether the call will trigger minutes generation when it ends"
    )


class ProcessTranscriptRequest(_ApiModel):
    """
    Request body for POST /api/process-transcript.

    Either call_id, or both user_id and meeting_id, must be supplied.
    """
    user_id: Optional[str] = None
    meeting_id: Optional[str] = None
    call_id: Optional[str] = None
    options: Optional[MinutesGenerationOptions] = None

    @model_validator(mode="after")
    def call_or_meeting_required(self) -> "ProcessTranscriptRequest":
        if not self.call_id and not (self.user_id and self.meeting_id):
            raise ValueError("Either callId OR (userId and meetingId) are required")
        return self


class ProcessTranscriptResponse(_ApiModel):
    success: bool = True
    minutes: MinutesDocument


class DebugMeetingRequest(_ApiModel):
    user_id: str = Field(..., min_length=1)
    meeting_id: str = Field(..., min_length=1)


class TranscriptSummary(_ApiModel):
    id: str
    created_date_time: str
    has_content: bool


class DebugMeetingResponse(_ApiModel):
    success: bool = True
    meeting_info: dict
    transcripts_count: int
    transcripts: List[TranscriptSummary]


class UploadMetadata(_ApiModel):
    """Describes an uploaded transcript file and what was extracted from it."""
    file_name: str
    file_size: int
    file_type: str
    transcript_length: int = 0
    duration: Optional[float] = None
    number_of_cues: Optional[int] = None
    speakers: Optional[List[str]] = None


class SummaryResponse(_ApiModel):
    success: bool = True
    summary: str
    metadata: UploadMetadata


class FormattedTranscriptResponse(_ApiModel):
    success: bool = True
    formatted_transcript: str
    metadata: UploadMetadata


class ParsedTranscriptResponse(_ApiModel):
    success: bool = True
    transcript: str
    metadata: UploadMetadata
