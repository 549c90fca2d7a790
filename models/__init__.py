"""Data models for the meeting minutes bot."""
from .call_models import (
    CallAssociation,
    CallEvent,
    CallRecord,
    CallState,
)
from .transcript_models import Cue, ParsedTranscript, TranscriptDescriptor
from .minutes_models import (
    ActionItem,
    ChatMessage,
    MinutesDocument,
    MinutesFormat,
    MinutesGenerationOptions,
    PriorityEnum,
)
from .job_models import JobStatus, JobStatusResponse, PipelineJob

__all__ = [
    # Call lifecycle
    "CallAssociation",
    "CallEvent",
    "CallRecord",
    "CallState",
    # Transcripts
    "Cue",
    "ParsedTranscript",
    "TranscriptDescriptor",
    # Minutes
    "ActionItem",
    "ChatMessage",
    "MinutesDocument",
    "MinutesFormat",
    "MinutesGenerationOptions",
    "PriorityEnum",
    # Jobs
    "JobStatus",
    "JobStatusResponse",
    "PipelineJob",
]
