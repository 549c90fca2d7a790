"""Pydantic models for transcript descriptors and parsed caption tracks."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class TranscriptDescriptor(BaseModel):
    """
    Metadata for one meeting transcript as returned by the transcript store.

    The descriptor references content without necessarily embedding it;
    `content` is only populated by lookup paths that return it inline.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str
    meeting_id: Optional[str] = None
    created_date_time: datetime
    content: Optional[str] = None
    transcript_content_url: Optional[str] = None
    meeting_organizer_id: Optional[str] = None


class Cue(BaseModel):
    """One timed caption unit. Offsets are fractional seconds."""
    start: float = Field(ge=0)
    end: float = Field(ge=0)
    text: str
    identifier: Optional[str] = None

    @model_validator(mode="after")
    def end_not_before_start(self) -> "Cue":
        if self.end < self.start:
            raise ValueError(f"cue end ({self.end}) is before its start ({self.start})")
        return self


class ParsedTranscript(BaseModel):
    """A caption track decoded into cues plus the values derived from them."""
    cues: List[Cue] = Field(default_factory=list)
    full_transcript: str = ""
    duration: float = 0.0
    speakers: List[str] = Field(default_factory=list)
