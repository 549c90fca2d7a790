"""Pydantic models for generated meeting minutes.

MinutesDocument is the output artifact of the pipeline. It serializes with
camelCase keys (keyPoints, actionItems, ...) to match the JSON schema the
language model is asked to produce.
"""
import enum
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PriorityEnum(str, enum.Enum):
    """Priority levels for action items."""
    high = "high"
    medium = "medium"
    low = "low"


class MinutesFormat(str, enum.Enum):
    detailed = "detailed"
    summary = "summary"
    executive = "executive"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ActionItem(_CamelModel):
    """An actionable task extracted from the meeting."""
    task: str = Field(
        description="Clear description of the task to be completed"
    )
    assigned_to: Optional[str] = Field(
        default=None,
        description="Person responsible for the task, if mentioned"
    )
    due_date: Optional[str] = Field(
        default=None,
        description="Due date for the task as stated in the meeting, if mentioned"
    )
    priority: Optional[PriorityEnum] = Field(
        default=None,
        description="Priority of the task: high, medium, or low"
    )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MinutesDocument(_CamelModel):
    """
    Structured meeting minutes.

    Title and summary are never null and every list field defaults to an
    empty list, so consumers never need to null-check them.
    """
    meeting_id: str
    title: str
    date: datetime = Field(default_factory=_utc_now)
    participants: List[str] = Field(default_factory=list)
    summary: str = ""
    key_points: List[str] = Field(default_factory=list)
    decisions: List[str] = Field(default_factory=list)
    action_items: List[ActionItem] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=_utc_now)


class MinutesGenerationOptions(BaseModel):
    """Generation options; unspecified values take the documented defaults."""
    include_timestamps: bool = False
    language: str = "es"
    format: MinutesFormat = MinutesFormat.detailed
    max_tokens: int = Field(default=2000, ge=1)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)


class ChatMessage(BaseModel):
    """A role-tagged message sent to the generation client."""
    role: Literal["system", "user", "assistant"]
    content: str
