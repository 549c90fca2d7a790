"""
Call lifecycle models.

These mirror the subset of the Microsoft Graph communications API that the
service reads: the call resource, the calling webhook notification, and the
call-to-meeting association kept by the lifecycle tracker.
"""
import enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CallState(str, enum.Enum):
    """Lifecycle states reported in `resourceData.state`."""
    incoming = "incoming"
    establishing = "establishing"
    established = "established"
    hold = "hold"
    transferring = "transferring"
    terminated = "terminated"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["CallState"]:
        """Return the matching state, or None for missing/unknown values."""
        if not value:
            return None
        try:
            return cls(value.lower())
        except ValueError:
            return None


class _GraphModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class IdentityUser(_GraphModel):
    id: Optional[str] = None
    display_name: Optional[str] = None


class IdentitySet(_GraphModel):
    user: Optional[IdentityUser] = None
    application: Optional[IdentityUser] = None


class MeetingInfo(_GraphModel):
    organizer: Optional[IdentitySet] = None
    join_url: Optional[str] = None


class ChatInfo(_GraphModel):
    thread_id: Optional[str] = None
    message_id: Optional[str] = None


class CallRecord(_GraphModel):
    """A Graph call resource, reduced to the fields this service uses."""
    id: str
    state: Optional[str] = None
    meeting_info: Optional[MeetingInfo] = None
    chat_info: Optional[ChatInfo] = None
    created_date_time: Optional[datetime] = None

    @property
    def organizer_id(self) -> Optional[str]:
        if self.meeting_info and self.meeting_info.organizer and self.meeting_info.organizer.user:
            return self.meeting_info.organizer.user.id
        return None

    @property
    def join_url(self) -> Optional[str]:
        return self.meeting_info.join_url if self.meeting_info else None


class ResourceData(_GraphModel):
    state: Optional[str] = None
    result_info: Optional[Dict[str, Any]] = None


class CallEvent(_GraphModel):
    """One entry of a calling webhook notification batch."""
    call_id: Optional[str] = None
    resource_url: Optional[str] = None
    resource_data: Optional[ResourceData] = None
    change_type: Optional[str] = None

    @property
    def state(self) -> Optional[CallState]:
        return CallState.parse(self.resource_data.state if self.resource_data else None)

    @property
    def resolved_call_id(self) -> Optional[str]:
        """callId, or the last path segment of resourceUrl when it is absent."""
        if self.call_id:
            return self.call_id
        if self.resource_url:
            segment = self.resource_url.rstrip("/").rsplit("/", 1)[-1]
            return segment or None
        return None


class CallAssociation(BaseModel):
    """The meeting/user a tracked call belongs to."""
    call_id: str
    meeting_id: str
    user_id: str
    state: CallState = CallState.establishing
    tracked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
