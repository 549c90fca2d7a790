"""
Transcript Store client.

Lists transcript descriptors for an online meeting (or for a call, through
the call-records API), picks the latest one, and downloads its content as
WebVTT.
"""
import logging
from typing import Iterable, List, Optional

from pydantic import ValidationError

from models.transcript_models import TranscriptDescriptor
from services.graph_service import GraphService
from utils.errors import GraphApiError, TranscriptNotFoundError

logger = logging.getLogger(__name__)


def select_latest(descriptors: Iterable[TranscriptDescriptor]) -> Optional[TranscriptDescriptor]:
    """
    Pick the descriptor with the greatest creation timestamp.

    Ties are broken by the greatest id so the choice does not depend on the
    order the store returned them in.
    """
    return max(descriptors, key=lambda d: (d.created_date_time, d.id), default=None)


class TranscriptService:
    """Graph-backed access to meeting transcripts."""

    def __init__(self, graph_service: GraphService):
        self.graph = graph_service
        logger.info("TranscriptService initialized")

    async def list_transcripts(self, owner_id: str, meeting_id: str) -> List[TranscriptDescriptor]:
        """
        List the transcripts recorded for an online meeting.

        Args:
            owner_id: Meeting organizer user id
            meeting_id: Online meeting id

        Returns:
            Transcript descriptors, possibly empty

        Raises:
            GraphApiError: If the listing request fails
        """
        payload = await self.graph.get(f"/users/{owner_id}/onlineMeetings/{meeting_id}/transcripts")
        descriptors = _descriptors(payload)
        logger.info(
            f"Transcripts listed: user_id={owner_id}, meeting_id={meeting_id}, count={len(descriptors)}"
        )
        return descriptors

    async def list_transcripts_by_call(self, call_id: str) -> List[TranscriptDescriptor]:
        """List transcripts through the call-records API (used when the meeting is unknown)."""
        payload = await self.graph.get(f"/communications/callRecords/{call_id}/transcripts")
        descriptors = _descriptors(payload)
        logger.info(f"Transcripts listed by call: call_id={call_id}, count={len(descriptors)}")
        return descriptors

    async def download_content(self, owner_id: str, meeting_id: str, transcript_id: str) -> str:
        content = await self.graph.get_text(
            f"/users/{owner_id}/onlineMeetings/{meeting_id}/transcripts/{transcript_id}/content",
            accept="text/vtt",
        )
        logger.info(
            f"Transcript downloaded: meeting_id={meeting_id}, transcript_id={transcript_id}, "
            f"length={len(content)} chars"
        )
        return content

    async def get_latest_transcript(self, owner_id: str, meeting_id: str) -> str:
        """
        Download the latest transcript of a meeting.

        Raises:
            TranscriptNotFoundError: If the meeting has no transcripts
            GraphApiError: If listing or downloading fails
        """
        latest = select_latest(await self.list_transcripts(owner_id, meeting_id))
        if latest is None:
            raise TranscriptNotFoundError(meeting_id)
        logger.info(f"Using latest transcript: transcript_id={latest.id}, created_at={latest.created_date_time}")
        return await self.download_content(owner_id, meeting_id, latest.id)

    async def get_latest_transcript_by_call(self, call_id: str, user_id: Optional[str] = None) -> str:
        """
        Download the latest transcript recorded for a call.

        The content is downloaded through the meeting it belongs to; when that
        download fails, inline content on the descriptor is used instead.

        Raises:
            TranscriptNotFoundError: If no transcript (or no usable content) exists
        """
        latest = select_latest(await self.list_transcripts_by_call(call_id))
        if latest is None:
            raise TranscriptNotFoundError(call_id, details={"call_id": call_id})

        if latest.meeting_id:
            owner_id = user_id or latest.meeting_organizer_id or "system"
            try:
                return await self.download_content(owner_id, latest.meeting_id, latest.id)
            except GraphApiError as e:
                if not latest.content:
                    raise
                logger.warning(
                    f"Transcript download failed, using inline content: call_id={call_id}, error={e.message}"
                )

        if latest.content:
            return latest.content

        raise TranscriptNotFoundError(
            latest.meeting_id or call_id,
            details={"call_id": call_id, "transcript_id": latest.id},
        )

    async def get_online_meeting(self, owner_id: str, meeting_id: str) -> dict:
        return await self.graph.get(f"/users/{owner_id}/onlineMeetings/{meeting_id}")

    async def list_online_meetings(self, owner_id: str) -> dict:
        return await self.graph.get(f"/users/{owner_id}/onlineMeetings")


def _descriptors(payload: dict) -> List[TranscriptDescriptor]:
    try:
        return [TranscriptDescriptor.model_validate(item) for item in payload.get("value") or []]
    except ValidationError as e:
        raise GraphApiError(
            "Transcript listing could not be read",
            details={"errors": e.errors(include_url=False, include_context=False)},
        ) from e
