"""
Post-call meeting pipeline: transcript -> caption parsing -> minutes.

Used both by the background queue (after a call terminates, waiting for the
transcript to become available) and by the synchronous process-transcript
endpoint (transcript expected to exist already).
"""
import logging
import os
from typing import Optional

from models.job_models import PipelineJob
from models.minutes_models import MinutesDocument, MinutesFormat, MinutesGenerationOptions
from services import vtt_parser
from services.minutes_service import MinutesService
from services.transcript_poller import TranscriptPoller
from services.transcript_service import TranscriptService
from utils.errors import TranscriptNotFoundError

logger = logging.getLogger(__name__)


def default_options() -> MinutesGenerationOptions:
    """Generation options from MINUTES_LANGUAGE / MINUTES_FORMAT."""
    return MinutesGenerationOptions(
        language=os.getenv("MINUTES_LANGUAGE", "es"),
        format=MinutesFormat(os.getenv("MINUTES_FORMAT", MinutesFormat.detailed.value)),
    )


class MeetingPipeline:
    def __init__(
        self,
        poller: TranscriptPoller,
        transcript_service: TranscriptService,
        minutes_service: MinutesService,
    ):
        self.poller = poller
        self.transcript_service = transcript_service
        self.minutes_service = minutes_service

    async def run(self, job: PipelineJob) -> MinutesDocument:
        """Queue runner: wait for the meeting transcript, then generate minutes."""
        logger.info(
            f"Processing ended call: job_id={job.job_id}, call_id={job.call_id}, "
            f"meeting_id={job.meeting_id}"
        )
        raw = await self.poller.wait_for_transcript(job.user_id, job.meeting_id)
        return await self.generate(raw, job.meeting_id)

    async def process_by_meeting(
        self,
        user_id: str,
        meeting_id: str,
        options: Optional[MinutesGenerationOptions] = None,
    ) -> MinutesDocument:
        raw = await self.transcript_service.get_latest_transcript(user_id, meeting_id)
        return await self.generate(raw, meeting_id, options)

    async def process_by_call(
        self,
        call_id: str,
        user_id: Optional[str] = None,
        options: Optional[MinutesGenerationOptions] = None,
        meeting_id: Optional[str] = None,
    ) -> MinutesDocument:
        """Minutes for a call's transcript, labelled with meeting_id when known, else call_id."""
        raw = await self.transcript_service.get_latest_transcript_by_call(call_id, user_id)
        return await self.generate(raw, meeting_id or call_id, options)

    async def generate(
        self,
        raw_transcript: str,
        meeting_id: str,
        options: Optional[MinutesGenerationOptions] = None,
    ) -> MinutesDocument:
        """
        Generate minutes from downloaded transcript content.

        Caption tracks are rendered as "[HH:MM:SS] Speaker: text" lines so the
        model sees timing and speakers; other content is used as-is.

        Raises:
            CaptionParseError: If the content claims to be WebVTT but is malformed
            TranscriptNotFoundError: If the transcript has no text
            GenerationError: If the model call fails
        """
        options = options or default_options()
        transcript = vtt_parser.to_transcript_text(raw_transcript)
        if not transcript.strip():
            raise TranscriptNotFoundError(meeting_id, details={"reason": "transcript is empty"})
        return await self.minutes_service.generate_minutes(transcript, meeting_id, options)
