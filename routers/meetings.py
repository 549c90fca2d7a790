"""
Meeting administration router.

Operator endpoints for joining the bot to a meeting, producing minutes on
demand, inspecting meetings and polling background pipeline jobs. All of
them require an internal JWT when authentication is configured.
"""
import logging

from fastapi import APIRouter, Depends

from middleware.jwt_auth import require_internal_jwt
from models.api_models import (
    DebugMeetingRequest,
    DebugMeetingResponse,
    JoinMeetingRequest,
    JoinMeetingResponse,
    ProcessTranscriptRequest,
    ProcessTranscriptResponse,
    TranscriptSummary,
)
from models.job_models import JobStatusResponse
from services.container import ServiceContainer
from utils.context_utils import get_services
from utils.errors import MinutesServiceError

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["meetings"],
    dependencies=[Depends(require_internal_jwt)],
)


@router.post("/join-meeting", response_model=JoinMeetingResponse)
async def join_meeting(
    body: JoinMeetingRequest,
    services: ServiceContainer = Depends(get_services),
):
    """
    Join the bot to a Teams meeting.

    When userId and meetingId are supplied, the call is pre-registered so its
    termination triggers minutes generation.
    """
    call = await services.call_service.join_meeting(body.meeting_join_url)

    tracked = False
    if body.user_id and body.meeting_id:
        tracked = await services.tracker.register(call.id, body.meeting_id, body.user_id)

    logger.info(f"Join meeting complete: call_id={call.id}, tracked={tracked}")
    return JoinMeetingResponse(call_id=call.id, state=call.state, tracked=tracked)


@router.post("/process-transcript", response_model=ProcessTranscriptResponse)
async def process_transcript(
    body: ProcessTranscriptRequest,
    services: ServiceContainer = Depends(get_services),
):
    """
    Generate minutes synchronously from an existing transcript.

    Looks the transcript up by callId (call-records API) when given,
    otherwise by userId + meetingId. Unlike the post-call pipeline, this does
    not wait for a transcript to appear.
    """
    if body.call_id:
        logger.info(f"Processing transcript by call: call_id={body.call_id}")
        minutes = await services.pipeline.process_by_call(
            body.call_id, body.user_id, body.options, meeting_id=body.meeting_id
        )
    else:
        logger.info(f"Processing transcript by meeting: meeting_id={body.meeting_id}")
        minutes = await services.pipeline.process_by_meeting(body.user_id, body.meeting_id, body.options)

    return ProcessTranscriptResponse(minutes=minutes)


@router.post("/debug-meeting", response_model=DebugMeetingResponse)
async def debug_meeting(
    body: DebugMeetingRequest,
    services: ServiceContainer = Depends(get_services),
):
    """Check that the bot can see a meeting and its transcripts."""
    logger.info(f"Debug meeting request: user_id={body.user_id}, meeting_id={body.meeting_id}")

    meeting_info = await services.transcript_service.get_online_meeting(body.user_id, body.meeting_id)
    transcripts = await services.transcript_service.list_transcripts(body.user_id, body.meeting_id)

    return DebugMeetingResponse(
        meeting_info=meeting_info,
        transcripts_count=len(transcripts),
        transcripts=[
            TranscriptSummary(
                id=t.id,
                created_date_time=t.created_date_time.isoformat(),
                has_content=bool(t.content),
            )
            for t in transcripts
        ],
    )


@router.get("/list-meetings/{user_id}")
async def list_meetings(
    user_id: str,
    services: ServiceContainer = Depends(get_services),
):
    logger.info(f"Listing meetings: user_id={user_id}")
    meetings = await services.transcript_service.list_online_meetings(user_id)
    return {"success": True, "meetings": meetings}


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job_status(
    job_id: str,
    services: ServiceContainer = Depends(get_services),
):
    """Poll a post-call pipeline job."""
    job = services.queue.get(job_id)
    if job is None:
        raise MinutesServiceError(
            f"Job not found: {job_id}",
            code="JOB_NOT_FOUND",
            status_code=404,
        )

    return JobStatusResponse(
        job_id=job.job_id,
        status=job.status,
        meeting_id=job.meeting_id,
        call_id=job.call_id,
        created_at=job.created_at,
        started_at=job.started_at,
        completed_at=job.completed_at,
        result=job.result,
        error_message=job.error_message,
        error_code=job.error_code,
    )
