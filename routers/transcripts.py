"""
Transcript upload router.

Operators can upload a transcript file directly (plain text or a WebVTT
caption track) to format it, parse it or summarize it without a live call.
Uploads are bounded at 50MB and rejected before anything is sent to the
language model.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile

from middleware.jwt_auth import require_internal_jwt
from models.api_models import (
    FormattedTranscriptResponse,
    ParsedTranscriptResponse,
    SummaryResponse,
    UploadMetadata,
)
from services import vtt_parser
from services.container import ServiceContainer
from utils.context_utils import get_services, read_text_upload, resolve_file_type
from utils.errors import InvalidInputError

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["transcripts"],
    dependencies=[Depends(require_internal_jwt)],
)

CAPTION_EXTENSIONS = {"vtt"}
TRANSCRIPT_EXTENSIONS = {"txt", "vtt"}


@router.post("/format-transcript", response_model=FormattedTranscriptResponse)
async def format_transcript(transcript: UploadFile = File(...)):
    """
    Render an uploaded WebVTT file as "[HH:MM:SS] text" lines.

    Raises:
        InvalidInputError: 400 for a non-.vtt or empty upload
        CaptionParseError: 400 for a malformed caption track
        UploadTooLargeError: 413 over 50MB
    """
    file_type = resolve_file_type(transcript, CAPTION_EXTENSIONS)
    content = await read_text_upload(transcript)

    parsed = vtt_parser.parse(content)
    formatted = vtt_parser.format_with_timestamps(parsed)

    logger.info(
        f"Transcript formatted: filename={transcript.filename}, cues={len(parsed.cues)}, "
        f"duration={parsed.duration}s"
    )

    return FormattedTranscriptResponse(
        formatted_transcript=formatted,
        metadata=UploadMetadata(
            file_name=transcript.filename or "",
            file_size=len(content.encode("utf-8")),
            file_type=file_type,
            transcript_length=len(formatted),
            duration=parsed.duration,
            number_of_cues=len(parsed.cues),
            speakers=parsed.speakers,
        ),
    )


@router.post("/parse-transcript", response_model=ParsedTranscriptResponse)
async def parse_transcript(
    transcript: UploadFile = File(...),
    timestamps: bool = Query(default=False),
    speaker: Optional[str] = Query(default=None),
):
    """
    Extract plain text from an uploaded WebVTT file.

    With `speaker`, only that speaker's cues are returned (label removed);
    otherwise with `timestamps=true` each cue is prefixed with its start time.
    """
    file_type = resolve_file_type(transcript, CAPTION_EXTENSIONS)
    content = await read_text_upload(transcript)

    parsed = vtt_parser.parse(content)
    if speaker:
        text = vtt_parser.filter_by_speaker(parsed, speaker)
    elif timestamps:
        text = vtt_parser.format_with_timestamps(parsed)
    else:
        text = parsed.full_transcript

    return ParsedTranscriptResponse(
        transcript=text,
        metadata=UploadMetadata(
            file_name=transcript.filename or "",
            file_size=len(content.encode("utf-8")),
            file_type=file_type,
            transcript_length=len(text),
            duration=parsed.duration,
            number_of_cues=len(parsed.cues),
            speakers=parsed.speakers,
        ),
    )


@router.post("/generate-summary", response_model=SummaryResponse)
async def generate_summary(
    transcript: UploadFile = File(...),
    max_words: int = Query(default=200, ge=1, le=2000, alias="maxWords"),
    services: ServiceContainer = Depends(get_services),
):
    """
    Summarize an uploaded transcript (.txt or .vtt) in a single paragraph.

    Caption tracks are reduced to their plain transcript first.
    """
    file_type = resolve_file_type(transcript, TRANSCRIPT_EXTENSIONS)
    content = await read_text_upload(transcript)

    metadata = UploadMetadata(
        file_name=transcript.filename or "",
        file_size=len(content.encode("utf-8")),
        file_type=file_type,
    )

    if file_type == "vtt":
        parsed = vtt_parser.parse(content)
        text = parsed.full_transcript
        metadata.duration = parsed.duration
        metadata.number_of_cues = len(parsed.cues)
        metadata.speakers = parsed.speakers
    else:
        text = content
    metadata.transcript_length = len(text)

    if not text.strip():
        raise InvalidInputError("Uploaded transcript has no text", code="EMPTY_UPLOAD")

    logger.info(f"Generating summary: filename={transcript.filename}, length={len(text)}")
    summary = await services.minutes_service.generate_summary(text, max_words=max_words)

    return SummaryResponse(summary=summary, metadata=metadata)
