"""
Availability Poller.

Transcripts become available some time after a meeting ends, so the
pipeline polls the transcript store with a bounded number of attempts and a
fixed delay between them.
"""
import asyncio
import logging
import os
from typing import Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from services.transcript_service import TranscriptService, select_latest
from utils.errors import AuthenticationError, GraphApiError, TranscriptNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 20
DEFAULT_INTERVAL_SECONDS = 30.0

# Failures that count as "not available yet" and use up one attempt
RETRYABLE_ERRORS = (GraphApiError, AuthenticationError)


def _log_unsuccessful_attempt(retry_state: RetryCallState) -> None:
    meeting_id = retry_state.args[1]
    outcome = retry_state.outcome
    if outcome is not None and outcome.failed:
        error = outcome.exception()
        logger.warning(
            f"Transcript attempt failed: meeting_id={meeting_id}, "
            f"attempt={retry_state.attempt_number}, error={getattr(error, 'message', error)}"
        )
    else:
        logger.info(
            f"Transcript not available yet: meeting_id={meeting_id}, "
            f"attempt={retry_state.attempt_number}"
        )


class TranscriptPoller:
    """Waits for a meeting transcript to appear and downloads it."""

    def __init__(
        self,
        transcript_service: TranscriptService,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.transcript_service = transcript_service
        self.sleep = sleep
        self.max_attempts = int(os.getenv("TRANSCRIPT_POLL_ATTEMPTS", DEFAULT_MAX_ATTEMPTS))
        self.interval_seconds = float(
            os.getenv("TRANSCRIPT_POLL_INTERVAL_SECONDS", DEFAULT_INTERVAL_SECONDS)
        )

    async def wait_for_transcript(
        self,
        user_id: str,
        meeting_id: str,
        max_attempts: Optional[int] = None,
        interval_seconds: Optional[float] = None,
    ) -> str:
        """
        Poll until a transcript exists, then return its content.

        Each attempt lists the meeting's transcripts; the first non-empty
        listing has its latest transcript downloaded and returned. A failed
        listing or download counts as an unsuccessful attempt. The delay only
        happens between attempts, never after the last one.

        Args:
            user_id: Meeting organizer user id
            meeting_id: Online meeting id
            max_attempts: Listing attempts before giving up (default from config, 20)
            interval_seconds: Delay between attempts (default from config, 30)

        Returns:
            The transcript content

        Raises:
            TranscriptNotFoundError: If no attempt produced a transcript
        """
        max_attempts = self.max_attempts if max_attempts is None else max_attempts
        interval_seconds = self.interval_seconds if interval_seconds is None else interval_seconds

        logger.info(
            f"Waiting for transcript: user_id={user_id}, meeting_id={meeting_id}, "
            f"max_attempts={max_attempts}, interval={interval_seconds}s"
        )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_fixed(interval_seconds),
            retry=(
                retry_if_result(lambda content: content is None)
                | retry_if_exception_type(RETRYABLE_ERRORS)
            ),
            before_sleep=_log_unsuccessful_attempt,
            sleep=self.sleep,
        )

        try:
            return await retrying(self._attempt, user_id, meeting_id)
        except RetryError as e:
            logger.error(
                f"Transcript not available after {max_attempts} attempts: meeting_id={meeting_id}"
            )
            raise TranscriptNotFoundError(meeting_id, details={"attempts": max_attempts}) from e

    async def _attempt(self, user_id: str, meeting_id: str) -> Optional[str]:
        latest = select_latest(
            await self.transcript_service.list_transcripts(user_id, meeting_id)
        )
        if latest is None:
            return None

        content = await self.transcript_service.download_content(user_id, meeting_id, latest.id)
        logger.info(f"Transcript available: meeting_id={meeting_id}, transcript_id={latest.id}")
        return content
