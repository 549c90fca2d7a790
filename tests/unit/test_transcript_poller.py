"""
Unit Tests for TranscriptPoller

The transcript service and the sleep function are replaced with mocks so
attempts and delays can be counted without waiting.
"""

from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import AsyncMock, MagicMock

from models.transcript_models import TranscriptDescriptor
from services.transcript_poller import TranscriptPoller
from services.transcript_service import TranscriptService
from utils.errors import GraphApiError, TranscriptNotFoundError


BASE_TIME = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


def descriptor(transcript_id: str, minutes: int = 0) -> TranscriptDescriptor:
    return TranscriptDescriptor(
        id=transcript_id,
        meeting_id="m1",
        created_date_time=BASE_TIME + timedelta(minutes=minutes),
    )


@pytest.fixture
def transcript_service():
    service = MagicMock()
    service.list_transcripts = AsyncMock(return_value=[])
    service.download_content = AsyncMock(return_value="WEBVTT\n")
    return service


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def poller(transcript_service, sleep):
    return TranscriptPoller(transcript_service, sleep=sleep)


class TestWaitForTranscript:

    @pytest.mark.asyncio
    async def test_returns_immediately_when_available(self, poller, transcript_service, sleep):
        transcript_service.list_transcripts.return_value = [descriptor("t1")]

        content = await poller.wait_for_transcript("u1", "m1", max_attempts=5, interval_seconds=30)

        assert content == "WEBVTT\n"
        assert transcript_service.list_transcripts.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_downloads_latest_transcript(self, poller, transcript_service):
        transcript_service.list_transcripts.return_value = [
            descriptor("t-old", 0),
            descriptor("t-new", 10),
            descriptor("t-mid", 5),
        ]

        await poller.wait_for_transcript("u1", "m1", max_attempts=1, interval_seconds=0)

        transcript_service.download_content.assert_awaited_once_with("u1", "m1", "t-new")

    @pytest.mark.asyncio
    async def test_retries_until_transcript_appears(self, poller, transcript_service, sleep):
        transcript_service.list_transcripts.side_effect = [[], [], [descriptor("t1")]]

        await poller.wait_for_transcript("u1", "m1", max_attempts=5, interval_seconds=30)

        assert transcript_service.list_transcripts.await_count == 3
        assert sleep.await_count == 2
        sleep.assert_awaited_with(30)

    @pytest.mark.asyncio
    async def test_exhaustion_bounds_queries_and_delays(self, poller, transcript_service, sleep):
        with pytest.raises(TranscriptNotFoundError) as exc_info:
            await poller.wait_for_transcript("u1", "m1", max_attempts=3, interval_seconds=30)

        assert exc_info.value.meeting_id == "m1"
        assert transcript_service.list_transcripts.await_count == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_failed_listing_counts_as_attempt(self, poller, transcript_service, sleep):
        transcript_service.list_transcripts.side_effect = [
            GraphApiError("Graph API returned 503"),
            [descriptor("t1")],
        ]

        content = await poller.wait_for_transcript("u1", "m1", max_attempts=3, interval_seconds=1)

        assert content == "WEBVTT\n"
        assert sleep.await_count == 1

    @pytest.mark.asyncio
    async def test_failed_download_counts_as_attempt(self, poller, transcript_service, sleep):
        transcript_service.list_transcripts.return_value = [descriptor("t1")]
        transcript_service.download_content.side_effect = [GraphApiError("Graph API returned 404"), "content"]

        content = await poller.wait_for_transcript("u1", "m1", max_attempts=2, interval_seconds=1)

        assert content == "content"
        assert transcript_service.list_transcripts.await_count == 2

    @pytest.mark.asyncio
    async def test_single_attempt_never_sleeps(self, poller, sleep):
        with pytest.raises(TranscriptNotFoundError):
            await poller.wait_for_transcript("u1", "m1", max_attempts=1, interval_seconds=30)

        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_defaults_come_from_environment(self, transcript_service, sleep, monkeypatch):
        monkeypatch.setenv("TRANSCRIPT_POLL_ATTEMPTS", "4")
        monkeypatch.setenv("TRANSCRIPT_POLL_INTERVAL_SECONDS", "2.5")
        poller = TranscriptPoller(transcript_service, sleep=sleep)

        with pytest.raises(TranscriptNotFoundError):
            await poller.wait_for_transcript("u1", "m1")

        assert transcript_service.list_transcripts.await_count == 4
        assert sleep.await_count == 3
        sleep.assert_awaited_with(2.5)

    def test_default_bounds(self, transcript_service, monkeypatch):
        monkeypatch.delenv("TRANSCRIPT_POLL_ATTEMPTS", raising=False)
        monkeypatch.delenv("TRANSCRIPT_POLL_INTERVAL_SECONDS", raising=False)

        poller = TranscriptPoller(transcript_service)

        assert poller.max_attempts == 20
        assert poller.interval_seconds == 30.0

    @pytest.mark.asyncio
    async def test_unreadable_listing_counts_as_attempt(self, sleep):
        """A listing entry without a creation time is retried like a failed query."""
        graph = MagicMock()
        graph.get = AsyncMock(side_effect=[
            {"value": [{"id": "t1"}]},
            {"value": [{"id": "t2", "createdDateTime": "2026-03-02T10:05:00Z"}]},
        ])
        graph.get_text = AsyncMock(return_value="WEBVTT\n\nready")
        poller = TranscriptPoller(TranscriptService(graph), sleep=sleep)

        content = await poller.wait_for_transcript("u1", "m1", max_attempts=3, interval_seconds=1)

        assert content == "WEBVTT\n\nready"
        assert graph.get.await_count == 2
        assert sleep.await_count == 1

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_not_retried(self, poller, transcript_service, sleep):
        transcript_service.list_transcripts.side_effect = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await poller.wait_for_transcript("u1", "m1", max_attempts=3, interval_seconds=1)

        assert transcript_service.list_transcripts.await_count == 1
        sleep.assert_not_awaited()
