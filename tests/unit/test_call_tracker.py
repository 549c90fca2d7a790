"""
Unit Tests for CallLifecycleTracker

Uses the in-memory association store with a mocked Call Info client and a
mocked pipeline queue, so each test can assert exactly what was handed off.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from models.call_models import CallEvent, CallRecord, CallState
from services.call_store import InMemoryCallStore
from services.call_tracker import CallLifecycleTracker
from utils.errors import GraphApiError


def event(call_id: str, state: str) -> CallEvent:
    return CallEvent.model_validate({
        "callId": call_id,
        "resourceUrl": f"/communications/calls/{call_id}",
        "changeType": "updated",
        "resourceData": {"state": state},
    })


@pytest.fixture
def store():
    return InMemoryCallStore()


@pytest.fixture
def call_service():
    service = MagicMock()
    service.get_call = AsyncMock(return_value=CallRecord(id="c1", state="established"))
    service.resolve_meeting_context = AsyncMock(return_value=("m1", "u1"))
    return service


@pytest.fixture
def queue():
    queue = MagicMock()
    queue.submit = MagicMock(return_value=MagicMock(job_id="job-1"))
    return queue


@pytest.fixture
def tracker(store, call_service, queue):
    return CallLifecycleTracker(store, call_service, queue)


class TestEstablished:

    @pytest.mark.asyncio
    async def test_established_resolves_and_tracks_call(self, tracker, store, call_service):
        await tracker.handle_event(event("c1", "established"))

        stored = await store.get("c1")
        assert (stored.meeting_id, stored.user_id) == ("m1", "u1")
        assert stored.state == CallState.established
        call_service.get_call.assert_awaited_once_with("c1")

    @pytest.mark.asyncio
    async def test_preregistered_call_is_promoted_without_lookup(self, tracker, store, call_service):
        await tracker.register("c1", "m-manual", "u-manual")

        await tracker.handle_event(event("c1", "established"))

        stored = await store.get("c1")
        assert stored.meeting_id == "m-manual"
        assert stored.state == CallState.established
        call_service.get_call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unresolvable_call_stays_untracked(self, tracker, store, call_service):
        call_service.resolve_meeting_context.return_value = None

        result = await tracker.record_established("c1")

        assert result is None
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_failed_lookup_leaves_call_untracked(self, tracker, store, call_service):
        call_service.get_call.side_effect = GraphApiError("Graph API returned 404")

        result = await tracker.record_established("c1")

        assert result is None
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_stale_established_after_termination_is_ignored(self, tracker, store, queue):
        await tracker.handle_event(event("c1", "established"))
        await tracker.handle_event(event("c1", "terminated"))

        await tracker.handle_event(event("c1", "established"))

        assert await store.get("c1") is None
        queue.submit.assert_called_once()


class TestTerminated:

    @pytest.mark.asyncio
    async def test_termination_hands_off_once(self, tracker, store, queue):
        await tracker.handle_event(event("c1", "established"))

        await tracker.handle_event(event("c1", "terminated"))
        await tracker.handle_event(event("c1", "terminated"))

        queue.submit.assert_called_once_with("m1", "u1", "c1")
        assert await store.get("c1") is None

    @pytest.mark.asyncio
    async def test_termination_of_untracked_call_is_noop(self, tracker, queue):
        result = await tracker.record_terminated("unknown")

        assert result is None
        queue.submit.assert_not_called()

    @pytest.mark.asyncio
    async def test_record_terminated_returns_job(self, tracker, store):
        await tracker.register("c1", "m1", "u1")

        job = await tracker.record_terminated("c1")

        assert job.job_id == "job-1"

    @pytest.mark.asyncio
    async def test_register_after_termination_is_refused(self, tracker):
        await tracker.record_terminated("c1")

        assert await tracker.register("c1", "m1", "u1") is False


class TestDispatch:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("state", ["incoming", "hold", "transferring", "ringing", None])
    async def test_other_states_are_ignored(self, tracker, store, call_service, queue, state):
        raw = {"callId": "c1"}
        if state is not None:
            raw["resourceData"] = {"state": state}

        await tracker.handle_event(CallEvent.model_validate(raw))

        call_service.get_call.assert_not_awaited()
        queue.submit.assert_not_called()
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_establishing_only_logs(self, tracker, store, call_service):
        await tracker.handle_event(event("c1", "establishing"))

        call_service.get_call.assert_not_awaited()
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_call_id_falls_back_to_resource_url(self, tracker, store):
        raw = {
            "resourceUrl": "/communications/calls/c9",
            "resourceData": {"state": "Established"},
        }

        await tracker.handle_event(CallEvent.model_validate(raw))

        assert await store.get("c9") is not None

    @pytest.mark.asyncio
    async def test_event_without_call_id_is_ignored(self, tracker, call_service):
        await tracker.handle_event(CallEvent.model_validate({"resourceData": {"state": "established"}}))

        call_service.get_call.assert_not_awaited()
