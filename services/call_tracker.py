"""
Call Lifecycle Tracker.

Consumes calling webhook events and maintains the call -> meeting
association. When a tracked call terminates, the association is removed and
the meeting is handed to the pipeline queue exactly once; repeated or
out-of-order terminations find nothing to remove and do nothing.

State handling:
    establishing -> logged only
    established  -> association created (or promoted if pre-registered)
    terminated   -> association removed, pipeline job submitted
    anything else -> logged and ignored
"""
import logging
from typing import Optional

from models.call_models import CallAssociation, CallEvent, CallState
from models.job_models import PipelineJob
from services.call_service import CallService
from services.call_store import CallAssociationStore
from services.pipeline_queue import PipelineQueue
from utils.errors import MinutesServiceError

logger = logging.getLogger(__name__)


class CallLifecycleTracker:
    def __init__(
        self,
        store: CallAssociationStore,
        call_service: CallService,
        queue: PipelineQueue,
    ):
        self.store = store
        self.call_service = call_service
        self.queue = queue

    async def handle_event(self, event: CallEvent) -> None:
        """Dispatch one webhook event by its reported call state."""
        call_id = event.resolved_call_id
        if not call_id:
            logger.warning(f"Call event without a call id ignored: resource_url={event.resource_url}")
            return

        state = event.state
        if state is CallState.establishing:
            await self.record_establishing(call_id)
        elif state is CallState.established:
            await self.record_established(call_id)
        elif state is CallState.terminated:
            await self.record_terminated(call_id)
        else:
            raw_state = event.resource_data.state if event.resource_data else None
            logger.info(f"Call event ignored: call_id={call_id}, state={raw_state}")

    async def record_establishing(self, call_id: str) -> None:
        logger.info(f"Call establishing: call_id={call_id}")

    async def record_established(self, call_id: str) -> Optional[CallAssociation]:
        """
        Start tracking an established call.

        A pre-registered association (manual join) is promoted; otherwise the
        meeting is resolved from the call details. Calls that cannot be
        resolved stay untracked.

        Returns:
            The stored association, or None if the call is not tracked
        """
        logger.info(f"Call established: call_id={call_id}")

        association = await self.store.get(call_id)
        if association is None:
            if await self.store.is_terminated(call_id):
                logger.info(f"Stale established event for terminated call ignored: call_id={call_id}")
                return None
            association = await self._resolve_association(call_id)
            if association is None:
                return None

        association.state = CallState.established
        if not await self.store.put(association):
            logger.info(f"Call terminated while establishing, not tracked: call_id={call_id}")
            return None

        logger.info(
            f"Call tracked: call_id={call_id}, meeting_id={association.meeting_id}, "
            f"user_id={association.user_id}"
        )
        return association

    async def record_terminated(self, call_id: str) -> Optional[PipelineJob]:
        """
        Hand a terminated call off to the pipeline.

        Returns:
            The submitted job, or None if the call was not tracked (or was
            already handed off)
        """
        association = await self.store.pop(call_id)
        if association is None:
            logger.info(f"Call terminated with no tracked meeting: call_id={call_id}")
            return None

        logger.info(
            f"Call terminated, scheduling minutes: call_id={call_id}, "
            f"meeting_id={association.meeting_id}"
        )
        return self.queue.submit(association.meeting_id, association.user_id, call_id)

    async def register(self, call_id: str, meeting_id: str, user_id: str) -> bool:
        """Pre-register the meeting a call belongs to (manual join flow)."""
        registered = await self.store.put(
            CallAssociation(call_id=call_id, meeting_id=meeting_id, user_id=user_id)
        )
        if registered:
            logger.info(f"Call registered: call_id={call_id}, meeting_id={meeting_id}")
        else:
            logger.warning(f"Call already terminated, not registered: call_id={call_id}")
        return registered

    async def _resolve_association(self, call_id: str) -> Optional[CallAssociation]:
        try:
            call = await self.call_service.get_call(call_id)
            context = await self.call_service.resolve_meeting_context(call)
        except MinutesServiceError as e:
            logger.warning(
                f"Could not look up call, leaving it untracked: call_id={call_id}, "
                f"code={e.code}, error={e.message}"
            )
            return None

        if context is None:
            logger.info(f"Meeting for call could not be resolved, leaving it untracked: call_id={call_id}")
            return None

        meeting_id, user_id = context
        return CallAssociation(call_id=call_id, meeting_id=meeting_id, user_id=user_id)
