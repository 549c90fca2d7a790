"""Service wiring: every service is built once at startup and shared."""
import logging
from dataclasses import dataclass
from typing import Optional

from services.auth_service import AuthService
from services.call_service import CallService
from services.call_store import CallAssociationStore, build_call_store
from services.call_tracker import CallLifecycleTracker
from services.graph_service import GraphService
from services.meeting_pipeline import MeetingPipeline
from services.minutes_service import MinutesService
from services.pipeline_queue import PipelineQueue
from services.transcript_poller import TranscriptPoller
from services.transcript_service import TranscriptService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    call_service: CallService
    transcript_service: TranscriptService
    minutes_service: MinutesService
    call_store: CallAssociationStore
    pipeline: MeetingPipeline
    queue: PipelineQueue
    tracker: CallLifecycleTracker
    auth_service: Optional[AuthService] = None
    graph_service: Optional[GraphService] = None

    async def aclose(self) -> None:
        await self.queue.shutdown()
        await self.call_store.close()
        if self.graph_service is not None:
            await self.graph_service.aclose()
        if self.auth_service is not None:
            await self.auth_service.aclose()
        logger.info("Services closed")


def build_container() -> ServiceContainer:
    """
    Build the production service graph from environment configuration.

    Raises:
        ValueError: If a required setting is missing
    """
    auth_service = AuthService()
    graph_service = GraphService(auth_service)
    call_service = CallService(graph_service)
    transcript_service = TranscriptService(graph_service)
    minutes_service = MinutesService()
    call_store = build_call_store()

    pipeline = MeetingPipeline(
        poller=TranscriptPoller(transcript_service),
        transcript_service=transcript_service,
        minutes_service=minutes_service,
    )
    queue = PipelineQueue(pipeline.run)
    tracker = CallLifecycleTracker(call_store, call_service, queue)

    return ServiceContainer(
        call_service=call_service,
        transcript_service=transcript_service,
        minutes_service=minutes_service,
        call_store=call_store,
        pipeline=pipeline,
        queue=queue,
        tracker=tracker,
        auth_service=auth_service,
        graph_service=graph_service,
    )
