"""
Call Info client.

Joins the bot to Teams meetings, reads and ends calls, and resolves which
online meeting (and organizer) a call belongs to.
"""
import logging
import os
from typing import Optional, Tuple
from urllib.parse import unquote, urlparse

from models.call_models import CallRecord
from services.graph_service import GraphService
from utils.errors import GraphApiError, InvalidInputError

logger = logging.getLogger(__name__)


class CallService:
    """Call operations against the Graph communications API."""

    def __init__(self, graph_service: GraphService):
        """
        Args:
            graph_service: Authenticated Graph client

        Raises:
            ValueError: If CALLING_WEBHOOK_URL or the app registration is not configured
        """
        self.graph = graph_service
        self.callback_uri = os.getenv("CALLING_WEBHOOK_URL")
        self.app_id = os.getenv("MICROSOFT_APP_ID")
        self.tenant_id = os.getenv("MICROSOFT_APP_TENANT_ID")
        self.display_name = os.getenv("BOT_DISPLAY_NAME", "Meeting Minutes Bot")

        if not self.callback_uri:
            raise ValueError("CALLING_WEBHOOK_URL environment variable is required")
        if not (self.app_id and self.tenant_id):
            raise ValueError("MICROSOFT_APP_ID and MICROSOFT_APP_TENANT_ID environment variables are required")

        logger.info(f"CallService initialized: callback_uri={self.callback_uri}")

    async def get_call(self, call_id: str) -> CallRecord:
        logger.debug(f"Getting call: call_id={call_id}")
        payload = await self.graph.get(f"/communications/calls/{call_id}")
        return CallRecord.model_validate(payload)

    async def join_meeting(self, join_url: str) -> CallRecord:
        """
        Join the bot to a Teams meeting.

        Args:
            join_url: The meeting's Teams join URL

        Returns:
            The created call

        Raises:
            InvalidInputError: If the URL is not a Teams join URL or has no thread id
            GraphApiError: If Graph rejects the call creation
        """
        if not self.is_valid_join_url(join_url):
            raise InvalidInputError(
                "Invalid Teams meeting URL",
                code="INVALID_JOIN_URL",
                details={"meeting_join_url": join_url},
            )

        thread_id = self.extract_thread_id(join_url)
        if not thread_id:
            raise InvalidInputError(
                "Invalid meeting join URL - could not extract thread ID",
                code="INVALID_JOIN_URL",
                details={"meeting_join_url": join_url},
            )

        logger.info(f"Joining meeting: thread_id={thread_id}")

        payload = {
            "@odata.type": "#microsoft.graph.call",
            "callbackUri": self.callback_uri,
            "source": {
                "identity": {
                    "application": {
                        "id": self.app_id,
                        "displayName": self.display_name,
                    },
                },
            },
            "requestedModalities": ["audio"],
            "mediaConfig": {
                "@odata.type": "#microsoft.graph.serviceHostedMediaConfig",
            },
            "chatInfo": {
                "@odata.type": "#microsoft.graph.chatInfo",
                "threadId": thread_id,
                "messageId": "0",
            },
            "tenantId": self.tenant_id,
        }

        response = await self.graph.post("/communications/calls", payload)
        call = CallRecord.model_validate(response)
        logger.info(f"Joined meeting: call_id={call.id}, state={call.state}")
        return call

    async def leave_call(self, call_id: str) -> None:
        logger.info(f"Leaving call: call_id={call_id}")
        await self.graph.delete(f"/communications/calls/{call_id}")
        logger.info(f"Left call: call_id={call_id}")

    async def resolve_meeting_context(self, call: CallRecord) -> Optional[Tuple[str, str]]:
        """
        Work out the (meeting_id, user_id) a call belongs to.

        The organizer is read from the call's meeting info; the online meeting
        is then looked up under that organizer by its join URL.

        Returns:
            (meeting_id, organizer_user_id), or None when either is unknown
        """
        organizer_id = call.organizer_id
        join_url = call.join_url
        if not organizer_id or not join_url:
            logger.info(
                f"Call has no organizer or join URL, cannot resolve meeting: call_id={call.id}"
            )
            return None

        escaped = join_url.replace("'", "''")
        try:
            result = await self.graph.get(
                f"/users/{organizer_id}/onlineMeetings",
                params={"$filter": f"JoinWebUrl eq '{escaped}'"},
            )
        except GraphApiError as e:
            logger.warning(
                f"Online meeting lookup failed: call_id={call.id}, organizer_id={organizer_id}, error={e.message}"
            )
            return None

        meetings = result.get("value") or []
        if not meetings or not meetings[0].get("id"):
            logger.info(f"No online meeting matches the call's join URL: call_id={call.id}")
            return None

        return meetings[0]["id"], organizer_id

    @staticmethod
    def is_valid_join_url(url: str) -> bool:
        try:
            parsed = urlparse(url)
        except ValueError:
            return False
        return "teams.microsoft.com" in (parsed.hostname or "") and "meetup-join" in parsed.path

    @staticmethod
    def extract_thread_id(join_url: str) -> Optional[str]:
        """Return the decoded conversation thread id from a join URL's path."""
        try:
            path = urlparse(join_url).path
        except ValueError:
            return None
        for segment in path.split("/"):
            if "thread.v2" in segment or "thread.skype" in segment:
                return unquote(segment)
        # Some links arrive with the thread id already percent-decoded
        decoded = unquote(path)
        for segment in decoded.split("/"):
            if "thread.v2" in segment or "thread.skype" in segment:
                return segment
        logger.warning("Could not extract thread id from join URL")
        return None
