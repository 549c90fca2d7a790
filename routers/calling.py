"""
Calling webhook router.

Graph posts call state notifications here. Events in a batch are applied in
delivery order; a failing event is logged and does not affect the others or
the response. Post-call processing is only queued here, never awaited, so the
webhook always answers promptly.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from models.call_models import CallEvent
from services.container import ServiceContainer
from utils.context_utils import get_services
from utils.errors import InvalidInputError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["calling"])


@router.post("/calling")
async def calling_webhook(
    request: Request,
    validation_token: Optional[str] = Query(default=None, alias="validationToken"),
    services: ServiceContainer = Depends(get_services),
):
    """
    Receive a batch of call lifecycle notifications.

    Returns:
        202 {"status": "accepted"} once every event has been applied, or the
        echoed validationToken (text/plain) for subscription validation

    Raises:
        InvalidInputError: 400 if the body has no `value` list
    """
    if validation_token:
        logger.info("Calling webhook validation request answered")
        return PlainTextResponse(validation_token)

    try:
        body = await request.json()
    except ValueError:
        raise InvalidInputError("Notification body must be JSON")

    if not isinstance(body, dict) or not isinstance(body.get("value"), list):
        logger.warning("Invalid calling notification: missing value list")
        raise InvalidInputError("Invalid notification format: 'value' must be a list")

    events = body["value"]
    logger.info(f"Calling notification received: events={len(events)}")

    for index, raw_event in enumerate(events):
        try:
            event = CallEvent.model_validate(raw_event)
        except ValidationError as e:
            logger.warning(f"Malformed call event skipped: index={index}, errors={e.error_count()}")
            continue

        try:
            await services.tracker.handle_event(event)
        except Exception as e:
            logger.error(
                f"Call event handling failed: index={index}, call_id={event.resolved_call_id}, "
                f"error={type(e).__name__}: {e}",
                exc_info=True,
            )

    return JSONResponse(status_code=202, content={"status": "accepted"})
