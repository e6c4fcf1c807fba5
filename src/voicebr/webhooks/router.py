"""
FastAPI router for voice platform webhooks.

Routes only parse the request and hand over to WebhookDispatcher. The
platform must only ever see 200, 400, 401 or 500.
"""

from __future__ import annotations

import json
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import ValidationError

from voicebr.shared.exceptions import PayloadDecodeError
from voicebr.shared.logging import get_logger
from voicebr.webhooks.handler import WebhookDispatcher, caller_from_request
from voicebr.webhooks.schemas import RecordingEvent

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])

WEBHOOK_METHODS = ["GET", "POST"]


def get_dispatcher(request: Request) -> WebhookDispatcher:
    """Dispatcher wired by the application lifespan."""
    return request.app.state.dispatcher


Dispatcher = Annotated[WebhookDispatcher, Depends(get_dispatcher)]


async def _log_event(source: str, request: Request, dispatcher: WebhookDispatcher) -> Response:
    if request.method == "POST":
        dispatcher.log_event(source, await request.body())
    return Response(status_code=status.HTTP_200_OK)


@router.api_route("/record/voice/answer", methods=WEBHOOK_METHODS)
async def record_voice_answer(request: Request, dispatcher: Dispatcher) -> list[dict[str, Any]]:
    """Inbound call answered: authorize the caller and start recording."""
    caller = await caller_from_request(request)
    return await dispatcher.answer_inbound(caller)


@router.api_route("/record/voice/event", methods=WEBHOOK_METHODS)
async def record_voice_event(request: Request, dispatcher: Dispatcher) -> Response:
    return await _log_event("record", request, dispatcher)


@router.api_route("/store/recording/event", methods=WEBHOOK_METHODS)
async def store_recording_event(request: Request, dispatcher: Dispatcher) -> Response:
    """Recording ready: download, store and broadcast it."""
    if request.method != "POST":
        return Response(status_code=status.HTTP_200_OK)

    raw = await request.body()
    try:
        event = RecordingEvent.model_validate(json.loads(raw))
    except (ValueError, ValidationError) as e:
        logger.error("Store recording: unable to decode recording event", extra={"error": str(e)})
        raise PayloadDecodeError(f"unable to decode recording event: {e}") from e

    await dispatcher.store_recording(event)
    return Response(status_code=status.HTTP_200_OK)


# Registered before /play/recording/{name} so "event" is not taken as a name.
@router.api_route("/play/recording/event", methods=WEBHOOK_METHODS)
async def play_recording_event(request: Request, dispatcher: Dispatcher) -> Response:
    return await _log_event("play", request, dispatcher)


@router.api_route("/play/recording/{name}", methods=WEBHOOK_METHODS)
async def play_recording(name: str, dispatcher: Dispatcher) -> list[dict[str, Any]]:
    """Outbound call answered: play the stored recording."""
    return dispatcher.play_recording(name)
