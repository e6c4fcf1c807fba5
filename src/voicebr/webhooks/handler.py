"""
Webhook dispatcher linking voice platform events to the broadcast pipeline.

There is no persisted state machine: the stage of a call cycle is implied by
which webhook arrives.

    inbound answer (whitelisted caller) -> recording
    recording stored                    -> broadcast started
    outbound answer                     -> playback of the stored recording
    any event webhook                   -> logged only
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import Request
from pydantic import ValidationError

from voicebr.broadcast.orchestrator import BroadcastOrchestrator
from voicebr.config import Settings
from voicebr.contacts.directory import load_directory
from voicebr.shared.exceptions import (
    AppException,
    PayloadDecodeError,
    UnauthorizedCallerError,
)
from voicebr.shared.logging import get_logger
from voicebr.storage.interface import Storage
from voicebr.telephony import ncco
from voicebr.telephony.client import SignedClient
from voicebr.webhooks.schemas import RecordingEvent, RecordingReference, VoiceAnswerRequest

logger = get_logger(__name__)

STORE_RECORDING_EVENT_PATH = "/store/recording/event"
STATIC_PATH = "/static/"


async def caller_from_request(request: Request) -> str:
    """Extract the calling number: JSON body for POST, query string otherwise.

    Raises:
        PayloadDecodeError: A POST body is not a JSON object.
    """
    if request.method != "POST":
        return request.query_params.get("from", "")

    raw = await request.body()
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise PayloadDecodeError(f"unable to find calling number in request body: {e}") from e
    if not isinstance(data, dict):
        raise PayloadDecodeError("unable to find calling number in request body: not an object")
    try:
        return VoiceAnswerRequest.model_validate(data).from_
    except ValidationError as e:
        raise PayloadDecodeError(f"unable to find calling number in request body: {e}") from e


class WebhookDispatcher:
    """Handles the five webhooks of a broadcast cycle."""

    def __init__(
        self,
        client: SignedClient,
        storage: Storage,
        orchestrator: BroadcastOrchestrator,
        settings: Settings,
    ) -> None:
        self._client = client
        self._storage = storage
        self._orchestrator = orchestrator
        self._settings = settings

    def _talk(self, text: str) -> ncco.TalkAction:
        return ncco.TalkAction(
            text=text,
            voice_name=self._settings.voice_name,
            level=self._settings.talk_level,
        )

    async def answer_inbound(self, caller: str) -> list[dict[str, Any]]:
        """Authorize an inbound caller and ask the platform to record them.

        The whitelist is read and decoded on every request.

        Raises:
            UnauthorizedCallerError: Caller missing or not whitelisted.
            DirectoryDecodeError: The whitelist could not be decoded.
            StorageError: The whitelist could not be read.
        """
        if not caller:
            raise UnauthorizedCallerError(message="unable to find calling number")

        logger.info("Authenticating caller", extra={"caller": caller})
        whitelist = await load_directory(self._storage.read_whitelist)

        contact = whitelist.find(caller)
        if contact is None:
            logger.warning("Caller cannot broadcast", extra={"caller": caller})
            raise UnauthorizedCallerError(caller)

        greeting = f"{self._settings.broadcast_greet_msg} {contact.name}".strip()
        return ncco.render(
            [
                self._talk(greeting),
                ncco.RecordAction(
                    format=self._settings.recording_format,
                    event_url=[self._settings.webhook_url(STORE_RECORDING_EVENT_PATH)],
                ),
            ]
        )

    def log_event(self, source: str, body: bytes) -> None:
        """Log a call progress event. Never fails."""
        logger.info(
            "[EVENT] %s",
            body.decode("utf-8", errors="replace"),
            extra={"source": source},
        )

    async def store_recording(self, event: RecordingEvent) -> RecordingReference | None:
        """Download a finished recording, persist it and start the broadcast.

        Download and storage failures abort this cycle; they are logged and
        not retried.

        Returns:
            The stored recording, or None when the cycle was aborted.
        """
        recording_name = f"{event.recording_uuid}.{self._settings.recording_format}"

        try:
            response = await self._client.get(event.recording_url)
        except AppException as e:
            logger.error(
                "Store recording: unable to download file",
                extra={"recording_uuid": event.recording_uuid, "error": e.message, "code": e.code},
            )
            return None

        try:
            path = await self._storage.write_rec(response.content, recording_name)
        except AppException as e:
            logger.error(
                "Store recording: unable to persist file",
                extra={"recording_uuid": event.recording_uuid, "error": e.message, "code": e.code},
            )
            return None

        reference = RecordingReference(uuid=event.recording_uuid, storage_path=path)
        await self._orchestrator.broadcast(recording_name)
        return reference

    def play_recording(self, name: str) -> list[dict[str, Any]]:
        """Instructions for an answered outbound call.

        Anyone presenting a recording name gets its playback instructions;
        the name embedded in the answer URL is the only credential.
        """
        return ncco.render(
            [
                self._talk(self._settings.playback_intro_msg),
                ncco.StreamAction(
                    level=self._settings.talk_level,
                    stream_url=[self._settings.webhook_url(f"{STATIC_PATH}{name}")],
                ),
                self._talk(self._settings.playback_outro_msg),
            ]
        )
