"""
Broadcast orchestration: one stored recording, one outbound call per contact.

Fan-out is best effort. Every recipient gets an independent task with its own
deadline; a failed call is logged and never cancels its siblings. Nothing is
aggregated or returned to the webhook that triggered the broadcast.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from voicebr.config import VONAGE_CALLS_URL
from voicebr.contacts.directory import load_directory
from voicebr.contacts.models import PHONE, Contact
from voicebr.shared.exceptions import AppException
from voicebr.shared.logging import get_logger
from voicebr.storage.interface import ContactsProvider
from voicebr.telephony.client import SignedClient

logger = get_logger(__name__)

PLAY_RECORDING_PATH = "/play/recording/"
PLAY_EVENT_PATH = "/play/recording/event"


@dataclass(frozen=True)
class CallDeadlinePolicy:
    """Per-call deadline: max(min_batches, contacts // rate) * factor seconds.

    With the default factor every call gets about twice the time the call
    limiter needs to drain the whole batch.
    """

    factor: float = 2.0
    min_batches: int = 1

    def deadline(self, contact_count: int, rate: float) -> float:
        batches = max(self.min_batches, int(contact_count // rate))
        return batches * self.factor


@dataclass(frozen=True)
class CallTask:
    """A single outbound call attempt."""

    contact: Contact
    recording_name: str
    deadline: float


def build_call_payload(task: CallTask, number: str, origin: str) -> dict[str, Any]:
    """Build the call-creation request body for one recipient."""
    return {
        "to": [task.contact.to_endpoint()],
        "from": {"type": PHONE, "number": number},
        "answer_url": [f"{origin}{PLAY_RECORDING_PATH}{task.recording_name}"],
        "event_url": [f"{origin}{PLAY_EVENT_PATH}"],
    }


class BroadcastOrchestrator:
    """Turns a stored recording into N independent outbound calls."""

    def __init__(
        self,
        client: SignedClient,
        contacts: ContactsProvider,
        *,
        calls_url: str = VONAGE_CALLS_URL,
        deadline_policy: CallDeadlinePolicy | None = None,
    ) -> None:
        self._client = client
        self._contacts = contacts
        self._calls_url = calls_url
        self._deadline_policy = deadline_policy or CallDeadlinePolicy()
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def broadcast(self, recording_name: str) -> list[asyncio.Task[None]]:
        """Start one call per broadcast-list contact.

        Returns as soon as the calls are scheduled. The returned tasks never
        raise; their outcome is only logged.

        Args:
            recording_name: Stored recording file played to each recipient.

        Returns:
            The scheduled call tasks, empty when the broadcast list could not
            be decoded.
        """
        try:
            directory = await load_directory(self._contacts.read_broadcast_list)
        except AppException as e:
            logger.error(
                "Broadcast aborted: unable to decode broadcast list",
                extra={"recording_name": recording_name, "error": e.message, "code": e.code},
            )
            return []

        contacts = directory.contacts
        deadline = self._deadline_policy.deadline(len(contacts), self._client.call_limiter.rate)

        logger.info(
            "Broadcast starting",
            extra={
                "recording_name": recording_name,
                "contacts": len(contacts),
                "partial": directory.partial,
                "deadline_seconds": deadline,
            },
        )

        tasks = []
        for contact in contacts:
            call = CallTask(contact=contact, recording_name=recording_name, deadline=deadline)
            task = asyncio.create_task(self._run(call), name=f"broadcast-call-{contact.number}")
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            tasks.append(task)
        return tasks

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight calls; cancel whatever is left after timeout."""
        if not self._pending:
            return
        tasks = list(self._pending)
        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning("Cancelled in-flight broadcast calls", extra={"count": len(still_running)})
            await asyncio.gather(*still_running, return_exceptions=True)

    async def _run(self, call: CallTask) -> None:
        logger.info(
            "Calling contact",
            extra={
                "contact_name": call.contact.name,
                "to": call.contact.number,
                "recording_name": call.recording_name,
            },
        )
        try:
            await asyncio.wait_for(self._place_call(call), timeout=call.deadline)
        except asyncio.TimeoutError:
            logger.error(
                "Call error: deadline exceeded",
                extra={"to": call.contact.number, "deadline_seconds": call.deadline},
            )
        except AppException as e:
            logger.error(
                "Call error",
                extra={"to": call.contact.number, "error": e.message, "code": e.code},
            )
        except Exception:
            logger.exception("Unexpected call error", extra={"to": call.contact.number})

    async def _place_call(self, call: CallTask) -> None:
        payload = build_call_payload(call, self._client.number, self._client.origin)
        response = await self._client.post(self._calls_url, payload)
        logger.info(
            "Call created",
            extra={"to": call.contact.number, "status_code": response.status_code},
        )
