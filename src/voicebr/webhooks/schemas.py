"""
Webhook payload schemas.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field


class VoiceAnswerRequest(BaseModel):
    """Body the platform posts when it asks how to handle an answered call."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    from_: str = Field(default="", alias="from")
    to: str | None = None
    uuid: str | None = None
    conversation_uuid: str | None = None


class RecordingEvent(BaseModel):
    """Body the platform posts once a recording is available."""

    model_config = ConfigDict(extra="ignore")

    recording_url: str = Field(..., min_length=1)
    recording_uuid: str = Field(..., min_length=1)
    conversation_uuid: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    size: int | None = None
    timestamp: str | None = None


@dataclass(frozen=True)
class RecordingReference:
    """A recording persisted by the storage collaborator."""

    uuid: str
    storage_path: str
