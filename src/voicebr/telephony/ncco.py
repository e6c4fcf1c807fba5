"""
Call control instructions (NCCO) returned to the voice platform.

Each webhook that answers a call responds with an ordered list of actions.
Field names follow the platform's camelCase wire format.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class NCCOAction(BaseModel):
    """Base class for a single call control action."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TalkAction(NCCOAction):
    """Read text to the caller with text-to-speech."""

    action: Literal["talk"] = "talk"
    voice_name: str | None = Field(default=None, alias="voiceName")
    level: float | None = None
    text: str


class RecordAction(NCCOAction):
    """Record the caller; the platform posts the result to event_url."""

    action: Literal["record"] = "record"
    beep_start: bool = Field(default=True, alias="beepStart")
    format: str = "mp3"
    event_url: list[str] = Field(alias="eventUrl")
    end_on_key: str | None = Field(default="#", alias="endOnKey")


class StreamAction(NCCOAction):
    """Play an audio file fetched from stream_url."""

    action: Literal["stream"] = "stream"
    level: float | None = None
    stream_url: list[str] = Field(alias="streamUrl")


def render(actions: list[NCCOAction]) -> list[dict[str, Any]]:
    """Serialize actions in order."""
    return [a.to_wire() for a in actions]
