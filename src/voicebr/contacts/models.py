"""
Contact domain model.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

PHONE = "phone"


@dataclass(frozen=True)
class Contact:
    """A phone endpoint decoded from a directory row.

    Numbers are opaque strings; the same number may appear more than once.
    """

    number: str
    name: str = ""
    kind: str = PHONE

    def to_endpoint(self) -> dict[str, str]:
        """Encode as a call endpoint. The name never leaves the process."""
        return {"type": self.kind, "number": self.number}

    @classmethod
    def from_endpoint(cls, payload: Mapping[str, Any]) -> "Contact":
        return cls(
            number=str(payload["number"]),
            kind=str(payload.get("type", PHONE)),
        )
