"""
Storage interface consumed by the broadcast pipeline.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol


class ContactsProvider(Protocol):
    """Source of the raw whitelist and broadcast list."""

    async def read_whitelist(self) -> bytes:
        """Return the raw whitelist content."""
        ...

    async def read_broadcast_list(self) -> bytes:
        """Return the raw broadcast list content."""
        ...


class Storage(ContactsProvider, Protocol):
    """Contacts plus recording persistence.

    Implementations must tolerate concurrent reads and writes.
    """

    @property
    def rec_dir(self) -> Path:
        """Directory whose files are served under /static."""
        ...

    async def write_rec(self, content: bytes, filename: str) -> str:
        """Persist a recording and return where it was written."""
        ...
