"""
Local filesystem storage.

Layout under root_dir:
    whitelist.csv    numbers allowed to record a broadcast
    broadcast.csv    numbers receiving the broadcast
    recs/            stored recordings, served under /static
"""

from __future__ import annotations

from pathlib import Path

import anyio

from voicebr.shared.exceptions import StorageError
from voicebr.shared.logging import get_logger

logger = get_logger(__name__)

RECS_DIRNAME = "recs"


class LocalStorage:
    """Storage backed by a local directory."""

    def __init__(
        self,
        root_dir: Path | str,
        whitelist_filename: str = "whitelist.csv",
        broadcast_list_filename: str = "broadcast.csv",
    ) -> None:
        self.root_dir = Path(root_dir)
        self.whitelist_path = self.root_dir / whitelist_filename
        self.broadcast_list_path = self.root_dir / broadcast_list_filename

    @property
    def rec_dir(self) -> Path:
        return self.root_dir / RECS_DIRNAME

    async def ensure_layout(self) -> None:
        try:
            await anyio.Path(self.rec_dir).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(
                f"local storage error: unable to create {self.rec_dir}: {e}",
                {"path": str(self.rec_dir)},
            ) from e

    async def read_whitelist(self) -> bytes:
        return await self._read(self.whitelist_path)

    async def read_broadcast_list(self) -> bytes:
        return await self._read(self.broadcast_list_path)

    async def write_rec(self, content: bytes, filename: str) -> str:
        """Write a recording to recs/<filename> and return its path."""
        if not filename or filename in (".", "..") or "/" in filename or "\\" in filename:
            raise StorageError(
                f"local storage error: invalid recording name {filename!r}",
                {"filename": filename},
            )

        await self.ensure_layout()
        path = self.rec_dir / filename
        try:
            await anyio.Path(path).write_bytes(content)
        except OSError as e:
            raise StorageError(
                f"local storage error: unable to write recording: {e}",
                {"path": str(path)},
            ) from e

        logger.info("Recording stored", extra={"path": str(path), "size": len(content)})
        return str(path)

    async def _read(self, path: Path) -> bytes:
        try:
            return await anyio.Path(path).read_bytes()
        except OSError as e:
            raise StorageError(
                f"local storage error: unable to open contacts file: {e}",
                {"path": str(path)},
            ) from e
