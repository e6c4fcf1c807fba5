"""
Decoding of comment-tolerant `number,name` contact lists.

A single malformed line in a hand-edited list must not block a whole
broadcast: bad rows are dropped and reported, the rest is returned.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterator

from voicebr.contacts.models import Contact
from voicebr.shared.exceptions import DirectoryDecodeError, PartialDirectoryError
from voicebr.shared.logging import get_logger

logger = get_logger(__name__)

COMMENT_PREFIX = "#"
BOM = "\ufeff"


@dataclass(frozen=True)
class RejectedRow:
    """A directory line that could not be turned into a Contact."""

    line_number: int
    raw: str
    reason: str


@dataclass(frozen=True)
class ContactDirectory:
    """Ordered snapshot of a decoded directory."""

    contacts: tuple[Contact, ...]
    rejected: tuple[RejectedRow, ...] = ()

    def __iter__(self) -> Iterator[Contact]:
        return iter(self.contacts)

    def __len__(self) -> int:
        return len(self.contacts)

    @property
    def partial(self) -> bool:
        return bool(self.rejected)

    @property
    def error(self) -> PartialDirectoryError | None:
        """The partial-decode signal, or None when every row was decoded."""
        if not self.rejected:
            return None
        return PartialDirectoryError(list(self.rejected))

    def find(self, number: str) -> Contact | None:
        """Contact for `number`; the last row wins when a number repeats."""
        for contact in reversed(self.contacts):
            if contact.number == number:
                return contact
        return None


def decode_contacts(content: bytes | str, encoding: str = "utf-8-sig") -> ContactDirectory:
    """Decode a contact list.

    Lines starting with '#' are comments and blank lines are ignored. Every
    other line is a CSV record `number,name`; extra fields are ignored.

    Args:
        content: Raw directory content.
        encoding: Encoding used when content is bytes. The default drops a
            leading byte order mark.

    Returns:
        The decoded directory. Rows with fewer than two fields or an empty
        number are listed in `rejected` and make the directory partial.

    Raises:
        DirectoryDecodeError: The content is not valid text or CSV.
    """
    if isinstance(content, bytes):
        try:
            text = content.decode(encoding)
        except UnicodeDecodeError as e:
            raise DirectoryDecodeError(f"decode contacts: {e}") from e
    else:
        text = content.removeprefix(BOM)

    contacts: list[Contact] = []
    rejected: list[RejectedRow] = []

    for line_number, line in enumerate(text.splitlines(), start=1):
        if line.startswith(COMMENT_PREFIX) or not line.strip():
            continue

        try:
            fields = next(csv.reader([line], strict=True))
        except csv.Error as e:
            raise DirectoryDecodeError(
                f"decode contacts: line {line_number}: {e}",
                {"line_number": line_number},
            ) from e

        fields = [f.strip() for f in fields]
        if len(fields) < 2:
            rejected.append(RejectedRow(line_number, line, "expected number,name"))
            continue
        if not fields[0]:
            rejected.append(RejectedRow(line_number, line, "empty number"))
            continue

        contacts.append(Contact(number=fields[0], name=fields[1]))

    return ContactDirectory(contacts=tuple(contacts), rejected=tuple(rejected))


async def load_directory(read: Callable[[], Awaitable[bytes]]) -> ContactDirectory:
    """Read a directory from storage and decode it.

    The source is read on every call; directories are never cached so edits
    on disk take effect immediately.
    """
    directory = decode_contacts(await read())
    if directory.partial:
        logger.warning(
            "Contact directory decoded partially",
            extra={
                "decoded": len(directory),
                "rejected_lines": [r.line_number for r in directory.rejected],
            },
        )
    return directory
