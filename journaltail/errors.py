"""Exception hierarchy for the journal watcher."""

from __future__ import annotations

from typing import Optional


class JournalTailError(Exception):
    """Base class for every error raised by journaltail."""


class DirectoryUnavailableError(JournalTailError):
    """The watch directory cannot be listed or has gone away."""


class NoJournalFoundError(JournalTailError):
    """Discovery found no journal file in the watch directory."""


class ReadError(JournalTailError):
    """An existing journal or data file could not be opened or read."""


class ParseError(JournalTailError):
    """A journal line or data file is not a single JSON object.

    ``raw`` keeps the offending bytes for diagnostics; ``line_index`` is set
    for journal lines only.
    """

    def __init__(self, message: str, raw: bytes = b"", line_index: Optional[int] = None) -> None:
        super().__init__(message)
        self.raw = raw
        self.line_index = line_index


class EmptyDataFileError(JournalTailError):
    """A data file was exactly zero bytes (writer mid-rewrite). Not fatal."""
