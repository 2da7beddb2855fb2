"""Journal discovery, incremental tail reads and data-file loading.

`latest_journal()` picks the newest journal file in a directory,
`JournalReader` returns only the lines appended since the last read, and
`load_data_file()` reads a whole snapshot file such as ``Status.json``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import (
    DirectoryUnavailableError,
    EmptyDataFileError,
    NoJournalFoundError,
    ParseError,
    ReadError,
)
from .parser import decode_object, record_type

logger = logging.getLogger(__name__)

JOURNAL_SUFFIX = ".log"
DATA_SUFFIX = ".json"


class MalformedLinePolicy(str, Enum):
    """What the reader does when one unread line is not a JSON object."""

    RETRY = "retry"  # fail the read, keep the cursor; next notification retries
    SKIP = "skip"  # log the line, skip it and advance past it


@dataclass
class TailCursor:
    """Lines already consumed from one journal file."""

    path: Path
    lines: int = 0
    identity: Optional[Tuple[int, int]] = None

    def reset(self) -> None:
        self.lines = 0
        self.identity = None


@dataclass
class JournalRecord:
    entry: Dict[str, Any]
    raw: bytes
    line_index: int
    event: str = field(init=False)

    def __post_init__(self) -> None:
        self.event = record_type(self.entry)


@dataclass
class DataSnapshot:
    name: str
    filename: str
    entry: Dict[str, Any]
    raw: bytes


def latest_journal(directory: Path, suffix: str = JOURNAL_SUFFIX) -> Path:
    """Return the journal file in *directory* with the newest mtime.

    Files sharing the newest mtime resolve to whichever was listed last.
    """
    try:
        entries = list(os.scandir(directory))
    except OSError as exc:
        raise DirectoryUnavailableError(f"cannot list {directory}: {exc}") from exc

    latest: Optional[Path] = None
    latest_mtime = 0.0
    for entry in entries:
        if not entry.name.endswith(suffix) or not entry.is_file():
            continue
        try:
            mtime = entry.stat().st_mtime
        except OSError as exc:
            raise ReadError(f"cannot stat {entry.path}: {exc}") from exc
        if latest is None or mtime >= latest_mtime:
            latest = Path(entry.path)
            latest_mtime = mtime

    if latest is None:
        raise NoJournalFoundError(f"no *{suffix} files found in {directory}")
    return latest


def _split_lines(content: bytes) -> List[bytes]:
    # Only newline-terminated lines are complete; an unterminated tail is a
    # write in progress and is picked up once its newline lands.
    return content.split(b"\n")[:-1]


class JournalReader:
    """Reads the unread suffix of one journal file, one whole line at a time."""

    def __init__(self, path: Path, policy: MalformedLinePolicy = MalformedLinePolicy.RETRY) -> None:
        self.cursor = TailCursor(Path(path))
        self.policy = MalformedLinePolicy(policy)

    @property
    def path(self) -> Path:
        return self.cursor.path

    def read_new(self) -> List[JournalRecord]:
        """Decode every line past the cursor and advance the cursor.

        Raises ``ReadError`` when the file cannot be read. Under the
        ``RETRY`` policy a malformed line raises ``ParseError`` and leaves
        the cursor where it was.
        """
        path = self.cursor.path
        try:
            with open(path, "rb") as fh:
                identity_stat = os.fstat(fh.fileno())
                content = fh.read()
        except OSError as exc:
            raise ReadError(f"cannot read journal {path}: {exc}") from exc

        identity = (identity_stat.st_dev, identity_stat.st_ino)
        lines = _split_lines(content)
        count = len(lines)

        if self.cursor.identity is not None and self.cursor.identity != identity:
            logger.warning("Journal %s was replaced; reading it from the start", path.name)
            self.cursor.reset()
        elif count < self.cursor.lines:
            logger.warning(
                "Journal %s shrank from %d to %d lines; reading it from the start",
                path.name,
                self.cursor.lines,
                count,
            )
            self.cursor.reset()

        records: List[JournalRecord] = []
        for index in range(self.cursor.lines, count):
            raw = lines[index].rstrip(b"\r")
            if not raw:
                continue
            try:
                entry = decode_object(raw)
            except ParseError as exc:
                exc.line_index = index
                if self.policy is MalformedLinePolicy.SKIP:
                    logger.warning("Skipping malformed line %d of %s: %s", index + 1, path.name, exc)
                    continue
                raise
            records.append(JournalRecord(entry=entry, raw=raw, line_index=index))

        self.cursor.lines = count
        self.cursor.identity = identity
        return records


def load_data_file(directory: Path, name: str, suffix: str = DATA_SUFFIX) -> DataSnapshot:
    """Read and decode ``<name><suffix>`` from *directory*.

    A zero-byte file raises ``EmptyDataFileError``: the producer truncates
    before rewriting, so that state is expected and transient.
    """
    filename = f"{name}{suffix}"
    path = Path(directory) / filename
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise ReadError(f"cannot read data file {path}: {exc}") from exc

    if len(raw) == 0:
        raise EmptyDataFileError(f"empty data file: {filename}")

    try:
        entry = decode_object(raw)
    except ParseError as exc:
        raise ParseError(f"{filename}: {exc}", raw=raw) from exc
    return DataSnapshot(name=name, filename=filename, entry=entry, raw=raw)
