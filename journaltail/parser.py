"""Line decoder and the normalized events handed to consumers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Union

from .errors import ParseError

UNKNOWN_EVENT = "Unknown"


class EventKind(str, Enum):
    JOURNAL = "journalEvent"
    DATA_FILE = "dataFile"


@dataclass
class NormalizedEvent:
    """One unit of output: a journal record or a data-file snapshot.

    For journal events ``name`` is the record's ``event`` field; for data
    files it is the base file name (``Cargo.json``).
    """

    kind: EventKind
    name: str
    entry: Dict[str, Any] = field(default_factory=dict)
    raw: bytes = b""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind.value,
            "name": self.name,
            "entry": self.entry,
            "raw": self.raw.decode("utf-8", errors="replace"),
        }


def decode_object(raw: Union[bytes, str]) -> Dict[str, Any]:
    """Decode *raw* as exactly one JSON object.

    Arrays, scalars and ``null`` at the top level are rejected because the
    record type is read from a key of the object.
    """
    data = raw.encode("utf-8") if isinstance(raw, str) else bytes(raw)
    try:
        obj = json.loads(data.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise ParseError(f"invalid UTF-8: {exc}", raw=data) from exc
    except json.JSONDecodeError as exc:
        raise ParseError(f"error parsing JSON: {exc}", raw=data) from exc

    if not isinstance(obj, dict):
        raise ParseError(f"expected a JSON object, got {type(obj).__name__}", raw=data)
    return obj


def record_type(entry: Dict[str, Any]) -> str:
    value = entry.get("event")
    if isinstance(value, str) and value:
        return value
    return UNKNOWN_EVENT


def journal_event(entry: Dict[str, Any], raw: bytes) -> NormalizedEvent:
    return NormalizedEvent(kind=EventKind.JOURNAL, name=record_type(entry), entry=entry, raw=raw)


def data_file_event(filename: str, entry: Dict[str, Any], raw: bytes) -> NormalizedEvent:
    return NormalizedEvent(kind=EventKind.DATA_FILE, name=filename, entry=entry, raw=raw)
