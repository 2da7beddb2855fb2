"""Tests for the HTTP event forwarder — uses an in-process transport."""

from __future__ import annotations

import json
from typing import Any, Dict, List

import httpx
import pytest

from journaltail.config import ForwarderConfig
from journaltail.forwarder import EventForwarder
from journaltail.parser import NormalizedEvent, data_file_event, journal_event


# ── Fake transport that records requests ───────────────────────


class _RecordingTransport(httpx.AsyncBaseTransport):
    """In-process httpx transport that captures requests."""

    def __init__(self, status: int = 200, fail_count: int = 0) -> None:
        self.recorded: List[Dict[str, Any]] = []
        self._status = status
        self._fail_count = fail_count
        self._call_count = 0

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self._call_count += 1
        body = await request.aread()
        self.recorded.append({
            "method": request.method,
            "url": str(request.url),
            "body": json.loads(body) if body else None,
        })
        if self._call_count <= self._fail_count:
            raise httpx.ConnectError("simulated failure")
        return httpx.Response(self._status, json={"ok": True})


# ── Helpers ────────────────────────────────────────────────────


def _make_forwarder(transport: _RecordingTransport) -> EventForwarder:
    cfg = ForwarderConfig(url="http://127.0.0.1:8080/events", max_requests_per_sec=1000.0)
    forwarder = EventForwarder(cfg)
    forwarder._client = httpx.AsyncClient(transport=transport)
    forwarder.BACKOFF_BASE = 0.01  # speed up test
    return forwarder


def _event() -> NormalizedEvent:
    raw = b'{"event":"Docked","StationName":"Abraham Lincoln"}'
    return journal_event(json.loads(raw), raw)


# ── Tests ──────────────────────────────────────────────────────


def test_requires_url() -> None:
    with pytest.raises(ValueError):
        EventForwarder(ForwarderConfig())


@pytest.mark.asyncio
async def test_send_posts_event_payload() -> None:
    transport = _RecordingTransport()
    forwarder = _make_forwarder(transport)

    ok = await forwarder.send(_event())

    assert ok is True
    assert forwarder.sent == 1
    assert transport.recorded[0]["method"] == "POST"
    assert transport.recorded[0]["url"] == "http://127.0.0.1:8080/events"
    body = transport.recorded[0]["body"]
    assert body["type"] == "journalEvent"
    assert body["name"] == "Docked"
    assert body["entry"]["StationName"] == "Abraham Lincoln"

    await forwarder.close()


@pytest.mark.asyncio
async def test_usable_as_callback() -> None:
    transport = _RecordingTransport()
    forwarder = _make_forwarder(transport)

    await forwarder(data_file_event("Status.json", {"Flags": 0}, b'{"Flags": 0}'))

    assert transport.recorded[0]["body"]["type"] == "dataFile"
    assert transport.recorded[0]["body"]["name"] == "Status.json"

    await forwarder.close()


@pytest.mark.asyncio
async def test_retries_on_failure() -> None:
    # First 2 calls fail, third succeeds
    transport = _RecordingTransport(fail_count=2)
    forwarder = _make_forwarder(transport)

    ok = await forwarder.send(_event())

    assert ok is True
    assert len(transport.recorded) == 3
    assert forwarder.healthy

    await forwarder.close()


@pytest.mark.asyncio
async def test_all_retries_exhausted() -> None:
    transport = _RecordingTransport(fail_count=10)
    forwarder = _make_forwarder(transport)

    ok = await forwarder.send(_event())

    assert ok is False
    assert not forwarder.healthy
    assert forwarder.dropped == 1
    assert len(transport.recorded) == EventForwarder.MAX_RETRIES

    await forwarder.close()


@pytest.mark.asyncio
async def test_error_status_is_retried() -> None:
    transport = _RecordingTransport(status=503)
    forwarder = _make_forwarder(transport)

    assert await forwarder.send(_event()) is False
    assert len(transport.recorded) == EventForwarder.MAX_RETRIES

    await forwarder.close()
