"""Tests for the watchdog-backed notification source."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from watchdog.events import FileCreatedEvent, FileModifiedEvent, FileMovedEvent

from journaltail.errors import DirectoryUnavailableError
from journaltail.notifier import DirectoryNotifier, _ChangeHandler


@pytest.mark.asyncio
async def test_close_ends_iteration(tmp_path: Path) -> None:
    notifier = DirectoryNotifier(tmp_path)
    notifier.start()
    notifier.close()

    collected = [path async for path in notifier]
    assert collected == []

    # Closing twice is harmless and the stream stays closed.
    notifier.close()
    assert [path async for path in notifier] == []


@pytest.mark.asyncio
async def test_fail_is_raised_to_consumer(tmp_path: Path) -> None:
    notifier = DirectoryNotifier(tmp_path)
    notifier.fail(DirectoryUnavailableError("gone"))

    with pytest.raises(DirectoryUnavailableError):
        await notifier.__anext__()


@pytest.mark.asyncio
async def test_written_file_is_delivered(tmp_path: Path) -> None:
    notifier = DirectoryNotifier(tmp_path)
    notifier.start()
    target = tmp_path / "Journal.A.log"

    async def _first_matching() -> Path:
        async for path in notifier:
            if path.name == target.name:
                return path
        raise AssertionError("stream closed early")

    try:
        await asyncio.sleep(0.1)
        with open(target, "a", encoding="utf-8") as fh:
            fh.write('{"event":"Startup"}\n')
        path = await asyncio.wait_for(_first_matching(), timeout=5.0)
    finally:
        notifier.close()

    assert path == target.resolve()


@pytest.mark.asyncio
async def test_handler_forwards_moves_but_not_creations(tmp_path: Path) -> None:
    notifier = DirectoryNotifier(tmp_path)
    notifier._loop = asyncio.get_running_loop()
    handler = _ChangeHandler(notifier)
    status = str(tmp_path / "Status.json")

    handler.on_created(FileCreatedEvent(status))
    handler.on_moved(FileMovedEvent(str(tmp_path / "Status.json.tmp"), status))
    handler.on_modified(FileModifiedEvent(str(tmp_path / "Journal.A.log")))
    await asyncio.sleep(0.01)  # let the thread-safe callbacks run
    notifier.close()

    collected = [path async for path in notifier]
    assert collected == [Path(status), tmp_path / "Journal.A.log"]
