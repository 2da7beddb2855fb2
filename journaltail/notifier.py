"""watchdog observer bridged onto asyncio as a stream of written paths."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .errors import DirectoryUnavailableError

logger = logging.getLogger(__name__)

_Item = Union[Path, BaseException, None]


class _ChangeHandler(FileSystemEventHandler):
    """Runs on the observer thread; only hands paths to the notifier."""

    def __init__(self, notifier: "DirectoryNotifier") -> None:
        self._notifier = notifier

    def on_modified(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._notifier._put(Path(os.fsdecode(event.src_path)))

    def on_moved(self, event: FileSystemEvent) -> None:
        # write-to-temp-then-rename counts as a write of the destination
        if event.is_directory:
            return
        self._notifier._put(Path(os.fsdecode(event.dest_path)))

    def on_deleted(self, event: FileSystemEvent) -> None:
        if event.is_directory and Path(os.fsdecode(event.src_path)) == self._notifier.directory:
            self._notifier._put(DirectoryUnavailableError(f"watch directory removed: {self._notifier.directory}"))


class DirectoryNotifier:
    """Async iterator of paths written inside one directory (non-recursive).

    `close()` ends the iteration; an error delivered with `fail()` is raised
    from the iterator.
    """

    def __init__(self, directory: Union[str, Path]) -> None:
        # observer events carry absolute paths
        self.directory = Path(directory).resolve()
        self._queue: "asyncio.Queue[_Item]" = asyncio.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._observer: Optional[Observer] = None
        self._closed = False

    def start(self) -> None:
        """Start the observer thread. Must be called from the running loop."""
        self._loop = asyncio.get_running_loop()
        self._observer = Observer()
        self._observer.schedule(_ChangeHandler(self), str(self.directory), recursive=False)
        self._observer.start()
        logger.info("Watching %s", self.directory)

    def _put(self, item: _Item) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self._queue.put_nowait, item)
        except RuntimeError:
            # loop shut down between the check and the call
            pass

    def fail(self, exc: BaseException) -> None:
        """Deliver *exc* to the consumer; safe from any thread."""
        if self._loop is None:
            self._queue.put_nowait(exc)
        else:
            self._put(exc)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        self._queue.put_nowait(None)

    def __aiter__(self) -> "DirectoryNotifier":
        return self

    async def __anext__(self) -> Path:
        item = await self._queue.get()
        if item is None:
            # keep the stream closed for any later reader
            self._queue.put_nowait(None)
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item
