"""Change notification → event dispatcher, and the watch session around it.

`ChangeDispatcher` classifies each "path was written" notification by its
extension, tails the journal or reloads the data file, and hands every
resulting `NormalizedEvent` to the callback before taking the next
notification. `WatchSession` picks the journal to track, owns the
notification source and runs the dispatcher until the source closes.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from enum import Enum
from pathlib import Path
from typing import AsyncIterable, Awaitable, Callable, Optional, Union

from .errors import DirectoryUnavailableError, EmptyDataFileError, JournalTailError, ParseError
from .notifier import DirectoryNotifier
from .parser import NormalizedEvent, data_file_event, journal_event
from .session_watcher import (
    DATA_SUFFIX,
    JOURNAL_SUFFIX,
    JournalReader,
    MalformedLinePolicy,
    latest_journal,
    load_data_file,
)

logger = logging.getLogger(__name__)

EventCallback = Callable[[NormalizedEvent], Union[None, Awaitable[None]]]


class DispatchState(str, Enum):
    IDLE = "IDLE"
    CLASSIFYING = "CLASSIFYING"
    TAILING_JOURNAL = "TAILING_JOURNAL"
    LOADING_DATA_FILE = "LOADING_DATA_FILE"
    IGNORING = "IGNORING"
    STOPPED = "STOPPED"


def classify(filename: str, journal_suffix: str = JOURNAL_SUFFIX, data_suffix: str = DATA_SUFFIX) -> DispatchState:
    """Route *filename* by its final dot-delimited extension."""
    if "." not in filename:
        return DispatchState.IGNORING
    extension = "." + filename.rsplit(".", 1)[1]
    if extension == journal_suffix:
        return DispatchState.TAILING_JOURNAL
    if extension == data_suffix:
        return DispatchState.LOADING_DATA_FILE
    return DispatchState.IGNORING


class ChangeDispatcher:
    def __init__(
        self,
        directory: Path,
        reader: JournalReader,
        callback: EventCallback,
        *,
        pinned: bool = False,
        follow_rotation: bool = True,
        journal_suffix: str = JOURNAL_SUFFIX,
        data_suffix: str = DATA_SUFFIX,
        on_transition: Optional[Callable[[DispatchState, DispatchState], None]] = None,
    ) -> None:
        self._directory = Path(directory)
        self._reader = reader
        self._callback = callback
        self._pinned = pinned
        self._follow_rotation = follow_rotation
        self._journal_suffix = journal_suffix
        self._data_suffix = data_suffix
        self._on_transition = on_transition

        self._state = DispatchState.IDLE

    @property
    def state(self) -> DispatchState:
        return self._state

    @property
    def reader(self) -> JournalReader:
        return self._reader

    @property
    def journal_path(self) -> Path:
        return self._reader.path

    def _enter(self, new: DispatchState) -> None:
        old = self._state
        if old == new:
            return
        self._state = new
        logger.debug("Dispatcher: %s → %s", old.value, new.value)
        if self._on_transition:
            self._on_transition(old, new)

    async def _emit(self, event: NormalizedEvent) -> None:
        result = self._callback(event)
        if inspect.isawaitable(result):
            await result

    async def handle_notification(self, path: Union[str, Path]) -> int:
        """Process one "path was written" notification.

        Returns the number of events handed to the callback. Fatal errors
        leave the dispatcher ``STOPPED`` and propagate.
        """
        self._ensure_running()
        filename = Path(path).name
        self._enter(DispatchState.CLASSIFYING)
        if filename == self._reader.path.name:
            # a pinned journal may not carry the journal suffix
            target = DispatchState.TAILING_JOURNAL
        else:
            target = classify(filename, self._journal_suffix, self._data_suffix)
        return await self._process(target, filename)

    async def tail_journal(self) -> int:
        """Tail the tracked journal whatever its file name is."""
        self._ensure_running()
        return await self._process(DispatchState.TAILING_JOURNAL, self._reader.path.name)

    def _ensure_running(self) -> None:
        if self._state == DispatchState.STOPPED:
            raise RuntimeError("dispatcher is stopped")

    async def _process(self, target: DispatchState, filename: str) -> int:
        self._enter(target)
        try:
            if target == DispatchState.TAILING_JOURNAL:
                emitted = await self._tail_journal(filename)
            elif target == DispatchState.LOADING_DATA_FILE:
                emitted = await self._load_data_file(filename)
            else:
                logger.debug("Unknown file type changed: %s", filename)
                emitted = 0
        except (Exception, asyncio.CancelledError):
            self._enter(DispatchState.STOPPED)
            raise

        self._enter(DispatchState.IDLE)
        return emitted

    def _follow(self, filename: str) -> None:
        if self._pinned or not self._follow_rotation:
            return
        if filename == self._reader.path.name:
            return
        latest = latest_journal(self._directory, self._journal_suffix)
        if latest.name != self._reader.path.name:
            logger.info("Journal rotated: %s → %s", self._reader.path.name, latest.name)
            self._reader = JournalReader(latest, self._reader.policy)

    async def _tail_journal(self, filename: str) -> int:
        self._follow(filename)
        try:
            records = self._reader.read_new()
        except ParseError as exc:
            logger.error(
                "Error loading journal %s (line %s): %s",
                self._reader.path.name,
                "?" if exc.line_index is None else exc.line_index + 1,
                exc,
            )
            return 0

        if records:
            logger.info("Handling %d new entries from %s", len(records), self._reader.path.name)
        for record in records:
            logger.debug("Journal event: %s", record.event)
            await self._emit(journal_event(record.entry, record.raw))
        return len(records)

    async def _load_data_file(self, filename: str) -> int:
        name = filename[: -len(self._data_suffix)]
        logger.debug("Data file changed: %s", name)
        try:
            snapshot = load_data_file(self._directory, name, self._data_suffix)
        except EmptyDataFileError:
            logger.debug("Skipping empty data file: %s", filename)
            return 0
        await self._emit(data_file_event(snapshot.filename, snapshot.entry, snapshot.raw))
        return 1

    async def run(self, notifications: AsyncIterable[Path]) -> None:
        """Dispatch until *notifications* is exhausted or delivers an error."""
        try:
            async for path in notifications:
                await self.handle_notification(path)
        except JournalTailError as exc:
            logger.error("Stopping dispatcher: %s", exc)
            raise
        finally:
            self._enter(DispatchState.STOPPED)


class WatchSession:
    """One watch loop over one directory.

    Parameters
    ----------
    directory:
        Existing directory holding the journal and data files.
    callback:
        Receives each event; may be a coroutine function.
    journal_file:
        Journal file name to track instead of the newest one.
    """

    def __init__(
        self,
        directory: Union[str, Path],
        callback: EventCallback,
        *,
        journal_file: Optional[str] = None,
        journal_suffix: str = JOURNAL_SUFFIX,
        data_suffix: str = DATA_SUFFIX,
        policy: MalformedLinePolicy = MalformedLinePolicy.RETRY,
        follow_rotation: bool = True,
    ) -> None:
        self.directory = Path(directory)
        self.callback = callback
        self.journal_file = journal_file
        self.journal_suffix = journal_suffix
        self.data_suffix = data_suffix
        self.policy = MalformedLinePolicy(policy)
        self.follow_rotation = follow_rotation

        self.dispatcher: Optional[ChangeDispatcher] = None
        self._notifier: Optional[DirectoryNotifier] = None

    @classmethod
    def from_config(cls, cfg, callback: EventCallback) -> "WatchSession":
        # cfg is a journaltail.config.WatcherConfig
        return cls(
            cfg.journal_dir,
            callback,
            journal_file=cfg.journal_file,
            journal_suffix=cfg.journal_suffix,
            data_suffix=cfg.data_suffix,
            policy=cfg.policy,
            follow_rotation=cfg.follow_rotation,
        )

    def open(self) -> ChangeDispatcher:
        """Select the journal and build the dispatcher.

        Raises ``DirectoryUnavailableError`` or ``NoJournalFoundError``;
        nothing is retried.
        """
        if not self.directory.is_dir():
            raise DirectoryUnavailableError(f"not a directory: {self.directory}")

        if self.journal_file:
            journal = self.directory / self.journal_file
            logger.info("Using pinned journal file: %s", self.journal_file)
        else:
            journal = latest_journal(self.directory, self.journal_suffix)
            logger.info("Tracking latest journal file: %s", journal.name)

        self.dispatcher = ChangeDispatcher(
            self.directory,
            JournalReader(journal, self.policy),
            self.callback,
            pinned=bool(self.journal_file),
            follow_rotation=self.follow_rotation,
            journal_suffix=self.journal_suffix,
            data_suffix=self.data_suffix,
        )
        return self.dispatcher

    async def catch_up(self) -> int:
        """Emit whatever the tracked journal holds beyond the cursor, once."""
        dispatcher = self.dispatcher or self.open()
        return await dispatcher.tail_journal()

    async def run(self, notifications: Optional[AsyncIterable[Path]] = None) -> None:
        """Run until the notification source closes or a fatal error occurs.

        Without *notifications* a `DirectoryNotifier` on the session's
        directory is started and released on exit.
        """
        dispatcher = self.dispatcher or self.open()
        if notifications is None:
            self._notifier = DirectoryNotifier(self.directory)
            self._notifier.start()
            notifications = self._notifier
        try:
            await dispatcher.run(notifications)
        finally:
            self.stop()

    def stop(self) -> None:
        if self._notifier:
            self._notifier.close()
