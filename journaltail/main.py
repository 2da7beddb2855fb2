"""Main orchestrator — wires config, watch session, notifier and event sink."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from typing import Optional, TextIO

from .config import AppConfig, load_config
from .dispatcher import EventCallback, WatchSession
from .errors import JournalTailError
from .forwarder import EventForwarder
from .notifier import DirectoryNotifier
from .parser import NormalizedEvent

logger = logging.getLogger("journaltail")


class Orchestrator:
    """Runs one watch session and delivers its events to stdout or HTTP."""

    def __init__(self, config: AppConfig, *, out: Optional[TextIO] = None) -> None:
        self._cfg = config
        self._out = out or sys.stdout
        self._session: Optional[WatchSession] = None
        self._notifier: Optional[DirectoryNotifier] = None
        self._forwarder: Optional[EventForwarder] = None

    async def run(self) -> int:
        """Main entry — returns the process exit code."""
        logging.basicConfig(
            level=getattr(logging, self._cfg.log_level.upper(), logging.INFO),
            format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        )

        callback: EventCallback = self._print_event
        if self._cfg.forwarder.url:
            self._forwarder = EventForwarder(self._cfg.forwarder)
            callback = self._forwarder

        self._session = WatchSession.from_config(self._cfg.watcher, callback)
        try:
            self._session.open()
            if not self._cfg.daemon:
                count = await self._session.catch_up()
                logger.info("Emitted %d journal events", count)
                return 0

            self._notifier = DirectoryNotifier(self._session.directory)
            self._notifier.start()
            logger.info("journaltail started — watching %s", self._session.directory)
            await self._session.run(self._notifier)
        except JournalTailError as exc:
            logger.error("Journal watch stopped: %s", exc)
            return 1
        finally:
            await self._shutdown()
        return 0

    def stop(self) -> None:
        if self._notifier:
            self._notifier.close()

    async def _shutdown(self) -> None:
        logger.info("Shutting down …")
        self.stop()
        if self._forwarder:
            await self._forwarder.close()

    def _print_event(self, event: NormalizedEvent) -> None:
        self._out.write(json.dumps(event.to_dict()) + "\n")
        self._out.flush()


def _register_signals(orch: Orchestrator) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, orch.stop)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="journaltail",
        description="journaltail — stream new journal lines and data-file snapshots as JSON events",
    )
    ap.add_argument(
        "-c", "--config",
        type=str,
        default=None,
        help="Path to config.yaml (default: $JOURNALTAIL_CONFIG or built-in defaults)",
    )
    ap.add_argument(
        "-d", "--journal-dir",
        type=str,
        default=None,
        help="Directory to watch (default: from config, then the game's save folder)",
    )
    ap.add_argument(
        "-j", "--journal",
        type=str,
        default=None,
        help="Pin this journal file name instead of following the newest one",
    )
    ap.add_argument(
        "--forward-url",
        type=str,
        default=None,
        help="POST every event to this URL instead of printing it",
    )
    ap.add_argument(
        "--one-shot",
        action="store_true",
        help="Emit the journal's existing lines and exit (don't watch)",
    )
    ap.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Override log level (DEBUG, INFO, WARNING, ERROR)",
    )
    return ap


def apply_args(cfg: AppConfig, args: argparse.Namespace) -> AppConfig:
    if args.journal_dir:
        cfg.watcher.journal_dir = args.journal_dir
    if args.journal:
        cfg.watcher.journal_file = args.journal
    if args.forward_url:
        cfg.forwarder.url = args.forward_url
    if args.log_level:
        cfg.log_level = args.log_level
    if args.one_shot:
        cfg.daemon = False
    return cfg


def cli() -> None:
    """Command-line entry point."""
    args = build_parser().parse_args()
    cfg = apply_args(load_config(args.config), args)
    orch = Orchestrator(cfg)

    if sys.platform != "win32":
        code = asyncio.run(_run_with_signals(orch))
    else:
        code = asyncio.run(orch.run())
    sys.exit(code)


async def _run_with_signals(orch: Orchestrator) -> int:
    _register_signals(orch)
    return await orch.run()


if __name__ == "__main__":
    cli()
