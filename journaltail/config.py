"""Configuration loader — reads YAML and applies sensible defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .session_watcher import DATA_SUFFIX, JOURNAL_SUFFIX, MalformedLinePolicy


def default_journal_dir() -> Path:
    """Per-user save-data folder the game writes its journal into.

    ``JOURNALTAIL_DIR`` overrides it.
    """
    env = os.environ.get("JOURNALTAIL_DIR")
    if env:
        return Path(env).expanduser()
    return Path.home() / "Saved Games" / "Frontier Developments" / "Elite Dangerous"


@dataclass
class WatcherConfig:
    """Journal directory watcher parameters."""

    journal_dir: str = ""
    journal_file: Optional[str] = None  # pin a journal instead of the newest
    journal_suffix: str = JOURNAL_SUFFIX
    data_suffix: str = DATA_SUFFIX
    malformed_lines: str = MalformedLinePolicy.RETRY.value
    follow_rotation: bool = True

    def __post_init__(self) -> None:
        if not self.journal_dir:
            self.journal_dir = str(default_journal_dir())
        self.journal_dir = str(Path(self.journal_dir).expanduser())
        # Fail on typos at load time rather than on the first bad line.
        self.malformed_lines = MalformedLinePolicy(self.malformed_lines).value

    @property
    def policy(self) -> MalformedLinePolicy:
        return MalformedLinePolicy(self.malformed_lines)


@dataclass
class ForwarderConfig:
    """HTTP endpoint each event is POSTed to. Disabled when ``url`` is unset."""

    url: Optional[str] = None
    max_requests_per_sec: float = 20.0
    connect_timeout: float = 5.0
    read_timeout: float = 5.0


@dataclass
class AppConfig:
    """Top-level application configuration."""

    watcher: WatcherConfig = field(default_factory=WatcherConfig)
    forwarder: ForwarderConfig = field(default_factory=ForwarderConfig)
    log_level: str = "INFO"
    daemon: bool = True


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load configuration from *path* (YAML), falling back to defaults.

    Environment variable ``JOURNALTAIL_CONFIG`` is checked when *path*
    is ``None``.
    """
    raw: Dict[str, Any] = {}

    if path is None:
        path = os.environ.get("JOURNALTAIL_CONFIG")

    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p, "r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}

    watcher_kw = raw.get("watcher") or {}
    forwarder_kw = raw.get("forwarder") or {}

    return AppConfig(
        watcher=WatcherConfig(**watcher_kw),
        forwarder=ForwarderConfig(**forwarder_kw),
        log_level=raw.get("log_level", "INFO"),
        daemon=raw.get("daemon", True),
    )
