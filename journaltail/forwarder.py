"""Async HTTP forwarder — POSTs each event to a configured endpoint."""

from __future__ import annotations

import asyncio
import logging
import time

import httpx

from .config import ForwarderConfig
from .parser import NormalizedEvent

logger = logging.getLogger(__name__)


class EventForwarder:
    """Async client for one event sink.

    Features
    --------
    * Rate-limiting (token-bucket style).
    * Automatic retries with exponential back-off.
    * Graceful close.

    Delivery failures are logged and reported through the return value;
    they never stop the watch session.

    Parameters
    ----------
    config:
        Endpoint and timeout settings; ``config.url`` must be set.
    """

    MAX_RETRIES = 3
    BACKOFF_BASE = 1.0  # seconds

    def __init__(self, config: ForwarderConfig) -> None:
        if not config.url:
            raise ValueError("forwarder url is not configured")
        self._cfg = config
        self._url = config.url

        timeout = httpx.Timeout(
            connect=config.connect_timeout,
            read=config.read_timeout,
            write=config.read_timeout,
            pool=config.connect_timeout,
        )
        self._client = httpx.AsyncClient(timeout=timeout)

        self._min_interval = 1.0 / config.max_requests_per_sec
        self._last_request_time: float = 0.0
        self._rate_lock = asyncio.Lock()

        self._healthy: bool = True
        self.sent = 0
        self.dropped = 0

    @property
    def healthy(self) -> bool:
        return self._healthy

    async def __call__(self, event: NormalizedEvent) -> None:
        # lets the forwarder be used directly as the session callback
        await self.send(event)

    async def send(self, event: NormalizedEvent) -> bool:
        """POST *event* as JSON. ``True`` on success, ``False`` after retries."""
        ok = await self._post(event.to_dict())
        if ok:
            self.sent += 1
        else:
            self.dropped += 1
        return ok

    async def close(self) -> None:
        await self._client.aclose()

    async def _rate_limit(self) -> None:
        async with self._rate_lock:
            now = time.monotonic()
            elapsed = now - self._last_request_time
            if elapsed < self._min_interval:
                await asyncio.sleep(self._min_interval - elapsed)
            self._last_request_time = time.monotonic()

    async def _post(self, payload: dict) -> bool:
        for attempt in range(1, self.MAX_RETRIES + 1):
            try:
                await self._rate_limit()
                resp = await self._client.post(self._url, json=payload)
                if resp.is_success:
                    self._healthy = True
                    logger.debug("POST %s → %s", self._url, resp.status_code)
                    return True
                logger.warning("POST %s → %s (attempt %d)", self._url, resp.status_code, attempt)
            except (httpx.HTTPError, OSError) as exc:
                logger.warning("POST %s failed: %s (attempt %d)", self._url, exc, attempt)

            if attempt < self.MAX_RETRIES:
                delay = self.BACKOFF_BASE * (2 ** (attempt - 1))
                await asyncio.sleep(delay)

        self._healthy = False
        logger.error("POST %s: all %d attempts exhausted, event %s dropped", self._url, self.MAX_RETRIES, payload.get("name"))
        return False
