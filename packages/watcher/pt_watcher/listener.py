"""
Notification feed listener.

Follows /api/v1/notifications/stream with:
- Resume from the last seen notification (Last-Event-ID)
- Heartbeat timeout detection through the read timeout
- Fallback to interval polling with jitter after repeated SSE failures
- Exponential backoff, capped, on every kind of failure
- Graceful shutdown support
"""

from __future__ import annotations

import asyncio
import json
import random
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Coroutine

import httpx
import structlog

from .config import WatcherConfig

log = structlog.get_logger()

STREAM_PATH = "/api/v1/notifications/stream"
LIST_PATH = "/api/v1/notifications"
RESET_EVENT = "notifications.reset"
MAX_SEEN_IDS = 1000


def backoff_delay(attempt: int, base: float, cap: float) -> float:
    """Delay before retry number ``attempt`` (0-based): base * 2**attempt, capped."""
    return min(base * (2 ** attempt), cap)


def with_jitter(interval: float, jitter: float, rng: random.Random | None = None) -> float:
    """Polling interval plus a uniform random offset in [0, jitter]."""
    rng = rng or random
    return interval + rng.uniform(0, jitter)


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


@dataclass
class FeedEvent:
    """A parsed SSE event."""
    event_type: str
    data: dict[str, Any]
    event_id: str | None = None


class SSEParser:
    """Incremental parser: feed it lines, it returns an event at each blank line."""

    def __init__(self):
        self._reset()

    def _reset(self) -> None:
        self._event_type: str | None = None
        self._event_id: str | None = None
        self._data_lines: list[str] = []

    def feed(self, line: str) -> FeedEvent | None:
        line = line.rstrip("\r\n")
        if line.startswith(":"):
            return None
        if line.startswith("event:"):
            self._event_type = line[6:].strip()
        elif line.startswith("id:"):
            self._event_id = line[3:].strip()
        elif line.startswith("data:"):
            self._data_lines.append(line[5:].strip())
        elif line == "":
            return self._flush()
        return None

    def _flush(self) -> FeedEvent | None:
        if not self._data_lines:
            self._reset()
            return None
        data_str = "\n".join(self._data_lines)
        event_type = self._event_type or "message"
        event_id = self._event_id
        self._reset()
        try:
            data = json.loads(data_str)
        except json.JSONDecodeError:
            log.warning("watcher.parse_error", data=data_str[:200])
            return None
        return FeedEvent(event_type=event_type, data=data, event_id=event_id)


NotificationHandler = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]


class NotificationWatcher:
    """
    Delivers each notification of one user exactly once to the registered
    handlers, whichever transport brought it in.
    """

    def __init__(
        self,
        config: WatcherConfig,
        token: str,
        *,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        self._server = config.server
        self._polling = config.polling
        self._token = token
        self._sleep = sleep
        self._rng = rng

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self._server.url.rstrip("/"),
            verify=self._server.verify_tls,
            timeout=httpx.Timeout(
                self._server.request_timeout_seconds,
                read=self._server.heartbeat_timeout_seconds,
            ),
        )

        self._handlers: list[NotificationHandler] = []
        self._running = False
        self._connected = False
        self._mode = "sse"
        self._last_event_id: str | None = None
        self._since: datetime | None = None
        self._seen: OrderedDict[str, None] = OrderedDict()
        self._reconnect_count = 0
        self._task: asyncio.Task | None = None

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def last_event_id(self) -> str | None:
        return self._last_event_id

    @property
    def reconnect_count(self) -> int:
        return self._reconnect_count

    def on_notification(self, handler: NotificationHandler) -> None:
        """Register a notification handler."""
        self._handlers.append(handler)

    def _headers(self, **extra: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}", **extra}

    # --- Lifecycle ---

    async def start(self) -> None:
        self._running = True
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        """Gracefully stop the watcher."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._connected = False
        if self._owns_client:
            await self._client.aclose()
        log.info("watcher.stopped")

    async def run_forever(self) -> None:
        await self.start()
        try:
            assert self._task
            await self._task
        finally:
            await self.stop()

    async def _run_loop(self) -> None:
        sse_failures = 0
        poll_failures = 0
        polls = 0

        while self._running:
            if self._mode == "sse":
                try:
                    await self.stream_once()
                    sse_failures = 0
                    delay = self._polling.backoff_base_seconds
                except httpx.HTTPError as exc:
                    self._connected = False
                    sse_failures += 1
                    log.warning("watcher.stream_failed", error=str(exc), failures=sse_failures)
                    if sse_failures >= self._polling.sse_failures_before_polling:
                        log.info("watcher.polling_fallback", failures=sse_failures)
                        self._mode = "polling"
                        polls = 0
                        continue
                    delay = backoff_delay(
                        sse_failures - 1,
                        self._polling.backoff_base_seconds,
                        self._polling.backoff_max_seconds,
                    )
                self._reconnect_count += 1
            else:
                try:
                    await self.poll_once()
                    poll_failures = 0
                    polls += 1
                    if polls >= self._polling.polls_between_sse_retries:
                        log.info("watcher.retrying_stream", polls=polls)
                        self._mode = "sse"
                        # One more failure sends us straight back to polling.
                        sse_failures = self._polling.sse_failures_before_polling - 1
                        continue
                    delay = with_jitter(
                        self._polling.interval_seconds, self._polling.jitter_seconds, self._rng
                    )
                except httpx.HTTPError as exc:
                    poll_failures += 1
                    delay = backoff_delay(
                        poll_failures - 1,
                        self._polling.backoff_base_seconds,
                        self._polling.backoff_max_seconds,
                    )
                    log.warning(
                        "watcher.poll_failed", error=str(exc), failures=poll_failures, backoff=delay
                    )

            if not self._running:
                break
            await self._sleep(delay)

    # --- Transports ---

    async def stream_once(self) -> None:
        """Hold one SSE connection until the server closes it."""
        headers = self._headers(Accept="text/event-stream")
        if self._last_event_id:
            headers["Last-Event-ID"] = self._last_event_id

        async with self._client.stream("GET", STREAM_PATH, headers=headers) as response:
            response.raise_for_status()
            self._connected = True
            log.info("watcher.connected", resume_from=self._last_event_id)

            parser = SSEParser()
            async for line in response.aiter_lines():
                event = parser.feed(line)
                if event is None:
                    continue
                if event.event_type == RESET_EVENT:
                    log.info("watcher.cursor_reset", reason=event.data.get("reason"))
                    self._last_event_id = None
                    await self.poll_once()
                elif event.event_type == "notification":
                    await self._deliver(event.data)
        self._connected = False

    async def poll_once(self) -> int:
        """Fetch notifications newer than the cursor. Returns how many were new.

        Without a cursor only the newest page is fetched. With one, pages are
        read oldest first until a short page comes back.
        """
        page_size = self._polling.page_size
        if self._since is None:
            # Newest first on the wire; deliver oldest first.
            page = await self._fetch_page({"limit": page_size})
            delivered = await self._deliver_all(reversed(page))
            log.debug("watcher.polled", delivered=delivered)
            return delivered

        delivered = 0
        while True:
            since = self._since
            page = await self._fetch_page(
                {"limit": page_size, "since": since.isoformat(), "oldest_first": "true"}
            )
            delivered += await self._deliver_all(page)
            if len(page) < page_size or self._since == since:
                break
        log.debug("watcher.polled", delivered=delivered)
        return delivered

    async def _fetch_page(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        response = await self._client.get(LIST_PATH, params=params, headers=self._headers())
        response.raise_for_status()
        return response.json()

    async def _deliver_all(self, notifications) -> int:
        delivered = 0
        for notification in notifications:
            if await self._deliver(notification):
                delivered += 1
        return delivered

    # --- Dispatch ---

    def _remember(self, notification_id: str) -> bool:
        if notification_id in self._seen:
            return False
        self._seen[notification_id] = None
        if len(self._seen) > MAX_SEEN_IDS:
            self._seen.popitem(last=False)
        return True

    async def _deliver(self, notification: dict[str, Any]) -> bool:
        notification_id = str(notification.get("id", ""))
        if not notification_id or not self._remember(notification_id):
            return False

        self._last_event_id = notification_id
        created_at = _parse_timestamp(notification.get("created_at"))
        if created_at and (self._since is None or created_at > self._since):
            self._since = created_at

        for handler in self._handlers:
            try:
                await handler(notification)
            except Exception:
                log.exception(
                    "watcher.handler_error",
                    notification_id=notification_id,
                    type=notification.get("type"),
                )
        return True
