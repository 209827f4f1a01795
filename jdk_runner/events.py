"""Event stream: fans runner events out to subscribers and keeps a tail.

Every event gets a monotonic sequence number.  In-process consumers
subscribe and receive events on their own ``asyncio.Queue``; remote
consumers poll the bounded log by sequence number instead.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any

from .models import EventKind, RunnerEvent

log = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS = 5000


class EventStream:
    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS) -> None:
        self.max_events = max_events
        self._buf: deque[RunnerEvent] = deque()
        self._seq = 0  # sequence number of the last emitted event
        self._subscribers: list[asyncio.Queue[RunnerEvent]] = []

    @property
    def seq(self) -> int:
        return self._seq

    def emit(self, kind: EventKind, payload: str) -> RunnerEvent:
        self._seq += 1
        event = RunnerEvent(kind=kind, payload=payload, seq=self._seq)
        self._buf.append(event)
        # Evict oldest events until we're within budget
        while len(self._buf) > self.max_events:
            self._buf.popleft()

        for queue in self._subscribers:
            queue.put_nowait(event)
        return event

    def log(self, text: str) -> None:
        log.info("%s", text)
        self.emit(EventKind.LOG, text)

    def output(self, text: str) -> None:
        self.emit(EventKind.OUTPUT, text)

    def error(self, text: str) -> None:
        self.emit(EventKind.ERROR, text)

    # ------------------------------------------------------------------
    # Consumers
    # ------------------------------------------------------------------

    def subscribe(self) -> asyncio.Queue[RunnerEvent]:
        queue: asyncio.Queue[RunnerEvent] = asyncio.Queue()
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[RunnerEvent]) -> None:
        try:
            self._subscribers.remove(queue)
        except ValueError:
            pass

    def since(self, seq: int = 0, limit: int = 200) -> dict[str, Any]:
        """Return up to `limit` retained events with a sequence number above `seq`.

        ``dropped`` counts events newer than `seq` that were already
        evicted from the log before this call.
        """
        oldest = self._buf[0].seq if self._buf else self._seq + 1
        dropped = max(0, oldest - seq - 1)

        events: list[RunnerEvent] = []
        for event in self._buf:
            if event.seq <= seq:
                continue
            if len(events) >= limit:
                break
            events.append(event)

        return {
            "events": [e.to_dict() for e in events],
            "next_seq": events[-1].seq if events else seq,
            "dropped": dropped,
        }
