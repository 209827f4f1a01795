"""Helpers shared by the runner tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from jdk_runner.host_ops import PosixHostOps
from jdk_runner.models import EventKind, RunnerEvent


class RecordingHostOps(PosixHostOps):
    """POSIX ops that remember which pids were interrupted."""

    def __init__(self) -> None:
        self.interrupted: list[int] = []

    async def interrupt(self, proc: asyncio.subprocess.Process) -> None:
        self.interrupted.append(proc.pid)
        await super().interrupt(proc)


async def collect_until(
    queue: asyncio.Queue[RunnerEvent],
    predicate: Callable[[RunnerEvent], bool],
    timeout: float = 15.0,
) -> list[RunnerEvent]:
    """Read events until one matches `predicate`; return all read, match last."""
    seen: list[RunnerEvent] = []

    async def _scan() -> None:
        while True:
            event = await queue.get()
            seen.append(event)
            if predicate(event):
                return

    await asyncio.wait_for(_scan(), timeout)
    return seen


def is_log(prefix: str) -> Callable[[RunnerEvent], bool]:
    return lambda e: e.kind is EventKind.LOG and e.payload.startswith(prefix)


def is_output(text: str) -> Callable[[RunnerEvent], bool]:
    return lambda e: e.kind is EventKind.OUTPUT and text in e.payload


def payloads(events: list[RunnerEvent], kind: EventKind) -> list[str]:
    return [e.payload for e in events if e.kind is kind]
