"""Platform capabilities used by the compiler gateway and the supervisor.

One implementation is picked at startup with :func:`select_host_ops`, so
the rest of the runner never branches on the platform itself.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import signal
import subprocess
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)


class HostOps(ABC):
    name: str

    def create_directory(self, path: str | Path) -> None:
        """Create `path` and its parents.  An existing directory is fine."""
        try:
            Path(path).mkdir(parents=True, exist_ok=True)
        except FileExistsError:
            # A non-directory with that name; the compiler will report it.
            log.debug("Cannot create %s: path exists", path)

    def clear_directory(self, path: str | Path) -> None:
        """Delete everything inside `path` but keep `path` itself."""
        root = Path(path)
        if not root.is_dir():
            return
        for entry in root.iterdir():
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry, ignore_errors=True)
            else:
                try:
                    entry.unlink()
                except FileNotFoundError:
                    pass

    @abstractmethod
    def spawn_options(self) -> dict[str, Any]:
        """Extra keyword arguments for ``asyncio.create_subprocess_exec``."""

    @abstractmethod
    async def interrupt(self, proc: asyncio.subprocess.Process) -> None:
        """Ask `proc` to stop.  Returns without waiting for it to exit."""


class PosixHostOps(HostOps):
    name = "posix"

    def spawn_options(self) -> dict[str, Any]:
        # New session, so the interrupt reaches the whole process tree
        return {"start_new_session": True}

    async def interrupt(self, proc: asyncio.subprocess.Process) -> None:
        # The program leads its own session, so its pid is the group id.
        # The group outlives a reaped leader while descendants remain.
        try:
            os.killpg(proc.pid, signal.SIGINT)
        except ProcessLookupError:
            log.debug("Process group %s already gone", proc.pid)
        except OSError as exc:
            log.warning("Could not interrupt process group %s: %s", proc.pid, exc)


class WindowsHostOps(HostOps):
    name = "windows"

    def __init__(self) -> None:
        self._reapers: set[asyncio.Task[int]] = set()

    def spawn_options(self) -> dict[str, Any]:
        return {"creationflags": getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)}

    async def interrupt(self, proc: asyncio.subprocess.Process) -> None:
        try:
            killer = await asyncio.create_subprocess_exec(
                "taskkill", "/pid", str(proc.pid), "/T", "/F",
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            log.warning("Could not run taskkill for pid %s: %s", proc.pid, exc)
            return
        # Reap taskkill in the background; we never wait on the result.
        task = asyncio.create_task(killer.wait(), name=f"taskkill-{proc.pid}")
        self._reapers.add(task)
        task.add_done_callback(self._reapers.discard)


def select_host_ops(platform: str | None = None) -> HostOps:
    platform = platform or sys.platform
    if platform.startswith("win"):
        return WindowsHostOps()
    return PosixHostOps()
