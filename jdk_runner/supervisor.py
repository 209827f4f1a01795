"""Process Supervisor: runs one compiled program at a time and streams its I/O.

The supervisor owns a single slot.  Callers post requests (run, write,
terminate) and return at once; one coordinator task per supervisor
consumes those requests together with exit notifications from the
per-process waiter tasks, so the slot is only ever touched from that task.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import signal
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .events import EventStream
from .host_ops import HostOps, select_host_ops
from .models import SlotState

log = logging.getLogger(__name__)

# Reported when the program could not be spawned at all (as a shell would)
EXIT_CODE_LAUNCH_FAILED = 127

# How long an exit notice waits for the program's pipes to drain
OUTPUT_DRAIN_SECONDS = 0.5


@dataclass
class Slot:
    """State of the single supervised process."""

    state: SlotState = SlotState.IDLE
    generation: int = 0  # bumped on every launch
    directory: str | None = None
    identifier: str | None = None
    pending: tuple[str, str] | None = None  # (directory, identifier)
    _process: asyncio.subprocess.Process | None = field(
        default=None, repr=False
    )

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    def snapshot(self) -> dict[str, Any]:
        pending = None
        if self.pending is not None:
            pending = {"directory": self.pending[0], "identifier": self.pending[1]}
        return {
            "state": self.state.value,
            "generation": self.generation,
            "pid": self.pid,
            "directory": self.directory,
            "identifier": self.identifier,
            "pending": pending,
        }


# ---------------------------------------------------------------------------
# Coordinator messages
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class _Run:
    directory: str
    identifier: str


@dataclass(frozen=True)
class _Write:
    text: str


@dataclass(frozen=True)
class _Terminate:
    pass


@dataclass(frozen=True)
class _Exited:
    generation: int
    returncode: int


_Message = _Run | _Write | _Terminate | _Exited


class _ExitNotifyingProtocol(asyncio.subprocess.SubprocessStreamProtocol):
    """Stream protocol that reports the exit as soon as the OS does.

    Pipe EOF (and, on newer interpreters, ``Process.wait()``) waits for
    every holder of the pipes, including descendants the program left
    running in the background.
    """

    def __init__(
        self,
        on_exit: Callable[[int], None],
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        super().__init__(limit=2**16, loop=loop)
        self._on_exit = on_exit

    def process_exited(self) -> None:
        # Read before super(), which may drop the transport
        returncode = self._transport.get_returncode()  # type: ignore[union-attr]
        super().process_exited()
        self._on_exit(returncode)


def describe_exit(returncode: int) -> str:
    if returncode < 0:
        try:
            name = signal.Signals(-returncode).name
        except ValueError:
            name = f"signal {-returncode}"
        return f"Exited with code {returncode} ({name})"
    return f"Exited with code {returncode}"


class ProcessSupervisor:
    """Runs at most one program, replacing it on request."""

    def __init__(
        self,
        events: EventStream,
        java: Sequence[str] = ("java",),
        host_ops: HostOps | None = None,
    ) -> None:
        self.events = events
        self.java = list(java)
        self.host_ops = host_ops or select_host_ops()
        self._slot = Slot()
        self._queue: asyncio.Queue[_Message] = asyncio.Queue()
        self._coordinator: asyncio.Task[None] | None = None
        self._waiters: set[asyncio.Task[None]] = set()
        self._closing = False

    @property
    def slot(self) -> Slot:
        return self._slot

    @property
    def state(self) -> SlotState:
        return self._slot.state

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self, directory: str | Path, identifier: str) -> None:
        """Run `identifier` in `directory`.

        If a program is already running it is interrupted first, and this
        request replaces any run still waiting for that exit.
        """
        self._post(_Run(str(directory), identifier))

    def write_input(self, text: str) -> None:
        """Write `text` verbatim to the running program's stdin."""
        self._post(_Write(text))

    def terminate(self) -> None:
        """Interrupt the running program.  Does not wait for it to exit."""
        self._post(_Terminate())

    async def settle(self) -> None:
        """Wait until every request posted so far has been handled."""
        await self._queue.join()

    async def shutdown(self) -> None:
        """Interrupt the running program and stop accepting requests."""
        if self._coordinator is None:
            return
        self._closing = True
        self._queue.put_nowait(_Terminate())
        await self.settle()
        self._coordinator.cancel()
        try:
            await self._coordinator
        except asyncio.CancelledError:
            pass
        self._coordinator = None

    # ------------------------------------------------------------------
    # Coordinator
    # ------------------------------------------------------------------

    def _post(self, message: _Message) -> None:
        if self._coordinator is None or self._coordinator.done():
            self._coordinator = asyncio.get_running_loop().create_task(
                self._coordinate(), name="supervisor-coordinator",
            )
        self._queue.put_nowait(message)

    async def _coordinate(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self._handle(message)
            except Exception:
                log.exception("Failed to handle %r", message)
            finally:
                self._queue.task_done()

    async def _handle(self, message: _Message) -> None:
        if isinstance(message, _Run):
            await self._handle_run(message.directory, message.identifier)
        elif isinstance(message, _Write):
            self._handle_write(message.text)
        elif isinstance(message, _Terminate):
            await self._handle_terminate()
        elif isinstance(message, _Exited):
            await self._handle_exit(message.generation, message.returncode)

    async def _handle_run(self, directory: str, identifier: str) -> None:
        if self._closing:
            return
        if self._slot.state is not SlotState.IDLE:
            # Launch only after the current program is really gone
            self._slot.pending = (directory, identifier)
            log.info("Queued %s until pid %s exits", identifier, self._slot.pid)
            await self._handle_terminate()
            return
        await self._launch(directory, identifier)

    def _handle_write(self, text: str) -> None:
        proc = self._slot._process
        if self._slot.state is SlotState.IDLE or proc is None or proc.stdin is None:
            return
        try:
            proc.stdin.write(text.encode("utf-8"))
        except (OSError, RuntimeError) as exc:
            log.debug("Could not write to pid %s: %s", proc.pid, exc)

    async def _handle_terminate(self) -> None:
        slot = self._slot
        if slot.state is SlotState.IDLE:
            return
        self.events.output("\n")
        slot.state = SlotState.TERMINATING
        if slot._process is not None:
            await self.host_ops.interrupt(slot._process)
        # TODO: escalate to SIGKILL when the program ignores the interrupt

    async def _handle_exit(self, generation: int, returncode: int) -> None:
        slot = self._slot
        pending: tuple[str, str] | None = None

        # An exit from a superseded launch must not clear the newer one
        if generation == slot.generation and slot.state is not SlotState.IDLE:
            proc = slot._process
            if proc is not None and proc.stdin is not None:
                proc.stdin.close()
            pending = slot.pending
            slot.state = SlotState.IDLE
            slot.directory = None
            slot.identifier = None
            slot.pending = None
            slot._process = None
        else:
            log.debug("Ignoring exit of superseded launch %d", generation)

        self.events.log(describe_exit(returncode))
        self.events.output("\n")

        if pending is not None and not self._closing:
            await self._launch(*pending)

    async def _launch(self, directory: str, identifier: str) -> None:
        slot = self._slot
        slot.generation += 1
        generation = slot.generation
        slot.state = SlotState.RUNNING
        slot.directory = directory
        slot.identifier = identifier

        self.events.log(f"Running {identifier}...")

        loop = asyncio.get_running_loop()
        exited: asyncio.Future[int] = loop.create_future()

        def _on_exit(returncode: int) -> None:
            if not exited.done():
                exited.set_result(returncode)

        try:
            transport, protocol = await loop.subprocess_exec(
                lambda: _ExitNotifyingProtocol(_on_exit, loop=loop),
                *self.java,
                identifier,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=directory,
                **self.host_ops.spawn_options(),
            )
        except OSError as exc:
            # Surfaces through the normal exit path, like any other failure
            log.warning("Failed to launch %s: %s", identifier, exc)
            self._queue.put_nowait(_Exited(generation, EXIT_CODE_LAUNCH_FAILED))
            return

        proc = asyncio.subprocess.Process(transport, protocol, loop)
        slot._process = proc
        log.debug("Launched %s as pid %s (launch %d)", identifier, proc.pid, generation)

        readers = [
            asyncio.create_task(
                self._read_stream(proc.stdout, self.events.output),  # type: ignore[arg-type]
                name=f"{identifier}-stdout",
            ),
            asyncio.create_task(
                self._read_stream(proc.stderr, self.events.error),  # type: ignore[arg-type]
                name=f"{identifier}-stderr",
            ),
        ]
        waiter = asyncio.create_task(
            self._wait_for_exit(exited, readers, generation),
            name=f"{identifier}-waiter",
        )
        self._waiters.add(waiter)
        waiter.add_done_callback(self._waiters.discard)
        for reader in readers:
            self._waiters.add(reader)
            reader.add_done_callback(self._waiters.discard)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _read_stream(
        stream: asyncio.StreamReader,
        sink: Callable[[str], None],
    ) -> None:
        """Forward every chunk read from `stream` to `sink` as it arrives."""
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                chunk = await stream.read(4096)
                if not chunk:
                    break
                text = decoder.decode(chunk)
                if text:
                    sink(text)
            tail = decoder.decode(b"", final=True)
            if tail:
                sink(tail)
        except asyncio.CancelledError:
            pass

    async def _wait_for_exit(
        self,
        exited: asyncio.Future[int],
        readers: list[asyncio.Task[None]],
        generation: int,
    ) -> None:
        returncode = await exited
        try:
            # Output already in the pipes goes out before the exit notice.
            # Descendants may keep the pipes open; their output follows it.
            await asyncio.wait(readers, timeout=OUTPUT_DRAIN_SECONDS)
        finally:
            self._queue.put_nowait(_Exited(generation, returncode))
