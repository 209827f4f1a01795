"""Compiler gateway: prepares the output directory and runs javac."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

from .events import EventStream
from .host_ops import HostOps, select_host_ops
from .models import CompileResult

log = logging.getLogger(__name__)


class CompilerGateway:
    def __init__(
        self,
        events: EventStream,
        javac: Sequence[str] = ("javac",),
        host_ops: HostOps | None = None,
    ) -> None:
        self.events = events
        self.javac = list(javac)
        self.host_ops = host_ops or select_host_ops()
        # Compiles share the output directory, so they must not overlap.
        self._lock = asyncio.Lock()

    async def compile(
        self,
        files: Sequence[str | Path],
        output_dir: str | Path,
    ) -> CompileResult:
        """Compile `files` into `output_dir`, replacing whatever was there.

        Returns once the compiler has exited.  An empty file list fails
        straight away, without touching the filesystem or emitting events.
        """
        if not files:
            return CompileResult(success=False, diagnostics="No source files to compile")

        async with self._lock:
            try:
                self.host_ops.create_directory(output_dir)
                # Stale classes from renamed sources must not survive
                self.host_ops.clear_directory(output_dir)
            except OSError as exc:
                diagnostics = f"Cannot prepare output directory {output_dir}: {exc}\n"
                self.events.error(diagnostics)
                return CompileResult(success=False, diagnostics=diagnostics)

            self.events.log("Compiling...")

            cmd = [*self.javac, *(str(f) for f in files), "-d", str(output_dir)]
            log.debug("Invoking compiler: %s", cmd)
            try:
                proc = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as exc:
                diagnostics = f"Failed to start compiler: {exc}\n"
                self.events.error(diagnostics)
                return CompileResult(success=False, diagnostics=diagnostics)

            _, stderr = await proc.communicate()

            if proc.returncode != 0:
                diagnostics = stderr.decode("utf-8", errors="replace")
                log.info("Compiler exited with code %s", proc.returncode)
                self.events.error(diagnostics)
                return CompileResult(success=False, diagnostics=diagnostics)

            self.events.log("Done.")
            return CompileResult(success=True)
