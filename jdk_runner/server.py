"""MCP Server exposing compile/run tools over streamable HTTP."""

from __future__ import annotations

from mcp.server.fastmcp import FastMCP

from jdk_runner.compiler import CompilerGateway
from jdk_runner.config import DEFAULT_PORT, Config
from jdk_runner.events import EventStream
from jdk_runner.supervisor import ProcessSupervisor


def create_server(
    supervisor: ProcessSupervisor,
    compiler: CompilerGateway,
    config: Config | None = None,
) -> FastMCP:
    """Create and configure the MCP runner server."""

    cfg = config or Config()
    sv = supervisor
    events: EventStream = supervisor.events

    mcp = FastMCP(
        name="jdk-runner",
        instructions=(
            "Compiles Java sources and runs one program at a time. "
            "Use compile_files, then run; poll get_events for log/output/error "
            "text, write_to_stdin to feed input, and kill_process to interrupt."
        ),
        host=cfg.host,
        port=cfg.port or DEFAULT_PORT,
        stateless_http=True,
    )

    # ------------------------------------------------------------------
    # Tool: compile_files
    # ------------------------------------------------------------------
    @mcp.tool()
    async def compile_files(file_paths: list[str], output_path: str) -> dict:
        """Compile Java source files into a directory.

        The output directory is created if needed and emptied first, so
        classes from earlier compiles never linger.  Waits for javac.

        Args:
            file_paths: Absolute paths of the .java files to compile.
            output_path: Directory the .class files are written to.
        """
        try:
            result = await compiler.compile(file_paths, output_path)
            return {"success": result.success, "diagnostics": result.diagnostics}
        except Exception as exc:
            return {"success": False, "status": "error", "error": str(exc)}

    # ------------------------------------------------------------------
    # Tool: run
    # ------------------------------------------------------------------
    @mcp.tool()
    async def run(directory: str, class_name: str) -> dict:
        """Run a compiled Java class.

        If a program is already running it is interrupted, and this class
        starts once it has exited.  Returns once the request is handled,
        without waiting for any program to finish.

        Args:
            directory: Directory containing the compiled class.
            class_name: Class to run, without the .class extension.
        """
        sv.run(directory, class_name)
        await sv.settle()
        return {"accepted": True, "state": sv.state.value}

    # ------------------------------------------------------------------
    # Tool: write_to_stdin
    # ------------------------------------------------------------------
    @mcp.tool()
    async def write_to_stdin(text: str) -> dict:
        """Write text to stdin of the running program.

        Nothing is added to the text, so include a trailing newline when
        the program reads whole lines.  Ignored when nothing is running.
        """
        sv.write_input(text)
        await sv.settle()
        return {"accepted": True, "state": sv.state.value}

    # ------------------------------------------------------------------
    # Tool: kill_process
    # ------------------------------------------------------------------
    @mcp.tool()
    async def kill_process() -> dict:
        """Send the running program an interrupt (SIGINT, or taskkill on Windows).

        Does not wait for the program to exit; watch get_events for the
        exit notice.
        """
        sv.terminate()
        await sv.settle()
        return {"accepted": True, "state": sv.state.value}

    # ------------------------------------------------------------------
    # Tool: get_events
    # ------------------------------------------------------------------
    @mcp.tool()
    async def get_events(since: int = 0, limit: int = 200) -> dict:
        """Get log/output/error events newer than a sequence number.

        Pass the returned next_seq as `since` on the following call.

        Args:
            since: Last sequence number already seen (0 for everything retained).
            limit: Maximum number of events to return.
        """
        return events.since(seq=since, limit=limit)

    # ------------------------------------------------------------------
    # Tool: status
    # ------------------------------------------------------------------
    @mcp.tool()
    async def status() -> dict:
        """Show the supervised program: state, pid, class and any queued run."""
        await sv.settle()
        return sv.slot.snapshot()

    return mcp
