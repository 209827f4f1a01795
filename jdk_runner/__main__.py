"""Run the JDK runner as an MCP daemon over HTTP.

Usage:
    python -m jdk_runner [--host HOST] [--port PORT] [--env-file FILE]

The daemon owns one supervised program for its whole lifetime; editors
and agents talk to it through the MCP tools in :mod:`jdk_runner.server`.
"""

import argparse
import asyncio
import dataclasses
import logging
import signal
from pathlib import Path

import uvicorn

from jdk_runner.compiler import CompilerGateway
from jdk_runner.config import Config
from jdk_runner.events import EventStream
from jdk_runner.host_ops import select_host_ops
from jdk_runner.server import create_server
from jdk_runner.supervisor import ProcessSupervisor

log = logging.getLogger(__name__)


class _ClientDisconnectFilter(logging.Filter):
    """Log an HTTP client hanging up mid-response as one DEBUG line."""

    def filter(self, record: logging.LogRecord) -> bool:
        exc = record.exc_info[1] if record.exc_info else None
        if exc is not None and "ClosedResourceError" in str(exc):
            record.levelno, record.levelname = logging.DEBUG, "DEBUG"
            record.msg, record.args = "MCP client disconnected early", None
            record.exc_info = record.exc_text = None
        return True


async def _serve_until_signal(uvi: uvicorn.Server) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    # uvicorn's serve() installs its own signal handlers; _serve() leaves ours
    server_task = asyncio.create_task(uvi._serve(), name="uvicorn")
    await stop.wait()
    log.info("Stopping HTTP server")
    uvi.should_exit = True
    await server_task


async def _run(config: Config) -> None:
    host_ops = select_host_ops()
    events = EventStream(max_events=config.max_events)
    supervisor = ProcessSupervisor(events, java=config.java, host_ops=host_ops)
    compiler = CompilerGateway(events, javac=config.javac, host_ops=host_ops)
    app = create_server(supervisor, compiler, config).streamable_http_app()

    uvi = uvicorn.Server(
        uvicorn.Config(app, host=config.host, port=config.port, log_level="info")
    )
    try:
        await _serve_until_signal(uvi)
    finally:
        log.info("Interrupting supervised program")
        await supervisor.shutdown()


def main() -> None:
    parser = argparse.ArgumentParser(description="JDK runner MCP daemon")
    parser.add_argument("--host", help="Interface to bind (default: from env or 127.0.0.1)")
    parser.add_argument("--port", type=int, help="Port to listen on (default: from env or 8902)")
    parser.add_argument("--env-file", type=Path, help="Optional .env file to load")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [jdk-runner] %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("mcp.server.streamable_http_manager").addFilter(
        _ClientDisconnectFilter()
    )

    config = Config.from_env(args.env_file)
    overrides = {
        key: value
        for key, value in (("host", args.host), ("port", args.port))
        if value is not None
    }
    if overrides:
        config = dataclasses.replace(config, **overrides)

    log.info("Starting jdk-runner on http://%s:%d/mcp", config.host, config.port)
    asyncio.run(_run(config))


if __name__ == "__main__":
    main()
