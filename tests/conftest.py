"""Shared fixtures for the runner tests.

Child programs are small Python scripts; the interpreter stands in for
``java`` (the script name plays the class name) and for ``javac``.
"""

from __future__ import annotations

import asyncio
import sys
import textwrap
from pathlib import Path

import pytest
import pytest_asyncio

from jdk_runner.events import EventStream
from jdk_runner.supervisor import ProcessSupervisor
from tests.helpers import RecordingHostOps

PYTHON = [sys.executable, "-u"]

PROGRAMS = {
    "hello.py": """
        import sys
        print("hello from child")
        sys.stderr.write("warning from child\\n")
    """,
    "echo.py": """
        import sys
        line = sys.stdin.readline()
        print("got:" + line, end="")
    """,
    "fail.py": """
        import sys
        sys.exit(3)
    """,
    "a.py": """
        import time
        print("A ready", flush=True)
        time.sleep(60)
    """,
    "b.py": """
        print("B")
    """,
    "c.py": """
        print("C")
    """,
    "slow.py": """
        import time
        print("slow ready", flush=True)
        time.sleep(1)
    """,
    "spawner.py": """
        import subprocess
        import sys

        # Background helper that inherits (and keeps open) our stdout
        helper = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
        print(f"spawned {helper.pid}", flush=True)
    """,
}

FAKE_JAVAC = """
    import sys
    from pathlib import Path

    args = sys.argv[1:]
    split = args.index("-d")
    sources = [Path(a) for a in args[:split]]
    out = Path(args[split + 1])

    failed = False
    for src in sources:
        if "ERROR" in src.read_text():
            sys.stderr.write(f"{src.name}:1: error: cannot find symbol\\n")
            failed = True
    if failed:
        sys.exit(1)

    for src in sources:
        (out / (src.stem + ".class")).write_text("compiled " + src.name)
"""


@pytest.fixture
def programs(tmp_path: Path) -> Path:
    d = tmp_path / "programs"
    d.mkdir()
    for name, source in PROGRAMS.items():
        (d / name).write_text(textwrap.dedent(source))
    return d


@pytest.fixture
def fake_javac(tmp_path: Path) -> list[str]:
    script = tmp_path / "fake_javac.py"
    script.write_text(textwrap.dedent(FAKE_JAVAC))
    return [sys.executable, str(script)]


@pytest.fixture
def events() -> EventStream:
    return EventStream()


@pytest.fixture
def host_ops() -> RecordingHostOps:
    return RecordingHostOps()


@pytest_asyncio.fixture
async def supervisor(events: EventStream, host_ops: RecordingHostOps):
    sv = ProcessSupervisor(events, java=PYTHON, host_ops=host_ops)
    yield sv
    await sv.shutdown()
    # Let interrupted children be reaped before the loop closes
    if sv._waiters:
        await asyncio.wait(set(sv._waiters), timeout=10)
