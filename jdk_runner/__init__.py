"""JDK runner: compiles Java sources and supervises one running program.

Exposes six MCP tools:
  - compile_files:  Compile .java files into a freshly emptied directory
  - run:            Run a compiled class, replacing any running program
  - write_to_stdin: Feed text to the running program
  - kill_process:   Interrupt the running program
  - get_events:     Poll log/output/error events by sequence number
  - status:         Show the supervised slot

Can run standalone:
    python -m jdk_runner
"""

from jdk_runner.compiler import CompilerGateway
from jdk_runner.events import EventStream
from jdk_runner.models import CompileResult, EventKind, RunnerEvent, SlotState
from jdk_runner.supervisor import ProcessSupervisor

__all__ = [
    "CompileResult",
    "CompilerGateway",
    "EventKind",
    "EventStream",
    "ProcessSupervisor",
    "RunnerEvent",
    "SlotState",
]
