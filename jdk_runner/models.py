from __future__ import annotations

import enum
from dataclasses import dataclass


# ---------------------------------------------------------------------------
# Events: the only channel from the runner back to its consumer
# ---------------------------------------------------------------------------

class EventKind(str, enum.Enum):
    LOG = "log"        # lifecycle notices: compiling, running, exited
    OUTPUT = "output"  # child stdout, plus synthetic "\n" separators
    ERROR = "error"    # child stderr, or compiler diagnostics


@dataclass(frozen=True)
class RunnerEvent:
    kind: EventKind
    payload: str
    seq: int = 0

    def to_dict(self) -> dict[str, object]:
        return {"seq": self.seq, "kind": self.kind.value, "payload": self.payload}


# ---------------------------------------------------------------------------
# Supervisor slot state
# ---------------------------------------------------------------------------

class SlotState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    TERMINATING = "terminating"  # interrupt sent, exit not yet observed


@dataclass(frozen=True)
class CompileResult:
    success: bool
    diagnostics: str = ""

    def __bool__(self) -> bool:
        return self.success
