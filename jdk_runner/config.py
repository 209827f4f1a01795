from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from .events import DEFAULT_MAX_EVENTS

DEFAULT_PORT = 8902
DEFAULT_OUTPUT_DIR = "bin"


@dataclass(frozen=True)
class Config:
    javac: list[str] = field(default_factory=lambda: ["javac"])
    java: list[str] = field(default_factory=lambda: ["java"])
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    max_events: int = DEFAULT_MAX_EVENTS

    def resolve_output_dir(
        self, project_dir: str | Path, relative: str | None = None
    ) -> str:
        """Resolve the compile target for a project.

        Project /src/app, no relative   ->  /src/app/bin
        Project /src/app, "out/classes" ->  /src/app/out/classes
        Project /src/app, "/tmp/build"  ->  /tmp/build   (absolute paths used as-is)

        The directory does not need to exist yet; the compiler creates it.
        """
        rel = Path(relative or DEFAULT_OUTPUT_DIR)
        if rel.is_absolute():
            return str(rel.resolve())
        return str((Path(project_dir) / rel).resolve())

    @classmethod
    def from_env(cls, env_path: str | Path | None = None) -> Config:
        load_dotenv(env_path)

        javac = shlex.split(os.getenv("JDK_RUNNER_JAVAC", "javac"))
        java = shlex.split(os.getenv("JDK_RUNNER_JAVA", "java"))
        if not javac or not java:
            raise ValueError("JDK_RUNNER_JAVAC and JDK_RUNNER_JAVA must not be empty")

        return cls(
            javac=javac,
            java=java,
            host=os.getenv("JDK_RUNNER_HOST", "127.0.0.1"),
            port=int(os.getenv("JDK_RUNNER_PORT", str(DEFAULT_PORT))),
            max_events=int(os.getenv("JDK_RUNNER_EVENT_BUFFER", str(DEFAULT_MAX_EVENTS))),
        )
