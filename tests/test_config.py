"""Tests for Config loading and output directory resolution."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from jdk_runner.config import DEFAULT_PORT, Config

_ENV_KEYS = (
    "JDK_RUNNER_JAVAC",
    "JDK_RUNNER_JAVA",
    "JDK_RUNNER_HOST",
    "JDK_RUNNER_PORT",
    "JDK_RUNNER_EVENT_BUFFER",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    # Keep load_dotenv() from picking up a developer's .env
    monkeypatch.chdir(tmp_path)
    yield
    # load_dotenv writes straight to os.environ
    for key in _ENV_KEYS:
        os.environ.pop(key, None)


def test_defaults(tmp_path: Path):
    cfg = Config.from_env(tmp_path / "missing.env")
    assert cfg.javac == ["javac"]
    assert cfg.java == ["java"]
    assert cfg.host == "127.0.0.1"
    assert cfg.port == DEFAULT_PORT


def test_reads_env_file(tmp_path: Path):
    env_file = tmp_path / "runner.env"
    env_file.write_text(
        "JDK_RUNNER_JAVA=/opt/jdk/bin/java -Xmx256m\n"
        "JDK_RUNNER_PORT=9100\n"
        "JDK_RUNNER_EVENT_BUFFER=50\n"
    )
    cfg = Config.from_env(env_file)
    assert cfg.java == ["/opt/jdk/bin/java", "-Xmx256m"]
    assert cfg.port == 9100
    assert cfg.max_events == 50


def test_environment_wins_over_env_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    env_file = tmp_path / "runner.env"
    env_file.write_text("JDK_RUNNER_PORT=9100\n")
    monkeypatch.setenv("JDK_RUNNER_PORT", "9200")
    assert Config.from_env(env_file).port == 9200


def test_empty_command_is_rejected(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setenv("JDK_RUNNER_JAVA", "")
    with pytest.raises(ValueError):
        Config.from_env(tmp_path / "missing.env")


class TestResolveOutputDir:
    def test_default_bin(self, tmp_path: Path):
        assert Config().resolve_output_dir(tmp_path) == str((tmp_path / "bin").resolve())

    def test_relative(self, tmp_path: Path):
        got = Config().resolve_output_dir(tmp_path, "out/classes")
        assert got == str((tmp_path / "out" / "classes").resolve())

    def test_absolute_used_as_is(self, tmp_path: Path):
        target = tmp_path / "elsewhere"
        assert Config().resolve_output_dir("/ignored", str(target)) == str(target.resolve())
