from __future__ import annotations

import socket

import pytest

from health_checker import main as main_module
from health_checker.config import AZURE_ENV_FIELDS, CORE_ENV_FIELDS
from health_checker.main import EXIT_CONFIG_ERROR, EXIT_TARGET_DOWN, main
from health_checker.scheduler.health_monitor import HealthMonitor


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in [*CORE_ENV_FIELDS, *AZURE_ENV_FIELDS, "CHECK_INTERVAL", "TIMEOUT", "HEALTH_CHECKER_CONFIG"]:
        monkeypatch.delenv(name, raising=False)
    # Keep structlog on its defaults so cached loggers never hold a captured stream.
    monkeypatch.setattr("health_checker.main.configure_logging", lambda level: None)
    return monkeypatch


def test_main_exits_1_and_lists_every_config_error(clean_env: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    clean_env.setenv("TARGET_HOST", "example.com")
    clean_env.setenv("TARGET_PORT", "abc")
    clean_env.setenv("NOTIFY_USER_ID", "42")

    assert main(["--once"]) == EXIT_CONFIG_ERROR

    err = capsys.readouterr().err
    assert "DISCORD_TOKEN" in err
    assert "TARGET_PORT" in err


def test_main_once_reports_reachability(clean_env: pytest.MonkeyPatch) -> None:
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(8)
    port = listener.getsockname()[1]

    clean_env.setenv("DISCORD_TOKEN", "t")
    clean_env.setenv("TARGET_HOST", "127.0.0.1")
    clean_env.setenv("TARGET_PORT", str(port))
    clean_env.setenv("NOTIFY_USER_ID", "42")
    clean_env.setenv("TIMEOUT", "1000")
    try:
        assert main(["--once"]) == 0
    finally:
        listener.close()

    assert main(["--once"]) == EXIT_TARGET_DOWN


def test_main_once_runs_a_single_monitor_cycle(clean_env: pytest.MonkeyPatch) -> None:
    runs: list[int | None] = []

    class RecordingMonitor(HealthMonitor):
        async def run(self, max_cycles: int | None = None):
            runs.append(max_cycles)
            await super().run(max_cycles=max_cycles)

    clean_env.setattr(main_module, "HealthMonitor", RecordingMonitor)
    clean_env.setenv("DISCORD_TOKEN", "t")
    clean_env.setenv("TARGET_HOST", "bad..host")
    clean_env.setenv("TARGET_PORT", "80")
    clean_env.setenv("NOTIFY_USER_ID", "42")
    clean_env.setenv("TIMEOUT", "500")

    assert main(["--once"]) == EXIT_TARGET_DOWN
    assert runs == [1]
