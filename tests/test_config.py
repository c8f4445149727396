from __future__ import annotations

from pathlib import Path

import pytest

from health_checker.config import (
    DEFAULT_CHECK_INTERVAL_SECONDS,
    DEFAULT_TIMEOUT_MS,
    ConfigError,
    load_config,
)


BASE_ENV = {
    "DISCORD_TOKEN": "discord-token",
    "TARGET_HOST": "game.example.net",
    "TARGET_PORT": "25565",
    "NOTIFY_USER_ID": "123456789012345678",
}


def test_load_config_minimal_env_uses_defaults() -> None:
    config = load_config(environ=BASE_ENV)
    assert config.target_host == "game.example.net"
    assert config.target_port == 25565
    assert config.notify_user_id == "123456789012345678"
    assert config.discord_token.get_secret_value() == "discord-token"
    assert config.check_interval_seconds == DEFAULT_CHECK_INTERVAL_SECONDS
    assert config.timeout_ms == DEFAULT_TIMEOUT_MS
    assert config.timeout_seconds == pytest.approx(5.0)
    assert config.target == "game.example.net:25565"
    assert config.azure.is_complete is False


def test_load_config_reports_all_errors_at_once() -> None:
    env = dict(BASE_ENV)
    del env["DISCORD_TOKEN"]
    env["TARGET_PORT"] = "abc"

    with pytest.raises(ConfigError) as excinfo:
        load_config(environ=env)

    errors = excinfo.value.errors
    assert len(errors) == 2
    assert any(e.startswith("DISCORD_TOKEN") for e in errors)
    assert any(e.startswith("TARGET_PORT") for e in errors)


def test_load_config_collects_every_missing_core_field() -> None:
    with pytest.raises(ConfigError) as excinfo:
        load_config(environ={})
    joined = "\n".join(excinfo.value.errors)
    for name in ("DISCORD_TOKEN", "TARGET_HOST", "TARGET_PORT", "NOTIFY_USER_ID"):
        assert name in joined


@pytest.mark.parametrize("port", ["0", "65536", "-1"])
def test_load_config_rejects_out_of_range_port(port: str) -> None:
    with pytest.raises(ConfigError) as excinfo:
        load_config(environ={**BASE_ENV, "TARGET_PORT": port})
    assert excinfo.value.errors and excinfo.value.errors[0].startswith("TARGET_PORT")


@pytest.mark.parametrize(
    ("interval", "timeout", "want_interval", "want_timeout"),
    [
        ("30", "1500", 30, 1500),
        ("abc", "xyz", DEFAULT_CHECK_INTERVAL_SECONDS, DEFAULT_TIMEOUT_MS),
        ("0", "-5", DEFAULT_CHECK_INTERVAL_SECONDS, DEFAULT_TIMEOUT_MS),
        ("", "", DEFAULT_CHECK_INTERVAL_SECONDS, DEFAULT_TIMEOUT_MS),
    ],
)
def test_interval_and_timeout_fall_back_to_defaults(
    interval: str, timeout: str, want_interval: int, want_timeout: int
) -> None:
    config = load_config(environ={**BASE_ENV, "CHECK_INTERVAL": interval, "TIMEOUT": timeout})
    assert config.check_interval_seconds == want_interval
    assert config.timeout_ms == want_timeout


def test_azure_fields_are_optional_and_tracked() -> None:
    config = load_config(
        environ={
            **BASE_ENV,
            "AZURE_TENANT_ID": "tenant",
            "AZURE_CLIENT_ID": "client",
            "AZURE_CLIENT_SECRET": "hunter2",
        }
    )
    assert config.azure.missing_fields() == [
        "AZURE_SUBSCRIPTION_ID",
        "AZURE_RESOURCE_GROUP",
        "AZURE_VM_NAME",
    ]
    assert "hunter2" not in repr(config)


def test_yaml_file_values_are_overridden_by_environment(tmp_path: Path) -> None:
    p = tmp_path / "health.yaml"
    p.write_text(
        "TARGET_HOST: from-file.example\n"
        "target_port: 22\n"
        "CHECK_INTERVAL: 15\n"
        "NOTIFY_USER_ID: 42\n",
        encoding="utf-8",
    )
    config = load_config(p, environ={"DISCORD_TOKEN": "t", "TARGET_HOST": "from-env.example"})
    assert config.target_host == "from-env.example"
    assert config.target_port == 22
    assert config.check_interval_seconds == 15
    assert config.notify_user_id == "42"


def test_yaml_file_must_be_a_mapping(tmp_path: Path) -> None:
    p = tmp_path / "health.yaml"
    p.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError) as excinfo:
        load_config(p, environ=BASE_ENV)
    assert "mapping" in excinfo.value.errors[0]
