"""Configuration management for the health checker."""

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator


logger = structlog.get_logger(__name__)

DEFAULT_CHECK_INTERVAL_SECONDS = 60
DEFAULT_TIMEOUT_MS = 5000
DEFAULT_RECOVERY_TIMEOUT_SECONDS = 30.0
DEFAULT_DISPLAY_TIMEZONE = "Asia/Tokyo"

CONFIG_PATH_ENV = "HEALTH_CHECKER_CONFIG"

# Environment variable -> field name
CORE_ENV_FIELDS = {
    "DISCORD_TOKEN": "discord_token",
    "TARGET_HOST": "target_host",
    "TARGET_PORT": "target_port",
    "NOTIFY_USER_ID": "notify_user_id",
}

AZURE_ENV_FIELDS = {
    "AZURE_TENANT_ID": "tenant_id",
    "AZURE_CLIENT_ID": "client_id",
    "AZURE_CLIENT_SECRET": "client_secret",
    "AZURE_SUBSCRIPTION_ID": "subscription_id",
    "AZURE_RESOURCE_GROUP": "resource_group",
    "AZURE_VM_NAME": "vm_name",
}

_FIELD_ENV_NAMES = {field: env for env, field in {**CORE_ENV_FIELDS, **AZURE_ENV_FIELDS}.items()}
_FIELD_ENV_NAMES.update(
    {
        "check_interval_seconds": "CHECK_INTERVAL",
        "timeout_ms": "TIMEOUT",
        "recovery_timeout_seconds": "RECOVERY_TIMEOUT",
        "display_timezone": "DISPLAY_TIMEZONE",
    }
)


class ConfigError(Exception):
    """Raised when one or more required settings are missing or malformed."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class AzureVMConfig(BaseModel):
    """Credentials and identifiers for the Azure VM recovery action.

    Every field is optional at load time; completeness is checked when the
    recovery action runs.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    tenant_id: Optional[str] = Field(default=None, description="Azure AD tenant")
    client_id: Optional[str] = Field(default=None, description="Service principal client id")
    client_secret: Optional[SecretStr] = Field(default=None, description="Service principal secret")
    subscription_id: Optional[str] = Field(default=None, description="Subscription holding the VM")
    resource_group: Optional[str] = Field(default=None, description="Resource group holding the VM")
    vm_name: Optional[str] = Field(default=None, description="Virtual machine name")

    def missing_fields(self) -> List[str]:
        """Return the environment variable names of the unset fields."""
        missing = []
        for env_name, field_name in AZURE_ENV_FIELDS.items():
            value = getattr(self, field_name)
            if isinstance(value, SecretStr):
                value = value.get_secret_value()
            if not value or not str(value).strip():
                missing.append(env_name)
        return missing

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()


class HealthCheckerConfig(BaseModel):
    """Validated, read-only process configuration."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    discord_token: SecretStr = Field(description="Discord bot token")
    target_host: str = Field(min_length=1, description="Host name or IP address to probe")
    target_port: int = Field(ge=1, le=65535, description="TCP port to probe")
    notify_user_id: str = Field(min_length=1, description="Discord user notified on state changes")

    check_interval_seconds: int = Field(default=DEFAULT_CHECK_INTERVAL_SECONDS, gt=0)
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)
    recovery_timeout_seconds: float = Field(default=DEFAULT_RECOVERY_TIMEOUT_SECONDS, gt=0)
    display_timezone: str = Field(default=DEFAULT_DISPLAY_TIMEZONE)

    azure: AzureVMConfig = Field(default_factory=AzureVMConfig)

    @field_validator("discord_token")
    @classmethod
    def _token_not_blank(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("must not be empty")
        return value

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    @property
    def target(self) -> str:
        return f"{self.target_host}:{self.target_port}"


def _load_file_values(config_path: Path) -> Dict[str, str]:
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError([f"Cannot read config file {config_path}: {e}"]) from e
    except yaml.YAMLError as e:
        raise ConfigError([f"Config file {config_path} is not valid YAML: {e}"]) from e

    if not isinstance(data, dict):
        raise ConfigError([f"Config file {config_path} must be a mapping"])

    values: Dict[str, str] = {}
    for key, value in data.items():
        if value is None:
            continue
        values[str(key).strip().upper()] = str(value)
    return values


def _positive_int(raw: Optional[str], *, name: str, default: int) -> int:
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        logger.warning("Unparseable setting, using default", setting=name, value=raw, default=default)
        return default
    if value <= 0:
        logger.warning("Non-positive setting, using default", setting=name, value=value, default=default)
        return default
    return value


def _positive_float(raw: Optional[str], *, name: str, default: float) -> float:
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip())
    except ValueError:
        logger.warning("Unparseable setting, using default", setting=name, value=raw, default=default)
        return default
    if value <= 0:
        logger.warning("Non-positive setting, using default", setting=name, value=value, default=default)
        return default
    return value


def _describe_error(error: Dict[str, Any]) -> str:
    loc = [str(part) for part in error.get("loc", ())]
    field_name = loc[-1] if loc else ""
    env_name = _FIELD_ENV_NAMES.get(field_name, ".".join(loc) or "config")
    if error.get("type") == "missing":
        return f"{env_name} is not set"
    if error.get("type") == "string_too_short":
        return f"{env_name} is empty"
    msg = str(error.get("msg") or "invalid value")
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    return f"{env_name} is invalid: {msg}"


def load_config(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> HealthCheckerConfig:
    """Load configuration from an optional YAML file and the environment.

    Environment variables take precedence over file values. All validation
    failures are collected and raised together.

    Args:
        config_path: YAML file whose keys are the environment variable names
            (defaults to ``$HEALTH_CHECKER_CONFIG`` when set)
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        The validated configuration

    Raises:
        ConfigError: if any required setting is missing or malformed
    """
    env = dict(os.environ if environ is None else environ)

    if config_path is None and env.get(CONFIG_PATH_ENV):
        config_path = Path(env[CONFIG_PATH_ENV])

    values: Dict[str, str] = {}
    if config_path is not None:
        values.update(_load_file_values(Path(config_path)))
    for key, value in env.items():
        if value is not None and str(value).strip():
            values[key] = value

    data: Dict[str, Any] = {}
    for env_name, field_name in CORE_ENV_FIELDS.items():
        if env_name in values:
            data[field_name] = values[env_name]

    data["check_interval_seconds"] = _positive_int(
        values.get("CHECK_INTERVAL"), name="CHECK_INTERVAL", default=DEFAULT_CHECK_INTERVAL_SECONDS
    )
    data["timeout_ms"] = _positive_int(values.get("TIMEOUT"), name="TIMEOUT", default=DEFAULT_TIMEOUT_MS)
    data["recovery_timeout_seconds"] = _positive_float(
        values.get("RECOVERY_TIMEOUT"), name="RECOVERY_TIMEOUT", default=DEFAULT_RECOVERY_TIMEOUT_SECONDS
    )
    if values.get("DISPLAY_TIMEZONE"):
        data["display_timezone"] = values["DISPLAY_TIMEZONE"].strip()

    data["azure"] = {
        field_name: values[env_name]
        for env_name, field_name in AZURE_ENV_FIELDS.items()
        if values.get(env_name, "").strip()
    }

    try:
        config = HealthCheckerConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError([_describe_error(err) for err in e.errors()]) from e

    logger.info(
        "Configuration loaded",
        target=config.target,
        check_interval_seconds=config.check_interval_seconds,
        timeout_ms=config.timeout_ms,
        recovery_configured=config.azure.is_complete,
    )
    return config
