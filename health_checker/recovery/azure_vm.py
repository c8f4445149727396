from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

import httpx
import structlog

from ..config import AzureVMConfig


logger = structlog.get_logger(__name__)

LOGIN_BASE_URL = "https://login.microsoftonline.com"
MANAGEMENT_BASE_URL = "https://management.azure.com"
MANAGEMENT_SCOPE = "https://management.azure.com/.default"
COMPUTE_API_VERSION = "2023-03-01"

# Discord embed descriptions are capped at 4096 chars; keep error bodies well below.
MAX_BODY_CHARS = 1500


@dataclass(frozen=True)
class RecoveryOutcome:
    succeeded: bool
    message: str
    status_code: int | None = None


class AzureAuthError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _body_excerpt(resp: httpx.Response) -> str:
    text = (resp.text or "").strip()
    if len(text) > MAX_BODY_CHARS:
        text = text[:MAX_BODY_CHARS] + "…"
    return text


def token_url(tenant_id: str) -> str:
    return f"{LOGIN_BASE_URL}/{quote(tenant_id, safe='')}/oauth2/v2.0/token"


def vm_start_url(cfg: AzureVMConfig) -> str:
    return (
        f"{MANAGEMENT_BASE_URL}/subscriptions/{quote(cfg.subscription_id or '', safe='')}"
        f"/resourceGroups/{quote(cfg.resource_group or '', safe='')}"
        f"/providers/Microsoft.Compute/virtualMachines/{quote(cfg.vm_name or '', safe='')}"
        f"/start?api-version={COMPUTE_API_VERSION}"
    )


async def get_access_token(client: httpx.AsyncClient, cfg: AzureVMConfig) -> str:
    """
    OAuth2 client-credentials grant against the Microsoft identity platform.
    Raises AzureAuthError on any transport error or non-2xx response.
    """
    secret = cfg.client_secret.get_secret_value() if cfg.client_secret else ""
    form = {
        "client_id": cfg.client_id or "",
        "client_secret": secret,
        "scope": MANAGEMENT_SCOPE,
        "grant_type": "client_credentials",
    }
    try:
        resp = await client.post(token_url(cfg.tenant_id or ""), data=form)
    except httpx.HTTPError as e:
        raise AzureAuthError(f"Failed to get Azure access token: {type(e).__name__}: {e}") from e

    if not resp.is_success:
        raise AzureAuthError(
            f"Failed to get Azure access token: {resp.status_code} - {_body_excerpt(resp)}",
            status_code=resp.status_code,
        )

    try:
        data = resp.json()
    except ValueError as e:
        raise AzureAuthError("Failed to get Azure access token: response is not JSON", status_code=resp.status_code) from e

    token = data.get("access_token") if isinstance(data, dict) else None
    if not isinstance(token, str) or not token:
        raise AzureAuthError(
            "Failed to get Azure access token: access_token missing from response",
            status_code=resp.status_code,
        )
    return token


def classify_start_response(resp: httpx.Response, vm_name: str) -> RecoveryOutcome:
    status = resp.status_code
    if status in (200, 202):
        return RecoveryOutcome(True, f"Started Azure VM **{vm_name}** (start initiated).", status)
    if status == 204:
        return RecoveryOutcome(True, f"Azure VM **{vm_name}** is already running.", status)
    return RecoveryOutcome(False, f"Failed to start the VM: {status} - {_body_excerpt(resp)}", status)


def incomplete_config_outcome(missing: list[str]) -> RecoveryOutcome:
    return RecoveryOutcome(
        False,
        "Azure configuration is incomplete. Check the environment variables: " + ", ".join(missing),
    )


async def start_vm(client: httpx.AsyncClient, cfg: AzureVMConfig) -> RecoveryOutcome:
    """Exchange credentials for a token and request the VM start.

    Expects a complete ``cfg``; ``AzureVMRecoveryAction.invoke`` checks that first.
    """
    try:
        token = await get_access_token(client, cfg)
    except AzureAuthError as e:
        logger.error("Azure authentication failed", status_code=e.status_code, error=str(e))
        return RecoveryOutcome(False, str(e), e.status_code)

    try:
        resp = await client.post(
            vm_start_url(cfg),
            headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
        )
    except httpx.HTTPError as e:
        logger.error("Azure VM start request failed", vm_name=cfg.vm_name, error=f"{type(e).__name__}: {e}")
        return RecoveryOutcome(False, f"VM start request failed: {type(e).__name__}: {e}")

    outcome = classify_start_response(resp, cfg.vm_name or "")
    logger.info(
        "Azure VM start requested",
        vm_name=cfg.vm_name,
        resource_group=cfg.resource_group,
        status_code=resp.status_code,
        succeeded=outcome.succeeded,
    )
    return outcome


class AzureVMRecoveryAction:
    """Starts the Azure VM that hosts the monitored endpoint.

    Stateless between calls: every invocation opens its own HTTP client, so
    overlapping invocations are independent.
    """

    def __init__(
        self,
        config: AzureVMConfig,
        *,
        timeout_seconds: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.timeout_seconds = float(timeout_seconds)
        self._transport = transport

    async def invoke(self) -> RecoveryOutcome:
        missing = self.config.missing_fields()
        if missing:
            logger.warning("Azure VM start skipped, configuration incomplete", missing=missing)
            return incomplete_config_outcome(missing)

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                return await start_vm(client, self.config)
        except Exception as e:
            logger.exception("Unexpected error while starting Azure VM", vm_name=self.config.vm_name)
            return RecoveryOutcome(False, f"An error occurred: {type(e).__name__}: {e}")
