from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from ..recovery.azure_vm import RecoveryOutcome
from ..state_tracker import TransitionEvent


logger = structlog.get_logger(__name__)

COLOR_OK = 0x00FF00
COLOR_FAIL = 0xFF0000


@dataclass(frozen=True)
class MessageField:
    name: str
    value: str
    inline: bool = True


@dataclass(frozen=True)
class StatusMessage:
    title: str
    body: str
    ok: bool
    fields: tuple[MessageField, ...] = field(default_factory=tuple)

    @property
    def color(self) -> int:
        return COLOR_OK if self.ok else COLOR_FAIL


def load_timezone(name: str) -> tzinfo:
    cleaned = (name or "").strip()
    if not cleaned or cleaned.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(cleaned)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Timezone not found; falling back to UTC", tz=cleaned)
        return timezone.utc


def format_timestamp(moment: datetime, tz: tzinfo) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S %Z")


def status_emoji(active: bool) -> str:
    return "🟢" if active else "🔴"


def status_label(active: bool) -> str:
    return "Active" if active else "Inactive"


def presence_text(active: bool) -> str:
    return f"{status_emoji(active)} Server - {status_label(active)}"


def build_status_change_message(event: TransitionEvent, *, target: str, tz: tzinfo) -> StatusMessage:
    active = event.is_up
    return StatusMessage(
        title=f"{status_emoji(active)} Status changed",
        body=f"**{target}**",
        ok=active,
        fields=(
            MessageField("State", status_label(active)),
            MessageField("Detected at", format_timestamp(event.observed_at, tz)),
        ),
    )


def build_recovery_message(outcome: RecoveryOutcome, *, executed_at: datetime, tz: tzinfo) -> StatusMessage:
    return StatusMessage(
        title="✅ VM start" if outcome.succeeded else "❌ Error",
        body=outcome.message,
        ok=outcome.succeeded,
        fields=(MessageField("Executed at", format_timestamp(executed_at, tz)),),
    )
